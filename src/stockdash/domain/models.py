from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


CATEGORIES: tuple[str, ...] = (
    "electronics",
    "clothing",
    "food",
    "beverages",
    "household",
    "stationery",
    "other",
)
DEFAULT_CATEGORY = "other"


def profit_margin(total_profit: float, total_sales: float) -> float:
    """Profit as a percentage of sales; 0.0 when nothing was sold."""
    if not total_sales:
        return 0.0
    return float(total_profit) / float(total_sales) * 100


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    quantity: int
    purchase_price: float
    selling_price: float
    category: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Sale:
    id: str
    product_id: str
    quantity: int
    total_amount: float
    profit: float
    created_at: datetime
    sale_time: datetime


@dataclass(frozen=True)
class Profile:
    id: str
    username: str
    full_name: Optional[str]
    phone_number: Optional[str]
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class DailySalesSummary:
    date: str
    total: float
    profit: float
    count: int


@dataclass(frozen=True)
class HourlySlot:
    hour: int
    sales: float
    count: int


@dataclass(frozen=True)
class TopProduct:
    product_id: str
    name: str
    category: str
    units_sold: int
    revenue: float


@dataclass(frozen=True)
class CategoryBreakdown:
    category: str
    products: int
    units_sold: int
    revenue: float
    profit: float


@dataclass(frozen=True)
class DashboardStats:
    total_products: int = 0
    total_inventory_value: float = 0.0
    total_sales: float = 0.0
    total_profit: float = 0.0
    total_count: int = 0
    today_sales: float = 0.0
    today_profit: float = 0.0
    today_count: int = 0
    categories_count: dict[str, int] = field(default_factory=dict)
    profit_margin: float = 0.0
