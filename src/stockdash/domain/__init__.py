from .models import (
    CATEGORIES,
    DEFAULT_CATEGORY,
    CategoryBreakdown,
    DailySalesSummary,
    DashboardStats,
    HourlySlot,
    Product,
    Profile,
    Sale,
    TopProduct,
    profit_margin,
)
from .errors import (
    AppError,
    AuthError,
    DuplicateUsernameError,
    InsufficientStockError,
    NotAuthenticatedError,
    NotFoundError,
    StorageError,
    ValidationError,
)

__all__ = [
    "CATEGORIES",
    "DEFAULT_CATEGORY",
    "Product",
    "Sale",
    "Profile",
    "DailySalesSummary",
    "HourlySlot",
    "TopProduct",
    "CategoryBreakdown",
    "DashboardStats",
    "profit_margin",
    "AppError",
    "ValidationError",
    "NotFoundError",
    "InsufficientStockError",
    "DuplicateUsernameError",
    "AuthError",
    "NotAuthenticatedError",
    "StorageError",
]
