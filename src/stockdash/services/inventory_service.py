from __future__ import annotations

import logging
import math
from typing import Optional

from stockdash.domain.errors import NotFoundError, ValidationError
from stockdash.domain.models import CATEGORIES, DEFAULT_CATEGORY, Product

log = logging.getLogger(__name__)

PRICE_ERROR = "Prices must be greater than zero"


def _clean_name(name) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name is required.")
    return name


def _clean_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("Quantity must be a whole number.")
    if quantity < 0:
        raise ValidationError("Quantity must be >= 0.")
    return quantity


def _clean_price(price) -> float:
    if isinstance(price, bool):
        raise ValidationError(PRICE_ERROR)
    try:
        value = float(price)
    except (TypeError, ValueError) as e:
        raise ValidationError(PRICE_ERROR) from e
    if not math.isfinite(value) or value <= 0:
        raise ValidationError(PRICE_ERROR)
    return value


def _clean_category(category) -> str:
    if category is None or category == "":
        return DEFAULT_CATEGORY
    category = str(category).strip().lower()
    if category not in CATEGORIES:
        raise ValidationError(f"Unknown category: {category}")
    return category


class InventoryService:
    def __init__(self, repo):
        self.repo = repo

    def list_products(self) -> list[Product]:
        return self.repo.list_products()

    def list_categories(self) -> list[str]:
        return self.repo.list_categories()

    def low_stock(self, threshold: int = 5) -> list[Product]:
        return self.repo.list_low_stock(int(threshold))

    def get_product(self, product_id: str) -> Product:
        p = self.repo.get_product(product_id)
        if not p:
            raise NotFoundError("Product not found.")
        return p

    def create_product(
        self,
        name: str,
        quantity: int,
        purchase_price: float,
        selling_price: float,
        category: Optional[str] = None,
    ) -> Product:
        name = _clean_name(name)
        quantity = _clean_quantity(quantity)
        purchase = _clean_price(purchase_price)
        selling = _clean_price(selling_price)
        category = _clean_category(category)

        product = self.repo.create_product(name, quantity, purchase, selling, category)
        log.info("product_created product_id=%s category=%s quantity=%s", product.id, category, quantity)
        return product

    def update_product(self, product_id: str, **fields) -> Product:
        cleaners = {
            "name": _clean_name,
            "quantity": _clean_quantity,
            "purchase_price": _clean_price,
            "selling_price": _clean_price,
            "category": _clean_category,
        }
        unknown = set(fields) - set(cleaners)
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        cleaned = {k: cleaners[k](v) for k, v in fields.items()}
        updated = self.repo.update_product(product_id, cleaned)
        if not updated:
            raise NotFoundError("Product not found.")
        log.info("product_updated product_id=%s fields=%s", product_id, ",".join(sorted(cleaned)))
        return updated

    def delete_product(self, product_id: str) -> None:
        # Sales keep their product_id; nothing cascades.
        removed = self.repo.delete_product(product_id)
        if not removed:
            raise NotFoundError("Product not found.")
        log.info("product_deleted product_id=%s", product_id)
