from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from stockdash.domain.errors import InsufficientStockError, NotFoundError, ValidationError
from stockdash.domain.models import Sale
from stockdash.repositories.contracts import InventoryRepository
from stockdash.repositories.unit_of_work import RepositoryUnitOfWork, UnitOfWork

log = logging.getLogger("stockdash.sales")

INSUFFICIENT_STOCK = "Insufficient stock"


class SalesService:
    def __init__(
        self,
        repo: InventoryRepository,
        uow_factory: Callable[[], UnitOfWork] | None = None,
    ):
        self.repo = repo
        self.uow_factory = uow_factory or (lambda: RepositoryUnitOfWork(repo))

    def record_sale(self, product_id: str, quantity: int, sale_time: Optional[datetime] = None) -> Sale:
        """Sell ``quantity`` units of a product.

        The stock check here only gives an early, friendly answer. The write
        itself is a conditional decrement, so a concurrent sale that empties
        the shelf first still ends in InsufficientStockError.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError("Quantity is required.")

        prod = self.repo.get_product(product_id)
        if not prod:
            raise NotFoundError("Product not found.")
        if quantity <= 0 or quantity > prod.quantity:
            log.info(
                "sale_rejected product_id=%s qty=%s available=%s", product_id, quantity, prod.quantity
            )
            raise InsufficientStockError(INSUFFICIENT_STOCK)

        with self.uow_factory() as uow:
            sale = uow.record_sale(product_id, quantity, sale_time=sale_time)
        if sale is None:
            log.warning("sale_lost_race product_id=%s qty=%s", product_id, quantity)
            raise InsufficientStockError(INSUFFICIENT_STOCK)

        log.info(
            "sale_recorded sale_id=%s product_id=%s qty=%s total=%.2f profit=%.2f",
            sale.id,
            product_id,
            quantity,
            sale.total_amount,
            sale.profit,
        )
        return sale

    def list_sales(self) -> list[Sale]:
        return self.repo.list_sales()

    def list_sales_since(self, days: int, now: Optional[datetime] = None) -> list[Sale]:
        now = now or datetime.now()
        return self.repo.list_sales_since(now - timedelta(days=int(days)))
