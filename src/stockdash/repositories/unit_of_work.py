from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from stockdash.domain.models import Sale


class UnitOfWork(Protocol):
    def __enter__(self) -> "UnitOfWork": ...
    def __exit__(self, exc_type, exc, tb) -> None: ...
    def record_sale(self, product_id: str, quantity: int, sale_time: Optional[datetime] = None) -> Optional[Sale]: ...


@dataclass
class RepositoryUnitOfWork:
    """Unit of Work adapter for transactional write use-cases.

    The repository already runs the stock decrement and the sale insert as a
    single conditional transaction. This class keeps services free of any
    knowledge about how that transaction is opened.
    """

    repo: object

    def __enter__(self) -> "RepositoryUnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None

    def record_sale(self, product_id: str, quantity: int, sale_time: Optional[datetime] = None) -> Optional[Sale]:
        return self.repo.record_sale(product_id, int(quantity), sale_time=sale_time)
