from __future__ import annotations

from datetime import datetime
from typing import Mapping, Optional, Protocol

from stockdash.domain.models import Product, Profile, Sale


class InventoryRepository(Protocol):
    def list_products(self) -> list[Product]: ...
    def get_product(self, product_id: str) -> Optional[Product]: ...
    def create_product(
        self,
        name: str,
        quantity: int,
        purchase_price: float,
        selling_price: float,
        category: str = ...,
    ) -> Product: ...
    def update_product(self, product_id: str, fields: Mapping[str, object]) -> Optional[Product]: ...
    def delete_product(self, product_id: str) -> bool: ...
    def list_categories(self) -> list[str]: ...
    def list_low_stock(self, threshold: int) -> list[Product]: ...
    def record_sale(self, product_id: str, quantity: int, sale_time: Optional[datetime] = None) -> Optional[Sale]: ...
    def list_sales(self) -> list[Sale]: ...
    def list_sales_since(self, since: datetime) -> list[Sale]: ...


class ProfileRepository(Protocol):
    def get_profile(self, user_id: str) -> Optional[Profile]: ...
    def get_profile_by_username(self, username: str, exclude_id: Optional[str] = None) -> Optional[Profile]: ...
    def create_profile(
        self,
        user_id: str,
        username: str,
        full_name: Optional[str],
        phone_number: Optional[str],
    ) -> Profile: ...
    def update_profile(self, user_id: str, fields: Mapping[str, object]) -> Optional[Profile]: ...
    def get_user_email(self, user_id: str) -> Optional[str]: ...
