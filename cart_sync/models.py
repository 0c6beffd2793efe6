"""Cart data models

Field names are snake_case in Python and camelCase on the wire and in
local storage.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class DiscountType(str, Enum):
    """Product-level discount kind"""
    FIXED = "fixed"
    PERCENTAGE = "percentage"
    NONE = "none"


class ProductSnapshot(CamelModel):
    """Point-in-time copy of a product's commerce fields"""
    id: int
    name: Optional[str] = None
    selling_price: float = Field(ge=0)
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[float] = None
    discount_start_date: Optional[datetime] = None
    discount_end_date: Optional[datetime] = None
    stock: int = 0
    is_active: bool = True

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        frozen = True
        extra = "allow"

    @field_validator("discount_start_date", "discount_end_date")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_aware(value)


class CartItem(CamelModel):
    """One cart line. `id` is only set for rows owned by the remote service."""
    id: Optional[int] = None
    product_id: int
    quantity: int = Field(ge=1)
    product: ProductSnapshot

    @property
    def item_key(self) -> int:
        """Identifier used to address this row for update/remove"""
        return self.id if self.id is not None else self.product_id


class Cart(CamelModel):
    """Shopping cart contents"""
    items: list[CartItem] = []
    last_updated: datetime = Field(default_factory=utcnow)

    @field_validator("last_updated")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        return _as_aware(value)

    @classmethod
    def empty(cls, now: Optional[datetime] = None) -> "Cart":
        return cls(items=[], last_updated=now or utcnow())

    def find_item(self, product_id: int) -> Optional[CartItem]:
        return next(
            (item for item in self.items if item.product_id == product_id),
            None,
        )

    @property
    def is_empty(self) -> bool:
        return not self.items


class Coupon(CamelModel):
    """Coupon attached to a cart"""
    id: Union[int, str]
    code: str
    discount_value: float


class ServerCart(Cart):
    """Cart as returned by the remote cart service"""
    id: Optional[int] = None
    coupon: Optional[Coupon] = None


class CouponApplication(CamelModel):
    """Result of a coupon apply call"""
    coupon_id: Union[int, str]
    code: Optional[str] = None
    discount_value: float

    def to_coupon(self, code: str) -> Coupon:
        return Coupon(id=self.coupon_id, code=code, discount_value=self.discount_value)
