"""Coupon models for mock backend"""

from datetime import datetime
from enum import Enum
from typing import Optional, Union

from pydantic import Field

from .common import ApiModel


class CouponType(str, Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"


class Coupon(ApiModel):
    """Coupon definition"""
    id: int
    code: str
    discount_type: CouponType
    discount_value: float = Field(gt=0)
    min_purchase: float = 0.0
    max_discount: Optional[float] = None
    is_active: bool = True
    expires_at: Optional[datetime] = None


class AppliedCoupon(ApiModel):
    """Coupon computed against a subtotal"""
    coupon_id: Union[int, str]
    code: str
    discount_value: float

    def to_cart_coupon(self) -> "CartCoupon":
        return CartCoupon(id=self.coupon_id, code=self.code, discount_value=self.discount_value)


class CartCoupon(ApiModel):
    """Coupon attached to a cart"""
    id: Union[int, str]
    code: str
    discount_value: float


class ValidateCouponRequest(ApiModel):
    code: str


class ApplyCouponRequest(ApiModel):
    code: str
    subtotal: float = Field(ge=0)
