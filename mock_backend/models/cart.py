"""Cart models for mock backend"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from .common import ApiModel
from .coupon import CartCoupon
from .product import Product


class CartItem(ApiModel):
    """Row in a user's cart"""
    id: int
    product_id: int
    quantity: int = Field(gt=0)
    product: Product


class Cart(ApiModel):
    """A user's cart"""
    id: int
    user_id: str
    items: list[CartItem] = []
    coupon: Optional[CartCoupon] = None
    last_updated: datetime


class AddToCartRequest(ApiModel):
    """Request to add item to cart"""
    product_id: int
    quantity: int = Field(default=1, gt=0)


class UpdateCartItemRequest(ApiModel):
    """Request to set item quantity"""
    quantity: int = Field(gt=0)
