# Mock Backend Models

from .common import ApiModel, ApiResponse, envelope
from .product import Product, ProductCategory
from .coupon import (
    Coupon,
    CouponType,
    AppliedCoupon,
    CartCoupon,
    ValidateCouponRequest,
    ApplyCouponRequest,
)
from .cart import Cart, CartItem, AddToCartRequest, UpdateCartItemRequest

__all__ = [
    "ApiModel",
    "ApiResponse",
    "envelope",
    "Product",
    "ProductCategory",
    "Coupon",
    "CouponType",
    "AppliedCoupon",
    "CartCoupon",
    "ValidateCouponRequest",
    "ApplyCouponRequest",
    "Cart",
    "CartItem",
    "AddToCartRequest",
    "UpdateCartItemRequest",
]
