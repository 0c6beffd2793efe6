# Database modules

from .products import product_db, ProductDatabase
from .carts import cart_db, CartDatabase
from .coupons import coupon_db, CouponDatabase, CouponError

__all__ = [
    "product_db",
    "ProductDatabase",
    "cart_db",
    "CartDatabase",
    "coupon_db",
    "CouponDatabase",
    "CouponError",
]
