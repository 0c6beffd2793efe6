"""
Cart Totals

Pure pricing helpers. Nothing here touches cart state; totals are
recomputed from the item list on every call.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional

from .models import CartItem, Coupon, DiscountType, ProductSnapshot, utcnow

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

LOW_STOCK_THRESHOLD = 10


class StockStatus(str, Enum):
    """Stock level of a product snapshot"""
    OUT_OF_STOCK = "out_of_stock"
    LOW_STOCK = "low_stock"
    IN_STOCK = "in_stock"


@dataclass(frozen=True)
class CartTotals:
    """Derived cart totals"""
    item_count: int = 0
    product_count: int = 0
    original_subtotal: float = 0.0
    discounted_subtotal: float = 0.0
    product_discounts: float = 0.0
    coupon_discount: float = 0.0
    total: float = 0.0

    def to_dict(self) -> dict:
        return {
            "itemCount": self.item_count,
            "productCount": self.product_count,
            "originalSubtotal": self.original_subtotal,
            "discountedSubtotal": self.discounted_subtotal,
            "productDiscounts": self.product_discounts,
            "couponDiscount": self.coupon_discount,
            "total": self.total,
        }


def has_active_discount(product: ProductSnapshot, now: Optional[datetime] = None) -> bool:
    """
    Whether the product's discount applies at `now`.

    A missing start date means the window is open at the start; a missing
    end date means the window closed at the epoch.
    """
    if not product.discount_type or product.discount_type == DiscountType.NONE:
        return False
    if not product.discount_value:
        return False

    now = now or utcnow()
    start = product.discount_start_date or EPOCH
    end = product.discount_end_date or EPOCH
    return start <= now <= end


def get_discounted_price(product: ProductSnapshot, now: Optional[datetime] = None) -> float:
    """Effective unit price of a product at `now`"""
    if not has_active_discount(product, now):
        return product.selling_price

    if product.discount_type == DiscountType.FIXED:
        return product.selling_price - product.discount_value
    return product.selling_price * (1 - product.discount_value / 100)


def active_items(items: Iterable[CartItem]) -> list[CartItem]:
    """Items whose product is still active"""
    return [item for item in items if item.product.is_active]


def calculate_totals(
    items: Iterable[CartItem],
    coupon: Optional[Coupon] = None,
    now: Optional[datetime] = None,
) -> CartTotals:
    """
    Compute cart totals.

    Inactive products are left out of every figure but are not removed
    from the item list. The coupon discount is capped at the discounted
    subtotal.
    """
    now = now or utcnow()
    counted = active_items(items)

    item_count = sum(item.quantity for item in counted)
    original_subtotal = sum(
        (item.product.selling_price * item.quantity for item in counted), 0.0
    )
    discounted_subtotal = sum(
        (get_discounted_price(item.product, now) * item.quantity for item in counted), 0.0
    )

    coupon_discount = 0.0
    if coupon is not None:
        coupon_discount = max(0.0, min(coupon.discount_value, discounted_subtotal))

    return CartTotals(
        item_count=item_count,
        product_count=len(counted),
        original_subtotal=original_subtotal,
        discounted_subtotal=discounted_subtotal,
        product_discounts=original_subtotal - discounted_subtotal,
        coupon_discount=coupon_discount,
        total=discounted_subtotal - coupon_discount,
    )


def stock_status(product: ProductSnapshot) -> StockStatus:
    stock = product.stock or 0
    if stock == 0:
        return StockStatus.OUT_OF_STOCK
    if stock < LOW_STOCK_THRESHOLD:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


def exceeds_stock(product: ProductSnapshot, quantity: int) -> bool:
    """True when `quantity` is more than the snapshot says is available"""
    return quantity > (product.stock or 0)
