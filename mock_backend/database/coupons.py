"""Coupon storage for mock backend"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from ..models.coupon import AppliedCoupon, Coupon, CouponType


def _seed_coupons() -> dict[str, Coupon]:
    now = datetime.now(timezone.utc)
    coupons = [
        Coupon(id=1, code="SAVE50", discount_type=CouponType.FIXED, discount_value=50),
        Coupon(id=2, code="GOOD10", discount_type=CouponType.PERCENTAGE, discount_value=10),
        Coupon(
            id=3,
            code="WELCOME20",
            discount_type=CouponType.PERCENTAGE,
            discount_value=20,
            min_purchase=500,
            max_discount=200,
        ),
        Coupon(
            id=4,
            code="EXPIRED5",
            discount_type=CouponType.FIXED,
            discount_value=5,
            expires_at=now - timedelta(days=1),
        ),
        Coupon(
            id=5,
            code="PAUSED15",
            discount_type=CouponType.PERCENTAGE,
            discount_value=15,
            is_active=False,
        ),
    ]
    return {c.code: c for c in coupons}


class CouponError(Exception):
    """Coupon cannot be used"""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class CouponDatabase:
    """In-memory coupon definitions"""

    def __init__(self):
        self.coupons: dict[str, Coupon] = _seed_coupons()

    def reset(self) -> None:
        self.coupons = _seed_coupons()

    def get_coupon(self, code: str) -> Optional[Coupon]:
        """Look up a coupon by code, case-insensitively"""
        return self.coupons.get(code.strip().upper())

    def upsert_coupon(self, coupon: Coupon) -> Coupon:
        self.coupons[coupon.code.upper()] = coupon
        return coupon

    def validate(self, code: str) -> Coupon:
        """Return the coupon or raise CouponError"""
        coupon = self.get_coupon(code)
        if not coupon:
            raise CouponError("Invalid coupon code", status_code=404)
        if not coupon.is_active:
            raise CouponError("Coupon is not active")
        if coupon.expires_at and coupon.expires_at < datetime.now(timezone.utc):
            raise CouponError("Coupon has expired")
        return coupon

    def apply(self, code: str, subtotal: float) -> AppliedCoupon:
        """Compute the discount of `code` against `subtotal`"""
        coupon = self.validate(code)
        if subtotal < coupon.min_purchase:
            raise CouponError(f"Minimum purchase of {coupon.min_purchase:g} required")

        if coupon.discount_type == CouponType.FIXED:
            discount = coupon.discount_value
        else:
            discount = subtotal * coupon.discount_value / 100
        if coupon.max_discount is not None:
            discount = min(discount, coupon.max_discount)
        discount = round(min(discount, subtotal), 2)

        return AppliedCoupon(coupon_id=coupon.id, code=coupon.code, discount_value=discount)


# Singleton instance
coupon_db = CouponDatabase()
