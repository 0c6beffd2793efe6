"""Coupon API routes for mock backend"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends

from ..models.coupon import ApplyCouponRequest, ValidateCouponRequest
from ..models.common import ApiResponse, envelope
from ..database.carts import cart_db
from ..database.coupons import coupon_db, CouponError
from ..security.auth import optional_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/coupons", tags=["Coupons"])


@router.post("/validate", response_model=ApiResponse)
async def validate_coupon(request: ValidateCouponRequest):
    """Check that a coupon exists, is active and has not expired"""
    try:
        coupon = coupon_db.validate(request.code)
    except CouponError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return envelope({"code": coupon.code}, message="Coupon is valid")


@router.post("/apply", response_model=ApiResponse)
async def apply_coupon(
    request: ApplyCouponRequest,
    user_id: Optional[str] = Depends(optional_user),
):
    """
    Compute a coupon's discount against the given subtotal.

    For authenticated callers the coupon is also attached to their cart.
    """
    try:
        applied = coupon_db.apply(request.code, request.subtotal)
    except CouponError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    if user_id:
        cart_db.attach_coupon(user_id, applied)
        logger.info(f"Coupon {applied.code} attached to cart of {user_id}")

    return envelope(applied, message="Coupon applied")
