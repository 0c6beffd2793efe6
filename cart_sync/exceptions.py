"""Cart sync exceptions"""

from typing import Optional


class CartSyncError(Exception):
    """Base exception for cart sync errors"""
    pass


class CartServiceError(CartSyncError):
    """Failure talking to the remote cart service"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class CouponValidationError(CartServiceError):
    """Coupon rejected by the backend"""
    pass


class StorageError(CartSyncError):
    """Local cart storage could not be read or written"""
    pass


class InvalidTransitionError(CartSyncError):
    """Illegal cart mode transition"""
    pass


class CartBusyError(CartSyncError):
    """Cart cannot accept mutations in its current mode"""
    pass
