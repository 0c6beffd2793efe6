# Cart state & synchronization engine

from .engine import CartEngine, OperationResult
from .client import CartServiceClient
from .config import Settings, get_settings
from .models import (
    Cart,
    CartItem,
    Coupon,
    CouponApplication,
    DiscountType,
    ProductSnapshot,
    ServerCart,
)
from .pricing import CartTotals, calculate_totals, get_discounted_price
from .state import CartMode
from .storage import LocalCartStore, MemoryCartStore, JsonFileCartStore
from .events import (
    EventBus,
    LoggingNotificationSink,
    NotificationSink,
    RecordingNotificationSink,
)
from .exceptions import (
    CartSyncError,
    CartServiceError,
    CouponValidationError,
    StorageError,
)

__all__ = [
    "CartEngine",
    "OperationResult",
    "CartServiceClient",
    "Settings",
    "get_settings",
    "Cart",
    "CartItem",
    "Coupon",
    "CouponApplication",
    "DiscountType",
    "ProductSnapshot",
    "ServerCart",
    "CartTotals",
    "calculate_totals",
    "get_discounted_price",
    "CartMode",
    "LocalCartStore",
    "MemoryCartStore",
    "JsonFileCartStore",
    "EventBus",
    "LoggingNotificationSink",
    "NotificationSink",
    "RecordingNotificationSink",
    "CartSyncError",
    "CartServiceError",
    "CouponValidationError",
    "StorageError",
]
