"""
Cart Events

Typed events published by the cart engine, and the notification sinks
that render them for the user.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Union

from .models import Coupon

logger = logging.getLogger(__name__)


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


class CartEvent:
    """Base class of engine events"""

    level: NotificationLevel = NotificationLevel.INFO

    @property
    def name(self) -> str:
        return type(self).__name__

    @property
    def title(self) -> str:
        return self.name

    @property
    def description(self) -> Optional[str]:
        return None


@dataclass
class ItemAdded(CartEvent):
    product_id: int
    quantity: int
    product_name: Optional[str] = None

    level = NotificationLevel.SUCCESS

    @property
    def title(self) -> str:
        return "Item added to cart"

    @property
    def description(self) -> Optional[str]:
        return f"{self.product_name or 'Item'} has been added to your cart"


@dataclass
class ItemQuantityUpdated(CartEvent):
    item_id: int
    quantity: int

    level = NotificationLevel.SUCCESS

    @property
    def title(self) -> str:
        return "Quantity updated"


@dataclass
class ItemRemoved(CartEvent):
    item_id: int

    level = NotificationLevel.SUCCESS

    @property
    def title(self) -> str:
        return "Item removed from cart"


@dataclass
class CartCleared(CartEvent):
    coupon_cleared: bool = False

    level = NotificationLevel.SUCCESS

    @property
    def title(self) -> str:
        return "Cart cleared"


@dataclass
class CartSynced(CartEvent):
    """Merge of the anonymous cart into the account cart finished"""
    migrated: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)
    coupon_reapplied: Optional[bool] = None

    @property
    def level(self) -> NotificationLevel:
        return NotificationLevel.ERROR if self.failed and not self.migrated else NotificationLevel.SUCCESS

    @property
    def title(self) -> str:
        if self.failed and not self.migrated:
            return "Failed to sync cart"
        return "Cart synced successfully"

    @property
    def description(self) -> Optional[str]:
        if self.failed:
            return f"{len(self.failed)} item(s) could not be moved to your account"
        return "Your cart has been synced with your account"


@dataclass
class ItemSyncFailed(CartEvent):
    product_id: int
    error: str

    level = NotificationLevel.ERROR

    @property
    def title(self) -> str:
        return "Failed to sync item"

    @property
    def description(self) -> Optional[str]:
        return self.error


@dataclass
class CouponApplied(CartEvent):
    coupon: Coupon

    level = NotificationLevel.SUCCESS

    @property
    def title(self) -> str:
        return "Coupon applied successfully"


@dataclass
class CouponCleared(CartEvent):
    code: Optional[str] = None
    reason: str = "removed"

    level = NotificationLevel.SUCCESS

    @property
    def title(self) -> str:
        return "Coupon removed"


@dataclass
class CouponRejected(CartEvent):
    code: str
    error: str

    level = NotificationLevel.ERROR

    @property
    def title(self) -> str:
        return self.error or "Invalid coupon code"


@dataclass
class ItemsPruned(CartEvent):
    """Inactive products were dropped from the cart"""
    product_ids: list[int] = field(default_factory=list)

    level = NotificationLevel.INFO

    @property
    def title(self) -> str:
        return "Cart updated"

    @property
    def description(self) -> Optional[str]:
        return f"{len(self.product_ids)} unavailable item(s) removed from your cart"


@dataclass
class PricesUpdated(CartEvent):
    product_ids: list[int] = field(default_factory=list)

    level = NotificationLevel.INFO

    @property
    def title(self) -> str:
        return "Cart prices updated"

    @property
    def description(self) -> Optional[str]:
        return f"{len(self.product_ids)} item(s) price has been updated"


@dataclass
class CartRevalidated(CartEvent):
    """Views depending on the server cart should re-read it"""
    level = NotificationLevel.INFO


@dataclass
class OperationFailed(CartEvent):
    operation: str
    error: str

    level = NotificationLevel.ERROR

    @property
    def title(self) -> str:
        return _FAILURE_TITLES.get(self.operation, "Something went wrong")

    @property
    def description(self) -> Optional[str]:
        return self.error or "Please try again later"


_FAILURE_TITLES = {
    "add_item": "Failed to add item",
    "update_item_quantity": "Failed to update quantity",
    "remove_item": "Failed to remove item",
    "clear_cart": "Failed to clear cart",
    "apply_coupon": "Failed to apply coupon",
    "remove_coupon": "Failed to remove coupon",
    "remove_inactive_products": "Failed to update cart",
    "sync": "Failed to sync cart",
    "initialize": "Failed to load cart",
}

# Events that are bookkeeping only and never shown to the user
SILENT_EVENTS = (CartRevalidated,)

EventHandler = Callable[[CartEvent], None]


class EventBus:
    """Synchronous publish/subscribe for cart events"""

    def __init__(self):
        self._handlers: list[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """Register a handler; returns a function that unsubscribes it"""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def publish(self, event: CartEvent) -> None:
        logger.debug(f"Event: {event.name}")
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception(f"Event handler failed for {event.name}")


@dataclass
class Notification:
    """User-facing message"""
    level: NotificationLevel
    title: str
    description: Optional[str] = None


class NotificationSink(ABC):
    """Renders cart events as notifications"""

    def __call__(self, event: CartEvent) -> None:
        if isinstance(event, SILENT_EVENTS):
            return
        self.notify(Notification(level=event.level, title=event.title, description=event.description))

    @abstractmethod
    def notify(self, notification: Notification) -> None:
        ...


class LoggingNotificationSink(NotificationSink):
    """Writes notifications to a logger"""

    _LEVELS = {
        NotificationLevel.SUCCESS: logging.INFO,
        NotificationLevel.INFO: logging.INFO,
        NotificationLevel.ERROR: logging.WARNING,
    }

    def __init__(self, target: Optional[Union[logging.Logger, str]] = None):
        if isinstance(target, logging.Logger):
            self._logger = target
        else:
            self._logger = logging.getLogger(target or "cart_sync.notifications")

    def notify(self, notification: Notification) -> None:
        message = notification.title
        if notification.description:
            message = f"{message}: {notification.description}"
        self._logger.log(self._LEVELS[notification.level], message)


class RecordingNotificationSink(NotificationSink):
    """Keeps notifications in memory"""

    def __init__(self):
        self.notifications: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)

    @property
    def titles(self) -> list[str]:
        return [n.title for n in self.notifications]

    def clear(self) -> None:
        self.notifications.clear()
