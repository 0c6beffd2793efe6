import logging
import unittest

from cart_sync.events import (
    CartRevalidated,
    CartSynced,
    EventBus,
    ItemAdded,
    LoggingNotificationSink,
    NotificationLevel,
    NotificationSink,
    OperationFailed,
    RecordingNotificationSink,
)


class EventBusTests(unittest.TestCase):
    def test_publish_reaches_subscribers(self):
        bus = EventBus()
        received = []
        bus.subscribe(received.append)

        bus.publish(ItemAdded(product_id=1, quantity=2))

        self.assertEqual(received, [ItemAdded(product_id=1, quantity=2)])

    def test_unsubscribe(self):
        bus = EventBus()
        received = []
        unsubscribe = bus.subscribe(received.append)
        unsubscribe()

        bus.publish(CartRevalidated())
        self.assertEqual(received, [])

    def test_failing_handler_does_not_stop_others(self):
        bus = EventBus()
        received = []

        def broken(event):
            raise RuntimeError("render failed")

        bus.subscribe(broken)
        bus.subscribe(received.append)

        with self.assertLogs("cart_sync.events", level="ERROR"):
            bus.publish(CartRevalidated())
        self.assertEqual(len(received), 1)


class NotificationSinkTests(unittest.TestCase):
    def test_recording_sink_renders_events(self):
        sink = RecordingNotificationSink()

        sink(ItemAdded(product_id=1, quantity=1, product_name="Green Tea"))
        sink(OperationFailed(operation="remove_item", error="timeout"))
        sink(CartRevalidated())

        self.assertEqual(sink.titles, ["Item added to cart", "Failed to remove item"])
        self.assertEqual(sink.notifications[0].description, "Green Tea has been added to your cart")
        self.assertEqual(sink.notifications[1].level, NotificationLevel.ERROR)

    def test_sync_with_only_failures_is_an_error(self):
        event = CartSynced(migrated=[], failed=[3])
        self.assertEqual(event.level, NotificationLevel.ERROR)
        self.assertEqual(CartSynced(migrated=[1], failed=[3]).title, "Cart synced successfully")

    def test_logging_sink(self):
        sink = LoggingNotificationSink("cart_sync.test_notifications")
        with self.assertLogs("cart_sync.test_notifications", level="WARNING") as logs:
            sink(OperationFailed(operation="clear_cart", error="Please try again later"))
        self.assertIn("Failed to clear cart: Please try again later", logs.output[0])

    def test_sink_must_implement_notify(self):
        with self.assertRaises(TypeError):
            NotificationSink()

    def test_logging_sink_accepts_logger(self):
        logger = logging.getLogger("cart_sync.custom")
        sink = LoggingNotificationSink(logger)
        with self.assertLogs("cart_sync.custom", level="INFO"):
            sink(ItemAdded(product_id=2, quantity=1))


if __name__ == "__main__":
    unittest.main()
