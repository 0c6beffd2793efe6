import unittest
from datetime import timedelta

from cart_sync.engine import CartEngine
from cart_sync.events import (
    CartCleared,
    ItemAdded,
    ItemQuantityUpdated,
    ItemRemoved,
    OperationFailed,
)
from cart_sync.exceptions import StorageError
from cart_sync.models import Coupon
from cart_sync.state import CartMode
from cart_sync.storage import MemoryCartStore
from tests.support import EngineTestCase, make_cart, make_product


class FailingStore(MemoryCartStore):
    """Store whose cart writes or deletes start failing on demand"""

    fail_saves = False
    fail_deletes = False

    async def _write(self, key, value):
        if self.fail_saves and key == self.cart_key:
            raise StorageError("Quota exceeded")
        await super()._write(key, value)

    async def _delete(self, key):
        if self.fail_deletes:
            raise StorageError("Storage is read-only")
        await super()._delete(key)


class AnonymousHydrationTests(EngineTestCase):
    async def test_cart_is_hidden_until_initialized(self):
        self.assertEqual(self.engine.mode, CartMode.UNINITIALIZED)
        self.assertIsNone(self.engine.cart)

        result = await self.engine.initialize()

        self.assertTrue(result.success)
        self.assertEqual(self.engine.mode, CartMode.ANONYMOUS)
        self.assertEqual(self.engine.cart.items, [])
        self.assertIsNotNone(await self.store.load_cart())

    async def test_hydrates_stored_cart_and_coupon(self):
        cart = make_cart([(make_product(1, 500), 2)], self.clock() - timedelta(minutes=5))
        await self.seed_local_cart(cart, Coupon(id=1, code="SAVE50", discount_value=50))

        await self.engine.initialize()

        self.assertEqual(self.quantities(), {1: 2})
        self.assertEqual(self.engine.applied_coupon.code, "SAVE50")
        self.assertAlmostEqual(self.engine.get_cart_totals().total, 950)

    async def test_initialize_twice_is_harmless(self):
        await self.engine.initialize()
        await self.engine.add_item(make_product(1, 10))

        await self.engine.initialize()

        self.assertEqual(self.quantities(), {1: 1})

    async def test_mutation_before_initialize_is_rejected(self):
        result = await self.engine.add_item(make_product(1, 10))

        self.assertFalse(result.success)
        self.assertIsInstance(result.event, OperationFailed)
        self.assertEqual(self.sink.titles, ["Failed to add item"])


class AnonymousMutationTests(EngineTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        await self.engine.initialize()

    async def test_repeated_adds_sum_into_one_row(self):
        product = make_product(5, 100)

        for quantity in (1, 2, 3):
            await self.engine.add_item(product, quantity)

        self.assertEqual(len(self.engine.cart.items), 1)
        self.assertEqual(self.quantities(), {5: 6})
        stored = await self.store.load_cart()
        self.assertEqual(stored.items[0].quantity, 6)
        self.assertEqual(len(self.events_of(ItemAdded)), 3)

    async def test_add_keeps_original_snapshot(self):
        await self.engine.add_item(make_product(5, 100))
        await self.engine.add_item(make_product(5, 140))

        self.assertEqual(self.engine.cart.items[0].product.selling_price, 100)

    async def test_add_accepts_product_dict(self):
        result = await self.engine.add_item({"id": 8, "sellingPrice": 75, "stock": 5}, 2)

        self.assertTrue(result.success)
        self.assertEqual(self.quantities(), {8: 2})

    async def test_add_beyond_stock_is_allowed(self):
        with self.assertLogs("cart_sync.engine", level="WARNING"):
            result = await self.engine.add_item(make_product(5, 100, stock=2), 3)

        self.assertTrue(result.success)
        self.assertEqual(self.quantities(), {5: 3})

    async def test_add_zero_quantity_fails(self):
        result = await self.engine.add_item(make_product(5, 100), 0)

        self.assertFalse(result.success)
        self.assertEqual(self.engine.cart.items, [])

    async def test_update_quantity(self):
        await self.engine.add_item(make_product(5, 100), 2)

        result = await self.engine.update_item_quantity(5, 7)

        self.assertTrue(result.success)
        self.assertEqual(self.quantities(), {5: 7})
        self.assertEqual(len(self.events_of(ItemQuantityUpdated)), 1)

    async def test_update_below_one_changes_nothing(self):
        await self.engine.add_item(make_product(5, 100), 2)
        before = self.engine.cart

        for quantity in (0, -3):
            result = await self.engine.update_item_quantity(5, quantity)
            self.assertFalse(result.success)

        self.assertIs(self.engine.cart, before)
        self.assertEqual(self.events_of(ItemQuantityUpdated), [])

    async def test_update_unknown_product_is_a_no_op(self):
        await self.engine.add_item(make_product(5, 100), 2)
        await self.engine.update_item_quantity(99, 4)
        self.assertEqual(self.quantities(), {5: 2})

    async def test_remove_is_idempotent(self):
        await self.engine.add_item(make_product(5, 100))
        await self.engine.add_item(make_product(6, 50))

        await self.engine.remove_item(5)
        once = self.quantities()
        result = await self.engine.remove_item(5)

        self.assertTrue(result.success)
        self.assertEqual(self.quantities(), once)
        self.assertEqual(once, {6: 1})
        self.assertEqual(len(self.events_of(ItemRemoved)), 2)

    async def test_clear_cart_drops_coupon(self):
        await self.engine.add_item(make_product(1, 500))
        await self.engine.apply_coupon("SAVE50")
        self.assertIsNotNone(self.engine.applied_coupon)

        result = await self.engine.clear_cart()

        self.assertTrue(result.success)
        self.assertTrue(result.event.coupon_cleared)
        self.assertEqual(self.engine.cart.items, [])
        self.assertIsNone(self.engine.applied_coupon)
        self.assertIsNone(await self.store.load_coupon())
        self.assertEqual(len(self.events_of(CartCleared)), 1)

    async def test_loading_flag_is_released(self):
        await self.engine.add_item(make_product(1, 10))
        self.assertFalse(self.engine.is_loading)

    async def test_get_discounted_price_uses_engine_clock(self):
        product = make_product(
            1, 100,
            discount_type="fixed",
            discount_value=15,
            discount_start_date=self.clock() - timedelta(hours=1),
            discount_end_date=self.clock() + timedelta(hours=1),
        )
        self.assertEqual(self.engine.get_discounted_price(product), 85)

        self.clock.advance(hours=2)
        self.assertEqual(self.engine.get_discounted_price(product), 100)


class StorageFailureTests(EngineTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.store = FailingStore()
        self.engine = CartEngine(self.client, self.store, sink=self.sink, clock=self.clock)
        self.engine.events.subscribe(self.events.append)
        await self.engine.initialize()

    async def test_failed_write_keeps_previous_cart(self):
        await self.engine.add_item(make_product(1, 10), 2)
        self.store.fail_saves = True

        result = await self.engine.add_item(make_product(1, 10), 5)

        self.assertFalse(result.success)
        self.assertEqual(result.error, "Quota exceeded")
        self.assertEqual(self.quantities(), {1: 2})
        self.assertEqual(self.sink.titles[-1], "Failed to add item")

    async def test_clear_keeps_cart_when_coupon_record_cannot_be_removed(self):
        await self.engine.add_item(make_product(1, 500))
        await self.engine.apply_coupon("SAVE50")
        self.store.fail_deletes = True

        result = await self.engine.clear_cart()

        self.assertFalse(result.success)
        self.assertEqual(result.error, "Storage is read-only")
        self.assertEqual(self.quantities(), {1: 1})
        self.assertEqual(len((await self.store.load_cart()).items), 1)
        self.assertEqual(self.engine.applied_coupon.code, "SAVE50")
        self.assertEqual((await self.store.load_coupon()).code, "SAVE50")
        self.assertEqual(self.engine.get_cart_totals().total, 450)
        self.assertEqual(self.sink.titles[-1], "Failed to clear cart")

    async def test_clear_restores_coupon_record_when_cart_write_fails(self):
        await self.engine.add_item(make_product(1, 500))
        await self.engine.apply_coupon("SAVE50")
        self.store.fail_saves = True

        result = await self.engine.clear_cart()

        self.assertFalse(result.success)
        self.assertEqual(self.quantities(), {1: 1})
        self.assertEqual(self.engine.applied_coupon.code, "SAVE50")
        self.assertEqual((await self.store.load_coupon()).code, "SAVE50")


if __name__ == "__main__":
    unittest.main()
