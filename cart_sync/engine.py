"""
Cart Engine

Owns the live cart for one browsing session:
1. Hydrates the anonymous cart from local storage, refreshing stale
   product snapshots
2. Dispatches mutations to the local or remote backend
3. Merges the anonymous cart into the account cart on login
4. Applies and removes coupons
5. Computes totals on demand

Public operations never raise; failures are published as events and
reported through the returned OperationResult.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Union

from pydantic import ValidationError

from .backends import CartBackend, LocalCartBackend, RemoteCartBackend
from .client import CartServiceClient
from .config import Settings, get_settings
from .events import (
    CartCleared,
    CartEvent,
    CartRevalidated,
    CartSynced,
    CouponApplied,
    CouponCleared,
    CouponRejected,
    EventBus,
    EventHandler,
    ItemAdded,
    ItemQuantityUpdated,
    ItemRemoved,
    ItemsPruned,
    ItemSyncFailed,
    OperationFailed,
    PricesUpdated,
)
from .exceptions import CartBusyError, CartServiceError, CartSyncError, StorageError
from .models import Cart, CartItem, Coupon, ProductSnapshot, ServerCart, utcnow
from .pricing import CartTotals, calculate_totals, exceeds_stock, get_discounted_price
from .state import CartMode, CartModeMachine
from .storage import JsonFileCartStore, LocalCartStore

logger = logging.getLogger(__name__)

DEFAULT_FRESHNESS_WINDOW = timedelta(hours=1)


@dataclass
class OperationResult:
    """Outcome of a public engine operation"""
    success: bool
    event: Optional[CartEvent] = None
    error: Optional[str] = None


class CartEngine:
    """
    Cart state and synchronization engine.

    Usage:
        engine = CartEngine.from_settings(sink=LoggingNotificationSink())
        await engine.initialize()

        await engine.add_item(product, quantity=2)
        await engine.apply_coupon("SAVE50")
        await engine.login(access_token)

        totals = engine.get_cart_totals()
        await engine.close()
    """

    def __init__(
        self,
        client: CartServiceClient,
        store: LocalCartStore,
        events: Optional[EventBus] = None,
        sink: Optional[EventHandler] = None,
        clock: Callable[[], datetime] = utcnow,
        freshness_window: timedelta = DEFAULT_FRESHNESS_WINDOW,
    ):
        self.client = client
        self.store = store
        self.events = events or EventBus()
        if sink is not None:
            self.events.subscribe(sink)
        self.freshness_window = freshness_window

        self._clock = clock
        self._modes = CartModeMachine()
        self._local = LocalCartBackend(store, clock=clock)
        self._backend: Optional[CartBackend] = None
        self._applied_coupon: Optional[Coupon] = None
        self._pending = 0
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        sink: Optional[EventHandler] = None,
    ) -> "CartEngine":
        """Build an engine backed by the JSON file store and the HTTP client"""
        settings = settings or get_settings()
        return cls(
            client=CartServiceClient.from_settings(settings),
            store=JsonFileCartStore(
                settings.storage_dir,
                cart_key=settings.cart_storage_key,
                coupon_key=settings.coupon_storage_key,
            ),
            sink=sink,
            freshness_window=timedelta(seconds=settings.freshness_window_seconds),
        )

    async def close(self) -> None:
        await self.client.close()
        await self.store.close()

    # ==================== State ====================

    @property
    def mode(self) -> CartMode:
        return self._modes.mode

    @property
    def is_ready(self) -> bool:
        return self._modes.is_ready

    @property
    def is_loading(self) -> bool:
        return self._pending > 0

    @property
    def applied_coupon(self) -> Optional[Coupon]:
        return self._applied_coupon

    @property
    def cart(self) -> Optional[Cart]:
        """The live cart, or None until storage has been consulted"""
        if not self._modes.is_ready:
            return None
        if self._modes.is_authenticated:
            return self._backend.cart if self._backend else None
        return self._local.cart

    def _live_items(self) -> list[CartItem]:
        cart = self.cart
        return list(cart.items) if cart else []

    @asynccontextmanager
    async def _loading(self):
        self._pending += 1
        try:
            yield
        finally:
            self._pending -= 1

    def _emit(self, event: CartEvent) -> CartEvent:
        self.events.publish(event)
        return event

    def _fail(self, operation: str, error: Union[str, Exception]) -> OperationResult:
        message = str(error)
        event = self._emit(OperationFailed(operation=operation, error=message))
        return OperationResult(success=False, event=event, error=message)

    def _succeed(self, event: CartEvent) -> OperationResult:
        self._emit(event)
        if self._backend is not None and self._backend.is_remote:
            self._emit(CartRevalidated())
        return OperationResult(success=True, event=event)

    # ==================== Lifecycle ====================

    async def initialize(self, access_token: Optional[str] = None) -> OperationResult:
        """
        Consult storage and pick the live cart.

        With an access token and a reachable account cart the engine goes
        straight to AUTHENTICATED, unless anonymous items are waiting, in
        which case they are hydrated and merged first. Otherwise the
        anonymous cart is hydrated from local storage.
        """
        async with self._lock:
            if self._modes.is_ready:
                return OperationResult(success=True)

            async with self._loading():
                try:
                    await self.store.open()
                    stored = await self.store.load_cart()
                except StorageError as e:
                    logger.error(f"Error loading stored cart: {e}")
                    return self._fail("initialize", e)

                server_cart = None
                if access_token:
                    self.client.set_access_token(access_token)
                    server_cart = await self._fetch_server_cart()
                    if server_cart is not None and (stored is None or stored.is_empty):
                        await self._discard_local_coupon()
                        self._enter_authenticated(server_cart)
                        return OperationResult(success=True)
                    if server_cart is None:
                        logger.warning("Account cart unavailable, using anonymous cart")

                try:
                    await self._hydrate(stored)
                except StorageError as e:
                    logger.error(f"Error hydrating cart: {e}")
                    return self._fail("initialize", e)

                if server_cart is not None:
                    if not self._local.cart.is_empty:
                        return await self._sync()
                    self._enter_authenticated(server_cart)

        return OperationResult(success=True)

    async def login(self, access_token: str) -> OperationResult:
        """
        Switch to the account cart for a newly authenticated identity.

        A non-empty anonymous cart is merged into the account cart first.
        Calling this again once authenticated does nothing.
        """
        if not self._modes.is_ready:
            return await self.initialize(access_token)

        async with self._lock:
            if not self._modes.is_anonymous:
                return OperationResult(success=True)

            self.client.set_access_token(access_token)
            if self._local.cart is not None and not self._local.cart.is_empty:
                return await self._sync()

            async with self._loading():
                server_cart = await self._fetch_server_cart()
                if server_cart is None:
                    return self._fail("sync", "Could not load your account cart")

                await self._discard_local_coupon()
                self._enter_authenticated(server_cart)
                return OperationResult(success=True)

    async def _fetch_server_cart(self) -> Optional[ServerCart]:
        try:
            return await self.client.get_cart()
        except CartServiceError as e:
            logger.error(f"Error loading account cart: {e}")
            return None

    async def _discard_local_coupon(self) -> None:
        """An anonymous coupon never follows the user into an account cart"""
        try:
            await self.store.clear_coupon()
        except StorageError as e:
            logger.error(f"Error clearing stored coupon: {e}")

    def _enter_authenticated(self, server_cart: Optional[ServerCart]) -> None:
        self._backend = RemoteCartBackend(self.client, server_cart)
        self._applied_coupon = server_cart.coupon if server_cart else None
        self._modes.transition(CartMode.AUTHENTICATED)

    async def _hydrate(self, stored: Optional[Cart]) -> None:
        coupon = await self.store.load_coupon()

        if stored is None:
            await self._local.replace(Cart.empty(self._clock()))
        elif not stored.is_empty and self._is_stale(stored):
            await self._refresh_snapshots(stored)
        else:
            self._local.adopt(stored)

        self._applied_coupon = coupon
        self._backend = self._local
        self._modes.transition(CartMode.ANONYMOUS)

    def _is_stale(self, cart: Cart) -> bool:
        return self._clock() - cart.last_updated > self.freshness_window

    # ==================== Snapshot refresh ====================

    async def _refresh_snapshots(self, stored: Cart) -> Cart:
        """
        Re-read every product in a stale cart.

        Items whose product can't be fetched keep their old snapshot;
        items whose product is now inactive are dropped.
        """
        logger.info(f"Refreshing {len(stored.items)} product snapshot(s) in stale cart")
        snapshots = await asyncio.gather(
            *(self._fetch_snapshot(item.product_id) for item in stored.items)
        )

        now = self._clock()
        kept: list[CartItem] = []
        dropped: list[int] = []
        repriced: list[int] = []

        for item, snapshot in zip(stored.items, snapshots):
            if snapshot is None:
                kept.append(item)
                continue
            if not snapshot.is_active:
                dropped.append(item.product_id)
                continue
            if get_discounted_price(item.product, now) != get_discounted_price(snapshot, now):
                repriced.append(item.product_id)
            kept.append(item.model_copy(update={"product": snapshot}))

        cart = Cart(items=kept, last_updated=now)
        try:
            await self._local.replace(cart)
        except StorageError as e:
            logger.error(f"Error saving refreshed cart: {e}")
            self._local.adopt(cart)

        if dropped:
            self._emit(ItemsPruned(product_ids=dropped))
        if repriced:
            self._emit(PricesUpdated(product_ids=repriced))
        return cart

    async def _fetch_snapshot(self, product_id: int) -> Optional[ProductSnapshot]:
        try:
            return await self.client.get_product(product_id)
        except CartServiceError as e:
            logger.warning(f"Error refreshing product {product_id}, keeping stored snapshot: {e}")
            return None

    # ==================== Merge on login ====================

    async def _sync(self) -> OperationResult:
        """
        Move anonymous items into the account cart, one call per item.

        Must be called with the mutation lock held. Item failures do not
        stop the merge, and a coupon that can't be re-applied is dropped,
        on the account cart too, without touching migrated items. With no
        anonymous coupon the account cart's own coupon stays in effect.
        """
        self._modes.transition(CartMode.SYNCING)
        local_cart = self._local.cart
        local_coupon = self._applied_coupon
        migrated: list[int] = []
        failed: list[int] = []
        server_cart: Optional[ServerCart] = None
        coupon: Optional[Coupon] = None
        coupon_reapplied: Optional[bool] = None

        async with self._loading():
            try:
                for item in local_cart.items:
                    try:
                        server_cart = await self.client.add_item(item.product_id, item.quantity)
                        migrated.append(item.product_id)
                    except CartServiceError as e:
                        logger.error(f"Error syncing product {item.product_id}: {e}")
                        failed.append(item.product_id)
                        self._emit(ItemSyncFailed(product_id=item.product_id, error=str(e)))

                refreshed = await self._fetch_server_cart()
                if refreshed is not None:
                    server_cart = refreshed

                if local_coupon is not None:
                    items = server_cart.items if server_cart is not None else local_cart.items
                    subtotal = calculate_totals(items, now=self._clock()).discounted_subtotal
                    try:
                        application = await self.client.apply_coupon(local_coupon.code, subtotal)
                        coupon = application.to_coupon(local_coupon.code)
                        coupon_reapplied = True
                        refreshed = await self._fetch_server_cart()
                        if refreshed is not None:
                            server_cart = refreshed
                    except CartServiceError as e:
                        logger.error(f"Error syncing coupon {local_coupon.code}: {e}")
                        coupon_reapplied = False
                        self._emit(CouponRejected(code=local_coupon.code, error=str(e)))
                        try:
                            server_cart = await self.client.remove_coupon()
                        except CartServiceError as de:
                            logger.error(f"Error detaching coupon after failed sync: {de}")
                elif server_cart is not None:
                    coupon = server_cart.coupon
            finally:
                empty = Cart.empty(self._clock())
                try:
                    await self.store.save_cart(empty)
                    await self.store.clear_coupon()
                except StorageError as e:
                    logger.error(f"Error clearing local cart after sync: {e}")
                self._local.adopt(empty)

                self._backend = RemoteCartBackend(self.client, server_cart)
                self._applied_coupon = coupon
                self._modes.transition(CartMode.AUTHENTICATED)

        logger.info(f"Cart synced: {len(migrated)} migrated, {len(failed)} failed")
        event = CartSynced(migrated=migrated, failed=failed, coupon_reapplied=coupon_reapplied)
        self._emit(event)
        self._emit(CartRevalidated())
        return OperationResult(success=not failed, event=event)

    # ==================== Mutations ====================

    async def _mutate(self, operation: str, action) -> OperationResult:
        try:
            self._modes.require_mutable()
        except CartBusyError as e:
            return self._fail(operation, e)

        async with self._lock:
            async with self._loading():
                try:
                    # Mode may have changed while waiting for the lock
                    self._modes.require_mutable()
                    event = await action(self._backend)
                except CartSyncError as e:
                    logger.error(f"Error in {operation}: {e}")
                    return self._fail(operation, e)
                return self._succeed(event)

    async def add_item(
        self,
        product: Union[ProductSnapshot, dict],
        quantity: int = 1,
    ) -> OperationResult:
        """
        Add `quantity` of a product, summing into an existing row.

        Stock is not enforced here; the account cart service and the
        purchase-quantity controls own that check.
        """
        if quantity < 1:
            return self._fail("add_item", "Quantity must be at least 1")
        if isinstance(product, dict):
            try:
                product = ProductSnapshot.model_validate(product)
            except ValidationError as e:
                return self._fail("add_item", f"Invalid product: {e}")

        async def action(backend: CartBackend) -> CartEvent:
            existing = backend.cart.find_item(product.id) if backend.cart else None
            resulting = quantity + (existing.quantity if existing else 0)
            if exceeds_stock(product, resulting):
                logger.warning(
                    f"Product {product.id} quantity {resulting} exceeds stock {product.stock}"
                )
            await backend.add_item(product, quantity)
            return ItemAdded(product_id=product.id, quantity=quantity, product_name=product.name)

        return await self._mutate("add_item", action)

    async def update_item_quantity(self, item_id: int, quantity: int) -> OperationResult:
        """
        Set the absolute quantity of a row.

        `item_id` is the product id for the anonymous cart and the
        service-assigned row id for the account cart. Quantities below 1
        are ignored; use remove_item.
        """
        if quantity < 1:
            return OperationResult(success=False, error="Quantity must be at least 1")

        async def action(backend: CartBackend) -> CartEvent:
            await backend.update_item_quantity(item_id, quantity)
            return ItemQuantityUpdated(item_id=item_id, quantity=quantity)

        return await self._mutate("update_item_quantity", action)

    async def remove_item(self, item_id: int) -> OperationResult:
        """Remove a row; removing a missing row is a no-op"""

        async def action(backend: CartBackend) -> CartEvent:
            await backend.remove_item(item_id)
            return ItemRemoved(item_id=item_id)

        return await self._mutate("remove_item", action)

    async def clear_cart(self) -> OperationResult:
        """Remove every row and any applied coupon"""

        async def action(backend: CartBackend) -> CartEvent:
            await backend.clear()
            had_coupon = self._applied_coupon is not None
            self._applied_coupon = None
            return CartCleared(coupon_cleared=had_coupon)

        return await self._mutate("clear_cart", action)

    async def remove_inactive_products(self) -> OperationResult:
        """Drop rows whose product is no longer active from the live cart"""
        inactive = [item for item in self._live_items() if not item.product.is_active]
        if not inactive:
            return OperationResult(success=True)

        async def action(backend: CartBackend) -> CartEvent:
            await backend.remove_items(inactive)
            return ItemsPruned(product_ids=[item.product_id for item in inactive])

        return await self._mutate("remove_inactive_products", action)

    # ==================== Coupons ====================

    async def apply_coupon(self, code: str, subtotal: Optional[float] = None) -> OperationResult:
        """
        Validate and apply a coupon against `subtotal`.

        `subtotal` defaults to the current discounted subtotal. Any failure
        leaves no coupon applied, including one that was active before.
        """
        code = (code or "").strip()
        if not code:
            return self._fail("apply_coupon", "Enter a coupon code")

        try:
            self._modes.require_mutable()
        except CartBusyError as e:
            return self._fail("apply_coupon", e)

        async with self._lock:
            async with self._loading():
                backend = self._backend
                if subtotal is None:
                    subtotal = self.get_cart_totals().discounted_subtotal

                try:
                    await self.client.validate_coupon(code)
                    application = await self.client.apply_coupon(code, subtotal)
                    coupon = application.to_coupon(code)
                    await backend.persist_coupon(coupon)
                except CartSyncError as e:
                    logger.error(f"Error applying coupon {code}: {e}")
                    self._applied_coupon = None
                    try:
                        await backend.discard_coupon()
                    except CartSyncError as de:
                        logger.error(f"Error discarding coupon: {de}")
                    event = self._emit(CouponRejected(code=code, error=str(e)))
                    return OperationResult(success=False, event=event, error=str(e))

                self._applied_coupon = coupon
                if backend.is_remote:
                    await self._revalidate()
                return OperationResult(success=True, event=self._emit(CouponApplied(coupon=coupon)))

    async def remove_coupon(self) -> OperationResult:
        """Clear the applied coupon"""
        try:
            self._modes.require_mutable()
        except CartBusyError as e:
            return self._fail("remove_coupon", e)

        async with self._lock:
            backend = self._backend
            previous = self._applied_coupon
            self._applied_coupon = None
            try:
                await backend.discard_coupon()
            except CartSyncError as e:
                logger.error(f"Error discarding coupon: {e}")
                self._applied_coupon = previous
                return self._fail("remove_coupon", e)

            if backend.is_remote:
                await self._revalidate()
            event = self._emit(CouponCleared(code=previous.code if previous else None))
            return OperationResult(success=True, event=event)

    async def _revalidate(self) -> None:
        """Re-read the account cart and tell dependent views"""
        try:
            await self._backend.load()
        except CartServiceError as e:
            logger.warning(f"Error revalidating account cart: {e}")
        self._emit(CartRevalidated())

    # ==================== Pricing ====================

    def get_cart_totals(self) -> CartTotals:
        return calculate_totals(self._live_items(), self._applied_coupon, now=self._clock())

    def get_discounted_price(self, product: ProductSnapshot) -> float:
        return get_discounted_price(product, now=self._clock())
