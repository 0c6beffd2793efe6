"""Shared fixtures for cart sync tests"""

import unittest
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

import httpx

from cart_sync.client import CartServiceClient
from cart_sync.engine import CartEngine
from cart_sync.events import RecordingNotificationSink
from cart_sync.models import Cart, CartItem, ProductSnapshot
from cart_sync.storage import MemoryCartStore
from mock_backend.main import app
from mock_backend.database import cart_db, coupon_db, product_db

BASE_URL = "http://testserver/api"


class FixedClock:
    """Clock that only moves when told to"""

    def __init__(self, now: Optional[datetime] = None):
        self.now = now or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class BackendTransport(httpx.AsyncBaseTransport):
    """
    Routes requests to the in-process mock backend.

    Requests matching an entry of `failures` raise a connection error
    instead, and `on_request` is awaited before each forwarded request.
    """

    def __init__(self):
        self.inner = httpx.ASGITransport(app=app)
        self.failures: list[tuple[str, str]] = []
        self.requests: list[tuple[str, str]] = []
        self.on_request: Optional[Callable[[httpx.Request], Awaitable[None]]] = None

    def fail(self, method: str, path_fragment: str) -> None:
        self.failures.append((method, path_fragment))

    def requests_to(self, method: str, path_fragment: str) -> list[tuple[str, str]]:
        return [r for r in self.requests if r[0] == method and path_fragment in r[1]]

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path))
        for method, fragment in self.failures:
            if request.method == method and fragment in request.url.path:
                raise httpx.ConnectError("Connection refused", request=request)
        if self.on_request is not None:
            await self.on_request(request)
        return await self.inner.handle_async_request(request)

    async def aclose(self) -> None:
        await self.inner.aclose()


def make_product(product_id: int, price: float, **fields) -> ProductSnapshot:
    values = {
        "id": product_id,
        "name": f"Product {product_id}",
        "selling_price": price,
        "stock": 100,
        "is_active": True,
    }
    values.update(fields)
    return ProductSnapshot(**values)


def make_cart(items: list[tuple[ProductSnapshot, int]], last_updated: datetime) -> Cart:
    return Cart(
        items=[
            CartItem(product_id=product.id, quantity=quantity, product=product)
            for product, quantity in items
        ],
        last_updated=last_updated,
    )


def backend_product(product_id: int) -> ProductSnapshot:
    """Snapshot of a product as the mock backend currently has it"""
    product = product_db.get_product(product_id)
    return ProductSnapshot.model_validate(product.model_dump(by_alias=True))


class EngineTestCase(unittest.IsolatedAsyncioTestCase):
    """Engine wired to the mock backend with an in-memory local store"""

    async def asyncSetUp(self):
        product_db.reset()
        cart_db.reset()
        coupon_db.reset()

        self.transport = BackendTransport()
        self.client = CartServiceClient(BASE_URL, transport=self.transport)
        self.store = MemoryCartStore()
        self.clock = FixedClock()
        self.sink = RecordingNotificationSink()
        self.events = []
        self.engine = CartEngine(self.client, self.store, sink=self.sink, clock=self.clock)
        self.engine.events.subscribe(self.events.append)

    async def asyncTearDown(self):
        await self.engine.close()

    async def seed_local_cart(self, cart: Cart, coupon=None) -> None:
        await self.store.open()
        await self.store.save_cart(cart)
        if coupon is not None:
            await self.store.save_coupon(coupon)

    def events_of(self, event_type) -> list:
        return [e for e in self.events if isinstance(e, event_type)]

    def quantities(self) -> dict[int, int]:
        return {item.product_id: item.quantity for item in self.engine.cart.items}
