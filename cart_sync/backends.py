"""
Cart Backends

The engine talks to whichever backend is live through one interface:
LocalCartBackend keeps the anonymous cart in the local store,
RemoteCartBackend forwards every mutation to the cart service.

Mutations return the resulting cart and leave state untouched when they
raise.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Optional

from .client import CartServiceClient
from .exceptions import StorageError
from .models import Cart, CartItem, Coupon, ProductSnapshot, ServerCart, utcnow
from .storage import LocalCartStore

Clock = Callable[[], datetime]


class CartBackend(ABC):
    """Operations shared by the local and remote cart representations"""

    is_remote: bool = False

    @property
    @abstractmethod
    def cart(self) -> Optional[Cart]:
        """Current view of the cart"""

    @abstractmethod
    async def load(self) -> Cart:
        ...

    @abstractmethod
    async def add_item(self, product: ProductSnapshot, quantity: int) -> Cart:
        ...

    @abstractmethod
    async def update_item_quantity(self, item_id: int, quantity: int) -> Cart:
        ...

    @abstractmethod
    async def remove_item(self, item_id: int) -> Cart:
        ...

    @abstractmethod
    async def clear(self) -> Cart:
        ...

    async def remove_items(self, items: list[CartItem]) -> Cart:
        """Remove several rows"""
        cart = self.cart
        for item in items:
            cart = await self.remove_item(item.item_key)
        return cart

    async def persist_coupon(self, coupon: Coupon) -> None:
        """Keep `coupon` with this cart, where the backend needs to"""

    async def discard_coupon(self) -> None:
        """Forget any coupon kept with this cart"""


class LocalCartBackend(CartBackend):
    """Anonymous cart held in memory and mirrored to the local store"""

    def __init__(self, store: LocalCartStore, clock: Clock = utcnow):
        self.store = store
        self._clock = clock
        self._cart: Optional[Cart] = None

    @property
    def cart(self) -> Optional[Cart]:
        return self._cart

    async def load(self) -> Cart:
        cart = await self.store.load_cart()
        self._cart = cart or Cart.empty(self._clock())
        return self._cart

    def adopt(self, cart: Cart) -> None:
        """Make `cart` the live cart without writing it"""
        self._cart = cart

    async def replace(self, cart: Cart) -> Cart:
        """Persist `cart` and make it the live cart"""
        await self.store.save_cart(cart)
        self._cart = cart
        return cart

    def _current(self) -> Cart:
        return self._cart or Cart.empty(self._clock())

    async def add_item(self, product: ProductSnapshot, quantity: int) -> Cart:
        current = self._current()
        existing = current.find_item(product.id)

        if existing:
            # Snapshot is kept as is; it is only refreshed on hydration
            items = [
                item.model_copy(update={"quantity": item.quantity + quantity})
                if item.product_id == product.id else item
                for item in current.items
            ]
        else:
            items = current.items + [
                CartItem(product_id=product.id, quantity=quantity, product=product)
            ]

        return await self.replace(Cart(items=items, last_updated=self._clock()))

    async def update_item_quantity(self, item_id: int, quantity: int) -> Cart:
        current = self._current()
        items = [
            item.model_copy(update={"quantity": quantity})
            if item.product_id == item_id else item
            for item in current.items
        ]
        return await self.replace(Cart(items=items, last_updated=self._clock()))

    async def remove_item(self, item_id: int) -> Cart:
        current = self._current()
        items = [item for item in current.items if item.product_id != item_id]
        return await self.replace(Cart(items=items, last_updated=self._clock()))

    async def remove_items(self, items: list[CartItem]) -> Cart:
        drop = {item.product_id for item in items}
        current = self._current()
        kept = [item for item in current.items if item.product_id not in drop]
        return await self.replace(Cart(items=kept, last_updated=self._clock()))

    async def clear(self) -> Cart:
        # Coupon record goes first; the cart write is the last thing that can fail
        previous_coupon = await self.store.load_coupon()
        await self.store.clear_coupon()
        try:
            return await self.replace(Cart.empty(self._clock()))
        except StorageError:
            if previous_coupon is not None:
                await self.store.save_coupon(previous_coupon)
            raise

    async def persist_coupon(self, coupon: Coupon) -> None:
        await self.store.save_coupon(coupon)

    async def discard_coupon(self) -> None:
        await self.store.clear_coupon()


class RemoteCartBackend(CartBackend):
    """
    Read-through view of the account cart.

    The view is only replaced by carts the service returns; nothing is
    echoed locally ahead of a call.
    """

    is_remote = True

    def __init__(self, client: CartServiceClient, cart: Optional[ServerCart] = None):
        self.client = client
        self._cart = cart

    @property
    def cart(self) -> Optional[ServerCart]:
        return self._cart

    async def load(self) -> ServerCart:
        self._cart = await self.client.get_cart()
        return self._cart

    async def add_item(self, product: ProductSnapshot, quantity: int) -> ServerCart:
        self._cart = await self.client.add_item(product.id, quantity)
        return self._cart

    async def update_item_quantity(self, item_id: int, quantity: int) -> ServerCart:
        self._cart = await self.client.update_item(item_id, quantity)
        return self._cart

    async def remove_item(self, item_id: int) -> ServerCart:
        self._cart = await self.client.remove_item(item_id)
        return self._cart

    async def clear(self) -> ServerCart:
        self._cart = await self.client.clear_cart()
        return self._cart

    async def discard_coupon(self) -> None:
        self._cart = await self.client.remove_coupon()
