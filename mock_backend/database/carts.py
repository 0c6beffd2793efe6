"""Cart storage for mock backend"""

from datetime import datetime, timezone
from typing import Optional

from ..models.cart import Cart, CartItem
from ..models.coupon import AppliedCoupon
from ..models.product import Product


class CartDatabase:
    """In-memory carts, one per user"""

    def __init__(self):
        self.carts: dict[str, Cart] = {}
        self._next_cart_id = 1
        self._next_item_id = 1

    def reset(self) -> None:
        self.carts = {}
        self._next_cart_id = 1
        self._next_item_id = 1

    def get_or_create_cart(self, user_id: str) -> Cart:
        """Get the user's cart, creating an empty one if needed"""
        cart = self.carts.get(user_id)
        if cart is None:
            cart = Cart(
                id=self._next_cart_id,
                user_id=user_id,
                items=[],
                last_updated=datetime.now(timezone.utc),
            )
            self._next_cart_id += 1
            self.carts[user_id] = cart
        return cart

    def add_item(self, user_id: str, product: Product, quantity: int = 1) -> Cart:
        """Add an item, summing quantities for a product already in the cart"""
        cart = self.get_or_create_cart(user_id)

        existing_item = next(
            (item for item in cart.items if item.product_id == product.id),
            None,
        )

        if existing_item:
            existing_item.quantity += quantity
            existing_item.product = product
        else:
            cart.items.append(
                CartItem(
                    id=self._next_item_id,
                    product_id=product.id,
                    quantity=quantity,
                    product=product,
                )
            )
            self._next_item_id += 1

        self._touch(cart)
        return cart

    def find_item(self, user_id: str, item_id: int) -> Optional[CartItem]:
        cart = self.get_or_create_cart(user_id)
        return next((item for item in cart.items if item.id == item_id), None)

    def update_item_quantity(self, user_id: str, item_id: int, quantity: int) -> Optional[Cart]:
        """Set a row's quantity; None if the row does not exist"""
        cart = self.get_or_create_cart(user_id)
        item = self.find_item(user_id, item_id)
        if not item:
            return None

        item.quantity = quantity
        self._touch(cart)
        return cart

    def remove_item(self, user_id: str, item_id: int) -> Cart:
        """Remove a row; missing rows are ignored"""
        cart = self.get_or_create_cart(user_id)
        cart.items = [item for item in cart.items if item.id != item_id]
        self._touch(cart)
        return cart

    def clear_cart(self, user_id: str) -> Cart:
        """Remove every row and the attached coupon"""
        cart = self.get_or_create_cart(user_id)
        cart.items = []
        cart.coupon = None
        self._touch(cart)
        return cart

    def attach_coupon(self, user_id: str, coupon: AppliedCoupon) -> Cart:
        cart = self.get_or_create_cart(user_id)
        cart.coupon = coupon.to_cart_coupon()
        self._touch(cart)
        return cart

    def detach_coupon(self, user_id: str) -> Cart:
        cart = self.get_or_create_cart(user_id)
        cart.coupon = None
        self._touch(cart)
        return cart

    def _touch(self, cart: Cart) -> None:
        cart.last_updated = datetime.now(timezone.utc)


# Singleton instance
cart_db = CartDatabase()
