"""Cart API routes for mock backend"""

from fastapi import APIRouter, HTTPException, Depends

from ..models.cart import AddToCartRequest, Cart, UpdateCartItemRequest
from ..models.common import ApiResponse, envelope
from ..database.carts import cart_db
from ..database.products import product_db
from ..security.auth import require_user

router = APIRouter(prefix="/api/cart", tags=["Cart"])


def render_cart(cart: Cart) -> dict:
    """Serialize a cart with each row's product joined from the catalog"""
    rendered = cart.model_copy(deep=True)
    for item in rendered.items:
        current = product_db.get_product(item.product_id)
        if current:
            item.product = current
    return rendered.model_dump(mode="json", by_alias=True)


@router.get("", response_model=ApiResponse)
async def get_cart(user_id: str = Depends(require_user)):
    """Get the caller's cart"""
    return envelope(render_cart(cart_db.get_or_create_cart(user_id)))


@router.post("/items", response_model=ApiResponse)
async def add_to_cart(
    request: AddToCartRequest,
    user_id: str = Depends(require_user),
):
    """Add an item, summing into an existing row for the same product"""
    product = product_db.get_product(request.product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    if not product.is_active:
        raise HTTPException(status_code=400, detail=f"{product.name} is no longer available")

    existing = next(
        (item for item in cart_db.get_or_create_cart(user_id).items if item.product_id == product.id),
        None,
    )
    requested = request.quantity + (existing.quantity if existing else 0)
    if requested > product.stock:
        raise HTTPException(
            status_code=400,
            detail=f"Insufficient stock. Available: {product.stock}",
        )

    cart = cart_db.add_item(user_id, product, request.quantity)
    return envelope(render_cart(cart), message=f"Added {request.quantity}x {product.name} to cart")


@router.patch("/items/{item_id}", response_model=ApiResponse)
async def update_cart_item(
    item_id: int,
    request: UpdateCartItemRequest,
    user_id: str = Depends(require_user),
):
    """Set the quantity of a cart row"""
    item = cart_db.find_item(user_id, item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Item not in cart")

    product = product_db.get_product(item.product_id)
    if product and request.quantity > product.stock:
        raise HTTPException(
            status_code=400,
            detail=f"Insufficient stock. Available: {product.stock}",
        )

    cart = cart_db.update_item_quantity(user_id, item_id, request.quantity)
    return envelope(render_cart(cart), message="Cart updated")


@router.delete("/items/{item_id}", response_model=ApiResponse)
async def remove_from_cart(item_id: int, user_id: str = Depends(require_user)):
    """Remove a cart row"""
    cart = cart_db.remove_item(user_id, item_id)
    return envelope(render_cart(cart), message="Item removed")


@router.delete("", response_model=ApiResponse)
async def clear_cart(user_id: str = Depends(require_user)):
    """Clear all items and the coupon from the cart"""
    cart = cart_db.clear_cart(user_id)
    return envelope(render_cart(cart), message="Cart cleared")


@router.delete("/coupon", response_model=ApiResponse)
async def remove_coupon(user_id: str = Depends(require_user)):
    """Detach the coupon from the cart"""
    cart = cart_db.detach_coupon(user_id)
    return envelope(render_cart(cart), message="Coupon removed")
