"""Product API routes for mock backend"""

from fastapi import APIRouter, HTTPException

from ..models.common import ApiResponse, envelope
from ..database.products import product_db

router = APIRouter(prefix="/api/products", tags=["Products"])


@router.get("/{product_id}", response_model=ApiResponse)
async def get_product(product_id: int):
    """Get the current record of a product, active or not"""
    product = product_db.get_product(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return envelope(product)
