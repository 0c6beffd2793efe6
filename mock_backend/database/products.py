"""Mock product database"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from ..models.product import Product, ProductCategory

_NOW = datetime.now(timezone.utc)


def _seed_products() -> dict[int, Product]:
    products = [
        Product(
            id=1,
            name="Basmati Rice 5kg",
            slug="basmati-rice-5kg",
            category=ProductCategory.GROCERY,
            selling_price=500.0,
            stock=40,
        ),
        Product(
            id=2,
            name="Mustard Oil 1L",
            slug="mustard-oil-1l",
            category=ProductCategory.GROCERY,
            selling_price=300.0,
            stock=60,
        ),
        Product(
            id=3,
            name="Green Tea 100 Bags",
            slug="green-tea-100",
            category=ProductCategory.BEVERAGES,
            selling_price=200.0,
            discount_type="percentage",
            discount_value=10,
            discount_start_date=_NOW - timedelta(days=7),
            discount_end_date=_NOW + timedelta(days=30),
            stock=25,
        ),
        Product(
            id=4,
            name="Dishwashing Liquid",
            slug="dishwashing-liquid",
            category=ProductCategory.HOUSEHOLD,
            selling_price=120.0,
            discount_type="fixed",
            discount_value=20,
            discount_start_date=_NOW - timedelta(days=1),
            discount_end_date=_NOW + timedelta(days=14),
            stock=8,
        ),
        Product(
            id=5,
            name="Herbal Shampoo",
            slug="herbal-shampoo",
            category=ProductCategory.PERSONAL_CARE,
            selling_price=100.0,
            stock=100,
        ),
        Product(
            id=6,
            name="Discontinued Soap",
            slug="discontinued-soap",
            category=ProductCategory.PERSONAL_CARE,
            selling_price=50.0,
            stock=0,
            is_active=False,
        ),
    ]
    return {p.id: p for p in products}


class ProductDatabase:
    """In-memory product catalog"""

    def __init__(self):
        self.products: dict[int, Product] = _seed_products()

    def reset(self) -> None:
        """Restore the seed catalog"""
        self.products = _seed_products()

    def get_product(self, product_id: int) -> Optional[Product]:
        """Get a product by ID"""
        return self.products.get(product_id)

    def upsert_product(self, product: Product) -> Product:
        """Add or replace a product"""
        self.products[product.id] = product
        return product

    def update_product(self, product_id: int, **changes) -> Optional[Product]:
        """Change fields of an existing product"""
        product = self.get_product(product_id)
        if not product:
            return None
        updated = product.model_copy(update=changes)
        self.products[product_id] = updated
        return updated


# Singleton instance
product_db = ProductDatabase()
