"""Product models for mock backend"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from .common import ApiModel


class ProductCategory(str, Enum):
    GROCERY = "grocery"
    BEVERAGES = "beverages"
    HOUSEHOLD = "household"
    PERSONAL_CARE = "personal_care"


class Product(ApiModel):
    """Product in the catalog"""
    id: int
    name: str
    slug: str
    category: ProductCategory
    selling_price: float = Field(ge=0)
    discount_type: Optional[str] = None
    discount_value: Optional[float] = None
    discount_start_date: Optional[datetime] = None
    discount_end_date: Optional[datetime] = None
    stock: int = Field(ge=0, default=100)
    is_active: bool = True
