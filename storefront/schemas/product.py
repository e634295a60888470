from pydantic import BaseModel, Field
from typing import List, Optional
from decimal import Decimal


class VariantStock(BaseModel):
    id: int
    name: str
    size: Optional[str] = None
    color: Optional[str] = None
    price: Decimal
    available: int
    in_stock: bool


class RecommendedProduct(BaseModel):
    id: int
    name: str
    slug: str
    base_price: Decimal
    compare_at_price: Optional[Decimal] = None
    discount_percentage: int = 0
    category_id: int
    variants: List[VariantStock] = []
    purchase_count: int = 0


class FrequentlyBoughtResponse(BaseModel):
    products: List[RecommendedProduct]
    algorithm: str


class BundleQuoteRequest(BaseModel):
    product_ids: List[int] = Field(min_length=1, max_length=10)
    selected_ids: List[int] = []
