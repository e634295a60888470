from pydantic import BaseModel, Field
from decimal import Decimal
from typing import List, Optional


class CartItemAdd(BaseModel):
    variant_id: int
    quantity: int = Field(default=1, ge=1, le=99)


class CartItemUpdate(BaseModel):
    quantity: int = Field(ge=0, le=99)


class DiscountCodeApply(BaseModel):
    code: str = Field(min_length=1, max_length=50)


class CartLine(BaseModel):
    id: int
    variant_id: int
    product_id: int
    product_name: str
    variant_name: str
    sku: str
    size: Optional[str] = None
    color: Optional[str] = None
    unit_price: Decimal
    compare_at_price: Optional[Decimal] = None
    quantity: int
    line_total: Decimal
    available: int


class CartSummary(BaseModel):
    id: int
    items: List[CartLine]
    item_count: int
    subtotal: Decimal
    discount_code: Optional[str] = None


class AppliedDiscount(BaseModel):
    code: str
    description: Optional[str] = None
    discount_type: str
    discount_value: Decimal
