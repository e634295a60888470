from pydantic import BaseModel, Field
from decimal import Decimal
from typing import List, Optional


class CategoryPricing(BaseModel):
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    markup_factor: Optional[Decimal] = None
    shipping_buffer: Optional[Decimal] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None


class PriceBreakdown(BaseModel):
    cost_price: Decimal
    marked_up_price: Decimal
    with_shipping_buffer: Decimal
    with_platform_fees: Decimal
    final_price: Decimal
    markup_factor: Decimal
    shipping_buffer: Decimal
    platform_fee_percentage: Decimal


class PriceValidationResult(BaseModel):
    is_valid: bool
    errors: List[str] = []
    warnings: List[str] = []
    adjusted_price: Optional[Decimal] = None


class MarginInfo(BaseModel):
    margin: Decimal
    margin_percentage: Decimal
    markup_factor: Decimal
    cost_price: Decimal
    retail_price: Decimal


class PricePreviewRequest(BaseModel):
    cost_price: Decimal = Field(ge=0)
    pricing: CategoryPricing = CategoryPricing()
    current_price: Optional[Decimal] = Field(default=None, ge=0)


class PricePreview(BaseModel):
    breakdown: PriceBreakdown
    validation: PriceValidationResult
    margin: MarginInfo
    compare_at_price: Decimal
    significant_change: Optional[bool] = None
