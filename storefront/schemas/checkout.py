from pydantic import BaseModel, EmailStr, Field
from decimal import Decimal
from typing import List, Optional

from storefront.services.pricing import CheckoutTotals


class ShippingOption(BaseModel):
    id: str
    name: str
    price: Decimal
    estimated_days: str
    description: str


class TaxQuote(BaseModel):
    tax_rate: Decimal
    tax_amount: Decimal
    taxable_amount: Decimal


class CheckoutLine(BaseModel):
    item_id: int
    variant_id: int
    quantity: int
    product_name: str
    variant_name: str
    unit_price: Decimal
    line_total: Decimal


class CheckoutSummary(BaseModel):
    items: List[CheckoutLine]
    totals: CheckoutTotals
    shipping_method: str = "standard"
    discount_code: Optional[str] = None


class PlaceOrderRequest(BaseModel):
    shipping_address_id: int
    billing_address_id: Optional[int] = None
    use_same_billing_address: bool = True
    shipping_method_id: str = Field(min_length=1)
    customer_email: Optional[EmailStr] = None
    gift_message: Optional[str] = Field(default=None, max_length=500)
    is_gift: bool = False
    notes: Optional[str] = Field(default=None, max_length=1000)


class PlacedOrder(BaseModel):
    order_id: int
    order_number: str
    total: Decimal
