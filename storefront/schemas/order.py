from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from decimal import Decimal
from datetime import datetime

from storefront.db.models import OrderStatus


class OrderItemResponse(BaseModel):
    id: int
    product_id: int
    variant_id: int
    product_name: str
    variant_name: str
    sku: str
    variant_attributes: Dict[str, Any] = {}
    quantity: int
    unit_price: Decimal
    total_price: Decimal

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: int
    order_number: str
    status: OrderStatus
    customer_email: str
    subtotal: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    discount_amount: Decimal
    total: Decimal
    currency: str
    shipping_method: str
    shipping_address: Dict[str, Any]
    billing_address: Dict[str, Any]
    discount_code: Optional[str] = None
    notes: Optional[str] = None
    is_gift: bool = False
    gift_message: Optional[str] = None
    tracking_number: Optional[str] = None
    created_at: datetime
    confirmed_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []

    class Config:
        from_attributes = True


class OrderListItem(BaseModel):
    id: int
    order_number: str
    status: OrderStatus
    total: Decimal
    currency: str
    item_count: int
    created_at: datetime


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    tracking_number: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=1000)


class RefundRequest(BaseModel):
    reason: str = Field(min_length=10, max_length=500)


class TrackingEvent(BaseModel):
    status: OrderStatus
    timestamp: datetime
    description: str


class OrderTracking(BaseModel):
    order_number: str
    status: OrderStatus
    tracking_number: Optional[str] = None
    events: List[TrackingEvent]


class OrderStats(BaseModel):
    total_orders: int
    total_revenue: Decimal
    pending_orders: int
    status_counts: Dict[str, int] = {}
