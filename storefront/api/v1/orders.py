from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.dependencies import get_current_user
from storefront.db.models import OrderStatus, User
from storefront.db.session import get_db
from storefront.schemas.common import ActionResult, Page, clamp_pagination
from storefront.schemas.order import OrderListItem, OrderResponse, OrderTracking, RefundRequest
from storefront.services.order import cancel_order, get_order, get_order_tracking, list_user_orders, request_refund

router = APIRouter(prefix="/api/v1/orders", tags=["orders"])


@router.get("", response_model=ActionResult[Page[OrderListItem]])
async def list_orders(
    page: int = 1,
    limit: int = 10,
    status: Optional[OrderStatus] = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    page, limit = clamp_pagination(page, limit)
    orders, total_count = await list_user_orders(db, user.id, page, limit, status)
    return ActionResult.ok(Page[OrderListItem].build(orders, total_count, page, limit))


@router.get("/{order_number}", response_model=ActionResult[OrderResponse])
async def read_order(
    order_number: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await get_order(db, order_number, user.id)
    return ActionResult.ok(OrderResponse.model_validate(order))


@router.get("/{order_number}/tracking", response_model=ActionResult[OrderTracking])
async def track_order(
    order_number: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return ActionResult.ok(await get_order_tracking(db, order_number, user.id))


@router.post("/{order_number}/cancel", response_model=ActionResult[OrderResponse])
async def cancel(
    order_number: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await cancel_order(db, user.id, order_number)
    return ActionResult.ok(OrderResponse.model_validate(order))


@router.post("/{order_number}/refund", response_model=ActionResult[OrderResponse])
async def refund(
    order_number: str,
    payload: RefundRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await request_refund(db, user.id, order_number, payload.reason)
    return ActionResult.ok(OrderResponse.model_validate(order))
