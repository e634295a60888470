import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.dependencies import get_current_admin
from storefront.db.models import OrderStatus, User
from storefront.db.session import get_db
from storefront.schemas.common import ActionResult, Page, clamp_pagination
from storefront.schemas.import_pricing import PricePreview, PricePreviewRequest
from storefront.schemas.order import OrderListItem, OrderResponse, OrderStats, OrderStatusUpdate
from storefront.services.import_pricing import price_calculator
from storefront.services.order import get_order_stats, list_all_orders, update_order_status

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


@router.get("/orders", response_model=ActionResult[Page[OrderListItem]])
async def list_orders(
    page: int = 1,
    limit: int = 20,
    status: Optional[OrderStatus] = None,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    page, limit = clamp_pagination(page, limit, default_limit=20)
    orders, total_count = await list_all_orders(db, page, limit, status)
    return ActionResult.ok(Page[OrderListItem].build(orders, total_count, page, limit))


@router.patch("/orders/{order_number}/status", response_model=ActionResult[OrderResponse])
async def change_order_status(
    order_number: str,
    update: OrderStatusUpdate,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    order = await update_order_status(
        db, admin.id, order_number, update.status, update.tracking_number, update.notes
    )
    return ActionResult.ok(OrderResponse.model_validate(order))


@router.get("/stats", response_model=ActionResult[OrderStats])
async def get_stats(
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    return ActionResult.ok(await get_order_stats(db))


@router.post("/import/price-preview", response_model=ActionResult[PricePreview])
async def price_preview(
    payload: PricePreviewRequest,
    admin: User = Depends(get_current_admin),
):
    preview = price_calculator.preview(payload.cost_price, payload.pricing, payload.current_price)
    logger.debug(f"Price preview for cost {payload.cost_price}: {preview.breakdown.final_price}")
    return ActionResult.ok(preview)
