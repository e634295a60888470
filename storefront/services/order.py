import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.core.config import settings
from storefront.core.exceptions import InvalidOrderStatusError, NotFoundError, StorefrontError
from storefront.db.models import AuditLog, Inventory, Order, OrderStatus
from storefront.schemas.order import OrderListItem, OrderStats, OrderTracking, TrackingEvent

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED, OrderStatus.FAILED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: set(),
    OrderStatus.REFUNDED: set(),
    OrderStatus.FAILED: set(),
}

# Orders that still need fulfilment work
OPEN_STATUSES = (OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING)

NOT_CANCELLABLE = {
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
    OrderStatus.REFUNDED,
    OrderStatus.FAILED,
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def _to_list_item(order: Order) -> OrderListItem:
    return OrderListItem(
        id=order.id,
        order_number=order.order_number,
        status=order.status,
        total=order.total,
        currency=order.currency,
        item_count=sum(item.quantity for item in order.items),
        created_at=order.created_at,
    )


async def _list_orders(
    db: AsyncSession,
    user_id: Optional[int],
    page: int,
    limit: int,
    status: Optional[OrderStatus],
) -> tuple[list[OrderListItem], int]:
    offset = (page - 1) * limit

    conditions = []
    if user_id is not None:
        conditions.append(Order.user_id == user_id)
    if status is not None:
        conditions.append(Order.status == status)

    result = await db.execute(
        select(Order)
        .options(selectinload(Order.items))
        .where(*conditions)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset(offset)
        .limit(limit)
    )
    orders = result.scalars().all()

    count_result = await db.execute(select(func.count(Order.id)).where(*conditions))
    total_count = count_result.scalar()

    return [_to_list_item(order) for order in orders], total_count or 0


async def list_user_orders(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    limit: int = 10,
    status: Optional[OrderStatus] = None,
) -> tuple[list[OrderListItem], int]:
    return await _list_orders(db, user_id, page, limit, status)


async def list_all_orders(
    db: AsyncSession,
    page: int = 1,
    limit: int = 20,
    status: Optional[OrderStatus] = None,
) -> tuple[list[OrderListItem], int]:
    return await _list_orders(db, None, page, limit, status)


async def get_order(db: AsyncSession, order_number: str, user_id: Optional[int] = None) -> Order:
    """Order by number, optionally restricted to one owner."""
    query = select(Order).options(selectinload(Order.items)).where(Order.order_number == order_number)
    if user_id is not None:
        query = query.where(Order.user_id == user_id)
    result = await db.execute(query)
    order = result.scalar_one_or_none()
    if not order:
        raise NotFoundError("Order not found")
    return order


async def _restore_inventory(db: AsyncSession, order: Order) -> None:
    for item in order.items:
        result = await db.execute(select(Inventory).where(Inventory.variant_id == item.variant_id))
        inventory = result.scalar_one_or_none()
        if inventory is None:
            logger.warning(f"No inventory row for variant {item.variant_id} while restoring order {order.order_number}")
            continue
        inventory.quantity += item.quantity
        inventory.available += item.quantity


async def cancel_order(db: AsyncSession, user_id: int, order_number: str) -> Order:
    order = await get_order(db, order_number, user_id)

    if order.status in (OrderStatus.SHIPPED, OrderStatus.DELIVERED):
        raise StorefrontError("Cannot cancel an order that has been shipped or delivered")
    if order.status == OrderStatus.CANCELLED:
        raise StorefrontError("Order is already cancelled")
    if order.status in NOT_CANCELLABLE:
        raise StorefrontError(f"Cannot cancel an order with status {order.status.value}")

    try:
        order.status = OrderStatus.CANCELLED
        order.cancelled_at = datetime.utcnow()
        await _restore_inventory(db, order)
        db.add(AuditLog(
            user_id=user_id,
            action="order_cancelled",
            entity="order",
            entity_id=order.id,
            audit_data={"order_number": order.order_number},
        ))
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"Order {order.order_number} cancelled by user {user_id}")
    return order


async def request_refund(
    db: AsyncSession,
    user_id: int,
    order_number: str,
    reason: str,
    now: Optional[datetime] = None,
) -> Order:
    order = await get_order(db, order_number, user_id)
    now = now or datetime.utcnow()

    if order.status == OrderStatus.CANCELLED:
        raise StorefrontError("Cannot request refund for a cancelled order")
    if order.status == OrderStatus.REFUNDED:
        raise StorefrontError("Order has already been refunded")

    # Counted in whole days since delivery
    if order.delivered_at and (now - order.delivered_at).days > settings.REFUND_WINDOW_DAYS:
        raise StorefrontError(
            f"Refund requests must be made within {settings.REFUND_WINDOW_DAYS} days of delivery"
        )

    order.status = OrderStatus.REFUNDED
    order.notes = f"Refund requested: {reason}"
    db.add(AuditLog(
        user_id=user_id,
        action="refund_requested",
        entity="order",
        entity_id=order.id,
        audit_data={"order_number": order.order_number, "reason": reason},
    ))
    await db.commit()

    logger.info(f"Refund requested for order {order.order_number}")
    return order


async def update_order_status(
    db: AsyncSession,
    admin_id: int,
    order_number: str,
    new_status: OrderStatus,
    tracking_number: Optional[str] = None,
    notes: Optional[str] = None,
) -> Order:
    order = await get_order(db, order_number)
    previous = order.status

    if not can_transition(previous, new_status):
        raise InvalidOrderStatusError(
            f"Cannot change order status from {previous.value} to {new_status.value}"
        )

    now = datetime.utcnow()
    order.status = new_status
    if tracking_number:
        order.tracking_number = tracking_number
    if notes:
        order.notes = notes

    if new_status == OrderStatus.CONFIRMED:
        order.confirmed_at = now
    elif new_status == OrderStatus.SHIPPED:
        order.shipped_at = now
    elif new_status == OrderStatus.DELIVERED:
        order.delivered_at = now
    elif new_status == OrderStatus.CANCELLED:
        order.cancelled_at = now
        await _restore_inventory(db, order)

    db.add(AuditLog(
        user_id=admin_id,
        action="order_status_updated",
        entity="order",
        entity_id=order.id,
        audit_data={
            "order_number": order.order_number,
            "from": previous.value,
            "to": new_status.value,
        },
    ))
    await db.commit()

    logger.info(f"Order {order.order_number} status {previous.value} -> {new_status.value}")
    return order


async def get_order_tracking(db: AsyncSession, order_number: str, user_id: Optional[int] = None) -> OrderTracking:
    order = await get_order(db, order_number, user_id)

    milestones = [
        (OrderStatus.PENDING, order.created_at, "Order placed"),
        (OrderStatus.CONFIRMED, order.confirmed_at, "Order confirmed"),
        (OrderStatus.SHIPPED, order.shipped_at, "Order shipped"),
        (OrderStatus.DELIVERED, order.delivered_at, "Order delivered"),
        (OrderStatus.CANCELLED, order.cancelled_at, "Order cancelled"),
    ]
    events = [
        TrackingEvent(status=status, timestamp=timestamp, description=description)
        for status, timestamp, description in milestones
        if timestamp is not None
    ]
    events.sort(key=lambda event: event.timestamp)

    return OrderTracking(
        order_number=order.order_number,
        status=order.status,
        tracking_number=order.tracking_number,
        events=events,
    )


async def get_order_stats(db: AsyncSession) -> OrderStats:
    total_result = await db.execute(
        select(func.count(Order.id), func.sum(Order.total)).where(
            Order.status.notin_([OrderStatus.CANCELLED, OrderStatus.FAILED])
        )
    )
    total_count, total_revenue = total_result.first()

    status_result = await db.execute(
        select(Order.status, func.count(Order.id)).group_by(Order.status)
    )
    status_counts = {status.value: count for status, count in status_result.all()}

    pending_count = sum(status_counts.get(status.value, 0) for status in OPEN_STATUSES)

    return OrderStats(
        total_orders=total_count or 0,
        total_revenue=total_revenue or Decimal("0.00"),
        pending_orders=pending_count,
        status_counts=status_counts,
    )
