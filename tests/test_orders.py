import pytest
from datetime import timedelta
from decimal import Decimal
from sqlalchemy import func, select

from storefront.core.exceptions import InvalidOrderStatusError, NotFoundError, StorefrontError
from storefront.db.models import AuditLog, Inventory, OrderStatus
from storefront.schemas.checkout import PlaceOrderRequest
from storefront.services.cart import add_to_cart, get_or_create_cart
from storefront.services.checkout import place_order
from storefront.services.order import (
    can_transition,
    cancel_order,
    get_order,
    get_order_stats,
    get_order_tracking,
    list_all_orders,
    list_user_orders,
    request_refund,
    update_order_status,
)


@pytest.fixture
def checkout(db_session, customer, address, make_variant):
    """Place an order for `quantity` of a fresh variant and return (order_number, variant_id)."""

    async def _checkout(quantity: int = 2, stock: int = 10):
        variant = await make_variant(stock=stock)
        cart = await get_or_create_cart(db_session, user_id=customer.id)
        cart = await add_to_cart(db_session, cart, variant.id, quantity)
        placed = await place_order(
            db_session, customer, cart,
            PlaceOrderRequest(shipping_address_id=address.id, shipping_method_id="standard"),
        )
        return placed.order_number, variant.id

    return _checkout


async def _available(db_session, variant_id) -> int:
    result = await db_session.execute(select(Inventory).where(Inventory.variant_id == variant_id))
    return result.scalar_one().available


def test_transition_table():
    assert can_transition(OrderStatus.CONFIRMED, OrderStatus.PROCESSING)
    assert can_transition(OrderStatus.SHIPPED, OrderStatus.DELIVERED)
    assert not can_transition(OrderStatus.SHIPPED, OrderStatus.CANCELLED)
    assert not can_transition(OrderStatus.CANCELLED, OrderStatus.CONFIRMED)
    assert not can_transition(OrderStatus.DELIVERED, OrderStatus.PENDING)


@pytest.mark.asyncio
async def test_list_user_orders_paginates_and_filters(db_session, customer, checkout):
    first, _ = await checkout()
    second, _ = await checkout()
    third, _ = await checkout()
    await cancel_order(db_session, customer.id, first)

    page_one, total = await list_user_orders(db_session, customer.id, page=1, limit=2)
    assert total == 3
    assert len(page_one) == 2
    assert page_one[0].item_count == 2

    page_two, _ = await list_user_orders(db_session, customer.id, page=2, limit=2)
    assert len(page_two) == 1

    cancelled, cancelled_total = await list_user_orders(db_session, customer.id, status=OrderStatus.CANCELLED)
    assert cancelled_total == 1
    assert cancelled[0].order_number == first

    everyone, _ = await list_all_orders(db_session)
    assert {o.order_number for o in everyone} == {first, second, third}


@pytest.mark.asyncio
async def test_get_order_is_scoped_to_owner(db_session, customer, admin, checkout):
    number, _ = await checkout()

    order = await get_order(db_session, number, customer.id)
    assert order.order_number == number
    assert len(order.items) == 1

    with pytest.raises(NotFoundError):
        await get_order(db_session, number, admin.id)
    with pytest.raises(NotFoundError):
        await get_order(db_session, "ORD-999999", customer.id)


@pytest.mark.asyncio
async def test_cancel_restores_inventory(db_session, customer, checkout):
    number, variant_id = await checkout(quantity=3, stock=10)
    assert await _available(db_session, variant_id) == 7

    order = await cancel_order(db_session, customer.id, number)

    assert order.status == OrderStatus.CANCELLED
    assert order.cancelled_at is not None
    assert await _available(db_session, variant_id) == 10

    with pytest.raises(StorefrontError, match="already cancelled"):
        await cancel_order(db_session, customer.id, number)


@pytest.mark.asyncio
async def test_shipped_orders_cannot_be_cancelled(db_session, customer, admin, checkout):
    number, _ = await checkout()
    await update_order_status(db_session, admin.id, number, OrderStatus.PROCESSING)
    await update_order_status(db_session, admin.id, number, OrderStatus.SHIPPED, tracking_number="1Z999")

    with pytest.raises(StorefrontError, match="shipped or delivered"):
        await cancel_order(db_session, customer.id, number)


@pytest.mark.asyncio
async def test_status_updates_stamp_times_and_audit(db_session, admin, checkout):
    number, _ = await checkout()

    await update_order_status(db_session, admin.id, number, OrderStatus.PROCESSING)
    order = await update_order_status(db_session, admin.id, number, OrderStatus.SHIPPED, tracking_number="1Z999")
    assert order.shipped_at is not None
    assert order.tracking_number == "1Z999"

    order = await update_order_status(db_session, admin.id, number, OrderStatus.DELIVERED)
    assert order.delivered_at is not None

    count = await db_session.execute(
        select(func.count(AuditLog.id)).where(AuditLog.action == "order_status_updated")
    )
    assert count.scalar() == 3


@pytest.mark.asyncio
async def test_disallowed_transition_is_rejected(db_session, admin, checkout):
    number, _ = await checkout()

    with pytest.raises(InvalidOrderStatusError):
        await update_order_status(db_session, admin.id, number, OrderStatus.DELIVERED)


@pytest.mark.asyncio
async def test_admin_cancel_restores_inventory(db_session, admin, checkout):
    number, variant_id = await checkout(quantity=2, stock=5)

    await update_order_status(db_session, admin.id, number, OrderStatus.CANCELLED)

    assert await _available(db_session, variant_id) == 5


@pytest.mark.asyncio
async def test_refund_within_window(db_session, customer, admin, checkout):
    number, _ = await checkout()
    for status in (OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
        await update_order_status(db_session, admin.id, number, status)

    order = await request_refund(db_session, customer.id, number, "Arrived with a torn seam")

    assert order.status == OrderStatus.REFUNDED
    assert order.notes == "Refund requested: Arrived with a torn seam"

    with pytest.raises(StorefrontError, match="already been refunded"):
        await request_refund(db_session, customer.id, number, "Arrived with a torn seam")


@pytest.mark.asyncio
async def test_refund_window_closes_after_thirty_days(db_session, customer, admin, checkout):
    number, _ = await checkout()
    for status in (OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
        order = await update_order_status(db_session, admin.id, number, status)

    later = order.delivered_at + timedelta(days=31)
    with pytest.raises(StorefrontError, match="within 30 days"):
        await request_refund(db_session, customer.id, number, "Changed my mind entirely", now=later)


@pytest.mark.asyncio
async def test_refund_window_counts_whole_days(db_session, customer, admin, checkout):
    number, _ = await checkout()
    for status in (OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
        order = await update_order_status(db_session, admin.id, number, status)

    later = order.delivered_at + timedelta(days=30, hours=12)
    order = await request_refund(db_session, customer.id, number, "Zipper broke after a week", now=later)

    assert order.status == OrderStatus.REFUNDED


@pytest.mark.asyncio
async def test_cancelled_orders_cannot_be_refunded(db_session, customer, checkout):
    number, _ = await checkout()
    await cancel_order(db_session, customer.id, number)

    with pytest.raises(StorefrontError, match="cancelled order"):
        await request_refund(db_session, customer.id, number, "Never arrived at all")


@pytest.mark.asyncio
async def test_tracking_lists_reached_milestones(db_session, customer, admin, checkout):
    number, _ = await checkout()
    await update_order_status(db_session, admin.id, number, OrderStatus.PROCESSING)
    await update_order_status(db_session, admin.id, number, OrderStatus.SHIPPED, tracking_number="1Z999")

    tracking = await get_order_tracking(db_session, number, customer.id)

    assert tracking.status == OrderStatus.SHIPPED
    assert tracking.tracking_number == "1Z999"
    assert [e.status for e in tracking.events] == [OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.SHIPPED]


@pytest.mark.asyncio
async def test_order_stats(db_session, customer, checkout):
    first, _ = await checkout(quantity=1)
    await checkout(quantity=1)
    await cancel_order(db_session, customer.id, first)

    stats = await get_order_stats(db_session)

    assert stats.total_orders == 1
    assert stats.total_revenue == Decimal("33.04")
    assert stats.pending_orders == 1
    assert stats.status_counts == {"CONFIRMED": 1, "CANCELLED": 1}


@pytest.mark.asyncio
async def test_stats_on_empty_store(db_session):
    stats = await get_order_stats(db_session)

    assert stats.total_orders == 0
    assert stats.total_revenue == Decimal("0.00")
    assert stats.status_counts == {}
