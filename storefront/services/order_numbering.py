"""
Order number allocation.

Order numbers look like ``ORD-000042``. The number itself comes from an
allocator; formatting is a separate step so the counter can live wherever
uniqueness is guaranteed.
"""
import logging
import re
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.db.models import Order, OrderNumberSequence

logger = logging.getLogger(__name__)

ORDER_NUMBER_PREFIX = "ORD-"
ORDER_NUMBER_WIDTH = 6
ORDER_NUMBER_PATTERN = re.compile(r"^ORD-\d{6,}$")


def format_order_number(sequence: int) -> str:
    if sequence < 1:
        raise ValueError("Order sequence must be positive")
    return f"{ORDER_NUMBER_PREFIX}{sequence:0{ORDER_NUMBER_WIDTH}d}"


def parse_order_number(order_number: str) -> int:
    if not ORDER_NUMBER_PATTERN.match(order_number):
        raise ValueError(f"Invalid order number: {order_number}")
    return int(order_number[len(ORDER_NUMBER_PREFIX):])


class OrderNumberAllocator(Protocol):
    async def next_order_number(self, db: AsyncSession) -> str:
        ...


class SequenceOrderNumberAllocator:
    """Draws the next number from the order_number_sequence autoincrement key.

    The row is inserted inside the caller's transaction, so two concurrent
    checkouts always receive different ids from the database.
    """

    async def next_order_number(self, db: AsyncSession) -> str:
        row = OrderNumberSequence()
        db.add(row)
        await db.flush()
        order_number = format_order_number(row.id)
        logger.debug(f"Allocated order number {order_number}")
        return order_number


class CountOrderNumberAllocator:
    """count(orders) + 1.

    Two checkouts that read the count before either inserts get the same
    number. Kept for comparison in tests; checkout uses the sequence allocator.
    """

    async def next_order_number(self, db: AsyncSession) -> str:
        result = await db.execute(select(func.count(Order.id)))
        count = result.scalar() or 0
        return format_order_number(count + 1)


default_allocator = SequenceOrderNumberAllocator()
