import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import InvalidDiscountCodeError
from storefront.db.models import DiscountCode, DiscountType
from storefront.services.pricing import Number, ZERO, round_money, to_decimal

logger = logging.getLogger(__name__)


def normalize_code(code: str) -> str:
    return code.strip().upper()


def check_discount_applicable(discount: Optional[DiscountCode], subtotal: Number, now: Optional[datetime] = None) -> DiscountCode:
    """Raise InvalidDiscountCodeError unless the code can be used against subtotal right now."""
    now = now or datetime.utcnow()

    if not discount or not discount.is_active:
        raise InvalidDiscountCodeError("Invalid discount code")

    if discount.expires_at and now > discount.expires_at:
        raise InvalidDiscountCodeError("This discount code has expired")

    if discount.starts_at and now < discount.starts_at:
        raise InvalidDiscountCodeError("This discount code is not yet active")

    if discount.max_uses is not None and (discount.current_uses or 0) >= discount.max_uses:
        raise InvalidDiscountCodeError("This discount code has reached its usage limit")

    if discount.min_purchase_amount is not None and to_decimal(subtotal) < discount.min_purchase_amount:
        raise InvalidDiscountCodeError(
            f"Minimum purchase of ${round_money(discount.min_purchase_amount)} required for this discount code"
        )

    return discount


async def get_discount_code(db: AsyncSession, code: str) -> Optional[DiscountCode]:
    result = await db.execute(select(DiscountCode).where(DiscountCode.code == normalize_code(code)))
    return result.scalar_one_or_none()


async def validate_discount_code(db: AsyncSession, code: str, subtotal: Number, now: Optional[datetime] = None) -> DiscountCode:
    discount = await get_discount_code(db, code)
    return check_discount_applicable(discount, subtotal, now)


def compute_discount_amount(discount: Optional[DiscountCode], subtotal: Number, shipping: Number = ZERO) -> Decimal:
    if discount is None:
        return ZERO

    subtotal = to_decimal(subtotal)
    value = to_decimal(discount.discount_value)

    if discount.discount_type == DiscountType.PERCENTAGE:
        amount = subtotal * value / 100
        if discount.max_discount is not None:
            amount = min(amount, to_decimal(discount.max_discount))
    elif discount.discount_type == DiscountType.FIXED:
        amount = min(value, subtotal)
    else:
        amount = to_decimal(shipping)

    return max(amount, ZERO)
