import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from storefront.core.exceptions import InvalidDiscountCodeError
from storefront.db.models import DiscountCode, DiscountType
from storefront.services.discount import compute_discount_amount, validate_discount_code


def make_code(**overrides) -> DiscountCode:
    values = dict(
        code="WELCOME10",
        discount_type=DiscountType.PERCENTAGE,
        discount_value=Decimal("10"),
        current_uses=0,
        is_active=True,
    )
    values.update(overrides)
    return DiscountCode(**values)


@pytest.mark.asyncio
async def test_code_lookup_is_case_and_whitespace_insensitive(db_session):
    db_session.add(make_code())
    await db_session.commit()

    discount = await validate_discount_code(db_session, "  welcome10 ", Decimal("40"))

    assert discount.code == "WELCOME10"


@pytest.mark.asyncio
async def test_unknown_code_is_rejected(db_session):
    with pytest.raises(InvalidDiscountCodeError, match="Invalid discount code"):
        await validate_discount_code(db_session, "NOPE", Decimal("40"))


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"is_active": False}, "Invalid discount code"),
        ({"expires_at": datetime.utcnow() - timedelta(days=1)}, "expired"),
        ({"starts_at": datetime.utcnow() + timedelta(days=1)}, "not yet active"),
        ({"max_uses": 5, "current_uses": 5}, "usage limit"),
        ({"min_purchase_amount": Decimal("50")}, "Minimum purchase of \\$50.00"),
    ],
)
async def test_unusable_codes_are_rejected(db_session, overrides, message):
    db_session.add(make_code(**overrides))
    await db_session.commit()

    with pytest.raises(InvalidDiscountCodeError, match=message):
        await validate_discount_code(db_session, "WELCOME10", Decimal("40"))


def test_percentage_discount_is_capped_by_max_discount():
    code = make_code(discount_value=Decimal("20"), max_discount=Decimal("15"))

    assert compute_discount_amount(code, Decimal("50")) == Decimal("10")
    assert compute_discount_amount(code, Decimal("200")) == Decimal("15")


def test_fixed_discount_never_exceeds_subtotal():
    code = make_code(discount_type=DiscountType.FIXED, discount_value=Decimal("25"))

    assert compute_discount_amount(code, Decimal("40")) == Decimal("25")
    assert compute_discount_amount(code, Decimal("18.50")) == Decimal("18.50")


def test_shipping_discount_covers_shipping():
    code = make_code(discount_type=DiscountType.SHIPPING, discount_value=Decimal("0"))

    assert compute_discount_amount(code, Decimal("40"), Decimal("5.99")) == Decimal("5.99")


def test_no_code_means_no_discount():
    assert compute_discount_amount(None, Decimal("40")) == Decimal("0")
