import pytest
from decimal import Decimal

from storefront.core.exceptions import InsufficientStockError, InvalidDiscountCodeError, NotFoundError, StorefrontError
from storefront.db.models import DiscountCode, DiscountType
from storefront.services.cart import (
    add_to_cart,
    apply_discount_code,
    clear_cart,
    get_cart_summary,
    get_or_create_cart,
    remove_discount_code,
    remove_from_cart,
    update_cart_item,
)


@pytest.mark.asyncio
async def test_guest_cart_is_reused_for_same_session(db_session):
    first = await get_or_create_cart(db_session, session_id="guest-1")
    again = await get_or_create_cart(db_session, session_id="guest-1")

    assert first.id == again.id
    assert first.user_id is None


@pytest.mark.asyncio
async def test_cart_needs_an_owner(db_session):
    with pytest.raises(ValueError):
        await get_or_create_cart(db_session)


@pytest.mark.asyncio
async def test_cart_summary_matches_line_arithmetic(db_session, make_variant):
    onesie = await make_variant(name="Organic Onesie", base_price="24.99")
    swaddle = await make_variant(name="Muslin Swaddle", base_price="12.50")
    cart = await get_or_create_cart(db_session, session_id="guest-1")

    cart = await add_to_cart(db_session, cart, onesie.id, 2)
    cart = await add_to_cart(db_session, cart, swaddle.id, 1)
    summary = get_cart_summary(cart)

    assert summary.item_count == 3
    assert summary.subtotal == Decimal("62.48")
    assert [line.line_total for line in summary.items] == [Decimal("49.98"), Decimal("12.50")]


@pytest.mark.asyncio
async def test_variant_price_override_is_used(db_session, make_variant):
    variant = await make_variant(base_price="24.99", variant_price="19.99")
    cart = await get_or_create_cart(db_session, session_id="guest-1")

    cart = await add_to_cart(db_session, cart, variant.id, 1)

    assert get_cart_summary(cart).subtotal == Decimal("19.99")


@pytest.mark.asyncio
async def test_adding_same_variant_accumulates(db_session, make_variant):
    variant = await make_variant(stock=5)
    cart = await get_or_create_cart(db_session, session_id="guest-1")

    cart = await add_to_cart(db_session, cart, variant.id, 2)
    cart = await add_to_cart(db_session, cart, variant.id, 3)

    assert len(cart.items) == 1
    assert cart.items[0].quantity == 5


@pytest.mark.asyncio
async def test_cumulative_quantity_is_checked_against_stock(db_session, make_variant):
    variant = await make_variant(stock=3)
    cart = await get_or_create_cart(db_session, session_id="guest-1")
    cart = await add_to_cart(db_session, cart, variant.id, 2)

    with pytest.raises(StorefrontError, match="Only 1 additional items available"):
        await add_to_cart(db_session, cart, variant.id, 2)


@pytest.mark.asyncio
async def test_out_of_stock_variant_is_rejected(db_session, make_variant):
    variant = await make_variant(stock=1)
    cart = await get_or_create_cart(db_session, session_id="guest-1")

    with pytest.raises(InsufficientStockError) as exc_info:
        await add_to_cart(db_session, cart, variant.id, 2)

    assert exc_info.value.available == 1


@pytest.mark.asyncio
async def test_inactive_products_cannot_be_added(db_session, make_variant):
    hidden_product = await make_variant(product_active=False)
    hidden_variant = await make_variant(variant_active=False)
    cart = await get_or_create_cart(db_session, session_id="guest-1")

    with pytest.raises(StorefrontError, match="no longer available"):
        await add_to_cart(db_session, cart, hidden_product.id, 1)
    with pytest.raises(StorefrontError, match="no longer available"):
        await add_to_cart(db_session, cart, hidden_variant.id, 1)
    with pytest.raises(NotFoundError):
        await add_to_cart(db_session, cart, 9999, 1)


@pytest.mark.asyncio
async def test_update_to_zero_removes_line(db_session, make_variant):
    variant = await make_variant()
    cart = await get_or_create_cart(db_session, session_id="guest-1")
    cart = await add_to_cart(db_session, cart, variant.id, 2)

    cart = await update_cart_item(db_session, cart, cart.items[0].id, 4)
    assert cart.items[0].quantity == 4

    cart = await update_cart_item(db_session, cart, cart.items[0].id, 0)
    assert cart.items == []


@pytest.mark.asyncio
async def test_update_beyond_stock_is_rejected(db_session, make_variant):
    variant = await make_variant(stock=3)
    cart = await get_or_create_cart(db_session, session_id="guest-1")
    cart = await add_to_cart(db_session, cart, variant.id, 1)

    with pytest.raises(InsufficientStockError):
        await update_cart_item(db_session, cart, cart.items[0].id, 4)


@pytest.mark.asyncio
async def test_remove_and_clear(db_session, make_variant):
    first = await make_variant(name="Sleep Sack")
    second = await make_variant(name="Bib")
    cart = await get_or_create_cart(db_session, session_id="guest-1")
    cart = await add_to_cart(db_session, cart, first.id, 1)
    cart = await add_to_cart(db_session, cart, second.id, 1)

    cart = await remove_from_cart(db_session, cart, cart.items[0].id)
    assert len(cart.items) == 1

    with pytest.raises(NotFoundError):
        await remove_from_cart(db_session, cart, 9999)

    await clear_cart(db_session, cart)
    cart = await get_or_create_cart(db_session, session_id="guest-1")
    assert cart.items == []


@pytest.mark.asyncio
async def test_guest_cart_merges_into_user_cart(db_session, customer, make_variant):
    shared = await make_variant(name="Sleep Sack", stock=20)
    guest_only = await make_variant(name="Bib", stock=20)

    user_cart = await get_or_create_cart(db_session, user_id=customer.id)
    user_cart = await add_to_cart(db_session, user_cart, shared.id, 1)

    guest_cart = await get_or_create_cart(db_session, session_id="guest-1")
    guest_cart = await add_to_cart(db_session, guest_cart, shared.id, 2)
    guest_cart = await add_to_cart(db_session, guest_cart, guest_only.id, 1)

    merged = await get_or_create_cart(db_session, user_id=customer.id, session_id="guest-1")

    quantities = {item.variant_id: item.quantity for item in merged.items}
    assert merged.id == user_cart.id
    assert quantities == {shared.id: 3, guest_only.id: 1}

    fresh_guest = await get_or_create_cart(db_session, session_id="guest-1")
    assert fresh_guest.items == []


@pytest.mark.asyncio
async def test_guest_cart_is_adopted_when_user_has_none(db_session, customer, make_variant):
    variant = await make_variant()
    guest_cart = await get_or_create_cart(db_session, session_id="guest-1")
    await add_to_cart(db_session, guest_cart, variant.id, 1)

    cart = await get_or_create_cart(db_session, user_id=customer.id, session_id="guest-1")

    assert cart.id == guest_cart.id
    assert cart.user_id == customer.id
    assert cart.session_id is None


@pytest.mark.asyncio
async def test_discount_code_needs_items(db_session):
    cart = await get_or_create_cart(db_session, session_id="guest-1")

    with pytest.raises(StorefrontError, match="empty cart"):
        await apply_discount_code(db_session, cart, "WELCOME10")


@pytest.mark.asyncio
async def test_apply_and_remove_discount_code(db_session, make_variant):
    db_session.add(DiscountCode(
        code="WELCOME10",
        discount_type=DiscountType.PERCENTAGE,
        discount_value=Decimal("10"),
        min_purchase_amount=Decimal("30"),
    ))
    await db_session.commit()
    variant = await make_variant(base_price="24.99")
    cart = await get_or_create_cart(db_session, session_id="guest-1")
    cart = await add_to_cart(db_session, cart, variant.id, 1)

    with pytest.raises(InvalidDiscountCodeError, match="Minimum purchase"):
        await apply_discount_code(db_session, cart, "welcome10")

    cart = await add_to_cart(db_session, cart, variant.id, 1)
    applied = await apply_discount_code(db_session, cart, "welcome10")
    assert applied.code == "WELCOME10"

    cart = await get_or_create_cart(db_session, session_id="guest-1")
    assert get_cart_summary(cart).discount_code == "WELCOME10"

    cart = await remove_discount_code(db_session, cart)
    assert get_cart_summary(cart).discount_code is None
