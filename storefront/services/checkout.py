import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from storefront.core.exceptions import (
    InsufficientStockError,
    InvalidDiscountCodeError,
    NotFoundError,
    StorefrontError,
    ValidationError,
)
from storefront.db.models import Address, AuditLog, Cart, DiscountCode, Inventory, Order, OrderItem, OrderStatus, User
from storefront.schemas.checkout import (
    CheckoutLine,
    CheckoutSummary,
    PlaceOrderRequest,
    PlacedOrder,
    ShippingOption,
    TaxQuote,
)
from storefront.services.cart import build_cart_lines, clear_cart
from storefront.services.discount import check_discount_applicable, compute_discount_amount
from storefront.services.order_numbering import OrderNumberAllocator, default_allocator
from storefront.services.pricing import (
    Number,
    assemble_totals,
    calculate_line_total,
    calculate_shipping,
    calculate_subtotal,
    calculate_tax,
    get_shipping_methods,
    get_tax_rate,
    round_money,
    shipping_for_method,
    to_decimal,
)

logger = logging.getLogger(__name__)


def get_shipping_options(cart: Cart) -> list[ShippingOption]:
    """Available shipping methods priced against the current cart subtotal."""
    subtotal = calculate_subtotal(build_cart_lines(cart))
    return [
        ShippingOption(
            id=method.id,
            name=method.name,
            price=round_money(calculate_shipping(subtotal, method.threshold, method.fee, method.fee_at_threshold)),
            estimated_days=method.estimated_days,
            description=method.description,
        )
        for method in get_shipping_methods()
    ]


def calculate_tax_for_address(subtotal: Number, state: Optional[str] = None) -> TaxQuote:
    rate = get_tax_rate(state)
    return TaxQuote(
        tax_rate=rate,
        tax_amount=round_money(calculate_tax(subtotal, rate)),
        taxable_amount=round_money(subtotal),
    )


async def get_user_address(db: AsyncSession, user_id: int, address_id: int) -> Optional[Address]:
    result = await db.execute(
        select(Address).where(Address.id == address_id, Address.user_id == user_id)
    )
    return result.scalar_one_or_none()


def get_checkout_summary(
    cart: Cart,
    shipping_method: str = "standard",
    address: Optional[Address] = None,
) -> CheckoutSummary:
    """Preview totals for the cart. Nothing is rounded except the returned totals."""
    lines = build_cart_lines(cart)
    subtotal = calculate_subtotal(lines)
    shipping = shipping_for_method(shipping_method, subtotal)
    tax = calculate_tax(subtotal, get_tax_rate(address.state if address else None))

    discount_amount = 0
    if cart.discount_code is not None:
        try:
            check_discount_applicable(cart.discount_code, subtotal)
            discount_amount = compute_discount_amount(cart.discount_code, subtotal, shipping)
        except StorefrontError as e:
            logger.info(f"Discount code {cart.discount_code.code} no longer applies to cart {cart.id}: {e.message}")

    totals = assemble_totals(subtotal, tax, shipping, discount_amount).rounded()

    return CheckoutSummary(
        items=[
            CheckoutLine(
                item_id=line.id,
                variant_id=line.variant_id,
                quantity=line.quantity,
                product_name=line.product_name,
                variant_name=line.variant_name,
                unit_price=line.unit_price,
                line_total=line.line_total,
            )
            for line in lines
        ],
        totals=totals,
        shipping_method=shipping_method,
        discount_code=cart.discount_code.code if cart.discount_code else None,
    )


async def _reserve_stock(db: AsyncSession, inventory: Inventory, quantity: int, product_name: str) -> None:
    """Decrement stock in the database only while enough is still available."""
    result = await db.execute(
        update(Inventory)
        .where(Inventory.id == inventory.id, Inventory.available >= quantity)
        .values(
            available=Inventory.available - quantity,
            quantity=Inventory.quantity - quantity,
        )
        .returning(Inventory.available, Inventory.quantity)
        .execution_options(synchronize_session=False)
    )
    row = result.first()
    if row is None:
        current = await db.execute(select(Inventory.available).where(Inventory.id == inventory.id))
        raise InsufficientStockError(current.scalar() or 0, product_name)

    set_committed_value(inventory, "available", row.available)
    set_committed_value(inventory, "quantity", row.quantity)


async def _record_discount_use(db: AsyncSession, discount: DiscountCode) -> None:
    result = await db.execute(
        update(DiscountCode)
        .where(
            DiscountCode.id == discount.id,
            or_(DiscountCode.max_uses.is_(None), DiscountCode.current_uses < DiscountCode.max_uses),
        )
        .values(current_uses=DiscountCode.current_uses + 1)
        .returning(DiscountCode.current_uses)
        .execution_options(synchronize_session=False)
    )
    row = result.first()
    if row is None:
        raise InvalidDiscountCodeError("This discount code has reached its usage limit")

    set_committed_value(discount, "current_uses", row.current_uses)


def snapshot_address(address: Address) -> dict:
    return {
        "first_name": address.first_name,
        "last_name": address.last_name,
        "company": address.company,
        "line1": address.line1,
        "line2": address.line2,
        "city": address.city,
        "state": address.state,
        "zip": address.zip,
        "country": address.country,
        "phone": address.phone,
    }


async def place_order(
    db: AsyncSession,
    user: User,
    cart: Cart,
    request: PlaceOrderRequest,
    allocator: OrderNumberAllocator = default_allocator,
) -> PlacedOrder:
    """
    Turn the cart into a confirmed order.

    Item and address data are copied onto the order so later catalog or address
    edits never change it. Inventory, discount usage, the audit log and the
    cart are all updated in the same transaction as the order insert.
    """
    if not cart.items:
        raise StorefrontError("Your cart is empty")

    shipping_address = await get_user_address(db, user.id, request.shipping_address_id)
    if not shipping_address:
        raise NotFoundError("Shipping address not found")

    if request.use_same_billing_address:
        billing_address = shipping_address
    else:
        if request.billing_address_id is None:
            raise ValidationError(
                "Billing address is required",
                field_errors={"billing_address_id": ["Billing address is required"]},
            )
        billing_address = await get_user_address(db, user.id, request.billing_address_id)
        if not billing_address:
            raise NotFoundError("Billing address not found")

    for item in cart.items:
        variant = item.variant
        if not variant.is_active or not variant.product.is_active:
            raise StorefrontError(f"{variant.product.name} is no longer available")
        available = variant.inventory.available if variant.inventory else 0
        if available < item.quantity:
            raise InsufficientStockError(available, variant.product.name)

    lines = build_cart_lines(cart)
    subtotal = calculate_subtotal(lines)
    shipping = shipping_for_method(request.shipping_method_id, subtotal)
    tax = calculate_tax(subtotal, get_tax_rate(shipping_address.state))

    discount = cart.discount_code
    discount_amount = 0
    if discount is not None:
        check_discount_applicable(discount, subtotal)
        discount_amount = compute_discount_amount(discount, subtotal, shipping)

    totals = assemble_totals(subtotal, tax, shipping, discount_amount).rounded()
    now = datetime.utcnow()

    try:
        order_number = await allocator.next_order_number(db)

        order = Order(
            order_number=order_number,
            user_id=user.id,
            customer_email=request.customer_email or user.email,
            status=OrderStatus.CONFIRMED,
            subtotal=totals.subtotal,
            tax_amount=totals.tax,
            shipping_amount=totals.shipping,
            discount_amount=totals.discount,
            total=totals.total,
            currency=totals.currency,
            shipping_method=request.shipping_method_id,
            shipping_address=snapshot_address(shipping_address),
            billing_address=snapshot_address(billing_address),
            discount_code=discount.code if discount is not None else None,
            notes=request.notes,
            is_gift=request.is_gift,
            gift_message=request.gift_message,
            created_at=now,
            confirmed_at=now,
        )
        db.add(order)
        await db.flush()

        for item, line in zip(sorted(cart.items, key=lambda i: i.id), lines):
            variant = item.variant
            unit_price = round_money(line.unit_price)
            db.add(OrderItem(
                order_id=order.id,
                product_id=line.product_id,
                variant_id=line.variant_id,
                product_name=line.product_name,
                variant_name=line.variant_name,
                sku=line.sku,
                variant_attributes={"size": variant.size, "color": variant.color},
                quantity=line.quantity,
                unit_price=unit_price,
                total_price=round_money(calculate_line_total(unit_price, line.quantity)),
            ))

            await _reserve_stock(db, variant.inventory, line.quantity, line.product_name)

        if discount is not None:
            await _record_discount_use(db, discount)

        db.add(AuditLog(
            user_id=user.id,
            action="order_placed",
            entity="order",
            entity_id=order.id,
            audit_data={"order_number": order_number, "total": str(totals.total)},
        ))

        await clear_cart(db, cart, commit=False)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"Order {order_number} placed by user {user.id} for {totals.total} {totals.currency}")

    return PlacedOrder(order_id=order.id, order_number=order_number, total=to_decimal(totals.total))
