import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.core.config import settings
from storefront.core.exceptions import InsufficientStockError, NotFoundError, StorefrontError
from storefront.db.models import Cart, CartItem, Variant
from storefront.schemas.cart import AppliedDiscount, CartLine, CartSummary
from storefront.services.discount import validate_discount_code
from storefront.services.pricing import calculate_line_total, calculate_subtotal, resolve_unit_price

logger = logging.getLogger(__name__)


def _cart_query():
    return select(Cart).options(
        selectinload(Cart.items)
        .selectinload(CartItem.variant)
        .selectinload(Variant.product),
        selectinload(Cart.items)
        .selectinload(CartItem.variant)
        .selectinload(Variant.inventory),
        selectinload(Cart.discount_code),
    ).execution_options(populate_existing=True)


async def _load_cart(db: AsyncSession, cart_id: int) -> Cart:
    result = await db.execute(_cart_query().where(Cart.id == cart_id))
    return result.scalar_one()


async def _find_cart(db: AsyncSession, user_id: Optional[int] = None, session_id: Optional[str] = None) -> Optional[Cart]:
    query = _cart_query()
    if user_id is not None:
        query = query.where(Cart.user_id == user_id)
    else:
        query = query.where(Cart.session_id == session_id)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def _merge_carts(db: AsyncSession, source: Cart, target: Cart) -> None:
    existing = {item.variant_id: item for item in target.items}
    for item in source.items:
        if item.variant_id in existing:
            merged = existing[item.variant_id]
            merged.quantity = min(merged.quantity + item.quantity, settings.MAX_CART_QUANTITY)
        else:
            db.add(CartItem(cart_id=target.id, variant_id=item.variant_id, quantity=item.quantity))

    if target.discount_code_id is None and source.discount_code_id is not None:
        target.discount_code_id = source.discount_code_id

    await db.delete(source)
    logger.info(f"Merged guest cart {source.id} into cart {target.id}")


async def get_or_create_cart(db: AsyncSession, user_id: Optional[int] = None, session_id: Optional[str] = None) -> Cart:
    """
    Cart for a signed-in user or a guest session.

    When a user has a guest cart for the current session, its items are folded
    into the user's cart and the guest cart is removed.
    """
    if user_id is None and not session_id:
        raise ValueError("Either user_id or session_id is required")

    if user_id is None:
        cart = await _find_cart(db, session_id=session_id)
        if cart:
            return cart
        cart = Cart(session_id=session_id)
        db.add(cart)
        await db.commit()
        return await _load_cart(db, cart.id)

    cart = await _find_cart(db, user_id=user_id)
    guest_cart = await _find_cart(db, session_id=session_id) if session_id else None

    if cart is None and guest_cart is not None:
        guest_cart.user_id = user_id
        guest_cart.session_id = None
        await db.commit()
        return await _load_cart(db, guest_cart.id)

    if cart is None:
        cart = Cart(user_id=user_id)
        db.add(cart)
        await db.commit()
        return await _load_cart(db, cart.id)

    if guest_cart is not None and guest_cart.id != cart.id:
        await _merge_carts(db, guest_cart, cart)
        await db.commit()
        return await _load_cart(db, cart.id)

    return cart


async def _get_purchasable_variant(db: AsyncSession, variant_id: int) -> Variant:
    result = await db.execute(
        select(Variant)
        .options(selectinload(Variant.product), selectinload(Variant.inventory))
        .where(Variant.id == variant_id)
    )
    variant = result.scalar_one_or_none()
    if not variant:
        raise NotFoundError("Product variant not found")
    if not variant.is_active or not variant.product.is_active:
        raise StorefrontError("This product is no longer available")
    return variant


def _available(variant: Variant) -> int:
    return variant.inventory.available if variant.inventory else 0


def _find_item(cart: Cart, item_id: int) -> CartItem:
    for item in cart.items:
        if item.id == item_id:
            return item
    raise NotFoundError("Cart item not found")


async def add_to_cart(db: AsyncSession, cart: Cart, variant_id: int, quantity: int = 1) -> Cart:
    variant = await _get_purchasable_variant(db, variant_id)
    available = _available(variant)

    if available < quantity:
        raise InsufficientStockError(available, variant.product.name)

    existing = next((item for item in cart.items if item.variant_id == variant_id), None)
    if existing:
        new_quantity = existing.quantity + quantity
        if new_quantity > available:
            raise StorefrontError(
                f"Cannot add more items. Only {max(available - existing.quantity, 0)} additional items available"
            )
        if new_quantity > settings.MAX_CART_QUANTITY:
            raise StorefrontError(f"Maximum quantity per item is {settings.MAX_CART_QUANTITY}")
        existing.quantity = new_quantity
    else:
        db.add(CartItem(cart_id=cart.id, variant_id=variant_id, quantity=quantity))

    await db.commit()
    logger.info(f"Added variant {variant_id} x{quantity} to cart {cart.id}")
    return await _load_cart(db, cart.id)


async def update_cart_item(db: AsyncSession, cart: Cart, item_id: int, quantity: int) -> Cart:
    item = _find_item(cart, item_id)

    if quantity == 0:
        await db.delete(item)
        await db.commit()
        return await _load_cart(db, cart.id)

    available = _available(item.variant)
    if quantity > available:
        raise InsufficientStockError(available, item.variant.product.name)

    item.quantity = quantity
    await db.commit()
    return await _load_cart(db, cart.id)


async def remove_from_cart(db: AsyncSession, cart: Cart, item_id: int) -> Cart:
    item = _find_item(cart, item_id)
    await db.delete(item)
    await db.commit()
    return await _load_cart(db, cart.id)


async def clear_cart(db: AsyncSession, cart: Cart, commit: bool = True) -> None:
    for item in list(cart.items):
        await db.delete(item)
    cart.discount_code_id = None
    if commit:
        await db.commit()


async def apply_discount_code(db: AsyncSession, cart: Cart, code: str) -> AppliedDiscount:
    if not cart.items:
        raise StorefrontError("Cannot apply discount to empty cart")

    discount = await validate_discount_code(db, code, cart_subtotal(cart))
    cart.discount_code_id = discount.id
    await db.commit()
    logger.info(f"Discount code {discount.code} applied to cart {cart.id}")

    return AppliedDiscount(
        code=discount.code,
        description=discount.description,
        discount_type=discount.discount_type.value,
        discount_value=discount.discount_value,
    )


async def remove_discount_code(db: AsyncSession, cart: Cart) -> Cart:
    cart.discount_code_id = None
    await db.commit()
    return await _load_cart(db, cart.id)


def build_cart_lines(cart: Cart) -> list[CartLine]:
    lines = []
    for item in sorted(cart.items, key=lambda i: i.id):
        variant = item.variant
        product = variant.product
        unit_price = resolve_unit_price(variant.price, product.base_price)
        lines.append(CartLine(
            id=item.id,
            variant_id=variant.id,
            product_id=product.id,
            product_name=product.name,
            variant_name=variant.name,
            sku=variant.sku,
            size=variant.size,
            color=variant.color,
            unit_price=unit_price,
            compare_at_price=variant.compare_at_price or product.compare_at_price,
            quantity=item.quantity,
            line_total=calculate_line_total(unit_price, item.quantity),
            available=_available(variant),
        ))
    return lines


def cart_subtotal(cart: Cart):
    return calculate_subtotal(build_cart_lines(cart))


def get_cart_summary(cart: Cart) -> CartSummary:
    lines = build_cart_lines(cart)
    return CartSummary(
        id=cart.id,
        items=lines,
        item_count=sum(line.quantity for line in lines),
        subtotal=calculate_subtotal(lines),
        discount_code=cart.discount_code.code if cart.discount_code else None,
    )
