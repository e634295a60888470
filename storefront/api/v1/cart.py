from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.dependencies import get_current_cart
from storefront.db.models import Cart
from storefront.db.session import get_db
from storefront.schemas.cart import AppliedDiscount, CartItemAdd, CartItemUpdate, CartSummary, DiscountCodeApply
from storefront.schemas.common import ActionResult
from storefront.services.cart import (
    add_to_cart,
    apply_discount_code,
    clear_cart,
    get_cart_summary,
    remove_discount_code,
    remove_from_cart,
    update_cart_item,
)

router = APIRouter(prefix="/api/v1/cart", tags=["cart"])


@router.get("", response_model=ActionResult[CartSummary])
async def read_cart(cart: Cart = Depends(get_current_cart)):
    return ActionResult.ok(get_cart_summary(cart))


@router.post("/items", response_model=ActionResult[CartSummary])
async def add_item(
    item: CartItemAdd,
    cart: Cart = Depends(get_current_cart),
    db: AsyncSession = Depends(get_db),
):
    cart = await add_to_cart(db, cart, item.variant_id, item.quantity)
    return ActionResult.ok(get_cart_summary(cart))


@router.patch("/items/{item_id}", response_model=ActionResult[CartSummary])
async def update_item(
    item_id: int,
    update: CartItemUpdate,
    cart: Cart = Depends(get_current_cart),
    db: AsyncSession = Depends(get_db),
):
    cart = await update_cart_item(db, cart, item_id, update.quantity)
    return ActionResult.ok(get_cart_summary(cart))


@router.delete("/items/{item_id}", response_model=ActionResult[CartSummary])
async def remove_item(
    item_id: int,
    cart: Cart = Depends(get_current_cart),
    db: AsyncSession = Depends(get_db),
):
    cart = await remove_from_cart(db, cart, item_id)
    return ActionResult.ok(get_cart_summary(cart))


@router.delete("", response_model=ActionResult)
async def empty_cart(
    cart: Cart = Depends(get_current_cart),
    db: AsyncSession = Depends(get_db),
):
    await clear_cart(db, cart)
    return ActionResult.ok()


@router.post("/discount", response_model=ActionResult[AppliedDiscount])
async def apply_discount(
    payload: DiscountCodeApply,
    cart: Cart = Depends(get_current_cart),
    db: AsyncSession = Depends(get_db),
):
    applied = await apply_discount_code(db, cart, payload.code)
    return ActionResult.ok(applied)


@router.delete("/discount", response_model=ActionResult[CartSummary])
async def remove_discount(
    cart: Cart = Depends(get_current_cart),
    db: AsyncSession = Depends(get_db),
):
    cart = await remove_discount_code(db, cart)
    return ActionResult.ok(get_cart_summary(cart))
