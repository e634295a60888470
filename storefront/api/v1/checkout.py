from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.dependencies import get_current_cart, get_current_user
from storefront.core.exceptions import NotFoundError
from storefront.db.models import Cart, User
from storefront.db.session import get_db
from storefront.schemas.checkout import CheckoutSummary, PlacedOrder, PlaceOrderRequest, ShippingOption, TaxQuote
from storefront.schemas.common import ActionResult
from storefront.services.cart import cart_subtotal
from storefront.services.checkout import (
    calculate_tax_for_address,
    get_checkout_summary,
    get_shipping_options,
    get_user_address,
    place_order,
)

router = APIRouter(prefix="/api/v1/checkout", tags=["checkout"])


@router.get("/shipping-options", response_model=ActionResult[list[ShippingOption]])
async def shipping_options(cart: Cart = Depends(get_current_cart)):
    return ActionResult.ok(get_shipping_options(cart))


@router.get("/tax", response_model=ActionResult[TaxQuote])
async def tax_quote(state: Optional[str] = None, cart: Cart = Depends(get_current_cart)):
    return ActionResult.ok(calculate_tax_for_address(cart_subtotal(cart), state))


@router.get("/summary", response_model=ActionResult[CheckoutSummary])
async def checkout_summary(
    shipping_method: str = "standard",
    address_id: Optional[int] = None,
    cart: Cart = Depends(get_current_cart),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    address = None
    if address_id is not None:
        address = await get_user_address(db, user.id, address_id)
        if not address:
            raise NotFoundError("Address not found")
    return ActionResult.ok(get_checkout_summary(cart, shipping_method, address))


@router.post("", response_model=ActionResult[PlacedOrder])
async def checkout(
    request: PlaceOrderRequest,
    cart: Cart = Depends(get_current_cart),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    placed = await place_order(db, user, cart, request)
    return ActionResult.ok(placed)
