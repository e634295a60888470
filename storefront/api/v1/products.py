from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.db.session import get_db
from storefront.schemas.common import ActionResult
from storefront.schemas.product import BundleQuoteRequest, FrequentlyBoughtResponse
from storefront.services.bundle import BundleQuote
from storefront.services.recommendation import frequently_bought_together, quote_bundle

router = APIRouter(prefix="/api/v1", tags=["products"])


@router.get("/products/{product_id}/frequently-bought", response_model=ActionResult[FrequentlyBoughtResponse])
async def frequently_bought(
    product_id: int,
    limit: int = 3,
    db: AsyncSession = Depends(get_db),
):
    if limit < 1 or limit > 12:
        limit = 3
    return ActionResult.ok(await frequently_bought_together(db, product_id, limit))


@router.post("/bundles/quote", response_model=ActionResult[BundleQuote])
async def bundle_quote(
    payload: BundleQuoteRequest,
    db: AsyncSession = Depends(get_db),
):
    return ActionResult.ok(await quote_bundle(db, payload.product_ids, payload.selected_ids))
