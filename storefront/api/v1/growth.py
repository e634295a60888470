from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.dependencies import get_current_user
from storefront.db.models import User
from storefront.db.session import get_db
from storefront.schemas.common import ActionResult
from storefront.schemas.growth import GrowthEntryCreate, GrowthEntryResponse, SizePrediction
from storefront.services.growth import add_growth_entry, get_size_prediction, list_growth_entries

router = APIRouter(prefix="/api/v1/registries", tags=["growth"])


@router.get("/{registry_id}/growth", response_model=ActionResult[list[GrowthEntryResponse]])
async def list_entries(
    registry_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    entries = await list_growth_entries(db, user.id, registry_id)
    return ActionResult.ok([GrowthEntryResponse.model_validate(e) for e in entries])


@router.post("/{registry_id}/growth", response_model=ActionResult[GrowthEntryResponse])
async def add_entry(
    registry_id: int,
    data: GrowthEntryCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    entry = await add_growth_entry(db, user.id, registry_id, data)
    return ActionResult.ok(GrowthEntryResponse.model_validate(entry))


@router.post("/{registry_id}/size-prediction", response_model=ActionResult[SizePrediction])
async def predict_sizes(
    registry_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return ActionResult.ok(await get_size_prediction(db, user.id, registry_id))
