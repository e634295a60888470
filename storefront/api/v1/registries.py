from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.dependencies import get_current_user
from storefront.db.models import User
from storefront.db.session import get_db
from storefront.schemas.common import ActionResult
from storefront.schemas.registry import RegistryCreate, RegistryResponse
from storefront.services.registry import create_registry, list_registries

router = APIRouter(prefix="/api/v1/registries", tags=["registries"])


@router.get("", response_model=ActionResult[list[RegistryResponse]])
async def read_registries(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    registries = await list_registries(db, user.id)
    return ActionResult.ok([RegistryResponse.model_validate(r) for r in registries])


@router.post("", response_model=ActionResult[RegistryResponse])
async def open_registry(
    data: RegistryCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    registry = await create_registry(db, user.id, data)
    return ActionResult.ok(RegistryResponse.model_validate(registry))
