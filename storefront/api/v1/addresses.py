from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.dependencies import get_current_user
from storefront.db.models import User
from storefront.db.session import get_db
from storefront.schemas.address import AddressCreate, AddressResponse
from storefront.schemas.common import ActionResult
from storefront.services.address import create_address, delete_address, get_address, list_addresses

router = APIRouter(prefix="/api/v1/addresses", tags=["addresses"])


@router.get("", response_model=ActionResult[list[AddressResponse]])
async def read_addresses(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    addresses = await list_addresses(db, user.id)
    return ActionResult.ok([AddressResponse.model_validate(a) for a in addresses])


@router.post("", response_model=ActionResult[AddressResponse])
async def add_address(
    data: AddressCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    address = await create_address(db, user.id, data)
    return ActionResult.ok(AddressResponse.model_validate(address))


@router.get("/{address_id}", response_model=ActionResult[AddressResponse])
async def read_address(
    address_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    address = await get_address(db, user.id, address_id)
    return ActionResult.ok(AddressResponse.model_validate(address))


@router.delete("/{address_id}", response_model=ActionResult)
async def remove_address(
    address_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await delete_address(db, user.id, address_id)
    return ActionResult.ok()
