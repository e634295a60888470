import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import NotFoundError
from storefront.db.models import Address
from storefront.schemas.address import AddressCreate

logger = logging.getLogger(__name__)


async def create_address(db: AsyncSession, user_id: int, data: AddressCreate) -> Address:
    address = Address(user_id=user_id, **data.model_dump())
    db.add(address)
    await db.commit()
    await db.refresh(address)

    logger.info(f"Address {address.id} added for user {user_id}")
    return address


async def list_addresses(db: AsyncSession, user_id: int) -> List[Address]:
    """Addresses owned by the user, newest first."""
    result = await db.execute(
        select(Address).where(Address.user_id == user_id).order_by(Address.id.desc())
    )
    return list(result.scalars().all())


async def get_address(db: AsyncSession, user_id: int, address_id: int) -> Address:
    result = await db.execute(
        select(Address).where(Address.id == address_id, Address.user_id == user_id)
    )
    address = result.scalar_one_or_none()
    if not address:
        raise NotFoundError("Address not found")
    return address


async def delete_address(db: AsyncSession, user_id: int, address_id: int) -> None:
    # Orders keep their own copy of the address, so removing it never alters them
    address = await get_address(db, user_id, address_id)
    await db.delete(address)
    await db.commit()

    logger.info(f"Address {address_id} deleted for user {user_id}")
