import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import StorefrontError
from storefront.db.models import Registry
from storefront.schemas.registry import RegistryCreate

logger = logging.getLogger(__name__)


async def create_registry(db: AsyncSession, user_id: int, data: RegistryCreate) -> Registry:
    """Open the user's registry. Each user keeps a single registry."""
    result = await db.execute(select(Registry.id).where(Registry.user_id == user_id))
    if result.first() is not None:
        raise StorefrontError("You already have a registry. You can update your existing registry instead.")

    registry = Registry(user_id=user_id, **data.model_dump())
    db.add(registry)
    await db.commit()
    await db.refresh(registry)

    logger.info(f"Registry {registry.id} created for user {user_id}")
    return registry


async def list_registries(db: AsyncSession, user_id: int) -> List[Registry]:
    result = await db.execute(
        select(Registry).where(Registry.user_id == user_id).order_by(Registry.id)
    )
    return list(result.scalars().all())
