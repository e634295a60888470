import pytest
from datetime import date
from pydantic import ValidationError as SchemaValidationError

from storefront.core.exceptions import StorefrontError
from storefront.schemas.growth import GrowthEntryCreate
from storefront.schemas.registry import RegistryCreate
from storefront.services.growth import add_growth_entry
from storefront.services.registry import create_registry, list_registries


@pytest.mark.asyncio
async def test_create_registry(db_session, customer):
    registry = await create_registry(
        db_session, customer.id,
        RegistryCreate(name="Baby Parent Registry", child_name="Robin", event_date=date(2026, 12, 1)),
    )

    assert registry.id is not None
    assert registry.user_id == customer.id
    assert registry.predicted_sizes is None
    assert [r.id for r in await list_registries(db_session, customer.id)] == [registry.id]


@pytest.mark.asyncio
async def test_one_registry_per_user(db_session, customer, admin):
    await create_registry(db_session, customer.id, RegistryCreate(name="First"))

    with pytest.raises(StorefrontError, match="already have a registry"):
        await create_registry(db_session, customer.id, RegistryCreate(name="Second"))

    # Another user can still open one
    other = await create_registry(db_session, admin.id, RegistryCreate(name="Other"))
    assert [r.id for r in await list_registries(db_session, admin.id)] == [other.id]
    assert len(await list_registries(db_session, customer.id)) == 1


@pytest.mark.asyncio
async def test_created_registry_accepts_growth_entries(db_session, customer):
    registry = await create_registry(db_session, customer.id, RegistryCreate(name="Robin's Registry"))

    entry = await add_growth_entry(
        db_session, customer.id, registry.id, GrowthEntryCreate(height=61.0, weight=6.1)
    )

    assert entry.registry_id == registry.id


def test_registry_name_is_required():
    with pytest.raises(SchemaValidationError):
        RegistryCreate(name="")
    with pytest.raises(SchemaValidationError):
        RegistryCreate(name="Registry", description="x" * 1001)
