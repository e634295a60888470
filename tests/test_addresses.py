import pytest
from pydantic import ValidationError as SchemaValidationError

from storefront.core.exceptions import NotFoundError
from storefront.schemas.address import AddressCreate
from storefront.services.address import create_address, delete_address, get_address, list_addresses


def home_address(**overrides) -> AddressCreate:
    fields = dict(
        first_name="Pat",
        last_name="Parent",
        line1="500 Howard St",
        city="San Francisco",
        state="CA",
        zip="94105",
        phone="+1 (415) 555-0100",
    )
    fields.update(overrides)
    return AddressCreate(**fields)


@pytest.mark.asyncio
async def test_create_and_list_addresses(db_session, customer):
    first = await create_address(db_session, customer.id, home_address())
    second = await create_address(db_session, customer.id, home_address(line1="9 Pine St", country="ca"))

    addresses = await list_addresses(db_session, customer.id)

    assert [a.id for a in addresses] == [second.id, first.id]
    assert second.country == "CA"
    assert first.user_id == customer.id


@pytest.mark.asyncio
async def test_addresses_are_scoped_to_their_owner(db_session, customer, admin):
    address = await create_address(db_session, customer.id, home_address())

    assert await list_addresses(db_session, admin.id) == []
    with pytest.raises(NotFoundError, match="Address not found"):
        await get_address(db_session, admin.id, address.id)
    with pytest.raises(NotFoundError):
        await delete_address(db_session, admin.id, address.id)


@pytest.mark.asyncio
async def test_delete_address(db_session, customer):
    address = await create_address(db_session, customer.id, home_address())

    await delete_address(db_session, customer.id, address.id)

    assert await list_addresses(db_session, customer.id) == []


def test_address_requires_state_and_valid_phone():
    with pytest.raises(SchemaValidationError):
        home_address(state="")
    with pytest.raises(SchemaValidationError):
        home_address(phone="call me")
    with pytest.raises(SchemaValidationError):
        home_address(country="USA")
