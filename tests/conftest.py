import pytest
from decimal import Decimal
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from storefront.db.base import Base
from storefront.db.models import Address, Category, Inventory, Product, User, Variant


DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine():
    engine = create_async_engine(DATABASE_URL, echo=False, future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(engine):
    AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
async def customer(db_session):
    user = User(email="parent@example.com", full_name="Pat Parent")
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def admin(db_session):
    user = User(email="admin@example.com", full_name="Ada Admin", is_admin=True)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def category(db_session):
    category = Category(name="Bodysuits", slug="bodysuits")
    db_session.add(category)
    await db_session.commit()
    await db_session.refresh(category)
    return category


@pytest.fixture
def make_variant(db_session, category):
    """Create an active product with one variant and its inventory row."""
    counter = {"n": 0}

    async def _make(
        name: str = "Organic Onesie",
        base_price: str = "24.99",
        stock: int = 10,
        variant_price: str = None,
        product_active: bool = True,
        variant_active: bool = True,
        product_category=None,
    ) -> Variant:
        counter["n"] += 1
        n = counter["n"]
        product = Product(
            name=name,
            slug=f"{name.lower().replace(' ', '-')}-{n}",
            category_id=(product_category or category).id,
            base_price=Decimal(base_price),
            is_active=product_active,
        )
        db_session.add(product)
        await db_session.flush()

        variant = Variant(
            product_id=product.id,
            name=f"{name} 0-3M",
            sku=f"SKU-{n:04d}",
            size="0-3M",
            color="Oat",
            price=Decimal(variant_price) if variant_price is not None else None,
            is_active=variant_active,
        )
        db_session.add(variant)
        await db_session.flush()

        db_session.add(Inventory(variant_id=variant.id, quantity=stock, available=stock))
        await db_session.commit()
        await db_session.refresh(variant)
        return variant

    return _make


@pytest.fixture
async def address(db_session, customer):
    address = Address(
        user_id=customer.id,
        first_name="Pat",
        last_name="Parent",
        line1="1 Market St",
        city="San Francisco",
        state="CA",
        zip="94105",
    )
    db_session.add(address)
    await db_session.commit()
    await db_session.refresh(address)
    return address
