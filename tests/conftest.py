"""Shared fixtures: an in-memory SQLite catalog with a Zara-style brand."""

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from catalog_sync.catalog.categories import attach_category
from catalog_sync.db.models import Base, Brand

from payloads import ZARA_CONFIG


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def zara_brand(session_factory):
    async with session_factory() as db:
        brand = Brand(
            name="Zara",
            slug="zara",
            website_url="https://www.zara.com/tr/tr",
            api_config=dict(ZARA_CONFIG),
        )
        db.add(brand)
        await db.commit()
        return brand


@pytest_asyncio.fixture
async def zara_tree(session_factory, zara_brand):
    """Women's root with two leaf categories and a "see all" aggregator."""
    async with session_factory() as db:
        root = await attach_category(db, zara_brand, "Kadın")
        dresses = await attach_category(db, zara_brand, "Elbise", parent=root, api_id="2458839", sort_order=1)
        shirts = await attach_category(db, zara_brand, "Gömlek", parent=root, api_id="2420369", sort_order=2)
        see_all = await attach_category(db, zara_brand, "Tümünü Gör", parent=root, is_aggregator=True)
        await db.commit()
        return {"root": root, "dresses": dresses, "shirts": shirts, "see_all": see_all}
