# tests/conftest.py
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  registers tables on Base.metadata
from app.core.config import Settings
from app.core.enums import NotificationMethod, PlatformName, ProductStatus
from app.database import Base
from app.integrations.base import NormalizedItem
from app.integrations.events import EventDispatcher
from app.models import Product, StockAlert, StoreIntegration

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

FIXED_NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


class RecordingSleep:
    """Stands in for asyncio.sleep so backoff delays can be asserted without waiting."""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def settings():
    """Provide test settings"""
    return Settings(DATABASE_URL=TEST_DATABASE_URL)


@pytest.fixture
def sleeper():
    return RecordingSleep()


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def events():
    return EventDispatcher()


@pytest.fixture(scope="function")
async def test_engine():
    """In-memory SQLite engine with the full schema, one per test."""
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(test_engine):
    """Provide a database session for tests"""
    async_session_local = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session_local() as session:
        yield session
        await session.rollback()


@pytest.fixture
def make_integration(db_session):
    async def _make(**overrides):
        values = {
            "user_id": 7,
            "name": "Main Shopify store",
            "platform": PlatformName.SHOPIFY,
            "shop_url": "demo-store.myshopify.com",
            "api_key": "shpat_test",
            "is_active": True,
            "products_count": 0,
        }
        values.update(overrides)
        integration = StoreIntegration(**values)
        db_session.add(integration)
        await db_session.commit()
        return integration

    return _make


@pytest.fixture
def make_product(db_session):
    async def _make(integration, **overrides):
        values = {
            "store_integration_id": integration.id,
            "external_id": "1001",
            "sku": "TG-1001",
            "title": "Test Guitar",
            "description": None,
            "quantity": 10,
            "low_stock_threshold": 5,
            "price": Decimal("999.99"),
            "status": ProductStatus.ACTIVE,
            "inventory_item_id": "inv-1001",
        }
        values.update(overrides)
        product = Product(**values)
        db_session.add(product)
        await db_session.commit()
        return product

    return _make


@pytest.fixture
def make_alert(db_session):
    async def _make(product, **overrides):
        values = {
            "product_id": product.id,
            "user_id": 7,
            "threshold": 5,
            "notification_method": NotificationMethod.EMAIL,
            "is_active": True,
        }
        values.update(overrides)
        alert = StockAlert(**values)
        db_session.add(alert)
        await db_session.commit()
        return alert

    return _make


@pytest.fixture
def sample_items():
    """Three normalized items as a connector would return them"""
    return [
        NormalizedItem(
            external_id=str(1000 + i),
            sku=f"TG-{1000 + i}",
            title=f"Test Guitar {i}",
            quantity=10,
            price=Decimal("999.99"),
            inventory_item_id=f"inv-{1000 + i}",
        )
        for i in range(1, 4)
    ]
