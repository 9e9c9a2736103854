"""Shared test fixtures and configuration."""
import pytest
import os
from pathlib import Path
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

# Set test environment variables before importing app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("STORE_NAME", "Test Kitchen")
os.environ.setdefault("NOTIFICATION_PHONE", "+54 9 11 5555-0000")

from app.main import app
from app.db.database import get_db
from app.db.models import Base
from app.core.config import Settings
from app.core.dependencies import get_notification_dispatcher
from app.services.catalog.loader import load_catalog
from app.services.catalog.repository import CatalogRepository
from app.services.notification.dispatcher import NotificationDispatcher
from app.services.ordering.models import CustomerInfo, PaymentMethod


@pytest.fixture
def test_db_url(tmp_path):
    """File-backed SQLite so concurrent sessions use separate connections."""
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
def test_settings(test_db_url):
    """Override settings for testing."""
    return Settings(
        database_url=test_db_url,
        store_name="Test Kitchen",
        pickup_address="Av. Siempre Viva 742",
        transfer_alias="test.kitchen.mp",
        notification_phone="+54 9 11 5555-0000",
        eta_base_minutes=30,
        eta_congestion_threshold=5,
        eta_congestion_increment_minutes=15,
        commit_timeout_seconds=5.0,
    )


@pytest.fixture
async def test_db_engine(test_db_url):
    """Create test database engine."""
    engine = create_async_engine(test_db_url, poolclass=NullPool)

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_db_engine):
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def test_db(session_factory):
    """Create test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def test_catalog_path():
    """Return path to test catalog YAML file."""
    return Path(__file__).parent / "fixtures" / "test_catalog.yaml"


@pytest.fixture
def test_catalog(test_catalog_path):
    """Test catalog loaded from YAML."""
    return load_catalog(str(test_catalog_path))


@pytest.fixture
def products(test_catalog):
    """Test products by id."""
    return {product.id: product for product in test_catalog.products}


@pytest.fixture
async def seeded_db(session_factory, test_catalog):
    """Seed the test catalog; yields a fresh session."""
    async with session_factory() as session:
        await CatalogRepository(session).upsert_products(test_catalog.products)
    async with session_factory() as session:
        yield session


@pytest.fixture
def customer():
    """Valid pickup, cash, immediate checkout input."""
    return CustomerInfo(
        name="Ana Perez",
        phone="1155550000",
        payment_method=PaymentMethod.CASH,
        cash_amount=100000,
    )


@pytest.fixture
def override_get_db(session_factory):
    """Override get_db dependency with a session per request on the test database."""
    async def _override_get_db():
        async with session_factory() as session:
            yield session
    return _override_get_db


@pytest.fixture
def test_client(override_get_db, seeded_db, test_settings, clean_carts):
    """Create FastAPI test client with overrides."""
    # Override dependencies
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_dispatcher] = lambda: NotificationDispatcher(test_settings)

    client = TestClient(app)

    yield client

    # Clear overrides
    app.dependency_overrides.clear()


@pytest.fixture
def clean_carts():
    """Clean up cart sessions and the order change log before and after tests."""
    from app.core.dependencies import cart_registry, order_changes
    cart_registry.clear()
    order_changes.clear()
    yield
    cart_registry.clear()
    order_changes.clear()


# Pytest configuration
def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an asyncio test"
    )
