"""Test fixtures and configuration."""

import os
from collections.abc import AsyncGenerator, Callable
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment before importing app
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["IDENTITY_JWT_SECRET"] = "test-secret-key-for-testing-only-12345678"
os.environ["DEBUG"] = "true"
os.environ["REDIS_URL"] = "memory://"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from auth import create_identity_token
from database import Base, get_db
from main import app
from services.document_store import DocumentStore
from services.rates_client import RatesClient
from services.selection_cache import JsonFileStorage

SAMPLE_RATES = {
    "hourlyRate": 50.0,
    "project": {"landing": 20.0, "corporate": 60.0, "shop": 120.0},
    "design": {"template": 10.0, "custom": 40.0},
    "modules": {"seo": 8.0, "blog": 12.0, "crm": 30.0},
}


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database wired into the app for one test."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        """Override database dependency for testing."""
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with session_factory() as session:
        yield session

    app.dependency_overrides.pop(get_db, None)
    await test_engine.dispose()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def seeded_rates(db_session: AsyncSession) -> dict:
    """Store the sample rate table as the config/rates document."""
    await DocumentStore(db_session).set("config", "rates", SAMPLE_RATES)
    return SAMPLE_RATES


@pytest.fixture
def rates_client(db_session: AsyncSession) -> RatesClient:
    """Rates client talking to the app in-process."""
    return RatesClient("http://test", transport=ASGITransport(app=app))


@pytest.fixture
def storage(tmp_path: Path) -> JsonFileStorage:
    return JsonFileStorage(tmp_path / "state.json")


def mock_rates_client(handler: Callable[[httpx.Request], httpx.Response]) -> RatesClient:
    """Rates client whose requests are answered by ``handler``."""
    return RatesClient("http://test", transport=httpx.MockTransport(handler))


def admin_token() -> str:
    return create_identity_token("admin-1", email="admin@example.com", roles=["admin"])


def customer_token() -> str:
    return create_identity_token("user-1", email="user@example.com", roles=[])


def get_auth_headers(token: str) -> dict:
    """Generate auth headers for a token."""
    return {"Authorization": f"Bearer {token}"}
