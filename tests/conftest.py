"""
Test configuration and fixtures.
Uses SQLite in-memory for fast tests. Mocks all external services.
"""
import os

# Required settings must exist before callorders.main builds the module-level app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("VAPI_API_KEY", "test_vapi_api_key")
os.environ.setdefault("VAPI_PHONE_NUMBER_ID", "pn_test")
os.environ.setdefault("VAPI_ASSISTANT_ID", "asst_test")
os.environ.setdefault("VAPI_WEBHOOK_BEARER", "test-webhook-bearer")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-supabase-jwt-secret-0123456789abcdef")

import pytest
from unittest.mock import AsyncMock, patch
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.dialects.postgresql import JSONB

from callorders.config import Settings
from callorders.database import Base
import callorders.models  # noqa: F401  registers tables on Base.metadata

WEBHOOK_BEARER = "test-webhook-bearer"
JWT_SECRET = "test-supabase-jwt-secret-0123456789abcdef"


# Register JSONB as JSON for SQLite compatibility in tests
@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(type_, compiler, **kw):
    return "JSON"


@pytest.fixture
async def db():
    """In-memory SQLite database for tests."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def settings():
    """Explicit Settings instance independent of the process environment."""
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite:///:memory:",
        vapi_api_key="test_vapi_api_key",
        vapi_phone_number_id="pn_test",
        vapi_assistant_id="asst_test",
        vapi_webhook_bearer=WEBHOOK_BEARER,
        supabase_jwt_secret=JWT_SECRET,
    )


@pytest.fixture
def auth_header():
    return f"Bearer {WEBHOOK_BEARER}"


@pytest.fixture
def mock_redis():
    """Mock for async Redis - prevents real Redis calls in tests."""
    with patch("callorders.utils.redis_client.get_redis") as mock:
        redis_mock = AsyncMock()
        redis_mock.set = AsyncMock(return_value=True)
        redis_mock.eval = AsyncMock(return_value=1)
        redis_mock.ping = AsyncMock(return_value=True)
        mock.return_value = redis_mock
        yield redis_mock


@pytest.fixture
def sample_order():
    return {
        "customer": {"name": "Jane Doe", "phone": "+15125559876"},
        "items": [{"name": "Large pepperoni pizza", "quantity": 1, "price_cents": 1899}],
        "total_cents": 1899,
    }
