"""Shared pytest fixtures.

Provides:
- A throwaway file-based SQLite database per test (aiosqlite)
- Session factory and a default session
- Seeded tenants
- An ASGI client wired to the test database with provider HTTP mocked
"""

import os

# Configuration is read at import time; set it before the package is imported
TEST_ENCRYPTION_KEY = "0123456789abcdef" * 4
os.environ["ENCRYPTION_KEY"] = TEST_ENCRYPTION_KEY
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
for name in (
    "WHATSAPP_VERIFY_TOKEN",
    "WHATSAPP_APP_SECRET",
    "TWILIO_AUTH_TOKEN",
    "STRIPE_WEBHOOK_SECRET",
    "PUBLIC_BASE_URL",
):
    os.environ[name] = ""

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from integration_vault import models, models_integrations  # noqa: E402, F401
from integration_vault.auth import create_access_token  # noqa: E402
from integration_vault.database import Base, create_engine_for, get_db  # noqa: E402
from integration_vault.dependencies import get_http_transport  # noqa: E402
from integration_vault.encryption import FieldCipher  # noqa: E402
from integration_vault.main import app  # noqa: E402
from integration_vault.models import Tenant  # noqa: E402


# ============================================================================
# Crypto
# ============================================================================


@pytest.fixture
def cipher() -> FieldCipher:
    """Cipher using the same key the application reads from ENCRYPTION_KEY."""
    return FieldCipher(bytes.fromhex(TEST_ENCRYPTION_KEY))


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def engine(tmp_path):
    """File-based SQLite so separate sessions really use separate connections."""
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'vault.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def tenant(db) -> Tenant:
    tenant = Tenant(email="owner@example.com", business_name="Bright Cleaning")
    db.add(tenant)
    await db.commit()
    await db.refresh(tenant)
    return tenant


@pytest.fixture
async def other_tenant(db) -> Tenant:
    tenant = Tenant(email="other@example.com", business_name="Sparkle Co")
    db.add(tenant)
    await db.commit()
    await db.refresh(tenant)
    return tenant


# ============================================================================
# HTTP Fixtures
# ============================================================================


class ProviderMock:
    """Records outbound provider requests and answers them with a configurable handler."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.responder = lambda request: httpx.Response(200, json={})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def provider_mock() -> ProviderMock:
    return ProviderMock()


@pytest.fixture
async def client(session_factory, provider_mock):
    """ASGI client against the app with the test database and mocked provider HTTP."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_http_transport] = lambda: provider_mock.transport

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    ) as http_client:
        yield http_client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(tenant) -> dict:
    return {"Authorization": f"Bearer {create_access_token(tenant.id)}"}
