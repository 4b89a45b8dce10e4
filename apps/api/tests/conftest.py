import os

# Settings are read at import time; the app must never reach a real database here.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from callrecon.db import get_db
from callrecon.main import app
from callrecon.models import Base, Tenant, VoiceApplication
from callrecon.services.broadcaster import broadcaster

TENANT_DOMAIN = "acme.cloudonix.net"
PROVIDER_HEADERS = {"User-Agent": "Cloudonix-Webhook/1.0"}
CXML_DOCUMENT = '<?xml version="1.0" encoding="UTF-8"?><Response><Say>Welcome</Say></Response>'


# 1. One in-memory database per test, shared by every connection
@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(test_engine):
    async_session = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:
        yield session


# 2. Override the app's get_db dependency
@pytest.fixture
async def client(db_session):
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await broadcaster.drain()
    app.dependency_overrides.clear()


# 3. Tenant data owned by the tenant service in production
@pytest.fixture
async def tenant(db_session):
    tenant = Tenant(name="Acme", slug="acme", domain=TENANT_DOMAIN)
    db_session.add(tenant)
    await db_session.commit()
    return tenant


@pytest.fixture
async def other_tenant(db_session):
    tenant = Tenant(name="Globex", slug="globex", domain="globex.cloudonix.net")
    db_session.add(tenant)
    await db_session.commit()
    return tenant


@pytest.fixture
async def voice_application(db_session, tenant):
    application = VoiceApplication(
        tenant_id=tenant.id,
        name="Main IVR",
        cxml_definition=CXML_DOCUMENT,
        provider_app_id="app-main",
    )
    db_session.add(application)
    await db_session.commit()
    return application
