"""Shared pytest fixtures for the Workflow Behavior Engine test suite.

Provides:
- In-memory async SQLite database
- AsyncSession factory
- FastAPI test client (httpx.AsyncClient)
- Pre-seeded tenant data (organization, product, event, employer)
- Auth helpers (JWT tokens)
- Recording mail / webhook channels
"""

import os
from typing import AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

# Override settings BEFORE any app imports
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production-0123456789")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_FORMAT", "colored")

from db.base import Base  # noqa: E402
from db.database import create_db_engine, create_session_factory  # noqa: E402
from core.security import create_access_token  # noqa: E402
from notifications.channels import BaseChannel, DeliveryResult, NotificationChannel  # noqa: E402


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def db_engine():
    """A fresh in-memory database per test."""
    engine = create_db_engine("sqlite+aiosqlite:///:memory:")
    # Import all models so Base.metadata knows about them
    import db.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide a DB session that commits so the app can read the data."""
    async with session_factory() as session:
        yield session
        await session.commit()


# ---------------------------------------------------------------------------
# App / HTTP client fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def app(db_engine, session_factory):
    """Create a FastAPI app instance wired to the test database."""
    import db.database as db_mod
    original_engine = db_mod.engine
    original_session = db_mod.AsyncSessionLocal

    db_mod.engine = db_engine
    db_mod.AsyncSessionLocal = session_factory

    from app.main import create_app
    test_app = create_app()

    yield test_app

    db_mod.engine = original_engine
    db_mod.AsyncSessionLocal = original_session


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        yield ac


# ---------------------------------------------------------------------------
# Channel doubles
# ---------------------------------------------------------------------------

class RecordingChannel(BaseChannel):
    """Delivery channel that records notifications instead of sending them."""

    def __init__(self, channel_type: NotificationChannel = NotificationChannel.EMAIL, fail: bool = False):
        self.channel_type = channel_type
        self.fail = fail
        self.sent = []

    async def send(self, notification):
        self.sent.append(notification)
        if self.fail:
            return DeliveryResult(
                success=False,
                channel=self.channel_type,
                recipient=notification.recipient,
                error="delivery refused",
            )
        return DeliveryResult(
            success=True,
            channel=self.channel_type,
            recipient=notification.recipient,
            delivery_id=f"<{uuid4()}@test>",
        )


@pytest.fixture
def mailer() -> RecordingChannel:
    return RecordingChannel(NotificationChannel.EMAIL)


@pytest.fixture
def webhook_channel() -> RecordingChannel:
    return RecordingChannel(NotificationChannel.WEBHOOK)


@pytest.fixture
def failing_mailer() -> RecordingChannel:
    return RecordingChannel(NotificationChannel.EMAIL, fail=True)


# ---------------------------------------------------------------------------
# Test data fixtures
# ---------------------------------------------------------------------------

async def _make_org(db_session, plan_tier: str):
    from db.models.organization import Organization

    unique_suffix = uuid4().hex[:8]
    org = Organization(
        id=str(uuid4()),
        name=f"Test Organization {unique_suffix}",
        slug=f"test-org-{unique_suffix}",
        plan_tier=plan_tier,
    )
    db_session.add(org)
    await db_session.flush()
    return org


@pytest_asyncio.fixture
async def test_org(db_session):
    """An enterprise-tier organization (every feature enabled)."""
    return await _make_org(db_session, "enterprise")


@pytest_asyncio.fixture
async def make_org(db_session):
    """Factory for organizations on a given plan tier."""
    async def _factory(plan_tier: str):
        return await _make_org(db_session, plan_tier)
    return _factory


@pytest.fixture
def auth_headers(test_org) -> dict:
    """Authorization headers with a valid JWT for test_org."""
    token = create_access_token(user_id=str(uuid4()), org_id=test_org.id, email="owner@example.com")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for():
    """Build Authorization headers for any organization."""
    def _headers(org) -> dict:
        token = create_access_token(user_id=str(uuid4()), org_id=org.id)
        return {"Authorization": f"Bearer {token}"}
    return _headers


async def _add_object(db_session, org, object_type, name, properties, status=None):
    from db.models.domain_object import DomainObject

    obj = DomainObject(
        id=str(uuid4()),
        organization_id=org.id,
        type=object_type,
        name=name,
        status=status,
        properties=properties,
    )
    db_session.add(obj)
    await db_session.flush()
    return obj


@pytest_asyncio.fixture
async def test_product(db_session, test_org):
    """A product priced at 250.00 EUR."""
    return await _add_object(
        db_session, test_org, "product", "Leadership Workshop",
        {"priceCents": 25000, "currency": "EUR"}, status="active",
    )


@pytest_asyncio.fixture
async def test_event(db_session, test_org):
    """An event with room for two attendees."""
    return await _add_object(
        db_session, test_org, "event", "Leadership Workshop - Spring",
        {"maxCapacity": 2}, status="scheduled",
    )


@pytest_asyncio.fixture
async def test_employer(db_session, test_org):
    """A CRM organization that can be invoiced."""
    return await _add_object(
        db_session, test_org, "crm_organization", "Acme Corp",
        {"billingEmail": "billing@acme.example"}, status="active",
    )


@pytest.fixture
def add_object(db_session):
    """Factory for seeding arbitrary domain objects."""
    async def _factory(org, object_type, name, properties=None, status=None):
        return await _add_object(db_session, org, object_type, name, properties or {}, status)
    return _factory


@pytest.fixture
def row_count(db_session):
    """Count rows of a model table."""
    async def _count(model) -> int:
        from sqlalchemy import func, select

        result = await db_session.execute(select(func.count()).select_from(model))
        return result.scalar() or 0
    return _count
