"""Pytest configuration and fixtures for GoAgri admin tests.

Each test gets a fresh in-memory SQLite database (one shared connection
through StaticPool) and an HTTP client whose requests each open their own
session on it, the way `get_db` does in production.  Broadcasts are
captured by a recording broadcaster instead of going to Redis.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("BROADCAST_ENABLED", "false")

from datetime import datetime
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from goagri.auth.jwt import create_access_token
from goagri.database import Base, get_db
from goagri.main import app
from goagri.models.activity_log import ActivityLog
from goagri.models.category import Category
from goagri.models.delivery import Delivery
from goagri.models.product import Product
from goagri.models.user import User, UserRole
from goagri.services.broadcast import Broadcaster, get_broadcaster


class RecordingBroadcaster(Broadcaster):
    """Keeps published events in memory for assertions."""

    def __init__(self):
        super().__init__(channel="test-events", enabled=True)
        self.events: list[tuple[str, dict]] = []

    async def publish(self, event: str, payload: dict) -> bool:
        self.events.append((event, payload))
        return True

    @property
    def names(self) -> list[str]:
        return [event for event, _ in self.events]

    def last(self, event: str) -> dict:
        return [payload for name, payload in self.events if name == event][-1]


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging data and checking results.

    Commit anything you add before making a request: the client's
    sessions share the same connection.
    """
    async with session_factory() as session:
        yield session


@pytest.fixture
def fetch(db_session: AsyncSession):
    """Reload a row from the database, bypassing the identity map."""

    async def _fetch(model, ident):
        return await db_session.get(model, ident, populate_existing=True)

    return _fetch


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest_asyncio.fixture
async def client(session_factory, broadcaster) -> AsyncGenerator[AsyncClient, None]:
    """Test client with the database and broadcaster dependencies overridden."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_broadcaster] = lambda: broadcaster

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Users and tokens ─────────────────────────────────────────────

async def _create_user(session: AsyncSession, email: str, name: str | None, role: UserRole) -> User:
    user = User(email=email, name=name, role=role.value)
    session.add(user)
    await session.commit()
    return user


def _headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


@pytest_asyncio.fixture
async def superadmin(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "root@goagri.test", "Super Admin", UserRole.SUPERADMIN)


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "shop@goagri.test", "Shop Admin", UserRole.ADMIN)


@pytest_asyncio.fixture
async def nameless_admin(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "anon@goagri.test", None, UserRole.ADMIN)


@pytest_asyncio.fixture
async def customer(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "farmer@goagri.test", "Farmer Joe", UserRole.USER)


@pytest.fixture
def superadmin_headers(superadmin: User) -> dict:
    return _headers(superadmin)


@pytest.fixture
def admin_headers(admin: User) -> dict:
    return _headers(admin)


@pytest.fixture
def auth_headers():
    """Build bearer headers for any user."""
    return _headers


# ── Domain data ──────────────────────────────────────────────────

@pytest_asyncio.fixture
async def category(db_session: AsyncSession) -> Category:
    category = Category(
        category_name="Fertilizer",
        category_description="Soil nutrition",
        active=True,
    )
    db_session.add(category)
    await db_session.commit()
    return category


@pytest_asyncio.fixture
async def product(db_session: AsyncSession, category: Category) -> Product:
    product = Product(
        name="NPK 17-17-17",
        description="Balanced compound fertilizer",
        price=100.0,
        stock=40,
        min_stock=5,
        weight_kg=50.0,
        category_id=category.id,
        images=["https://cdn.goagri.test/npk.jpg"],
        active=True,
    )
    db_session.add(product)
    await db_session.commit()
    return product


@pytest_asyncio.fixture
async def delivery(db_session: AsyncSession) -> Delivery:
    delivery = Delivery(
        order_id="ORD-1001",
        type="in-house",
        status="pending",
        delivery_address="Plot 12, Kisumu Road",
        delivery_fee=250.0,
    )
    db_session.add(delivery)
    await db_session.commit()
    return delivery


@pytest.fixture
def make_log(db_session: AsyncSession):
    """Insert an activity log row directly, with overridable fields."""

    async def _make_log(actor: User, **fields) -> ActivityLog:
        values = {
            "admin_id": actor.id,
            "admin_name": actor.name,
            "admin_email": actor.email,
            "action": "UPDATE_PRODUCT",
            "entity": "PRODUCT",
            "description": f"{actor.name} did something",
            "status": "PENDING",
            "requires_approval": True,
            "changes": {"before": None, "after": None},
            "created_at": datetime.utcnow(),
        }
        values.update(fields)
        log = ActivityLog(**values)
        db_session.add(log)
        await db_session.commit()
        return log

    return _make_log


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "approval: Approval workflow tests")
