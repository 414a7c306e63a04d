"""Pytest configuration and shared fixtures.

Store-backed tests run against a file-backed SQLite database (aiosqlite)
created per test under tmp_path. Every session gets its own connection, so
conditional updates and the concurrent-accept race are exercised for real.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from entregahub.api import create_app
from entregahub.core.config import (
    DatabaseSettings,
    LifecycleSettings,
    NotificationProviderName,
    NotificationSettings,
    Settings,
)
from entregahub.db import build_engine, build_session_factory
from entregahub.db.models import Base, Business, Role, User
from entregahub.services.lifecycle import DeliveryLifecycleService
from entregahub.services.notifier import NotificationMessage, Notifier, RetryPolicy
from tests.factories import FakeClock, create_business, create_user


class RecordingProvider:
    """Notification provider that keeps every message it is given."""

    name = "recording"

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[NotificationMessage] = []
        self.attempts = 0

    async def send(self, message: NotificationMessage) -> None:
        self.attempts += 1
        if self.fail:
            msg = "gateway unreachable"
            raise ConnectionError(msg)
        self.sent.append(message)


@dataclass
class Parties:
    """Accounts and business seeded for lifecycle tests."""

    merchant: User
    other_merchant: User
    courier: User
    other_courier: User
    admin: User
    business: Business


# ---------------------------------------------------------------------------
# Configuration fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def database_settings(tmp_path) -> DatabaseSettings:
    return DatabaseSettings(url=f"sqlite:///{tmp_path / 'entregahub.db'}")


@pytest.fixture
def lifecycle_settings() -> LifecycleSettings:
    return LifecycleSettings()


@pytest.fixture
def settings(database_settings, lifecycle_settings) -> Settings:
    return Settings(
        database=database_settings,
        lifecycle=lifecycle_settings,
        notifications=NotificationSettings(providers=[NotificationProviderName.LOG]),
    )


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
async def engine(database_settings) -> AsyncGenerator[AsyncEngine, None]:
    """Engine over a fresh schema."""
    engine = build_engine(database_settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def parties(session_factory) -> Parties:
    """Two merchants, two couriers, an admin and an ACTIVE business."""
    async with session_factory() as session:
        merchant = await create_user(session, Role.MERCHANT, name="Ana Merchant")
        other_merchant = await create_user(session, Role.MERCHANT, name="Bruno Merchant")
        courier = await create_user(session, Role.COURIER, name="Carla Courier")
        other_courier = await create_user(session, Role.COURIER, name="Davi Courier")
        admin = await create_user(session, Role.ADMIN, name="Eva Admin")
        business = await create_business(session, merchant)
        await session.commit()

    return Parties(
        merchant=merchant,
        other_merchant=other_merchant,
        courier=courier,
        other_courier=other_courier,
        admin=admin,
        business=business,
    )


# ---------------------------------------------------------------------------
# Service fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recorder() -> RecordingProvider:
    return RecordingProvider()


@pytest.fixture
async def notifier(recorder) -> AsyncGenerator[Notifier, None]:
    notifier = Notifier([recorder], RetryPolicy(max_retries=0, retry_delay=0, timeout=1.0))
    yield notifier
    await notifier.aclose()


@pytest.fixture
def make_service(
    lifecycle_settings, notifier, clock
) -> Callable[[AsyncSession], DeliveryLifecycleService]:
    """Build a lifecycle service bound to a given session."""

    def _make(session: AsyncSession) -> DeliveryLifecycleService:
        return DeliveryLifecycleService(session, lifecycle_settings, notifier, clock=clock)

    return _make


@pytest.fixture
def service(session, make_service) -> DeliveryLifecycleService:
    return make_service(session)


# ---------------------------------------------------------------------------
# API client fixture (in-process testing via ASGI transport)
# ---------------------------------------------------------------------------
@pytest.fixture
def test_app(settings, session_factory, notifier):
    """FastAPI app wired to the test database and recording notifier."""
    return create_app(settings, session_factory=session_factory, notifier=notifier)


@pytest.fixture
async def api_client(test_app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
