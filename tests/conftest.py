"""Pytest configuration and fixtures."""

import os
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import AsyncGenerator

# Set testing environment BEFORE any other imports
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENFORCE_BILLING", "true")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from orgbilling.models import (
    Base,
    Member,
    Organization,
    Subscription,
    SubscriptionStatus,
    UsageRecord,
    User,
)

# One shared connection so every session sees the same in-memory database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def test_engine():
    """Create test database engine and initialize schema."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)

    # SQLite leaves foreign keys unenforced unless asked per connection
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def test_db(test_session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with test_session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(test_session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Async test client with the database session swapped for the test one."""
    from orgbilling.api.main import app
    from orgbilling.database import get_session

    async def override_get_session():
        async with test_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_user(test_db):
    """Factory for users, optionally with a usage record."""
    counter = {"n": 0}

    async def _make_user(
        name: str | None = None,
        usage: float | None = None,
        limit: float | None = None,
        with_record: bool = True,
    ) -> User:
        counter["n"] += 1
        name = name or f"User {counter['n']}"
        user = User(name=name, email=f"user{counter['n']}@example.com")
        test_db.add(user)
        await test_db.flush()

        if with_record:
            test_db.add(
                UsageRecord(
                    user_id=user.id,
                    current_period_cost=Decimal(str(usage or 0)),
                    current_usage_limit=Decimal(str(limit)) if limit is not None else None,
                )
            )
        await test_db.commit()
        return user

    return _make_user


@pytest.fixture
def make_subscription(test_db):
    """Factory for subscriptions owned by a user or organization."""

    async def _make_subscription(
        reference_id: str,
        plan: str,
        status: str = SubscriptionStatus.ACTIVE.value,
        seats: int | None = None,
        metadata: dict | None = None,
    ) -> Subscription:
        subscription = Subscription(
            reference_id=reference_id,
            plan=plan,
            status=status,
            seats=seats,
            subscription_metadata=metadata or {},
        )
        test_db.add(subscription)
        await test_db.commit()
        return subscription

    return _make_subscription


@pytest.fixture
def make_organization(test_db, make_user, make_subscription):
    """
    Factory for an organization with members and an optional subscription.

    ``members`` is a list of (usage, limit) pairs; None in place of a pair
    creates a member without a usage record. Members join one second apart
    in list order.
    """

    async def _make_organization(
        name: str = "Acme",
        members: list[tuple[float, float] | None] | None = None,
        plan: str | None = "team",
        seats: int | None = None,
        status: str = SubscriptionStatus.ACTIVE.value,
    ) -> tuple[Organization, list[User]]:
        organization = Organization(name=name, slug=name.lower().replace(" ", "-"))
        test_db.add(organization)
        await test_db.commit()

        joined = datetime(2026, 1, 1, tzinfo=UTC)
        users = []
        for i, pair in enumerate(members or []):
            if pair is None:
                user = await make_user(with_record=False)
            else:
                usage, limit = pair
                user = await make_user(usage=usage, limit=limit)
            test_db.add(
                Member(
                    organization_id=organization.id,
                    user_id=user.id,
                    created_at=joined + timedelta(seconds=i),
                )
            )
            users.append(user)
        await test_db.commit()

        if plan is not None:
            await make_subscription(organization.id, plan, status=status, seats=seats)

        return organization, users

    return _make_organization
