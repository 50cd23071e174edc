"""Pytest configuration and fixtures."""

import os
from collections.abc import AsyncGenerator
from datetime import timedelta
from unittest.mock import AsyncMock, patch

# Set test environment before importing app
os.environ["ENVIRONMENT"] = "test"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, select

from pms.config import settings
from pms.database import get_session
from pms.main import app
from pms.models import Account, VerificationToken
from pms.models.base import utcnow
from pms.services.email import email_service
from pms.services.rate_limit import get_rate_limiter


@pytest.fixture(autouse=True)
def mock_send_email():
    """Capture verification emails instead of sending them."""
    with patch.object(
        email_service, "send_verification_email", new_callable=AsyncMock
    ) as mock_send:
        mock_send.return_value = True
        yield mock_send


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Start every test with an empty rate limiter."""
    get_rate_limiter().reset()
    yield
    get_rate_limiter().reset()


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a fresh database (in-memory SQLite by default) per test."""
    url = settings.database_url_test
    kwargs: dict = {"echo": False}
    if url.startswith("sqlite"):
        kwargs["poolclass"] = StaticPool
        kwargs["connect_args"] = {"check_same_thread": False}
    engine = create_async_engine(url, **kwargs)

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session configured like the app's."""
    factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with factory() as session:
        yield session


@pytest.fixture
async def second_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """An independent session on the same database, for overlapping requests."""
    factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with factory() as other:
        yield other


@pytest.fixture
async def client(session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_session():
        yield session

    app.dependency_overrides[get_session] = override_get_session

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def unverified_account(session: AsyncSession) -> Account:
    """An account that exists but never proved its email (e.g. legacy signup)."""
    account = Account(email="legacy@example.com", name="Legacy User")
    session.add(account)
    await session.commit()
    return account


@pytest.fixture
async def verified_account(session: AsyncSession) -> Account:
    """A fully registered account."""
    account = Account(
        email="verified@example.com",
        name="Verified User",
        password_hash="not-a-real-hash",
        email_verified_at=utcnow(),
    )
    session.add(account)
    await session.commit()
    return account


def sent_token(mock_send: AsyncMock) -> str:
    """Extract the token from the most recent verification email."""
    link = mock_send.call_args.kwargs["verification_link"]
    return link.split("token=", 1)[1]


async def token_rows(session: AsyncSession) -> list[VerificationToken]:
    result = await session.execute(select(VerificationToken))
    return list(result.scalars())


async def account_count(session: AsyncSession) -> int:
    result = await session.execute(select(func.count()).select_from(Account))
    return result.scalar_one()


async def expire_all_tokens(session: AsyncSession) -> None:
    """Move every token's expiry into the past."""
    await session.execute(
        update(VerificationToken).values(expires=utcnow() - timedelta(hours=1))
    )
    await session.commit()
