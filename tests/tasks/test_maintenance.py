"""Maintenance task tests."""

from contextlib import asynccontextmanager
from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from pms.models import TokenKind, VerificationToken
from pms.models.base import utcnow
from pms.tasks.maintenance import sweep_expired_tokens
from tests.conftest import token_rows


@pytest.fixture
def task_session(session: AsyncSession):
    """Point the task's session factory at the test session."""

    @asynccontextmanager
    async def _context():
        yield session

    with patch("pms.tasks.maintenance.get_session_context", _context):
        yield session


async def _seed(session: AsyncSession) -> None:
    now = utcnow()
    session.add_all(
        [
            VerificationToken(
                kind=TokenKind.PENDING_REGISTRATION.value,
                identifier="old@x.com",
                token="old",
                expires=now - timedelta(hours=2),
            ),
            VerificationToken(
                kind=TokenKind.PENDING_REGISTRATION_PAYLOAD.value,
                identifier="old@x.com",
                token="old",
                payload="{}",
                expires=now - timedelta(hours=2),
            ),
            VerificationToken(
                kind=TokenKind.STANDING_VERIFICATION.value,
                identifier="live@x.com",
                token="live",
                expires=now + timedelta(hours=2),
            ),
        ]
    )
    await session.commit()


@pytest.mark.asyncio
async def test_sweep_dry_run_deletes_nothing(task_session: AsyncSession):
    await _seed(task_session)

    result = await sweep_expired_tokens({}, dry_run=True)

    assert result["success"] is True
    assert result["dry_run"] is True
    assert result["expired_count"] == 2
    assert result["deleted_count"] == 0
    assert result["by_kind"] == {
        TokenKind.PENDING_REGISTRATION.value: 1,
        TokenKind.PENDING_REGISTRATION_PAYLOAD.value: 1,
    }
    assert len(await token_rows(task_session)) == 3


@pytest.mark.asyncio
async def test_sweep_deletes_expired_rows(task_session: AsyncSession):
    await _seed(task_session)

    result = await sweep_expired_tokens({})

    assert result["success"] is True
    assert result["deleted_count"] == 2
    task_session.expunge_all()
    remaining = await token_rows(task_session)
    assert [row.token for row in remaining] == ["live"]


@pytest.mark.asyncio
async def test_sweep_with_nothing_expired(task_session: AsyncSession):
    result = await sweep_expired_tokens({})

    assert result["success"] is True
    assert result["deleted_count"] == 0
    assert result["by_kind"] == {}
