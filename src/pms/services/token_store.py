"""Queries against the verification token table.

All functions operate inside the caller's session and never commit, so a
flow can group several reads and writes into one transaction.
"""

from collections import Counter
from datetime import datetime

from sqlalchemy import and_, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import delete, select

from pms.models import SECRET_KINDS, TokenKind, VerificationToken
from pms.models.base import utcnow

PENDING_KINDS = (TokenKind.PENDING_REGISTRATION.value, TokenKind.PENDING_REGISTRATION_PAYLOAD.value)


async def find_by_token(session: AsyncSession, token: str) -> VerificationToken | None:
    """Look up a redeemable token by its secret value."""
    stmt = select(VerificationToken).where(
        VerificationToken.token == token,
        VerificationToken.kind.in_(SECRET_KINDS),  # type: ignore[attr-defined]
    )
    result = await session.execute(stmt)
    return result.scalars().first()


async def find_pending_pointer(session: AsyncSession, email: str) -> VerificationToken | None:
    """Get the newest pending-registration pointer for an email."""
    stmt = (
        select(VerificationToken)
        .where(VerificationToken.identifier == email)
        .where(VerificationToken.kind == TokenKind.PENDING_REGISTRATION.value)
        .order_by(VerificationToken.expires.desc())  # type: ignore[attr-defined]
    )
    result = await session.execute(stmt)
    return result.scalars().first()


async def find_pending_payload(session: AsyncSession, token: str) -> VerificationToken | None:
    """Get the payload row paired with a pointer token."""
    stmt = select(VerificationToken).where(
        VerificationToken.token == token,
        VerificationToken.kind == TokenKind.PENDING_REGISTRATION_PAYLOAD.value,
    )
    result = await session.execute(stmt)
    return result.scalars().first()


async def delete_pending_registration(
    session: AsyncSession,
    email: str,
    token: str | None = None,
) -> int:
    """Delete every pending pointer/payload row for an email.

    When `token` is given, rows paired with that token are removed as well,
    regardless of the email they were filed under.
    """
    condition = and_(
        VerificationToken.identifier == email,
        VerificationToken.kind.in_(PENDING_KINDS),  # type: ignore[attr-defined]
    )
    if token is not None:
        condition = or_(
            condition,
            and_(
                VerificationToken.token == token,
                VerificationToken.kind.in_(PENDING_KINDS),  # type: ignore[attr-defined]
            ),
        )
    stmt = (
        delete(VerificationToken)
        .where(condition)
        .execution_options(synchronize_session="fetch")
    )
    result = await session.execute(stmt)
    return result.rowcount or 0  # type: ignore[attr-defined]


async def delete_standing_tokens(session: AsyncSession, email: str) -> int:
    """Delete all standing-account tokens for an email."""
    stmt = (
        delete(VerificationToken)
        .where(VerificationToken.identifier == email)
        .where(VerificationToken.kind == TokenKind.STANDING_VERIFICATION.value)
        .execution_options(synchronize_session="fetch")
    )
    result = await session.execute(stmt)
    return result.rowcount or 0  # type: ignore[attr-defined]


async def delete_token(session: AsyncSession, token_id: str) -> int:
    """Delete a single row by primary key; 0 means another request already removed it."""
    stmt = delete(VerificationToken).where(VerificationToken.id == token_id)
    result = await session.execute(stmt.execution_options(synchronize_session="fetch"))
    return result.rowcount or 0  # type: ignore[attr-defined]


async def count_expired(session: AsyncSession, now: datetime | None = None) -> dict[str, int]:
    """Count expired rows per kind."""
    cutoff = now or utcnow()
    stmt = select(VerificationToken.kind).where(VerificationToken.expires < cutoff)
    result = await session.execute(stmt)
    return dict(Counter(result.scalars()))


async def delete_expired(session: AsyncSession, now: datetime | None = None) -> dict[str, int]:
    """Delete every row past its expiry and report how many per kind."""
    cutoff = now or utcnow()
    counts = await count_expired(session, cutoff)
    if counts:
        stmt = delete(VerificationToken).where(VerificationToken.expires < cutoff)
        await session.execute(stmt.execution_options(synchronize_session=False))
    return counts


async def list_pending_pointers(session: AsyncSession) -> list[VerificationToken]:
    """All pending-registration pointers, soonest expiry first."""
    stmt = (
        select(VerificationToken)
        .where(VerificationToken.kind == TokenKind.PENDING_REGISTRATION.value)
        .order_by(VerificationToken.expires)
    )
    result = await session.execute(stmt)
    return list(result.scalars())
