"""Account lookups and writes used by the verification flows."""

from datetime import datetime

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from pms.models import Account
from pms.models.base import utcnow


def normalize_email(email: str) -> str:
    """Canonical form used for lookups and storage."""
    return email.strip().lower()


async def find_account_by_email(session: AsyncSession, email: str) -> Account | None:
    """Case-insensitive lookup, matching the unique lower(email) index."""
    stmt = select(Account).where(func.lower(Account.email) == normalize_email(email))
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


def create_account(
    session: AsyncSession,
    *,
    name: str | None,
    email: str,
    password_hash: str | None,
    email_verified_at: datetime | None = None,
) -> Account:
    """Stage a new account in the session; the unique email index applies on flush."""
    account = Account(
        name=name,
        email=email,
        password_hash=password_hash,
        email_verified_at=email_verified_at,
    )
    session.add(account)
    return account


def mark_email_verified(account: Account, when: datetime | None = None) -> Account:
    account.email_verified_at = when or utcnow()
    return account
