"""Issuance of email verification tokens."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from secrets import token_hex

from sqlalchemy.ext.asyncio import AsyncSession

from pms.config import settings
from pms.models import TokenKind, VerificationToken
from pms.models.base import utcnow
from pms.services import token_store
from pms.services.pending_registration import PendingRegistration, encode_registration

logger = logging.getLogger(__name__)

# 32 random bytes, hex-encoded
TOKEN_BYTES = 32


@dataclass(frozen=True)
class IssuedToken:
    """A freshly issued secret and its absolute expiry."""

    token: str
    expires: datetime


def generate_token() -> str:
    """Generate a URL-safe random token."""
    return token_hex(TOKEN_BYTES)


def token_expiry(now: datetime | None = None) -> datetime:
    """Expiry for a token issued at `now`."""
    return (now or utcnow()) + timedelta(hours=settings.verification_token_expiration_hours)


def _add_pending_pair(session: AsyncSession, email: str, payload: str) -> IssuedToken:
    issued = IssuedToken(token=generate_token(), expires=token_expiry())
    session.add(
        VerificationToken(
            kind=TokenKind.PENDING_REGISTRATION.value,
            identifier=email,
            token=issued.token,
            expires=issued.expires,
        )
    )
    session.add(
        VerificationToken(
            kind=TokenKind.PENDING_REGISTRATION_PAYLOAD.value,
            identifier=email,
            token=issued.token,
            payload=payload,
            expires=issued.expires,
        )
    )
    return issued


async def issue_pending_registration(
    session: AsyncSession,
    registration: PendingRegistration,
) -> IssuedToken:
    """Stage a pointer/payload pair for a new registration.

    Any earlier pending pair for the same email is removed first. Both rows
    are added to the caller's transaction; nothing is written until it
    commits.
    """
    replaced = await token_store.delete_pending_registration(session, registration.email)
    if replaced:
        logger.info(f"Replacing {replaced} pending registration rows for {registration.email}")
    return _add_pending_pair(session, registration.email, encode_registration(registration))


async def reissue_pending_registration(
    session: AsyncSession,
    email: str,
    old_token: str,
    payload: str,
) -> IssuedToken:
    """Supersede a pending pair with a new token carrying the same payload."""
    await token_store.delete_pending_registration(session, email, old_token)
    return _add_pending_pair(session, email, payload)


async def issue_standing_verification(session: AsyncSession, email: str) -> IssuedToken:
    """Stage a verification token for an account that already exists."""
    await token_store.delete_standing_tokens(session, email)
    issued = IssuedToken(token=generate_token(), expires=token_expiry())
    session.add(
        VerificationToken(
            kind=TokenKind.STANDING_VERIFICATION.value,
            identifier=email,
            token=issued.token,
            expires=issued.expires,
        )
    )
    return issued
