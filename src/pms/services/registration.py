"""Account registration, verification resend, and email verification.

An account with a password is never written until its owner redeems the
token mailed to them. Until then the registration lives in the token store
as a pointer row (holding the secret) and a payload row (holding the
encoded name, email and password hash), written and deleted together.
"""

import logging
from dataclasses import dataclass
from typing import NoReturn

from sqlalchemy.exc import IntegrityError as DBIntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pms.config import settings
from pms.models import NAME_MAX_LENGTH, Account, TokenKind
from pms.models.base import utcnow
from pms.services import token_issuer, token_store
from pms.services.accounts import (
    create_account,
    find_account_by_email,
    mark_email_verified,
    normalize_email,
)
from pms.services.email import build_verification_link, email_service
from pms.services.errors import (
    ConflictError,
    DispatchError,
    ExpiredError,
    IntegrityError,
    NotFoundError,
    ValidationError,
)
from pms.services.passwords import hash_password
from pms.services.pending_registration import (
    PayloadDecodeError,
    PendingRegistration,
    decode_registration,
)

logger = logging.getLogger(__name__)

GENERIC_RESEND_MESSAGE = "If the email exists, a verification link has been sent."
INVALID_TOKEN_MESSAGE = "Invalid or expired verification token"


@dataclass
class RegistrationResult:
    message: str
    verification_link: str


@dataclass
class ResendResult:
    message: str
    # None when nothing was sent (unknown or already verified email)
    verification_link: str | None = None


@dataclass
class VerificationResult:
    account: Account
    created: bool
    message: str


async def _dispatch(email: str, token: str) -> str:
    """Send the verification email, raising DispatchError on failure."""
    link = build_verification_link(token)
    sent = await email_service.send_verification_email(to=email, verification_link=link)
    if not sent:
        logger.error(f"Failed to send verification email to {email}")
        raise DispatchError("Failed to send verification email. Please try again.")
    return link


async def register_account(
    session: AsyncSession,
    *,
    name: str,
    email: str,
    password: str,
) -> RegistrationResult:
    """Start a registration: store it as a pending pair and mail the token.

    Raises:
        ValidationError: missing fields, an overlong name or a short password
        ConflictError: an account with the email already exists
        DispatchError: the email could not be sent (the pending pair is kept)
    """
    name = (name or "").strip()
    email = normalize_email(email or "")
    if not name or not email or not password:
        raise ValidationError("All fields are required")
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError(f"Name must be at most {NAME_MAX_LENGTH} characters")
    if len(password) < settings.password_min_length:
        raise ValidationError(
            f"Password must be at least {settings.password_min_length} characters"
        )

    if await find_account_by_email(session, email):
        raise ConflictError("User with this email already exists")

    registration = PendingRegistration(
        name=name,
        email=email,
        password_hash=hash_password(password),
    )
    issued = await _commit_pending_registration(session, registration)
    logger.info(f"Pending registration created for {email}")

    link = await _dispatch(email, issued.token)
    return RegistrationResult(
        message=(
            "Registration successful! Please check your email to verify your account "
            "and complete registration."
        ),
        verification_link=link,
    )


async def _commit_pending_registration(
    session: AsyncSession,
    registration: PendingRegistration,
) -> token_issuer.IssuedToken:
    """Commit a new pending pair, replacing one a concurrent request committed first."""
    issued = await token_issuer.issue_pending_registration(session, registration)
    try:
        await session.commit()
    except DBIntegrityError:
        # The one-pending-pointer-per-email index rejected our pair
        await session.rollback()
        logger.info(f"Concurrent registration for {registration.email}, replacing it")
        issued = await token_issuer.issue_pending_registration(session, registration)
        await session.commit()
    return issued


async def resend_verification(session: AsyncSession, *, email: str) -> ResendResult:
    """Re-issue a verification token for a pending registration or an unverified account.

    Whether an account exists is not revealed: unknown and already verified
    emails both get the generic message.
    """
    email = normalize_email(email or "")
    if not email:
        raise ValidationError("Email is required")

    pointer = await token_store.find_pending_pointer(session, email)
    if pointer is not None:
        old_token = pointer.token
        pointer_id = pointer.id

        if pointer.is_expired():
            await token_store.delete_pending_registration(session, email, old_token)
            await session.commit()
            logger.info(f"Expired pending registration for {email} removed on resend")
            raise ExpiredError("Previous registration expired. Please register again.")

        payload_row = await token_store.find_pending_payload(session, old_token)
        if payload_row is None or payload_row.payload is None:
            await token_store.delete_token(session, pointer_id)
            await session.commit()
            logger.error(f"Pending registration for {email} has no payload row")
            raise IntegrityError("Registration data not found. Please register again.")

        payload = payload_row.payload
        issued = await token_issuer.reissue_pending_registration(
            session, email, old_token, payload
        )
        await session.commit()
        logger.info(f"Pending registration token reissued for {email}")

        link = await _dispatch(email, issued.token)
        return ResendResult(message="Verification email sent successfully", verification_link=link)

    account = await find_account_by_email(session, email)
    if account is None:
        logger.info("Resend requested for unknown email")
        return ResendResult(message=GENERIC_RESEND_MESSAGE)
    if account.is_verified:
        logger.info("Resend requested for an already verified account")
        return ResendResult(message=GENERIC_RESEND_MESSAGE)

    issued = await token_issuer.issue_standing_verification(session, email)
    await session.commit()
    logger.info(f"Standing verification token issued for {email}")

    link = await _dispatch(email, issued.token)
    return ResendResult(message="Verification email sent successfully", verification_link=link)


async def verify_email(session: AsyncSession, *, token: str) -> VerificationResult:
    """Redeem a verification token.

    A pending-registration token creates the account; a standing token marks
    the existing account verified. Either way the token rows are deleted in
    the same transaction, so a replay fails with NotFoundError.
    """
    token = (token or "").strip()
    if not token:
        raise ValidationError("Verification token is required")

    record = await token_store.find_by_token(session, token)
    if record is None:
        raise NotFoundError(INVALID_TOKEN_MESSAGE)

    record_id = record.id
    kind = record.kind
    identifier = record.identifier

    if record.is_expired():
        await token_store.delete_token(session, record_id)
        if kind == TokenKind.PENDING_REGISTRATION.value:
            await token_store.delete_pending_registration(session, identifier, token)
        await session.commit()
        logger.info(f"Expired verification token discovered for {identifier}")
        raise ExpiredError("Verification token has expired. Please register again.")

    if kind == TokenKind.PENDING_REGISTRATION.value:
        return await _redeem_pending(session, token, record_id, identifier)
    return await _redeem_standing(session, record_id, identifier)


async def _redeem_pending(
    session: AsyncSession,
    token: str,
    pointer_id: str,
    email: str,
) -> VerificationResult:
    payload_row = await token_store.find_pending_payload(session, token)
    if payload_row is None or payload_row.payload is None:
        if not await token_store.delete_token(session, pointer_id):
            await _already_redeemed(session)
        await session.commit()
        logger.error(f"Pending registration for {email} has no payload row")
        raise IntegrityError("Registration data not found. Please register again.")

    try:
        registration = decode_registration(payload_row.payload)
    except PayloadDecodeError as e:
        await token_store.delete_pending_registration(session, email, token)
        await session.commit()
        logger.error(f"Unreadable pending registration payload for {email}: {e}")
        raise IntegrityError("Registration data not found. Please register again.") from e

    if await find_account_by_email(session, registration.email):
        await _discard_pending(session, email, token)
        raise ConflictError("Email already registered. Please sign in.")

    # Claim the pointer; a concurrent redemption finds nothing left to delete
    if not await token_store.delete_token(session, pointer_id):
        await _already_redeemed(session)

    account = create_account(
        session,
        name=registration.name,
        email=registration.email,
        password_hash=registration.password_hash,
        email_verified_at=utcnow(),
    )
    await token_store.delete_pending_registration(session, email, token)

    try:
        await session.commit()
    except DBIntegrityError as e:
        # Another verification created the account first
        await session.rollback()
        await _discard_pending(session, email, token)
        raise ConflictError("Email already registered. Please sign in.") from e

    logger.info(f"Account created for {registration.email} after email verification")
    return VerificationResult(
        account=account,
        created=True,
        message=(
            "Email verified successfully! Your account has been created. "
            "You can now sign in."
        ),
    )


async def _redeem_standing(
    session: AsyncSession,
    token_id: str,
    email: str,
) -> VerificationResult:
    account = await find_account_by_email(session, email)
    if account is None:
        await token_store.delete_token(session, token_id)
        await session.commit()
        raise NotFoundError(INVALID_TOKEN_MESSAGE)

    if not await token_store.delete_token(session, token_id):
        await _already_redeemed(session)

    mark_email_verified(account)
    await session.commit()

    logger.info(f"Email verified for existing account {email}")
    return VerificationResult(
        account=account,
        created=False,
        message="Email verified successfully! You can now sign in.",
    )


async def _already_redeemed(session: AsyncSession) -> NoReturn:
    """Abort a redemption whose token row was deleted by a concurrent request."""
    await session.rollback()
    logger.info("Verification token was redeemed by a concurrent request")
    raise NotFoundError(INVALID_TOKEN_MESSAGE)


async def _discard_pending(session: AsyncSession, email: str, token: str) -> None:
    await token_store.delete_pending_registration(session, email, token)
    await session.commit()
    logger.info(f"Discarded pending registration for already registered {email}")
