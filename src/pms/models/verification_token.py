"""Verification token model for email ownership proofs."""

from datetime import datetime
from enum import Enum

from sqlalchemy import Column, DateTime, Index, String, Text, UniqueConstraint, text
from sqlmodel import Field, SQLModel

from pms.models.base import as_utc, generate_nanoid, utcnow


class TokenKind(str, Enum):
    """What a verification token row represents."""

    # Secret for an account that already exists but is unverified
    STANDING_VERIFICATION = "standing_verification"
    # Secret pointing at a pending registration
    PENDING_REGISTRATION = "pending_registration"
    # Encoded registration data; `token` references the pointer's secret
    PENDING_REGISTRATION_PAYLOAD = "pending_registration_payload"


# Kinds whose token value is a redeemable secret
SECRET_KINDS = (TokenKind.STANDING_VERIFICATION.value, TokenKind.PENDING_REGISTRATION.value)

PENDING_POINTER_CLAUSE = f"kind = '{TokenKind.PENDING_REGISTRATION.value}'"


class VerificationToken(SQLModel, table=True):
    """A row of the verification token store."""

    __tablename__ = "verification_tokens"
    __table_args__ = (
        UniqueConstraint("kind", "token", name="uq_verification_tokens_kind_token"),
        # At most one pending registration per email
        Index(
            "uq_verification_tokens_pending_identifier",
            "identifier",
            unique=True,
            postgresql_where=text(PENDING_POINTER_CLAUSE),
            sqlite_where=text(PENDING_POINTER_CLAUSE),
        ),
    )

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    kind: str = Field(sa_column=Column(String(32), nullable=False, index=True))
    identifier: str = Field(index=True, max_length=255, description="Email address")
    token: str = Field(index=True, max_length=255, description="Random verification token")
    payload: str | None = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
        description="Encoded pending registration (payload rows only)",
    )
    expires: datetime = Field(
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
        index=True,
        description="Token expiration time",
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the token is past its absolute expiry."""
        return as_utc(self.expires) < (now or utcnow())
