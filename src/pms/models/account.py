"""Account model."""

from datetime import datetime

from sqlalchemy import DateTime, Index, func
from sqlmodel import Field, SQLModel

from pms.models.base import BaseModel

NAME_MAX_LENGTH = 255


class Account(BaseModel, table=True):
    """A materialized user account.

    Password accounts are only ever created once their email is verified;
    accounts without a password (OAuth, legacy signups) may exist unverified.
    Emails created outside the registration flow may carry mixed case, so
    lookups and uniqueness go through lower(email).
    """

    __tablename__ = "accounts"

    email: str = Field(index=True, max_length=255)
    name: str | None = Field(default=None, max_length=NAME_MAX_LENGTH)
    password_hash: str | None = Field(default=None, max_length=255)
    email_verified_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
        description="When ownership of the email was proven",
    )

    @property
    def is_verified(self) -> bool:
        return self.email_verified_at is not None


Index(
    "uq_accounts_email_lower",
    func.lower(Account.__table__.c.email),  # type: ignore[attr-defined]
    unique=True,
)


class AccountRead(SQLModel):
    """Minimal account fields returned after verification."""

    email: str
    email_verified_at: datetime | None
