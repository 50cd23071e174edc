"""SQLModel database models."""

from pms.models.account import NAME_MAX_LENGTH, Account, AccountRead
from pms.models.base import BaseModel, TimestampMixin
from pms.models.verification_token import SECRET_KINDS, TokenKind, VerificationToken

__all__ = [
    "NAME_MAX_LENGTH",
    "SECRET_KINDS",
    "Account",
    "AccountRead",
    "BaseModel",
    "TimestampMixin",
    "TokenKind",
    "VerificationToken",
]
