"""Encoding of not-yet-created account data carried by payload token rows."""

import pydantic
from pydantic import BaseModel


class PendingRegistration(BaseModel):
    """Account data held until the email address is verified."""

    name: str
    email: str
    password_hash: str


class PayloadDecodeError(ValueError):
    """Stored payload is not a valid encoded registration."""


def encode_registration(registration: PendingRegistration) -> str:
    """Serialize a pending registration to an opaque string."""
    return registration.model_dump_json()


def decode_registration(payload: str) -> PendingRegistration:
    """Deserialize a string produced by encode_registration."""
    try:
        return PendingRegistration.model_validate_json(payload)
    except pydantic.ValidationError as e:
        raise PayloadDecodeError(f"Invalid registration payload: {e.error_count()} errors") from e
