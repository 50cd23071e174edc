"""Token issuance and token store tests."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from pms.config import settings
from pms.models import TokenKind, VerificationToken
from pms.models.base import utcnow
from pms.services import token_issuer, token_store
from pms.services.pending_registration import (
    PayloadDecodeError,
    PendingRegistration,
    decode_registration,
    encode_registration,
)
from tests.conftest import token_rows


def _registration(email: str = "a@x.com") -> PendingRegistration:
    return PendingRegistration(name="A", email=email, password_hash="$argon2id$hash")


def test_generate_token_is_random_hex():
    first = token_issuer.generate_token()
    second = token_issuer.generate_token()

    assert len(first) == token_issuer.TOKEN_BYTES * 2
    int(first, 16)
    assert first != second


def test_token_expiry():
    now = datetime(2025, 1, 1, tzinfo=UTC)
    expected = now + timedelta(hours=settings.verification_token_expiration_hours)
    assert token_issuer.token_expiry(now) == expected


def test_decode_rejects_garbage():
    with pytest.raises(PayloadDecodeError):
        decode_registration("not a payload")
    with pytest.raises(PayloadDecodeError):
        decode_registration('{"name": "A"}')


def test_decode_reads_encoded_registration():
    registration = _registration()
    assert decode_registration(encode_registration(registration)) == registration


def test_is_expired_handles_naive_datetimes():
    """Rows read back from SQLite carry naive datetimes."""
    past = VerificationToken(
        kind=TokenKind.STANDING_VERIFICATION.value,
        identifier="a@x.com",
        token="t",
        expires=datetime.now(UTC).replace(tzinfo=None) - timedelta(minutes=1),
    )
    future = VerificationToken(
        kind=TokenKind.STANDING_VERIFICATION.value,
        identifier="a@x.com",
        token="t",
        expires=utcnow() + timedelta(minutes=1),
    )
    assert past.is_expired() is True
    assert future.is_expired() is False


@pytest.mark.asyncio
async def test_find_by_token_skips_payload_rows(session: AsyncSession):
    issued = await token_issuer.issue_pending_registration(session, _registration())
    await session.commit()

    record = await token_store.find_by_token(session, issued.token)
    assert record is not None
    assert record.kind == TokenKind.PENDING_REGISTRATION.value
    assert record.payload is None

    payload_row = await token_store.find_pending_payload(session, issued.token)
    assert payload_row is not None
    assert decode_registration(payload_row.payload).email == "a@x.com"


@pytest.mark.asyncio
async def test_reissue_carries_payload(session: AsyncSession):
    first = await token_issuer.issue_pending_registration(session, _registration())
    await session.commit()
    payload = (await token_store.find_pending_payload(session, first.token)).payload

    second = await token_issuer.reissue_pending_registration(
        session, "a@x.com", first.token, payload
    )
    await session.commit()

    assert second.token != first.token
    assert await token_store.find_by_token(session, first.token) is None
    assert await token_store.find_pending_payload(session, first.token) is None
    new_payload = await token_store.find_pending_payload(session, second.token)
    assert new_payload.payload == payload
    pointer = await token_store.find_pending_pointer(session, "a@x.com")
    assert pointer.token == second.token


@pytest.mark.asyncio
async def test_pending_and_standing_are_independent(session: AsyncSession):
    """Issuing one kind does not disturb the other kind's rows."""
    await token_issuer.issue_pending_registration(session, _registration())
    await token_issuer.issue_standing_verification(session, "a@x.com")
    await session.commit()
    await token_issuer.issue_standing_verification(session, "a@x.com")
    await session.commit()

    kinds = sorted(row.kind for row in await token_rows(session))
    assert kinds == [
        TokenKind.PENDING_REGISTRATION.value,
        TokenKind.PENDING_REGISTRATION_PAYLOAD.value,
        TokenKind.STANDING_VERIFICATION.value,
    ]


@pytest.mark.asyncio
async def test_delete_expired_only_removes_expired(session: AsyncSession):
    now = utcnow()
    session.add(
        VerificationToken(
            kind=TokenKind.STANDING_VERIFICATION.value,
            identifier="old@x.com",
            token="old",
            expires=now - timedelta(hours=1),
        )
    )
    session.add(
        VerificationToken(
            kind=TokenKind.STANDING_VERIFICATION.value,
            identifier="new@x.com",
            token="new",
            expires=now + timedelta(hours=1),
        )
    )
    await session.commit()

    counts = await token_store.count_expired(session, now)
    assert counts == {TokenKind.STANDING_VERIFICATION.value: 1}

    deleted = await token_store.delete_expired(session, now)
    await session.commit()
    session.expunge_all()

    assert deleted == counts
    remaining = await token_rows(session)
    assert [row.token for row in remaining] == ["new"]


@pytest.mark.asyncio
async def test_list_pending_pointers(session: AsyncSession):
    await token_issuer.issue_pending_registration(session, _registration("a@x.com"))
    await token_issuer.issue_pending_registration(session, _registration("b@x.com"))
    await session.commit()

    pointers = await token_store.list_pending_pointers(session)
    assert sorted(p.identifier for p in pointers) == ["a@x.com", "b@x.com"]
    assert all(p.kind == TokenKind.PENDING_REGISTRATION.value for p in pointers)
