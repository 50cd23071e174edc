"""Registration and email verification endpoints."""

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, EmailStr, Field

from pms.api.deps import RegisterRateLimit, ResendRateLimit, SessionDep, VerifyRateLimit
from pms.config import settings
from pms.models import NAME_MAX_LENGTH, AccountRead
from pms.schemas import ErrorResponse
from pms.services.errors import RegistrationError
from pms.services.registration import register_account, resend_verification, verify_email

router = APIRouter()

ERROR_RESPONSES: dict[int | str, dict] = {
    400: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


class RegisterRequest(BaseModel):
    """Request body for registration."""

    name: str = Field(default="", max_length=NAME_MAX_LENGTH)
    email: EmailStr
    password: str = ""


class RegisterResponse(BaseModel):
    """Response for a registration request."""

    success: bool = True
    message: str
    # In development, include the verification link for testing
    verification_link: str | None = None


class ResendRequest(BaseModel):
    """Request body for resending a verification email."""

    email: EmailStr


class ResendResponse(BaseModel):
    """Response for a resend request."""

    message: str
    verification_link: str | None = None


class VerifyResponse(BaseModel):
    """Response after a token was redeemed."""

    success: bool = True
    message: str
    user: AccountRead


def _http_error(e: RegistrationError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def register(
    request: RegisterRequest,
    session: SessionDep,
    _rate_limit: RegisterRateLimit,
):
    """
    Start a registration.

    The account is created only once the emailed link is opened.
    """
    try:
        result = await register_account(
            session,
            name=request.name,
            email=request.email,
            password=request.password,
        )
    except RegistrationError as e:
        raise _http_error(e) from e

    response = RegisterResponse(message=result.message)
    if settings.is_development:
        response.verification_link = result.verification_link
    return response


@router.post("/resend-verification", response_model=ResendResponse, responses=ERROR_RESPONSES)
async def resend(
    request: ResendRequest,
    session: SessionDep,
    _rate_limit: ResendRateLimit,
):
    """
    Send a fresh verification link.

    Responds the same way for unknown and already verified emails.
    """
    try:
        result = await resend_verification(session, email=request.email)
    except RegistrationError as e:
        raise _http_error(e) from e

    response = ResendResponse(message=result.message)
    if settings.is_development:
        response.verification_link = result.verification_link
    return response


@router.get("/verify-email", response_model=VerifyResponse, responses=ERROR_RESPONSES)
async def verify(
    session: SessionDep,
    _rate_limit: VerifyRateLimit,
    token: str | None = None,
):
    """Redeem a verification token from an emailed link."""
    try:
        result = await verify_email(session, token=token or "")
    except RegistrationError as e:
        raise _http_error(e) from e

    return VerifyResponse(
        message=result.message,
        user=AccountRead.model_validate(result.account),
    )
