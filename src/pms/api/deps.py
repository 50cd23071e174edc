"""Shared FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from pms.database import get_session
from pms.services.rate_limit import RateLimitType, check_rate_limit, rate_limit_headers

SessionDep = Annotated[AsyncSession, Depends(get_session)]


class RateLimitDependency:
    """Rejects the request with 429 once the client IP is over its budget for `limit_type`."""

    def __init__(self, limit_type: RateLimitType) -> None:
        self.limit_type = limit_type

    async def __call__(self, request: Request) -> None:
        result = await check_rate_limit(request, self.limit_type)
        if result.success:
            return

        headers = rate_limit_headers(result)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Too many requests. Try again in {headers['Retry-After']} seconds.",
            headers=headers,
        )


RegisterRateLimit = Annotated[None, Depends(RateLimitDependency(RateLimitType.REGISTER))]
ResendRateLimit = Annotated[None, Depends(RateLimitDependency(RateLimitType.RESEND))]
VerifyRateLimit = Annotated[None, Depends(RateLimitDependency(RateLimitType.VERIFY))]
