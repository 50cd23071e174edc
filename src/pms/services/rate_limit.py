"""Rate limiting for the registration endpoints using a sliding window."""

import asyncio
import time
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum

from fastapi import Request


class RateLimitType(str, Enum):
    """Rate limit categories, one per public auth endpoint."""

    REGISTER = "register"
    RESEND = "resend"
    VERIFY = "verify"


@dataclass
class RateLimitConfig:
    """Configuration for a rate limit type."""

    requests: int
    window_seconds: int


# Resend sends mail on every hit, so it is the tightest
RATE_LIMIT_CONFIG: dict[RateLimitType, RateLimitConfig] = {
    RateLimitType.REGISTER: RateLimitConfig(requests=5, window_seconds=60),
    RateLimitType.RESEND: RateLimitConfig(requests=3, window_seconds=60),
    RateLimitType.VERIFY: RateLimitConfig(requests=20, window_seconds=60),
}

SWEEP_INTERVAL_SECONDS = 300


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""

    success: bool
    limit: int
    remaining: int
    reset: int  # Unix timestamp in seconds


class InMemoryRateLimiter:
    """Sliding-window limiter kept in process memory.

    Limits are per process; multi-instance deployments get a multiple of
    the configured budget. Keys with no hits left inside their window are
    evicted at most once per SWEEP_INTERVAL_SECONDS.
    """

    def __init__(self) -> None:
        self._requests: dict[str, list[float]] = defaultdict(list)
        self._lock = asyncio.Lock()
        self._last_sweep = 0.0

    async def check(self, identifier: str, limit_type: RateLimitType) -> RateLimitResult:
        """Record a hit for `identifier` and report whether it is allowed."""
        config = RATE_LIMIT_CONFIG[limit_type]
        key = f"{limit_type.value}:{identifier}"
        now = time.time()
        window_start = now - config.window_seconds

        async with self._lock:
            if now - self._last_sweep >= SWEEP_INTERVAL_SECONDS:
                self._evict_stale(now)

            timestamps = [t for t in self._requests[key] if t > window_start]

            if len(timestamps) >= config.requests:
                self._requests[key] = timestamps
                return RateLimitResult(
                    success=False,
                    limit=config.requests,
                    remaining=0,
                    reset=int(min(timestamps) + config.window_seconds),
                )

            timestamps.append(now)
            self._requests[key] = timestamps
            return RateLimitResult(
                success=True,
                limit=config.requests,
                remaining=config.requests - len(timestamps),
                reset=int(now + config.window_seconds),
            )

    async def cleanup_old_entries(self) -> int:
        """Evict stale keys now; returns how many were removed."""
        async with self._lock:
            return self._evict_stale(time.time())

    def _evict_stale(self, now: float) -> int:
        # Caller holds the lock
        stale = [
            key
            for key, timestamps in self._requests.items()
            if not timestamps or max(timestamps) <= now - _window_for(key)
        ]
        for key in stale:
            del self._requests[key]
        self._last_sweep = now
        return len(stale)

    def __len__(self) -> int:
        return len(self._requests)

    def reset(self) -> None:
        """Forget all recorded hits."""
        self._requests.clear()
        self._last_sweep = 0.0


def _window_for(key: str) -> int:
    limit_type = RateLimitType(key.split(":", 1)[0])
    return RATE_LIMIT_CONFIG[limit_type].window_seconds


_rate_limiter = InMemoryRateLimiter()


def get_rate_limiter() -> InMemoryRateLimiter:
    """Get the global rate limiter instance."""
    return _rate_limiter


def get_client_ip(request: Request) -> str | None:
    """Extract the client IP, honouring common proxy headers."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client:
        return request.client.host

    return None


async def check_rate_limit(request: Request, limit_type: RateLimitType) -> RateLimitResult:
    """Check the limit for the request's client IP."""
    ip = get_client_ip(request)
    return await get_rate_limiter().check(f"ip:{ip or 'unknown'}", limit_type)


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Headers describing the limit state of a response."""
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset),
    }

    if not result.success:
        headers["Retry-After"] = str(max(0, result.reset - int(time.time())))

    return headers
