"""Rate limiter tests."""

from unittest.mock import MagicMock, patch

import pytest

from pms.services.rate_limit import (
    RATE_LIMIT_CONFIG,
    SWEEP_INTERVAL_SECONDS,
    InMemoryRateLimiter,
    RateLimitType,
    get_client_ip,
    rate_limit_headers,
)


@pytest.mark.asyncio
async def test_allows_up_to_limit_then_blocks():
    limiter = InMemoryRateLimiter()
    limit = RATE_LIMIT_CONFIG[RateLimitType.RESEND].requests

    results = [await limiter.check("ip:1.2.3.4", RateLimitType.RESEND) for _ in range(limit)]
    assert all(r.success for r in results)
    assert results[-1].remaining == 0

    blocked = await limiter.check("ip:1.2.3.4", RateLimitType.RESEND)
    assert blocked.success is False
    assert blocked.limit == limit


@pytest.mark.asyncio
async def test_limits_are_per_identifier_and_type():
    limiter = InMemoryRateLimiter()
    for _ in range(RATE_LIMIT_CONFIG[RateLimitType.RESEND].requests):
        await limiter.check("ip:1.2.3.4", RateLimitType.RESEND)

    assert (await limiter.check("ip:5.6.7.8", RateLimitType.RESEND)).success
    assert (await limiter.check("ip:1.2.3.4", RateLimitType.VERIFY)).success


@pytest.mark.asyncio
async def test_reset_clears_history():
    limiter = InMemoryRateLimiter()
    for _ in range(RATE_LIMIT_CONFIG[RateLimitType.RESEND].requests + 1):
        await limiter.check("ip:1.2.3.4", RateLimitType.RESEND)

    limiter.reset()

    assert (await limiter.check("ip:1.2.3.4", RateLimitType.RESEND)).success


@pytest.mark.asyncio
async def test_headers_include_retry_after_when_blocked():
    limiter = InMemoryRateLimiter()
    for _ in range(RATE_LIMIT_CONFIG[RateLimitType.RESEND].requests):
        ok = await limiter.check("ip:1.2.3.4", RateLimitType.RESEND)
    blocked = await limiter.check("ip:1.2.3.4", RateLimitType.RESEND)

    assert "Retry-After" not in rate_limit_headers(ok)
    headers = rate_limit_headers(blocked)
    assert headers["X-RateLimit-Remaining"] == "0"
    assert int(headers["Retry-After"]) <= 60


def test_get_client_ip_prefers_forwarded_header():
    request = MagicMock()
    request.headers = {"x-forwarded-for": "10.0.0.1, 10.0.0.2"}
    assert get_client_ip(request) == "10.0.0.1"

    request.headers = {"x-real-ip": " 10.0.0.3 "}
    assert get_client_ip(request) == "10.0.0.3"

    request.headers = {}
    request.client.host = "127.0.0.1"
    assert get_client_ip(request) == "127.0.0.1"


@pytest.mark.asyncio
async def test_idle_clients_are_evicted():
    """Keys without hits in their window do not accumulate."""
    limiter = InMemoryRateLimiter()
    start = 1_000_000.0

    with patch("pms.services.rate_limit.time.time", return_value=start):
        for i in range(50):
            await limiter.check(f"ip:10.0.0.{i}", RateLimitType.REGISTER)
    assert len(limiter) == 50

    later = start + SWEEP_INTERVAL_SECONDS + 1
    with patch("pms.services.rate_limit.time.time", return_value=later):
        await limiter.check("ip:192.168.1.1", RateLimitType.REGISTER)

    assert len(limiter) == 1


@pytest.mark.asyncio
async def test_cleanup_keeps_active_clients():
    limiter = InMemoryRateLimiter()
    start = 1_000_000.0

    with patch("pms.services.rate_limit.time.time", return_value=start):
        await limiter.check("ip:old", RateLimitType.VERIFY)
    with patch("pms.services.rate_limit.time.time", return_value=start + 50):
        await limiter.check("ip:recent", RateLimitType.VERIFY)

    with patch("pms.services.rate_limit.time.time", return_value=start + 70):
        removed = await limiter.cleanup_old_entries()

    assert removed == 1
    assert len(limiter) == 1
