"""
Unit tests for the fixed-window rate limiter.
"""

from dataclasses import replace
from datetime import datetime, timedelta
from datetime import timezone as dt_timezone

import pytest
from django.core.cache.backends.locmem import LocMemCache

from core.config import SUBJECT_IP, SUBJECT_LICENSE, RateLimitRule
from core.infrastructure.rate_limiter import RateLimiter


class BrokenCache:
    """Cache whose every call fails, like an unreachable Redis."""

    def add(self, *args, **kwargs):
        raise ConnectionError("cache down")

    def incr(self, *args, **kwargs):
        raise ConnectionError("cache down")

    def set(self, *args, **kwargs):
        raise ConnectionError("cache down")


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return Clock(datetime(2026, 1, 1, 12, 0, 5, tzinfo=dt_timezone.utc))


@pytest.fixture
def local_cache():
    return LocMemCache("rate-limit-tests", {})


@pytest.fixture
def limiter(licensing_config, local_cache, clock):
    local_cache.clear()
    return RateLimiter(licensing_config, cache=local_cache, clock=clock)


@pytest.mark.asyncio
class TestCheckRateLimit:
    """Tests for RateLimiter.check_rate_limit."""

    async def test_allows_up_to_limit(self, limiter):
        results = [
            await limiter.check_rate_limit(SUBJECT_IP, "10.0.0.1", "validate", 3, 60)
            for _ in range(3)
        ]

        assert all(result.allowed for result in results)
        assert [result.remaining for result in results] == [2, 1, 0]

    async def test_denies_over_limit(self, limiter):
        for _ in range(3):
            await limiter.check_rate_limit(SUBJECT_IP, "10.0.0.1", "validate", 3, 60)

        result = await limiter.check_rate_limit(SUBJECT_IP, "10.0.0.1", "validate", 3, 60)

        assert result.allowed is False
        assert result.remaining == 0
        assert result.retry_after == 55

    async def test_window_boundaries(self, limiter, clock):
        result = await limiter.check_rate_limit(SUBJECT_IP, "10.0.0.1", "validate", 1, 60)

        assert result.reset_at == datetime(2026, 1, 1, 12, 1, 0, tzinfo=dt_timezone.utc)

    async def test_new_window_resets_count(self, limiter, clock):
        await limiter.check_rate_limit(SUBJECT_IP, "10.0.0.1", "validate", 1, 60)
        assert not (await limiter.check_rate_limit(SUBJECT_IP, "10.0.0.1", "validate", 1, 60)).allowed

        clock.now += timedelta(seconds=60)

        assert (await limiter.check_rate_limit(SUBJECT_IP, "10.0.0.1", "validate", 1, 60)).allowed

    async def test_subjects_and_endpoints_are_independent(self, limiter):
        await limiter.check_rate_limit(SUBJECT_IP, "10.0.0.1", "validate", 1, 60)

        other_ip = await limiter.check_rate_limit(SUBJECT_IP, "10.0.0.2", "validate", 1, 60)
        other_endpoint = await limiter.check_rate_limit(SUBJECT_IP, "10.0.0.1", "activate", 1, 60)

        assert other_ip.allowed
        assert other_endpoint.allowed

    async def test_cache_keys_never_contain_subject(self, limiter, local_cache):
        await limiter.check_rate_limit(SUBJECT_LICENSE, "LIC-SECRET-KEY", "validate", 5, 60)

        assert not any("LIC-SECRET-KEY" in key for key in local_cache._cache)

    async def test_fail_open_when_cache_unavailable(self, licensing_config, clock):
        limiter = RateLimiter(licensing_config, cache=BrokenCache(), clock=clock)

        result = await limiter.check_rate_limit(SUBJECT_IP, "10.0.0.1", "validate", 5, 60)

        assert result.allowed is True
        assert result.degraded is True
        assert result.remaining == 5

    async def test_fail_closed_when_configured(self, licensing_config, clock):
        config = replace(licensing_config, rate_limit_fail_open=False)
        limiter = RateLimiter(config, cache=BrokenCache(), clock=clock)

        result = await limiter.check_rate_limit(SUBJECT_IP, "10.0.0.1", "validate", 5, 60)

        assert result.allowed is False
        assert result.degraded is True


@pytest.mark.asyncio
class TestCheckEndpoint:
    """Tests for RateLimiter.check_endpoint."""

    async def test_uses_configured_rule(self, licensing_config, local_cache, clock):
        config = replace(
            licensing_config,
            rate_limits={"validate": {SUBJECT_IP: RateLimitRule(2, 30)}},
        )
        limiter = RateLimiter(config, cache=local_cache, clock=clock)

        result = await limiter.check_endpoint("validate", SUBJECT_IP, "10.0.0.9")

        assert result.limit == 2
        assert result.remaining == 1

    async def test_no_rule_means_no_check(self, limiter):
        assert await limiter.check_endpoint("batch", SUBJECT_LICENSE, "LIC-1") is None

    async def test_missing_subject_means_no_check(self, limiter):
        assert await limiter.check_endpoint("validate", SUBJECT_IP, None) is None


class TestRateLimitHeaders:
    """Tests for RateLimitResult.headers."""

    @pytest.mark.asyncio
    async def test_denied_headers_include_retry_after(self, limiter):
        await limiter.check_rate_limit(SUBJECT_IP, "10.0.0.1", "validate", 1, 60)
        result = await limiter.check_rate_limit(SUBJECT_IP, "10.0.0.1", "validate", 1, 60)

        headers = result.headers()

        assert headers["X-RateLimit-Limit"] == "1"
        assert headers["X-RateLimit-Remaining"] == "0"
        assert headers["Retry-After"] == "55"
        assert headers["X-RateLimit-Reset"] == str(int(result.reset_at.timestamp()))

    @pytest.mark.asyncio
    async def test_allowed_headers_have_no_retry_after(self, limiter):
        result = await limiter.check_rate_limit(SUBJECT_IP, "10.0.0.1", "validate", 1, 60)

        assert "Retry-After" not in result.headers()
