"""
Fixed-window rate limiter backed by the Django cache.

Counters are keyed by (subject type, subject value, endpoint, window start)
and incremented atomically. Every call is counted, including the one that
gets denied, so a burst does not shorten its own penalty.

When the cache is unreachable the limiter fails open: the request is allowed
and a warning is logged. ``fail_open=False`` switches to denying instead.
"""

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime
from datetime import timezone as dt_timezone
from typing import Callable, Dict, Optional

from asgiref.sync import sync_to_async
from django.core.cache import caches
from django.utils import timezone

from core.config import LicensingConfig
from core.metrics import rate_limit_decisions_total

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one rate limit check."""

    allowed: bool
    limit: int
    remaining: int
    reset_at: datetime
    retry_after: int
    degraded: bool = False

    def headers(self) -> Dict[str, str]:
        """Return the ``X-RateLimit-*`` (and ``Retry-After`` when denied) headers."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset_at.timestamp())),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after)
        return headers

    def to_dict(self) -> Dict[str, object]:
        return {
            "limit": self.limit,
            "remaining": self.remaining,
            "reset_at": self.reset_at.isoformat(),
        }


class RateLimiter:
    """Rate limiter for license API endpoints."""

    KEY_PREFIX = "rate_limit"

    def __init__(
        self,
        config: LicensingConfig,
        cache=None,
        clock: Callable[[], datetime] = timezone.now,
    ):
        self.config = config
        self.cache = cache if cache is not None else caches["default"]
        self.clock = clock
        self.fail_open = config.rate_limit_fail_open

    def _make_key(self, subject_type: str, subject_value: str, endpoint: str, window_start: int) -> str:
        # Hash the subject so raw keys and addresses never become cache keys
        subject_hash = hashlib.sha256(f"{subject_type}:{subject_value}".encode()).hexdigest()[:16]
        return f"{self.KEY_PREFIX}:{endpoint}:{subject_type}:{subject_hash}:{window_start}"

    def _increment(self, key: str, window_seconds: int) -> int:
        """Atomically bump the counter for a window and return the new count."""
        # add() only succeeds for the first request of a window
        if self.cache.add(key, 1, timeout=window_seconds + 1):
            return 1
        try:
            return self.cache.incr(key)
        except ValueError:
            # Key expired between add() and incr()
            self.cache.set(key, 1, timeout=window_seconds + 1)
            return 1

    async def check_rate_limit(
        self,
        subject_type: str,
        subject_value: str,
        endpoint: str,
        max_requests: int,
        window_seconds: int = 60,
    ) -> RateLimitResult:
        """
        Count a request and decide whether it is allowed.

        Args:
            subject_type: Kind of subject, e.g. ``ip`` or ``license``
            subject_value: Subject identifier (address, masked key)
            endpoint: Endpoint name; each endpoint has its own windows
            max_requests: Requests allowed per window
            window_seconds: Window length

        Returns:
            RateLimitResult
        """
        now = self.clock()
        epoch = int(now.timestamp())
        window_start = epoch - (epoch % window_seconds)
        reset_epoch = window_start + window_seconds
        reset_at = datetime.fromtimestamp(reset_epoch, tz=dt_timezone.utc)
        retry_after = max(1, reset_epoch - epoch)
        key = self._make_key(subject_type, subject_value, endpoint, window_start)

        try:
            count = await sync_to_async(self._increment)(key, window_seconds)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            decision = "fail_open" if self.fail_open else "fail_closed"
            logger.warning(
                "Rate limit store unavailable, %s: %s",
                decision,
                exc,
                extra={"endpoint": endpoint, "subject_type": subject_type},
            )
            rate_limit_decisions_total.labels(
                endpoint=endpoint, subject_type=subject_type, decision=decision
            ).inc()
            return RateLimitResult(
                allowed=self.fail_open,
                limit=max_requests,
                remaining=max_requests if self.fail_open else 0,
                reset_at=reset_at,
                retry_after=retry_after,
                degraded=True,
            )

        allowed = count <= max_requests
        rate_limit_decisions_total.labels(
            endpoint=endpoint,
            subject_type=subject_type,
            decision="allowed" if allowed else "denied",
        ).inc()
        if not allowed:
            logger.info(
                "Rate limit exceeded",
                extra={"endpoint": endpoint, "subject_type": subject_type, "count": count},
            )
        return RateLimitResult(
            allowed=allowed,
            limit=max_requests,
            remaining=max(0, max_requests - count),
            reset_at=reset_at,
            retry_after=retry_after,
        )

    async def check_endpoint(
        self, endpoint: str, subject_type: str, subject_value: Optional[str]
    ) -> Optional[RateLimitResult]:
        """Check the configured rule for an endpoint; None when no rule applies."""
        rule = self.config.rate_limit(endpoint, subject_type)
        if rule is None or not subject_value:
            return None
        return await self.check_rate_limit(
            subject_type, subject_value, endpoint, rule.max_requests, rule.window_seconds
        )
