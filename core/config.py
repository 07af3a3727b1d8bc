"""
Licensing configuration.

The ``LICENSING`` settings dict is read once into a frozen ``LicensingConfig``
that is handed to services, handlers and adapters through their constructors.
"""

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Mapping, Optional

# Subject types used as the second level of the rate limit table.
SUBJECT_IP = "ip"
SUBJECT_LICENSE = "license"


@dataclass(frozen=True)
class RateLimitRule:
    """Maximum requests allowed per fixed window."""

    max_requests: int
    window_seconds: int = 60


DEFAULT_RATE_LIMITS = {
    "validate": {SUBJECT_IP: RateLimitRule(100), SUBJECT_LICENSE: RateLimitRule(60)},
    "activate": {SUBJECT_IP: RateLimitRule(50), SUBJECT_LICENSE: RateLimitRule(30)},
    "deactivate": {SUBJECT_IP: RateLimitRule(50), SUBJECT_LICENSE: RateLimitRule(30)},
    "status": {SUBJECT_IP: RateLimitRule(100), SUBJECT_LICENSE: RateLimitRule(60)},
    "validate_jwt": {SUBJECT_IP: RateLimitRule(50), SUBJECT_LICENSE: RateLimitRule(30)},
    "batch": {SUBJECT_IP: RateLimitRule(10)},
}


def _parse_rate_limits(raw: Optional[Mapping[str, Any]]) -> Mapping[str, Mapping[str, RateLimitRule]]:
    """Merge configured rate limits over the defaults.

    Values may be ``RateLimitRule`` instances, ``(max_requests, window_seconds)``
    tuples, or dicts with those keys.
    """
    table = {endpoint: dict(rules) for endpoint, rules in DEFAULT_RATE_LIMITS.items()}
    for endpoint, rules in (raw or {}).items():
        target = table.setdefault(endpoint, {})
        for subject_type, value in rules.items():
            if isinstance(value, RateLimitRule):
                rule = value
            elif isinstance(value, Mapping):
                rule = RateLimitRule(int(value["max_requests"]), int(value.get("window_seconds", 60)))
            else:
                max_requests, window_seconds = value
                rule = RateLimitRule(int(max_requests), int(window_seconds))
            target[subject_type] = rule
    return table


@dataclass(frozen=True)
class LicensingConfig:
    """Everything the licensing components need from the environment."""

    machine_hash_salt: str
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_ttl_seconds: int = 300
    batch_max_operations: int = 10
    rate_limits: Mapping[str, Mapping[str, RateLimitRule]] = field(
        default_factory=lambda: _parse_rate_limits(None)
    )
    rate_limit_fail_open: bool = True
    stripe_webhook_secret: str = ""
    paypal_webhook_id: str = ""
    paypal_client_id: str = ""
    paypal_client_secret: str = ""
    paypal_api_base: str = "https://api-m.sandbox.paypal.com"
    security_alert_url: str = ""
    notification_url: str = ""
    error_tracking_url: str = ""
    outbound_signing_secret: str = ""
    outbound_timeout_seconds: float = 5.0
    webhook_timeout_seconds: float = 30.0
    webhook_event_retention_days: int = 90
    trusted_proxy_count: int = 0

    def __post_init__(self):
        if not self.machine_hash_salt:
            raise ValueError("machine_hash_salt is required")
        if not self.jwt_secret:
            raise ValueError("jwt_secret is required")
        if self.batch_max_operations < 1:
            raise ValueError("batch_max_operations must be at least 1")
        if self.trusted_proxy_count < 0:
            raise ValueError("trusted_proxy_count cannot be negative")

    def rate_limit(self, endpoint: str, subject_type: str) -> Optional[RateLimitRule]:
        """Return the rule for an endpoint/subject pair, if one is configured."""
        return self.rate_limits.get(endpoint, {}).get(subject_type)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "LicensingConfig":
        """Build the config from the ``LICENSING`` settings dict."""
        values = {key.lower(): value for key, value in values.items()}
        values["rate_limits"] = _parse_rate_limits(values.get("rate_limits"))
        known = {name for name in cls.__dataclass_fields__}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown LICENSING settings: {', '.join(sorted(unknown))}")
        return cls(**values)


@lru_cache(maxsize=1)
def get_licensing_config() -> LicensingConfig:
    """Load the process-wide configuration from Django settings."""
    from django.conf import settings

    return LicensingConfig.from_mapping(settings.LICENSING)
