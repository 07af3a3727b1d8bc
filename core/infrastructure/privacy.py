"""
Fingerprint and key privacy helpers.

Machine identifiers are stored only as keyed one-way digests, and anything
that reaches a log sink or a response goes through one of the masking
helpers below. All functions are pure and never raise on empty input.
"""

import hashlib
import hmac
from typing import Any, Mapping, Optional

UNKNOWN = "unknown"
REDACTED = "[REDACTED]"

LICENSE_KEY_FIELDS = frozenset({"license_key", "key", "raw_key"})
MACHINE_FIELDS = frozenset(
    {"machine_fingerprint", "fingerprint", "machine_id", "hardware_id", "device_id"}
)
EMAIL_FIELDS = frozenset({"email", "customer_email", "payer_email", "receipt_email"})
CREDENTIAL_FIELDS = frozenset(
    {
        "password",
        "secret",
        "token",
        "access_token",
        "api_key",
        "authorization",
        "card_number",
        "number",
        "cvc",
        "cvv",
        "exp_month",
        "exp_year",
        "client_secret",
        "signature",
    }
)


def hash_machine_data(raw: Optional[str], salt: str) -> Optional[str]:
    """
    Return the keyed SHA-256 digest of a machine fingerprint or id.

    Surrounding whitespace is ignored so the same machine always maps to the
    same digest. Returns None when there is nothing to hash: unlike the
    masking helpers it has no placeholder, since a fixed placeholder would
    be a digest shared by every machine that sent no data.
    """
    if raw is None:
        return None
    value = str(raw).strip()
    if not value:
        return None
    return hmac.new(salt.encode(), value.encode(), hashlib.sha256).hexdigest()


def partial_license_key(key: Optional[str]) -> str:
    """Return a display-safe fragment of a license key: ``ABCD****WXYZ``."""
    if not key:
        return UNKNOWN
    key = str(key).strip()
    if len(key) <= 8:
        return "****"
    return f"{key[:4]}****{key[-4:]}"


def partial_machine_data(raw: Optional[str]) -> str:
    """Return a display-safe prefix of a machine identifier."""
    if not raw:
        return UNKNOWN
    raw = str(raw).strip()
    if len(raw) <= 4:
        return "****"
    return f"{raw[:min(8, len(raw) // 2)]}..."


def mask_email(email: Optional[str]) -> str:
    """Mask the local part of an email address: ``j***@example.com``."""
    if not email or "@" not in str(email):
        return UNKNOWN
    local, _, domain = str(email).partition("@")
    return f"{local[:1]}***@{domain}"


def sanitize(details: Optional[Mapping[str, Any]]) -> dict:
    """
    Recursively mask sensitive fields of a log/audit payload.

    License keys and machine identifiers are reduced to partial form, email
    addresses are masked, and credential-like fields are dropped entirely.
    """
    if not details:
        return {}
    return {str(key): _sanitize_value(str(key).lower(), value) for key, value in details.items()}


def _sanitize_value(key: str, value: Any) -> Any:
    if isinstance(value, Mapping):
        return sanitize(value)
    if isinstance(value, (list, tuple)):
        return [_sanitize_value(key, item) for item in value]
    if value is None:
        return None
    if key in CREDENTIAL_FIELDS:
        return REDACTED
    if key in LICENSE_KEY_FIELDS:
        return partial_license_key(value)
    if key in MACHINE_FIELDS:
        return partial_machine_data(value)
    if key in EMAIL_FIELDS:
        return mask_email(value)
    return value
