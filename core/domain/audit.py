"""
Audit and security event classification.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class AuditCategory(str, Enum):
    """Audit log categories."""

    PAYMENT = "payment"
    WEBHOOK = "webhook"
    LICENSE = "license"
    SECURITY = "security"


class SecuritySeverity(str, Enum):
    """Security event severity tiers."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"

    @property
    def alerts(self) -> bool:
        """Critical and high events are pushed to the alert endpoint."""
        return self in (SecuritySeverity.CRITICAL, SecuritySeverity.HIGH)


CRITICAL_EVENTS = frozenset(
    {
        "admin_account_compromised",
        "payment_fraud_detected",
        "data_breach_detected",
        "unauthorized_admin_access",
        "multiple_failed_logins",
        "account_lockout_triggered",
    }
)

HIGH_EVENTS = frozenset(
    {
        "failed_login_attempt",
        "suspicious_payment",
        "rate_limit_exceeded",
        "invalid_webhook_signature",
        "csrf_attack_detected",
        "webhook_replay_detected",
        "internal_error",
    }
)


def classify_severity(event_type: str) -> SecuritySeverity:
    """Map a security event type to its severity tier."""
    if event_type in CRITICAL_EVENTS:
        return SecuritySeverity.CRITICAL
    if event_type in HIGH_EVENTS:
        return SecuritySeverity.HIGH
    return SecuritySeverity.MEDIUM


@dataclass(frozen=True)
class AuditRecord:
    """
    One audit log row.

    Holds only sanitized data: partial license key and partial machine
    identifiers, never the raw values.
    """

    category: AuditCategory
    action: str
    success: bool = True
    license_id: Optional[uuid.UUID] = None
    license_key_partial: str = ""
    ip_address: Optional[str] = None
    user_agent: str = ""
    machine_fingerprint_partial: str = ""
    machine_id_partial: str = ""
    failure_reason: str = ""
    severity: Optional[SecuritySeverity] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: Optional[datetime] = None
