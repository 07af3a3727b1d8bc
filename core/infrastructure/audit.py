"""
Audit and security logger.

Every license operation, webhook and security incident is written to the
``license_audit_logs`` table and to the ``security`` logger. Details pass
through the privacy helpers first, so raw license keys, machine identifiers
and payment credentials never reach a log sink. High and critical security
events are additionally pushed to the alert endpoint in the background.
"""

import logging
import uuid
from typing import Any, Mapping, Optional

from django.utils import timezone

from core.config import LicensingConfig
from core.domain.audit import AuditCategory, AuditRecord, SecuritySeverity, classify_severity
from core.infrastructure.background import dispatch
from core.infrastructure.privacy import partial_license_key, partial_machine_data, sanitize
from core.metrics import security_events_total
from core.ports.audit_log_repository import AuditLogRepository

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("security")

_SEVERITY_LEVELS = {
    SecuritySeverity.CRITICAL: logging.CRITICAL,
    SecuritySeverity.HIGH: logging.ERROR,
    SecuritySeverity.MEDIUM: logging.WARNING,
}


class AuditLogger:
    """Structured audit trail with security severity classification."""

    def __init__(self, config: LicensingConfig, repository: AuditLogRepository):
        """
        Initialize audit logger.

        Args:
            config: Licensing configuration (alert endpoint, timeouts)
            repository: Audit log store
        """
        self.config = config
        self.repository = repository

    async def log_event(
        self,
        category: AuditCategory,
        event_type: str,
        details: Optional[Mapping[str, Any]] = None,
        *,
        license_id: Optional[uuid.UUID] = None,
        license_key: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        machine_fingerprint: Optional[str] = None,
        machine_id: Optional[str] = None,
        success: bool = True,
        failure_reason: str = "",
        severity: Optional[SecuritySeverity] = None,
    ) -> Optional[AuditRecord]:
        """
        Record an audit event.

        Args:
            category: payment, webhook, license or security
            event_type: Action name, e.g. ``activate`` or ``charge.refunded``
            details: Free-form context; sanitized before it is stored
            license_id: License the event concerns
            license_key: Raw key; only its partial form is kept
            ip_address: Originating IP
            user_agent: Originating user agent
            machine_fingerprint: Raw fingerprint; only its partial form is kept
            machine_id: Raw machine id; only its partial form is kept
            success: Whether the operation succeeded
            failure_reason: Error code or message for failed operations
            severity: Security severity, for security events

        Returns:
            The stored record, or None if the audit store rejected it
        """
        metadata = sanitize(details)
        record = AuditRecord(
            category=AuditCategory(category),
            action=event_type,
            success=success,
            license_id=license_id,
            license_key_partial=partial_license_key(license_key) if license_key else "",
            ip_address=ip_address,
            user_agent=(user_agent or "")[:500],
            machine_fingerprint_partial=(
                partial_machine_data(machine_fingerprint) if machine_fingerprint else ""
            ),
            machine_id_partial=partial_machine_data(machine_id) if machine_id else "",
            failure_reason=failure_reason or "",
            severity=severity,
            metadata=metadata,
        )

        level = _SEVERITY_LEVELS[severity] if severity else logging.INFO
        security_logger.log(
            level,
            "%s.%s %s",
            record.category.value,
            event_type,
            "succeeded" if success else "failed",
            extra={
                "audit_category": record.category.value,
                "audit_action": event_type,
                "severity": severity.value if severity else None,
                "license_id": str(license_id) if license_id else None,
                "license_key": record.license_key_partial,
                "ip_address": ip_address,
                "success": success,
                "failure_reason": record.failure_reason,
                "details": metadata,
            },
        )

        try:
            return await self.repository.append(record)
        except Exception:  # pylint: disable=broad-exception-caught
            logger.error("Failed to persist audit record %s", event_type, exc_info=True)
            return None

    async def log_security_event(
        self,
        event_type: str,
        details: Optional[Mapping[str, Any]] = None,
        **kwargs: Any,
    ) -> Optional[AuditRecord]:
        """
        Record a security event and alert on high and critical severities.

        Args:
            event_type: Security event type, e.g. ``rate_limit_exceeded``
            details: Event context; sanitized before it is stored or sent
            **kwargs: Same keyword arguments as ``log_event``

        Returns:
            The stored record, or None if the audit store rejected it
        """
        severity = classify_severity(event_type)
        security_events_total.labels(severity=severity.value).inc()
        kwargs.setdefault("success", False)

        record = await self.log_event(
            AuditCategory.SECURITY, event_type, details, severity=severity, **kwargs
        )

        if severity.alerts:
            self._send_alert(event_type, severity, details, kwargs)
        return record

    def _send_alert(
        self,
        event_type: str,
        severity: SecuritySeverity,
        details: Optional[Mapping[str, Any]],
        context: Mapping[str, Any],
    ) -> None:
        if not self.config.security_alert_url:
            return

        from core.tasks import send_security_alert

        license_key = context.get("license_key")
        license_id = context.get("license_id")
        payload = {
            "severity": severity.value,
            "event_type": event_type,
            "license_id": str(license_id) if license_id else None,
            "license_key": partial_license_key(license_key) if license_key else None,
            "ip_address": context.get("ip_address"),
            "details": sanitize(details),
            "occurred_at": timezone.now().isoformat(),
        }
        dispatch(
            send_security_alert,
            self.config.security_alert_url,
            event_type,
            payload,
            self.config.outbound_timeout_seconds,
            self.config.outbound_signing_secret,
        )
