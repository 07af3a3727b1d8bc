"""
Error tracking adapter.

Unexpected faults are logged with their traceback locally and a sanitized
report is queued for the external error tracker.
"""

import logging
from typing import Any, Mapping, Optional

from django.utils import timezone

from core.config import LicensingConfig
from core.infrastructure.background import dispatch
from core.infrastructure.privacy import sanitize
from core.metrics import errors_total

logger = logging.getLogger(__name__)


class ErrorReporter:
    """Best-effort exception reporting."""

    def __init__(self, config: LicensingConfig):
        self.config = config

    def report(self, exc: BaseException, context: Optional[Mapping[str, Any]] = None) -> None:
        """
        Record an unexpected exception.

        Args:
            exc: The exception
            context: Request or operation context; sanitized before leaving the process
        """
        safe_context = sanitize(context)
        errors_total.labels(
            error_type=type(exc).__name__, endpoint=str(safe_context.get("operation", "unknown"))
        ).inc()
        logger.error(
            "Unexpected error: %s",
            type(exc).__name__,
            exc_info=(type(exc), exc, exc.__traceback__),
            extra={"context": safe_context},
        )
        if not self.config.error_tracking_url:
            return

        from core.tasks import report_error

        dispatch(
            report_error,
            self.config.error_tracking_url,
            {
                "error_type": type(exc).__name__,
                "context": safe_context,
                "occurred_at": timezone.now().isoformat(),
            },
            self.config.outbound_timeout_seconds,
            self.config.outbound_signing_secret,
        )
