"""
Celery tasks for background processing.

Alert, notification and error-report delivery. These are fire-and-forget:
the producer never waits for them and a failed delivery only logs a warning.
"""
import logging

from LicenseServer.celery import app

from core.infrastructure.outbound import OutboundWebhookClient

logger = logging.getLogger(__name__)


@app.task(ignore_result=True, soft_time_limit=15, time_limit=20)
def send_security_alert(url: str, event_type: str, payload: dict, timeout: float, secret: str = ""):
    """
    Deliver a high or critical security event to the alert endpoint.

    Args:
        url: Alert endpoint
        event_type: Security event type
        payload: Sanitized event payload
        timeout: HTTP timeout in seconds
        secret: Signing secret
    """
    return OutboundWebhookClient().deliver(url, "alert", event_type, payload, timeout, secret)


@app.task(ignore_result=True, soft_time_limit=15, time_limit=20)
def send_license_notification(
    url: str, event_type: str, payload: dict, timeout: float, secret: str = ""
):
    """Deliver a license lifecycle notification to the notification relay."""
    return OutboundWebhookClient().deliver(
        url, "notification", event_type, payload, timeout, secret
    )


@app.task(ignore_result=True, soft_time_limit=15, time_limit=20)
def report_error(url: str, payload: dict, timeout: float, secret: str = ""):
    """Submit an exception report to the error tracker."""
    return OutboundWebhookClient().deliver(
        url, "error", payload.get("error_type", "error"), payload, timeout, secret
    )
