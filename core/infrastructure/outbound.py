"""
Outbound HTTP delivery.

Posts signed JSON payloads to external collaborators: the security alert
endpoint, the notification relay and the error tracker. Delivery runs inside
Celery tasks; failures are logged and reported as ``False``, never raised.
"""
import hashlib
import hmac
import json
import logging
from typing import Any, Dict

import requests
from django.utils import timezone

from core.metrics import outbound_deliveries_total

logger = logging.getLogger(__name__)


class OutboundWebhookClient:
    """Delivers JSON payloads with an HMAC signature header."""

    USER_AGENT = "License-Server-Webhook/1.0"

    def __init__(self, session=None):
        self.session = session or requests

    @staticmethod
    def generate_signature(payload: str, secret: str) -> str:
        """
        Generate HMAC signature for a payload.

        Args:
            payload: JSON string payload
            secret: Signing secret

        Returns:
            HMAC SHA-256 signature (hex)
        """
        return hmac.new(secret.encode(), payload.encode(), hashlib.sha256).hexdigest()

    @staticmethod
    def verify_signature(payload: str, signature: str, secret: str) -> bool:
        """Check a signature produced by ``generate_signature``."""
        expected_signature = OutboundWebhookClient.generate_signature(payload, secret)
        return hmac.compare_digest(expected_signature, signature)

    def deliver(
        self,
        url: str,
        kind: str,
        event_type: str,
        payload: Dict[str, Any],
        timeout: float,
        secret: str = "",
    ) -> bool:
        """
        Post one payload.

        Args:
            url: Destination URL
            kind: Delivery kind for metrics (alert, notification, error)
            event_type: Event type header value
            payload: JSON-serializable body
            timeout: Request timeout in seconds
            secret: Optional signing secret

        Returns:
            True if the collaborator accepted the payload
        """
        if not url:
            logger.debug("No %s endpoint configured, skipping %s", kind, event_type)
            outbound_deliveries_total.labels(kind=kind, outcome="skipped").inc()
            return False

        body = {
            "event_type": event_type,
            "timestamp": timezone.now().isoformat(),
            "data": payload,
        }
        body_json = json.dumps(body, sort_keys=True, default=str)
        headers = {
            "Content-Type": "application/json",
            "X-Webhook-Event": event_type,
            "User-Agent": self.USER_AGENT,
        }
        if secret:
            headers["X-Webhook-Signature"] = self.generate_signature(body_json, secret)

        try:
            response = self.session.post(url, data=body_json, headers=headers, timeout=timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as exc:
            logger.warning("%s delivery failed for %s: %s", kind, event_type, exc)
            outbound_deliveries_total.labels(kind=kind, outcome="failed").inc()
            return False

        logger.info("%s delivered: %s", kind, event_type)
        outbound_deliveries_total.labels(kind=kind, outcome="delivered").inc()
        return True
