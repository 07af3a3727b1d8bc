"""
Webhook signature verification.

Each verifier turns a raw delivery (body bytes plus headers) into a
``ProviderEvent`` or raises ``WebhookSignatureError``. Nothing is parsed or
trusted before the signature checks out.
"""

import json
import logging
from typing import Any, Mapping

import requests
import stripe

from core.config import LicensingConfig
from core.domain.exceptions import InvalidRequestError, WebhookSignatureError
from webhooks.domain.provider_event import ProviderEvent

logger = logging.getLogger(__name__)


def _parse(body: bytes) -> Mapping[str, Any]:
    try:
        payload = json.loads(body)
    except (TypeError, ValueError) as exc:
        raise InvalidRequestError("Invalid JSON payload", code="INVALID_PAYLOAD") from exc
    if not isinstance(payload, dict):
        raise InvalidRequestError("Invalid JSON payload", code="INVALID_PAYLOAD")
    return payload


class StripeSignatureVerifier:
    """Checks the ``Stripe-Signature`` header against the endpoint secret."""

    SIGNATURE_HEADER = "Stripe-Signature"

    def __init__(self, config: LicensingConfig):
        self.secret = config.stripe_webhook_secret

    def verify(self, body: bytes, headers: Mapping[str, str]) -> ProviderEvent:
        """
        Verify a Stripe delivery.

        Args:
            body: Raw request body
            headers: Request headers

        Returns:
            ProviderEvent built from the verified envelope

        Raises:
            WebhookSignatureError: Missing or invalid signature, or no secret configured
            InvalidRequestError: Signed body is not a JSON object
        """
        signature = headers.get(self.SIGNATURE_HEADER, "")
        if not self.secret:
            logger.error("Stripe webhook secret is not configured")
            raise WebhookSignatureError()
        if not signature:
            raise WebhookSignatureError("Missing signature")
        try:
            stripe.WebhookSignature.verify_header(
                body.decode("utf-8"), signature, self.secret, tolerance=stripe.Webhook.DEFAULT_TOLERANCE
            )
        except stripe.SignatureVerificationError as exc:
            raise WebhookSignatureError() from exc
        except UnicodeDecodeError as exc:
            raise InvalidRequestError("Invalid JSON payload", code="INVALID_PAYLOAD") from exc
        return ProviderEvent.from_stripe(_parse(body))


class PayPalSignatureVerifier:
    """
    Verifies PayPal deliveries through PayPal's verification API.

    An OAuth2 client-credentials token is fetched first, then the
    transmission headers and the event are posted to
    ``/v1/notifications/verify-webhook-signature``.
    """

    TRANSMISSION_ID = "PAYPAL-TRANSMISSION-ID"
    TRANSMISSION_TIME = "PAYPAL-TRANSMISSION-TIME"
    TRANSMISSION_SIG = "PAYPAL-TRANSMISSION-SIG"
    CERT_URL = "PAYPAL-CERT-URL"
    AUTH_ALGO = "PAYPAL-AUTH-ALGO"

    def __init__(self, config: LicensingConfig, session=None):
        self.config = config
        self.session = session or requests

    def _access_token(self) -> str:
        response = self.session.post(
            f"{self.config.paypal_api_base}/v1/oauth2/token",
            auth=(self.config.paypal_client_id, self.config.paypal_client_secret),
            data={"grant_type": "client_credentials"},
            headers={"Accept": "application/json"},
            timeout=self.config.outbound_timeout_seconds,
        )
        response.raise_for_status()
        token = response.json().get("access_token")
        if not token:
            raise WebhookSignatureError("Could not authenticate with PayPal")
        return token

    def verify(self, body: bytes, headers: Mapping[str, str]) -> ProviderEvent:
        """
        Verify a PayPal delivery.

        Raises:
            WebhookSignatureError: Missing headers, unconfigured credentials,
                verification API unreachable or status other than SUCCESS
            InvalidRequestError: Body is not a JSON object
        """
        transmission_id = headers.get(self.TRANSMISSION_ID, "")
        if not transmission_id or not headers.get(self.TRANSMISSION_SIG):
            raise WebhookSignatureError("Missing signature")
        config = self.config
        if not (config.paypal_webhook_id and config.paypal_client_id and config.paypal_client_secret):
            logger.error("PayPal webhook verification is not configured")
            raise WebhookSignatureError()

        payload = _parse(body)
        try:
            token = self._access_token()
            response = self.session.post(
                f"{config.paypal_api_base}/v1/notifications/verify-webhook-signature",
                json={
                    "transmission_id": transmission_id,
                    "transmission_time": headers.get(self.TRANSMISSION_TIME, ""),
                    "cert_url": headers.get(self.CERT_URL, ""),
                    "auth_algo": headers.get(self.AUTH_ALGO, ""),
                    "transmission_sig": headers.get(self.TRANSMISSION_SIG, ""),
                    "webhook_id": config.paypal_webhook_id,
                    "webhook_event": payload,
                },
                headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
                timeout=config.outbound_timeout_seconds,
            )
            response.raise_for_status()
            status = response.json().get("verification_status")
        except (requests.exceptions.RequestException, ValueError) as exc:
            logger.warning("PayPal signature verification failed: %s", exc)
            raise WebhookSignatureError() from exc

        if status != "SUCCESS":
            raise WebhookSignatureError()
        return ProviderEvent.from_paypal(payload, transmission_id)
