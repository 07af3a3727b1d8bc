"""
Unit tests for ProviderEvent and WebhookOutcome.
"""

from datetime import datetime
from datetime import timezone as dt_timezone

import pytest

from core.domain.exceptions import InvalidRequestError
from webhooks.domain.outcome import WebhookOutcome
from webhooks.domain.provider_event import (
    PaymentProvider,
    PayPalEventType,
    ProviderEvent,
    StripeEventType,
)
from webhook_payloads import paypal_event, stripe_event


class TestProviderEvent:
    """Tests for ProviderEvent."""

    def test_from_stripe(self):
        event = ProviderEvent.from_stripe(
            stripe_event("charge.refunded", {"id": "ch_1", "amount": 500}, event_id="evt_1")
        )

        assert event.provider == PaymentProvider.STRIPE
        assert event.event_id == "evt_1"
        assert event.kind == StripeEventType.CHARGE_REFUNDED
        assert event.get("amount") == 500
        assert event.setting_key == "webhooks.stripe.charge_refunded"

    def test_from_paypal_prefers_transmission_id(self):
        payload = paypal_event("PAYMENT.SALE.COMPLETED", {"id": "SALE-1"}, event_id="WH-1")

        with_transmission = ProviderEvent.from_paypal(payload, "tx-123")
        without = ProviderEvent.from_paypal(payload)

        assert with_transmission.event_id == "tx-123"
        assert without.event_id == "WH-1"
        assert without.kind == PayPalEventType.SALE_COMPLETED
        assert without.setting_key == "webhooks.paypal.payment_sale_completed"

    def test_unknown_type_has_no_kind(self):
        event = ProviderEvent.from_stripe(stripe_event("balance.available", {}))

        assert event.kind is None

    def test_nested_get(self):
        event = ProviderEvent.from_paypal(
            paypal_event("PAYMENT.SALE.COMPLETED", {"payer": {"payer_info": {"email": "a@b.c"}}})
        )

        assert event.get("payer", "payer_info", "email") == "a@b.c"
        assert event.get("payer", "missing", "email", default="x") == "x"
        assert event.get("payer", "payer_info", "email", "deeper") is None

    def test_malformed_envelope(self):
        event = ProviderEvent.from_stripe({"type": "charge.refunded"})

        assert event.event_id == ""
        assert event.resource == {}

    def test_malformed_sections_are_rejected(self):
        with pytest.raises(InvalidRequestError):
            ProviderEvent.from_stripe({"id": "evt_1", "type": "charge.refunded", "data": "x"})
        with pytest.raises(InvalidRequestError):
            ProviderEvent.from_stripe({"id": "evt_1", "type": "charge.refunded", "data": {"object": [1]}})
        with pytest.raises(InvalidRequestError):
            ProviderEvent.from_paypal({"id": "WH-1", "event_type": "PAYMENT.SALE.COMPLETED", "resource": "x"})


class TestWebhookOutcome:
    """Tests for WebhookOutcome.to_dict."""

    at = datetime(2026, 3, 1, 9, 30, tzinfo=dt_timezone.utc)

    def test_success_body(self):
        outcome = WebhookOutcome(
            200, True, "License revoked", event_type="charge.refunded", timestamp=self.at
        )

        assert outcome.to_dict() == {
            "success": True,
            "message": "License revoked",
            "event_type": "charge.refunded",
            "timestamp": "2026-03-01T09:30:00+00:00",
        }
        assert outcome.metric_outcome == "processed"

    def test_error_body(self):
        outcome = WebhookOutcome(
            404, False, "License not found", error_code="LICENSE_NOT_FOUND", timestamp=self.at
        )

        assert outcome.to_dict() == {
            "success": False,
            "error": "License not found",
            "code": "LICENSE_NOT_FOUND",
            "timestamp": "2026-03-01T09:30:00+00:00",
        }
        assert outcome.metric_outcome == "failed"

    def test_replay_body(self):
        outcome = WebhookOutcome(200, True, "Event already processed", already_processed=True)

        assert outcome.to_dict()["already_processed"] is True
        assert outcome.metric_outcome == "replayed"
