"""
Unit tests for WebhookDispatcher.
"""

import asyncio
import json
from dataclasses import replace
from unittest.mock import MagicMock

import pytest

from core.domain.audit import AuditCategory
from core.domain.exceptions import (
    InvalidRequestError,
    InvalidStateTransitionError,
    WebhookSignatureError,
)
from core.domain.value_objects import LicenseStatus
from core.infrastructure.settings_store import SettingsStore
from licenses.domain.events import LicenseSuspended
from webhooks.application.dispatcher import WebhookDispatcher
from webhooks.application.resolver import LicenseResolver
from webhooks.domain.outcome import ProcessedEvent
from webhooks.domain.provider_event import PaymentProvider, ProviderEvent
from webhook_payloads import paypal_event, stripe_event


class FakeVerifier:
    """Trusts the body as-is, or fails the way it is told to."""

    def __init__(self, provider=PaymentProvider.STRIPE, error=None):
        self.provider = provider
        self.error = error

    def verify(self, body, headers):
        if self.error is not None:
            raise self.error
        payload = json.loads(body)
        if self.provider == PaymentProvider.STRIPE:
            return ProviderEvent.from_stripe(payload)
        return ProviderEvent.from_paypal(payload)


class SlowResolver:
    async def resolve(self, event):
        await asyncio.sleep(5)


@pytest.fixture
def error_reporter():
    return MagicMock()


@pytest.fixture
def build_dispatcher(
    licensing_config,
    store,
    license_repository,
    order_repository,
    subscription_repository,
    product_repository,
    webhook_event_repository,
    audit_logger,
    error_reporter,
    event_bus,
):
    def build(stripe=None, settings=None, resolver=None, **config):
        return WebhookDispatcher(
            config=replace(licensing_config, **config),
            verifiers={
                PaymentProvider.STRIPE: stripe or FakeVerifier(),
                PaymentProvider.PAYPAL: FakeVerifier(PaymentProvider.PAYPAL),
            },
            repository=webhook_event_repository,
            resolver=resolver or LicenseResolver(license_repository, order_repository, subscription_repository),
            product_repository=product_repository,
            audit_logger=audit_logger,
            error_reporter=error_reporter,
            settings_store=SettingsStore(settings or {}),
            event_bus=event_bus,
        )

    return build


def body(payload):
    return json.dumps(payload).encode()


def dispute(email="customer@example.com", event_id="evt_dispute_1"):
    return body(stripe_event("charge.dispute.created", {"id": "dp_1", "receipt_email": email}, event_id=event_id))


def security_actions(store):
    return [r.action for r in store.audit if r.category == AuditCategory.SECURITY]


@pytest.mark.asyncio
class TestVerification:
    """Tests for deliveries rejected before any processing."""

    async def test_invalid_signature(self, build_dispatcher, store):
        dispatcher = build_dispatcher(stripe=FakeVerifier(error=WebhookSignatureError("bad v1")))

        outcome = await dispatcher.dispatch("stripe", b"{}", {}, ip_address="198.51.100.1")

        assert outcome.status_code == 400
        assert outcome.error_code == "INVALID_SIGNATURE"
        assert security_actions(store) == ["invalid_webhook_signature"]
        assert store.audit[0].ip_address == "198.51.100.1"

    async def test_malformed_body(self, build_dispatcher):
        dispatcher = build_dispatcher(stripe=FakeVerifier(error=InvalidRequestError("Malformed JSON")))

        outcome = await dispatcher.dispatch(PaymentProvider.STRIPE, b"{", {})

        assert outcome.status_code == 400
        assert outcome.error_code == "INVALID_REQUEST"

    async def test_verifier_crash_is_reported(self, build_dispatcher, error_reporter, store):
        dispatcher = build_dispatcher(stripe=FakeVerifier(error=RuntimeError("boom")))

        outcome = await dispatcher.dispatch("stripe", b"{}", {})

        assert outcome.status_code == 500
        assert outcome.error_code == "INTERNAL_ERROR"
        error_reporter.report.assert_called_once()
        assert security_actions(store) == ["internal_error"]

    async def test_missing_event_id(self, build_dispatcher):
        outcome = await build_dispatcher().dispatch("stripe", body({"type": "charge.refunded"}), {})

        assert outcome.status_code == 400
        assert outcome.error_code == "MISSING_EVENT_ID"


@pytest.mark.asyncio
class TestProcessing:
    """Tests for the processing policy of verified events."""

    async def test_applies_transition_and_marks_event(
        self, build_dispatcher, store, license_factory, recorded_events
    ):
        _, license = license_factory()

        outcome = await build_dispatcher().dispatch("stripe", dispute(), {})

        assert outcome.status_code == 200
        assert outcome.success is True
        assert outcome.license_id == license.id
        assert store.licenses[license.id].status == LicenseStatus.SUSPENDED
        assert ("stripe", "evt_dispute_1") in store.markers
        assert [type(e) for e in recorded_events] == [LicenseSuspended]
        webhook_records = [r for r in store.audit if r.category == AuditCategory.WEBHOOK]
        assert webhook_records[0].action == "charge.dispute.created"
        assert webhook_records[0].success is True

    async def test_replay_is_not_reapplied(self, build_dispatcher, store, license_factory, recorded_events):
        """Test a second delivery of the same event id changes nothing."""
        license_factory()
        dispatcher = build_dispatcher()

        await dispatcher.dispatch("stripe", dispute(), {})
        replay = await dispatcher.dispatch("stripe", dispute(), {})

        assert replay.status_code == 200
        assert replay.already_processed is True
        assert replay.to_dict()["already_processed"] is True
        assert len(recorded_events) == 1
        assert "webhook_replay_detected" in security_actions(store)

    async def test_same_id_from_other_provider_is_not_a_replay(self, build_dispatcher, store, license_factory):
        license_factory()
        dispatcher = build_dispatcher()
        await dispatcher.dispatch("stripe", dispute(event_id="shared-id"), {})

        outcome = await dispatcher.dispatch(
            "paypal",
            body(paypal_event("PAYMENT.SALE.DENIED", {"id": "S-1"}, event_id="shared-id")),
            {},
        )

        assert outcome.already_processed is False
        assert ("paypal", "shared-id") in store.markers

    async def test_unhandled_type(self, build_dispatcher, store):
        outcome = await build_dispatcher().dispatch("stripe", body(stripe_event("balance.available", {})), {})

        assert outcome.status_code == 200
        assert outcome.handled is False
        assert outcome.metric_outcome == "ignored"
        assert store.markers == {}

    async def test_disabled_event_type(self, build_dispatcher, store, license_factory):
        _, license = license_factory()
        dispatcher = build_dispatcher(settings={"webhooks": {"stripe": {"charge_dispute_created": False}}})

        outcome = await dispatcher.dispatch("stripe", dispute(), {})

        assert outcome.status_code == 200
        assert outcome.message == "Event type disabled"
        assert store.licenses[license.id].status == LicenseStatus.ACTIVE
        assert store.markers == {}

    async def test_global_switch(self, build_dispatcher, license_factory, store):
        _, license = license_factory()
        dispatcher = build_dispatcher(settings={"webhooks": {"enabled": "false"}})

        outcome = await dispatcher.dispatch("stripe", dispute(), {})

        assert outcome.handled is False
        assert store.licenses[license.id].status == LicenseStatus.ACTIVE

    async def test_license_not_found_is_not_marked(self, build_dispatcher, store):
        """Test a 404 leaves the event retryable."""
        outcome = await build_dispatcher().dispatch("stripe", dispute(email="nobody@example.com"), {})

        assert outcome.status_code == 404
        assert outcome.error_code == "LICENSE_NOT_FOUND"
        assert store.markers == {}

    async def test_rejected_transition_is_marked(self, build_dispatcher, store, license_factory):
        """Test a payment event cannot revive a revoked license and is not retried."""
        _, license = license_factory(with_subscription=True, subscription_external_id="sub_9")
        store.licenses[license.id] = license.revoke()
        payload = stripe_event(
            "customer.subscription.resumed", {"id": "sub_9", "object": "subscription"}, event_id="evt_resume"
        )

        outcome = await build_dispatcher().dispatch("stripe", body(payload), {})

        assert outcome.status_code == 200
        assert outcome.success is False
        assert outcome.error_code == "INVALID_STATE_TRANSITION"
        assert store.licenses[license.id].status == LicenseStatus.REVOKED
        assert ("stripe", "evt_resume") in store.markers

    async def test_commit_conflict(self, build_dispatcher, store, license_factory, webhook_event_repository):
        _, license = license_factory()
        webhook_event_repository.fail_with = InvalidStateTransitionError(
            "License changed concurrently", code="CONCURRENT_MODIFICATION"
        )

        outcome = await build_dispatcher().dispatch("stripe", dispute(), {})

        assert outcome.status_code == 409
        assert outcome.error_code == "CONCURRENT_MODIFICATION"
        assert store.markers == {}

    async def test_concurrent_duplicate_commit(self, build_dispatcher, store, license_factory, recorded_events):
        """Test the commit losing to a parallel delivery of the same event reports a replay."""
        license_factory()
        event = ProviderEvent.from_stripe(json.loads(dispute()))
        dispatcher = build_dispatcher()
        is_processed = dispatcher.repository.is_processed

        async def not_yet(provider, event_id):
            result = await is_processed(provider, event_id)
            store.markers[(provider.value, event_id)] = ProcessedEvent.for_event(event)
            return result

        dispatcher.repository.is_processed = not_yet

        outcome = await dispatcher.dispatch("stripe", dispute(), {})

        assert outcome.already_processed is True
        assert recorded_events == []

    async def test_timeout(self, build_dispatcher, store, license_factory):
        license_factory()
        dispatcher = build_dispatcher(resolver=SlowResolver(), webhook_timeout_seconds=0.05)

        outcome = await dispatcher.dispatch("stripe", dispute(), {})

        assert outcome.status_code == 503
        assert outcome.error_code == "TIMEOUT"
        assert store.markers == {}

    async def test_handler_crash(self, build_dispatcher, error_reporter, store, license_factory, monkeypatch):
        license_factory()

        async def explode(ctx):
            raise RuntimeError("handler bug")

        monkeypatch.setattr("webhooks.application.dispatcher.handler_for", lambda event: explode)

        outcome = await build_dispatcher().dispatch("stripe", dispute(), {})

        assert outcome.status_code == 500
        assert outcome.event_id == "evt_dispute_1"
        error_reporter.report.assert_called_once()
        assert store.markers == {}
