"""
Unit tests for outbound delivery, background dispatch and event handlers.
"""

import json
import uuid
from dataclasses import replace
from unittest.mock import MagicMock, patch

import pytest
import requests

from core.infrastructure.background import dispatch
from core.infrastructure.error_tracking import ErrorReporter
from core.infrastructure.event_handlers import NotificationEventHandler, register_event_handlers
from core.infrastructure.events import InMemoryEventBus
from core.infrastructure.outbound import OutboundWebhookClient
from licenses.domain.events import LicenseRevoked, LicenseSuspended


class TestOutboundWebhookClient:
    """Tests for OutboundWebhookClient."""

    def test_signature_round_trip(self):
        signature = OutboundWebhookClient.generate_signature('{"a": 1}', "secret")

        assert OutboundWebhookClient.verify_signature('{"a": 1}', signature, "secret")
        assert not OutboundWebhookClient.verify_signature('{"a": 2}', signature, "secret")

    def test_deliver_posts_signed_json(self):
        session = MagicMock()
        client = OutboundWebhookClient(session=session)

        delivered = client.deliver(
            "https://relay.example.com", "notification", "license.revoked", {"id": 1}, 5, "secret"
        )

        assert delivered is True
        kwargs = session.post.call_args.kwargs
        body = json.loads(kwargs["data"])
        assert body["event_type"] == "license.revoked"
        assert body["data"] == {"id": 1}
        assert kwargs["headers"]["X-Webhook-Event"] == "license.revoked"
        assert OutboundWebhookClient.verify_signature(
            kwargs["data"], kwargs["headers"]["X-Webhook-Signature"], "secret"
        )
        assert kwargs["timeout"] == 5

    def test_deliver_without_secret_is_unsigned(self):
        session = MagicMock()

        OutboundWebhookClient(session=session).deliver("https://x", "alert", "e", {}, 5)

        assert "X-Webhook-Signature" not in session.post.call_args.kwargs["headers"]

    def test_deliver_failure_returns_false(self):
        session = MagicMock()
        session.post.side_effect = requests.exceptions.ConnectionError("refused")

        assert OutboundWebhookClient(session=session).deliver("https://x", "alert", "e", {}, 5) is False

    def test_deliver_http_error_returns_false(self):
        session = MagicMock()
        session.post.return_value.raise_for_status.side_effect = requests.exceptions.HTTPError("500")

        assert OutboundWebhookClient(session=session).deliver("https://x", "alert", "e", {}, 5) is False

    def test_no_url_skips(self):
        session = MagicMock()

        assert OutboundWebhookClient(session=session).deliver("", "alert", "e", {}, 5) is False
        session.post.assert_not_called()


class TestDispatch:
    """Tests for background dispatch."""

    def test_queues_task(self):
        task = MagicMock()

        assert dispatch(task, 1, flag=True) is True
        task.delay.assert_called_once_with(1, flag=True)

    def test_broker_failure_is_swallowed(self):
        task = MagicMock()
        task.delay.side_effect = ConnectionError("broker down")

        assert dispatch(task) is False


class TestErrorReporter:
    """Tests for ErrorReporter."""

    def test_report_is_sanitized(self, licensing_config):
        config = replace(licensing_config, error_tracking_url="https://errors.example.com")

        with patch("core.infrastructure.error_tracking.dispatch") as queued:
            ErrorReporter(config).report(
                RuntimeError("boom"),
                {"operation": "activate", "license_key": "LIC-ABCD-EFGH-IJKL-MNOP"},
            )

        payload = queued.call_args.args[2]
        assert payload["error_type"] == "RuntimeError"
        assert payload["context"]["license_key"] == "LIC-****MNOP"

    def test_no_tracker_configured(self, licensing_config):
        with patch("core.infrastructure.error_tracking.dispatch") as queued:
            ErrorReporter(licensing_config).report(RuntimeError("boom"))

        queued.assert_not_called()


@pytest.mark.asyncio
class TestEventHandlers:
    """Tests for the domain event handlers."""

    async def test_notification_handler_queues_delivery(self, licensing_config):
        config = replace(licensing_config, notification_url="https://relay.example.com")
        license_id = uuid.uuid4()
        event = LicenseRevoked(aggregate_id=str(license_id), license_id=license_id, reason="refund")

        with patch("core.infrastructure.event_handlers.dispatch") as queued:
            await NotificationEventHandler(config).handle(event)

        args = queued.call_args.args
        assert args[1] == "https://relay.example.com"
        assert args[2] == event.event_type

    async def test_notification_handler_without_relay(self, licensing_config):
        license_id = uuid.uuid4()
        event = LicenseSuspended(aggregate_id=str(license_id), license_id=license_id)

        with patch("core.infrastructure.event_handlers.dispatch") as queued:
            await NotificationEventHandler(licensing_config).handle(event)

        queued.assert_not_called()

    async def test_register_and_publish(self, licensing_config):
        bus = InMemoryEventBus()
        register_event_handlers(licensing_config, bus)
        license_id = uuid.uuid4()

        await bus.publish(LicenseSuspended(aggregate_id=str(license_id), license_id=license_id))

    async def test_failing_handler_does_not_reach_publisher(self):
        from core.domain.events import EventHandler

        class Failing(EventHandler):
            async def handle(self, event):
                raise RuntimeError("handler failed")

        bus = InMemoryEventBus()
        bus.subscribe(LicenseSuspended, Failing())
        license_id = uuid.uuid4()

        await bus.publish(LicenseSuspended(aggregate_id=str(license_id), license_id=license_id))
