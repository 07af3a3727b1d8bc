"""
Webhook dispatcher.

Processes one provider delivery end to end:

1. verify the signature (nothing is trusted before this)
2. reject replays of an already processed event id
3. dispatch by event type to the handler of that type
4. commit the state changes and the processed-event marker together
5. publish the domain events of the committed changes

Response policy towards the provider:

- invalid signature: 400, logged as a security event
- replay: 200 ``already_processed``
- unsupported or disabled event type: 200, nothing applied, not marked
- license or subscription not found where the event requires one: 404,
  not marked, so a retry can succeed once the record exists
- transition rejected by the state machine: 200 with ``success: false``,
  marked, because retrying cannot help
- concurrent modification while committing: 409, not marked
- timeout: 503, not marked
- unexpected fault: 500, not marked, reported to error tracking
"""
import asyncio
import logging
from datetime import datetime
from typing import Callable, Mapping, Optional

from asgiref.sync import sync_to_async
from django.utils import timezone

from core.config import LicensingConfig
from core.domain.audit import AuditCategory
from core.domain.events import EventBus
from core.domain.exceptions import (
    DomainException,
    InternalServiceError,
    InvalidRequestError,
    InvalidStateTransitionError,
    WebhookSignatureError,
)
from core.infrastructure.audit import AuditLogger
from core.infrastructure.error_tracking import ErrorReporter
from core.infrastructure.events import event_bus as default_event_bus
from core.infrastructure.settings_store import SettingsStore
from core.metrics import license_transitions_total, webhook_events_total, webhook_processing_seconds
from orders.ports.order_repository import ProductRepository
from webhooks.application.resolver import LicenseResolver
from webhooks.application.transitions import WebhookContext, handler_for
from webhooks.domain.outcome import HandlerResult, ProcessedEvent, StateChanges, WebhookOutcome
from webhooks.domain.provider_event import PaymentProvider, ProviderEvent
from webhooks.ports.webhook_event_repository import WebhookEventRepository

logger = logging.getLogger(__name__)

GLOBAL_SWITCH = "webhooks.enabled"


class WebhookDispatcher:
    """Verifies, deduplicates and applies payment provider webhooks."""

    def __init__(
        self,
        config: LicensingConfig,
        verifiers: Mapping[PaymentProvider, object],
        repository: WebhookEventRepository,
        resolver: LicenseResolver,
        product_repository: ProductRepository,
        audit_logger: AuditLogger,
        error_reporter: ErrorReporter,
        settings_store: SettingsStore,
        event_bus: Optional[EventBus] = None,
        clock: Callable[[], datetime] = timezone.now,
    ):
        self.config = config
        self.verifiers = verifiers
        self.repository = repository
        self.resolver = resolver
        self.product_repository = product_repository
        self.audit_logger = audit_logger
        self.error_reporter = error_reporter
        self.settings_store = settings_store
        self.event_bus = event_bus or default_event_bus
        self.clock = clock

    async def dispatch(
        self,
        provider: PaymentProvider,
        body: bytes,
        headers: Mapping[str, str],
        ip_address: Optional[str] = None,
    ) -> WebhookOutcome:
        """
        Process one webhook delivery.

        Args:
            provider: Provider the delivery claims to come from
            body: Raw request body, exactly as received
            headers: Request headers
            ip_address: Sender IP, for the audit trail

        Returns:
            WebhookOutcome carrying the HTTP status for the provider
        """
        provider = PaymentProvider(provider)
        with webhook_processing_seconds.labels(provider=provider.value).time():
            try:
                outcome = await asyncio.wait_for(
                    self._process(provider, body, headers, ip_address),
                    timeout=self.config.webhook_timeout_seconds,
                )
            except asyncio.TimeoutError:
                logger.error(
                    "%s webhook timed out after %ss", provider.value, self.config.webhook_timeout_seconds
                )
                outcome = WebhookOutcome(
                    status_code=503,
                    success=False,
                    message="Webhook processing timed out",
                    error_code="TIMEOUT",
                )

        webhook_events_total.labels(
            provider=provider.value,
            event_type=outcome.event_type or "unknown",
            outcome=outcome.metric_outcome,
        ).inc()
        return outcome

    async def _process(
        self,
        provider: PaymentProvider,
        body: bytes,
        headers: Mapping[str, str],
        ip_address: Optional[str],
    ) -> WebhookOutcome:
        try:
            event = await sync_to_async(self.verifiers[provider].verify)(body, headers)
        except WebhookSignatureError as exc:
            await self.audit_logger.log_security_event(
                "invalid_webhook_signature",
                {"provider": provider.value, "reason": exc.message},
                ip_address=ip_address,
            )
            return self._rejected(WebhookSignatureError())
        except InvalidRequestError as exc:
            return self._rejected(exc)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            return await self._internal_error(exc, {"provider": provider.value, "stage": "verify"}, ip_address)

        if not event.event_id:
            return self._rejected(InvalidRequestError("Missing event id", code="MISSING_EVENT_ID"), event)

        try:
            return await self._apply(event, ip_address)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            return await self._internal_error(exc, event.summary(), ip_address, event)

    async def _apply(self, event: ProviderEvent, ip_address: Optional[str]) -> WebhookOutcome:
        if not self.settings_store.get_bool(GLOBAL_SWITCH, True):
            return self._ignored(event, "Webhook processing disabled")

        if await self.repository.is_processed(event.provider, event.event_id):
            await self.audit_logger.log_security_event(
                "webhook_replay_detected", event.summary(), ip_address=ip_address, success=True
            )
            return self._replayed(event)

        handler = handler_for(event)
        if handler is None:
            logger.info("Unhandled %s event type %s", event.provider.value, event.event_type)
            await self.audit_logger.log_event(
                AuditCategory.WEBHOOK, event.event_type, {**event.summary(), "handled": False},
                ip_address=ip_address,
            )
            return self._ignored(event, "Unhandled event type")

        if not self.settings_store.get_bool(event.setting_key, True):
            logger.info("%s disabled by %s", event.event_type, event.setting_key)
            return self._ignored(event, "Event type disabled")

        now = self.clock()
        resolution = await self.resolver.resolve(event)
        context = WebhookContext(
            event=event, resolution=resolution, product_repository=self.product_repository, now=now
        )

        try:
            result = await handler(context)
        except InvalidStateTransitionError as exc:
            # Permanent for this event: mark it so provider retries are no-ops
            result = HandlerResult.fail(exc, license=resolution.license)
            await self.repository.commit(
                ProcessedEvent.for_event(event, result.license_id, now), StateChanges()
            )
            outcome = self._outcome(event, result, status_code=200)
            await self._audit(event, outcome, result, ip_address)
            return outcome

        if result.error is not None:
            outcome = self._outcome(event, result)
            await self._audit(event, outcome, result, ip_address)
            return outcome

        marker = ProcessedEvent.for_event(event, result.license_id, now)
        try:
            committed = await self.repository.commit(marker, result.changes)
        except InvalidStateTransitionError as exc:
            logger.warning("Conflict applying %s %s: %s", event.event_type, event.event_id, exc.code)
            return self._outcome(event, HandlerResult.fail(exc, license=resolution.license))
        if not committed:
            return self._replayed(event)

        for transition in result.changes.all_transitions:
            license_transitions_total.labels(transition=transition.name).inc()
        await self.event_bus.publish_all(result.changes.events)

        outcome = self._outcome(event, result)
        await self._audit(event, outcome, result, ip_address)
        return outcome

    def _outcome(self, event: ProviderEvent, result: HandlerResult, status_code: Optional[int] = None) -> WebhookOutcome:
        error = result.error
        if error is None:
            return WebhookOutcome(
                status_code=status_code or 200,
                success=True,
                message=result.message,
                event_type=event.event_type,
                event_id=event.event_id,
                license_id=result.license_id,
            )
        return WebhookOutcome(
            status_code=status_code or error.http_status,
            success=False,
            message=error.message,
            event_type=event.event_type,
            event_id=event.event_id,
            license_id=result.license_id,
            error_code=error.code,
        )

    def _rejected(self, error: DomainException, event: Optional[ProviderEvent] = None) -> WebhookOutcome:
        return WebhookOutcome(
            status_code=error.http_status,
            success=False,
            message=error.message,
            event_type=event.event_type if event else "",
            event_id=event.event_id if event else "",
            error_code=error.code,
        )

    def _ignored(self, event: ProviderEvent, message: str) -> WebhookOutcome:
        return WebhookOutcome(
            status_code=200,
            success=True,
            message=message,
            event_type=event.event_type,
            event_id=event.event_id,
            handled=False,
        )

    def _replayed(self, event: ProviderEvent) -> WebhookOutcome:
        logger.info("%s event %s already processed", event.provider.value, event.event_id)
        return WebhookOutcome(
            status_code=200,
            success=True,
            message="Event already processed",
            event_type=event.event_type,
            event_id=event.event_id,
            already_processed=True,
        )

    async def _audit(
        self,
        event: ProviderEvent,
        outcome: WebhookOutcome,
        result: HandlerResult,
        ip_address: Optional[str],
    ) -> None:
        await self.audit_logger.log_event(
            AuditCategory.WEBHOOK,
            event.event_type,
            {**event.summary(), "message": outcome.message},
            license_id=result.license_id,
            ip_address=ip_address,
            success=outcome.success,
            failure_reason=outcome.error_code or "",
        )

    async def _internal_error(
        self,
        exc: Exception,
        context: Mapping,
        ip_address: Optional[str],
        event: Optional[ProviderEvent] = None,
    ) -> WebhookOutcome:
        self.error_reporter.report(exc, {**context, "operation": "webhook"})
        await self.audit_logger.log_security_event(
            "internal_error",
            {**context, "error_type": type(exc).__name__},
            ip_address=ip_address,
        )
        error = InternalServiceError()
        return WebhookOutcome(
            status_code=500,
            success=False,
            message=error.message,
            event_type=event.event_type if event else "",
            event_id=event.event_id if event else "",
            error_code=error.code,
        )
