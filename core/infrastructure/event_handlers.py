"""
Event handlers for domain events.

These handlers process domain events for side effects: a structured log
line per event and customer notifications through the notification relay.
"""

import logging
from typing import Optional

from core.config import LicensingConfig
from core.domain.events import DomainEvent, EventBus, EventHandler
from core.infrastructure.background import dispatch
from activations.domain.events import ActivationDeactivated, ActivationsRevoked, LicenseActivated
from licenses.domain.events import (
    LicenseExtended,
    LicenseIssued,
    LicenseReactivated,
    LicenseRevoked,
    LicenseSuspended,
    SubscriptionStatusChanged,
)
from webhooks.domain.events import CustomerNotificationRequested

logger = logging.getLogger(__name__)

AUDITED_EVENTS = (
    LicenseIssued,
    LicenseSuspended,
    LicenseReactivated,
    LicenseRevoked,
    LicenseExtended,
    SubscriptionStatusChanged,
    LicenseActivated,
    ActivationDeactivated,
    ActivationsRevoked,
    CustomerNotificationRequested,
)

NOTIFIED_EVENTS = (
    LicenseIssued,
    LicenseSuspended,
    LicenseReactivated,
    LicenseRevoked,
    LicenseExtended,
    CustomerNotificationRequested,
)


class AuditLogEventHandler(EventHandler):
    """
    Event handler for audit logging.

    Writes one structured log line per domain event. Operation-level audit
    rows are written by the services that perform the operation.
    """

    async def handle(self, event: DomainEvent) -> None:
        """
        Handle domain event for audit logging.

        Args:
            event: Domain event to log
        """
        logger.info(
            "Domain event: %s - %s",
            event.event_type,
            event.aggregate_id,
            extra={
                "event_id": str(event.event_id),
                "event_type": event.event_type,
                "aggregate_id": event.aggregate_id,
                "occurred_at": event.occurred_at.isoformat(),
            },
        )


class NotificationEventHandler(EventHandler):
    """
    Event handler for customer notifications.

    Queues delivery to the notification relay; the relay looks the customer
    up by license id. Nothing is sent when no relay is configured.
    """

    def __init__(self, config: LicensingConfig):
        self.config = config

    async def handle(self, event: DomainEvent) -> None:
        if not self.config.notification_url:
            return

        from core.tasks import send_license_notification

        dispatch(
            send_license_notification,
            self.config.notification_url,
            event.event_type,
            event.to_dict(),
            self.config.outbound_timeout_seconds,
            self.config.outbound_signing_secret,
        )


def register_event_handlers(config: LicensingConfig, bus: Optional[EventBus] = None) -> None:
    """Register all event handlers with the event bus."""
    if bus is None:
        from core.infrastructure.events import event_bus as bus

    audit_handler = AuditLogEventHandler()
    notification_handler = NotificationEventHandler(config)

    for event_type in AUDITED_EVENTS:
        bus.subscribe(event_type, audit_handler)
    for event_type in NOTIFIED_EVENTS:
        bus.subscribe(event_type, notification_handler)

    logger.info("Event handlers registered")
