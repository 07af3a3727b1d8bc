"""
Webhook processing values.

Handlers compute ``StateChanges`` without writing anything; the dispatcher
commits them together with the processed-event marker.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from django.utils import timezone

from core.domain.events import DomainEvent
from core.domain.exceptions import DomainException
from licenses.domain.services import IssuedLicense
from licenses.domain.state_machine import LicenseTransition
from orders.domain.order import Order
from webhooks.domain.provider_event import PaymentProvider, ProviderEvent


@dataclass
class StateChanges:
    """Everything one webhook event changes, applied as a single unit."""

    orders: List[Order] = field(default_factory=list)
    issued: List[IssuedLicense] = field(default_factory=list)
    transitions: List[LicenseTransition] = field(default_factory=list)
    notifications: List[DomainEvent] = field(default_factory=list)

    @property
    def all_transitions(self) -> List[LicenseTransition]:
        """Issuance first, then lifecycle changes, in the order computed."""
        return [item.transition for item in self.issued] + self.transitions

    @property
    def events(self) -> Tuple[DomainEvent, ...]:
        events: Tuple[DomainEvent, ...] = ()
        for transition in self.all_transitions:
            events += transition.events
        return events + tuple(self.notifications)

    def is_empty(self) -> bool:
        return not (self.orders or self.issued or self.transitions)


@dataclass
class HandlerResult:
    """What an event handler decided."""

    message: str
    changes: StateChanges = field(default_factory=StateChanges)
    license_id: Optional[uuid.UUID] = None
    error: Optional[DomainException] = None

    @classmethod
    def ok(cls, message: str, changes: Optional[StateChanges] = None, license=None) -> "HandlerResult":
        return cls(
            message=message,
            changes=changes or StateChanges(),
            license_id=license.id if license is not None else None,
        )

    @classmethod
    def fail(cls, error: DomainException, license=None) -> "HandlerResult":
        return cls(
            message=error.message,
            license_id=license.id if license is not None else None,
            error=error,
        )


@dataclass(frozen=True)
class ProcessedEvent:
    """Durable marker of a provider event that has been applied."""

    provider: PaymentProvider
    event_id: str
    event_type: str
    license_id: Optional[uuid.UUID] = None
    processed_at: datetime = field(default_factory=timezone.now)

    @classmethod
    def for_event(
        cls, event: ProviderEvent, license_id: Optional[uuid.UUID] = None, now: Optional[datetime] = None
    ) -> "ProcessedEvent":
        return cls(
            provider=event.provider,
            event_id=event.event_id,
            event_type=event.event_type,
            license_id=license_id,
            processed_at=now or timezone.now(),
        )


@dataclass(frozen=True)
class WebhookOutcome:
    """HTTP-facing result of processing one webhook delivery."""

    status_code: int
    success: bool
    message: str
    event_type: str = ""
    event_id: str = ""
    already_processed: bool = False
    handled: bool = True
    license_id: Optional[uuid.UUID] = None
    error_code: Optional[str] = None
    timestamp: datetime = field(default_factory=timezone.now)

    @property
    def metric_outcome(self) -> str:
        if self.already_processed:
            return "replayed"
        if not self.handled:
            return "ignored"
        if self.success:
            return "processed"
        return "failed" if self.status_code < 500 else "error"

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": self.success}
        if self.success:
            body["message"] = self.message
        else:
            body["error"] = self.message
            if self.error_code:
                body["code"] = self.error_code
        if self.event_type:
            body["event_type"] = self.event_type
        if self.already_processed:
            body["already_processed"] = True
        body["timestamp"] = self.timestamp.isoformat()
        return body
