"""
Webhook domain events.
"""
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from core.domain.events import DomainEvent


@dataclass(frozen=True, kw_only=True)
class CustomerNotificationRequested(DomainEvent):
    """A provider event the customer should hear about (failed payment, trial ending...)."""

    license_id: Optional[uuid.UUID]
    reason: str
    provider: str
    provider_event_type: str
    context: Optional[Dict[str, Any]] = None
