"""
License domain events.

Domain events represent something that happened in the license domain.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from core.domain.events import DomainEvent


@dataclass(frozen=True, kw_only=True)
class LicenseIssued(DomainEvent):
    """Event raised when a license is issued for a completed order."""

    license_id: uuid.UUID
    product_id: uuid.UUID
    order_id: Optional[uuid.UUID]
    customer_email: str


@dataclass(frozen=True, kw_only=True)
class LicenseSuspended(DomainEvent):
    """Event raised when a license is suspended."""

    license_id: uuid.UUID
    reason: str = ""


@dataclass(frozen=True, kw_only=True)
class LicenseReactivated(DomainEvent):
    """Event raised when a suspended, expired or revoked license is reactivated."""

    license_id: uuid.UUID
    previous_status: str
    admin_override: bool = False


@dataclass(frozen=True, kw_only=True)
class LicenseRevoked(DomainEvent):
    """Event raised when a license is revoked."""

    license_id: uuid.UUID
    reason: str = ""


@dataclass(frozen=True, kw_only=True)
class LicenseExtended(DomainEvent):
    """Event raised when a license expiry is pushed back."""

    license_id: uuid.UUID
    new_expiration: datetime


@dataclass(frozen=True, kw_only=True)
class SubscriptionStatusChanged(DomainEvent):
    """Event raised when a subscription changes status."""

    license_id: uuid.UUID
    subscription_id: uuid.UUID
    status: str
