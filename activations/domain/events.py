"""
Activation domain events.
"""

import uuid
from dataclasses import dataclass

from core.domain.events import DomainEvent


@dataclass(frozen=True, kw_only=True)
class LicenseActivated(DomainEvent):
    """Event raised when a machine takes a seat."""

    license_id: uuid.UUID
    activation_id: uuid.UUID


@dataclass(frozen=True, kw_only=True)
class ActivationDeactivated(DomainEvent):
    """Event raised when a machine gives its seat back."""

    license_id: uuid.UUID
    activation_id: uuid.UUID


@dataclass(frozen=True, kw_only=True)
class ActivationsRevoked(DomainEvent):
    """Event raised when an admin revokes machine bindings."""

    license_id: uuid.UUID
    count: int
    reason: str = ""
