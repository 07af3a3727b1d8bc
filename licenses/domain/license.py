"""
License domain entity.

This is the core domain entity representing a license.
It contains business logic and is independent of infrastructure.
"""
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Optional

from django.utils import timezone

from core.domain.exceptions import (
    DomainException,
    InvalidStateTransitionError,
    LicenseExpiredError,
    LicenseRevokedError,
    LicenseSuspendedError,
)
from core.domain.value_objects import Email, LicenseStatus, LicenseType

# Stored status -> statuses it may move to. Revoked is terminal; only an
# explicit admin override can bring it back to active.
ALLOWED_TRANSITIONS: Dict[LicenseStatus, FrozenSet[LicenseStatus]] = {
    LicenseStatus.ACTIVE: frozenset(
        {LicenseStatus.SUSPENDED, LicenseStatus.REVOKED, LicenseStatus.EXPIRED}
    ),
    LicenseStatus.SUSPENDED: frozenset({LicenseStatus.ACTIVE, LicenseStatus.REVOKED}),
    LicenseStatus.EXPIRED: frozenset({LicenseStatus.ACTIVE, LicenseStatus.REVOKED}),
    LicenseStatus.REVOKED: frozenset(),
}


@dataclass(frozen=True)
class License:
    """
    License domain entity.

    Represents a purchased entitlement bound to a product and a customer.
    The raw key is never held here: only its lookup hash and a masked hint.
    This is an immutable value object with business logic; every mutation
    returns a new instance.
    """

    id: uuid.UUID
    key_hash: str
    key_hint: str
    product_id: uuid.UUID
    order_id: Optional[uuid.UUID]
    customer_email: Email
    status: LicenseStatus
    license_type: LicenseType
    max_activations: int
    activation_count: int
    requires_machine_id: bool
    expires_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    revoked_at: Optional[datetime] = None

    def __post_init__(self):
        """Validate license entity."""
        if not self.key_hash:
            raise ValueError("Key hash is required")
        if not self.product_id:
            raise ValueError("Product ID is required")
        if self.max_activations < 1:
            raise ValueError("Max activations must be at least 1")
        if self.activation_count < 0:
            raise ValueError("Activation count cannot be negative")
        if self.activation_count > self.max_activations:
            raise ValueError("Activation count cannot exceed max activations")

    @classmethod
    def create(
        cls,
        key_hash: str,
        key_hint: str,
        product_id: uuid.UUID,
        customer_email: str,
        max_activations: int = 1,
        expires_at: Optional[datetime] = None,
        license_type: LicenseType = LicenseType.PERPETUAL,
        requires_machine_id: bool = False,
        order_id: Optional[uuid.UUID] = None,
        license_id: Optional[uuid.UUID] = None,
        now: Optional[datetime] = None,
    ) -> "License":
        """
        Create a new active License with no activations.

        Args:
            key_hash: SHA-256 lookup hash of the license key
            key_hint: Masked key for display
            product_id: Product UUID
            customer_email: Customer email
            max_activations: Maximum number of machine bindings
            expires_at: Optional expiration datetime (None = perpetual)
            license_type: perpetual, subscription or trial
            requires_machine_id: Whether clients must send a machine id
            order_id: Order the license was issued for
            license_id: Optional UUID (generated if not provided)
            now: Creation time

        Returns:
            License entity instance
        """
        now = now or timezone.now()
        return cls(
            id=license_id or uuid.uuid4(),
            key_hash=key_hash,
            key_hint=key_hint,
            product_id=product_id,
            order_id=order_id,
            customer_email=Email(customer_email),
            status=LicenseStatus.ACTIVE,
            license_type=license_type,
            max_activations=max_activations,
            activation_count=0,
            requires_machine_id=requires_machine_id,
            expires_at=expires_at,
            created_at=now,
            updated_at=now,
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """
        Check whether the expiry timestamp has passed.

        Args:
            now: Current time (defaults to timezone.now())
        """
        if self.status == LicenseStatus.EXPIRED:
            return True
        if self.expires_at is None:
            return False
        return self.expires_at < (now or timezone.now())

    def effective_status(self, now: Optional[datetime] = None) -> LicenseStatus:
        """
        Status as seen by clients.

        An active license whose expiry has passed reads as expired even
        though the stored status is still active.
        """
        if self.status == LicenseStatus.ACTIVE and self.is_expired(now):
            return LicenseStatus.EXPIRED
        return self.status

    def usability_error(self, now: Optional[datetime] = None) -> Optional[DomainException]:
        """
        Explain why the license cannot be validated or activated.

        Returns:
            The blocking error, or None if the license is usable
        """
        if self.is_expired(now):
            return LicenseExpiredError()
        if self.status == LicenseStatus.SUSPENDED:
            return LicenseSuspendedError()
        if self.status == LicenseStatus.REVOKED:
            return LicenseRevokedError()
        return None

    @property
    def remaining_activations(self) -> int:
        return self.max_activations - self.activation_count

    def can_transition_to(self, target: LicenseStatus, admin_override: bool = False) -> bool:
        """Check the transition table for ``self.status -> target``."""
        if (
            admin_override
            and self.status == LicenseStatus.REVOKED
            and target == LicenseStatus.ACTIVE
        ):
            return True
        return target in ALLOWED_TRANSITIONS[self.status]

    def _transition(
        self, target: LicenseStatus, now: Optional[datetime], admin_override: bool = False, **changes
    ) -> "License":
        if not self.can_transition_to(target, admin_override):
            raise InvalidStateTransitionError(
                f"Cannot move license from {self.status.value} to {target.value}"
            )
        return replace(self, status=target, updated_at=now or timezone.now(), **changes)

    def suspend(self, now: Optional[datetime] = None) -> "License":
        """
        Create a new License instance with suspended status.

        Raises:
            InvalidStateTransitionError: Unless the license is active
        """
        return self._transition(LicenseStatus.SUSPENDED, now)

    def reactivate(self, now: Optional[datetime] = None, admin_override: bool = False) -> "License":
        """
        Create a new License instance with active status.

        Suspended and expired licenses reactivate freely. A revoked license
        requires ``admin_override``.

        Raises:
            InvalidStateTransitionError: If the license is already active, or
                revoked without an admin override
        """
        return self._transition(
            LicenseStatus.ACTIVE, now, admin_override=admin_override, revoked_at=None
        )

    def revoke(self, now: Optional[datetime] = None) -> "License":
        """
        Create a new License instance with revoked status.

        Activation count drops to zero; the caller revokes the bindings in
        the same transaction.

        Raises:
            InvalidStateTransitionError: If the license is already revoked
        """
        now = now or timezone.now()
        return self._transition(LicenseStatus.REVOKED, now, revoked_at=now, activation_count=0)

    def mark_expired(self, now: Optional[datetime] = None) -> "License":
        """Persist the derived expired status."""
        return self._transition(LicenseStatus.EXPIRED, now)

    def extend(self, duration: timedelta, now: Optional[datetime] = None) -> "License":
        """
        Push the expiry back by ``duration``.

        Extension starts from the current expiry, or from now when the license
        has none. A stored expired status returns to active.

        Raises:
            InvalidStateTransitionError: If the license is revoked
            ValueError: If duration is not positive
        """
        if duration <= timedelta(0):
            raise ValueError("Extension must be positive")
        if self.status == LicenseStatus.REVOKED:
            raise InvalidStateTransitionError("Cannot extend a revoked license")
        now = now or timezone.now()
        base = self.expires_at or now
        status = LicenseStatus.ACTIVE if self.status == LicenseStatus.EXPIRED else self.status
        return replace(self, expires_at=base + duration, status=status, updated_at=now)

    def with_activation_count(self, activation_count: int) -> "License":
        """Return a copy carrying the given activation count."""
        return replace(self, activation_count=activation_count)
