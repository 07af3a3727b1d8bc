"""
Activation repository port (interface).

This defines the contract for activation persistence operations.
Implementations are in the infrastructure layer.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional

from activations.domain.activation import Activation, MachineIdentity


class ReservationStatus(str, Enum):
    """Outcome of a seat reservation."""

    CREATED = "created"
    EXISTING = "existing"
    LIMIT_REACHED = "limit_reached"
    LICENSE_UNAVAILABLE = "license_unavailable"
    LICENSE_NOT_FOUND = "license_not_found"


@dataclass(frozen=True)
class SeatReservation:
    """Result of ``reserve_seat``, with the license counters seen under lock."""

    status: ReservationStatus
    activation: Optional[Activation] = None
    activation_count: int = 0
    max_activations: int = 0

    @property
    def granted(self) -> bool:
        return self.status in (ReservationStatus.CREATED, ReservationStatus.EXISTING)


class ActivationRepository(ABC):
    """
    Abstract repository for Activation entities.

    Seat accounting happens here: ``reserve_seat`` and ``release_seat`` keep
    the license's activation count and its live bindings in step inside a
    single transaction.
    """

    @abstractmethod
    async def find_live_bindings(
        self, license_id: uuid.UUID, identity: MachineIdentity
    ) -> List[Activation]:
        """
        Find live bindings matching the supplied identity parts.

        Args:
            license_id: License UUID
            identity: Hashed machine identity; absent parts match anything

        Returns:
            Matching active, non-revoked activations, newest first
        """

    @abstractmethod
    async def reserve_seat(
        self,
        license_id: uuid.UUID,
        identity: MachineIdentity,
        ip_address: Optional[str],
        now: datetime,
    ) -> SeatReservation:
        """
        Bind a machine to a license if a seat is free.

        Atomic with respect to concurrent reservations on the same license:
        when one seat remains, exactly one of two racing calls gets it.
        Re-binding the exact same identity returns the existing binding
        without consuming another seat.
        """

    @abstractmethod
    async def release_seat(
        self, license_id: uuid.UUID, identity: MachineIdentity, now: datetime
    ) -> Optional[Activation]:
        """
        Deactivate the newest live binding matching the identity.

        Returns:
            The deactivated binding, or None if nothing matched
        """

    @abstractmethod
    async def revoke_bindings(
        self,
        license_id: uuid.UUID,
        identity: Optional[MachineIdentity],
        reason: str,
        now: datetime,
    ) -> int:
        """
        Revoke live bindings and free their seats.

        Args:
            license_id: License UUID
            identity: Restrict to matching bindings; None revokes all
            reason: Revocation reason
            now: Revocation time

        Returns:
            Number of bindings revoked
        """

    @abstractmethod
    async def list_history(self, license_id: uuid.UUID, limit: int = 50) -> List[Activation]:
        """List bindings of a license, most recent activation first."""

    @abstractmethod
    async def count_live(self, license_id: uuid.UUID) -> int:
        """Count active, non-revoked bindings."""
