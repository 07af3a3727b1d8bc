"""
Activation domain services.

Domain services contain business logic that doesn't naturally
fit within a single entity.
"""

from datetime import datetime
from typing import Callable, Optional

from django.utils import timezone

from activations.domain.activation import Activation, MachineIdentity
from activations.ports.activation_repository import (
    ActivationRepository,
    ReservationStatus,
    SeatReservation,
)
from core.domain.exceptions import (
    ActivationLimitExceededError,
    ActivationNotFoundError,
    DomainException,
    InvalidStateError,
    LicenseNotFoundError,
    MachineNotActivatedError,
)
from licenses.domain.license import License


class SeatManager:
    """
    Domain service for machine seats.

    Returns error values instead of raising, so validate, activate and
    deactivate can report expected failures without exception handling.
    """

    def __init__(
        self,
        activations: ActivationRepository,
        clock: Callable[[], datetime] = timezone.now,
    ):
        """
        Initialize seat manager.

        Args:
            activations: Activation repository
            clock: Source of the current time
        """
        self.activations = activations
        self.clock = clock

    async def verify_binding(
        self, license: License, identity: MachineIdentity
    ) -> Optional[DomainException]:
        """
        Check the machine holds a live seat on the license.

        Nothing is checked when the client sent no machine data.

        Returns:
            MachineNotActivatedError if no live binding matches, else None
        """
        if identity.is_empty:
            return None
        bindings = await self.activations.find_live_bindings(license.id, identity)
        if not any(binding.matches(identity) for binding in bindings):
            return MachineNotActivatedError()
        return None

    async def claim(
        self, license: License, identity: MachineIdentity, ip_address: Optional[str] = None
    ) -> SeatReservation:
        """
        Bind the machine to the license.

        The license counters are re-read under lock, so a stale ``license``
        only costs an extra round trip, never an over-allocation.
        """
        return await self.activations.reserve_seat(license.id, identity, ip_address, self.clock())

    async def release(self, license: License, identity: MachineIdentity) -> Optional[Activation]:
        """Give the machine's seat back; None if the machine held none."""
        return await self.activations.release_seat(license.id, identity, self.clock())

    @staticmethod
    def reservation_error(
        reservation: SeatReservation, license: License, now: Optional[datetime] = None
    ) -> Optional[DomainException]:
        """Map a refused reservation to the error reported to the client."""
        if reservation.status == ReservationStatus.LIMIT_REACHED:
            return ActivationLimitExceededError()
        if reservation.status == ReservationStatus.LICENSE_NOT_FOUND:
            return LicenseNotFoundError()
        if reservation.status == ReservationStatus.LICENSE_UNAVAILABLE:
            return license.usability_error(now) or InvalidStateError()
        return None

    @staticmethod
    def not_found() -> DomainException:
        return ActivationNotFoundError("License not activated on this machine")
