"""
License operation handlers.

Validate, activate and deactivate a license against a machine, plus the
admin revocation and history views. Expected failures come back as
``OperationResult`` values; only unexpected faults raise.
"""

from datetime import datetime
from typing import Callable, Optional

from django.utils import timezone

from activations.application.commands.machine_commands import (
    ActivateLicenseCommand,
    DeactivateLicenseCommand,
    RevokeActivationCommand,
    ValidateLicenseCommand,
)
from activations.application.queries.get_activation_history import GetActivationHistoryQuery
from activations.domain.activation import MachineIdentity
from activations.domain.events import (
    ActivationDeactivated,
    ActivationsRevoked,
    LicenseActivated,
)
from activations.domain.services import SeatManager
from activations.ports.activation_repository import ActivationRepository, ReservationStatus
from core.config import LicensingConfig
from core.domain.events import EventBus
from core.domain.exceptions import ActivationNotFoundError, InvalidRequestError, LicenseNotFoundError
from core.domain.results import OperationResult
from core.infrastructure.events import event_bus as default_event_bus
from core.infrastructure.privacy import partial_license_key
from licenses.domain.license import License
from licenses.ports.license_repository import LicenseRepository


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class _LicenseOperationHandler:
    """Shared wiring for handlers that look a license up by its key."""

    def __init__(
        self,
        config: LicensingConfig,
        license_repository: LicenseRepository,
        activation_repository: ActivationRepository,
        event_bus: Optional[EventBus] = None,
        clock: Callable[[], datetime] = timezone.now,
    ):
        """Initialize handler with repositories."""
        self.config = config
        self.license_repository = license_repository
        self.activation_repository = activation_repository
        self.seat_manager = SeatManager(activation_repository, clock)
        self.event_bus = event_bus or default_event_bus
        self.clock = clock

    def _identity(self, command) -> MachineIdentity:
        return MachineIdentity.from_raw(
            command.machine_fingerprint, command.machine_id, self.config.machine_hash_salt
        )

    async def _find(self, license_key: str) -> Optional[License]:
        if not license_key or not license_key.strip():
            return None
        return await self.license_repository.find_by_key(license_key)


class ValidateLicenseHandler(_LicenseOperationHandler):
    """Handler for ValidateLicenseCommand."""

    async def handle(self, command: ValidateLicenseCommand) -> OperationResult:
        """
        Handle validate license command.

        Fails with LicenseNotFound, LicenseExpired, LicenseSuspended or
        LicenseRevoked. When machine data is supplied the machine must also
        hold a live binding on the license.

        Args:
            command: ValidateLicenseCommand

        Returns:
            OperationResult with ``valid`` and the license summary
        """
        license = await self._find(command.license_key)
        if license is None:
            return OperationResult.fail(LicenseNotFoundError(), valid=False)

        now = self.clock()
        error = license.usability_error(now)
        if error:
            return OperationResult.fail(error, valid=False, license_id=str(license.id))

        identity = self._identity(command)
        if license.requires_machine_id and not identity.has_machine_id:
            return OperationResult.fail(
                InvalidRequestError("Machine ID required", code="MACHINE_ID_REQUIRED"),
                valid=False,
                license_id=str(license.id),
            )

        error = await self.seat_manager.verify_binding(license, identity)
        if error:
            return OperationResult.fail(error, valid=False, license_id=str(license.id))

        return OperationResult.ok(
            valid=True,
            license_id=str(license.id),
            status=license.effective_status(now).value,
            license_type=license.license_type.value,
            expires_at=_iso(license.expires_at),
            requires_machine_id=license.requires_machine_id,
            max_activations=license.max_activations,
            activation_count=license.activation_count,
        )


class ActivateLicenseHandler(_LicenseOperationHandler):
    """Handler for ActivateLicenseCommand."""

    async def handle(self, command: ActivateLicenseCommand) -> OperationResult:
        """
        Handle activate license command.

        Re-activating the machine that already holds a seat succeeds without
        consuming another one.

        Args:
            command: ActivateLicenseCommand

        Returns:
            OperationResult with the activation and seat counters
        """
        license = await self._find(command.license_key)
        if license is None:
            return OperationResult.fail(LicenseNotFoundError())

        now = self.clock()
        error = license.usability_error(now)
        if error:
            return OperationResult.fail(error, license_id=str(license.id))

        identity = self._identity(command)
        error = identity.missing_error(requires_machine_id=license.requires_machine_id)
        if error:
            return OperationResult.fail(error, license_id=str(license.id))

        reservation = await self.seat_manager.claim(license, identity, command.ip_address)
        error = SeatManager.reservation_error(reservation, license, now)
        if error:
            return OperationResult.fail(
                error,
                license_id=str(license.id),
                activation_count=reservation.activation_count,
                max_activations=reservation.max_activations,
            )

        if reservation.status == ReservationStatus.CREATED:
            await self.event_bus.publish(
                LicenseActivated(
                    aggregate_id=str(license.id),
                    license_id=license.id,
                    activation_id=reservation.activation.id,
                )
            )

        return OperationResult.ok(
            license_id=str(license.id),
            activation_id=str(reservation.activation.id),
            already_activated=reservation.status == ReservationStatus.EXISTING,
            activation_count=reservation.activation_count,
            max_activations=reservation.max_activations,
            activations_remaining=reservation.max_activations - reservation.activation_count,
            expires_at=_iso(license.expires_at),
        )


class DeactivateLicenseHandler(_LicenseOperationHandler):
    """Handler for DeactivateLicenseCommand."""

    async def handle(self, command: DeactivateLicenseCommand) -> OperationResult:
        """
        Handle deactivate license command.

        Frees the machine's seat. The license itself is left untouched, so a
        suspended license can still release seats.

        Args:
            command: DeactivateLicenseCommand

        Returns:
            OperationResult with the seat counters
        """
        license = await self._find(command.license_key)
        if license is None:
            return OperationResult.fail(LicenseNotFoundError())

        identity = self._identity(command)
        if identity.is_empty:
            return OperationResult.fail(
                InvalidRequestError("Machine fingerprint required", code="FINGERPRINT_REQUIRED"),
                license_id=str(license.id),
            )

        released = await self.seat_manager.release(license, identity)
        if released is None:
            return OperationResult.fail(SeatManager.not_found(), license_id=str(license.id))

        await self.event_bus.publish(
            ActivationDeactivated(
                aggregate_id=str(license.id),
                license_id=license.id,
                activation_id=released.id,
            )
        )

        activation_count = await self.activation_repository.count_live(license.id)
        return OperationResult.ok(
            license_id=str(license.id),
            activation_id=str(released.id),
            activation_count=activation_count,
            max_activations=license.max_activations,
            activations_remaining=license.max_activations - activation_count,
        )


class RevokeActivationHandler(_LicenseOperationHandler):
    """Handler for RevokeActivationCommand (admin)."""

    async def handle(self, command: RevokeActivationCommand) -> OperationResult:
        license = await self._find(command.license_key)
        if license is None:
            return OperationResult.fail(LicenseNotFoundError())

        identity = self._identity(command)
        count = await self.activation_repository.revoke_bindings(
            license.id,
            None if identity.is_empty else identity,
            command.reason,
            self.clock(),
        )
        if not count:
            return OperationResult.fail(
                ActivationNotFoundError("No matching activations found"),
                license_id=str(license.id),
            )

        await self.event_bus.publish(
            ActivationsRevoked(
                aggregate_id=str(license.id),
                license_id=license.id,
                count=count,
                reason=command.reason,
            )
        )
        return OperationResult.ok(
            license_id=str(license.id),
            revoked=count,
            message=f"Revoked {count} activation(s)",
        )


class GetActivationHistoryHandler(_LicenseOperationHandler):
    """Handler for GetActivationHistoryQuery (admin)."""

    async def handle(self, query: GetActivationHistoryQuery) -> OperationResult:
        license = await self._find(query.license_key)
        if license is None:
            return OperationResult.fail(LicenseNotFoundError())

        history = await self.activation_repository.list_history(license.id, limit=query.limit)
        return OperationResult.ok(
            license_id=str(license.id),
            license_key=partial_license_key(query.license_key),
            activations=[activation.to_history_entry() for activation in history],
            total_activations=license.activation_count,
            max_activations=license.max_activations,
        )
