"""
License lifecycle handlers.

Handlers for suspend, reactivate, revoke and extend license commands.
Illegal transitions raise ``InvalidStateTransitionError``; the API layer
renders it as 409.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from django.utils import timezone

from core.domain.events import EventBus
from core.domain.exceptions import InvalidRequestError, LicenseNotFoundError
from core.infrastructure.events import event_bus as default_event_bus
from core.metrics import license_transitions_total
from licenses.application.commands.extend_license import ExtendLicenseCommand
from licenses.application.commands.reactivate_license import ReactivateLicenseCommand
from licenses.application.commands.revoke_license import RevokeLicenseCommand
from licenses.application.commands.suspend_license import SuspendLicenseCommand
from licenses.application.dto.license_dto import LicenseDTO
from licenses.domain.license import License
from licenses.domain.state_machine import (
    LicenseTransition,
    extend_license,
    reactivate_license,
    revoke_license,
    suspend_license,
)
from licenses.ports.license_repository import LicenseRepository, SubscriptionRepository

logger = logging.getLogger(__name__)


class _LifecycleHandler:
    """Loads the license, applies one transition and publishes its events."""

    def __init__(
        self,
        license_repository: LicenseRepository,
        subscription_repository: SubscriptionRepository,
        event_bus: Optional[EventBus] = None,
        clock: Callable[[], datetime] = timezone.now,
    ):
        """Initialize handler with repositories."""
        self.license_repository = license_repository
        self.subscription_repository = subscription_repository
        self.event_bus = event_bus or default_event_bus
        self.clock = clock

    async def _load(self, command) -> License:
        license = None
        if command.license_id:
            license = await self.license_repository.find_by_id(command.license_id)
        elif command.license_key:
            license = await self.license_repository.find_by_key(command.license_key)
        if not license:
            raise LicenseNotFoundError()
        return license

    async def _commit(self, transition: LicenseTransition) -> LicenseDTO:
        saved = await self.license_repository.apply_transition(transition)
        license_transitions_total.labels(transition=transition.name).inc()
        logger.info(
            "License %s: %s -> %s",
            saved.id,
            transition.from_status.value if transition.from_status else None,
            saved.status.value,
            extra={"transition": transition.name, "license_id": str(saved.id)},
        )
        for event in transition.events:
            await self.event_bus.publish(event)
        return LicenseDTO.from_entity(saved, self.clock())


class SuspendLicenseHandler(_LifecycleHandler):
    """Handler for SuspendLicenseCommand."""

    async def handle(self, command: SuspendLicenseCommand) -> LicenseDTO:
        """
        Handle suspend license command.

        Args:
            command: SuspendLicenseCommand

        Returns:
            Suspended license

        Raises:
            LicenseNotFoundError: If license not found
            InvalidStateTransitionError: Unless the license is active
        """
        license = await self._load(command)
        subscription = await self.subscription_repository.find_by_license(license.id)
        transition = suspend_license(license, command.reason, subscription, now=self.clock())
        return await self._commit(transition)


class ReactivateLicenseHandler(_LifecycleHandler):
    """Handler for ReactivateLicenseCommand."""

    async def handle(self, command: ReactivateLicenseCommand) -> LicenseDTO:
        """
        Handle reactivate license command.

        A revoked license comes back only with ``admin_override``. Its
        revoked activations stay revoked.

        Raises:
            LicenseNotFoundError: If license not found
            InvalidStateTransitionError: If the transition is not allowed
        """
        license = await self._load(command)
        subscription = await self.subscription_repository.find_by_license(license.id)
        transition = reactivate_license(
            license,
            admin_override=command.admin_override,
            subscription=subscription,
            reason=command.reason,
            now=self.clock(),
        )
        return await self._commit(transition)


class RevokeLicenseHandler(_LifecycleHandler):
    """Handler for RevokeLicenseCommand."""

    async def handle(self, command: RevokeLicenseCommand) -> LicenseDTO:
        """
        Handle revoke license command.

        Revokes every live activation and cancels the subscription in the
        same transaction as the license update.

        Raises:
            LicenseNotFoundError: If license not found
            InvalidStateTransitionError: If the license is already revoked
        """
        license = await self._load(command)
        subscription = await self.subscription_repository.find_by_license(license.id)
        transition = revoke_license(license, command.reason, subscription, now=self.clock())
        return await self._commit(transition)


class ExtendLicenseHandler(_LifecycleHandler):
    """Handler for ExtendLicenseCommand."""

    async def handle(self, command: ExtendLicenseCommand) -> LicenseDTO:
        if command.days < 1:
            raise InvalidRequestError("Extension must be at least one day")
        license = await self._load(command)
        subscription = await self.subscription_repository.find_by_license(license.id)
        transition = extend_license(
            license,
            timedelta(days=command.days),
            subscription=subscription,
            record_payment=command.record_payment,
            now=self.clock(),
        )
        return await self._commit(transition)
