"""
Django implementation of ActivationRepository port.

This adapter converts between domain entities and Django ORM models.
Seat changes lock the license row with ``select_for_update`` so the
activation count and the live bindings never drift apart.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from asgiref.sync import sync_to_async
from django.db import IntegrityError, transaction
from django.db.models import F
from django.db.models.functions import Greatest

from activations.domain.activation import Activation, MachineIdentity
from activations.infrastructure.models import Activation as ActivationModel
from activations.ports.activation_repository import (
    ActivationRepository,
    ReservationStatus,
    SeatReservation,
)
from core.domain.value_objects import LicenseStatus
from licenses.infrastructure.models import License as LicenseModel


class DjangoActivationRepository(ActivationRepository):
    """
    Django ORM implementation of ActivationRepository.

    This adapter:
    1. Converts Django models to domain entities
    2. Serializes seat changes per license with a row lock
    3. Implements repository interface
    """

    def _to_domain(self, model: ActivationModel) -> Activation:
        """
        Convert Django model to domain entity.

        Args:
            model: Django Activation model

        Returns:
            Activation domain entity
        """
        return Activation(
            id=model.id,
            license_id=model.license_id,
            fingerprint_hash=model.fingerprint_hash,
            machine_id_hash=model.machine_id_hash,
            fingerprint_hint=model.fingerprint_hint,
            machine_id_hint=model.machine_id_hint,
            is_active=model.is_active,
            revoked=model.revoked,
            revoked_reason=model.revoked_reason,
            ip_address=model.ip_address,
            activated_at=model.activated_at,
            deactivated_at=model.deactivated_at,
            revoked_at=model.revoked_at,
        )

    def _live(self, license_id: uuid.UUID, identity: Optional[MachineIdentity] = None):
        queryset = ActivationModel.objects.filter(  # pylint: disable=no-member
            license_id=license_id, is_active=True, revoked=False
        )
        if identity is not None:
            if identity.has_fingerprint:
                queryset = queryset.filter(fingerprint_hash=identity.fingerprint_hash)
            if identity.has_machine_id:
                queryset = queryset.filter(machine_id_hash=identity.machine_id_hash)
        return queryset.order_by("-activated_at")

    @staticmethod
    def _lock_license(license_id: uuid.UUID) -> Optional[LicenseModel]:
        return (
            LicenseModel.objects.select_for_update()  # pylint: disable=no-member
            .filter(id=license_id)
            .first()
        )

    @sync_to_async
    def find_live_bindings(
        self, license_id: uuid.UUID, identity: MachineIdentity
    ) -> List[Activation]:
        if identity.is_empty:
            return []
        return [self._to_domain(model) for model in self._live(license_id, identity)]

    def reserve_seat_sync(
        self,
        license_id: uuid.UUID,
        identity: MachineIdentity,
        ip_address: Optional[str],
        now: datetime,
    ) -> SeatReservation:
        """Blocking implementation of ``reserve_seat``."""
        with transaction.atomic():
            license = self._lock_license(license_id)
            if license is None:
                return SeatReservation(ReservationStatus.LICENSE_NOT_FOUND)

            counters = {
                "activation_count": license.activation_count,
                "max_activations": license.max_activations,
            }
            expired = license.expires_at is not None and license.expires_at < now
            if license.status != LicenseStatus.ACTIVE.value or expired:
                return SeatReservation(ReservationStatus.LICENSE_UNAVAILABLE, **counters)

            existing = (
                self._live(license_id)
                .filter(
                    fingerprint_hash=identity.fingerprint_hash,
                    machine_id_hash=identity.machine_id_hash,
                )
                .first()
            )
            if existing is not None:
                return SeatReservation(
                    ReservationStatus.EXISTING, activation=self._to_domain(existing), **counters
                )

            if license.activation_count >= license.max_activations:
                return SeatReservation(ReservationStatus.LIMIT_REACHED, **counters)

            activation = Activation.create(license_id, identity, ip_address=ip_address, now=now)
            try:
                with transaction.atomic():
                    model = ActivationModel.objects.create(  # pylint: disable=no-member
                        id=activation.id,
                        license_id=license_id,
                        fingerprint_hash=activation.fingerprint_hash,
                        machine_id_hash=activation.machine_id_hash,
                        fingerprint_hint=activation.fingerprint_hint,
                        machine_id_hint=activation.machine_id_hint,
                        ip_address=ip_address or None,
                    )
            except IntegrityError:
                # Same machine bound by a concurrent request on a backend
                # without row locks.
                existing = self._live(license_id, identity).first()
                if existing is None:
                    raise
                return SeatReservation(
                    ReservationStatus.EXISTING, activation=self._to_domain(existing), **counters
                )

            LicenseModel.objects.filter(id=license_id).update(  # pylint: disable=no-member
                activation_count=F("activation_count") + 1
            )
            return SeatReservation(
                ReservationStatus.CREATED,
                activation=self._to_domain(model),
                activation_count=license.activation_count + 1,
                max_activations=license.max_activations,
            )

    async def reserve_seat(
        self,
        license_id: uuid.UUID,
        identity: MachineIdentity,
        ip_address: Optional[str],
        now: datetime,
    ) -> SeatReservation:
        return await sync_to_async(self.reserve_seat_sync)(license_id, identity, ip_address, now)

    def _release(self, license_id: uuid.UUID, identity: MachineIdentity, now: datetime):
        with transaction.atomic():
            if self._lock_license(license_id) is None:
                return None
            model = self._live(license_id, identity).first()
            if model is None:
                return None
            model.is_active = False
            model.deactivated_at = now
            model.save(update_fields=["is_active", "deactivated_at"])
            LicenseModel.objects.filter(id=license_id).update(  # pylint: disable=no-member
                activation_count=Greatest(F("activation_count") - 1, 0)
            )
            return self._to_domain(model)

    async def release_seat(
        self, license_id: uuid.UUID, identity: MachineIdentity, now: datetime
    ) -> Optional[Activation]:
        if identity.is_empty:
            return None
        return await sync_to_async(self._release)(license_id, identity, now)

    def _revoke(
        self,
        license_id: uuid.UUID,
        identity: Optional[MachineIdentity],
        reason: str,
        now: datetime,
    ) -> int:
        with transaction.atomic():
            if self._lock_license(license_id) is None:
                return 0
            count = self._live(license_id, identity).update(
                is_active=False,
                revoked=True,
                revoked_reason=reason[:255],
                revoked_at=now,
                deactivated_at=now,
            )
            if count:
                LicenseModel.objects.filter(id=license_id).update(  # pylint: disable=no-member
                    activation_count=Greatest(F("activation_count") - count, 0)
                )
            return count

    async def revoke_bindings(
        self,
        license_id: uuid.UUID,
        identity: Optional[MachineIdentity],
        reason: str,
        now: datetime,
    ) -> int:
        return await sync_to_async(self._revoke)(license_id, identity, reason, now)

    @sync_to_async
    def list_history(self, license_id: uuid.UUID, limit: int = 50) -> List[Activation]:
        models = ActivationModel.objects.filter(  # pylint: disable=no-member
            license_id=license_id
        ).order_by("-activated_at")[:limit]
        return [self._to_domain(model) for model in models]

    @sync_to_async
    def count_live(self, license_id: uuid.UUID) -> int:
        return self._live(license_id).count()
