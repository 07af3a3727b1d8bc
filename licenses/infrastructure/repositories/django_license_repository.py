"""
Django implementation of LicenseRepository port.

This adapter converts between domain entities and Django ORM models.
"""
import uuid
from typing import List, Optional

from asgiref.sync import sync_to_async
from django.db import transaction

from activations.infrastructure.models import Activation as ActivationModel
from core.domain.exceptions import InvalidStateTransitionError, LicenseNotFoundError
from core.domain.value_objects import Email, LicenseStatus, LicenseType
from licenses.domain.license import License
from licenses.domain.license_key import hash_license_key
from licenses.domain.state_machine import LicenseTransition
from licenses.infrastructure.models import License as LicenseModel
from licenses.infrastructure.repositories.django_subscription_repository import (
    DjangoSubscriptionRepository,
)
from licenses.ports.license_repository import LicenseRepository


class DjangoLicenseRepository(LicenseRepository):
    """
    Django ORM implementation of LicenseRepository.

    ``apply_transition_sync`` is the single write path for lifecycle
    changes. It locks the license row, re-checks the state the transition
    was computed from, then writes the license, its subscription and the
    activation cascade in one transaction. The webhook unit of work calls it
    inside its own outer transaction.
    """

    def __init__(self, subscriptions: Optional[DjangoSubscriptionRepository] = None):
        self.subscriptions = subscriptions or DjangoSubscriptionRepository()

    def _to_domain(self, model: LicenseModel) -> License:
        """
        Convert Django model to domain entity.

        Args:
            model: Django License model

        Returns:
            License domain entity
        """
        return License(
            id=model.id,
            key_hash=model.key_hash,
            key_hint=model.key_hint,
            product_id=model.product_id,
            order_id=model.order_id,
            customer_email=Email(model.customer_email),
            status=LicenseStatus(model.status),
            license_type=LicenseType(model.license_type),
            max_activations=model.max_activations,
            activation_count=model.activation_count,
            requires_machine_id=model.requires_machine_id,
            expires_at=model.expires_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
            revoked_at=model.revoked_at,
        )

    def _insert(self, license: License) -> LicenseModel:
        return LicenseModel.objects.create(  # pylint: disable=no-member
            id=license.id,
            key_hash=license.key_hash,
            key_hint=license.key_hint,
            product_id=license.product_id,
            order_id=license.order_id,
            customer_email=str(license.customer_email),
            status=license.status.value,
            license_type=license.license_type.value,
            max_activations=license.max_activations,
            activation_count=0,
            requires_machine_id=license.requires_machine_id,
            expires_at=license.expires_at,
        )

    def _update(self, transition: LicenseTransition) -> LicenseModel:
        license = transition.license
        try:
            model = LicenseModel.objects.select_for_update().get(id=license.id)  # pylint: disable=no-member
        except LicenseModel.DoesNotExist as exc:  # pylint: disable=no-member
            raise LicenseNotFoundError() from exc

        stale = model.status != transition.from_status.value or (
            transition.expected_updated_at is not None
            and model.updated_at != transition.expected_updated_at
        )
        if stale:
            raise InvalidStateTransitionError(
                "License was modified concurrently", code="CONCURRENT_MODIFICATION"
            )

        model.status = license.status.value
        model.expires_at = license.expires_at
        model.revoked_at = license.revoked_at
        update_fields = ["status", "expires_at", "revoked_at", "updated_at"]

        if transition.revoke_activations:
            ActivationModel.objects.filter(  # pylint: disable=no-member
                license_id=model.id, is_active=True, revoked=False
            ).update(
                is_active=False,
                revoked=True,
                revoked_reason=(transition.reason or "license_revoked")[:255],
                revoked_at=license.updated_at,
                deactivated_at=license.updated_at,
            )
            model.activation_count = 0
            update_fields.append("activation_count")

        model.save(update_fields=update_fields)
        return model

    def apply_transition_sync(self, transition: LicenseTransition) -> License:
        """Apply a transition (blocking). Joins an enclosing transaction."""
        with transaction.atomic():
            if transition.is_insert:
                model = self._insert(transition.license)
            else:
                model = self._update(transition)
            if transition.subscription is not None:
                self.subscriptions.save_sync(transition.subscription)
        return self._to_domain(model)

    async def apply_transition(self, transition: LicenseTransition) -> License:
        return await sync_to_async(self.apply_transition_sync)(transition)

    def apply_transitions_sync(self, transitions: List[LicenseTransition]) -> List[License]:
        """Apply several transitions in one transaction (blocking)."""
        with transaction.atomic():
            return [self.apply_transition_sync(transition) for transition in transitions]

    async def apply_transitions(self, transitions: List[LicenseTransition]) -> List[License]:
        return await sync_to_async(self.apply_transitions_sync)(transitions)

    @sync_to_async
    def find_by_id(self, license_id: uuid.UUID) -> Optional[License]:
        """
        Find a license by ID.

        Args:
            license_id: License UUID

        Returns:
            License entity or None if not found
        """
        try:
            return self._to_domain(LicenseModel.objects.get(id=license_id))  # pylint: disable=no-member
        except LicenseModel.DoesNotExist:  # pylint: disable=no-member
            return None

    @sync_to_async
    def find_by_key(self, raw_key: str) -> Optional[License]:
        if not raw_key:
            return None
        model = LicenseModel.objects.filter(  # pylint: disable=no-member
            key_hash=hash_license_key(raw_key)
        ).first()
        return self._to_domain(model) if model else None

    @sync_to_async
    def find_by_order(self, order_id: uuid.UUID) -> List[License]:
        models = LicenseModel.objects.filter(order_id=order_id)  # pylint: disable=no-member
        return [self._to_domain(model) for model in models]

    @sync_to_async
    def find_by_customer_email(self, email: str) -> List[License]:
        models = LicenseModel.objects.filter(  # pylint: disable=no-member
            customer_email__iexact=(email or "").strip()
        ).order_by("-created_at")
        return [self._to_domain(model) for model in models]

    @sync_to_async
    def find_by_subscription_external_id(self, external_id: str) -> Optional[License]:
        if not external_id:
            return None
        model = LicenseModel.objects.filter(  # pylint: disable=no-member
            subscription__external_id=external_id
        ).first()
        return self._to_domain(model) if model else None

    @sync_to_async
    def find_expired_active(self, now) -> List[License]:
        models = LicenseModel.objects.filter(  # pylint: disable=no-member
            status=LicenseStatus.ACTIVE.value, expires_at__lt=now
        )
        return [self._to_domain(model) for model in models]
