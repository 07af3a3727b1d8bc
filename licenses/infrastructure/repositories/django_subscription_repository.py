"""
Django implementation of SubscriptionRepository port.
"""
import uuid
from typing import Optional

from asgiref.sync import sync_to_async

from core.domain.value_objects import SubscriptionStatus
from licenses.domain.subscription import Subscription
from licenses.infrastructure.models import Subscription as SubscriptionModel
from licenses.ports.license_repository import SubscriptionRepository


class DjangoSubscriptionRepository(SubscriptionRepository):
    """Django ORM implementation of SubscriptionRepository."""

    def _to_domain(self, model: SubscriptionModel) -> Subscription:
        return Subscription(
            id=model.id,
            license_id=model.license_id,
            external_id=model.external_id,
            provider=model.provider,
            status=SubscriptionStatus(model.status),
            auto_renew=model.auto_renew,
            last_payment_at=model.last_payment_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
            canceled_at=model.canceled_at,
        )

    def save_sync(self, subscription: Subscription) -> Subscription:
        """Insert or update a subscription (blocking)."""
        model, _ = SubscriptionModel.objects.update_or_create(  # pylint: disable=no-member
            id=subscription.id,
            defaults={
                "license_id": subscription.license_id,
                "external_id": subscription.external_id or None,
                "provider": subscription.provider,
                "status": subscription.status.value,
                "auto_renew": subscription.auto_renew,
                "last_payment_at": subscription.last_payment_at,
                "canceled_at": subscription.canceled_at,
            },
        )
        return self._to_domain(model)

    @sync_to_async
    def find_by_license(self, license_id: uuid.UUID) -> Optional[Subscription]:
        model = SubscriptionModel.objects.filter(license_id=license_id).first()  # pylint: disable=no-member
        return self._to_domain(model) if model else None

    @sync_to_async
    def find_by_external_id(self, external_id: str) -> Optional[Subscription]:
        if not external_id:
            return None
        model = SubscriptionModel.objects.filter(external_id=external_id).first()  # pylint: disable=no-member
        return self._to_domain(model) if model else None
