"""
Django implementation of WebhookEventRepository port.
"""
from datetime import datetime
from typing import Optional

from asgiref.sync import sync_to_async
from django.db import IntegrityError, transaction

from licenses.infrastructure.repositories.django_license_repository import DjangoLicenseRepository
from orders.infrastructure.repositories.django_order_repository import DjangoOrderRepository
from webhooks.domain.outcome import ProcessedEvent, StateChanges
from webhooks.domain.provider_event import PaymentProvider
from webhooks.infrastructure.models import ProcessedWebhookEvent
from webhooks.ports.webhook_event_repository import WebhookEventRepository


class DjangoWebhookEventRepository(WebhookEventRepository):
    """
    Django ORM implementation of WebhookEventRepository.

    ``commit`` inserts the marker first. The unique constraint on
    (provider, event id) makes a concurrent duplicate delivery fail before
    any change is applied.
    """

    def __init__(
        self,
        licenses: Optional[DjangoLicenseRepository] = None,
        orders: Optional[DjangoOrderRepository] = None,
    ):
        self.licenses = licenses or DjangoLicenseRepository()
        self.orders = orders or DjangoOrderRepository()

    @sync_to_async
    def is_processed(self, provider: PaymentProvider, event_id: str) -> bool:
        return ProcessedWebhookEvent.objects.filter(  # pylint: disable=no-member
            provider=PaymentProvider(provider).value, event_id=event_id
        ).exists()

    def commit_sync(self, marker: ProcessedEvent, changes: StateChanges) -> bool:
        """Blocking implementation of ``commit``."""
        with transaction.atomic():
            try:
                with transaction.atomic():
                    ProcessedWebhookEvent.objects.create(  # pylint: disable=no-member
                        provider=marker.provider.value,
                        event_id=marker.event_id,
                        event_type=marker.event_type[:100],
                        license_id=marker.license_id,
                        processed_at=marker.processed_at,
                    )
            except IntegrityError:
                return False
            for order in changes.orders:
                self.orders.save_sync(order)
            self.licenses.apply_transitions_sync(changes.all_transitions)
        return True

    async def commit(self, marker: ProcessedEvent, changes: StateChanges) -> bool:
        return await sync_to_async(self.commit_sync)(marker, changes)

    @sync_to_async
    def prune(self, before: datetime) -> int:
        deleted, _ = ProcessedWebhookEvent.objects.filter(  # pylint: disable=no-member
            processed_at__lt=before
        ).delete()
        return deleted
