"""
Subscription domain entity.
"""
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from django.utils import timezone

from core.domain.value_objects import SubscriptionStatus


@dataclass(frozen=True)
class Subscription:
    """
    Recurring-billing record of a license.

    At most one subscription exists per license. Its status is driven by
    payment provider webhooks and admin actions only.
    """

    id: uuid.UUID
    license_id: uuid.UUID
    external_id: Optional[str]
    provider: str
    status: SubscriptionStatus
    auto_renew: bool
    last_payment_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    canceled_at: Optional[datetime] = None

    @classmethod
    def create(
        cls,
        license_id: uuid.UUID,
        external_id: Optional[str] = None,
        provider: str = "",
        subscription_id: Optional[uuid.UUID] = None,
        now: Optional[datetime] = None,
    ) -> "Subscription":
        """Create a new active, auto-renewing subscription."""
        now = now or timezone.now()
        return cls(
            id=subscription_id or uuid.uuid4(),
            license_id=license_id,
            external_id=external_id,
            provider=provider,
            status=SubscriptionStatus.ACTIVE,
            auto_renew=True,
            last_payment_at=None,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_canceled(self) -> bool:
        return self.status == SubscriptionStatus.CANCELED

    def with_status(self, status: SubscriptionStatus, now: Optional[datetime] = None) -> "Subscription":
        """Return a copy in ``status``; cancellation also stops auto-renewal."""
        now = now or timezone.now()
        if status == SubscriptionStatus.CANCELED:
            return self.cancel(now)
        return replace(self, status=status, updated_at=now)

    def cancel(self, now: Optional[datetime] = None) -> "Subscription":
        now = now or timezone.now()
        if self.is_canceled:
            return self
        return replace(
            self,
            status=SubscriptionStatus.CANCELED,
            auto_renew=False,
            canceled_at=now,
            updated_at=now,
        )

    def suspend(self, now: Optional[datetime] = None) -> "Subscription":
        return self.with_status(SubscriptionStatus.SUSPENDED, now)

    def activate(self, external_id: Optional[str] = None, now: Optional[datetime] = None) -> "Subscription":
        now = now or timezone.now()
        return replace(
            self,
            status=SubscriptionStatus.ACTIVE,
            auto_renew=True,
            external_id=external_id or self.external_id,
            canceled_at=None,
            updated_at=now,
        )

    def record_payment(self, now: Optional[datetime] = None) -> "Subscription":
        """Record a successful renewal payment."""
        now = now or timezone.now()
        return replace(self, status=SubscriptionStatus.ACTIVE, last_payment_at=now, updated_at=now)
