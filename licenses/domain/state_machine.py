"""
License lifecycle state machine.

Each function takes the current aggregate, checks the transition against
the table in ``licenses.domain.license`` and returns a ``LicenseTransition``
describing everything that must change together. Nothing is written here:
the repository applies a transition as one atomic unit (license row,
subscription row and activation revocation), after checking the stored
license still matches the state the transition was computed from.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Tuple

from django.utils import timezone

from core.domain.events import DomainEvent
from core.domain.exceptions import InvalidStateTransitionError
from core.domain.value_objects import LicenseStatus, SubscriptionStatus
from licenses.domain.events import (
    LicenseExtended,
    LicenseIssued,
    LicenseReactivated,
    LicenseRevoked,
    LicenseSuspended,
    SubscriptionStatusChanged,
)
from licenses.domain.license import License
from licenses.domain.license_key import hash_license_key, key_hint
from licenses.domain.subscription import Subscription


@dataclass(frozen=True)
class LicenseTransition:
    """A computed, not yet persisted, lifecycle change."""

    name: str
    license: License
    from_status: Optional[LicenseStatus]
    expected_updated_at: Optional[datetime] = None
    revoke_activations: bool = False
    reason: str = ""
    subscription: Optional[Subscription] = None
    events: Tuple[DomainEvent, ...] = ()

    @property
    def is_insert(self) -> bool:
        return self.from_status is None

    @property
    def to_status(self) -> LicenseStatus:
        return self.license.status


def _subscription_event(subscription: Subscription) -> SubscriptionStatusChanged:
    return SubscriptionStatusChanged(
        aggregate_id=str(subscription.license_id),
        license_id=subscription.license_id,
        subscription_id=subscription.id,
        status=subscription.status.value,
    )


def issue_license(
    raw_key: str,
    product_id: uuid.UUID,
    customer_email: str,
    max_activations: int,
    duration: Optional[timedelta],
    license_type,
    requires_machine_id: bool = False,
    order_id: Optional[uuid.UUID] = None,
    subscription_external_id: Optional[str] = None,
    with_subscription: bool = False,
    provider: str = "",
    now: Optional[datetime] = None,
) -> LicenseTransition:
    """
    (none) -> active, activation count 0.

    Subscription products also get an active subscription.
    """
    now = now or timezone.now()
    license = License.create(
        key_hash=hash_license_key(raw_key),
        key_hint=key_hint(raw_key),
        product_id=product_id,
        customer_email=customer_email,
        max_activations=max_activations,
        expires_at=now + duration if duration else None,
        license_type=license_type,
        requires_machine_id=requires_machine_id,
        order_id=order_id,
        now=now,
    )
    subscription = None
    if with_subscription:
        subscription = Subscription.create(
            license.id, external_id=subscription_external_id, provider=provider, now=now
        )
    event = LicenseIssued(
        aggregate_id=str(license.id),
        license_id=license.id,
        product_id=product_id,
        order_id=order_id,
        customer_email=str(license.customer_email),
    )
    return LicenseTransition(
        name="issue",
        license=license,
        from_status=None,
        subscription=subscription,
        events=(event,),
    )


def suspend_license(
    license: License,
    reason: str = "",
    subscription: Optional[Subscription] = None,
    now: Optional[datetime] = None,
) -> LicenseTransition:
    """active -> suspended. An attached live subscription is suspended too."""
    now = now or timezone.now()
    updated = license.suspend(now)
    events: Tuple[DomainEvent, ...] = (
        LicenseSuspended(aggregate_id=str(license.id), license_id=license.id, reason=reason),
    )
    if subscription and subscription.status == SubscriptionStatus.ACTIVE:
        subscription = subscription.suspend(now)
        events += (_subscription_event(subscription),)
    else:
        subscription = None
    return LicenseTransition(
        name="suspend",
        license=updated,
        from_status=license.status,
        expected_updated_at=license.updated_at,
        reason=reason,
        subscription=subscription,
        events=events,
    )


def reactivate_license(
    license: License,
    admin_override: bool = False,
    subscription: Optional[Subscription] = None,
    reason: str = "",
    now: Optional[datetime] = None,
) -> LicenseTransition:
    """
    suspended/expired -> active; revoked -> active only with admin override.

    A suspended subscription is resumed with the license.
    """
    now = now or timezone.now()
    updated = license.reactivate(now, admin_override=admin_override)
    events: Tuple[DomainEvent, ...] = (
        LicenseReactivated(
            aggregate_id=str(license.id),
            license_id=license.id,
            previous_status=license.status.value,
            admin_override=admin_override,
        ),
    )
    if subscription and subscription.status == SubscriptionStatus.SUSPENDED:
        subscription = subscription.activate(now=now)
        events += (_subscription_event(subscription),)
    else:
        subscription = None
    return LicenseTransition(
        name="reactivate",
        license=updated,
        from_status=license.status,
        expected_updated_at=license.updated_at,
        reason=reason,
        subscription=subscription,
        events=events,
    )


def revoke_license(
    license: License,
    reason: str = "",
    subscription: Optional[Subscription] = None,
    now: Optional[datetime] = None,
) -> LicenseTransition:
    """
    active/suspended/expired -> revoked.

    Every active activation is revoked and any subscription is canceled in
    the same unit of work.
    """
    now = now or timezone.now()
    updated = license.revoke(now)
    events: Tuple[DomainEvent, ...] = (
        LicenseRevoked(aggregate_id=str(license.id), license_id=license.id, reason=reason),
    )
    if subscription and not subscription.is_canceled:
        subscription = subscription.cancel(now)
        events += (_subscription_event(subscription),)
    else:
        subscription = None
    return LicenseTransition(
        name="revoke",
        license=updated,
        from_status=license.status,
        expected_updated_at=license.updated_at,
        revoke_activations=True,
        reason=reason,
        subscription=subscription,
        events=events,
    )


def extend_license(
    license: License,
    duration: timedelta,
    subscription: Optional[Subscription] = None,
    record_payment: bool = False,
    now: Optional[datetime] = None,
) -> LicenseTransition:
    """
    expires_at += duration.

    With ``record_payment`` the subscription's last payment is stamped and a
    suspended subscription returns to active.
    """
    now = now or timezone.now()
    updated = license.extend(duration, now)
    events: Tuple[DomainEvent, ...] = (
        LicenseExtended(
            aggregate_id=str(license.id),
            license_id=license.id,
            new_expiration=updated.expires_at,
        ),
    )
    if subscription and record_payment and not subscription.is_canceled:
        previous = subscription.status
        subscription = subscription.record_payment(now)
        if previous != subscription.status:
            events += (_subscription_event(subscription),)
    else:
        subscription = None
    return LicenseTransition(
        name="extend",
        license=updated,
        from_status=license.status,
        expected_updated_at=license.updated_at,
        subscription=subscription,
        events=events,
    )


def change_subscription_status(
    license: License,
    subscription: Subscription,
    status: SubscriptionStatus,
    external_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> LicenseTransition:
    """Update the subscription only; the license keeps its state."""
    now = now or timezone.now()
    if subscription.is_canceled and status != SubscriptionStatus.CANCELED:
        raise InvalidStateTransitionError("Cannot change a canceled subscription")
    if status == SubscriptionStatus.ACTIVE:
        updated = subscription.activate(external_id=external_id, now=now)
    else:
        updated = subscription.with_status(status, now)
    events: Tuple[DomainEvent, ...] = ()
    if updated.status != subscription.status:
        events = (_subscription_event(updated),)
    return LicenseTransition(
        name="subscription_status",
        license=license,
        from_status=license.status,
        expected_updated_at=license.updated_at,
        subscription=updated,
        events=events,
    )


def attach_subscription(
    license: License,
    external_id: Optional[str],
    provider: str,
    now: Optional[datetime] = None,
) -> LicenseTransition:
    """Create the subscription record of a license that has none."""
    subscription = Subscription.create(license.id, external_id=external_id, provider=provider, now=now)
    return LicenseTransition(
        name="subscription_created",
        license=license,
        from_status=license.status,
        expected_updated_at=license.updated_at,
        subscription=subscription,
        events=(_subscription_event(subscription),),
    )


def expire_license(license: License, now: Optional[datetime] = None) -> LicenseTransition:
    """active -> expired, persisting the status derived from the expiry date."""
    now = now or timezone.now()
    return LicenseTransition(
        name="expire",
        license=license.mark_expired(now),
        from_status=license.status,
        expected_updated_at=license.updated_at,
    )
