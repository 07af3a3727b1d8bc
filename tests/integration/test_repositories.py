"""
Integration tests for the Django repository implementations.

Async repository methods are driven through ``async_to_sync`` so they run on
the test's database connection.
"""

import uuid
from datetime import timedelta

import pytest
from asgiref.sync import async_to_sync
from django.utils import timezone

from activations.domain.activation import MachineIdentity
from activations.infrastructure.models import Activation as ActivationModel
from activations.ports.activation_repository import ReservationStatus
from core.domain.audit import AuditCategory, AuditRecord
from core.domain.exceptions import InvalidStateTransitionError
from core.domain.value_objects import LicenseStatus, OrderStatus, SubscriptionStatus
from core.infrastructure.repositories.django_audit_log_repository import DjangoAuditLogRepository
from licenses.domain.state_machine import revoke_license, suspend_license
from licenses.infrastructure.models import License as LicenseModel
from licenses.infrastructure.repositories.django_subscription_repository import (
    DjangoSubscriptionRepository,
)
from orders.infrastructure.repositories.django_order_repository import DjangoOrderRepository
from webhooks.domain.outcome import ProcessedEvent, StateChanges
from webhooks.domain.provider_event import ProviderEvent
from webhooks.infrastructure.models import ProcessedWebhookEvent
from webhooks.infrastructure.repositories.django_webhook_event_repository import (
    DjangoWebhookEventRepository,
)
from webhook_payloads import stripe_event

SALT = "test-machine-salt"


def machine(fingerprint, machine_id=None):
    return MachineIdentity.from_raw(fingerprint, machine_id, SALT)


def reserve(repository, license, identity):
    return async_to_sync(repository.reserve_seat)(license.id, identity, "203.0.113.7", timezone.now())


@pytest.mark.django_db
@pytest.mark.integration
class TestLicenseRepository:
    """Integration tests for DjangoLicenseRepository."""

    def test_insert_and_find(self, db_license_factory, db_license_repository):
        raw_key, license = db_license_factory(customer_email="Owner@Example.com")

        by_key = async_to_sync(db_license_repository.find_by_key)(raw_key.lower())
        by_id = async_to_sync(db_license_repository.find_by_id)(license.id)
        by_email = async_to_sync(db_license_repository.find_by_customer_email)("owner@example.com")

        assert by_key.id == license.id
        assert by_id.status == LicenseStatus.ACTIVE
        assert [item.id for item in by_email] == [license.id]
        assert LicenseModel.objects.get(id=license.id).key_hash != raw_key

    def test_unknown_key(self, db, db_license_repository):
        assert async_to_sync(db_license_repository.find_by_key)("LIC-NOPE-NOPE-NOPE") is None
        assert async_to_sync(db_license_repository.find_by_key)("") is None

    def test_apply_transition(self, db_license_factory, db_license_repository):
        _, license = db_license_factory()

        suspended = async_to_sync(db_license_repository.apply_transition)(suspend_license(license))

        assert suspended.status == LicenseStatus.SUSPENDED
        assert LicenseModel.objects.get(id=license.id).status == "suspended"

    def test_stale_transition_is_rejected(self, db_license_factory, db_license_repository):
        """Test a transition computed from an outdated read fails."""
        _, license = db_license_factory()
        async_to_sync(db_license_repository.apply_transition)(suspend_license(license))

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            async_to_sync(db_license_repository.apply_transition)(revoke_license(license))

        assert exc_info.value.code == "CONCURRENT_MODIFICATION"
        assert LicenseModel.objects.get(id=license.id).status == "suspended"

    def test_revoke_clears_bindings(self, db_license_factory, db_license_repository, db_activation_repository):
        _, license = db_license_factory()
        reserve(db_activation_repository, license, machine("fp-1"))
        current = async_to_sync(db_license_repository.find_by_id)(license.id)

        revoked = async_to_sync(db_license_repository.apply_transition)(revoke_license(current, reason="refund"))

        assert revoked.status == LicenseStatus.REVOKED
        assert revoked.activation_count == 0
        binding = ActivationModel.objects.get(license_id=license.id)
        assert binding.revoked is True
        assert binding.revoked_reason == "refund"

    def test_find_expired_active(self, db_license_factory, db_license_repository):
        _, expired = db_license_factory(expires_in=timedelta(days=-1))
        db_license_factory()

        found = async_to_sync(db_license_repository.find_expired_active)(timezone.now())

        assert [item.id for item in found] == [expired.id]

    def test_subscription_saved_with_license(self, db_license_factory, db_license_repository):
        _, license = db_license_factory(with_subscription=True, subscription_external_id="sub_int_1")

        subscription = async_to_sync(DjangoSubscriptionRepository().find_by_license)(license.id)
        by_external = async_to_sync(db_license_repository.find_by_subscription_external_id)("sub_int_1")

        assert subscription.status == SubscriptionStatus.ACTIVE
        assert by_external.id == license.id


@pytest.mark.django_db
@pytest.mark.integration
class TestActivationRepository:
    """Integration tests for DjangoActivationRepository."""

    def test_reserve_and_release(self, db_license_factory, db_activation_repository, db_license_repository):
        _, license = db_license_factory(max_activations=2)
        identity = machine("fp-1", "mid-1")

        created = reserve(db_activation_repository, license, identity)
        again = reserve(db_activation_repository, license, identity)

        assert created.status == ReservationStatus.CREATED
        assert created.activation_count == 1
        assert again.status == ReservationStatus.EXISTING
        assert again.activation.id == created.activation.id

        released = async_to_sync(db_activation_repository.release_seat)(license.id, identity, timezone.now())

        assert released.id == created.activation.id
        assert async_to_sync(db_license_repository.find_by_id)(license.id).activation_count == 0
        assert async_to_sync(db_activation_repository.count_live)(license.id) == 0

    def test_limit_reached(self, db_license_factory, db_activation_repository):
        _, license = db_license_factory(max_activations=1)
        reserve(db_activation_repository, license, machine("fp-1"))

        denied = reserve(db_activation_repository, license, machine("fp-2"))

        assert denied.status == ReservationStatus.LIMIT_REACHED
        assert denied.activation_count == 1

    def test_unavailable_license(self, db_license_factory, db_activation_repository, db_license_repository):
        _, license = db_license_factory()
        async_to_sync(db_license_repository.apply_transition)(suspend_license(license))

        result = reserve(db_activation_repository, license, machine("fp-1"))

        assert result.status == ReservationStatus.LICENSE_UNAVAILABLE

    def test_unknown_license(self, db, db_activation_repository):
        result = async_to_sync(db_activation_repository.reserve_seat)(
            uuid.uuid4(), machine("fp-1"), None, timezone.now()
        )

        assert result.status == ReservationStatus.LICENSE_NOT_FOUND

    def test_revoke_bindings(self, db_license_factory, db_activation_repository, db_license_repository):
        _, license = db_license_factory(max_activations=3)
        reserve(db_activation_repository, license, machine("fp-1"))
        reserve(db_activation_repository, license, machine("fp-2"))

        count = async_to_sync(db_activation_repository.revoke_bindings)(
            license.id, machine("fp-1"), "stolen device", timezone.now()
        )

        assert count == 1
        assert async_to_sync(db_license_repository.find_by_id)(license.id).activation_count == 1
        history = async_to_sync(db_activation_repository.list_history)(license.id)
        assert len(history) == 2
        assert sum(1 for item in history if item.revoked) == 1


@pytest.mark.django_db
@pytest.mark.integration
class TestWebhookEventRepository:
    """Integration tests for DjangoWebhookEventRepository."""

    def event(self, event_id="evt_int_1"):
        return ProviderEvent.from_stripe(stripe_event("charge.dispute.created", {}, event_id=event_id))

    def test_commit_applies_changes_once(self, db_license_factory, db_order):
        _, license = db_license_factory()
        repository = DjangoWebhookEventRepository()
        event = self.event()
        changes = StateChanges(orders=[db_order.mark_completed("ch_1")], transitions=[suspend_license(license)])

        first = async_to_sync(repository.commit)(ProcessedEvent.for_event(event, license.id), changes)
        second = async_to_sync(repository.commit)(ProcessedEvent.for_event(event, license.id), StateChanges())

        assert first is True
        assert second is False
        assert async_to_sync(repository.is_processed)(event.provider, event.event_id) is True
        assert LicenseModel.objects.get(id=license.id).status == "suspended"
        assert async_to_sync(DjangoOrderRepository().find_by_id)(db_order.id).status == OrderStatus.COMPLETED

    def test_failed_commit_leaves_no_marker(self, db_license_factory, db_license_repository):
        """Test the marker is rolled back with the changes."""
        _, license = db_license_factory()
        async_to_sync(db_license_repository.apply_transition)(suspend_license(license))
        repository = DjangoWebhookEventRepository()
        event = self.event()

        with pytest.raises(InvalidStateTransitionError):
            async_to_sync(repository.commit)(
                ProcessedEvent.for_event(event), StateChanges(transitions=[revoke_license(license)])
            )

        assert async_to_sync(repository.is_processed)(event.provider, event.event_id) is False

    def test_prune(self, db):
        repository = DjangoWebhookEventRepository()
        old = ProcessedEvent.for_event(self.event("evt_old"), now=timezone.now() - timedelta(days=120))
        recent = ProcessedEvent.for_event(self.event("evt_new"))
        async_to_sync(repository.commit)(old, StateChanges())
        async_to_sync(repository.commit)(recent, StateChanges())

        deleted = async_to_sync(repository.prune)(timezone.now() - timedelta(days=90))

        assert deleted == 1
        assert list(ProcessedWebhookEvent.objects.values_list("event_id", flat=True)) == ["evt_new"]


@pytest.mark.django_db
@pytest.mark.integration
class TestAuditLogRepository:
    """Integration tests for DjangoAuditLogRepository."""

    def test_append_and_find(self, db_license):
        _, license = db_license
        repository = DjangoAuditLogRepository()
        for action in ("validate", "activate"):
            async_to_sync(repository.append)(
                AuditRecord(
                    category=AuditCategory.LICENSE,
                    action=action,
                    license_id=license.id,
                    license_key_partial="LIC-...-ABCD",
                )
            )

        records = async_to_sync(repository.find_by_license)(license.id)
        activations = async_to_sync(repository.find_by_license)(license.id, action="activate")

        assert sorted(record.action for record in records) == ["activate", "validate"]
        assert [record.action for record in activations] == ["activate"]
