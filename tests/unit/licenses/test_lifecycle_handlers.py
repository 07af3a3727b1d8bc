"""
Unit tests for license lifecycle handlers.
"""

import uuid
from datetime import timedelta

import pytest

from activations.domain.activation import Activation, MachineIdentity
from core.domain.exceptions import (
    InvalidRequestError,
    InvalidStateTransitionError,
    LicenseNotFoundError,
)
from core.domain.value_objects import LicenseStatus, SubscriptionStatus
from licenses.application.commands.extend_license import ExtendLicenseCommand
from licenses.application.commands.reactivate_license import ReactivateLicenseCommand
from licenses.application.commands.revoke_license import RevokeLicenseCommand
from licenses.application.commands.suspend_license import SuspendLicenseCommand
from licenses.application.handlers.license_lifecycle_handlers import (
    ExtendLicenseHandler,
    ReactivateLicenseHandler,
    RevokeLicenseHandler,
    SuspendLicenseHandler,
)
from licenses.domain.events import LicenseRevoked, LicenseSuspended, SubscriptionStatusChanged


@pytest.fixture
def handler_kwargs(license_repository, subscription_repository, event_bus):
    return {
        "license_repository": license_repository,
        "subscription_repository": subscription_repository,
        "event_bus": event_bus,
    }


def bind_machine(store, license, fingerprint):
    identity = MachineIdentity.from_raw(fingerprint, None, "test-machine-salt")
    activation = Activation.create(license.id, identity, ip_address="10.0.0.1")
    store.activations[activation.id] = activation
    store.set_count(license.id, store.licenses[license.id].activation_count + 1)
    return activation


@pytest.mark.asyncio
class TestSuspendLicenseHandler:
    """Tests for SuspendLicenseHandler."""

    async def test_suspend_by_key(self, handler_kwargs, license_factory, store, recorded_events):
        """Test suspending a license looked up by raw key."""
        raw_key, license = license_factory()

        result = await SuspendLicenseHandler(**handler_kwargs).handle(
            SuspendLicenseCommand(license_key=raw_key, reason="fraud review")
        )

        assert result.status == "suspended"
        assert result.license_key == license.key_hint
        assert store.licenses[license.id].status == LicenseStatus.SUSPENDED
        assert isinstance(recorded_events[0], LicenseSuspended)
        assert recorded_events[0].reason == "fraud review"

    async def test_suspend_by_id_keeps_activation_count(self, handler_kwargs, license_factory, store):
        _, license = license_factory()
        bind_machine(store, license, "fp-1")

        result = await SuspendLicenseHandler(**handler_kwargs).handle(
            SuspendLicenseCommand(license_id=license.id)
        )

        assert result.activation_count == 1

    async def test_suspend_suspends_subscription(
        self, handler_kwargs, license_factory, store, recorded_events
    ):
        _, license = license_factory(with_subscription=True, subscription_external_id="sub_1")

        await SuspendLicenseHandler(**handler_kwargs).handle(
            SuspendLicenseCommand(license_id=license.id)
        )

        assert store.subscriptions[license.id].status == SubscriptionStatus.SUSPENDED
        assert any(isinstance(event, SubscriptionStatusChanged) for event in recorded_events)

    async def test_suspend_unknown_license(self, handler_kwargs):
        with pytest.raises(LicenseNotFoundError):
            await SuspendLicenseHandler(**handler_kwargs).handle(
                SuspendLicenseCommand(license_id=uuid.uuid4())
            )

    async def test_suspend_without_identifier(self, handler_kwargs):
        with pytest.raises(LicenseNotFoundError):
            await SuspendLicenseHandler(**handler_kwargs).handle(SuspendLicenseCommand())

    async def test_suspend_twice_is_rejected(self, handler_kwargs, license_factory):
        """Test suspending a suspended license raises InvalidStateTransitionError."""
        _, license = license_factory()
        handler = SuspendLicenseHandler(**handler_kwargs)
        await handler.handle(SuspendLicenseCommand(license_id=license.id))

        with pytest.raises(InvalidStateTransitionError):
            await handler.handle(SuspendLicenseCommand(license_id=license.id))


@pytest.mark.asyncio
class TestReactivateLicenseHandler:
    """Tests for ReactivateLicenseHandler."""

    async def test_reactivate_suspended(self, handler_kwargs, license_factory):
        _, license = license_factory(with_subscription=True)
        await SuspendLicenseHandler(**handler_kwargs).handle(
            SuspendLicenseCommand(license_id=license.id)
        )

        result = await ReactivateLicenseHandler(**handler_kwargs).handle(
            ReactivateLicenseCommand(license_id=license.id)
        )

        assert result.status == "active"
        subscription = await handler_kwargs["subscription_repository"].find_by_license(license.id)
        assert subscription.status == SubscriptionStatus.ACTIVE

    async def test_reactivate_revoked_needs_override(self, handler_kwargs, license_factory, store):
        """Test revoked licenses only come back with admin override, without their activations."""
        _, license = license_factory()
        activation = bind_machine(store, license, "fp-1")
        await RevokeLicenseHandler(**handler_kwargs).handle(
            RevokeLicenseCommand(license_id=license.id)
        )
        handler = ReactivateLicenseHandler(**handler_kwargs)

        with pytest.raises(InvalidStateTransitionError):
            await handler.handle(ReactivateLicenseCommand(license_id=license.id))

        result = await handler.handle(
            ReactivateLicenseCommand(license_id=license.id, admin_override=True)
        )

        assert result.status == "active"
        assert result.activation_count == 0
        assert store.activations[activation.id].revoked is True


@pytest.mark.asyncio
class TestRevokeLicenseHandler:
    """Tests for RevokeLicenseHandler."""

    async def test_revoke_revokes_activations_and_subscription(
        self, handler_kwargs, license_factory, store, recorded_events
    ):
        _, license = license_factory(with_subscription=True)
        first = bind_machine(store, license, "fp-1")
        second = bind_machine(store, license, "fp-2")

        result = await RevokeLicenseHandler(**handler_kwargs).handle(
            RevokeLicenseCommand(license_id=license.id, reason="refund")
        )

        assert result.status == "revoked"
        assert result.activation_count == 0
        assert store.activations[first.id].revoked is True
        assert store.activations[second.id].revoked is True
        assert store.subscriptions[license.id].status == SubscriptionStatus.CANCELED
        assert isinstance(recorded_events[0], LicenseRevoked)

    async def test_revoke_twice_is_rejected(self, handler_kwargs, license_factory):
        _, license = license_factory()
        handler = RevokeLicenseHandler(**handler_kwargs)
        await handler.handle(RevokeLicenseCommand(license_id=license.id))

        with pytest.raises(InvalidStateTransitionError):
            await handler.handle(RevokeLicenseCommand(license_id=license.id))


@pytest.mark.asyncio
class TestExtendLicenseHandler:
    """Tests for ExtendLicenseHandler."""

    async def test_extend(self, handler_kwargs, license_factory):
        _, license = license_factory(expires_in=timedelta(days=10))

        result = await ExtendLicenseHandler(**handler_kwargs).handle(
            ExtendLicenseCommand(days=30, license_id=license.id)
        )

        assert result.expires_at == license.expires_at + timedelta(days=30)

    async def test_extend_revives_expired_license(self, handler_kwargs, license_factory):
        _, license = license_factory(expires_in=timedelta(days=-1))

        result = await ExtendLicenseHandler(**handler_kwargs).handle(
            ExtendLicenseCommand(days=30, license_id=license.id)
        )

        assert result.status == "active"

    @pytest.mark.parametrize("days", [0, -5])
    async def test_extend_rejects_non_positive_days(self, handler_kwargs, license_factory, days):
        _, license = license_factory()

        with pytest.raises(InvalidRequestError):
            await ExtendLicenseHandler(**handler_kwargs).handle(
                ExtendLicenseCommand(days=days, license_id=license.id)
            )

    async def test_stale_transition_is_rejected(self, handler_kwargs, license_factory, store):
        """Test a license modified after it was read cannot be overwritten."""
        _, license = license_factory()
        repository = handler_kwargs["license_repository"]
        from licenses.domain.state_machine import suspend_license

        stale = suspend_license(license)
        moved = license.updated_at + timedelta(seconds=1)
        store.add_license(license.suspend(moved).reactivate(moved))

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            await repository.apply_transition(stale)

        assert exc_info.value.code == "CONCURRENT_MODIFICATION"
