"""
Pytest configuration and shared fixtures.
"""

import uuid
from datetime import timedelta

import pytest
from asgiref.sync import async_to_sync
from django.core.cache import cache
from django.utils import timezone

from activations.infrastructure.repositories.django_activation_repository import (
    DjangoActivationRepository,
)
from core.config import LicensingConfig
from core.domain.value_objects import LicenseType
from core.infrastructure.audit import AuditLogger
from core.infrastructure.events import InMemoryEventBus
from fakes import (
    FakeActivationRepository,
    FakeAuditLogRepository,
    FakeLicenseRepository,
    FakeOrderRepository,
    FakeProductRepository,
    FakeWebhookEventRepository,
    InMemoryStore,
)
from licenses.domain.license_key import generate_license_key
from licenses.domain.state_machine import issue_license
from licenses.infrastructure.repositories.django_license_repository import DjangoLicenseRepository
from orders.domain.order import Order
from orders.domain.product import Product
from orders.infrastructure.repositories.django_order_repository import (
    DjangoOrderRepository,
    DjangoProductRepository,
)

TEST_SALT = "test-machine-salt"


@pytest.fixture(autouse=True)
def clear_rate_limit_counters():
    """Rate limit windows must not leak between tests."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def licensing_config():
    """Fixture for LicensingConfig."""
    return LicensingConfig(machine_hash_salt=TEST_SALT, jwt_secret="test-jwt-secret")


@pytest.fixture
def store():
    """Fixture for the in-memory tables shared by the fake repositories."""
    return InMemoryStore()


@pytest.fixture
def license_repository(store):
    """Fixture for an in-memory LicenseRepository."""
    return FakeLicenseRepository(store)


@pytest.fixture
def subscription_repository(license_repository):
    """Fixture for an in-memory SubscriptionRepository."""
    return license_repository.subscriptions


@pytest.fixture
def activation_repository(store):
    """Fixture for an in-memory ActivationRepository."""
    return FakeActivationRepository(store)


@pytest.fixture
def order_repository(store):
    """Fixture for an in-memory OrderRepository."""
    return FakeOrderRepository(store)


@pytest.fixture
def product_repository(store):
    """Fixture for an in-memory ProductRepository."""
    return FakeProductRepository(store)


@pytest.fixture
def webhook_event_repository(store):
    """Fixture for an in-memory WebhookEventRepository."""
    return FakeWebhookEventRepository(store)


@pytest.fixture
def audit_repository(store):
    """Fixture for an in-memory AuditLogRepository."""
    return FakeAuditLogRepository(store)


@pytest.fixture
def audit_logger(licensing_config, audit_repository):
    """Fixture for AuditLogger writing to the in-memory store."""
    return AuditLogger(licensing_config, audit_repository)


@pytest.fixture
def event_bus():
    """Fixture for a private event bus."""
    return InMemoryEventBus()


@pytest.fixture
def recorded_events(event_bus):
    """Collect every event published on ``event_bus``."""
    from core.domain.events import EventHandler
    from core.infrastructure.event_handlers import AUDITED_EVENTS

    received = []

    class Recorder(EventHandler):
        async def handle(self, event):
            received.append(event)

    recorder = Recorder()
    for event_type in AUDITED_EVENTS:
        event_bus.subscribe(event_type, recorder)
    return received


@pytest.fixture
def license_factory(store):
    """
    Factory storing a license in the in-memory store.

    Returns ``(raw_key, license)``.
    """

    def create(
        max_activations=3,
        expires_in=timedelta(days=365),
        requires_machine_id=False,
        license_type=LicenseType.PERPETUAL,
        customer_email="customer@example.com",
        order_id=None,
        with_subscription=False,
        subscription_external_id=None,
        raw_key=None,
        now=None,
    ):
        raw_key = raw_key or generate_license_key("LIC")
        transition = issue_license(
            raw_key,
            product_id=uuid.uuid4(),
            customer_email=customer_email,
            max_activations=max_activations,
            duration=expires_in,
            license_type=license_type,
            requires_machine_id=requires_machine_id,
            order_id=order_id,
            subscription_external_id=subscription_external_id,
            with_subscription=with_subscription,
            provider="stripe",
            now=now or timezone.now(),
        )
        store.add_license(transition.license)
        if transition.subscription is not None:
            store.subscriptions[transition.license.id] = transition.subscription
        return raw_key, transition.license

    return create


@pytest.fixture
def sample_product():
    """Fixture for a sample Product entity."""
    return Product.create(
        name="Pro Plan",
        slug="pro-plan",
        key_prefix="PRO",
        max_activations=2,
        license_duration_days=365,
    )


@pytest.fixture
def sample_order(sample_product):
    """Fixture for a sample pending Order entity."""
    return Order.create(
        customer_email="buyer@example.com",
        product_ids=[sample_product.id],
        payment_intent_id="pi_test_123",
    )


@pytest.fixture
def api_client():
    """Fixture for DRF API client."""
    from rest_framework.test import APIClient

    return APIClient()


@pytest.fixture
def staff_user(db, django_user_model):
    """Fixture for a staff account allowed on administration endpoints."""
    return django_user_model.objects.create_user(
        username="support", password="support-pass", is_staff=True
    )


@pytest.fixture
def staff_client(api_client, staff_user):
    """API client authenticated as staff."""
    api_client.force_authenticate(user=staff_user)
    return api_client


@pytest.fixture
def db_license_repository():
    """Fixture for DjangoLicenseRepository."""
    return DjangoLicenseRepository()


@pytest.fixture
def db_activation_repository():
    """Fixture for DjangoActivationRepository."""
    return DjangoActivationRepository()


@pytest.fixture
def db_product(db):
    """Fixture for a Product saved in database."""
    product = Product.create(
        name="Desktop Suite",
        slug=f"desktop-suite-{uuid.uuid4().hex[:8]}",
        key_prefix="DSK",
        max_activations=2,
        license_duration_days=365,
    )
    return async_to_sync(DjangoProductRepository().save)(product)


@pytest.fixture
def db_order(db, db_product):
    """Fixture for a pending Order saved in database."""
    order = Order.create(
        customer_email="buyer@example.com",
        product_ids=[db_product.id],
        payment_intent_id=f"pi_{uuid.uuid4().hex[:12]}",
    )
    return DjangoOrderRepository().save_sync(order)


@pytest.fixture
def db_license_factory(db, db_product, db_license_repository):
    """
    Factory storing a license in the database.

    Returns ``(raw_key, license)``.
    """

    def create(
        max_activations=2,
        expires_in=timedelta(days=365),
        requires_machine_id=False,
        customer_email="customer@example.com",
        order_id=None,
        with_subscription=False,
        subscription_external_id=None,
    ):
        raw_key = generate_license_key("DSK")
        transition = issue_license(
            raw_key,
            product_id=db_product.id,
            customer_email=customer_email,
            max_activations=max_activations,
            duration=expires_in,
            license_type=LicenseType.SUBSCRIPTION if with_subscription else LicenseType.PERPETUAL,
            requires_machine_id=requires_machine_id,
            order_id=order_id,
            subscription_external_id=subscription_external_id,
            with_subscription=with_subscription,
            provider="stripe",
        )
        return raw_key, db_license_repository.apply_transition_sync(transition)

    return create


@pytest.fixture
def db_license(db_license_factory):
    """Fixture for ``(raw_key, license)`` saved in database."""
    return db_license_factory()
