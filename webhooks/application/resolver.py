"""
License resolution for provider events.

A provider event names the purchase in different ways depending on its type.
Resolution tries, in order: an order reference, the customer email, then the
provider subscription id. The first strategy that finds something wins; an
order found without licenses stops the search so a fresh purchase is never
matched to an older license of the same customer.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from licenses.domain.license import License
from licenses.domain.subscription import Subscription
from licenses.ports.license_repository import LicenseRepository, SubscriptionRepository
from orders.domain.order import Order
from orders.ports.order_repository import OrderRepository
from webhooks.domain.provider_event import PaymentProvider, ProviderEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    """What an event refers to locally."""

    license: Optional[License] = None
    order: Optional[Order] = None
    subscription: Optional[Subscription] = None
    strategy: str = ""

    @property
    def found(self) -> bool:
        return self.license is not None


def _present(*values) -> List[str]:
    return [str(value) for value in values if value]


def order_references(event: ProviderEvent) -> List[str]:
    """Order ids, payment intent ids or transaction ids carried by the event."""
    if event.provider == PaymentProvider.STRIPE:
        own_id = event.get("id") if event.get("object") == "payment_intent" else None
        return _present(event.get("metadata", "order_id"), event.get("payment_intent"), own_id)
    sale_id = event.get("id") if event.event_type.startswith("PAYMENT.SALE") else None
    return _present(
        event.get("custom"),
        event.get("custom_id"),
        event.get("parent_payment"),
        event.get("sale_id"),
        sale_id,
    )


def customer_emails(event: ProviderEvent) -> List[str]:
    if event.provider == PaymentProvider.STRIPE:
        return _present(
            event.get("billing_details", "email"),
            event.get("receipt_email"),
            event.get("customer_email"),
        )
    return _present(
        event.get("payer", "payer_info", "email"),
        event.get("subscriber", "email_address"),
    )


def subscription_external_id(event: ProviderEvent) -> Optional[str]:
    """Provider subscription id of the event, if any."""
    if event.provider == PaymentProvider.STRIPE:
        if event.get("object") == "subscription":
            return event.get("id")
        return event.get("subscription")
    if event.event_type.startswith("BILLING.SUBSCRIPTION"):
        return event.get("id")
    return event.get("billing_agreement_id")


class LicenseResolver:
    """Finds the license, order and subscription an event is about."""

    def __init__(
        self,
        license_repository: LicenseRepository,
        order_repository: OrderRepository,
        subscription_repository: SubscriptionRepository,
    ):
        self.license_repository = license_repository
        self.order_repository = order_repository
        self.subscription_repository = subscription_repository

    async def resolve(self, event: ProviderEvent) -> Resolution:
        """
        Resolve an event to local records.

        Args:
            event: Verified provider event

        Returns:
            Resolution; ``license`` is None when nothing matched
        """
        external_id = subscription_external_id(event)

        for reference in order_references(event):
            order = await self.order_repository.find_by_reference(reference)
            if order:
                licenses = await self.license_repository.find_by_order(order.id)
                license = licenses[0] if licenses else None
                return await self._complete(license, order, external_id, "order")

        for email in customer_emails(event):
            licenses = await self.license_repository.find_by_customer_email(email)
            if licenses:
                return await self._complete(licenses[0], None, external_id, "email")

        if external_id:
            license = await self.license_repository.find_by_subscription_external_id(external_id)
            if license:
                return await self._complete(license, None, external_id, "subscription")

        logger.info("No license matched %s event %s", event.provider.value, event.event_id)
        return Resolution()

    async def _complete(
        self,
        license: Optional[License],
        order: Optional[Order],
        external_id: Optional[str],
        strategy: str,
    ) -> Resolution:
        subscription = None
        if license:
            subscription = await self.subscription_repository.find_by_license(license.id)
        if subscription is None and external_id:
            found = await self.subscription_repository.find_by_external_id(external_id)
            if found and (license is None or found.license_id == license.id):
                subscription = found
        return Resolution(license=license, order=order, subscription=subscription, strategy=strategy)
