"""
License domain services.

Domain services contain business logic that doesn't naturally
fit within a single entity.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from django.utils import timezone

from core.domain.exceptions import InvalidStateError
from licenses.domain.license_key import generate_license_key
from licenses.domain.state_machine import LicenseTransition, issue_license
from orders.domain.order import Order
from orders.domain.product import Product


@dataclass(frozen=True)
class IssuedLicense:
    """A license about to be created, with the only copy of its raw key."""

    raw_key: str
    transition: LicenseTransition

    @property
    def license(self):
        return self.transition.license


class LicenseIssuer:
    """Domain service turning a completed order into licenses."""

    @staticmethod
    def plan(
        order: Order,
        products: Sequence[Product],
        provider: str = "",
        subscription_external_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[IssuedLicense]:
        """
        Compute one license per product of the order.

        Subscription products also get an active subscription record.

        Args:
            order: Completed order
            products: Products of the order
            provider: Payment provider, recorded on subscriptions
            subscription_external_id: Provider subscription id, if known
            now: Issuance time

        Returns:
            List of licenses to persist

        Raises:
            InvalidStateError: If the order is not completed
        """
        if not order.is_completed:
            raise InvalidStateError("Order is not completed", code="ORDER_NOT_COMPLETED")
        now = now or timezone.now()
        issued = []
        for product in products:
            raw_key = generate_license_key(product.key_prefix)
            transition = issue_license(
                raw_key,
                product_id=product.id,
                customer_email=str(order.customer_email),
                max_activations=product.max_activations,
                duration=product.license_duration,
                license_type=product.license_type,
                requires_machine_id=product.requires_machine_id,
                order_id=order.id,
                subscription_external_id=subscription_external_id,
                with_subscription=product.is_subscription,
                provider=provider,
                now=now,
            )
            issued.append(IssuedLicense(raw_key=raw_key, transition=transition))
        return issued
