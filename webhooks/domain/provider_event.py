"""
Payment provider events.

Every supported event type is an enum member; dispatch tables are keyed by
these members, never by raw strings.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from core.domain.exceptions import InvalidRequestError


def _object(value: Any, name: str) -> Mapping[str, Any]:
    """A missing section reads as empty; anything but a JSON object is rejected."""
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise InvalidRequestError(f"Event {name} must be a JSON object", code="INVALID_PAYLOAD")
    return value


class PaymentProvider(str, Enum):
    """Payment providers that send webhooks."""

    STRIPE = "stripe"
    PAYPAL = "paypal"


class StripeEventType(str, Enum):
    """Stripe event types with a license-side effect or audit entry."""

    PAYMENT_INTENT_CREATED = "payment_intent.created"
    PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
    CHARGE_SUCCEEDED = "charge.succeeded"
    CHARGE_FAILED = "charge.failed"
    CHARGE_REFUNDED = "charge.refunded"
    PAYMENT_METHOD_ATTACHED = "payment_method.attached"
    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    SUBSCRIPTION_PAUSED = "customer.subscription.paused"
    SUBSCRIPTION_RESUMED = "customer.subscription.resumed"
    SUBSCRIPTION_TRIAL_WILL_END = "customer.subscription.trial_will_end"
    INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"
    CUSTOMER_UPDATED = "customer.updated"
    DISPUTE_CREATED = "charge.dispute.created"
    DISPUTE_UPDATED = "charge.dispute.updated"
    DISPUTE_CLOSED = "charge.dispute.closed"


class PayPalEventType(str, Enum):
    """PayPal event types with a license-side effect."""

    SALE_COMPLETED = "PAYMENT.SALE.COMPLETED"
    SALE_DENIED = "PAYMENT.SALE.DENIED"
    SALE_REFUNDED = "PAYMENT.SALE.REFUNDED"
    SUBSCRIPTION_CREATED = "BILLING.SUBSCRIPTION.CREATED"
    SUBSCRIPTION_ACTIVATED = "BILLING.SUBSCRIPTION.ACTIVATED"
    SUBSCRIPTION_CANCELLED = "BILLING.SUBSCRIPTION.CANCELLED"
    SUBSCRIPTION_SUSPENDED = "BILLING.SUBSCRIPTION.SUSPENDED"
    SUBSCRIPTION_PAYMENT_FAILED = "BILLING.SUBSCRIPTION.PAYMENT.FAILED"


EventKind = Union[StripeEventType, PayPalEventType]

_EVENT_TYPES = {
    PaymentProvider.STRIPE: StripeEventType,
    PaymentProvider.PAYPAL: PayPalEventType,
}


@dataclass(frozen=True)
class ProviderEvent:
    """
    A verified webhook event.

    ``resource`` is the object the event is about: Stripe's
    ``data.object`` or PayPal's ``resource``.
    """

    provider: PaymentProvider
    event_id: str
    event_type: str
    resource: Mapping[str, Any] = field(default_factory=dict)
    payload: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_stripe(cls, payload: Mapping[str, Any]) -> "ProviderEvent":
        data = _object(payload.get("data"), "data")
        return cls(
            provider=PaymentProvider.STRIPE,
            event_id=str(payload.get("id") or ""),
            event_type=str(payload.get("type") or ""),
            resource=_object(data.get("object"), "data.object"),
            payload=payload,
        )

    @classmethod
    def from_paypal(cls, payload: Mapping[str, Any], transmission_id: str = "") -> "ProviderEvent":
        # Replay protection is keyed by the transmission id when PayPal sends one
        return cls(
            provider=PaymentProvider.PAYPAL,
            event_id=str(transmission_id or payload.get("id") or ""),
            event_type=str(payload.get("event_type") or ""),
            resource=_object(payload.get("resource"), "resource"),
            payload=payload,
        )

    @property
    def kind(self) -> Optional[EventKind]:
        """The enum member of the event type, or None if unsupported."""
        try:
            return _EVENT_TYPES[self.provider](self.event_type)
        except ValueError:
            return None

    @property
    def setting_key(self) -> str:
        """Settings key that enables or disables this event type."""
        name = self.event_type.replace(".", "_")
        if self.provider == PaymentProvider.PAYPAL:
            name = name.lower()
        return f"webhooks.{self.provider.value}.{name}"

    def get(self, *path: str, default: Any = None) -> Any:
        """Read a nested value of the resource."""
        node: Any = self.resource
        for key in path:
            if not isinstance(node, Mapping):
                return default
            node = node.get(key)
            if node is None:
                return default
        return node

    def summary(self) -> Dict[str, Any]:
        return {
            "provider": self.provider.value,
            "event_id": self.event_id,
            "event_type": self.event_type,
            "resource_id": self.resource.get("id"),
        }
