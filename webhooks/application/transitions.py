"""
Webhook event handlers.

One async function per supported event type. A handler reads the resolved
license and computes the change the event calls for as ``StateChanges``;
nothing is written here. The dispatcher commits the changes together with
the processed-event marker.

Handlers compute at most one lifecycle transition per event. A transition the
state machine rejects raises ``InvalidStateTransitionError``; revoked licenses
are never brought back by a payment event.
"""
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Awaitable, Callable, Dict, Iterable, Optional, Type

from django.core.exceptions import ImproperlyConfigured

from core.domain.exceptions import (
    LicenseNotFoundError,
    NotFoundError,
    SubscriptionNotFoundError,
)
from core.domain.value_objects import LicenseStatus, SubscriptionStatus
from licenses.domain.services import LicenseIssuer
from licenses.domain.state_machine import (
    attach_subscription,
    change_subscription_status,
    extend_license,
    reactivate_license,
    revoke_license,
    suspend_license,
)
from licenses.domain.subscription import Subscription
from orders.ports.order_repository import ProductRepository
from webhooks.application.resolver import Resolution, subscription_external_id
from webhooks.domain.events import CustomerNotificationRequested
from webhooks.domain.outcome import HandlerResult, StateChanges
from webhooks.domain.provider_event import PayPalEventType, ProviderEvent, StripeEventType

logger = logging.getLogger(__name__)

REACTIVATABLE = (LicenseStatus.SUSPENDED, LicenseStatus.EXPIRED)


@dataclass(frozen=True)
class WebhookContext:
    """Inputs of one event handler."""

    event: ProviderEvent
    resolution: Resolution
    product_repository: ProductRepository
    now: datetime

    @property
    def license(self):
        return self.resolution.license

    @property
    def subscription(self):
        return self.resolution.subscription

    @property
    def provider(self) -> str:
        return self.event.provider.value

    @property
    def reason(self) -> str:
        return self.event.event_type


Handler = Callable[[WebhookContext], Awaitable[HandlerResult]]


def map_stripe_status(value: Optional[str]) -> SubscriptionStatus:
    """Stripe subscription status -> local subscription status."""
    value = (value or "").lower()
    if value in ("canceled", "cancelled"):
        return SubscriptionStatus.CANCELED
    if value in ("past_due", "unpaid", "paused"):
        return SubscriptionStatus.SUSPENDED
    return SubscriptionStatus.ACTIVE


def map_paypal_status(value: Optional[str]) -> SubscriptionStatus:
    """PayPal subscription status -> local subscription status."""
    value = (value or "").lower()
    if value in ("cancelled", "canceled"):
        return SubscriptionStatus.CANCELED
    if value == "suspended":
        return SubscriptionStatus.SUSPENDED
    return SubscriptionStatus.ACTIVE


# Helpers


def _noop(ctx: WebhookContext, message: str) -> HandlerResult:
    logger.info("%s: %s", ctx.event.event_type, message, extra=ctx.event.summary())
    return HandlerResult.ok(message, license=ctx.license)


def _changed(ctx: WebhookContext, message: str, *transitions, **changes) -> HandlerResult:
    return HandlerResult.ok(
        message,
        StateChanges(transitions=list(transitions), **changes),
        license=ctx.license,
    )


def _notify(ctx: WebhookContext, message: str) -> HandlerResult:
    notification = CustomerNotificationRequested(
        aggregate_id=str(ctx.license.id),
        license_id=ctx.license.id,
        reason=ctx.reason,
        provider=ctx.provider,
        provider_event_type=ctx.event.event_type,
        context={"resource_id": ctx.event.resource.get("id")},
    )
    return _changed(ctx, message, notifications=[notification])


def _revoke(ctx: WebhookContext, message: str) -> HandlerResult:
    license = ctx.license
    subscription = ctx.subscription
    if license.status == LicenseStatus.REVOKED:
        if subscription and not subscription.is_canceled:
            transition = change_subscription_status(
                license, subscription, SubscriptionStatus.CANCELED, now=ctx.now
            )
            return _changed(ctx, "Subscription canceled", transition)
        return _noop(ctx, "License already revoked")
    transition = revoke_license(license, reason=ctx.reason, subscription=subscription, now=ctx.now)
    return _changed(ctx, message, transition)


def _suspend(ctx: WebhookContext, message: str) -> HandlerResult:
    license = ctx.license
    if license.status != LicenseStatus.ACTIVE:
        return _noop(ctx, f"License is {license.status.value}")
    transition = suspend_license(license, reason=ctx.reason, subscription=ctx.subscription, now=ctx.now)
    return _changed(ctx, message, transition)


def _resume(ctx: WebhookContext, message: str) -> HandlerResult:
    """Reactivate a suspended or expired license together with its subscription."""
    license = ctx.license
    subscription = ctx.subscription
    external_id = subscription_external_id(ctx.event)
    if license.status in REACTIVATABLE or license.status == LicenseStatus.REVOKED:
        # Revoked raises here: only an admin may reactivate it
        transition = reactivate_license(license, subscription=subscription, reason=ctx.reason, now=ctx.now)
        if subscription is None:
            transition = replace(
                transition,
                subscription=Subscription.create(
                    license.id, external_id=external_id, provider=ctx.provider, now=ctx.now
                ),
            )
        return _changed(ctx, message, transition)
    if subscription is None:
        transition = attach_subscription(license, external_id, ctx.provider, now=ctx.now)
        return _changed(ctx, "Subscription recorded", transition)
    if subscription.status != SubscriptionStatus.ACTIVE or external_id != subscription.external_id:
        transition = change_subscription_status(
            license, subscription, SubscriptionStatus.ACTIVE, external_id=external_id, now=ctx.now
        )
        return _changed(ctx, "Subscription activated", transition)
    return _noop(ctx, "Subscription already active")


def _sync_subscription(ctx: WebhookContext, status: SubscriptionStatus) -> HandlerResult:
    subscription = ctx.subscription
    if subscription is None:
        return HandlerResult.fail(SubscriptionNotFoundError(), license=ctx.license)
    if subscription.status == status:
        return _noop(ctx, f"Subscription already {status.value}")
    transition = change_subscription_status(ctx.license, subscription, status, now=ctx.now)
    return _changed(ctx, f"Subscription {status.value}", transition)


async def _renew(ctx: WebhookContext) -> HandlerResult:
    """
    A recurring payment arrived for an existing license.

    Subscription licenses of a product with a fixed term are extended by
    one term; otherwise a suspended or expired license is reactivated.
    """
    license = ctx.license
    product = await ctx.product_repository.find_by_id(license.product_id)
    duration = product.license_duration if product else None
    if license.status != LicenseStatus.REVOKED and duration and ctx.subscription is not None:
        transition = extend_license(
            license, duration, subscription=ctx.subscription, record_payment=True, now=ctx.now
        )
        return _changed(ctx, "License extended", transition)
    if license.status in REACTIVATABLE:
        transition = reactivate_license(license, subscription=ctx.subscription, reason=ctx.reason, now=ctx.now)
        return _changed(ctx, "License reactivated", transition)
    return _noop(ctx, "Payment recorded")


async def _payment_completed(ctx: WebhookContext, license_required: bool) -> HandlerResult:
    """Issue licenses for a new order, or renew the license already issued."""
    order = ctx.resolution.order
    if order is not None and ctx.license is None:
        if not order.is_completed:
            order = order.mark_completed(transaction_id=ctx.event.resource.get("id"), now=ctx.now)
        products = []
        for product_id in order.product_ids:
            product = await ctx.product_repository.find_by_id(product_id)
            if product is None:
                return HandlerResult.fail(NotFoundError("Product not found", code="PRODUCT_NOT_FOUND"))
            products.append(product)
        issued = LicenseIssuer.plan(
            order,
            products,
            provider=ctx.provider,
            subscription_external_id=subscription_external_id(ctx.event),
            now=ctx.now,
        )
        changes = StateChanges(
            orders=[order] if order is not ctx.resolution.order else [],
            issued=issued,
        )
        result = HandlerResult.ok(f"Issued {len(issued)} license(s)", changes)
        result.license_id = issued[0].license.id if issued else None
        return result
    if ctx.license is None:
        if license_required:
            return HandlerResult.fail(LicenseNotFoundError())
        return _noop(ctx, "No license found for payment")
    return await _renew(ctx)


# Stripe


async def stripe_log_only(ctx: WebhookContext) -> HandlerResult:
    return _noop(ctx, "Event logged")


async def stripe_payment_intent_succeeded(ctx: WebhookContext) -> HandlerResult:
    order = ctx.resolution.order
    if order is None:
        return _noop(ctx, "No order found for payment intent")
    if order.is_completed:
        return _noop(ctx, "Order already completed")
    completed = order.mark_completed(transaction_id=ctx.event.resource.get("id"), now=ctx.now)
    return HandlerResult.ok("Order completed", StateChanges(orders=[completed]), license=ctx.license)


async def stripe_charge_succeeded(ctx: WebhookContext) -> HandlerResult:
    return await _payment_completed(ctx, license_required=False)


async def stripe_charge_failed(ctx: WebhookContext) -> HandlerResult:
    if ctx.license is None:
        return _noop(ctx, "No license found for failed charge")
    return _notify(ctx, "Customer notified of failed payment")


async def stripe_charge_refunded(ctx: WebhookContext) -> HandlerResult:
    if ctx.license is None:
        return _noop(ctx, "No license found for refunded charge")
    result = _revoke(ctx, "License revoked after refund")
    order = ctx.resolution.order
    if order is not None and order.is_completed and result.changes.transitions:
        result.changes.orders.append(order.mark_refunded(ctx.now))
    return result


async def stripe_subscription_created(ctx: WebhookContext) -> HandlerResult:
    if ctx.license is None:
        return HandlerResult.fail(LicenseNotFoundError())
    return _resume(ctx, "Subscription activated")


async def stripe_subscription_updated(ctx: WebhookContext) -> HandlerResult:
    if ctx.license is None:
        return HandlerResult.fail(LicenseNotFoundError())
    return _sync_subscription(ctx, map_stripe_status(ctx.event.get("status")))


async def stripe_subscription_deleted(ctx: WebhookContext) -> HandlerResult:
    if ctx.license is None:
        return HandlerResult.fail(LicenseNotFoundError())
    return _revoke(ctx, "License revoked, subscription canceled")


async def stripe_subscription_paused(ctx: WebhookContext) -> HandlerResult:
    if ctx.license is None:
        return HandlerResult.fail(LicenseNotFoundError())
    return _suspend(ctx, "License suspended")


async def stripe_subscription_resumed(ctx: WebhookContext) -> HandlerResult:
    if ctx.license is None:
        return HandlerResult.fail(LicenseNotFoundError())
    return _resume(ctx, "License reactivated")


async def stripe_trial_will_end(ctx: WebhookContext) -> HandlerResult:
    if ctx.license is None:
        return _noop(ctx, "No license found for trial")
    return _notify(ctx, "Customer notified of trial end")


async def stripe_invoice_payment_succeeded(ctx: WebhookContext) -> HandlerResult:
    if ctx.license is None:
        return HandlerResult.fail(LicenseNotFoundError())
    if ctx.event.get("billing_reason") == "subscription_create":
        # The first invoice is paid by the purchase that issued the license
        return _noop(ctx, "Initial invoice paid")
    return await _renew(ctx)


async def stripe_invoice_payment_failed(ctx: WebhookContext) -> HandlerResult:
    if ctx.license is None:
        return HandlerResult.fail(LicenseNotFoundError())
    result = _notify(ctx, "Customer notified of failed payment")
    subscription = ctx.subscription
    if subscription is not None and subscription.status == SubscriptionStatus.ACTIVE:
        result.changes.transitions.append(
            change_subscription_status(ctx.license, subscription, SubscriptionStatus.SUSPENDED, now=ctx.now)
        )
        result.message = "Subscription suspended, customer notified"
    return result


async def stripe_dispute_created(ctx: WebhookContext) -> HandlerResult:
    if ctx.license is None:
        return HandlerResult.fail(LicenseNotFoundError())
    return _suspend(ctx, "License suspended pending dispute")


async def stripe_dispute_closed(ctx: WebhookContext) -> HandlerResult:
    if ctx.license is None:
        return HandlerResult.fail(LicenseNotFoundError())
    status = ctx.event.get("status")
    if status == "lost":
        return _revoke(ctx, "License revoked, dispute lost")
    if status == "won" and ctx.license.status == LicenseStatus.SUSPENDED:
        transition = reactivate_license(
            ctx.license, subscription=ctx.subscription, reason=ctx.reason, now=ctx.now
        )
        return _changed(ctx, "License reactivated, dispute won", transition)
    return _noop(ctx, f"Dispute closed ({status or 'unknown'})")


STRIPE_HANDLERS: Dict[StripeEventType, Handler] = {
    StripeEventType.PAYMENT_INTENT_CREATED: stripe_log_only,
    StripeEventType.PAYMENT_INTENT_SUCCEEDED: stripe_payment_intent_succeeded,
    StripeEventType.CHARGE_SUCCEEDED: stripe_charge_succeeded,
    StripeEventType.CHARGE_FAILED: stripe_charge_failed,
    StripeEventType.CHARGE_REFUNDED: stripe_charge_refunded,
    StripeEventType.PAYMENT_METHOD_ATTACHED: stripe_log_only,
    StripeEventType.SUBSCRIPTION_CREATED: stripe_subscription_created,
    StripeEventType.SUBSCRIPTION_UPDATED: stripe_subscription_updated,
    StripeEventType.SUBSCRIPTION_DELETED: stripe_subscription_deleted,
    StripeEventType.SUBSCRIPTION_PAUSED: stripe_subscription_paused,
    StripeEventType.SUBSCRIPTION_RESUMED: stripe_subscription_resumed,
    StripeEventType.SUBSCRIPTION_TRIAL_WILL_END: stripe_trial_will_end,
    StripeEventType.INVOICE_PAYMENT_SUCCEEDED: stripe_invoice_payment_succeeded,
    StripeEventType.INVOICE_PAYMENT_FAILED: stripe_invoice_payment_failed,
    StripeEventType.CUSTOMER_UPDATED: stripe_log_only,
    StripeEventType.DISPUTE_CREATED: stripe_dispute_created,
    StripeEventType.DISPUTE_UPDATED: stripe_log_only,
    StripeEventType.DISPUTE_CLOSED: stripe_dispute_closed,
}


# PayPal


async def paypal_sale_completed(ctx: WebhookContext) -> HandlerResult:
    return await _payment_completed(ctx, license_required=True)


async def paypal_sale_denied(ctx: WebhookContext) -> HandlerResult:
    if ctx.license is None:
        return _noop(ctx, "No license found for denied payment")
    return _notify(ctx, "Customer notified of denied payment")


async def paypal_sale_refunded(ctx: WebhookContext) -> HandlerResult:
    if ctx.license is None:
        return _noop(ctx, "No license found for refunded payment")
    return _revoke(ctx, "License revoked after refund")


async def paypal_subscription_created(ctx: WebhookContext) -> HandlerResult:
    if ctx.license is None:
        return HandlerResult.fail(LicenseNotFoundError())
    if ctx.subscription is None:
        transition = attach_subscription(
            ctx.license, subscription_external_id(ctx.event), ctx.provider, now=ctx.now
        )
        return _changed(ctx, "Subscription recorded", transition)
    return _sync_subscription(ctx, map_paypal_status(ctx.event.get("status")))


async def paypal_subscription_activated(ctx: WebhookContext) -> HandlerResult:
    if ctx.license is None:
        return HandlerResult.fail(LicenseNotFoundError())
    return _resume(ctx, "Subscription activated")


async def paypal_subscription_cancelled(ctx: WebhookContext) -> HandlerResult:
    if ctx.license is None:
        return HandlerResult.fail(LicenseNotFoundError())
    return _revoke(ctx, "License revoked, subscription canceled")


async def paypal_subscription_suspended(ctx: WebhookContext) -> HandlerResult:
    if ctx.license is None:
        return HandlerResult.fail(LicenseNotFoundError())
    return _suspend(ctx, "License and subscription suspended")


async def paypal_subscription_payment_failed(ctx: WebhookContext) -> HandlerResult:
    if ctx.license is None:
        return HandlerResult.fail(LicenseNotFoundError())
    return _notify(ctx, "Customer notified of failed payment")


PAYPAL_HANDLERS: Dict[PayPalEventType, Handler] = {
    PayPalEventType.SALE_COMPLETED: paypal_sale_completed,
    PayPalEventType.SALE_DENIED: paypal_sale_denied,
    PayPalEventType.SALE_REFUNDED: paypal_sale_refunded,
    PayPalEventType.SUBSCRIPTION_CREATED: paypal_subscription_created,
    PayPalEventType.SUBSCRIPTION_ACTIVATED: paypal_subscription_activated,
    PayPalEventType.SUBSCRIPTION_CANCELLED: paypal_subscription_cancelled,
    PayPalEventType.SUBSCRIPTION_SUSPENDED: paypal_subscription_suspended,
    PayPalEventType.SUBSCRIPTION_PAYMENT_FAILED: paypal_subscription_payment_failed,
}


def ensure_exhaustive(table: Dict, kinds: Iterable, name: str) -> None:
    """Fail at import time if an event type has no handler."""
    missing = sorted(kind.value for kind in kinds if kind not in table)
    if missing:
        raise ImproperlyConfigured(f"{name} has no handler for: {', '.join(missing)}")


ensure_exhaustive(STRIPE_HANDLERS, StripeEventType, "STRIPE_HANDLERS")
ensure_exhaustive(PAYPAL_HANDLERS, PayPalEventType, "PAYPAL_HANDLERS")


def handler_for(event: ProviderEvent) -> Optional[Handler]:
    """Handler of a verified event, or None for an unsupported type."""
    kind = event.kind
    if kind is None:
        return None
    tables: Dict[Type, Dict] = {StripeEventType: STRIPE_HANDLERS, PayPalEventType: PAYPAL_HANDLERS}
    return tables[type(kind)][kind]
