"""
Payment provider webhook receivers.

The raw request body is handed to the dispatcher untouched: signatures are
computed over the exact bytes the provider sent.
"""

from asgiref.sync import async_to_sync
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from api.v1 import dependencies
from api.v1.licenses.views import client_ip
from core.instrumentation import Status, StatusCode, get_tracer
from webhooks.domain.provider_event import PaymentProvider

tracer = get_tracer(__name__)

WEBHOOK_RESPONSES = {
    200: OpenApiResponse(description="Processed, ignored or already processed"),
    400: OpenApiResponse(description="Invalid signature or payload"),
    404: OpenApiResponse(description="No license or subscription matches the event"),
    409: OpenApiResponse(description="Concurrent modification of the license"),
    500: OpenApiResponse(description="Processing failed"),
    503: OpenApiResponse(description="Processing timed out"),
}


class WebhookView(APIView):
    """Base receiver; subclasses name their provider."""

    authentication_classes = []
    permission_classes = [AllowAny]
    provider: PaymentProvider

    def post(self, request: Request) -> Response:
        return async_to_sync(self._handle_webhook)(request)

    async def _handle_webhook(self, request: Request) -> Response:
        with tracer.start_as_current_span(f"{self.provider.value}_webhook") as span:
            span.set_attribute("provider", self.provider.value)

            outcome = await dependencies.webhook_dispatcher().dispatch(
                self.provider, request.body, request.headers, client_ip(request)
            )

            span.set_attribute("event_type", outcome.event_type)
            span.set_attribute("outcome", outcome.metric_outcome)
            if outcome.status_code >= 400:
                span.set_status(Status(StatusCode.ERROR, outcome.error_code or ""))
            return Response(outcome.to_dict(), status=outcome.status_code)


class StripeWebhookView(WebhookView):
    provider = PaymentProvider.STRIPE

    @extend_schema(
        operation_id="stripe_webhook",
        summary="Stripe Webhook",
        description="Receive a Stripe event signed with the Stripe-Signature header.",
        tags=["Webhooks"],
        request=None,
        responses=WEBHOOK_RESPONSES,
    )
    def post(self, request: Request) -> Response:
        return super().post(request)


class PayPalWebhookView(WebhookView):
    provider = PaymentProvider.PAYPAL

    @extend_schema(
        operation_id="paypal_webhook",
        summary="PayPal Webhook",
        description="Receive a PayPal event, verified against the PayPal API.",
        tags=["Webhooks"],
        request=None,
        responses=WEBHOOK_RESPONSES,
    )
    def post(self, request: Request) -> Response:
        return super().post(request)
