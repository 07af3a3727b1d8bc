"""
License API views.

Client applications validate, activate and deactivate licenses here; staff
users manage licenses through the admin endpoints. Every response carries
the rate limit headers of the tightest limit consulted.
"""

import ipaddress
from typing import Awaitable, Callable, Optional

from asgiref.sync import async_to_sync
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from api.v1 import dependencies
from api.v1.licenses.serializers import (
    BatchRequestSerializer,
    ExtendRequestSerializer,
    LicenseResponseSerializer,
    LicenseSerializer,
    LifecycleRequestSerializer,
    MachineRequestSerializer,
    RevokeActivationRequestSerializer,
)
from core.config import get_licensing_config
from core.domain.exceptions import InvalidRequestError
from core.infrastructure.privacy import partial_license_key
from core.instrumentation import Status, StatusCode, get_tracer
from licenses.application.commands.extend_license import ExtendLicenseCommand
from licenses.application.commands.issue_license import IssueLicenseCommand
from licenses.application.commands.reactivate_license import ReactivateLicenseCommand
from licenses.application.commands.revoke_license import RevokeLicenseCommand
from licenses.application.commands.suspend_license import SuspendLicenseCommand
from licenses.application.services.secure_license_service import ClientContext, LicenseResponse

tracer = get_tracer(__name__)

MACHINE_PARAMETERS = [
    OpenApiParameter(name="machine_fingerprint", type=str, location=OpenApiParameter.QUERY),
    OpenApiParameter(name="machine_id", type=str, location=OpenApiParameter.QUERY),
]

LICENSE_RESPONSES = {
    200: LicenseResponseSerializer,
    400: {"description": "License invalid, expired, suspended or revoked"},
    404: {"description": "License not found"},
    429: {"description": "Rate limit exceeded"},
}


def _ip_or_none(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return None


def client_ip(request: Request, trusted_proxy_count: Optional[int] = None) -> Optional[str]:
    """
    Address of the caller, as used for per-IP rate limits and the audit trail.

    ``REMOTE_ADDR`` unless the service runs behind ``trusted_proxy_count``
    proxies; then the ``X-Forwarded-For`` hop added by the outermost trusted
    proxy is used. Anything that is not a valid IP address falls back to
    ``REMOTE_ADDR``.
    """
    if trusted_proxy_count is None:
        trusted_proxy_count = get_licensing_config().trusted_proxy_count
    remote = _ip_or_none(request.META.get("REMOTE_ADDR"))
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR")
    if trusted_proxy_count < 1 or not forwarded:
        return remote
    hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
    if len(hops) < trusted_proxy_count:
        return remote
    return _ip_or_none(hops[-trusted_proxy_count]) or remote


def client_context(request: Request) -> ClientContext:
    return ClientContext(
        ip_address=client_ip(request),
        user_agent=request.META.get("HTTP_USER_AGENT"),
    )


def render(result: LicenseResponse) -> Response:
    response = Response(result.to_dict(), status=result.http_status)
    for name, value in result.headers().items():
        response[name] = value
    return response


def _machine_data(data) -> dict:
    serializer = MachineRequestSerializer(data=data)
    serializer.is_valid(raise_exception=True)
    return {
        "machine_fingerprint": serializer.validated_data.get("machine_fingerprint") or None,
        "machine_id": serializer.validated_data.get("machine_id") or None,
    }


class LicenseOperationView(APIView):
    """Base view for operations on one license key."""

    permission_classes = [AllowAny]
    operation = ""

    def _run(
        self,
        request: Request,
        license_key: str,
        call: Callable[[ClientContext], Awaitable[LicenseResponse]],
    ) -> Response:
        return async_to_sync(self._handle)(request, license_key, call)

    async def _handle(self, request: Request, license_key: str, call) -> Response:
        with tracer.start_as_current_span(f"license_{self.operation}") as span:
            span.set_attribute("operation", self.operation)
            span.set_attribute("license_key", partial_license_key(license_key))

            result = await call(client_context(request))

            span.set_attribute("success", result.success)
            if not result.success:
                span.set_status(Status(StatusCode.ERROR, result.result.error_code or ""))
            return render(result)


class ValidateLicenseView(LicenseOperationView):
    operation = "validate"

    @extend_schema(
        operation_id="validate_license",
        summary="Validate License",
        description="Check that a license is usable, optionally on one machine.",
        tags=["Licenses"],
        parameters=MACHINE_PARAMETERS,
        responses=LICENSE_RESPONSES,
    )
    def get(self, request: Request, license_key: str) -> Response:
        machine = _machine_data(request.query_params)
        service = dependencies.license_service()
        return self._run(
            request, license_key, lambda client: service.validate(license_key, client=client, **machine)
        )


class ValidateLicenseTokenView(LicenseOperationView):
    operation = "validate_jwt"

    @extend_schema(
        operation_id="validate_license_jwt",
        summary="Validate License (signed)",
        description=(
            "Validate a license and, on success, return a short-lived HS256 token "
            "carrying the validation result."
        ),
        tags=["Licenses"],
        parameters=MACHINE_PARAMETERS,
        responses=LICENSE_RESPONSES,
    )
    def get(self, request: Request, license_key: str) -> Response:
        machine = _machine_data(request.query_params)
        service = dependencies.license_service()
        return self._run(
            request,
            license_key,
            lambda client: service.validate_with_token(license_key, client=client, **machine),
        )


class ActivateLicenseView(LicenseOperationView):
    operation = "activate"

    @extend_schema(
        operation_id="activate_license",
        summary="Activate License",
        description=(
            "Bind a machine to the license. Activating an already bound machine "
            "succeeds without consuming another activation."
        ),
        tags=["Licenses"],
        request=MachineRequestSerializer,
        responses=LICENSE_RESPONSES,
    )
    def post(self, request: Request, license_key: str) -> Response:
        machine = _machine_data(request.data)
        service = dependencies.license_service()
        return self._run(
            request, license_key, lambda client: service.activate(license_key, client=client, **machine)
        )


class DeactivateLicenseView(LicenseOperationView):
    operation = "deactivate"

    @extend_schema(
        operation_id="deactivate_license",
        summary="Deactivate License",
        description="Release the activation held by a machine.",
        tags=["Licenses"],
        request=MachineRequestSerializer,
        responses=LICENSE_RESPONSES,
    )
    def post(self, request: Request, license_key: str) -> Response:
        machine = _machine_data(request.data)
        service = dependencies.license_service()
        return self._run(
            request,
            license_key,
            lambda client: service.deactivate(license_key, client=client, **machine),
        )


class LicenseStatusView(LicenseOperationView):
    operation = "status"

    @extend_schema(
        operation_id="get_license_status",
        summary="Get License Status",
        description="Limited license summary: status, expiry and activation counts.",
        tags=["Licenses"],
        responses=LICENSE_RESPONSES,
    )
    def get(self, request: Request, license_key: str) -> Response:
        service = dependencies.license_service()
        return self._run(request, license_key, lambda client: service.status(license_key, client=client))


class BatchOperationsView(APIView):
    """Run several license operations in one request."""

    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="batch_license_operations",
        summary="Batch Operations",
        description=(
            "Run up to the configured number of validate, activate, deactivate "
            "and status operations. Each operation succeeds or fails on its own."
        ),
        tags=["Licenses"],
        request=BatchRequestSerializer,
        responses={
            200: LicenseResponseSerializer,
            400: {"description": "Malformed or oversized batch"},
            429: {"description": "Rate limit exceeded"},
        },
    )
    def post(self, request: Request) -> Response:
        return async_to_sync(self._handle_batch)(request)

    async def _handle_batch(self, request: Request) -> Response:
        with tracer.start_as_current_span("license_batch") as span:
            operations = request.data.get("operations") if isinstance(request.data, dict) else None
            if isinstance(operations, list):
                span.set_attribute("operation_count", len(operations))

            result = await dependencies.license_service().batch(operations, client_context(request))

            span.set_attribute("success", result.success)
            if not result.success:
                span.set_status(Status(StatusCode.ERROR, result.result.error_code or ""))
            return render(result)


class ActivationHistoryView(LicenseOperationView):
    permission_classes = [IsAdminUser]
    operation = "activation_history"

    @extend_schema(
        operation_id="get_activation_history",
        summary="Activation History",
        description="Most recent machine bindings of a license, with masked machine data.",
        tags=["License Administration"],
        parameters=[OpenApiParameter(name="limit", type=int, location=OpenApiParameter.QUERY)],
        responses=LICENSE_RESPONSES,
    )
    def get(self, request: Request, license_key: str) -> Response:
        try:
            limit = int(request.query_params.get("limit", 50))
        except ValueError:
            raise InvalidRequestError("limit must be an integer")
        limit = max(1, min(limit, 50))
        service = dependencies.license_service()
        return self._run(
            request,
            license_key,
            lambda client: service.activation_history(license_key, limit, client=client),
        )


class RevokeActivationView(LicenseOperationView):
    permission_classes = [IsAdminUser]
    operation = "revoke_activation"

    @extend_schema(
        operation_id="revoke_activation",
        summary="Revoke Activations",
        description=(
            "Revoke the live bindings matching the given machine; without machine "
            "data every live binding of the license is revoked."
        ),
        tags=["License Administration"],
        request=RevokeActivationRequestSerializer,
        responses=LICENSE_RESPONSES,
    )
    def post(self, request: Request, license_key: str) -> Response:
        serializer = RevokeActivationRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        service = dependencies.license_service()
        return self._run(
            request,
            license_key,
            lambda client: service.revoke_activation(
                license_key,
                data.get("machine_fingerprint") or None,
                data.get("machine_id") or None,
                reason=data["reason"],
                client=client,
            ),
        )


LIFECYCLE_RESPONSES = {
    200: LicenseSerializer,
    404: {"description": "License not found"},
    409: {"description": "Transition not allowed from the current status"},
}


class LicenseLifecycleView(APIView):
    """
    Base view for staff status changes.

    Illegal transitions raise and are rendered by the exception handler
    as 409 responses.
    """

    permission_classes = [IsAdminUser]
    action = ""

    def _reason(self, request: Request) -> str:
        serializer = LifecycleRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data["reason"] or "admin"

    def _run(self, command, license_key: str) -> Response:
        return async_to_sync(self._handle_lifecycle)(command, license_key)

    async def _handle_lifecycle(self, command, license_key: str) -> Response:
        with tracer.start_as_current_span(f"license_{self.action}") as span:
            span.set_attribute("operation", self.action)
            span.set_attribute("license_key", partial_license_key(license_key))

            handler = dependencies.lifecycle_handler(dependencies.LIFECYCLE_HANDLERS[self.action])
            license = await handler.handle(command)

            span.set_attribute("status", license.status)
            return Response(license.to_dict(), status=status.HTTP_200_OK)


class SuspendLicenseView(LicenseLifecycleView):
    action = "suspend"

    @extend_schema(
        operation_id="suspend_license",
        summary="Suspend License",
        description="Suspend an active license.",
        tags=["License Administration"],
        request=LifecycleRequestSerializer,
        responses=LIFECYCLE_RESPONSES,
    )
    def post(self, request: Request, license_key: str) -> Response:
        command = SuspendLicenseCommand(license_key=license_key, reason=self._reason(request))
        return self._run(command, license_key)


class ReactivateLicenseView(LicenseLifecycleView):
    action = "reactivate"

    @extend_schema(
        operation_id="reactivate_license",
        summary="Reactivate License",
        description="Reactivate a suspended, expired or revoked license.",
        tags=["License Administration"],
        request=LifecycleRequestSerializer,
        responses=LIFECYCLE_RESPONSES,
    )
    def post(self, request: Request, license_key: str) -> Response:
        command = ReactivateLicenseCommand(
            license_key=license_key, admin_override=True, reason=self._reason(request)
        )
        return self._run(command, license_key)


class RevokeLicenseView(LicenseLifecycleView):
    action = "revoke"

    @extend_schema(
        operation_id="revoke_license",
        summary="Revoke License",
        description="Revoke a license together with its activations and subscription.",
        tags=["License Administration"],
        request=LifecycleRequestSerializer,
        responses=LIFECYCLE_RESPONSES,
    )
    def post(self, request: Request, license_key: str) -> Response:
        command = RevokeLicenseCommand(license_key=license_key, reason=self._reason(request))
        return self._run(command, license_key)


class ExtendLicenseView(LicenseLifecycleView):
    action = "extend"

    @extend_schema(
        operation_id="extend_license",
        summary="Extend License",
        description="Push the expiry of a license back by a number of days.",
        tags=["License Administration"],
        request=ExtendRequestSerializer,
        responses=LIFECYCLE_RESPONSES,
    )
    def post(self, request: Request, license_key: str) -> Response:
        serializer = ExtendRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        command = ExtendLicenseCommand(days=serializer.validated_data["days"], license_key=license_key)
        return self._run(command, license_key)


class IssueLicensesView(APIView):
    """Issue the licenses of a completed order."""

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="issue_licenses",
        summary="Issue Licenses",
        description=(
            "Create one license per product of a completed order. Raw keys are "
            "returned only when the licenses are created by this call."
        ),
        tags=["License Administration"],
        responses={
            201: LicenseSerializer(many=True),
            404: {"description": "Order not found"},
            400: {"description": "Order is not completed"},
        },
    )
    def post(self, request: Request, order_id) -> Response:
        return async_to_sync(self._handle_issue)(order_id)

    async def _handle_issue(self, order_id) -> Response:
        with tracer.start_as_current_span("issue_licenses") as span:
            span.set_attribute("order_id", str(order_id))

            issued = await dependencies.issue_license_handler().handle(
                IssueLicenseCommand(order_id=order_id)
            )

            span.set_attribute("license_count", len(issued))
            return Response(
                {"licenses": [item.to_dict() for item in issued]},
                status=status.HTTP_201_CREATED,
            )
