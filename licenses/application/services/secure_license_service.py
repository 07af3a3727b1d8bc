"""
Secure license service.

Wraps the validate, activate, deactivate and status handlers with the
cross-cutting steps every client-facing call goes through, in this order:

1. rate limit by client IP
2. rate limit by license key
3. the operation itself
4. audit record of the outcome
5. rate limit metadata and timestamp on the response

A rate limit denial stops the call before step 3. Unexpected faults are
reported as a security incident and come back as a generic internal error.
"""

import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from django.utils import timezone

from activations.application.commands.machine_commands import (
    ActivateLicenseCommand,
    DeactivateLicenseCommand,
    RevokeActivationCommand,
    ValidateLicenseCommand,
)
from activations.application.queries.get_activation_history import GetActivationHistoryQuery
from core.config import SUBJECT_IP, SUBJECT_LICENSE, LicensingConfig
from core.domain.audit import AuditCategory
from core.domain.exceptions import (
    BatchValidationError,
    InternalServiceError,
    InvalidRequestError,
    RateLimitExceededError,
)
from core.domain.results import OperationResult
from core.infrastructure.audit import AuditLogger
from core.infrastructure.error_tracking import ErrorReporter
from core.infrastructure.privacy import UNKNOWN, partial_license_key
from core.infrastructure.rate_limiter import RateLimiter, RateLimitResult
from core.metrics import license_operations_total
from licenses.application.queries.get_license_status import GetLicenseStatusQuery
from licenses.domain.license_key import normalize_license_key
from licenses.infrastructure.tokens import LicenseTokenSigner

logger = logging.getLogger(__name__)

OPERATION_VALIDATE = "validate"
OPERATION_ACTIVATE = "activate"
OPERATION_DEACTIVATE = "deactivate"
OPERATION_STATUS = "status"
OPERATION_VALIDATE_JWT = "validate_jwt"
OPERATION_BATCH = "batch"

BATCH_OPERATIONS = (OPERATION_VALIDATE, OPERATION_ACTIVATE, OPERATION_DEACTIVATE, OPERATION_STATUS)


@dataclass(frozen=True)
class ClientContext:
    """Who is calling, as far as the audit trail is concerned."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class LicenseResponse:
    """Operation result plus the metadata every response carries."""

    result: OperationResult
    timestamp: datetime
    rate_limit: Optional[RateLimitResult] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.result.success

    @property
    def http_status(self) -> int:
        if self.result.success:
            return 200
        return self.result.error.http_status

    def headers(self) -> Dict[str, str]:
        return self.rate_limit.headers() if self.rate_limit else {}

    def to_dict(self) -> Dict[str, Any]:
        body = self.result.to_dict()
        body.update(self.extra)
        if self.rate_limit:
            body["rate_limit"] = {
                "remaining": self.rate_limit.remaining,
                "reset_at": self.rate_limit.reset_at.isoformat(),
            }
        body["timestamp"] = self.timestamp.isoformat()
        return body


def _tightest(*limits: Optional[RateLimitResult]) -> Optional[RateLimitResult]:
    checked = [limit for limit in limits if limit is not None]
    if not checked:
        return None
    return min(checked, key=lambda limit: limit.remaining)


def _batch_line_error(
    operation_type: Any, license_key: Any, operation: Dict[str, Any]
) -> Optional[InvalidRequestError]:
    """Shape check of one batch line. Batch lines arrive as untyped JSON."""
    if operation_type not in BATCH_OPERATIONS:
        return InvalidRequestError("Invalid operation type", code="INVALID_OPERATION")
    if not isinstance(license_key, str) or not license_key.strip():
        return InvalidRequestError("License key must be a non-empty string")
    for name in ("machine_fingerprint", "machine_id"):
        value = operation.get(name)
        if value is not None and not isinstance(value, str):
            return InvalidRequestError(f"{name} must be a string")
    return None


class SecureLicenseService:
    """Client-facing license operations."""

    def __init__(
        self,
        config: LicensingConfig,
        rate_limiter: RateLimiter,
        audit_logger: AuditLogger,
        error_reporter: ErrorReporter,
        token_signer: LicenseTokenSigner,
        validate_handler,
        activate_handler,
        deactivate_handler,
        status_handler,
        revoke_activation_handler=None,
        history_handler=None,
        clock: Callable[[], datetime] = timezone.now,
    ):
        """
        Initialize the service.

        Args:
            config: Licensing configuration
            rate_limiter: Per-endpoint rate limiter
            audit_logger: Audit and security logger
            error_reporter: Unexpected-fault reporter
            token_signer: Validation token signer
            validate_handler: ValidateLicenseHandler
            activate_handler: ActivateLicenseHandler
            deactivate_handler: DeactivateLicenseHandler
            status_handler: GetLicenseStatusHandler
            revoke_activation_handler: RevokeActivationHandler (admin)
            history_handler: GetActivationHistoryHandler (admin)
            clock: Source of the current time
        """
        self.config = config
        self.rate_limiter = rate_limiter
        self.audit_logger = audit_logger
        self.error_reporter = error_reporter
        self.token_signer = token_signer
        self.validate_handler = validate_handler
        self.activate_handler = activate_handler
        self.deactivate_handler = deactivate_handler
        self.status_handler = status_handler
        self.revoke_activation_handler = revoke_activation_handler
        self.history_handler = history_handler
        self.clock = clock

    async def validate(
        self,
        license_key: str,
        machine_fingerprint: Optional[str] = None,
        machine_id: Optional[str] = None,
        client: ClientContext = ClientContext(),
    ) -> LicenseResponse:
        command = ValidateLicenseCommand(
            license_key, machine_fingerprint, machine_id, client.ip_address, client.user_agent
        )
        return await self._execute(
            OPERATION_VALIDATE, command, client, lambda: self.validate_handler.handle(command)
        )

    async def activate(
        self,
        license_key: str,
        machine_fingerprint: Optional[str] = None,
        machine_id: Optional[str] = None,
        client: ClientContext = ClientContext(),
    ) -> LicenseResponse:
        command = ActivateLicenseCommand(
            license_key, machine_fingerprint, machine_id, client.ip_address, client.user_agent
        )
        return await self._execute(
            OPERATION_ACTIVATE, command, client, lambda: self.activate_handler.handle(command)
        )

    async def deactivate(
        self,
        license_key: str,
        machine_fingerprint: Optional[str] = None,
        machine_id: Optional[str] = None,
        client: ClientContext = ClientContext(),
    ) -> LicenseResponse:
        command = DeactivateLicenseCommand(
            license_key, machine_fingerprint, machine_id, client.ip_address, client.user_agent
        )
        return await self._execute(
            OPERATION_DEACTIVATE, command, client, lambda: self.deactivate_handler.handle(command)
        )

    async def status(self, license_key: str, client: ClientContext = ClientContext()) -> LicenseResponse:
        query = GetLicenseStatusQuery(license_key, client.ip_address, client.user_agent)
        return await self._execute(
            OPERATION_STATUS, query, client, lambda: self.status_handler.handle(query)
        )

    async def validate_with_token(
        self,
        license_key: str,
        machine_fingerprint: Optional[str] = None,
        machine_id: Optional[str] = None,
        client: ClientContext = ClientContext(),
    ) -> LicenseResponse:
        """
        Validate and, on success only, attach a signed token of the result.
        """
        command = ValidateLicenseCommand(
            license_key, machine_fingerprint, machine_id, client.ip_address, client.user_agent
        )

        async def validate_and_sign() -> OperationResult:
            result = await self.validate_handler.handle(command)
            if not result.success:
                return result
            return OperationResult.ok(
                **result.data,
                token=self.token_signer.issue(result.data),
                token_type="Bearer",
                token_expires_in=self.config.jwt_ttl_seconds,
            )

        return await self._execute(OPERATION_VALIDATE_JWT, command, client, validate_and_sign)

    async def revoke_activation(
        self,
        license_key: str,
        machine_fingerprint: Optional[str] = None,
        machine_id: Optional[str] = None,
        reason: str = "Admin revocation",
        client: ClientContext = ClientContext(),
    ) -> LicenseResponse:
        """Admin: revoke matching live bindings. Not rate limited."""
        command = RevokeActivationCommand(
            license_key,
            machine_fingerprint,
            machine_id,
            client.ip_address,
            client.user_agent,
            reason=reason,
        )
        return await self._execute(
            "revoke_activation",
            command,
            client,
            lambda: self.revoke_activation_handler.handle(command),
            rate_limited=False,
        )

    async def activation_history(
        self, license_key: str, limit: int = 50, client: ClientContext = ClientContext()
    ) -> LicenseResponse:
        """Admin: list the bindings of a license. Not rate limited."""
        query = GetActivationHistoryQuery(license_key, limit, client.ip_address, client.user_agent)
        return await self._execute(
            "activation_history",
            query,
            client,
            lambda: self.history_handler.handle(query),
            rate_limited=False,
        )

    async def batch(self, operations: Any, client: ClientContext = ClientContext()) -> LicenseResponse:
        """
        Run up to ``batch_max_operations`` operations independently.

        The batch as a whole is rate limited per IP; each operation is then
        rate limited per license key, delegated and audited on its own. A
        failing operation does not stop the others. Result lines echo the
        masked key only.
        """
        now = self.clock()
        ip_limit = await self.rate_limiter.check_endpoint(OPERATION_BATCH, SUBJECT_IP, client.ip_address)
        if ip_limit and not ip_limit.allowed:
            return await self._rate_limited(OPERATION_BATCH, SUBJECT_IP, ip_limit, None, client, now)

        error = self._batch_error(operations)
        if error:
            await self.audit_logger.log_event(
                AuditCategory.LICENSE,
                OPERATION_BATCH,
                {"error": error.code},
                ip_address=client.ip_address,
                user_agent=client.user_agent,
                success=False,
                failure_reason=error.code,
            )
            return LicenseResponse(OperationResult.fail(error), now, ip_limit)

        results: List[Dict[str, Any]] = []
        for index, operation in enumerate(operations):
            results.append(await self._batch_line(index, operation, client))

        license_operations_total.labels(operation=OPERATION_BATCH, outcome="success").inc()
        return LicenseResponse(
            OperationResult.ok(
                batch_id=secrets.token_hex(8),
                operations_count=len(operations),
                results=results,
            ),
            now,
            ip_limit,
        )

    def _batch_error(self, operations: Any) -> Optional[BatchValidationError]:
        if not isinstance(operations, list):
            return BatchValidationError("Invalid batch request format")
        if not operations:
            return BatchValidationError("Batch cannot be empty", code="EMPTY_BATCH")
        maximum = self.config.batch_max_operations
        if len(operations) > maximum:
            return BatchValidationError(
                f"Batch size exceeds maximum ({maximum} operations)", code="BATCH_TOO_LARGE"
            )
        return None

    async def _batch_line(self, index: int, operation: Any, client: ClientContext) -> Dict[str, Any]:
        if not isinstance(operation, dict):
            operation = {}
        operation_type = operation.get("type")
        license_key = operation.get("license_key")
        line = {
            "index": index,
            "operation": operation_type if isinstance(operation_type, str) else None,
            "license_key": partial_license_key(license_key) if isinstance(license_key, str) else UNKNOWN,
        }

        error = _batch_line_error(operation_type, license_key, operation)
        if error:
            return {**line, "success": False, "result": OperationResult.fail(error).to_dict()}

        request, call = self._operation_call(
            operation_type,
            license_key,
            operation.get("machine_fingerprint"),
            operation.get("machine_id"),
            client,
        )
        response = await self._execute(operation_type, request, client, call, check_ip=False)
        return {**line, "success": response.success, "result": response.result.to_dict()}

    def _operation_call(self, operation_type, license_key, fingerprint, machine_id, client):
        """Build the request object and handler call of one batch operation."""
        if operation_type == OPERATION_STATUS:
            query = GetLicenseStatusQuery(license_key, client.ip_address, client.user_agent)
            return query, lambda: self.status_handler.handle(query)
        command_class, handler = {
            OPERATION_VALIDATE: (ValidateLicenseCommand, self.validate_handler),
            OPERATION_ACTIVATE: (ActivateLicenseCommand, self.activate_handler),
            OPERATION_DEACTIVATE: (DeactivateLicenseCommand, self.deactivate_handler),
        }[operation_type]
        command = command_class(license_key, fingerprint, machine_id, client.ip_address, client.user_agent)
        return command, lambda: handler.handle(command)

    async def _execute(
        self,
        operation: str,
        request,
        client: ClientContext,
        call: Callable[[], Awaitable[OperationResult]],
        check_ip: bool = True,
        rate_limited: bool = True,
    ) -> LicenseResponse:
        now = self.clock()
        license_key = request.license_key
        ip_limit = key_limit = None

        if rate_limited and check_ip:
            ip_limit = await self.rate_limiter.check_endpoint(operation, SUBJECT_IP, client.ip_address)
            if ip_limit and not ip_limit.allowed:
                return await self._rate_limited(operation, SUBJECT_IP, ip_limit, request, client, now)

        try:
            if rate_limited:
                key_limit = await self.rate_limiter.check_endpoint(
                    operation, SUBJECT_LICENSE, normalize_license_key(license_key) or None
                )
                if key_limit and not key_limit.allowed:
                    return await self._rate_limited(operation, SUBJECT_LICENSE, key_limit, request, client, now)
            result = await call()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            result = await self._internal_error(operation, exc, request, client)
        else:
            await self._audit(operation, result, request, client)

        license_operations_total.labels(
            operation=operation, outcome="success" if result.success else result.error.category.value
        ).inc()
        return LicenseResponse(result, now, _tightest(ip_limit, key_limit))

    async def _rate_limited(
        self,
        operation: str,
        subject_type: str,
        limit: RateLimitResult,
        request,
        client: ClientContext,
        now: datetime,
    ) -> LicenseResponse:
        license_key = getattr(request, "license_key", None)
        await self.audit_logger.log_security_event(
            "rate_limit_exceeded",
            {"endpoint": operation, "subject_type": subject_type, "limit": limit.limit},
            license_key=license_key,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        )
        license_operations_total.labels(operation=operation, outcome="rate_limited").inc()
        return LicenseResponse(
            OperationResult.fail(RateLimitExceededError(retry_after=limit.retry_after)),
            now,
            limit,
        )

    async def _audit(self, operation: str, result: OperationResult, request, client: ClientContext) -> None:
        await self.audit_logger.log_event(
            AuditCategory.LICENSE,
            operation,
            {"code": result.error_code} if result.error else None,
            license_id=result.data.get("license_id"),
            license_key=request.license_key,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
            machine_fingerprint=getattr(request, "machine_fingerprint", None),
            machine_id=getattr(request, "machine_id", None),
            success=result.success,
            failure_reason=result.error_code or "",
        )

    async def _internal_error(
        self, operation: str, exc: Exception, request, client: ClientContext
    ) -> OperationResult:
        context = {
            "operation": operation,
            "license_key": request.license_key,
            "machine_fingerprint": getattr(request, "machine_fingerprint", None),
            "machine_id": getattr(request, "machine_id", None),
            "ip_address": client.ip_address,
            "user_agent": client.user_agent,
        }
        self.error_reporter.report(exc, context)
        await self.audit_logger.log_security_event(
            "internal_error",
            {"operation": operation, "error_type": type(exc).__name__},
            license_key=request.license_key,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        )
        return OperationResult.fail(InternalServiceError())
