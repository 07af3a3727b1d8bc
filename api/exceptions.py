"""
API exception handlers.

Every error leaves the API as ``{"error": <message>, "code": <CODE>,
"timestamp": <iso8601>}``. Unexpected exceptions are logged with their
traceback and rendered as a generic internal error.
"""

import logging
from typing import Any, Dict, Optional

from django.http import Http404
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.domain.exceptions import DomainException, RateLimitExceededError

logger = logging.getLogger(__name__)


def error_body(message: str, code: str) -> Dict[str, Any]:
    """Standard error payload."""
    return {"error": message, "code": code, "timestamp": timezone.now().isoformat()}


def custom_exception_handler(exc: Exception, context: Dict[str, Any]) -> Response:
    """Custom exception handler for REST API."""
    trace_id = _get_trace_id(context)

    if isinstance(exc, DomainException):
        response = _handle_domain_exception(exc, trace_id)
    elif isinstance(exc, ValidationError):
        response = exception_handler(exc, context)
        response.data = {**error_body("Invalid request", "INVALID_REQUEST"), "details": response.data}
    elif isinstance(exc, APIException):
        response = exception_handler(exc, context)
        code = exc.default_code.upper().replace("-", "_") if hasattr(exc, "default_code") else "API_ERROR"
        detail = exc.detail if isinstance(exc.detail, str) else str(exc.default_detail)
        response.data = error_body(detail, code)
    elif isinstance(exc, Http404):
        response = Response(error_body("Resource not found", "NOT_FOUND"), status=status.HTTP_404_NOT_FOUND)
    else:
        response = _handle_unexpected_exception(exc, trace_id)

    if trace_id:
        response["X-Trace-ID"] = trace_id
    return response


def _get_trace_id(context: Dict[str, Any]) -> Optional[str]:
    """Extract trace ID from request context."""
    request = context.get("request")
    if not request:
        return None
    return getattr(request, "trace_id", getattr(request, "correlation_id", None))


def _handle_domain_exception(exc: DomainException, trace_id: Optional[str]) -> Response:
    """Handle domain-specific exceptions."""
    logger.warning("Domain exception: %s - %s", exc.code, exc.message, extra={"trace_id": trace_id})
    response = Response(error_body(exc.message, exc.code), status=exc.http_status)
    if isinstance(exc, RateLimitExceededError):
        response["Retry-After"] = str(exc.retry_after)
    return response


def _handle_unexpected_exception(exc: Exception, trace_id: Optional[str]) -> Response:
    """Handle unexpected or untracked exceptions."""
    logger.error("Unexpected error: %s", type(exc).__name__, extra={"trace_id": trace_id}, exc_info=True)
    return Response(
        error_body("Internal server error", "INTERNAL_ERROR"),
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
