"""
Domain exceptions.

Domain exceptions represent business rule violations
and domain-specific error conditions. Every exception belongs to one
error category and carries the HTTP status the API layer renders it with.
"""

from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    """Stable error categories exposed to API callers."""

    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    LIMIT_EXCEEDED = "limit_exceeded"
    VALIDATION = "validation_error"
    SIGNATURE_INVALID = "signature_invalid"
    INTERNAL = "internal_error"


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    category = ErrorCategory.INTERNAL
    http_status = 500
    default_message = "Domain error"
    default_code = "DOMAIN_ERROR"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        """
        Initialize domain exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code
        """
        message = message or self.default_message
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class NotFoundError(DomainException):
    """Base exception for missing records."""

    category = ErrorCategory.NOT_FOUND
    http_status = 404
    default_message = "Not found"
    default_code = "NOT_FOUND"


class LicenseNotFoundError(NotFoundError):
    """Raised when a license is not found."""

    default_message = "License not found"
    default_code = "LICENSE_NOT_FOUND"


class ActivationNotFoundError(NotFoundError):
    """Raised when no activation matches the machine."""

    default_message = "Activation not found"
    default_code = "ACTIVATION_NOT_FOUND"


class SubscriptionNotFoundError(NotFoundError):
    """Raised when a subscription is not found."""

    default_message = "Subscription not found"
    default_code = "SUBSCRIPTION_NOT_FOUND"


class OrderNotFoundError(NotFoundError):
    """Raised when an order is not found."""

    default_message = "Order not found"
    default_code = "ORDER_NOT_FOUND"


class InvalidStateError(DomainException):
    """Base exception for operations blocked by the license state."""

    category = ErrorCategory.INVALID_STATE
    http_status = 400
    default_message = "License is not in a valid state"
    default_code = "LICENSE_INVALID_STATE"


class LicenseExpiredError(InvalidStateError):
    """Raised when a license has expired."""

    default_message = "License has expired"
    default_code = "LICENSE_EXPIRED"


class LicenseSuspendedError(InvalidStateError):
    """Raised when a license is suspended."""

    default_message = "License is suspended"
    default_code = "LICENSE_SUSPENDED"


class LicenseRevokedError(InvalidStateError):
    """Raised when a license has been revoked."""

    default_message = "License has been revoked"
    default_code = "LICENSE_REVOKED"


class MachineNotActivatedError(InvalidStateError):
    """Raised when a fingerprint-bound validation finds no matching activation."""

    default_message = "License not activated on this machine"
    default_code = "MACHINE_NOT_ACTIVATED"


class InvalidStateTransitionError(InvalidStateError):
    """Raised when a lifecycle transition is not allowed from the current status."""

    http_status = 409
    default_message = "Invalid license state transition"
    default_code = "INVALID_STATE_TRANSITION"


class LimitExceededError(DomainException):
    """Base exception for exhausted quotas."""

    category = ErrorCategory.LIMIT_EXCEEDED
    http_status = 400
    default_message = "Limit exceeded"
    default_code = "LIMIT_EXCEEDED"


class ActivationLimitExceededError(LimitExceededError):
    """Raised when every activation slot of a license is in use."""

    default_message = "Maximum activations exceeded"
    default_code = "ACTIVATION_LIMIT_EXCEEDED"


class RateLimitExceededError(LimitExceededError):
    """Raised when a caller exceeds its request budget."""

    http_status = 429
    default_message = "Rate limit exceeded"
    default_code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, retry_after: int = 60, message: Optional[str] = None):
        super().__init__(message)
        self.retry_after = retry_after


class InvalidRequestError(DomainException):
    """Raised when request input is malformed."""

    category = ErrorCategory.VALIDATION
    http_status = 400
    default_message = "Invalid request"
    default_code = "INVALID_REQUEST"


class BatchValidationError(InvalidRequestError):
    """Raised when a batch request is rejected as a whole."""

    default_message = "Invalid batch request format"
    default_code = "INVALID_BATCH"


class WebhookSignatureError(DomainException):
    """Raised when a webhook fails authenticity verification."""

    category = ErrorCategory.SIGNATURE_INVALID
    http_status = 400
    default_message = "Invalid signature"
    default_code = "INVALID_SIGNATURE"


class InternalServiceError(DomainException):
    """Generic error returned to callers when an unexpected fault occurs."""

    default_message = "Internal server error"
    default_code = "INTERNAL_ERROR"
