"""
Operation result values.

License operations report expected failures (unknown key, suspended license,
exhausted activations, ...) as values instead of raising, so callers such as
the batch endpoint can collect outcomes without exception handling.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from core.domain.exceptions import DomainException, ErrorCategory


@dataclass(frozen=True)
class OperationError:
    """Error half of an operation result."""

    code: str
    category: ErrorCategory
    message: str
    http_status: int

    @classmethod
    def from_exception(cls, exc: DomainException) -> "OperationError":
        """Build an error value from a domain exception."""
        return cls(
            code=exc.code,
            category=exc.category,
            message=exc.message,
            http_status=exc.http_status,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "category": self.category.value, "message": self.message}


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a license operation."""

    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[OperationError] = None

    @classmethod
    def ok(cls, **data: Any) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, exc: DomainException, **data: Any) -> "OperationResult":
        return cls(success=False, data=data, error=OperationError.from_exception(exc))

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error else None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the result for API responses."""
        body: Dict[str, Any] = {"success": self.success, **self.data}
        if self.error:
            body["error"] = self.error.message
            body["code"] = self.error.code
        return body
