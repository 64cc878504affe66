from __future__ import annotations

"""Domain models shared by every gateway component.

The request/outcome models here are the only data that crosses component
boundaries inside the gateway:

- ``Request`` enters the ``Dispatcher``.
- ``ValidationResult`` is produced by the ``InputValidator``.
- ``ExecutionOutcome`` is produced by the ``SandboxedExecutor`` (or by the
  dispatcher itself for early terminal states) and mapped to a
  ``ResponseEnvelope`` for the transport.

Expected failures are expressed through ``OutcomeStatus``; the string values of
that enum are the stable error codes handed to transports.
"""

from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import Field

from .base import BaseSchema


class CapabilityKind(str, Enum):
    tool = "tool"
    resource = "resource"
    prompt = "prompt"


class FieldType(str, Enum):
    string = "string"
    number = "number"
    integer = "integer"
    boolean = "boolean"
    array = "array"
    object = "object"
    enum = "enum"


class OutcomeStatus(str, Enum):
    success = "success"
    validation_error = "validation_error"
    permission_denied = "permission_denied"
    rate_limited = "rate_limited"
    not_found = "not_found"
    timeout = "timeout"
    output_too_large = "output_too_large"
    internal_error = "internal_error"


class Request(BaseSchema):
    """A single inbound capability call.

    ``arguments`` is treated as an unordered mapping; two requests whose
    arguments differ only by key order are identical for caching and
    coalescing.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    capability_name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    caller_identity: Optional[str] = None


class Violation(BaseSchema):
    """A single violated input constraint."""

    field: str
    reason: str
    code: str
    permission: bool = False


class ValidationResult(BaseSchema):
    ok: bool
    violations: List[Violation] = Field(default_factory=list)

    @classmethod
    def passed(cls) -> "ValidationResult":
        return cls(ok=True)

    @classmethod
    def failed(cls, violations: List[Violation]) -> "ValidationResult":
        return cls(ok=False, violations=list(violations))

    @property
    def status(self) -> OutcomeStatus:
        """Outcome status this result maps to when it failed."""
        if self.ok:
            return OutcomeStatus.success
        if any(v.permission for v in self.violations):
            return OutcomeStatus.permission_denied
        return OutcomeStatus.validation_error

    def summary(self) -> str:
        """Short human-readable description of the violations."""
        return "; ".join(f"{v.field}: {v.reason}" for v in self.violations)


class ErrorDetail(BaseSchema):
    """
    Structured error metadata attached to a failed outcome.

    Attributes:
        kind: The error category (one of the non-success ``OutcomeStatus`` values).
        message: Short, redacted message that is safe to show to callers.
        code: Machine-readable reason, more specific than ``kind``.
        violations: Input violations for validation/permission failures.
        retry_after: Seconds until the caller may retry (rate limiting only).
        internal: Full diagnostic detail. Kept for logs and telemetry and
            excluded from every serialized form.
    """

    kind: OutcomeStatus
    message: str
    code: str
    violations: List[Violation] = Field(default_factory=list)
    retry_after: Optional[float] = None
    internal: Optional[str] = Field(default=None, exclude=True, repr=False)


class ExecutionOutcome(BaseSchema):
    status: OutcomeStatus
    payload: Any = None
    error: Optional[ErrorDetail] = None
    duration_ms: float = 0.0
    cached: bool = False
    coalesced: bool = False

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.success

    @classmethod
    def success(cls, payload: Any, *, duration_ms: float = 0.0, cached: bool = False) -> "ExecutionOutcome":
        return cls(status=OutcomeStatus.success, payload=payload, duration_ms=duration_ms, cached=cached)

    @classmethod
    def failure(
        cls,
        kind: OutcomeStatus,
        message: str,
        *,
        code: Optional[str] = None,
        violations: Optional[List[Violation]] = None,
        retry_after: Optional[float] = None,
        internal: Optional[str] = None,
        duration_ms: float = 0.0,
    ) -> "ExecutionOutcome":
        return cls(
            status=kind,
            error=ErrorDetail(
                kind=kind,
                message=message,
                code=code or kind.value,
                violations=list(violations or []),
                retry_after=retry_after,
                internal=internal,
            ),
            duration_ms=duration_ms,
        )


class ResponseEnvelope(BaseSchema):
    """Wire-level response handed back to the transport."""

    request_id: str
    status: OutcomeStatus
    payload: Any = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    error_reason: Optional[str] = None
    duration_ms: float = 0.0
    retry_after: Optional[float] = None
    violations: List[Violation] = Field(default_factory=list)
    cached: bool = False

    @classmethod
    def from_outcome(cls, request_id: str, outcome: ExecutionOutcome) -> "ResponseEnvelope":
        err = outcome.error
        return cls(
            request_id=request_id,
            status=outcome.status,
            payload=outcome.payload if outcome.ok else None,
            error_code=err.kind.value if err is not None else None,
            error_message=err.message if err is not None else None,
            error_reason=err.code if err is not None else None,
            duration_ms=round(outcome.duration_ms, 3),
            retry_after=err.retry_after if err is not None else None,
            violations=list(err.violations) if err is not None else [],
            cached=outcome.cached,
        )
