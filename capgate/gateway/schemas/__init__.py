"""Schemas and DTOs for the gateway core."""

from .domain import (
    CapabilityKind,
    ErrorDetail,
    ExecutionOutcome,
    FieldType,
    OutcomeStatus,
    Request,
    ResponseEnvelope,
    ValidationResult,
    Violation,
)

__all__ = [
    "CapabilityKind",
    "ErrorDetail",
    "ExecutionOutcome",
    "FieldType",
    "OutcomeStatus",
    "Request",
    "ResponseEnvelope",
    "ValidationResult",
    "Violation",
]
