from __future__ import annotations

from capgate.gateway.schemas.domain import (
    ExecutionOutcome,
    OutcomeStatus,
    Request,
    ResponseEnvelope,
    ValidationResult,
    Violation,
)


def test_request_generates_unique_ids() -> None:
    assert Request(capability_name="add").id != Request(capability_name="add").id


def test_validation_result_status() -> None:
    assert ValidationResult.passed().status == OutcomeStatus.success

    schema_only = ValidationResult.failed([Violation(field="a", reason="required", code="missing_field")])
    assert schema_only.status == OutcomeStatus.validation_error

    mixed = ValidationResult.failed(
        [
            Violation(field="a", reason="required", code="missing_field"),
            Violation(field="path", reason="traversal", code="path_traversal", permission=True),
        ]
    )
    assert mixed.status == OutcomeStatus.permission_denied
    assert mixed.summary() == "a: required; path: traversal"


def test_failure_defaults_code_to_kind() -> None:
    outcome = ExecutionOutcome.failure(OutcomeStatus.timeout, "slow")
    assert outcome.ok is False
    assert outcome.error.code == "timeout"
    assert outcome.payload is None


def test_internal_detail_is_never_serialized() -> None:
    outcome = ExecutionOutcome.failure(OutcomeStatus.internal_error, "internal error", internal="Traceback ...")

    assert outcome.error.internal == "Traceback ..."
    assert "internal" not in outcome.model_dump()["error"]
    assert "Traceback" not in outcome.model_dump_json()


def test_envelope_from_success() -> None:
    outcome = ExecutionOutcome.success({"sum": 5}, duration_ms=1.23456, cached=True)
    envelope = ResponseEnvelope.from_outcome("req-1", outcome)

    assert envelope.request_id == "req-1"
    assert envelope.status == OutcomeStatus.success
    assert envelope.payload == {"sum": 5}
    assert envelope.error_code is None
    assert envelope.duration_ms == 1.235
    assert envelope.cached is True


def test_envelope_from_rate_limited_failure() -> None:
    outcome = ExecutionOutcome.failure(
        OutcomeStatus.rate_limited, "rate limit exceeded", code="rate_limited", retry_after=2.5
    )
    envelope = ResponseEnvelope.from_outcome("req-2", outcome)

    assert envelope.status == OutcomeStatus.rate_limited
    assert envelope.error_code == "rate_limited"
    assert envelope.error_message == "rate limit exceeded"
    assert envelope.retry_after == 2.5
    assert envelope.payload is None


def test_envelope_serializes_status_as_string() -> None:
    envelope = ResponseEnvelope.from_outcome("req-3", ExecutionOutcome.success(1))
    assert envelope.model_dump(mode="json")["status"] == "success"
