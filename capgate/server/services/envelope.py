"""
Envelope Responses.

Maps gateway outcomes onto HTTP responses.
"""

import math

from fastapi.responses import JSONResponse
from pydantic_core import PydanticSerializationError

from capgate.core.logging_config import get_logger
from capgate.gateway.schemas.domain import ExecutionOutcome, OutcomeStatus, ResponseEnvelope

logger = get_logger(__name__)

HTTP_STATUS_BY_OUTCOME = {
    OutcomeStatus.success: 200,
    OutcomeStatus.validation_error: 422,
    OutcomeStatus.permission_denied: 403,
    OutcomeStatus.not_found: 404,
    OutcomeStatus.rate_limited: 429,
    OutcomeStatus.timeout: 504,
    OutcomeStatus.output_too_large: 413,
    OutcomeStatus.internal_error: 500,
}


def _json_response(request_id: str, envelope: ResponseEnvelope) -> JSONResponse:
    headers = {"X-Request-ID": request_id}
    if envelope.retry_after is not None:
        headers["Retry-After"] = str(max(1, math.ceil(envelope.retry_after)))
    return JSONResponse(
        status_code=HTTP_STATUS_BY_OUTCOME.get(envelope.status, 500),
        content=envelope.model_dump(mode="json"),
        headers=headers,
    )


def envelope_response(request_id: str, outcome: ExecutionOutcome) -> JSONResponse:
    """
    Build the HTTP response for ``outcome``.

    Args:
        request_id: Id echoed in the envelope and the ``X-Request-ID`` header.
        outcome: The dispatcher outcome.

    Returns:
        A JSON response carrying the ``ResponseEnvelope``. Rate-limited
        responses include a ``Retry-After`` header in whole seconds. A payload
        that cannot be encoded as JSON is replaced by an ``internal_error``
        envelope with reason ``unserializable_payload``.
    """
    try:
        return _json_response(request_id, ResponseEnvelope.from_outcome(request_id, outcome))
    except (PydanticSerializationError, TypeError, ValueError) as exc:
        logger.error(f"Payload of request {request_id} could not be serialized: {type(exc).__name__}", exc_info=True)
        fallback = ExecutionOutcome.failure(
            OutcomeStatus.internal_error,
            "result could not be serialized",
            code="unserializable_payload",
            internal=f"{type(exc).__name__}: {exc}",
            duration_ms=outcome.duration_ms,
        )
        return _json_response(request_id, ResponseEnvelope.from_outcome(request_id, fallback))
