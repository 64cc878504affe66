"""
Capability Endpoints.

This module exposes the gateway's capability catalogue and the tool
invocation entry point.

Includes:
- Capability listing, optionally filtered by kind
- Capability invocation through the dispatcher pipeline
  (validation, rate limiting, caching, sandboxed execution)
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Header, Query

from capgate.core.logging_config import get_logger
from capgate.gateway.schemas.domain import CapabilityKind, Request as GatewayRequest, ResponseEnvelope

from ...schemas import InvokeRequest
from ...services.deps import GatewayDep
from ...services.envelope import envelope_response

logger = get_logger(__name__)
router = APIRouter()


@router.get(
    "/",
    response_model=List[Dict[str, Any]],
    summary="List Capabilities",
    description="List every registered capability with its input schema.",
    response_description="Capability summaries in registration order.",
)
async def list_capabilities(
    gateway: GatewayDep,
    kind: Optional[CapabilityKind] = Query(default=None, description="Only list capabilities of this kind."),
):
    """
    List capabilities.

    Each entry carries the capability name, kind, description, JSON input
    schema and, for resources, the URI and MIME type.
    """
    return gateway.dispatcher.list_capabilities(kind)


@router.post(
    "/{name}/invoke",
    response_model=ResponseEnvelope,
    summary="Invoke Capability",
    description="Validate, admit and execute a capability call.",
    response_description="Response envelope; the HTTP status reflects the outcome status.",
)
async def invoke_capability(
    name: str,
    gateway: GatewayDep,
    body: Optional[InvokeRequest] = None,
    x_caller_identity: Optional[str] = Header(default=None),
    x_request_id: Optional[str] = Header(default=None),
):
    """
    Invoke a capability.

    The caller identity and request id are taken from the body first, then
    from the ``X-Caller-Identity``/``X-Request-ID`` headers.
    """
    body = body or InvokeRequest()
    request = GatewayRequest(
        capability_name=name,
        arguments=body.arguments,
        caller_identity=body.caller_identity or x_caller_identity,
    )
    request_id = body.request_id or x_request_id
    if request_id:
        request = request.model_copy(update={"id": request_id})

    logger.debug(f"Invoking capability '{name}' request_id={request.id}")
    outcome = await gateway.dispatcher.invoke(request)
    return envelope_response(request.id, outcome)
