"""
Resource Endpoints.

Read-only access to resource capabilities by URI.
"""

from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, Header

from capgate.gateway.schemas.domain import ResponseEnvelope

from ...schemas import ResourceReadRequest
from ...services.deps import GatewayDep
from ...services.envelope import envelope_response

router = APIRouter()


@router.post(
    "/read",
    response_model=ResponseEnvelope,
    summary="Read Resource",
    description="Read the resource registered under a URI.",
    response_description="Envelope whose payload is {uri, mimeType, content}.",
)
async def read_resource(
    body: ResourceReadRequest,
    gateway: GatewayDep,
    x_caller_identity: Optional[str] = Header(default=None),
    x_request_id: Optional[str] = Header(default=None),
):
    request_id = body.request_id or x_request_id or str(uuid4())
    outcome = await gateway.dispatcher.read_resource(
        body.uri,
        caller_identity=body.caller_identity or x_caller_identity,
        request_id=request_id,
    )
    return envelope_response(request_id, outcome)
