"""
Prompt Endpoints.

Rendering of prompt template capabilities.
"""

from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, Header

from capgate.gateway.schemas.domain import ResponseEnvelope

from ...schemas import PromptRenderRequest
from ...services.deps import GatewayDep
from ...services.envelope import envelope_response

router = APIRouter()


@router.post(
    "/{name}/render",
    response_model=ResponseEnvelope,
    summary="Render Prompt",
    description="Render a prompt template with the given arguments.",
    response_description="Envelope whose payload is {renderedText}.",
)
async def render_prompt(
    name: str,
    gateway: GatewayDep,
    body: Optional[PromptRenderRequest] = None,
    x_caller_identity: Optional[str] = Header(default=None),
    x_request_id: Optional[str] = Header(default=None),
):
    """
    Render a prompt.

    Missing optional arguments fall back to their declared defaults; missing
    required arguments produce a ``validation_error`` envelope.
    """
    body = body or PromptRenderRequest()
    request_id = body.request_id or x_request_id or str(uuid4())
    outcome = await gateway.dispatcher.render_prompt(
        name,
        body.arguments,
        caller_identity=body.caller_identity or x_caller_identity,
        request_id=request_id,
    )
    return envelope_response(request_id, outcome)
