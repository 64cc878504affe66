"""
API Schemas.

This module contains Pydantic models used for API request bodies.
Responses are ``ResponseEnvelope`` objects from the gateway core.
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class InvokeRequest(BaseModel):
    """
    Schema for invoking a capability.

    The caller identity and request id may also be supplied through the
    ``X-Caller-Identity`` and ``X-Request-ID`` headers; body values win.
    """
    arguments: Dict[str, Any] = Field(
        default_factory=dict,
        description="Arguments passed to the capability handler.",
        examples=[{"a": 2, "b": 3}],
    )
    caller_identity: Optional[str] = Field(
        default=None,
        description="Identity used for rate limiting. Falls back to the configured default.",
        examples=["client-42"],
    )
    request_id: Optional[str] = Field(
        default=None,
        description="Client-chosen request id echoed back in the response envelope.",
    )

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "arguments": {"a": 2, "b": 3},
            "caller_identity": "client-42",
        }
    })


class ResourceReadRequest(BaseModel):
    """Schema for reading a resource by URI."""
    uri: str = Field(
        ...,
        description="URI of a registered resource capability.",
        examples=["gateway://status"],
    )
    caller_identity: Optional[str] = Field(default=None)
    request_id: Optional[str] = Field(default=None)


class PromptRenderRequest(BaseModel):
    """Schema for rendering a prompt template."""
    arguments: Dict[str, Any] = Field(
        default_factory=dict,
        description="Template arguments.",
        examples=[{"text": "Quarterly revenue grew 12%.", "style": "bullet"}],
    )
    caller_identity: Optional[str] = Field(default=None)
    request_id: Optional[str] = Field(default=None)
