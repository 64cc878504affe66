"""
Health Check Endpoints.

This module provides basic system status endpoints (health, version)
used for monitoring and deployment verification.
"""

from fastapi import APIRouter, Request

from ...core import constant

router = APIRouter()


@router.get(
    "/health",
    summary="Health Check",
    description="Check the operational status of the gateway server.",
    response_description="Status object.",
)
async def health_check(request: Request):
    """
    Health check endpoint.

    Reports ``ok`` once the gateway context is running and ``starting``
    before the application lifespan has built it.
    """
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        return {"status": "starting"}
    return {"status": "ok", "capabilities": len(gateway.registry)}


@router.get(
    "/version",
    summary="Get Version",
    description="Retrieve version information for the gateway server.",
    response_description="Version object.",
)
async def version():
    """
    Get API version.

    Returns the current semantic version of the API and supported schema version.
    """
    return {"version": constant.API_VERSION, "schema_version": constant.SCHEMA_VERSION}
