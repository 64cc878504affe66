"""
Gateway Dependency.

Provides the ``GatewayContext`` built during the application lifespan to API endpoints.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from capgate.gateway.runtime.context import GatewayContext


def get_gateway(request: Request) -> GatewayContext:
    """
    Fetch the gateway context stored on the application state.

    Raises:
        HTTPException: 503 if the application has not finished starting up.
    """
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        raise HTTPException(status_code=503, detail="Gateway is not running")
    return gateway


GatewayDep = Annotated[GatewayContext, Depends(get_gateway)]
