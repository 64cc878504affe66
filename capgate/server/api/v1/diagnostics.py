"""
Diagnostics Endpoints.

Read-only views of gateway telemetry for operators.
"""

from fastapi import APIRouter

from ...services.deps import GatewayDep

router = APIRouter()


@router.get(
    "/metrics",
    summary="Gateway Metrics",
    description="Per-capability request statistics, cache statistics and rate limiter state.",
    response_description="Metrics snapshot.",
)
async def metrics(gateway: GatewayDep):
    return gateway.metrics()
