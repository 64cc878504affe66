from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from capgate.gateway.policy.models import GatewayPolicy, RateLimitPolicy
from capgate.gateway.runtime.context import GatewayContext, build_gateway_context


@pytest.fixture
def gateway_policy() -> GatewayPolicy:
    """Gateway policy used by the ``client`` fixture; override per module when needed."""
    return GatewayPolicy(rate_limit=RateLimitPolicy(max_requests=5, window_seconds=60))


@pytest.fixture
def gateway(gateway_policy: GatewayPolicy) -> GatewayContext:
    return build_gateway_context(policy=gateway_policy)


@pytest_asyncio.fixture(name="client")
async def client_fixture(gateway: GatewayContext) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client bound to the app with a pre-built gateway.

    ``ASGITransport`` does not run the application lifespan, so the gateway is
    installed on ``app.state`` directly.
    """
    from capgate.server.main import app

    app.state.gateway = gateway
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost") as client:
            yield client
    finally:
        del app.state.gateway
