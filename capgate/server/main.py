"""
Main Application Entry Point.

This module initializes the FastAPI application, configures middleware and
exception handlers, and includes all API routers. The gateway context is
built in the application lifespan and exposed to endpoints through
``app.state.gateway``.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from capgate.core.logging_config import get_logger, setup_logging
from capgate.core.monitoring import initialize_logfire
from capgate.gateway.runtime.context import build_gateway_context

from .api.v1 import capabilities, diagnostics, health, prompts, resources
from .core import constant
from .core.config import settings
from .exception_handlers import setup_exception_handlers
from .middleware import LogfireMiddleware

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events.

    Builds the gateway context on startup (unless one was installed on
    ``app.state.gateway`` beforehand, e.g. by tests) and stops its background
    sweeper on shutdown.
    """
    logger.info("Starting up CapGate Server...")
    gateway = getattr(app.state, "gateway", None)
    if gateway is None:
        gateway = build_gateway_context(settings)
        app.state.gateway = gateway
    await gateway.start()

    yield

    logger.info("Shutting down CapGate Server...")
    await gateway.stop()


app = FastAPI(
    title=constant.PROJECT_NAME,
    description="""
    CapGate Server API

    This API exposes a capability invocation gateway: registered tools, resources and
    prompt templates are invoked through a pipeline that validates input, rate limits
    callers, caches read-only results and executes capabilities under resource limits.
    """,
    version=constant.API_VERSION,
    openapi_url=f"{constant.API_V1_STR}/openapi.json",
    docs_url=f"{constant.API_V1_STR}/docs",
    redoc_url=f"{constant.API_V1_STR}/redoc",
    lifespan=lifespan,
)

initialize_logfire(app)
app.add_middleware(LogfireMiddleware)
setup_exception_handlers(app)

app.include_router(health.router, tags=["health"])
app.include_router(capabilities.router, prefix=f"{constant.API_V1_STR}/capabilities", tags=["capabilities"])
app.include_router(resources.router, prefix=f"{constant.API_V1_STR}/resources", tags=["resources"])
app.include_router(prompts.router, prefix=f"{constant.API_V1_STR}/prompts", tags=["prompts"])
app.include_router(diagnostics.router, prefix=f"{constant.API_V1_STR}/diagnostics", tags=["diagnostics"])


def run() -> None:
    """Run the server with uvicorn using the configured host and port."""
    import uvicorn

    uvicorn.run(app, host=settings.server_host, port=settings.server_port, log_config=None)
