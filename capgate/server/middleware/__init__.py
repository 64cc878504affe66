"""HTTP middleware for the gateway server."""

from .logfire_middleware import LogfireMiddleware

__all__ = ["LogfireMiddleware"]
