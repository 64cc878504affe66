"""HTTP transport for the capability gateway.

The FastAPI application in ``capgate.server.main`` builds a ``GatewayContext``
during its lifespan, stores it in ``app.state.gateway`` and exposes the
dispatcher operations under ``/api/v1``.
"""
