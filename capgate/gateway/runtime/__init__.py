"""Request orchestration for the capability gateway.

The runtime ties the gateway components together:

- ``Dispatcher`` runs each request through validation, rate limiting, the
  result cache and sandboxed execution, and records telemetry.
- ``GatewayContext`` bundles one instance of every component and runs the
  background sweeper; ``build_gateway_context`` wires it from configuration.
"""

from .context import GatewayContext, build_gateway_context
from .dispatcher import Dispatcher

__all__ = [
    "Dispatcher",
    "GatewayContext",
    "build_gateway_context",
]
