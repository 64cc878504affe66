"""Capability gateway core.

Subpackages:

- ``schemas``: request, outcome and envelope models.
- ``capabilities``: descriptors, the registry and built-in capabilities.
- ``policy``: limits, allow-lists and message redaction.
- ``validation``: argument schema and safety checks.
- ``ratelimit``: sliding-window admission control.
- ``cache``: result cache with TTL, eviction and coalescing.
- ``sandbox``: bounded handler and subprocess execution.
- ``telemetry``: per-capability metrics.
- ``prompts``: prompt template rendering.
- ``runtime``: the dispatcher and the gateway context.
"""

from .runtime import Dispatcher, GatewayContext, build_gateway_context

__all__ = [
    "Dispatcher",
    "GatewayContext",
    "build_gateway_context",
]
