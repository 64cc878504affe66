"""Gateway limits and allow-list configuration.

``GatewayPolicy`` bundles every tunable the gateway core consumes:

- ``RateLimitPolicy``: sliding-window admission per caller.
- ``CachePolicy``: capacity and default TTL of the result cache.
- ``ExecutionLimits``: wall-clock and output-size budgets.
- ``SecurityPolicy``: command allow-list, path roots and argument size.

``redact`` scrubs secrets and absolute paths from caller-visible messages.
"""

from .models import (
    CachePolicy,
    ExecutionLimits,
    GatewayPolicy,
    RateLimitPolicy,
    SecurityPolicy,
)
from .redaction import redact

__all__ = [
    "CachePolicy",
    "ExecutionLimits",
    "GatewayPolicy",
    "RateLimitPolicy",
    "SecurityPolicy",
    "redact",
]
