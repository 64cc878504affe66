from __future__ import annotations

from typing import List, Optional

from pydantic import Field

from ..schemas.base import BaseSchema


class RateLimitPolicy(BaseSchema):
    """
    Configuration for per-caller admission control.

    A caller may be admitted at most ``max_requests`` times within any trailing
    window of ``window_seconds``.
    """
    max_requests: int = Field(default=60, ge=1)
    window_seconds: float = Field(default=60.0, gt=0.0)


class CachePolicy(BaseSchema):
    """
    Configuration for the read-only result cache.
    """
    capacity: int = Field(default=256, ge=1)
    ttl_seconds: float = Field(default=300.0, gt=0.0)


class ExecutionLimits(BaseSchema):
    """
    Resource limits applied to a single capability execution.
    """
    max_execution_time: float = Field(default=30.0, gt=0.0, description="Wall-clock budget in seconds.")
    max_output_size: int = Field(default=1_000_000, ge=1, description="Cumulative output ceiling in bytes.")


class SecurityPolicy(BaseSchema):
    """
    Configuration for command and path allow-lists.

    ``allowed_commands`` is the explicit set of executables that capabilities may
    shell out to; an empty list forbids every command. ``allowed_path_roots``
    restricts absolute path arguments to these directories when set.
    """
    allowed_commands: List[str] = Field(default_factory=list)
    allowed_path_roots: Optional[List[str]] = Field(default=None)
    max_argument_bytes: int = Field(default=64_000, ge=1, le=5_000_000)
    working_directory: Optional[str] = Field(
        default=None,
        description="Working directory for subprocess capabilities.",
    )


class GatewayPolicy(BaseSchema):
    """
    Aggregate configuration object for all gateway limits.

    This is the root configuration object consumed by ``build_gateway_context``.
    """
    version: str = Field(default="gateway-policy-v1")

    default_caller_identity: Optional[str] = Field(
        default="anonymous",
        description=(
            "Identity used for rate limiting when the transport supplies none. "
            "Set to None to reject requests without a caller identity."
        ),
    )
    rate_limit: RateLimitPolicy = Field(default_factory=RateLimitPolicy)
    cache: CachePolicy = Field(default_factory=CachePolicy)
    execution: ExecutionLimits = Field(default_factory=ExecutionLimits)
    security: SecurityPolicy = Field(default_factory=SecurityPolicy)
    max_concurrent_executions: int = Field(
        default=32,
        ge=1,
        description=(
            "Executions allowed to run at once. Also sizes the thread pool for "
            "plain-function handlers; a handler that outlives its timeout keeps its "
            "thread, and once every thread is held later plain-function calls time out "
            "without starting."
        ),
    )
    sweep_interval_seconds: float = Field(default=30.0, gt=0.0)
