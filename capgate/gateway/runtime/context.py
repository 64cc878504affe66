from __future__ import annotations

"""Gateway component bundle and lifecycle.

The gateway is assembled explicitly; no component lives in module-level state.

- ``GatewayContext`` holds one instance of every component and owns the
  background sweeper that keeps the rate limiter and cache bounded.
- ``build_gateway_context`` wires the components from a ``GatewayPolicy`` (or
  from server ``Settings``) and registers the built-in capabilities unless a
  pre-populated registry is supplied.

Typical use::

    async with build_gateway_context(settings) as ctx:
        outcome = await ctx.dispatcher.invoke(request)
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from ..cache.result_cache import ResultCache
from ..capabilities.builtin import register_builtin_capabilities
from ..capabilities.registry import CapabilityRegistry
from ..policy.models import GatewayPolicy
from ..ratelimit.limiter import SlidingWindowRateLimiter
from ..sandbox.executor import SandboxedExecutor
from ..telemetry.tracker import Tracker
from ..validation.validator import InputValidator
from .dispatcher import Dispatcher

if TYPE_CHECKING:
    from ...server.core.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class GatewayContext:
    """Dependency bundle for a running gateway.

    Constructed by ``build_gateway_context`` and stored by the HTTP server in
    ``app.state.gateway``.
    """

    policy: GatewayPolicy
    registry: CapabilityRegistry
    validator: InputValidator
    rate_limiter: SlidingWindowRateLimiter
    cache: ResultCache
    executor: SandboxedExecutor
    tracker: Tracker
    dispatcher: Dispatcher

    _sweeper: Optional[asyncio.Task] = field(default=None, init=False, repr=False)

    @property
    def running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    async def start(self) -> None:
        """Start the background sweeper. Calling it twice is a no-op."""
        if self.running:
            return
        self._sweeper = asyncio.create_task(self._sweep_loop(), name="capgate-sweeper")
        logger.info(f"Gateway started with {len(self.registry)} capabilities")

    async def stop(self) -> None:
        """Cancel the background sweeper and release the handler thread pool."""
        self.executor.shutdown()
        task, self._sweeper = self._sweeper, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Gateway stopped")

    async def sweep_once(self) -> Dict[str, int]:
        """Drop idle rate-limit windows and expired cache entries."""
        idle_callers = await self.rate_limiter.sweep()
        expired_entries = await self.cache.purge_expired()
        return {"idle_callers": idle_callers, "expired_entries": expired_entries}

    async def _sweep_loop(self) -> None:
        interval = self.policy.sweep_interval_seconds
        while True:
            await asyncio.sleep(interval)
            try:
                removed = await self.sweep_once()
                if any(removed.values()):
                    logger.debug(f"Sweep removed {removed}")
            except Exception:
                logger.warning("Background sweep failed", exc_info=True)

    def status(self) -> Dict[str, Any]:
        """Health summary served by the ``gateway://status`` resource."""
        snapshot = self.tracker.snapshot()
        return {
            "status": "ok",
            "capabilities": len(self.registry),
            "invocations": sum(stats["count"] for stats in snapshot.values()),
            "cache_size": self.cache.size(),
            "tracked_callers": self.rate_limiter.callers(),
        }

    def metrics(self) -> Dict[str, Any]:
        """Diagnostics snapshot: per-capability telemetry, cache and limiter state."""
        return {
            "capabilities": self.tracker.snapshot(),
            "cache": self.cache.stats(),
            "rate_limiter": {
                "callers": self.rate_limiter.callers(),
                "max_requests": self.rate_limiter.max_requests,
                "window_seconds": self.rate_limiter.window,
            },
        }

    async def __aenter__(self) -> "GatewayContext":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()


def build_gateway_context(
    settings: Optional["Settings"] = None,
    registry: Optional[CapabilityRegistry] = None,
    *,
    policy: Optional[GatewayPolicy] = None,
    clock: Callable[[], float] = time.monotonic,
) -> GatewayContext:
    """
    Assemble a gateway from configuration.

    Args:
        settings: Server settings converted with ``to_gateway_policy``. Ignored
            when ``policy`` is given.
        registry: Pre-populated registry. When omitted a new registry with the
            built-in capabilities is created.
        policy: Explicit gateway policy.
        clock: Monotonic clock shared by the rate limiter and the cache.

    Returns:
        A context that has not been started yet.
    """
    if policy is None:
        policy = settings.to_gateway_policy() if settings is not None else GatewayPolicy()

    register_builtins = registry is None
    registry = registry if registry is not None else CapabilityRegistry()
    validator = InputValidator(policy.security)
    rate_limiter = SlidingWindowRateLimiter(policy.rate_limit, clock=clock)
    cache = ResultCache(policy.cache, clock=clock)
    executor = SandboxedExecutor(policy.execution, policy.security, max_workers=policy.max_concurrent_executions)
    tracker = Tracker()
    dispatcher = Dispatcher(
        registry=registry,
        validator=validator,
        rate_limiter=rate_limiter,
        cache=cache,
        executor=executor,
        tracker=tracker,
        policy=policy,
    )
    context = GatewayContext(
        policy=policy,
        registry=registry,
        validator=validator,
        rate_limiter=rate_limiter,
        cache=cache,
        executor=executor,
        tracker=tracker,
        dispatcher=dispatcher,
    )
    if register_builtins:
        register_builtin_capabilities(
            registry,
            base_dir=policy.security.working_directory,
            status_provider=context.status,
        )
    return context
