from __future__ import annotations

"""Request dispatcher.

``Dispatcher`` drives every request through the gateway pipeline and is the
only component the transports talk to.

Request lifecycle
-----------------

``Received -> Validated -> Admitted -> CacheChecked -> Executing -> Completed``

1. Resolve the descriptor (``not_found`` if unknown), resolve the caller
   identity and validate the arguments. Validation failures end the request
   as ``validation_error`` or ``permission_denied``; permission denials are
   logged as security events.
2. Admit the caller through the sliding-window rate limiter
   (``rate_limited`` with a retry-after hint on denial).
3. Read-only capabilities consult the result cache; a hit completes the
   request without executing anything.
4. Execute through the cache's coalescing entry point, bounded by a
   semaphore. This is the only stage that waits on handler I/O.
5. Successful read-only results are cached; telemetry is always recorded.

Any fault not anticipated by the stages above is contained at the request
boundary and reported as ``internal_error``. Caller-visible messages are
redacted before they leave the dispatcher.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ...core.monitoring import log_security_event
from ..cache.result_cache import MISS, ResultCache, fingerprint
from ..capabilities.base import CapabilityDescriptor
from ..capabilities.registry import CapabilityRegistry
from ..errors import CapabilityNotFoundError
from ..policy.models import GatewayPolicy
from ..policy.redaction import redact
from ..ratelimit.limiter import SlidingWindowRateLimiter
from ..sandbox.executor import SandboxedExecutor
from ..schemas.domain import (
    CapabilityKind,
    ExecutionOutcome,
    OutcomeStatus,
    Request,
    ResponseEnvelope,
)
from ..telemetry.tracker import UNKNOWN_CAPABILITY, Tracker
from ..validation.validator import InputValidator

logger = logging.getLogger(__name__)


class Dispatcher:
    """Orchestrate validation, admission, caching and execution of requests.

    Every public operation returns an ``ExecutionOutcome`` (or an envelope
    built from one) and never raises for request-level failures.
    """

    def __init__(
        self,
        *,
        registry: CapabilityRegistry,
        validator: InputValidator,
        rate_limiter: SlidingWindowRateLimiter,
        cache: ResultCache,
        executor: SandboxedExecutor,
        tracker: Tracker,
        policy: Optional[GatewayPolicy] = None,
    ) -> None:
        """
        Initialize the Dispatcher.

        Args:
            registry: Capability lookup. Sealed on the first request.
            validator: Schema and safety checks.
            rate_limiter: Per-caller admission control.
            cache: Result cache and coalescing point.
            executor: Sandboxed handler execution.
            tracker: Telemetry sink.
            policy: Gateway limits; defaults apply when omitted.
        """
        self._registry = registry
        self._validator = validator
        self._rate_limiter = rate_limiter
        self._cache = cache
        self._executor = executor
        self._tracker = tracker
        self._policy = policy or GatewayPolicy()
        self._semaphore = asyncio.Semaphore(self._policy.max_concurrent_executions)

    @property
    def policy(self) -> GatewayPolicy:
        return self._policy

    def list_capabilities(self, kind: Optional[CapabilityKind] = None) -> List[Dict[str, Any]]:
        """Return the wire summaries of registered capabilities, optionally filtered by kind."""
        return [descriptor.summary() for descriptor in self._registry.list(kind)]

    async def invoke(self, request: Request) -> ExecutionOutcome:
        """
        Run ``request`` through the full pipeline.

        Args:
            request: The capability invocation.

        Returns:
            The terminal outcome. ``duration_ms`` covers the whole request.
        """

        async def _process() -> ExecutionOutcome:
            try:
                descriptor = self._registry.lookup(request.capability_name)
            except CapabilityNotFoundError:
                return ExecutionOutcome.failure(
                    OutcomeStatus.not_found,
                    f"unknown capability: {request.capability_name}",
                    code="unknown_capability",
                )
            return await self._run(descriptor, request)

        return await self._tracked(request.id, request.capability_name, _process)

    async def respond(self, request: Request) -> ResponseEnvelope:
        """Invoke ``request`` and wrap the outcome in a wire envelope."""
        outcome = await self.invoke(request)
        return ResponseEnvelope.from_outcome(request.id, outcome)

    async def read_resource(
        self,
        uri: str,
        caller_identity: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> ExecutionOutcome:
        """
        Read the resource registered under ``uri``.

        Returns:
            An outcome whose payload is ``{"uri", "mimeType", "content"}``.
            ``content`` is the handler's text, or its JSON encoding for
            structured results.
        """
        request = self._make_request(uri, {}, caller_identity, request_id)

        async def _process() -> ExecutionOutcome:
            try:
                descriptor = self._registry.lookup_resource(uri)
            except CapabilityNotFoundError:
                return ExecutionOutcome.failure(
                    OutcomeStatus.not_found, f"unknown resource: {uri}", code="unknown_resource"
                )
            outcome = await self._run(descriptor, request.model_copy(update={"capability_name": descriptor.name}))
            if not outcome.ok:
                return outcome
            content = outcome.payload
            if isinstance(content, (bytes, bytearray)):
                content = content.decode("utf-8", errors="replace")
            elif not isinstance(content, str):
                content = json.dumps(content, default=str)
            return outcome.model_copy(
                update={
                    "payload": {
                        "uri": uri,
                        "mimeType": descriptor.mime_type or "text/plain",
                        "content": content,
                    }
                }
            )

        return await self._tracked(request.id, uri, _process)

    async def render_prompt(
        self,
        name: str,
        arguments: Optional[Dict[str, Any]] = None,
        caller_identity: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> ExecutionOutcome:
        """
        Render the prompt capability ``name`` with ``arguments``.

        Returns:
            An outcome whose payload is ``{"renderedText": ...}``.
        """
        request = self._make_request(name, arguments or {}, caller_identity, request_id)

        async def _process() -> ExecutionOutcome:
            descriptor = self._registry.get(name)
            if descriptor is None or descriptor.kind != CapabilityKind.prompt:
                return ExecutionOutcome.failure(
                    OutcomeStatus.not_found, f"unknown prompt: {name}", code="unknown_prompt"
                )
            return await self._run(descriptor, request)

        return await self._tracked(request.id, name, _process)

    @staticmethod
    def _make_request(
        name: str,
        arguments: Dict[str, Any],
        caller_identity: Optional[str],
        request_id: Optional[str],
    ) -> Request:
        request = Request(capability_name=name, arguments=arguments, caller_identity=caller_identity)
        if request_id:
            request = request.model_copy(update={"id": request_id})
        return request

    async def _tracked(
        self,
        request_id: str,
        label: str,
        process: Callable[[], Awaitable[ExecutionOutcome]],
    ) -> ExecutionOutcome:
        if not self._registry.sealed:
            self._registry.seal()
        registered = self._registry.has(label) or self._registry.has_resource(label)
        handle = self._tracker.begin(request_id, label if registered else UNKNOWN_CAPABILITY)
        try:
            outcome = await process()
        except Exception:
            logger.error(f"Unhandled fault while processing request {request_id} for '{label}'", exc_info=True)
            outcome = ExecutionOutcome.failure(
                OutcomeStatus.internal_error,
                "internal error while processing request",
                code="gateway_error",
            )
        outcome = self._redacted(outcome)
        outcome.duration_ms = self._tracker.end(handle, outcome)
        return outcome

    async def _run(self, descriptor: CapabilityDescriptor, request: Request) -> ExecutionOutcome:
        caller = request.caller_identity or self._policy.default_caller_identity
        if not caller:
            return ExecutionOutcome.failure(
                OutcomeStatus.validation_error,
                "caller identity required",
                code="missing_caller_identity",
            )

        validation = self._validator.validate(descriptor, request.arguments)
        if not validation.ok:
            status = validation.status
            if status == OutcomeStatus.permission_denied:
                log_security_event("permission_denied", capability=descriptor.name, detail=redact(validation.summary()))
            return ExecutionOutcome.failure(
                status,
                validation.summary(),
                code=validation.violations[0].code,
                violations=validation.violations,
            )

        if not await self._rate_limiter.admit(caller):
            retry_after = await self._rate_limiter.retry_after(caller)
            logger.info(f"Rate limited caller '{caller}' on '{descriptor.name}', retry after {retry_after:.2f}s")
            return ExecutionOutcome.failure(
                OutcomeStatus.rate_limited,
                "rate limit exceeded",
                code="rate_limited",
                retry_after=round(retry_after, 3),
            )

        fp = fingerprint(descriptor.name, request.arguments)
        if descriptor.read_only:
            cached = await self._cache.get(fp)
            if cached is not MISS:
                return cached.model_copy(update={"cached": True, "coalesced": False})

        async def _execute() -> ExecutionOutcome:
            async with self._semaphore:
                return await self._executor.execute(descriptor, request.arguments)

        try:
            outcome, coalesced = await self._cache.get_or_execute(
                fp,
                _execute,
                ttl=descriptor.cache_ttl,
                should_store=_is_success if descriptor.read_only else None,
            )
        except asyncio.CancelledError:
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                raise
            # The execution this request was waiting on was cancelled by its owner.
            return ExecutionOutcome.failure(
                OutcomeStatus.internal_error,
                "execution was cancelled",
                code="execution_cancelled",
            )
        return outcome.model_copy(update={"coalesced": coalesced})

    @staticmethod
    def _redacted(outcome: ExecutionOutcome) -> ExecutionOutcome:
        if outcome.error is None:
            return outcome
        message = redact(outcome.error.message)
        if message == outcome.error.message:
            return outcome
        return outcome.model_copy(update={"error": outcome.error.model_copy(update={"message": message})})


def _is_success(outcome: ExecutionOutcome) -> bool:
    return outcome.ok
