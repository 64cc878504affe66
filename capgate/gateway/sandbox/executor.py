from __future__ import annotations

"""Sandboxed capability execution.

``SandboxedExecutor`` runs a capability handler under enforced resource limits
and always returns an ``ExecutionOutcome``; it never raises.

Execution model
---------------

- Coroutine handlers are awaited, plain functions run on the executor's own
  bounded thread pool (``max_workers`` threads). Both run under a wall-clock
  budget (``max_execution_time``). A coroutine that overruns is cancelled; a
  worker thread cannot be interrupted, so its late result is discarded and the
  thread stays busy until the handler returns. Handlers that hang therefore
  occupy pool threads, and once all ``max_workers`` threads are stuck later
  plain-function calls queue and time out without starting. Coroutine
  handlers, subprocesses and the event loop's default pool are unaffected.
- Handlers may return an async iterator of ``str``/``bytes`` chunks. The
  cumulative size is measured chunk by chunk and the iterator is closed as soon
  as ``max_output_size`` is crossed.
- ``runs_command`` capabilities return an argv list. The executable is
  re-checked against the command allow-list, then started with
  ``asyncio.create_subprocess_exec`` (never through a shell). stdout and stderr
  are read incrementally against a shared byte ceiling; on timeout or ceiling
  breach the process is killed and reaped.

Partial output is always discarded on failure, and the executor never touches
the result cache.
"""

import asyncio
import functools
import inspect
import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

from ...core.monitoring import log_security_event
from ..capabilities.base import CapabilityDescriptor
from ..errors import CapabilityNotFoundError, MissingPromptArgumentError
from ..policy.models import ExecutionLimits, SecurityPolicy
from ..schemas.domain import ExecutionOutcome, OutcomeStatus
from ..validation.validator import is_command_permitted, resolve_executable

logger = logging.getLogger(__name__)

_READ_CHUNK = 4096
_REAP_TIMEOUT = 5.0


class _OutputLimitExceeded(Exception):
    pass


class _OutputBudget:
    """Shared byte ceiling for every output stream of one execution."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.used = 0

    def consume(self, size: int) -> None:
        self.used += size
        if self.used > self.limit:
            raise _OutputLimitExceeded(f"output exceeded {self.limit} bytes")


def _chunk_size(chunk: Any) -> int:
    if isinstance(chunk, (bytes, bytearray)):
        return len(chunk)
    return len(str(chunk).encode("utf-8"))


def _payload_size(payload: Any) -> int:
    if isinstance(payload, (bytes, bytearray)):
        return len(payload)
    if isinstance(payload, str):
        return len(payload.encode("utf-8"))
    return len(json.dumps(payload, default=str).encode("utf-8"))


class SandboxedExecutor:
    """Run capability handlers under time and output limits.

    Args:
        limits: Default limits, overridden per capability by ``descriptor.limits``
            and per call by the ``limits`` argument of ``execute``.
        security: Command allow-list and subprocess working directory.
        max_workers: Size of the thread pool that runs plain-function handlers.
    """

    def __init__(
        self,
        limits: Optional[ExecutionLimits] = None,
        security: Optional[SecurityPolicy] = None,
        max_workers: int = 8,
    ) -> None:
        self._limits = limits or ExecutionLimits()
        self._security = security or SecurityPolicy()
        self._allowed_commands = frozenset(self._security.allowed_commands)
        self._max_workers = max_workers
        self._pool: Optional[ThreadPoolExecutor] = None

    @property
    def limits(self) -> ExecutionLimits:
        return self._limits

    @property
    def max_workers(self) -> int:
        return self._max_workers

    def _handler_pool(self) -> ThreadPoolExecutor:
        if self._pool is None:
            self._pool = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="capgate-handler")
        return self._pool

    def shutdown(self) -> None:
        """Release the handler thread pool without waiting for stuck handlers."""
        pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown(wait=False, cancel_futures=True)

    def resolve_limits(
        self, descriptor: CapabilityDescriptor, limits: Optional[ExecutionLimits] = None
    ) -> ExecutionLimits:
        return limits or descriptor.limits or self._limits

    async def execute(
        self,
        descriptor: CapabilityDescriptor,
        arguments: Dict[str, Any],
        limits: Optional[ExecutionLimits] = None,
    ) -> ExecutionOutcome:
        """
        Execute ``descriptor`` with ``arguments``.

        Args:
            descriptor: The capability to run.
            arguments: Validated arguments.
            limits: Optional per-call limits.

        Returns:
            The outcome of the execution, with ``duration_ms`` filled in.
        """
        effective = self.resolve_limits(descriptor, limits)
        started = time.perf_counter()
        try:
            if descriptor.runs_command:
                outcome = await self._execute_command(descriptor, arguments, effective)
            else:
                outcome = await self._execute_in_process(descriptor, arguments, effective)
        except CapabilityNotFoundError as exc:
            outcome = ExecutionOutcome.failure(
                OutcomeStatus.not_found, "resource not found", code="unknown_resource", internal=str(exc)
            )
        except MissingPromptArgumentError as exc:
            outcome = ExecutionOutcome.failure(
                OutcomeStatus.validation_error,
                f"missing prompt argument: {exc.argument}",
                code="missing_field",
                internal=str(exc),
            )
        except PermissionError as exc:
            log_security_event(
                "handler_permission_denied", capability=descriptor.name, detail=f"{type(exc).__name__}"
            )
            outcome = ExecutionOutcome.failure(
                OutcomeStatus.permission_denied,
                "permission denied",
                code="handler_permission_denied",
                internal=f"{type(exc).__name__}: {exc}",
            )
        except Exception as exc:
            logger.error(f"Capability '{descriptor.name}' raised {type(exc).__name__}", exc_info=True)
            outcome = ExecutionOutcome.failure(
                OutcomeStatus.internal_error,
                "internal error while executing capability",
                code="handler_error",
                internal=f"{type(exc).__name__}: {exc}",
            )
        outcome.duration_ms = (time.perf_counter() - started) * 1000
        return outcome

    async def _execute_in_process(
        self, descriptor: CapabilityDescriptor, arguments: Dict[str, Any], limits: ExecutionLimits
    ) -> ExecutionOutcome:
        budget = _OutputBudget(limits.max_output_size)
        try:
            payload = await asyncio.wait_for(
                self._run_handler(descriptor, dict(arguments), budget),
                timeout=limits.max_execution_time,
            )
        except asyncio.TimeoutError:
            return self._timeout(descriptor, limits)
        except _OutputLimitExceeded:
            return self._too_large(descriptor, limits)

        if _payload_size(payload) > limits.max_output_size:
            return self._too_large(descriptor, limits)
        return ExecutionOutcome.success(payload)

    async def _run_handler(
        self, descriptor: CapabilityDescriptor, arguments: Dict[str, Any], budget: _OutputBudget
    ) -> Any:
        handler = descriptor.handler
        if inspect.isasyncgenfunction(handler):
            result = handler(arguments)
        elif inspect.iscoroutinefunction(handler):
            result = await handler(arguments)
        else:
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(self._handler_pool(), functools.partial(handler, arguments))

        if inspect.isawaitable(result):
            result = await result
        if hasattr(result, "__aiter__"):
            return await self._consume_stream(result, budget)
        return result

    async def _consume_stream(self, stream: Any, budget: _OutputBudget) -> Any:
        chunks: List[Any] = []
        try:
            async for chunk in stream:
                budget.consume(_chunk_size(chunk))
                chunks.append(chunk)
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
        if chunks and all(isinstance(c, (bytes, bytearray)) for c in chunks):
            return b"".join(chunks).decode("utf-8", errors="replace")
        return "".join(
            c.decode("utf-8", errors="replace") if isinstance(c, (bytes, bytearray)) else str(c) for c in chunks
        )

    async def _execute_command(
        self, descriptor: CapabilityDescriptor, arguments: Dict[str, Any], limits: ExecutionLimits
    ) -> ExecutionOutcome:
        argv = descriptor.handler(dict(arguments))
        if inspect.isawaitable(argv):
            argv = await argv
        if not isinstance(argv, (list, tuple)) or not argv or not all(isinstance(a, str) for a in argv):
            raise TypeError(f"command capability '{descriptor.name}' must return a non-empty argv list")

        command = resolve_executable(list(argv))
        if not is_command_permitted(command, self._allowed_commands):
            log_security_event("command_not_allowed", capability=descriptor.name, detail=str(command))
            return ExecutionOutcome.failure(
                OutcomeStatus.permission_denied,
                f"command not allowed: {command}",
                code="command_not_allowed",
            )

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self._security.working_directory,
            )
        except FileNotFoundError as exc:
            return ExecutionOutcome.failure(
                OutcomeStatus.not_found,
                f"command not found: {command}",
                code="command_not_found",
                internal=str(exc),
            )

        try:
            exit_code, stdout, stderr = await asyncio.wait_for(
                self._communicate(proc, _OutputBudget(limits.max_output_size)),
                timeout=limits.max_execution_time,
            )
        except asyncio.TimeoutError:
            await self._terminate(proc)
            return self._timeout(descriptor, limits)
        except _OutputLimitExceeded:
            await self._terminate(proc)
            return self._too_large(descriptor, limits)
        except BaseException:
            await self._terminate(proc)
            raise

        return ExecutionOutcome.success(
            {
                "exit_code": exit_code,
                "stdout": stdout.decode("utf-8", errors="replace"),
                "stderr": stderr.decode("utf-8", errors="replace"),
            }
        )

    async def _communicate(self, proc: asyncio.subprocess.Process, budget: _OutputBudget):
        out = bytearray()
        err = bytearray()
        readers = [
            asyncio.ensure_future(self._pump(proc.stdout, out, budget)),
            asyncio.ensure_future(self._pump(proc.stderr, err, budget)),
        ]
        try:
            await asyncio.gather(*readers)
            exit_code = await proc.wait()
        finally:
            for reader in readers:
                if not reader.done():
                    reader.cancel()
        return exit_code, bytes(out), bytes(err)

    @staticmethod
    async def _pump(stream: Optional[asyncio.StreamReader], sink: bytearray, budget: _OutputBudget) -> None:
        if stream is None:
            return
        while True:
            chunk = await stream.read(_READ_CHUNK)
            if not chunk:
                return
            budget.consume(len(chunk))
            sink.extend(chunk)

    @staticmethod
    async def _terminate(proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
        try:
            await asyncio.wait_for(proc.wait(), timeout=_REAP_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning(f"Process {proc.pid} did not exit after kill")

    @staticmethod
    def _timeout(descriptor: CapabilityDescriptor, limits: ExecutionLimits) -> ExecutionOutcome:
        logger.warning(f"Capability '{descriptor.name}' exceeded {limits.max_execution_time}s")
        return ExecutionOutcome.failure(
            OutcomeStatus.timeout,
            f"execution exceeded {limits.max_execution_time:g}s",
            code="execution_timeout",
        )

    @staticmethod
    def _too_large(descriptor: CapabilityDescriptor, limits: ExecutionLimits) -> ExecutionOutcome:
        logger.warning(f"Capability '{descriptor.name}' exceeded output ceiling of {limits.max_output_size} bytes")
        return ExecutionOutcome.failure(
            OutcomeStatus.output_too_large,
            f"output exceeded {limits.max_output_size} bytes",
            code="output_limit_exceeded",
        )
