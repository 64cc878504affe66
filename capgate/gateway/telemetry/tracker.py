"""Per-capability invocation telemetry.

``Tracker`` records timing and outcome statistics for every request handled by
the dispatcher and exposes a read-only snapshot for health and diagnostics
collaborators. Recording is a side channel: any failure inside the tracker is
logged and swallowed so it can never fail the request being measured.
"""

from __future__ import annotations

import logging
import statistics
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Optional

from ...core.monitoring import log_invocation
from ..schemas.domain import ExecutionOutcome

logger = logging.getLogger(__name__)

_SAMPLE_WINDOW = 1024

# Requests for names or URIs that are not registered share this key.
UNKNOWN_CAPABILITY = "<unknown>"


@dataclass(frozen=True)
class TrackingHandle:
    request_id: str
    capability: str
    started_at: float


@dataclass
class CapabilityStats:
    count: int = 0
    total_ms: float = 0.0
    min_ms: Optional[float] = None
    max_ms: Optional[float] = None
    last_seen: Optional[datetime] = None
    statuses: Dict[str, int] = field(default_factory=dict)
    samples: Deque[float] = field(default_factory=lambda: deque(maxlen=_SAMPLE_WINDOW))
    last_error: Optional[Dict[str, Any]] = None

    def record(self, duration_ms: float, outcome: ExecutionOutcome) -> None:
        self.count += 1
        self.total_ms += duration_ms
        self.min_ms = duration_ms if self.min_ms is None else min(self.min_ms, duration_ms)
        self.max_ms = duration_ms if self.max_ms is None else max(self.max_ms, duration_ms)
        self.samples.append(duration_ms)
        self.last_seen = datetime.now(timezone.utc)
        key = outcome.status.value
        self.statuses[key] = self.statuses.get(key, 0) + 1
        if outcome.error is not None:
            self.last_error = {
                "kind": outcome.error.kind.value,
                "code": outcome.error.code,
                "detail": outcome.error.internal,
                "at": self.last_seen.isoformat(),
            }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "avg_ms": round(self.total_ms / self.count, 3) if self.count else 0.0,
            "median_ms": round(statistics.median(self.samples), 3) if self.samples else 0.0,
            "min_ms": round(self.min_ms, 3) if self.min_ms is not None else None,
            "max_ms": round(self.max_ms, 3) if self.max_ms is not None else None,
            "last_seen": self.last_seen.isoformat() if self.last_seen else None,
            "statuses": dict(self.statuses),
            "last_error": dict(self.last_error) if self.last_error else None,
        }


class Tracker:
    """Best-effort recorder of per-capability request metrics."""

    def __init__(self) -> None:
        self._stats: Dict[str, CapabilityStats] = {}
        self._lock = threading.Lock()

    def begin(self, request_id: str, capability: str) -> TrackingHandle:
        return TrackingHandle(request_id=request_id, capability=capability, started_at=time.perf_counter())

    def end(self, handle: TrackingHandle, outcome: ExecutionOutcome) -> float:
        """
        Close ``handle`` and record ``outcome``.

        Returns:
            The measured request duration in milliseconds.
        """
        duration_ms = (time.perf_counter() - handle.started_at) * 1000
        try:
            with self._lock:
                stats = self._stats.get(handle.capability)
                if stats is None:
                    stats = self._stats[handle.capability] = CapabilityStats()
                stats.record(duration_ms, outcome)
            log_invocation(
                request_id=handle.request_id,
                capability=handle.capability,
                status=outcome.status.value,
                duration_ms=duration_ms,
                cached=outcome.cached,
            )
        except Exception:
            logger.debug(f"Failed to record telemetry for request {handle.request_id}", exc_info=True)
        return duration_ms

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """Read-only copy of the statistics keyed by capability name."""
        with self._lock:
            return {name: stats.to_dict() for name, stats in self._stats.items()}

    def get(self, capability: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            stats = self._stats.get(capability)
            return stats.to_dict() if stats is not None else None

    def reset(self) -> None:
        with self._lock:
            self._stats.clear()
