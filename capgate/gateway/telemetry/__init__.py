"""Per-request timing and outcome telemetry."""

from .tracker import UNKNOWN_CAPABILITY, CapabilityStats, Tracker, TrackingHandle

__all__ = ["UNKNOWN_CAPABILITY", "CapabilityStats", "Tracker", "TrackingHandle"]
