"""Per-caller sliding-window admission control."""

from .limiter import SlidingWindowRateLimiter

__all__ = ["SlidingWindowRateLimiter"]
