"""Rate limiting adapters.

Service facades depend on ``AbstractRateLimiter``; the in-memory fixed-window
limiter is the only backend today, and a shared store (e.g. Redis) can be
added behind the same interface.
"""

from servicekit.adapters.rate_limit.base import AbstractRateLimiter, RateLimitState
from servicekit.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter, build_rate_limiter

__all__ = [
    "AbstractRateLimiter",
    "InMemoryFixedWindowRateLimiter",
    "RateLimitState",
    "build_rate_limiter",
]
