"""Rate limiter interfaces.

Service facades depend on this abstraction (not the concrete implementation)
so the storage backend can be swapped later (e.g., Redis) without touching
the pipeline.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

MINUTE_MS = 60_000
HOUR_MS = 3_600_000


@dataclass(frozen=True)
class RateLimitState:
    """Counter state of one endpoint.

    Attributes:
        minute_window_start: Epoch ms at which the current minute window began.
        minute_count: Calls counted in the current minute window.
        hour_window_start: Epoch ms at which the current hour window began.
        hour_count: Calls counted in the current hour window.
    """

    minute_window_start: int
    minute_count: int
    hour_window_start: int
    hour_count: int


class AbstractRateLimiter(ABC):
    """Interface for endpoint-aware rate limiters."""

    @abstractmethod
    def throttle(self, endpoint_name: str | None = None) -> None:
        """Count one call against ``endpoint_name``.

        Args:
            endpoint_name: Endpoint being invoked; None uses the shared
                "default" bucket.

        Raises:
            RateLimitExceededError: If the call exceeds a configured window.
        """
        raise NotImplementedError
