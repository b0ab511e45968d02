"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: one lock per endpoint, so unrelated endpoints never contend.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Mapping

from servicekit.adapters.rate_limit.base import (
    HOUR_MS,
    MINUTE_MS,
    AbstractRateLimiter,
    RateLimitState,
)
from servicekit.core.clock import Clock, system_clock
from servicekit.core.config import EndpointLimits, RateLimitSettings
from servicekit.core.errors import RateLimitExceededError, RateLimiterConfigError

if TYPE_CHECKING:
    from servicekit.services.catalog import ServiceCatalog

DEFAULT_BUCKET = "default"


@dataclass
class _EndpointState:
    minute_window_start: int
    minute_count: int
    hour_window_start: int
    hour_count: int
    lock: threading.Lock


@dataclass(frozen=True)
class _Limits:
    per_minute: int | None
    per_hour: int | None


def _check_limit(name: str, value: int | None) -> None:
    if value is not None and value < 1:
        raise RateLimiterConfigError(f"{name} must be >= 1, got {value}")


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Endpoint-aware limiter with independent minute and hour windows.

    A window resets once ``now - window_start`` reaches its length. The
    counter is incremented before it is compared, so exactly ``limit`` calls
    succeed per window and the next one is rejected. A call rejected by the
    minute window does not consume hourly budget.

    Default limits apply to every endpoint; ``endpoint_limits`` overrides
    them field by field (an override with only ``per_minute`` still uses the
    default ``per_hour``).
    """

    def __init__(
        self,
        *,
        per_minute: int | None = None,
        per_hour: int | None = None,
        endpoint_limits: Mapping[str, EndpointLimits] | None = None,
        clock: Clock = system_clock,
        catalog: ServiceCatalog | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the limiter.

        Args:
            per_minute: Default calls allowed per minute.
            per_hour: Default calls allowed per hour.
            endpoint_limits: Per-endpoint overrides of the defaults.
            clock: Time source returning epoch milliseconds.
            catalog: When given, counters are created up front for every
                endpoint it lists; later endpoints are created lazily.
            logger: Optional logger; defaults to the module logger.

        Raises:
            RateLimiterConfigError: If no limit is configured or a limit is < 1.
        """
        _check_limit("per_minute", per_minute)
        _check_limit("per_hour", per_hour)
        overrides = dict(endpoint_limits or {})
        for name, limits in overrides.items():
            _check_limit(f"endpoint_limits[{name!r}].per_minute", limits.per_minute)
            _check_limit(f"endpoint_limits[{name!r}].per_hour", limits.per_hour)

        if per_minute is None and per_hour is None and not overrides:
            raise RateLimiterConfigError(
                "Rate limiter requires at least one default limit "
                "(per_minute/per_hour) or a non-empty endpoint_limits map."
            )

        self._default = _Limits(per_minute=per_minute, per_hour=per_hour)
        self._overrides = overrides
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._registry_lock = threading.Lock()
        self._states: dict[str, _EndpointState] = {}

        if catalog is not None:
            for name in catalog.list():
                self._get_or_create_state(name)

    def _limits_for(self, endpoint_name: str) -> _Limits:
        override = self._overrides.get(endpoint_name)
        if override is None:
            return self._default
        return _Limits(
            per_minute=override.per_minute if override.per_minute is not None else self._default.per_minute,
            per_hour=override.per_hour if override.per_hour is not None else self._default.per_hour,
        )

    def _get_or_create_state(self, endpoint_name: str) -> _EndpointState:
        """Return the counters for an endpoint, creating fresh windows on first use."""
        state = self._states.get(endpoint_name)
        if state is not None:
            return state

        with self._registry_lock:
            state = self._states.get(endpoint_name)
            if state is None:
                now = self._clock()
                state = _EndpointState(
                    minute_window_start=now,
                    minute_count=0,
                    hour_window_start=now,
                    hour_count=0,
                    lock=threading.Lock(),
                )
                self._states[endpoint_name] = state
            return state

    def _reject(self, endpoint_name: str, window: str, limit: int, window_start: int, length_ms: int, now: int) -> None:
        retry_after_ms = max(0, window_start + length_ms - now)
        self._logger.warning(
            "rate_limit.exceeded",
            extra={
                "endpoint_name": endpoint_name,
                "window": window,
                "limit": limit,
                "retry_after_ms": retry_after_ms,
            },
        )
        raise RateLimitExceededError(endpoint_name, window, limit, retry_after_ms)

    def throttle(self, endpoint_name: str | None = None) -> None:
        """Count one call against the endpoint's windows.

        Raises:
            RateLimitExceededError: If the minute or hour budget is exhausted.
        """
        name = endpoint_name or DEFAULT_BUCKET
        limits = self._limits_for(name)
        if limits.per_minute is None and limits.per_hour is None:
            return

        state = self._get_or_create_state(name)

        with state.lock:
            now = self._clock()

            if limits.per_minute is not None:
                if now - state.minute_window_start >= MINUTE_MS:
                    state.minute_window_start = now
                    state.minute_count = 0
                state.minute_count += 1
                if state.minute_count > limits.per_minute:
                    self._reject(name, "minute", limits.per_minute, state.minute_window_start, MINUTE_MS, now)

            if limits.per_hour is not None:
                if now - state.hour_window_start >= HOUR_MS:
                    state.hour_window_start = now
                    state.hour_count = 0
                state.hour_count += 1
                if state.hour_count > limits.per_hour:
                    self._reject(name, "hour", limits.per_hour, state.hour_window_start, HOUR_MS, now)

        self._logger.debug("rate_limit.allowed", extra={"endpoint_name": name})

    def snapshot(self, endpoint_name: str) -> RateLimitState | None:
        """Return a copy of the endpoint's counters, or None if never seen."""
        state = self._states.get(endpoint_name)
        if state is None:
            return None
        with state.lock:
            return RateLimitState(
                minute_window_start=state.minute_window_start,
                minute_count=state.minute_count,
                hour_window_start=state.hour_window_start,
                hour_count=state.hour_count,
            )

    def tracked_endpoints(self) -> list[str]:
        """List endpoints that currently hold counter state."""
        with self._registry_lock:
            return list(self._states)


def build_rate_limiter(
    rate_limit_settings: RateLimitSettings,
    *,
    clock: Clock = system_clock,
    catalog: ServiceCatalog | None = None,
) -> InMemoryFixedWindowRateLimiter:
    """Build a limiter from configuration."""

    return InMemoryFixedWindowRateLimiter(
        per_minute=rate_limit_settings.per_minute,
        per_hour=rate_limit_settings.per_hour,
        endpoint_limits=rate_limit_settings.endpoint_limits,
        clock=clock,
        catalog=catalog,
    )
