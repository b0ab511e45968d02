"""Unit tests for the in-memory fixed-window rate limiter."""

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import Mock

import pytest

from servicekit.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter, build_rate_limiter
from servicekit.core.config import EndpointLimits, RateLimitSettings
from servicekit.core.errors import RateLimitExceededError, RateLimiterConfigError

from conftest import T0


def test_requires_at_least_one_limit(clock: Mock) -> None:
    with pytest.raises(RateLimiterConfigError):
        InMemoryFixedWindowRateLimiter(clock=clock)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"per_minute": 0},
        {"per_hour": -1},
        {"per_minute": 5, "per_hour": 0},
    ],
)
def test_invalid_limits_rejected(clock: Mock, kwargs: dict) -> None:
    with pytest.raises(RateLimiterConfigError):
        InMemoryFixedWindowRateLimiter(clock=clock, **kwargs)


def test_endpoint_limits_alone_are_enough(clock: Mock) -> None:
    limiter = InMemoryFixedWindowRateLimiter(
        endpoint_limits={"limited": EndpointLimits(per_minute=1)},
        clock=clock,
    )

    limiter.throttle("limited")
    with pytest.raises(RateLimitExceededError):
        limiter.throttle("limited")


def test_exactly_limit_calls_succeed_per_minute(clock: Mock) -> None:
    limiter = InMemoryFixedWindowRateLimiter(per_minute=2, clock=clock)

    limiter.throttle("ep")
    clock.return_value = T0 + 1
    limiter.throttle("ep")

    clock.return_value = T0 + 2
    with pytest.raises(RateLimitExceededError) as exc_info:
        limiter.throttle("ep")

    error = exc_info.value
    assert error.code == "rate_limit_exceeded"
    assert error.endpoint_name == "ep"
    assert error.window == "minute"
    assert error.limit == 2
    assert error.retry_after_ms == 60_000 - 2
    assert "more than 2 requests per minute" in error.message

    clock.return_value = T0 + 61_000
    limiter.throttle("ep")


def test_window_resets_exactly_at_length(clock: Mock) -> None:
    limiter = InMemoryFixedWindowRateLimiter(per_minute=1, clock=clock)

    limiter.throttle("ep")
    clock.return_value = T0 + 59_999
    with pytest.raises(RateLimitExceededError):
        limiter.throttle("ep")

    clock.return_value = T0 + 60_000
    limiter.throttle("ep")


def test_hour_limit_resets_after_an_hour(clock: Mock) -> None:
    limiter = InMemoryFixedWindowRateLimiter(per_hour=2, clock=clock)

    limiter.throttle("ep")
    limiter.throttle("ep")
    with pytest.raises(RateLimitExceededError, match="more than 2 requests per hour"):
        limiter.throttle("ep")

    clock.return_value = T0 + 3_601_000
    limiter.throttle("ep")


def test_minute_and_hour_windows_are_independent(clock: Mock) -> None:
    limiter = InMemoryFixedWindowRateLimiter(per_minute=1, per_hour=2, clock=clock)

    limiter.throttle("ep")

    clock.return_value = T0 + 1
    with pytest.raises(RateLimitExceededError) as minute_exc:
        limiter.throttle("ep")
    assert minute_exc.value.window == "minute"

    # Minute window reset; this is the second counted call of the hour.
    clock.return_value = T0 + 61_000
    limiter.throttle("ep")
    assert limiter.snapshot("ep").hour_count == 2

    clock.return_value = T0 + 62_000
    with pytest.raises(RateLimitExceededError):
        limiter.throttle("ep")

    # Fresh minute window, but the hourly budget is spent.
    clock.return_value = T0 + 122_000
    with pytest.raises(RateLimitExceededError) as hour_exc:
        limiter.throttle("ep")
    assert hour_exc.value.window == "hour"
    assert hour_exc.value.retry_after_ms == 3_600_000 - 122_000


def test_minute_rejection_does_not_consume_hour_budget(clock: Mock) -> None:
    limiter = InMemoryFixedWindowRateLimiter(per_minute=1, per_hour=10, clock=clock)

    limiter.throttle("ep")
    for _ in range(5):
        with pytest.raises(RateLimitExceededError):
            limiter.throttle("ep")

    state = limiter.snapshot("ep")
    assert state.minute_count == 6
    assert state.hour_count == 1


def test_override_falls_back_to_default_per_field(clock: Mock) -> None:
    limiter = InMemoryFixedWindowRateLimiter(
        per_minute=3,
        per_hour=5,
        endpoint_limits={"special": EndpointLimits(per_minute=1)},
        clock=clock,
    )

    limiter.throttle("special")
    with pytest.raises(RateLimitExceededError, match="more than 1 requests per minute"):
        limiter.throttle("special")

    # One call per fresh minute until the default hourly limit of 5 is reached.
    for minute in range(1, 5):
        clock.return_value = T0 + minute * 60_000
        limiter.throttle("special")

    clock.return_value = T0 + 5 * 60_000
    with pytest.raises(RateLimitExceededError) as exc_info:
        limiter.throttle("special")
    assert exc_info.value.window == "hour"
    assert exc_info.value.limit == 5


def test_default_limits_apply_without_override(clock: Mock) -> None:
    limiter = InMemoryFixedWindowRateLimiter(
        per_minute=3,
        endpoint_limits={"special": EndpointLimits(per_minute=1)},
        clock=clock,
    )

    for _ in range(3):
        limiter.throttle("regular")
    with pytest.raises(RateLimitExceededError, match="more than 3 requests per minute"):
        limiter.throttle("regular")


def test_unlimited_when_no_applicable_limit(clock: Mock) -> None:
    limiter = InMemoryFixedWindowRateLimiter(
        endpoint_limits={"limited": EndpointLimits(per_minute=1)},
        clock=clock,
    )

    for _ in range(100):
        limiter.throttle("unlimited")

    assert "unlimited" not in limiter.tracked_endpoints()


def test_isolated_by_endpoint(clock: Mock) -> None:
    limiter = InMemoryFixedWindowRateLimiter(per_minute=1, clock=clock)

    limiter.throttle("a")
    with pytest.raises(RateLimitExceededError, match="'a'"):
        limiter.throttle("a")

    limiter.throttle("b")
    with pytest.raises(RateLimitExceededError, match="'b'"):
        limiter.throttle("b")


def test_missing_endpoint_name_uses_default_bucket(clock: Mock) -> None:
    limiter = InMemoryFixedWindowRateLimiter(per_minute=1, clock=clock)

    limiter.throttle()
    with pytest.raises(RateLimitExceededError) as exc_info:
        limiter.throttle("default")
    assert exc_info.value.endpoint_name == "default"


def test_lazy_state_starts_at_first_use(clock: Mock) -> None:
    limiter = InMemoryFixedWindowRateLimiter(per_minute=1, clock=clock)
    assert limiter.snapshot("ep") is None

    clock.return_value = T0 + 30_000
    limiter.throttle("ep")

    state = limiter.snapshot("ep")
    assert state.minute_window_start == T0 + 30_000
    assert state.minute_count == 1

    # The window opened at first use, so 60s after T0 is still inside it.
    clock.return_value = T0 + 60_000
    with pytest.raises(RateLimitExceededError):
        limiter.throttle("ep")


def test_pre_seeds_state_from_catalog(clock: Mock) -> None:
    catalog = Mock()
    catalog.list.return_value = ["ep1", "ep2"]

    limiter = InMemoryFixedWindowRateLimiter(per_minute=1, clock=clock, catalog=catalog)

    assert sorted(limiter.tracked_endpoints()) == ["ep1", "ep2"]
    seeded = limiter.snapshot("ep1")
    assert seeded.minute_window_start == T0
    assert seeded.minute_count == 0

    clock.return_value = T0 + 30_000
    limiter.throttle("ep1")
    with pytest.raises(RateLimitExceededError, match="ep1"):
        limiter.throttle("ep1")

    # The seeded window opened at T0, so it rolls over at T0 + 60s.
    clock.return_value = T0 + 60_000
    limiter.throttle("ep1")

    limiter.throttle("ep2")
    with pytest.raises(RateLimitExceededError, match="ep2"):
        limiter.throttle("ep2")


def test_concurrent_calls_on_same_endpoint_are_counted_exactly(clock: Mock) -> None:
    limiter = InMemoryFixedWindowRateLimiter(per_minute=50, clock=clock)

    def attempt(_: int) -> bool:
        try:
            limiter.throttle("hot")
        except RateLimitExceededError:
            return False
        return True

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(attempt, range(200)))

    assert results.count(True) == 50
    assert limiter.snapshot("hot").minute_count == 200


def test_build_rate_limiter_from_settings(clock: Mock) -> None:
    rate_limit_settings = RateLimitSettings(
        per_minute=None,
        per_hour=None,
        endpoint_limits={"ep": EndpointLimits(per_hour=1)},
    )
    limiter = build_rate_limiter(rate_limit_settings, clock=clock)

    limiter.throttle("ep")
    with pytest.raises(RateLimitExceededError, match="per hour"):
        limiter.throttle("ep")
    limiter.throttle("other")
