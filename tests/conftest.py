"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It selects the testing environment before any settings are imported.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from unittest.mock import Mock

import pytest
from pydantic import BaseModel, Field

from servicekit.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from servicekit.schemas.envelope import RequestContext

# 2025-01-01T00:00:00Z in epoch milliseconds
T0 = 1_735_689_600_000


class EchoRequest(BaseModel):
    id: str
    note: str = Field("none", description="Optional field with a default.")


class EchoResponse(BaseModel):
    result: str


@pytest.fixture
def clock() -> Mock:
    """Deterministic clock returning epoch milliseconds; set ``return_value`` to move time."""
    return Mock(return_value=T0)


@pytest.fixture
def context() -> RequestContext:
    return RequestContext(request_id="test-req-123")


@pytest.fixture
def unlimited_limiter(clock: Mock) -> InMemoryFixedWindowRateLimiter:
    """Limiter generous enough never to interfere with a single test."""
    return InMemoryFixedWindowRateLimiter(per_minute=10_000, clock=clock)
