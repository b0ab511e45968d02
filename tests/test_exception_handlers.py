"""Tests for global exception handlers.

Validates that service errors are rendered as error frames with the status
mapped from their code, and that unexpected errors leak no details.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from servicekit.core.errors import (
    HandlerTimeoutError,
    InternalError,
    RateLimitExceededError,
    ServiceError,
    TransportError,
    UnknownEndpointError,
    ValidationError,
)
from servicekit.core.exception_handlers import (
    general_exception_handler,
    setup_exception_handlers,
    status_for_code,
)


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    """Create test client with handlers enabled."""
    return TestClient(app_with_handlers, raise_server_exceptions=False)


class TestServiceErrorHandler:
    """Test handler for ServiceError and subclasses."""

    @pytest.mark.parametrize(
        ("error", "status_code"),
        [
            (ValidationError("bad input"), 400),
            (UnknownEndpointError("missing"), 404),
            (RateLimitExceededError("ep", "minute", 1, 1500), 429),
            (InternalError("boom"), 500),
            (TransportError("upstream down"), 502),
            (HandlerTimeoutError("ep", 100), 504),
            (ServiceError("custom_code", "custom"), 500),
        ],
    )
    def test_status_mapped_from_code(
        self,
        client: TestClient,
        app_with_handlers: FastAPI,
        error: ServiceError,
        status_code: int,
    ):
        """Verify each error code maps to its HTTP status."""

        @app_with_handlers.get("/fail")
        async def fail():
            raise error

        response = client.get("/fail")

        assert response.status_code == status_code
        data = response.json()
        assert data["status"] == "error"
        assert data["error"]["code"] == error.code
        assert data["error"]["message"] == error.message
        assert "requestId" in data

    def test_request_id_from_error(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/fail")
        async def fail():
            raise InternalError("boom", request_id="req-77")

        response = client.get("/fail")

        assert response.json()["requestId"] == "req-77"

    def test_rate_limit_sets_retry_after(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify Retry-After is rounded up to whole seconds."""

        @app_with_handlers.get("/limited")
        async def limited():
            raise RateLimitExceededError("ep", "minute", 1, 1500)

        response = client.get("/limited")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "2"

    def test_details_not_exposed_by_default(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/fail")
        async def fail():
            raise InternalError("boom", details={"cause": "KeyError"})

        response = client.get("/fail")

        assert "details" not in response.json()["error"]


def test_status_for_unknown_code_is_500():
    assert status_for_code("something_new") == 500


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_returns_generic_frame(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/crash")
        async def crash():
            raise RuntimeError("database connection failed")

        response = client.get("/crash")

        assert response.status_code == 500
        data = response.json()
        assert data["error"]["code"] == "internal_server_error"
        assert "database connection" not in data["error"]["message"]

    def test_general_exception_handler_never_leaks_stack_trace(self):
        """Verify stack traces are never included in response."""
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = ValueError("Test error with details")
        response = asyncio.run(general_exception_handler(request, exc))

        response_text = bytes(response.body).decode()
        data = json.loads(response_text)
        assert response.status_code == 500
        assert data["status"] == "error"
        assert "Traceback" not in response_text
        assert "ValueError" not in response_text


def test_setup_exception_handlers_registers_handlers(app_with_handlers: FastAPI):
    assert ServiceError in app_with_handlers.exception_handlers
    assert Exception in app_with_handlers.exception_handlers
