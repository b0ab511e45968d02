"""Service-level exception types.

Every failure the dispatch pipeline can report is a ``ServiceError`` with a
stable, machine-readable ``code``. Executors frame these into error
responses; transport adapters map them to protocol status codes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorCodes:
    """Stable error codes exposed in error frames."""

    VALIDATION_ERROR = "validation_error"
    UNKNOWN_ENDPOINT = "unknown_endpoint"
    UNKNOWN_SERVICE = "unknown_service"
    INTERNAL_ERROR = "internal_error"
    TRANSPORT_ERROR = "transport_error"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    HANDLER_TIMEOUT = "handler_timeout"
    CONFIGURATION_ERROR = "configuration_error"


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional; only what is relevant to a given failure is set.
    """

    endpoint_name: str
    service_name: str
    window: str
    limit: int
    retry_after_ms: int
    timeout_ms: int
    cause: str
    context: NotRequired[dict[str, Any]]


@dataclass
class ServiceError(Exception):
    """Base error for dispatch failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        request_id: Correlation id of the failing call, when known.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    request_id: str | None = None
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)

    def __str__(self) -> str:
        suffix = f" (req {self.request_id})" if self.request_id else ""
        return f"{type(self).__name__} [{self.code}]{suffix}: {self.message}"


class ValidationError(ServiceError):
    """Raised when a request payload, context or envelope fails its schema."""

    def __init__(
        self,
        message: str,
        request_id: str | None = None,
        details: ErrorDetails | None = None,
    ) -> None:
        super().__init__(ErrorCodes.VALIDATION_ERROR, message, request_id, details)


class UnknownEndpointError(ServiceError):
    """Raised when the requested endpoint is not registered in the catalog."""

    def __init__(self, endpoint_name: str, request_id: str | None = None) -> None:
        super().__init__(
            ErrorCodes.UNKNOWN_ENDPOINT,
            f"Endpoint '{endpoint_name}' not found",
            request_id,
            {"endpoint_name": endpoint_name},
        )
        self.endpoint_name = endpoint_name


class UnknownServiceError(ServiceError):
    """Raised when a host has no service registered under the given name."""

    def __init__(self, service_name: str, request_id: str | None = None) -> None:
        super().__init__(
            ErrorCodes.UNKNOWN_SERVICE,
            f"Service '{service_name}' not found",
            request_id,
            {"service_name": service_name},
        )
        self.service_name = service_name


class InternalError(ServiceError):
    """Raised when a handler fails in a way the client did not cause."""

    def __init__(
        self,
        message: str,
        request_id: str | None = None,
        details: ErrorDetails | None = None,
    ) -> None:
        super().__init__(ErrorCodes.INTERNAL_ERROR, message, request_id, details)


class ResponseValidationError(InternalError):
    """Raised when a handler returns data violating its own response schema.

    The schema violation is kept on ``violations`` for logs; the message is
    safe to show to callers.
    """

    def __init__(
        self,
        endpoint_name: str,
        violations: str,
        request_id: str | None = None,
    ) -> None:
        super().__init__(
            f"Endpoint '{endpoint_name}' produced an invalid response",
            request_id,
            {"endpoint_name": endpoint_name},
        )
        self.endpoint_name = endpoint_name
        self.violations = violations


class TransportError(ServiceError):
    """Raised by handlers when an external dependency fails.

    Never downgraded to an internal error, so callers can decide whether to
    retry.
    """

    def __init__(
        self,
        message: str,
        request_id: str | None = None,
        details: ErrorDetails | None = None,
    ) -> None:
        super().__init__(ErrorCodes.TRANSPORT_ERROR, message, request_id, details)


class RateLimitExceededError(ServiceError):
    """Raised by the rate limiter before the handler runs."""

    def __init__(
        self,
        endpoint_name: str,
        window: str,
        limit: int,
        retry_after_ms: int,
        request_id: str | None = None,
    ) -> None:
        super().__init__(
            ErrorCodes.RATE_LIMIT_EXCEEDED,
            f"Rate limit exceeded on endpoint '{endpoint_name}': "
            f"more than {limit} requests per {window}",
            request_id,
            {
                "endpoint_name": endpoint_name,
                "window": window,
                "limit": limit,
                "retry_after_ms": retry_after_ms,
            },
        )
        self.endpoint_name = endpoint_name
        self.window = window
        self.limit = limit
        self.retry_after_ms = retry_after_ms


class HandlerTimeoutError(ServiceError):
    """Raised when a handler does not finish before the request deadline."""

    def __init__(
        self,
        endpoint_name: str,
        timeout_ms: int,
        request_id: str | None = None,
    ) -> None:
        super().__init__(
            ErrorCodes.HANDLER_TIMEOUT,
            f"Handler for '{endpoint_name}' did not finish within {timeout_ms} ms",
            request_id,
            {"endpoint_name": endpoint_name, "timeout_ms": timeout_ms},
        )
        self.endpoint_name = endpoint_name


class ConfigurationError(ServiceError):
    """Raised at start-up when a component is misconfigured."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCodes.CONFIGURATION_ERROR, message)


class DuplicateEndpointError(ConfigurationError):
    """Raised when an endpoint name is registered twice."""

    def __init__(self, endpoint_name: str) -> None:
        super().__init__(f"Endpoint '{endpoint_name}' is already registered")
        self.endpoint_name = endpoint_name


class DuplicateServiceError(ConfigurationError):
    """Raised when a service name is registered twice on a host."""

    def __init__(self, service_name: str) -> None:
        super().__init__(f"Service '{service_name}' is already registered")
        self.service_name = service_name


class RateLimiterConfigError(ConfigurationError):
    """Raised when a rate limiter is built without any usable limit."""


_ERRORS_BY_CODE: dict[str, type[ServiceError]] = {
    ErrorCodes.VALIDATION_ERROR: ValidationError,
    ErrorCodes.INTERNAL_ERROR: InternalError,
    ErrorCodes.TRANSPORT_ERROR: TransportError,
}


def error_from_frame(
    code: str,
    message: str,
    request_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> ServiceError:
    """Rebuild a ``ServiceError`` from the fields of an error frame.

    Codes with a simple message-based subclass map back to that subclass;
    everything else becomes a plain ``ServiceError`` carrying the code.
    """

    error_cls = _ERRORS_BY_CODE.get(code)
    if error_cls is not None:
        return error_cls(message, request_id, details)  # type: ignore[call-arg]
    return ServiceError(code, message, request_id, details)  # type: ignore[arg-type]
