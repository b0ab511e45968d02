"""Request executor: resolves, validates, invokes and frames one call.

Lifecycle of a call::

    Received -> Resolved -> RequestValidated -> HandlerRunning
             -> ResponseValidated -> Framed

Any step after ``Received`` may exit early with a typed ``ServiceError``.
In "raw" mode that error is raised to the caller; in "framed" mode it is
returned as an ``ErrorFrame``. ``TransportError`` is the exception: it is
always raised, in both modes, so the layer that owns retries can see it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import pydantic

from servicekit.core.clock import Clock, system_clock
from servicekit.core.errors import (
    HandlerTimeoutError,
    InternalError,
    ResponseValidationError,
    ServiceError,
    TransportError,
    ValidationError,
)
from servicekit.schemas.envelope import (
    ErrorFrame,
    RequestContext,
    RequestPayload,
    SuccessFrame,
    frame_from_error,
    success_frame,
)
from servicekit.services.catalog import ServiceCatalog
from servicekit.services.endpoint import EndpointDefinition, format_validation_error


class RequestExecutor:
    """Runs a validated envelope against the endpoints of one catalog.

    Attributes:
        catalog: Catalog used to resolve endpoint names.
    """

    def __init__(
        self,
        catalog: ServiceCatalog,
        logger: logging.Logger | None = None,
        clock: Clock = system_clock,
    ) -> None:
        self.catalog = catalog
        self._logger = logger or logging.getLogger(__name__)
        self._clock = clock

    async def execute(
        self,
        payload: RequestPayload,
        context: RequestContext,
    ) -> SuccessFrame | ErrorFrame | Any:
        """Execute one call end-to-end.

        Args:
            payload: Validated outer envelope.
            context: Validated request context.

        Returns:
            The parsed response (raw mode) or a response frame (framed mode).

        Raises:
            TransportError: Always, when the handler raised one.
            ServiceError: In raw mode, for every other failure.
        """

        endpoint_name = payload.endpoint_name
        request_id = context.request_id
        self._logger.debug(
            "executor.received",
            extra={"endpoint_name": endpoint_name, "response_format": payload.response_format},
        )

        try:
            data = await self._run(payload, context)
        except TransportError as exc:
            if exc.request_id is None:
                exc.request_id = request_id
            self._logger.error(
                "executor.transport_error",
                extra={"endpoint_name": endpoint_name, "error_msg": exc.message},
            )
            raise
        except ServiceError as exc:
            if exc.request_id is None:
                exc.request_id = request_id
            if payload.response_format == "raw":
                raise
            return frame_from_error(request_id, exc)

        if payload.response_format == "raw":
            self._logger.debug("executor.raw_response", extra={"endpoint_name": endpoint_name})
            return data

        self._logger.info("executor.framed_response", extra={"endpoint_name": endpoint_name})
        return success_frame(request_id, data)

    async def _run(self, payload: RequestPayload, context: RequestContext) -> Any:
        endpoint = self.catalog.lookup(payload.endpoint_name)
        request = self._validate_request(endpoint, payload.request_data, context)
        result = await self._invoke(endpoint, request, context)
        return self._validate_response(endpoint, result, context)

    def _validate_request(self, endpoint: EndpointDefinition, request_data: Any, context: RequestContext) -> Any:
        try:
            return endpoint.parse_request(request_data)
        except pydantic.ValidationError as exc:
            message = format_validation_error(exc)
            self._logger.error(
                "executor.request_invalid",
                extra={"endpoint_name": endpoint.name, "violations": message},
            )
            raise ValidationError(message, context.request_id) from exc

    async def _invoke(self, endpoint: EndpointDefinition, request: Any, context: RequestContext) -> Any:
        self._logger.info("executor.dispatch", extra={"endpoint_name": endpoint.name})
        timeout_s = self._remaining_seconds(endpoint, context)
        if timeout_s is None:
            return await self._call_handler(endpoint, request, context)

        # A TimeoutError raised by the handler itself is wrapped by _call_handler,
        # so only the deadline expiring lands here.
        try:
            return await asyncio.wait_for(self._call_handler(endpoint, request, context), timeout=timeout_s)
        except asyncio.TimeoutError as exc:
            timeout_ms = int(timeout_s * 1000)
            self._logger.error(
                "executor.handler_timeout",
                extra={"endpoint_name": endpoint.name, "timeout_ms": timeout_ms},
            )
            raise HandlerTimeoutError(endpoint.name, timeout_ms, context.request_id) from exc

    async def _call_handler(self, endpoint: EndpointDefinition, request: Any, context: RequestContext) -> Any:
        try:
            return await endpoint.handler(request, context)
        except ResponseValidationError as exc:
            self._log_response_invalid(endpoint, exc)
            raise
        except ServiceError:
            raise
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            self._logger.error(
                "executor.handler_failed",
                extra={
                    "endpoint_name": endpoint.name,
                    "error_type": type(exc).__name__,
                    "error_msg": message,
                },
                exc_info=exc,
            )
            raise InternalError(message, context.request_id, {"cause": type(exc).__name__}) from exc

    def _remaining_seconds(self, endpoint: EndpointDefinition, context: RequestContext) -> float | None:
        if context.deadline_ms is None:
            return None
        remaining_ms = context.deadline_ms - self._clock()
        if remaining_ms <= 0:
            self._logger.error(
                "executor.deadline_expired",
                extra={"endpoint_name": endpoint.name, "deadline_ms": context.deadline_ms},
            )
            raise HandlerTimeoutError(endpoint.name, 0, context.request_id)
        return remaining_ms / 1000

    def _validate_response(self, endpoint: EndpointDefinition, result: Any, context: RequestContext) -> Any:
        try:
            return endpoint.parse_response(result)
        except pydantic.ValidationError as exc:
            error = ResponseValidationError(endpoint.name, format_validation_error(exc), context.request_id)
            self._log_response_invalid(endpoint, error)
            raise error from exc

    def _log_response_invalid(self, endpoint: EndpointDefinition, exc: ResponseValidationError) -> None:
        self._logger.error(
            "executor.response_invalid",
            extra={"endpoint_name": endpoint.name, "violations": exc.violations},
        )
