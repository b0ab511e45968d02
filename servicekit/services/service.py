"""Service facade: the single entry point a transport adapter calls.

``Service.handle`` validates the context and the outer envelope, applies
rate limiting and only then hands the call to the executor. Failures before
the executor is reached are always returned as framed errors, because the
caller's desired response format is not known yet.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

import pydantic

from servicekit.adapters.rate_limit.base import AbstractRateLimiter
from servicekit.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter, build_rate_limiter
from servicekit.core.clock import Clock, system_clock
from servicekit.core.config import settings
from servicekit.core.errors import ErrorCodes, RateLimitExceededError
from servicekit.core.logging import request_id_scope
from servicekit.schemas.envelope import (
    ErrorFrame,
    RequestContext,
    RequestPayload,
    SuccessFrame,
    error_frame,
    frame_from_error,
)
from servicekit.services.catalog import ServiceCatalog
from servicekit.services.endpoint import EndpointDefinition, format_validation_error
from servicekit.services.executor import RequestExecutor

UNKNOWN_REQUEST_ID = "unknown"


def _raw_request_id(raw_context: Any) -> str:
    if isinstance(raw_context, RequestContext):
        return raw_context.request_id
    if isinstance(raw_context, Mapping):
        candidate = raw_context.get("requestId", raw_context.get("request_id"))
        if isinstance(candidate, str) and candidate:
            return candidate
    return UNKNOWN_REQUEST_ID


class Service:
    """Per-service entry point binding a catalog, an executor and a limiter.

    Subclasses register their endpoints in ``__init__`` via ``register``.

    Usage:
        service = Service(rate_limiter=InMemoryFixedWindowRateLimiter(per_minute=60))
        service.register(define_endpoint("ping", Ping, Pong, ping))
        frame = await service.handle(
            {"endpointName": "ping", "responseFormat": "framed", "requestData": {}},
            {"requestId": "req-1"},
        )
    """

    def __init__(
        self,
        *,
        rate_limiter: AbstractRateLimiter,
        catalog: ServiceCatalog | None = None,
        logger: logging.Logger | None = None,
        clock: Clock = system_clock,
    ) -> None:
        self.logger = logger or logging.getLogger(type(self).__module__)
        self.catalog = catalog if catalog is not None else ServiceCatalog(self.logger)
        self.rate_limiter = rate_limiter
        self.clock = clock
        self._executor = RequestExecutor(self.catalog, self.logger, clock)

    def register(self, definition: EndpointDefinition) -> None:
        """Register an endpoint on this service's catalog."""
        self.catalog.register(definition)

    def endpoints(self) -> list[str]:
        """List the endpoint names this service exposes."""
        return self.catalog.list()

    async def handle(self, raw_payload: Any, raw_context: Any = None) -> SuccessFrame | ErrorFrame | Any:
        """Handle one inbound call.

        Args:
            raw_payload: Envelope ``{endpointName, responseFormat, requestData}``
                as a mapping or ``RequestPayload``.
            raw_context: Context ``{requestId, http?, deadlineMs?}`` as a
                mapping or ``RequestContext``.

        Returns:
            A response frame, or the bare response in raw mode.

        Raises:
            TransportError: When a handler reports a downstream failure.
            ServiceError: In raw mode, for failures inside the executor.
        """

        with request_id_scope(_raw_request_id(raw_context)):
            try:
                context = RequestContext.model_validate(raw_context)
            except pydantic.ValidationError as exc:
                message = format_validation_error(exc)
                self.logger.error("service.context_invalid", extra={"violations": message})
                return error_frame(_raw_request_id(raw_context), ErrorCodes.VALIDATION_ERROR, message)

            try:
                payload = RequestPayload.model_validate(raw_payload)
            except pydantic.ValidationError as exc:
                message = format_validation_error(exc)
                self.logger.error("service.payload_invalid", extra={"violations": message})
                return error_frame(context.request_id, ErrorCodes.VALIDATION_ERROR, message)

            # Names missing from the catalog are charged to the shared default bucket.
            bucket = payload.endpoint_name if payload.endpoint_name in self.catalog else None
            try:
                self.rate_limiter.throttle(bucket)
            except RateLimitExceededError as exc:
                exc.request_id = context.request_id
                return frame_from_error(context.request_id, exc, include_details=True)

            self.logger.info(
                "service.processing",
                extra={"endpoint_name": payload.endpoint_name},
            )
            return await self._executor.execute(payload, context)


def default_rate_limiter(clock: Clock = system_clock) -> InMemoryFixedWindowRateLimiter:
    """Limiter built from the global rate limit settings."""
    return build_rate_limiter(settings.rate_limit, clock=clock)
