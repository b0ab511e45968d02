"""Transports carrying an invoke request to a services host.

The API should depend on ``Transport`` (not a concrete implementation) so
callers can switch between an in-process host and a remote HTTP host.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any

import httpx
from pydantic_core import to_jsonable_python

from servicekit.core.errors import TransportError, error_from_frame
from servicekit.schemas.envelope import ErrorFrame, SuccessFrame
from servicekit.services.host import ServicesHost

logger = logging.getLogger(__name__)


def build_envelope(endpoint_name: str, request_data: Any, *, raw: bool) -> dict[str, Any]:
    return {
        "endpointName": endpoint_name,
        "responseFormat": "raw" if raw else "framed",
        "requestData": to_jsonable_python(request_data),
    }


class Transport(ABC):
    """Interface for sending one call to a named service."""

    @abstractmethod
    async def send(
        self,
        service_name: str,
        endpoint_name: str,
        request_data: Any,
        *,
        raw: bool = False,
        request_id: str | None = None,
    ) -> Any:
        """Send a call and return the decoded response.

        Args:
            service_name: Target service on the host.
            endpoint_name: Endpoint within that service.
            request_data: Endpoint input.
            raw: Ask for the bare payload instead of a response frame.
            request_id: Correlation id; generated when omitted.

        Returns:
            A wire-format frame dict, or the bare payload when ``raw``.

        Raises:
            TransportError: If the host cannot be reached or replies garbage.
            ServiceError: In raw mode, when the call failed on the host.
        """
        raise NotImplementedError


class HttpTransport(Transport):
    """Transport posting to ``/invoke`` on a remote host with httpx."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        if client is None and base_url is None:
            raise ValueError("either base_url or client is required")
        self._client = client or httpx.AsyncClient(base_url=base_url or "", timeout=timeout_seconds)

    async def __aenter__(self) -> HttpTransport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send(
        self,
        service_name: str,
        endpoint_name: str,
        request_data: Any,
        *,
        raw: bool = False,
        request_id: str | None = None,
    ) -> Any:
        body: dict[str, Any] = {
            "serviceName": service_name,
            "request": build_envelope(endpoint_name, request_data, raw=raw),
        }
        if request_id:
            body["context"] = {"requestId": request_id}

        logger.debug(
            "transport.http_send",
            extra={"service_name": service_name, "endpoint_name": endpoint_name},
        )
        try:
            response = await self._client.post("/invoke", json=body)
        except httpx.HTTPError as exc:
            logger.error(
                "transport.http_failed",
                extra={"service_name": service_name, "error_type": type(exc).__name__},
            )
            raise TransportError(f"HTTP request to '{service_name}' failed: {exc}", request_id) from exc

        try:
            decoded = response.json()
        except ValueError as exc:
            raise TransportError(
                f"Invalid JSON from '{service_name}' (status {response.status_code})",
                request_id,
            ) from exc

        if raw and response.is_error:
            raise _error_from_wire(decoded, response.status_code)
        return decoded


def _error_from_wire(decoded: Any, status_code: int) -> Exception:
    error = decoded.get("error") if isinstance(decoded, dict) else None
    if not isinstance(error, dict) or "code" not in error:
        return TransportError(f"Unexpected error response (status {status_code})")
    return error_from_frame(
        error["code"],
        error.get("message", ""),
        decoded.get("requestId"),
        error.get("details"),
    )


class LocalTransport(Transport):
    """Transport invoking services of an in-process ``ServicesHost``."""

    def __init__(self, services_host: ServicesHost) -> None:
        self._host = services_host

    async def send(
        self,
        service_name: str,
        endpoint_name: str,
        request_data: Any,
        *,
        raw: bool = False,
        request_id: str | None = None,
    ) -> Any:
        service = self._host.get_service(service_name)
        context = {"requestId": request_id or str(uuid.uuid4())}
        result = await service.handle(build_envelope(endpoint_name, request_data, raw=raw), context)
        if raw and isinstance(result, ErrorFrame):
            # Failures before dispatch are framed even in raw mode.
            raise error_from_frame(
                result.error.code,
                result.error.message,
                result.request_id,
                result.error.details,
            )
        if isinstance(result, (SuccessFrame, ErrorFrame)):
            return result.to_wire()
        return to_jsonable_python(result)
