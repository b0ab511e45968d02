"""Client for calling one service through a ``Transport``."""

from __future__ import annotations

from typing import Any, Awaitable, Callable

import pydantic

from servicekit.client.transport import Transport
from servicekit.core.errors import TransportError, error_from_frame
from servicekit.schemas.envelope import SuccessFrame, response_frame_adapter


class ServiceClient:
    """Calls endpoints of one named service.

    Framed calls unwrap ``data`` from success frames and raise the matching
    ``ServiceError`` for error frames, so callers handle failures the same
    way whether the service runs in-process or behind HTTP.
    """

    def __init__(self, service_name: str, transport: Transport) -> None:
        self.service_name = service_name
        self._transport = transport

    async def call(
        self,
        endpoint_name: str,
        request_data: Any = None,
        *,
        raw: bool = False,
        request_id: str | None = None,
    ) -> Any:
        """Invoke ``endpoint_name`` and return its response data.

        Raises:
            ServiceError: When the service answered with an error.
            TransportError: When the reply is not a valid response frame.
        """
        reply = await self._transport.send(
            self.service_name,
            endpoint_name,
            request_data,
            raw=raw,
            request_id=request_id,
        )
        if raw:
            return reply

        try:
            frame = response_frame_adapter.validate_python(reply)
        except pydantic.ValidationError as exc:
            raise TransportError(
                f"Malformed response frame from '{self.service_name}.{endpoint_name}'",
                request_id,
            ) from exc

        if isinstance(frame, SuccessFrame):
            return frame.data
        raise error_from_frame(
            frame.error.code,
            frame.error.message,
            frame.request_id,
            frame.error.details,
        )

    def bind(self, endpoint_name: str) -> Callable[[Any], Awaitable[Any]]:
        """Return a coroutine function calling ``endpoint_name``."""

        async def _call(request_data: Any = None) -> Any:
            return await self.call(endpoint_name, request_data)

        _call.__name__ = endpoint_name
        return _call
