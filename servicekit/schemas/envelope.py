"""Pydantic schemas for the dispatch envelope.

Python code uses snake_case attributes; the wire representation is
camelCase (``requestId``, ``endpointName``...). Both spellings are accepted
on input.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from servicekit.core.errors import ServiceError

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
ResponseFormat = Literal["framed", "raw"]


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump to a JSON-compatible dict using wire (camelCase) names."""
        return self.model_dump(mode="json", by_alias=True)


class HttpContext(_WireModel):
    """HTTP metadata attached by an HTTP transport adapter."""

    model_config = ConfigDict(extra="forbid")

    method: HttpMethod
    path: str
    headers: dict[str, str] | None = None
    query: dict[str, str | list[str]] | None = None
    params: dict[str, str] | None = None


class RequestContext(_WireModel):
    """Per-call metadata threaded through the pipeline.

    Created fresh by the boundary (HTTP server, CLI, in-process client) for
    every inbound call and never persisted.
    """

    model_config = ConfigDict(extra="forbid")

    request_id: str = Field(
        ...,
        min_length=1,
        description="Opaque correlation id echoed in every response frame.",
    )
    http: HttpContext | None = Field(
        None,
        description="Transport metadata when the call arrived over HTTP.",
    )
    deadline_ms: int | None = Field(
        None,
        description="Epoch milliseconds by which the handler must have finished.",
    )


class RequestPayload(_WireModel):
    """Outer envelope naming the endpoint and the desired response format."""

    endpoint_name: str = Field(..., description="Catalog name of the endpoint to invoke.")
    response_format: ResponseFormat = Field(
        ...,
        description="'framed' for a ResponseFrame, 'raw' for the bare payload.",
    )
    request_data: Any = Field(
        None,
        description="Endpoint input, validated against the endpoint's request schema.",
    )


class SuccessFrame(_WireModel):
    status: Literal["success"] = "success"
    request_id: str | None = None
    data: Any = None


class ErrorBody(_WireModel):
    code: str
    message: str
    details: dict[str, Any] | None = None


class ErrorFrame(_WireModel):
    status: Literal["error"] = "error"
    request_id: str | None = None
    error: ErrorBody

    def to_wire(self) -> dict[str, Any]:
        wire = super().to_wire()
        if wire["error"].get("details") is None:
            wire["error"].pop("details", None)
        return wire


ResponseFrame = Annotated[Union[SuccessFrame, ErrorFrame], Field(discriminator="status")]

response_frame_adapter: TypeAdapter[SuccessFrame | ErrorFrame] = TypeAdapter(ResponseFrame)


def success_frame(request_id: str | None, data: Any) -> SuccessFrame:
    return SuccessFrame(request_id=request_id, data=data)


def error_frame(
    request_id: str | None,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> ErrorFrame:
    return ErrorFrame(
        request_id=request_id,
        error=ErrorBody(code=code, message=message, details=details),
    )


def frame_from_error(request_id: str | None, exc: ServiceError, *, include_details: bool = False) -> ErrorFrame:
    """Build an error frame for a ``ServiceError``.

    Details are attached only on request since they may describe service
    internals.
    """

    details = dict(exc.details) if include_details and exc.details else None
    return error_frame(request_id, exc.code, exc.message, details)
