"""Endpoint definitions and schema validation helpers.

An endpoint binds a unique name to a request schema, a response schema and
the business-logic handler. Schemas are any type pydantic can validate: a
``BaseModel`` subclass, ``list[Member]``, ``dict[str, int]`` and so on.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol, runtime_checkable

import pydantic
from pydantic import TypeAdapter

from servicekit.core.errors import ResponseValidationError
from servicekit.schemas.envelope import RequestContext


@runtime_checkable
class Handler(Protocol):
    """Business logic bound to an endpoint."""

    async def handle(self, request: Any, context: RequestContext) -> Any:
        ...


HandlerFunc = Callable[[Any, RequestContext], Awaitable[Any]]


def format_validation_error(error: Any) -> str:
    """Render a pydantic validation error as one line per violated field.

    Examples:
        >>> format_validation_error(exc)  # doctest: +SKIP
        "Validation failed:\\n- at 'name': Field required"
    """

    if not isinstance(error, pydantic.ValidationError):
        return str(error)

    entries = []
    for issue in error.errors():
        path = ".".join(str(part) for part in issue.get("loc", ()))
        prefix = f"at '{path}': " if path else ""
        entries.append(f"{prefix}{issue['msg']}")

    if not entries:
        return "Validation failed with no details"
    return "Validation failed:\n- " + "\n- ".join(entries)


def _as_callable(handler: Handler | HandlerFunc) -> HandlerFunc:
    if inspect.iscoroutinefunction(handler):
        return handler
    if isinstance(handler, Handler):
        return handler.handle
    if callable(handler):
        return handler
    raise TypeError(f"handler must be callable or expose handle(), got {type(handler).__name__}")


@dataclass(frozen=True)
class EndpointDefinition:
    """Immutable binding of name, schemas and handler.

    Attributes:
        name: Unique catalog key.
        request_schema: Type that ``request_data`` is validated against.
        response_schema: Type the handler result is validated against.
        handler: Async callable ``(request, context) -> response``.
    """

    name: str
    request_schema: Any
    response_schema: Any
    handler: HandlerFunc
    request_adapter: TypeAdapter[Any] = field(init=False, repr=False, compare=False)
    response_adapter: TypeAdapter[Any] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise ValueError("endpoint name must be a non-empty string")
        # Adapters are built once at definition time, not per request.
        object.__setattr__(self, "request_adapter", TypeAdapter(self.request_schema))
        object.__setattr__(self, "response_adapter", TypeAdapter(self.response_schema))

    def parse_request(self, request_data: Any) -> Any:
        """Validate raw request data; raises ``pydantic.ValidationError``."""
        return self.request_adapter.validate_python(request_data)

    def parse_response(self, result: Any) -> Any:
        """Validate a handler result; raises ``pydantic.ValidationError``."""
        return self.response_adapter.validate_python(result)


def define_endpoint(
    name: str,
    request_schema: Any,
    response_schema: Any,
    handler: Handler | HandlerFunc,
) -> EndpointDefinition:
    """Define an endpoint whose handler output is always schema-checked.

    The handler is wrapped so that a result violating ``response_schema``
    raises ``ResponseValidationError`` instead of reaching the caller. A
    ``Success`` frame therefore always carries data that satisfies the
    declared response schema, even when the business logic is buggy.

    Args:
        name: Unique endpoint name.
        request_schema: Type used to validate incoming request data.
        response_schema: Type used to validate handler results.
        handler: Async function or object with an async ``handle`` method.

    Returns:
        EndpointDefinition ready to be registered in a catalog.

    Raises:
        ValueError: If name is empty.
        TypeError: If handler is neither callable nor a Handler.
    """

    raw_handler = _as_callable(handler)
    response_adapter: TypeAdapter[Any] = TypeAdapter(response_schema)

    async def validated_handler(request: Any, context: RequestContext) -> Any:
        result = await raw_handler(request, context)
        try:
            return response_adapter.validate_python(result)
        except pydantic.ValidationError as exc:
            raise ResponseValidationError(
                name,
                format_validation_error(exc),
                context.request_id,
            ) from exc

    return EndpointDefinition(
        name=name,
        request_schema=request_schema,
        response_schema=response_schema,
        handler=validated_handler,
    )
