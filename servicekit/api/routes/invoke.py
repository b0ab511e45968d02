from __future__ import annotations

import logging
from typing import Any

import pydantic
from fastapi import APIRouter, Body, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from servicekit.core.errors import ValidationError
from servicekit.core.exception_handlers import status_for_code
from servicekit.schemas.envelope import ErrorFrame, HttpContext, SuccessFrame
from servicekit.schemas.invoke import InvokeRequest
from servicekit.services.endpoint import format_validation_error
from servicekit.services.host import ServicesHost

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Services"])


def get_services_host(request: Request) -> ServicesHost:
    return request.app.state.services_host


def _http_context(request: Request) -> dict[str, Any]:
    return HttpContext(
        method=request.method,
        path=request.url.path,
        headers=dict(request.headers),
        query=dict(request.query_params),
        params=dict(request.path_params),
    ).to_wire()


def build_request_context(request: Request, raw_context: dict[str, Any] | None) -> dict[str, Any]:
    """Complete the caller's context with a request id and HTTP metadata.

    The request id comes from ``context.requestId`` (or its snake_case
    spelling ``request_id``) when it is a non-empty string, otherwise from
    the request-id middleware (header or UUID4).
    """

    context = dict(raw_context or {})
    snake_case_id = context.pop("request_id", None)
    request_id = context.get("requestId")
    if not isinstance(request_id, str) or not request_id:
        request_id = snake_case_id
    if not isinstance(request_id, str) or not request_id:
        request_id = request.state.request_id
    context["requestId"] = request_id
    if "http" not in context:
        context["http"] = _http_context(request)
    return context


@router.post("/invoke")
async def invoke(request: Request, body: Any = Body(...)) -> JSONResponse:
    """Invoke an endpoint of a registered service.

    Success frames are returned with status 200 and error frames with the
    status mapped from their code; raw results are returned as the bare JSON
    payload. Raw-mode failures and lookup failures are rendered by the global
    exception handlers.

    Raises:
        ValidationError: 400 when the body is not a valid invoke request.
        UnknownServiceError: 404 when the service is not registered.
    """
    try:
        invoke_request = InvokeRequest.model_validate(body)
    except pydantic.ValidationError as exc:
        raise ValidationError(format_validation_error(exc), request.state.request_id) from exc

    context = build_request_context(request, invoke_request.context)
    service = get_services_host(request).get_service(invoke_request.service_name)

    logger.info(
        "invoke.dispatch",
        extra={"service_name": invoke_request.service_name, "request_id": context["requestId"]},
    )
    result = await service.handle(invoke_request.request, context)

    if isinstance(result, ErrorFrame):
        return JSONResponse(status_code=status_for_code(result.error.code), content=result.to_wire())
    if isinstance(result, SuccessFrame):
        return JSONResponse(content=result.to_wire())
    return JSONResponse(content=jsonable_encoder(result))
