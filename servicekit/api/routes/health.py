from __future__ import annotations

from fastapi import APIRouter, Request

from servicekit.schemas.invoke import HealthResponse

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
def health_check(request: Request) -> HealthResponse:
    """Health check endpoint.

    Returns:
        HealthResponse: "ok" plus the names of the registered services.
    """

    return HealthResponse(services=request.app.state.services_host.list_services())
