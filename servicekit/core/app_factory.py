"""Application factory for the FastAPI services host.

Centralizes app construction (metadata, middleware, handlers, routers) so
tests can build an app around their own ``ServicesHost``.
"""

from __future__ import annotations

from fastapi import FastAPI

from servicekit.api.routes import health_router, invoke_router
from servicekit.core.config import settings
from servicekit.core.exception_handlers import setup_exception_handlers
from servicekit.core.middleware import request_id_middleware
from servicekit.services.host import ServicesHost


def create_app(services_host: ServicesHost) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        services_host: Registry of the services this process serves.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    app = FastAPI(
        title=settings.host.title,
        description=(
            "Invoke any registered service endpoint by name through a uniform "
            "envelope. Responses are framed ({status, requestId, data|error}) "
            "or raw, as requested by the caller."
        ),
        version="0.1.0",
    )
    app.state.services_host = services_host

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(invoke_router)
    app.include_router(health_router)

    return app
