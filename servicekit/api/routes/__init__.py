from __future__ import annotations

from servicekit.api.routes.health import router as health_router
from servicekit.api.routes.invoke import router as invoke_router

__all__ = ["health_router", "invoke_router"]
