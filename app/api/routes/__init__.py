from __future__ import annotations

from app.api.routes.health import router as health_router
from app.api.routes.monitoring import router as monitoring_router
from app.api.routes.whoami import router as whoami_router

__all__ = ["health_router", "monitoring_router", "whoami_router"]
