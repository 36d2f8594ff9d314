from __future__ import annotations

from keygate.api.routes.certs import router as certs_router
from keygate.api.routes.health import router as health_router
from keygate.api.routes.secrets import router as secrets_router

__all__ = ["certs_router", "health_router", "secrets_router"]
