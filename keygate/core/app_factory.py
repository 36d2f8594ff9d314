"""Application factories for the two listeners.

The public and admin apps are separate ASGI applications so they can be
bound to different addresses and never share a network boundary. Every
dependency (backend, limiter, timeouts) is passed in and stored on
``app.state``, so tests can build either app around test doubles.
"""

from __future__ import annotations

from fastapi import FastAPI

from keygate import __version__
from keygate.adapters.keystore.base import AdminBackend, PublicBackend
from keygate.adapters.rate_limit import AbstractRateLimiter
from keygate.api.admin import AdminProcedures, RPCDispatcher
from keygate.api.admin import router as admin_router
from keygate.api.routes import certs_router, health_router, secrets_router
from keygate.core.config import settings
from keygate.core.exception_handlers import setup_exception_handlers
from keygate.core.middleware import request_id_middleware
from keygate.core.rate_limit import build_rate_limiter

_DEFAULT = object()


def create_public_app(
    backend: PublicBackend,
    *,
    rate_limiter: AbstractRateLimiter | None | object = _DEFAULT,
    read_timeout_seconds: float | None = None,
    write_timeout_seconds: float | None = None,
) -> FastAPI:
    """Create the untrusted-facing HTTP application.

    Args:
        backend: Provider of certificates, key names and secret operations.
        rate_limiter: Limiter for ``/v1/verify``. Defaults to a GCRA limiter
            built from settings (or none when rate limiting is disabled);
            pass ``None`` explicitly to disable it.
        read_timeout_seconds: Body read bound; defaults to settings.
        write_timeout_seconds: Backend call bound; defaults to settings.

    Returns:
        Configured FastAPI app.
    """
    if rate_limiter is _DEFAULT:
        rate_limiter = build_rate_limiter() if settings.rate_limit.enabled else None

    app = FastAPI(
        title="keygate",
        description="Certificates, secret verification/rotation and active key name.",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.state.backend = backend
    app.state.rate_limiter = rate_limiter
    app.state.read_timeout_seconds = read_timeout_seconds or settings.server.read_timeout_seconds
    app.state.write_timeout_seconds = write_timeout_seconds or settings.server.write_timeout_seconds

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(health_router)
    app.include_router(secrets_router, prefix="/v1")
    app.include_router(certs_router, prefix="/v1")

    return app


def create_admin_app(backend: AdminBackend) -> FastAPI:
    """Create the trusted admin RPC application."""

    app = FastAPI(
        title="keygate-admin",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.state.rpc_dispatcher = RPCDispatcher(AdminProcedures(backend).registry())

    app.middleware("http")(request_id_middleware)

    app.include_router(admin_router)

    return app
