"""Process entry point: start both listeners around one key backend.

Usage:
    python -m keygate.run      # reads configuration from the environment
    keygate                    # via pyproject.toml [project.scripts]

Startup order:
  1. logging
  2. key backend and rate limiter (invalid configuration fails here)
  3. admin listener on SERVER_LOCAL_ADDR (background thread)
  4. public listener on SERVER_LISTEN_ADDR (blocks until stopped)

When the public listener stops, including on SIGINT or SIGTERM, the admin
listener is closed.
"""

from __future__ import annotations

import logging

from keygate.adapters.keystore import create_key_backend
from keygate.core.app_factory import create_admin_app, create_public_app
from keygate.core.config import settings
from keygate.core.logging import configure_logging
from keygate.server import serve_public, start_admin_server

logger = logging.getLogger(__name__)


def main() -> None:
    """Start the admin and public listeners.

    Raises:
        OSError: If either listen address cannot be bound.
        ValueError: If the rate limit configuration is invalid.
    """
    configure_logging(settings.log)
    logger.info(
        "keygate.starting",
        extra={
            "listen_addr": settings.server.listen_addr,
            "local_addr": settings.server.local_addr,
            "backend": settings.backend.provider,
        },
    )

    backend = create_key_backend()
    public_app = create_public_app(backend)
    admin_app = create_admin_app(backend)

    admin = start_admin_server(admin_app, settings.server.local_addr)
    try:
        serve_public(public_app, settings.server.listen_addr)
    finally:
        admin.close()


if __name__ == "__main__":
    main()
