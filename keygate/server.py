"""Listener lifecycle for the public and admin servers.

Both listeners are uvicorn servers over sockets bound here, so a bind
failure raises ``OSError`` immediately at startup instead of surfacing later
from inside the server loop.

- The admin server runs on a daemon thread; ``start_admin_server`` returns a
  handle whose ``close()`` stops it deterministically.
- The public server blocks the calling thread until it is stopped, then
  logs how it exited.

There is no coordinated drain between the two.
"""

from __future__ import annotations

import contextlib
import logging
import signal
import socket
import threading
import time
from types import FrameType
from typing import Iterator

import uvicorn
from fastapi import FastAPI

logger = logging.getLogger(__name__)

# HTTP keep-alive timeout in seconds; idle connections are not held open long.
UVICORN_TIMEOUT_KEEP_ALIVE: int = 5

EXIT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def parse_address(addr: str) -> tuple[str, int]:
    """Split a ``host:port`` address; an empty host means all interfaces.

    Examples:
        >>> parse_address(":8080")
        ('0.0.0.0', 8080)
        >>> parse_address("127.0.0.1:8081")
        ('127.0.0.1', 8081)
        >>> parse_address("[::1]:9000")
        ('::1', 9000)

    Raises:
        ValueError: If the address has no valid port.
    """
    host, sep, port_text = addr.rpartition(":")
    if not sep or not port_text.isdigit():
        raise ValueError(f"invalid listen address {addr!r}: expected host:port")

    port = int(port_text)
    if port > 65535:
        raise ValueError(f"invalid listen address {addr!r}: port out of range")

    host = host.strip("[]") or "0.0.0.0"
    return host, port


def bind_listener(addr: str) -> socket.socket:
    """Bind and listen on ``addr``.

    Raises:
        OSError: If the address cannot be bound.
    """
    host, port = parse_address(addr)
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    return socket.create_server((host, port), family=family)


class KeygateServer(uvicorn.Server):
    """uvicorn server that keeps a shutdown signal to itself.

    uvicorn re-delivers a captured SIGINT or SIGTERM once it has shut down,
    which would kill the process before the exit is logged and before the
    admin listener is closed. Here the signal only stops the server and is
    remembered in ``exit_signal``.
    """

    def __init__(self, config: uvicorn.Config) -> None:
        super().__init__(config)
        self.exit_signal: int | None = None

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        # Signal handlers can only be installed from the main thread
        if threading.current_thread() is not threading.main_thread():
            yield
            return

        previous = {sig: signal.signal(sig, self.handle_exit) for sig in EXIT_SIGNALS}
        try:
            yield
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)

    def handle_exit(self, sig: int, frame: FrameType | None) -> None:
        if self.exit_signal is None:
            self.exit_signal = sig
        super().handle_exit(sig, frame)


def _exit_reason(server: uvicorn.Server) -> str:
    sig = getattr(server, "exit_signal", None)
    if sig is None:
        return "server closed"
    return f"signal {signal.Signals(sig).name}"


def _build_server(app: FastAPI) -> KeygateServer:
    config = uvicorn.Config(
        app,
        # Logging is configured by keygate.core.logging; keep uvicorn's defaults out.
        log_config=None,
        lifespan="off",
        timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
    )
    return KeygateServer(config)


class BackgroundServer:
    """A uvicorn server running on a daemon thread over a pre-bound socket."""

    def __init__(self, server: KeygateServer, sock: socket.socket, *, name: str = "admin") -> None:
        self._name = name
        self._server = server
        self._sock = sock
        self._address = sock.getsockname()[:2]
        self._thread = threading.Thread(
            target=self._run,
            name=f"keygate-{name}",
            daemon=True,
        )
        self._closed = False

    @property
    def address(self) -> tuple[str, int]:
        """Bound ``(host, port)``, useful when binding to port 0."""
        return self._address

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def start(self) -> None:
        self._thread.start()

    def wait_started(self, timeout: float = 5.0) -> bool:
        """Block until the server accepts connections or ``timeout`` elapses."""
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if self._server.started:
                return True
            if not self._thread.is_alive():
                return False
            time.sleep(0.01)
        return self._server.started

    def close(self, timeout: float = 5.0) -> None:
        """Stop accepting calls and wait for the server thread to finish."""
        if self._closed:
            return
        self._closed = True
        self._server.should_exit = True
        if self._thread.is_alive():
            self._thread.join(timeout=timeout)
        self._sock.close()
        logger.info(
            f"{self._name}_server.closed",
            extra={"address": f"{self._address[0]}:{self._address[1]}"},
        )

    def __call__(self) -> None:
        self.close()

    def _run(self) -> None:
        try:
            self._server.run(sockets=[self._sock])
        except Exception as exc:
            logger.error(
                f"{self._name}_server.exiting",
                extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
            )
            raise


def start_admin_server(app: FastAPI, addr: str) -> BackgroundServer:
    """Bind ``addr`` and serve the admin app from a background thread.

    Raises:
        OSError: If the address cannot be bound.
    """
    sock = bind_listener(addr)
    handle = BackgroundServer(_build_server(app), sock)
    handle.start()
    logger.info("admin_server.serving", extra={"address": addr})
    return handle


def serve_public(app: FastAPI, addr: str) -> None:
    """Serve the public app on ``addr`` until the server is stopped.

    Blocks the calling thread. SIGINT and SIGTERM stop the server gracefully
    and return normally. The terminal outcome is always logged, including a
    normal shutdown.

    Raises:
        OSError: If the address cannot be bound.
    """
    sock = bind_listener(addr)
    server = _build_server(app)

    logger.info("http_server.serving", extra={"address": addr})
    try:
        server.run(sockets=[sock])
    except BaseException as exc:
        logger.error(
            "http_server.exiting",
            extra={"address": addr, "error_type": type(exc).__name__, "error_msg": str(exc)},
        )
        raise
    finally:
        sock.close()

    logger.info("http_server.exiting", extra={"address": addr, "reason": _exit_reason(server)})
