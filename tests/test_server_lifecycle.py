"""Lifecycle tests with real sockets.

The admin listener is started on an ephemeral port and driven through the
admin client over HTTP, then closed through its handle.
"""

import logging
import os
import signal
import socket
import subprocess
import sys
import time
from pathlib import Path
from unittest.mock import MagicMock

import httpx
import pytest

from keygate import server as server_module
from keygate.clients.admin import AdminClient, AdminRPCError
from keygate.core.app_factory import create_admin_app, create_public_app
from keygate.server import bind_listener, parse_address, serve_public, start_admin_server


@pytest.mark.parametrize(
    ("addr", "expected"),
    [
        (":8080", ("0.0.0.0", 8080)),
        ("127.0.0.1:8081", ("127.0.0.1", 8081)),
        ("localhost:0", ("localhost", 0)),
        ("[::1]:9000", ("::1", 9000)),
    ],
)
def test_parse_address(addr: str, expected: tuple) -> None:
    assert parse_address(addr) == expected


@pytest.mark.parametrize("addr", ["8080", "host:", "host:http", ":70000"])
def test_parse_address_rejects_invalid(addr: str) -> None:
    with pytest.raises(ValueError):
        parse_address(addr)


@pytest.fixture
def occupied_port():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(1)
    yield sock.getsockname()[1]
    sock.close()


def test_bind_failure_is_raised(occupied_port: int) -> None:
    with pytest.raises(OSError):
        bind_listener(f"127.0.0.1:{occupied_port}")


def test_admin_bind_failure_is_raised_at_startup(occupied_port: int, mock_backend: MagicMock) -> None:
    with pytest.raises(OSError):
        start_admin_server(create_admin_app(mock_backend), f"127.0.0.1:{occupied_port}")


def test_public_bind_failure_is_raised_at_startup(occupied_port: int, mock_backend: MagicMock) -> None:
    with pytest.raises(OSError):
        serve_public(create_public_app(mock_backend, rate_limiter=None), f"127.0.0.1:{occupied_port}")


def test_admin_server_serves_until_closed(mock_backend: MagicMock) -> None:
    mock_backend.report_blacklist.return_value = True
    handle = start_admin_server(create_admin_app(mock_backend), "127.0.0.1:0")
    try:
        assert handle.wait_started(timeout=10.0)
        host, port = handle.address
        base_url = f"http://{host}:{port}"

        with AdminClient(base_url, timeout_seconds=5.0) as client:
            assert client.blacklist("host-123") is True
            client.trigger()

        mock_backend.report_blacklist.assert_called_once_with("host-123")
        mock_backend.trigger_generation.assert_called_once_with()
    finally:
        handle.close()

    assert handle.running is False
    with AdminClient(base_url, timeout_seconds=1.0) as client:
        with pytest.raises(AdminRPCError):
            client.trigger()


def test_close_is_idempotent(mock_backend: MagicMock) -> None:
    handle = start_admin_server(create_admin_app(mock_backend), "127.0.0.1:0")
    handle.wait_started(timeout=10.0)

    handle.close()
    handle.close()

    assert handle.running is False


def test_handle_is_callable_close(mock_backend: MagicMock) -> None:
    handle = start_admin_server(create_admin_app(mock_backend), "127.0.0.1:0")
    assert handle.wait_started(timeout=10.0)

    handle()

    assert handle.running is False
    handle.close()


def test_public_server_logs_normal_exit(
    mock_backend: MagicMock,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    fake_server = MagicMock()
    fake_server.exit_signal = None
    monkeypatch.setattr(server_module, "_build_server", lambda app: fake_server)

    with caplog.at_level(logging.INFO, logger="keygate.server"):
        serve_public(create_public_app(mock_backend, rate_limiter=None), "127.0.0.1:0")

    fake_server.run.assert_called_once()
    messages = [record.getMessage() for record in caplog.records]
    assert "http_server.serving" in messages
    exiting = [record for record in caplog.records if record.getMessage() == "http_server.exiting"]
    assert exiting[0].reason == "server closed"


def test_public_server_logs_stop_signal(
    mock_backend: MagicMock,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    fake_server = MagicMock()
    fake_server.exit_signal = signal.SIGTERM
    monkeypatch.setattr(server_module, "_build_server", lambda app: fake_server)

    with caplog.at_level(logging.INFO, logger="keygate.server"):
        serve_public(create_public_app(mock_backend, rate_limiter=None), "127.0.0.1:0")

    exiting = [record for record in caplog.records if record.getMessage() == "http_server.exiting"]
    assert exiting[0].levelno == logging.INFO
    assert exiting[0].reason == "signal SIGTERM"


def test_public_server_logs_and_raises_on_failure(
    mock_backend: MagicMock,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    fake_server = MagicMock()
    fake_server.run.side_effect = RuntimeError("listener died")
    monkeypatch.setattr(server_module, "_build_server", lambda app: fake_server)

    with caplog.at_level(logging.INFO, logger="keygate.server"):
        with pytest.raises(RuntimeError):
            serve_public(create_public_app(mock_backend, rate_limiter=None), "127.0.0.1:0")

    exiting = [record for record in caplog.records if record.getMessage() == "http_server.exiting"]
    assert exiting and exiting[0].levelno == logging.ERROR


def test_public_server_answers_over_http(mock_backend: MagicMock) -> None:
    """Serve the public app from a background thread over a real socket."""
    handle = server_module.BackgroundServer(
        server_module._build_server(create_public_app(mock_backend, rate_limiter=None)),
        bind_listener("127.0.0.1:0"),
        name="public",
    )
    handle.start()
    try:
        assert handle.wait_started(timeout=10.0)
        host, port = handle.address
        response = httpx.get(f"http://{host}:{port}/healthz", timeout=5.0)
    finally:
        handle.close()

    assert response.status_code == 200
    assert response.text == "ok\n"


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def _wait_until_healthy(proc: subprocess.Popen, url: str, timeout: float = 15.0) -> None:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if proc.poll() is not None:
            raise AssertionError(f"keygate exited early with code {proc.returncode}")
        try:
            if httpx.get(url, timeout=1.0).status_code == 200:
                return
        except httpx.HTTPError:
            pass
        time.sleep(0.1)
    raise AssertionError("keygate did not become healthy")


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
@pytest.mark.parametrize("stop_signal", [signal.SIGTERM, signal.SIGINT])
def test_main_shuts_down_cleanly_on_signal(stop_signal: signal.Signals) -> None:
    """Run the real entry point, stop it with a signal and read its log."""
    public_port, admin_port = _free_port(), _free_port()
    project_root = Path(__file__).resolve().parents[1]
    env = {
        **os.environ,
        "APP_ENV": "testing",
        "PYTHONPATH": os.pathsep.join(filter(None, [str(project_root), os.environ.get("PYTHONPATH")])),
        "SERVER_LISTEN_ADDR": f"127.0.0.1:{public_port}",
        "SERVER_LOCAL_ADDR": f"127.0.0.1:{admin_port}",
        "LOG_FORMAT": "plain",
        "LOG_LEVEL": "INFO",
        "LOG_OUTPUT": "stdout",
    }
    proc = subprocess.Popen(
        [sys.executable, "-m", "keygate.run"],
        cwd=project_root,
        env=env,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
    )
    try:
        _wait_until_healthy(proc, f"http://127.0.0.1:{public_port}/healthz")
        proc.send_signal(stop_signal)
        output, _ = proc.communicate(timeout=20)
    finally:
        if proc.poll() is None:
            proc.kill()
            proc.communicate()

    assert proc.returncode == 0, output
    assert "http_server.exiting" in output
    assert "admin_server.closed" in output
    assert output.index("http_server.exiting") < output.index("admin_server.closed")
