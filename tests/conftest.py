"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any keygate import so the global
settings object is built from test values.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("RATE_LIMIT_ENABLED", "true")

from unittest.mock import MagicMock

import pytest

from keygate.adapters.keystore import KeyBackend
from keygate.adapters.rate_limit import GCRARateLimiter, MemoryBucketStore


class FakeClock:
    """Deterministic nanosecond clock for rate limiter tests."""

    def __init__(self, start_ns: int = 1_000 * 1_000_000_000) -> None:
        self.current = start_ns

    def __call__(self) -> int:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += int(seconds * 1_000_000_000)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> GCRARateLimiter:
    """Reference quota: 2 requests/second with a burst of 2."""
    return GCRARateLimiter(MemoryBucketStore(max_keys=65536, clock=clock), rate_per_second=2, burst=2)


@pytest.fixture
def mock_backend() -> MagicMock:
    """Backend double with every capability mocked."""
    backend = MagicMock(spec=KeyBackend)
    backend.active_key_name.return_value = "active-key"
    backend.check_secret.return_value = True
    backend.rotate_secret.return_value = b"new-secret-bytes"
    backend.lookup_certificates.return_value = []
    backend.report_blacklist.return_value = False
    backend.trigger_generation.return_value = None
    return backend
