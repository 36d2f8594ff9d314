"""Structured logging for both listeners.

Log calls name an event and attach fields through ``extra``:

    logger.error("verify.backend_failed", extra={"operation": "check_secret"})

With the JSON format each record becomes one line holding ``ts``, ``level``,
``logger``, ``event``, the request id of the public request being served,
and the extras. Fields that can carry secret material are masked before
formatting and raw bytes are reduced to their length.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from keygate.core.config import LogSettings, settings

_request_id_var: ContextVar[str | None] = ContextVar("keygate_request_id", default=None)

REDACTED = "[REDACTED]"

SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        "secret",
        "new_secret",
        "payload",
        "body",
        "private_key",
        "hmac_key",
        "token",
        "password",
        "authorization",
        "cookie",
        "set-cookie",
    }
)

# Attributes every LogRecord has; anything else on a record came from ``extra``
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}

_PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def set_request_id(request_id: str | None) -> None:
    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def hash_identifier(value: str) -> str:
    """Short stable digest of an identifier that must not be logged verbatim.

    Rate limit keys embed forwarded client addresses, so they are logged by
    digest only.
    """
    return hashlib.sha256(value.encode("utf-8", errors="replace")).hexdigest()[:16]


class Redactor:
    """Masks secret-bearing fields in log extras."""

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        keys = SENSITIVE_KEYS_DEFAULT if sensitive_keys is None else sensitive_keys
        self.sensitive_keys = frozenset(k.lower() for k in keys)

    def is_sensitive(self, key: Any) -> bool:
        return isinstance(key, str) and key.lower() in self.sensitive_keys

    def scrub(self, value: Any) -> Any:
        if isinstance(value, (bytes, bytearray)):
            # Raw bytes here are secret payloads or certificate material
            return f"<{len(value)} bytes>"
        if isinstance(value, Mapping):
            return {
                k: REDACTED if self.is_sensitive(k) else self.scrub(v)
                for k, v in value.items()
            }
        if isinstance(value, (list, tuple)):
            return type(value)(self.scrub(v) for v in value)
        return value

    def extras(self, record: logging.LogRecord) -> dict[str, Any]:
        """Return the scrubbed ``extra`` fields of ``record``."""
        fields: dict[str, Any] = {}
        for key, value in vars(record).items():
            if key in _RECORD_ATTRS or key.startswith("_"):
                continue
            fields[key] = REDACTED if self.is_sensitive(key) else self.scrub(value)
        return fields


class RequestIdFilter(logging.Filter):
    """Stamp records with the request id of the request being served."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class SensitiveDataFilter(logging.Filter):
    """Scrub extras in place so every formatter sees masked values."""

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.redactor = Redactor(sensitive_keys)

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in self.redactor.extras(record).items():
            setattr(record, key, value)
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def __init__(self, *, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.redactor = Redactor(sensitive_keys)

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            line["request_id"] = request_id

        line.update(self.redactor.extras(record))

        if record.exc_info:
            line["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(line, default=str)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    path = Path(log_settings.file_path or "logs/keygate.log")
    path.parent.mkdir(parents=True, exist_ok=True)
    if log_settings.max_bytes:
        return RotatingFileHandler(
            path,
            maxBytes=log_settings.max_bytes,
            backupCount=log_settings.backup_count,
            encoding="utf-8",
        )
    return logging.FileHandler(path, encoding="utf-8")


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Install the keygate handler on the root logger.

    uvicorn's own loggers are reset to propagate to it, so server lifecycle
    lines share the same format.
    """
    cfg = log_settings or settings.log

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    if cfg.format.lower() == "plain":
        handler.setFormatter(logging.Formatter(_PLAIN_FORMAT))
    else:
        handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    for name in _UVICORN_LOGGERS:
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True
