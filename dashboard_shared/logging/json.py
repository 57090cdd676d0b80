"""Unified JSON logging utilities.

Provides a single CustomJsonFormatter and configure_logging used by the
engine service. Context passed through ``extra={...}`` ends up as top-level
keys of the emitted JSON object, after sensitive keys are redacted. Sets
of ids are logged as sorted lists and long lists are cut to a sample.
"""

from __future__ import annotations

import json
import logging
import os
import socket
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Iterable

# LogRecord attributes that carry no information once the message is rendered
_NOISY_ATTRS = frozenset({"args", "msg", "relativeCreated", "msecs", "created"})

# Id collections longer than this are logged as a sample plus a total
MAX_LOGGED_ITEMS = 20


def _compact(value: Any) -> Any:
    """Make set-like context JSON friendly and keep id lists short."""
    if isinstance(value, (set, frozenset)):
        value = sorted(value, key=str)
    if isinstance(value, (list, tuple)):
        if len(value) > MAX_LOGGED_ITEMS:
            return {"sample": list(value[:MAX_LOGGED_ITEMS]), "total": len(value)}
        return list(value)
    return value


class SensitiveDataFilter:
    """Redacts values whose key matches a pattern, at any nesting depth."""

    def __init__(self, patterns: Iterable[str]):
        self.patterns = [p.lower() for p in patterns]

    def filter(self, data: Dict[str, Any]) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for key, value in data.items():
            if self._sensitive(key):
                out[key] = "[REDACTED]"
            elif isinstance(value, dict):
                out[key] = self.filter(value)
            else:
                out[key] = value
        return out

    def _sensitive(self, key: str) -> bool:
        lowered = key.lower()
        return any(p in lowered for p in self.patterns)


class CustomJsonFormatter(logging.Formatter):  # type: ignore[misc]
    def __init__(
        self,
        service: str,
        environment: str,
        redaction_patterns: Iterable[str],
    ):
        super().__init__()
        self.static_fields = {
            "service": service,
            "environment": environment,
            "hostname": socket.gethostname(),
            "pid": os.getpid(),
        }
        self.sensitive_filter = SensitiveDataFilter(redaction_patterns)

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        data = {
            k: _compact(v)
            for k, v in record.__dict__.items()
            if k not in _NOISY_ATTRS and k != "exc_info"
        }
        data["message"] = record.getMessage()
        data["timestamp"] = datetime.fromtimestamp(
            record.created, tz=timezone.utc
        ).isoformat()
        data.update(self.static_fields)
        if record.exc_info:
            data["exception"] = self.format_exception(record.exc_info)
        return json.dumps(self.sensitive_filter.filter(data), default=str)

    @staticmethod
    def format_exception(exc_info) -> Dict[str, Any]:
        et, ev, tb = exc_info
        return {
            "type": et.__name__,
            "message": str(ev),
            "stack": traceback.format_tb(tb),
        }


def configure_logging(
    service: str,
    environment: str,
    level: str,
    redaction_patterns: Iterable[str],
) -> logging.Logger:
    """Route every logger through one JSON handler on stderr."""
    handler = logging.StreamHandler()
    handler.setFormatter(CustomJsonFormatter(service, environment, redaction_patterns))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    # quiet per-request INFO lines from the HTTP client
    logging.getLogger("httpx").setLevel(logging.WARNING)

    from .logger import mark_configured

    mark_configured()
    return root


__all__ = [
    "CustomJsonFormatter",
    "configure_logging",
    "SensitiveDataFilter",
]
