"""Diagnostic logging for the live-update client and the watch CLI.

Modules log through ``get_logger(__name__)`` and attach structured context
with ``extra=`` using the names in ``STANDARD_FIELDS``. ``setup_logging``
installs a single stdout handler on the root logger, rendering either JSON
lines or text.
"""

from __future__ import annotations

import logging
import os
import socket
import sys
from datetime import UTC, datetime
from typing import Final, Literal

from zupf_builds.json_utils import JSONValue, dump_json_str

LogFormat = Literal["json", "text"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Structured fields the live-update client attaches via ``extra=``.
STANDARD_FIELDS: Final[tuple[str, ...]] = (
    "build_id",
    "endpoint",
    "attempt",
    "max_attempts",
    "delay_ms",
)

_LEVELS: Final[dict[LogLevel, int]] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _record_field(record: logging.LogRecord, name: str) -> JSONValue | None:
    """Return a JSON-safe record attribute, or None when absent or not a scalar."""
    value: object = record.__dict__.get(name)
    if isinstance(value, (str, int, float, bool)):
        return value
    return None


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Keys: ``timestamp`` (UTC, ISO 8601), ``level``, ``logger``, ``message``,
    the static fields, any present extra or standard field, and ``exc_info``.
    """

    def __init__(self, *, static_fields: dict[str, str], extra_field_names: list[str]) -> None:
        super().__init__()
        self._static = static_fields
        self._field_names = tuple(dict.fromkeys((*extra_field_names, *STANDARD_FIELDS)))

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=UTC)
        payload: dict[str, JSONValue] = {
            "timestamp": created.strftime("%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(self._static)
        for name in self._field_names:
            if name in payload:
                continue
            value = _record_field(record, name)
            if value is not None:
                payload[name] = value
        if record.exc_info is not None:
            payload["exc_info"] = self.formatException(record.exc_info)
        return dump_json_str(payload, compact=False)


class TextFormatter(logging.Formatter):
    """``[time] [LEVEL] [logger] key=value ... message`` for terminals."""

    def __init__(self, *, extra_fields: list[str]) -> None:
        super().__init__()
        self._extra_fields = extra_fields

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            f"[{self.formatTime(record, '%Y-%m-%d %H:%M:%S')}]",
            f"[{record.levelname}]",
            f"[{record.name}]",
        ]
        for name in self._extra_fields:
            value = _record_field(record, name)
            if value is not None:
                parts.append(f"{name}={value}")
        parts.append(record.getMessage())
        line = " ".join(parts)
        if record.exc_info is not None:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _default_instance_id() -> str:
    return f"{socket.gethostname().split('.')[0]}-{os.getpid()}"


def setup_logging(
    *,
    level: LogLevel,
    format_mode: LogFormat,
    service_name: str,
    instance_id: str | None,
    extra_fields: list[str] | None,
) -> logging.Logger:
    """Configure the root logger with JSON or text output on stdout.

    Existing root handlers are removed, so calling this twice leaves one handler.

    Args:
        level: Root log level.
        format_mode: ``json`` for collectors, ``text`` for terminals.
        service_name: Added to every JSON record as ``service``.
        instance_id: Added as ``instance_id``; hostname and pid when None.
        extra_fields: Record attributes to render in addition to the standard ones.

    Example:
        >>> logger = setup_logging(
        ...     level="INFO",
        ...     format_mode="text",
        ...     service_name="zupf-builds",
        ...     instance_id=None,
        ...     extra_fields=["build_id"],
        ... )
        >>> logger.info("Watching builds")
    """
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(_LEVELS[level])

    names = list(extra_fields) if extra_fields is not None else []
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.DEBUG)
    if format_mode == "json":
        static = {
            "service": service_name,
            "instance_id": instance_id if instance_id is not None else _default_instance_id(),
        }
        handler.setFormatter(JsonFormatter(static_fields=static, extra_field_names=names))
    else:
        handler.setFormatter(TextFormatter(extra_fields=names))
    root.addHandler(handler)

    # aiohttp logs every frame at DEBUG
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    return root


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance by name (typically __name__)."""
    return logging.getLogger(name)


__all__ = [
    "STANDARD_FIELDS",
    "JsonFormatter",
    "LogFormat",
    "LogLevel",
    "TextFormatter",
    "get_logger",
    "setup_logging",
]
