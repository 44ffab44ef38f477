from __future__ import annotations

import urllib.parse as _url
from typing import Final, TypedDict

from ._utils import (
    ConfigError,
    LogFormat,
    LogLevel,
    _optional_env_str,
    _parse_float,
    _parse_int,
    _parse_log_format,
    _parse_log_level,
)

DEFAULT_ENDPOINT: Final[str] = "ws://localhost:8000/ws/builds"
BUILDS_WS_PATH: Final[str] = "/ws/builds"

_WS_SCHEMES: Final[dict[str, str]] = {"http": "ws", "https": "wss"}


class LiveUpdateSettings(TypedDict):
    endpoint: str
    max_reconnect_attempts: int
    reconnect_base_delay_ms: int
    heartbeat_seconds: float | None
    log_level: LogLevel
    log_format: LogFormat


def derive_ws_endpoint(api_base_url: str) -> str:
    """Map the REST API base URL onto the build event stream address.

    ``https://host:8080/api`` becomes ``wss://host:8080/ws/builds``.
    """
    parts = _url.urlsplit(api_base_url)
    scheme = _WS_SCHEMES.get(parts.scheme.lower())
    if scheme is None:
        raise ConfigError(f"API base URL must use http or https, got {api_base_url!r}")
    if parts.netloc == "":
        raise ConfigError(f"API base URL has no host: {api_base_url!r}")
    return _url.urlunsplit((scheme, parts.netloc, BUILDS_WS_PATH, "", ""))


def resolve_endpoint(*, override: str | None, api_base_url: str | None) -> str:
    """Pick the endpoint: explicit override, else derived from the API host, else the default."""
    if override is not None:
        return override
    if api_base_url is not None:
        return derive_ws_endpoint(api_base_url)
    return DEFAULT_ENDPOINT


def load_live_update_settings() -> LiveUpdateSettings:
    endpoint = resolve_endpoint(
        override=_optional_env_str("ZUPF_BUILDS_WS_URL"),
        api_base_url=_optional_env_str("ZUPF_API_BASE_URL"),
    )
    heartbeat = _parse_float("ZUPF_BUILDS_WS_HEARTBEAT_SECONDS", 30.0)
    return {
        "endpoint": endpoint,
        "max_reconnect_attempts": _parse_int("ZUPF_BUILDS_WS_MAX_RECONNECT_ATTEMPTS", 5),
        "reconnect_base_delay_ms": _parse_int("ZUPF_BUILDS_WS_RECONNECT_DELAY_MS", 1000),
        "heartbeat_seconds": heartbeat if heartbeat > 0 else None,
        "log_level": _parse_log_level("ZUPF_LOG_LEVEL", "INFO"),
        "log_format": _parse_log_format("ZUPF_LOG_FORMAT", "text"),
    }


__all__ = [
    "BUILDS_WS_PATH",
    "DEFAULT_ENDPOINT",
    "LiveUpdateSettings",
    "derive_ws_endpoint",
    "load_live_update_settings",
    "resolve_endpoint",
]
