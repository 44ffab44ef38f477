from __future__ import annotations

from typing import Final, Literal

from . import _test_hooks

# Must match zupf_builds.logging.LogLevel / LogFormat
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["json", "text"]

_LOG_LEVELS: Final[tuple[LogLevel, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(RuntimeError):
    """Raised when an environment variable holds an unusable value."""


def _optional_env_str(key: str) -> str | None:
    value = _test_hooks.get_env(key)
    if value is None:
        return None
    trimmed = value.strip()
    if trimmed == "":
        return None
    return trimmed


def _parse_str(key: str, default: str) -> str:
    """Read a trimmed string; blank or unset values yield ``default``."""
    val = _optional_env_str(key)
    return val if val is not None else default


def _parse_int(key: str, default: int, *, minimum: int = 0) -> int:
    val = _optional_env_str(key)
    if val is None:
        return default
    try:
        parsed = int(val)
    except ValueError as exc:
        raise ConfigError(f"Env var {key} must be an integer, got {val!r}") from exc
    if parsed < minimum:
        raise ConfigError(f"Env var {key} must be >= {minimum}, got {parsed}")
    return parsed


def _parse_float(key: str, default: float, *, minimum: float = 0.0) -> float:
    val = _optional_env_str(key)
    if val is None:
        return default
    try:
        parsed = float(val)
    except ValueError as exc:
        raise ConfigError(f"Env var {key} must be a number, got {val!r}") from exc
    if parsed < minimum:
        raise ConfigError(f"Env var {key} must be >= {minimum}, got {parsed}")
    return parsed


def _parse_log_level(key: str, default: LogLevel) -> LogLevel:
    """Parse a level name case-insensitively; unknown names fall back to ``default``."""
    val = _optional_env_str(key)
    if val is None:
        return default
    upper_val = val.upper()
    for level in _LOG_LEVELS:
        if upper_val == level:
            return level
    return default


def _parse_log_format(key: str, default: LogFormat) -> LogFormat:
    val = _optional_env_str(key)
    if val is None:
        return default
    lowered = val.lower()
    if lowered == "json":
        return "json"
    if lowered == "text":
        return "text"
    raise ConfigError(f"Env var {key} must be 'json' or 'text', got {val!r}")


__all__ = [
    "ConfigError",
    "LogFormat",
    "LogLevel",
    "_optional_env_str",
    "_parse_float",
    "_parse_int",
    "_parse_log_format",
    "_parse_log_level",
    "_parse_str",
]
