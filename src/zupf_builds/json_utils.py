"""Strict JSON helpers for wire payloads.

Parsing returns ``JSONValue``; callers narrow it with ``narrow_json_to_dict``
and pull typed fields with ``require_str`` and the ``optional_*`` helpers.
Shape problems raise ``JSONTypeError``, unparseable input ``InvalidJsonError``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from json import JSONDecodeError
from typing import Protocol

JSONValue = dict[str, "JSONValue"] | list["JSONValue"] | str | int | float | bool | None
JSONObject = dict[str, JSONValue]

# Accepts TypedDicts (as Mappings) as well as plain JSON values.
_Serializable = str | int | float | bool | None | Mapping[str, object] | Sequence[object]


class InvalidJsonError(ValueError):
    """Raised when a payload cannot be parsed as JSON."""


class JSONTypeError(TypeError):
    """Raised when a JSON value does not have the expected shape."""


class _Loads(Protocol):
    def __call__(self, s: str) -> JSONValue: ...


class _Dumps(Protocol):
    def __call__(
        self, obj: _Serializable, *, separators: tuple[str, str] | None = ...
    ) -> str: ...


def _json_module_loads() -> _Loads:
    loads: _Loads = __import__("json").loads
    return loads


def _json_module_dumps() -> _Dumps:
    dumps: _Dumps = __import__("json").dumps
    return dumps


def dump_json_str(value: _Serializable, *, compact: bool = True) -> str:
    """Serialize ``value``; ``compact`` drops the spaces after separators."""
    separators = (",", ":") if compact else None
    return _json_module_dumps()(value, separators=separators)


def load_json_str(raw: str) -> JSONValue:
    try:
        return _json_module_loads()(raw)
    except JSONDecodeError as exc:
        raise InvalidJsonError(f"Invalid JSON payload: {exc.msg}") from exc
    except (ValueError, RecursionError) as exc:
        # oversized integer literals and excessive nesting
        raise InvalidJsonError(f"Invalid JSON payload: {exc}") from exc


def load_json_bytes(raw: bytes) -> JSONValue:
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidJsonError("JSON payload is not valid UTF-8") from exc
    return load_json_str(text)


def narrow_json_to_dict(value: JSONValue) -> JSONObject:
    if not isinstance(value, dict):
        raise JSONTypeError(f"Expected JSON object, got {type(value).__name__}")
    return value


def _wrong_type(key: str, expected: str, value: JSONValue) -> JSONTypeError:
    return JSONTypeError(f"Field '{key}' must be {expected}, got {type(value).__name__}")


def require_str(obj: JSONObject, key: str) -> str:
    """Return ``obj[key]`` as str; missing, null and non-string values raise JSONTypeError."""
    value = obj.get(key)
    if value is None:
        raise JSONTypeError(f"Missing required field '{key}'")
    if not isinstance(value, str):
        raise _wrong_type(key, "a string", value)
    return value


def optional_str(obj: JSONObject, key: str) -> str | None:
    value = obj.get(key)
    if value is None or isinstance(value, str):
        return value
    raise _wrong_type(key, "a string", value)


def optional_float(obj: JSONObject, key: str) -> float | None:
    """Return ``obj[key]`` as float, or None when missing or null.

    Integers are widened; booleans are rejected even though they are ints in Python.
    """
    value = obj.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _wrong_type(key, "a number", value)
    return float(value)


__all__ = [
    "InvalidJsonError",
    "JSONObject",
    "JSONTypeError",
    "JSONValue",
    "dump_json_str",
    "load_json_bytes",
    "load_json_str",
    "narrow_json_to_dict",
    "optional_float",
    "optional_str",
    "require_str",
]
