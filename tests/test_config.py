from __future__ import annotations

import pytest

from zupf_builds.config import (
    DEFAULT_ENDPOINT,
    ConfigError,
    derive_ws_endpoint,
    load_live_update_settings,
    resolve_endpoint,
)
from zupf_builds.config._utils import _parse_int, _parse_str
from zupf_builds.testing import make_fake_env


def test_defaults_when_environment_is_empty() -> None:
    make_fake_env()
    settings = load_live_update_settings()
    assert settings == {
        "endpoint": DEFAULT_ENDPOINT,
        "max_reconnect_attempts": 5,
        "reconnect_base_delay_ms": 1000,
        "heartbeat_seconds": 30.0,
        "log_level": "INFO",
        "log_format": "text",
    }


def test_explicit_values_override_defaults() -> None:
    env = make_fake_env()
    env.set("ZUPF_BUILDS_WS_URL", "wss://ci.example.org/ws/builds")
    env.set("ZUPF_API_BASE_URL", "http://ignored.example.org")
    env.set("ZUPF_BUILDS_WS_MAX_RECONNECT_ATTEMPTS", "3")
    env.set("ZUPF_BUILDS_WS_RECONNECT_DELAY_MS", "250")
    env.set("ZUPF_BUILDS_WS_HEARTBEAT_SECONDS", "0")
    env.set("ZUPF_LOG_LEVEL", "debug")
    env.set("ZUPF_LOG_FORMAT", "JSON")

    settings = load_live_update_settings()

    assert settings["endpoint"] == "wss://ci.example.org/ws/builds"
    assert settings["max_reconnect_attempts"] == 3
    assert settings["reconnect_base_delay_ms"] == 250
    assert settings["heartbeat_seconds"] is None
    assert settings["log_level"] == "DEBUG"
    assert settings["log_format"] == "json"


def test_endpoint_derived_from_api_base_url() -> None:
    env = make_fake_env()
    env.set("ZUPF_API_BASE_URL", "https://zupf.example.org:8443/api/v1")
    assert load_live_update_settings()["endpoint"] == "wss://zupf.example.org:8443/ws/builds"


@pytest.mark.parametrize(
    ("base", "expected"),
    [
        ("http://localhost:8000", "ws://localhost:8000/ws/builds"),
        ("HTTPS://host/", "wss://host/ws/builds"),
        ("http://host/api?x=1#frag", "ws://host/ws/builds"),
    ],
)
def test_derive_ws_endpoint(base: str, expected: str) -> None:
    assert derive_ws_endpoint(base) == expected


@pytest.mark.parametrize("base", ["ftp://host", "localhost:8000", "http://"])
def test_derive_ws_endpoint_rejects_unusable_urls(base: str) -> None:
    with pytest.raises(ConfigError):
        derive_ws_endpoint(base)


def test_resolve_endpoint_precedence() -> None:
    assert resolve_endpoint(override="ws://a/x", api_base_url="http://b") == "ws://a/x"
    assert resolve_endpoint(override=None, api_base_url="http://b") == "ws://b/ws/builds"
    assert resolve_endpoint(override=None, api_base_url=None) == DEFAULT_ENDPOINT


def test_blank_values_count_as_unset() -> None:
    env = make_fake_env()
    env.set("ZUPF_BUILDS_WS_URL", "   ")
    env.set("ZUPF_BUILDS_WS_MAX_RECONNECT_ATTEMPTS", "")
    settings = load_live_update_settings()
    assert settings["endpoint"] == DEFAULT_ENDPOINT
    assert settings["max_reconnect_attempts"] == 5


def test_parse_str_trims_whitespace() -> None:
    env = make_fake_env()
    env.set("SOME_KEY", "  value  ")
    assert _parse_str("SOME_KEY", "default") == "value"
    assert _parse_str("MISSING_KEY", "default") == "default"


def test_invalid_integer_raises() -> None:
    env = make_fake_env()
    env.set("ZUPF_BUILDS_WS_RECONNECT_DELAY_MS", "soon")
    with pytest.raises(ConfigError, match="must be an integer"):
        load_live_update_settings()


def test_negative_integer_raises() -> None:
    env = make_fake_env()
    env.set("N", "-1")
    with pytest.raises(ConfigError, match=">= 0"):
        _parse_int("N", 5)


def test_unknown_log_level_falls_back_and_bad_format_raises() -> None:
    env = make_fake_env()
    env.set("ZUPF_LOG_LEVEL", "chatty")
    assert load_live_update_settings()["log_level"] == "INFO"
    env.set("ZUPF_LOG_FORMAT", "xml")
    with pytest.raises(ConfigError):
        load_live_update_settings()


def test_negative_heartbeat_raises() -> None:
    env = make_fake_env()
    env.set("ZUPF_BUILDS_WS_HEARTBEAT_SECONDS", "-5")
    with pytest.raises(ConfigError):
        load_live_update_settings()
