"""Test hooks for the zupf-builds CLI - allows injecting test dependencies.

Production code calls these module-level callables directly; tests assign
fakes before running the code under test and ``reset_hooks`` restores them.

Usage in tests:
    from zupf_builds import _test_hooks
    from zupf_builds.testing import FakeSocketFactory
    _test_hooks.socket_factory = lambda settings: FakeSocketFactory()
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol

from zupf_builds.config import LiveUpdateSettings
from zupf_builds.config import load_live_update_settings as _real_load_live_update_settings
from zupf_builds.logging import LogFormat, LogLevel
from zupf_builds.logging import setup_logging as _real_setup_logging
from zupf_builds.transport import SocketFactory, make_socket_factory


class SetupLoggingProtocol(Protocol):
    """Protocol for the logging setup function."""

    def __call__(
        self,
        *,
        level: LogLevel,
        format_mode: LogFormat,
        service_name: str,
        instance_id: str | None,
        extra_fields: list[str] | None,
    ) -> logging.Logger: ...


def _default_load_settings() -> LiveUpdateSettings:
    return _real_load_live_update_settings()


def _default_setup_logging(
    *,
    level: LogLevel,
    format_mode: LogFormat,
    service_name: str,
    instance_id: str | None,
    extra_fields: list[str] | None,
) -> logging.Logger:
    return _real_setup_logging(
        level=level,
        format_mode=format_mode,
        service_name=service_name,
        instance_id=instance_id,
        extra_fields=extra_fields,
    )


def _default_socket_factory(settings: LiveUpdateSettings) -> SocketFactory:
    return make_socket_factory(heartbeat_seconds=settings["heartbeat_seconds"])


load_settings: Callable[[], LiveUpdateSettings] = _default_load_settings
setup_logging: SetupLoggingProtocol = _default_setup_logging
socket_factory: Callable[[LiveUpdateSettings], SocketFactory] = _default_socket_factory


def reset_hooks() -> None:
    """Restore production implementations."""
    global load_settings, setup_logging, socket_factory
    load_settings = _default_load_settings
    setup_logging = _default_setup_logging
    socket_factory = _default_socket_factory
