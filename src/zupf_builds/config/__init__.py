from __future__ import annotations

from ._utils import ConfigError
from .live_updates import (
    BUILDS_WS_PATH,
    DEFAULT_ENDPOINT,
    LiveUpdateSettings,
    derive_ws_endpoint,
    load_live_update_settings,
    resolve_endpoint,
)

__all__ = [
    "BUILDS_WS_PATH",
    "DEFAULT_ENDPOINT",
    "ConfigError",
    "LiveUpdateSettings",
    "derive_ws_endpoint",
    "load_live_update_settings",
    "resolve_endpoint",
]
