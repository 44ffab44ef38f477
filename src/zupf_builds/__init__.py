"""Live build-status updates for the zupfmanager console.

Key Components:
    - client: BuildUpdatesClient, one WebSocket fanned out to per-build listeners
    - build_events: decoding and construction of status updates
    - dispatch: routing of decoded updates to the registered listener
    - backoff: reconnect attempt budget and delay computation
    - transport: aiohttp-backed WebSocket behind a small Protocol
    - config: settings from environment variables
    - main: the ``zupf-builds watch`` command
"""

from __future__ import annotations

from .build_events import BuildStatus, BuildStatusUpdate, decode_build_status
from .client import BuildUpdatesClient
from .config import load_live_update_settings

# Export list kept explicit for type checkers.
__all__: list[str] = [
    "BuildStatus",
    "BuildStatusUpdate",
    "BuildUpdatesClient",
    "decode_build_status",
    "load_live_update_settings",
]
