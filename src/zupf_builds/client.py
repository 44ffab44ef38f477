"""Live-update client for build status events.

One ``BuildUpdatesClient`` owns at most one WebSocket connection to the build
event stream and a registry of per-build listeners. Every method is meant to
be called from the event loop the client runs on; nothing here is thread-safe
and nothing needs to be, because all state changes happen on that loop.

Lifecycle:
    - ``subscribe()`` registers a listener and lazily opens the connection.
    - ``unsubscribe()`` removes it and closes the connection once nobody is left.
    - An unexpected close schedules ``connect()`` with exponential backoff
      while listeners remain, up to ``max_reconnect_attempts`` tries.
    - ``disconnect()`` drops everything; ``aclose()`` also waits for the
      socket to be released.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Final, Literal

from zupf_builds.backoff import (
    DEFAULT_BASE_DELAY_MS,
    DEFAULT_MAX_ATTEMPTS,
    ReconnectPolicy,
    ReconnectState,
)
from zupf_builds.config import DEFAULT_ENDPOINT, LiveUpdateSettings
from zupf_builds.dispatch import BuildListener, route_payload
from zupf_builds.json_utils import InvalidJsonError, JSONTypeError
from zupf_builds.logging import get_logger
from zupf_builds.transport import (
    BuildSocket,
    SocketFactory,
    TransportError,
    make_socket_factory,
)

ConnectionState = Literal["closed", "connecting", "open"]

# Called with a delay in seconds and a zero-argument callback.
Scheduler = Callable[[float, Callable[[], None]], None]

_TASK_NAME: Final[str] = "zupf-builds-live-updates"


def _call_later(delay_seconds: float, callback: Callable[[], None]) -> None:
    asyncio.get_running_loop().call_later(delay_seconds, callback)


class BuildUpdatesClient:
    """Fan out build status updates from one WebSocket to per-build listeners."""

    __slots__ = (
        "_endpoint",
        "_generation",
        "_listeners",
        "_logger",
        "_on_exhausted",
        "_policy",
        "_retired",
        "_retry_seq",
        "_schedule",
        "_socket",
        "_socket_factory",
        "_state",
        "_task",
    )

    def __init__(
        self,
        *,
        endpoint: str = DEFAULT_ENDPOINT,
        max_reconnect_attempts: int = DEFAULT_MAX_ATTEMPTS,
        reconnect_base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
        socket_factory: SocketFactory | None = None,
        schedule: Scheduler | None = None,
        on_exhausted: Callable[[], None] | None = None,
    ) -> None:
        """Initialize the client. No connection is opened until it is needed.

        Args:
            endpoint: WebSocket address of the build event stream.
            max_reconnect_attempts: Retries after an unexpected close before giving up.
            reconnect_base_delay_ms: Delay before the first retry; doubles per attempt.
            socket_factory: Opens a BuildSocket for a URL (aiohttp by default).
            schedule: Runs a callback after a delay in seconds (loop.call_later by default).
            on_exhausted: Called once each time the retry budget runs out.
        """
        self._endpoint: Final[str] = endpoint
        self._socket_factory: Final[SocketFactory] = (
            socket_factory if socket_factory is not None else make_socket_factory()
        )
        self._schedule: Final[Scheduler] = schedule if schedule is not None else _call_later
        self._on_exhausted = on_exhausted
        self._policy: Final[ReconnectPolicy] = ReconnectPolicy(
            max_attempts=max_reconnect_attempts, base_delay_ms=reconnect_base_delay_ms
        )
        self._logger = get_logger(__name__)
        self._listeners: dict[str, BuildListener] = {}
        self._socket: BuildSocket | None = None
        self._task: asyncio.Task[None] | None = None
        self._retired: set[asyncio.Task[None]] = set()
        self._state: ConnectionState = "closed"
        self._generation = 0
        self._retry_seq = 0

    @classmethod
    def from_settings(
        cls,
        settings: LiveUpdateSettings,
        *,
        socket_factory: SocketFactory | None = None,
        schedule: Scheduler | None = None,
        on_exhausted: Callable[[], None] | None = None,
    ) -> BuildUpdatesClient:
        factory = (
            socket_factory
            if socket_factory is not None
            else make_socket_factory(heartbeat_seconds=settings["heartbeat_seconds"])
        )
        return cls(
            endpoint=settings["endpoint"],
            max_reconnect_attempts=settings["max_reconnect_attempts"],
            reconnect_base_delay_ms=settings["reconnect_base_delay_ms"],
            socket_factory=factory,
            schedule=schedule,
            on_exhausted=on_exhausted,
        )

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == "open"

    @property
    def reconnect_state(self) -> ReconnectState:
        return self._policy.state

    @property
    def attempts(self) -> int:
        """Reconnect attempts made since the last successful open."""
        return self._policy.attempts

    @property
    def subscriptions(self) -> frozenset[str]:
        return frozenset(self._listeners)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """Open the connection unless one is already open or being opened."""
        if self._state != "closed":
            return
        if self._policy.exhausted:
            self._policy.reset()
        self._state = "connecting"
        generation = self._generation
        task = asyncio.get_running_loop().create_task(self._run(generation), name=_TASK_NAME)
        task.add_done_callback(self._on_task_done)
        self._task = task

    def disconnect(self) -> None:
        """Close the connection, drop every listener and void pending retries."""
        self._generation += 1
        task = self._task
        had_connection = self._state != "closed"
        self._task = None
        self._socket = None
        self._state = "closed"
        self._listeners.clear()
        self._policy.reset()
        if task is not None and not task.done():
            self._retired.add(task)
            task.cancel()
        if had_connection:
            self._logger.info(
                "Build WebSocket closed by client", extra={"endpoint": self._endpoint}
            )

    def subscribe(self, build_id: str, callback: BuildListener) -> None:
        """Route updates for ``build_id`` to ``callback``, replacing any previous one."""
        if build_id == "":
            raise ValueError("build_id must not be empty")
        self._listeners[build_id] = callback
        self.connect()

    def unsubscribe(self, build_id: str) -> None:
        """Stop routing updates for ``build_id``; disconnect when nobody is left."""
        self._listeners.pop(build_id, None)
        if not self._listeners:
            self.disconnect()

    async def aclose(self) -> None:
        """Disconnect and wait until the socket has been released."""
        self.disconnect()
        pending = {task for task in self._retired if task is not asyncio.current_task()}
        if pending:
            await asyncio.wait(pending)

    # ------------------------------------------------------------------
    # Connection task
    # ------------------------------------------------------------------

    async def _run(self, generation: int) -> None:
        try:
            socket = await self._socket_factory(self._endpoint)
        except TransportError as exc:
            self._logger.error(
                "Build WebSocket error: %s", str(exc), extra={"endpoint": self._endpoint}
            )
            self._on_closed(generation)
            return
        if generation != self._generation:
            await socket.close()
            return
        self._socket = socket
        self._state = "open"
        self._policy.reset()
        self._logger.info("Build WebSocket connected", extra={"endpoint": self._endpoint})
        try:
            closed = await self._pump(socket, generation)
        finally:
            await socket.close()
        if closed:
            self._on_closed(generation)

    async def _pump(self, socket: BuildSocket, generation: int) -> bool:
        """Process frames in arrival order. Returns True when the server side closed."""
        while True:
            frame = await socket.receive()
            if generation != self._generation:
                return False
            kind = frame["kind"]
            if kind == "closed":
                self._logger.info(
                    "Build WebSocket disconnected", extra={"endpoint": self._endpoint}
                )
                return True
            if kind == "error":
                self._logger.error(
                    "Build WebSocket error: %s", str(frame["data"]), extra={"endpoint": self._endpoint}
                )
                continue
            self._handle_payload(frame["data"])

    def _handle_payload(self, payload: str | bytes | None) -> None:
        if payload is None:
            self._logger.error("Failed to parse WebSocket message: unexpected frame payload")
            return
        try:
            delivery = route_payload(payload, self._listeners)
        except (InvalidJsonError, JSONTypeError) as exc:
            self._logger.error("Failed to parse WebSocket message: %s", str(exc))
            return
        if delivery is None:
            return
        update = delivery["update"]
        try:
            delivery["listener"](update)
        except Exception:
            self._logger.exception(
                "Build listener raised", extra={"build_id": update["build_id"]}
            )

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        self._retired.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        self._logger.error("Build WebSocket task failed: %s", str(exc))
        if task is self._task:
            self._on_closed(self._generation)

    # ------------------------------------------------------------------
    # Reconnection
    # ------------------------------------------------------------------

    def _on_closed(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._task = None
        self._socket = None
        self._state = "closed"
        self._attempt_reconnect()

    def _attempt_reconnect(self) -> None:
        if not self._listeners:
            self._policy.state = "idle"
            return
        delay_ms = self._policy.next_delay_ms()
        if delay_ms is None:
            self._logger.error(
                "Max reconnection attempts reached",
                extra={"max_attempts": self._policy.max_attempts, "endpoint": self._endpoint},
            )
            callback = self._on_exhausted
            if callback is not None:
                callback()
            return
        self._retry_seq += 1
        generation = self._generation
        seq = self._retry_seq
        self._logger.info(
            "Reconnecting in %d ms",
            delay_ms,
            extra={"attempt": self._policy.attempts, "delay_ms": delay_ms},
        )
        self._schedule(delay_ms / 1000.0, lambda: self._fire_reconnect(generation, seq))

    def _fire_reconnect(self, generation: int, seq: int) -> None:
        if generation != self._generation or seq != self._retry_seq:
            self._logger.debug("Discarding stale reconnect attempt")
            return
        if self._state != "closed":
            return
        self._policy.state = "attempting"
        self._logger.info(
            "Attempting to reconnect (%d/%d)",
            self._policy.attempts,
            self._policy.max_attempts,
            extra={"attempt": self._policy.attempts, "max_attempts": self._policy.max_attempts},
        )
        self.connect()


__all__ = ["BuildUpdatesClient", "ConnectionState", "Scheduler"]
