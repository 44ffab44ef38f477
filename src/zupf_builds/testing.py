"""Public test utilities for zupf_builds.

Provides fakes for driving ``BuildUpdatesClient`` without a network or real
timers, plus hooks for faking the environment the settings loader reads.

Usage:
    from zupf_builds.testing import FakeSocketFactory, ManualScheduler

    factory = FakeSocketFactory()
    scheduler = ManualScheduler()
    client = BuildUpdatesClient(socket_factory=factory, schedule=scheduler)
    client.subscribe("b1", on_update)
    await settle()
    factory.sockets[-1].push_text('{"build_id":"b1","status":"running"}')
    await settle()
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from zupf_builds import _test_hooks as _cli_hooks
from zupf_builds.config import _test_hooks as _config_hooks
from zupf_builds.transport import BuildSocket, SocketFrame, TransportError


async def settle(rounds: int = 10) -> None:
    """Yield to the event loop until queued callbacks and task steps have run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeBuildSocket:
    """In-memory BuildSocket. Tests push frames; the client receives them in order."""

    __slots__ = ("_frames", "close_calls", "closed")

    def __init__(self) -> None:
        self._frames: asyncio.Queue[SocketFrame | Exception] = asyncio.Queue()
        self.closed = False
        self.close_calls = 0

    def push_frame(self, frame: SocketFrame) -> None:
        self._frames.put_nowait(frame)

    def push_text(self, payload: str) -> None:
        self._frames.put_nowait({"kind": "text", "data": payload})

    def push_binary(self, payload: bytes) -> None:
        self._frames.put_nowait({"kind": "binary", "data": payload})

    def push_error(self, description: str) -> None:
        self._frames.put_nowait({"kind": "error", "data": description})

    def push_close(self, code: int | None = 1006) -> None:
        self._frames.put_nowait({"kind": "closed", "data": str(code) if code is not None else None})

    def push_exception(self, exc: Exception) -> None:
        """Make the next receive() raise ``exc`` instead of returning a frame."""
        self._frames.put_nowait(exc)

    async def receive(self) -> SocketFrame:
        item = await self._frames.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self) -> None:
        self.close_calls += 1
        self.closed = True


class FakeSocketFactory:
    """SocketFactory that hands out FakeBuildSocket instances.

    ``fail_next`` makes that many upcoming opens raise TransportError;
    ``fail_always`` makes every open fail until switched off.
    """

    __slots__ = ("fail_always", "fail_next", "sockets", "urls")

    def __init__(self, *, fail_next: int = 0, fail_always: bool = False) -> None:
        self.fail_next = fail_next
        self.fail_always = fail_always
        self.sockets: list[FakeBuildSocket] = []
        self.urls: list[str] = []

    @property
    def open_calls(self) -> int:
        return len(self.urls)

    @property
    def latest(self) -> FakeBuildSocket:
        return self.sockets[-1]

    async def __call__(self, url: str) -> BuildSocket:
        self.urls.append(url)
        await asyncio.sleep(0)
        if self.fail_always:
            raise TransportError(f"connection refused: {url}")
        if self.fail_next > 0:
            self.fail_next -= 1
            raise TransportError(f"connection refused: {url}")
        socket = FakeBuildSocket()
        self.sockets.append(socket)
        return socket


class ManualScheduler:
    """Scheduler that records requested delays and runs callbacks on demand."""

    __slots__ = ("delays", "pending")

    def __init__(self) -> None:
        self.delays: list[float] = []
        self.pending: list[Callable[[], None]] = []

    def __call__(self, delay_seconds: float, callback: Callable[[], None]) -> None:
        self.delays.append(delay_seconds)
        self.pending.append(callback)

    @property
    def delays_ms(self) -> list[int]:
        return [round(d * 1000) for d in self.delays]

    def fire_next(self) -> None:
        """Run the oldest pending callback."""
        callback = self.pending.pop(0)
        callback()

    def fire_all(self) -> None:
        while self.pending:
            self.fire_next()


class FakeEnv:
    """Dict-backed environment installed into the config hooks."""

    __slots__ = ("_values",)

    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def unset(self, key: str) -> None:
        self._values.pop(key, None)

    def get(self, key: str) -> str | None:
        return self._values.get(key)


def make_fake_env() -> FakeEnv:
    """Install an empty fake environment for the settings loader."""
    env = FakeEnv()
    _config_hooks.get_env = env.get
    return env


def reset_hooks() -> None:
    """Reset all test hooks to production implementations."""
    _config_hooks.reset()
    _cli_hooks.reset_hooks()


__all__ = [
    "FakeBuildSocket",
    "FakeEnv",
    "FakeSocketFactory",
    "ManualScheduler",
    "make_fake_env",
    "reset_hooks",
    "settle",
]
