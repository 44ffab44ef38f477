"""WebSocket transport for the build event stream.

The client never touches aiohttp directly. It talks to a ``BuildSocket`` that
yields normalized ``SocketFrame`` values, so tests can substitute a fake socket
and the aiohttp types stay behind the Protocols below.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Final, Literal, Protocol, TypedDict

from zupf_builds.logging import get_logger

FrameKind = Literal["text", "binary", "error", "closed"]

_logger = get_logger(__name__)

_CLOSED_TYPES: Final[frozenset[str]] = frozenset({"CLOSE", "CLOSING", "CLOSED"})
_CONTROL_TYPES: Final[frozenset[str]] = frozenset({"PING", "PONG"})


class SocketFrame(TypedDict):
    """One inbound event from the socket.

    ``data`` carries the payload for text/binary frames, the error description
    for error frames and the close code (as text) or None for closed frames.
    """

    kind: FrameKind
    data: str | bytes | None


class TransportError(Exception):
    """Raised when the WebSocket connection cannot be established.

    Wraps aiohttp and OS level failures so callers catch one stable type.
    """


class BuildSocket(Protocol):
    async def receive(self) -> SocketFrame: ...

    async def close(self) -> None: ...


SocketFactory = Callable[[str], Awaitable[BuildSocket]]


# Internal Protocols to avoid importing aiohttp at module level
class _WSMsgTypeProto(Protocol):
    @property
    def name(self) -> str: ...


class _WSMessageProto(Protocol):
    @property
    def type(self) -> _WSMsgTypeProto: ...

    @property
    def data(self) -> str | bytes | int | None: ...

    @property
    def extra(self) -> str | None: ...


class _ClientWebSocketProto(Protocol):
    @property
    def close_code(self) -> int | None: ...

    async def receive(self) -> _WSMessageProto: ...

    async def close(self) -> bool: ...

    def exception(self) -> BaseException | None: ...


class _ClientSessionProto(Protocol):
    async def ws_connect(
        self,
        url: str,
        *,
        heartbeat: float | None,
        autoping: bool,
    ) -> _ClientWebSocketProto: ...

    async def close(self) -> None: ...


class _ClientTimeoutProto(Protocol):
    def __repr__(self) -> str: ...


class _ClientTimeoutCtor(Protocol):
    def __call__(self, *, total: float | None, sock_connect: float) -> _ClientTimeoutProto: ...


class _ClientSessionCtor(Protocol):
    def __call__(self, *, timeout: _ClientTimeoutProto) -> _ClientSessionProto: ...


class _AiohttpModule(Protocol):
    ClientSession: _ClientSessionCtor
    ClientTimeout: _ClientTimeoutCtor
    ClientError: type[Exception]


def _load_aiohttp() -> _AiohttpModule:
    mod: _AiohttpModule = __import__("aiohttp")
    return mod


class AiohttpBuildSocket:
    """BuildSocket backed by an aiohttp client session and WebSocket."""

    __slots__ = ("_closed", "_session", "_ws")

    def __init__(self, session: _ClientSessionProto, ws: _ClientWebSocketProto) -> None:
        self._session = session
        self._ws = ws
        self._closed = False

    async def receive(self) -> SocketFrame:
        while True:
            msg = await self._ws.receive()
            kind = msg.type.name
            if kind == "TEXT":
                data = msg.data
                return {"kind": "text", "data": data if isinstance(data, str) else None}
            if kind == "BINARY":
                data = msg.data
                return {"kind": "binary", "data": data if isinstance(data, bytes) else None}
            if kind in _CONTROL_TYPES:
                continue
            if kind in _CLOSED_TYPES:
                code = self._ws.close_code
                return {"kind": "closed", "data": str(code) if code is not None else None}
            exc = self._ws.exception()
            return {"kind": "error", "data": str(exc) if exc is not None else kind.lower()}

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._ws.close()
        finally:
            await self._session.close()


async def open_build_socket(
    url: str,
    *,
    heartbeat_seconds: float | None = None,
    connect_timeout_seconds: float = 10.0,
) -> BuildSocket:
    """Open a WebSocket to ``url``.

    Raises:
        TransportError: if the handshake fails or the host is unreachable.
    """
    aiohttp = _load_aiohttp()
    timeout = aiohttp.ClientTimeout(total=None, sock_connect=connect_timeout_seconds)
    session = aiohttp.ClientSession(timeout=timeout)
    try:
        ws = await session.ws_connect(url, heartbeat=heartbeat_seconds, autoping=True)
    except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
        await session.close()
        raise TransportError(f"Failed to connect to {url}: {exc}") from exc
    except BaseException:
        await session.close()
        raise
    _logger.debug("WebSocket handshake completed", extra={"endpoint": url})
    return AiohttpBuildSocket(session, ws)


def make_socket_factory(
    *, heartbeat_seconds: float | None = None, connect_timeout_seconds: float = 10.0
) -> SocketFactory:
    """Bind connection options into a factory the client can call with a URL."""

    async def _open(url: str) -> BuildSocket:
        return await open_build_socket(
            url,
            heartbeat_seconds=heartbeat_seconds,
            connect_timeout_seconds=connect_timeout_seconds,
        )

    return _open


__all__ = [
    "AiohttpBuildSocket",
    "BuildSocket",
    "FrameKind",
    "SocketFactory",
    "SocketFrame",
    "TransportError",
    "make_socket_factory",
    "open_build_socket",
]
