from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import pytest

from zupf_builds import transport
from zupf_builds.transport import (
    AiohttpBuildSocket,
    TransportError,
    make_socket_factory,
    open_build_socket,
)


@dataclass
class _MsgType:
    name: str


@dataclass
class _Msg:
    type: _MsgType
    data: str | bytes | int | None = None
    extra: str | None = None


def _msg(kind: str, data: str | bytes | int | None = None) -> _Msg:
    return _Msg(type=_MsgType(kind), data=data)


class _FakeWS:
    def __init__(self, messages: list[_Msg], *, close_code: int | None = None) -> None:
        self._messages = messages
        self.close_code = close_code
        self.error: BaseException | None = None
        self.close_calls = 0

    async def receive(self) -> _Msg:
        return self._messages.pop(0)

    async def close(self) -> bool:
        self.close_calls += 1
        return True

    def exception(self) -> BaseException | None:
        return self.error


class _FakeClientError(Exception):
    pass


@dataclass
class _FakeTimeout:
    total: float | None
    sock_connect: float


@dataclass
class _FakeSession:
    timeout: _FakeTimeout
    ws: _FakeWS | None = None
    fail_with: BaseException | None = None
    connect_args: list[tuple[str, float | None, bool]] = field(default_factory=list)
    closed: bool = False

    async def ws_connect(self, url: str, *, heartbeat: float | None, autoping: bool) -> _FakeWS:
        self.connect_args.append((url, heartbeat, autoping))
        if self.fail_with is not None:
            raise self.fail_with
        assert self.ws is not None
        return self.ws

    async def close(self) -> None:
        self.closed = True


class _FakeAiohttp:
    ClientError = _FakeClientError

    def __init__(self, *, ws: _FakeWS | None = None, fail_with: BaseException | None = None) -> None:
        self._ws = ws
        self._fail_with = fail_with
        self.sessions: list[_FakeSession] = []

    def ClientTimeout(self, *, total: float | None, sock_connect: float) -> _FakeTimeout:
        return _FakeTimeout(total=total, sock_connect=sock_connect)

    def ClientSession(self, *, timeout: _FakeTimeout) -> _FakeSession:
        session = _FakeSession(timeout=timeout, ws=self._ws, fail_with=self._fail_with)
        self.sessions.append(session)
        return session


def _install(monkeypatch: pytest.MonkeyPatch, fake: _FakeAiohttp) -> None:
    monkeypatch.setattr(transport, "_load_aiohttp", lambda: fake)


@pytest.mark.asyncio
async def test_receive_maps_frames_and_skips_control_messages() -> None:
    ws = _FakeWS(
        [
            _msg("PING", b""),
            _msg("TEXT", '{"build_id":"b1","status":"running"}'),
            _msg("PONG", b""),
            _msg("BINARY", b'{"build_id":"b1","status":"failed"}'),
            _msg("CLOSE", 1000),
        ],
        close_code=1000,
    )
    socket = AiohttpBuildSocket(_FakeSession(timeout=_FakeTimeout(None, 1.0)), ws)

    assert await socket.receive() == {"kind": "text", "data": '{"build_id":"b1","status":"running"}'}
    assert await socket.receive() == {"kind": "binary", "data": b'{"build_id":"b1","status":"failed"}'}
    assert await socket.receive() == {"kind": "closed", "data": "1000"}


@pytest.mark.asyncio
async def test_receive_reports_error_frames() -> None:
    ws = _FakeWS([_msg("ERROR"), _msg("ERROR"), _msg("CLOSED")])
    ws.error = ConnectionResetError("reset by peer")
    socket = AiohttpBuildSocket(_FakeSession(timeout=_FakeTimeout(None, 1.0)), ws)

    assert await socket.receive() == {"kind": "error", "data": "reset by peer"}
    ws.error = None
    assert await socket.receive() == {"kind": "error", "data": "error"}
    assert await socket.receive() == {"kind": "closed", "data": None}


@pytest.mark.asyncio
async def test_close_releases_ws_and_session_once() -> None:
    ws = _FakeWS([])
    session = _FakeSession(timeout=_FakeTimeout(None, 1.0))
    socket = AiohttpBuildSocket(session, ws)

    await socket.close()
    await socket.close()

    assert ws.close_calls == 1
    assert session.closed


@pytest.mark.asyncio
async def test_open_build_socket_passes_options(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = _FakeAiohttp(ws=_FakeWS([_msg("TEXT", "{}")]))
    _install(monkeypatch, fake)

    socket = await open_build_socket(
        "ws://builds.test/ws/builds", heartbeat_seconds=15.0, connect_timeout_seconds=3.0
    )

    session = fake.sessions[0]
    assert session.timeout == _FakeTimeout(total=None, sock_connect=3.0)
    assert session.connect_args == [("ws://builds.test/ws/builds", 15.0, True)]
    assert await socket.receive() == {"kind": "text", "data": "{}"}
    await socket.close()
    assert session.closed


@pytest.mark.parametrize(
    "error",
    [_FakeClientError("handshake rejected"), OSError("unreachable"), asyncio.TimeoutError()],
)
@pytest.mark.asyncio
async def test_open_build_socket_wraps_failures(
    monkeypatch: pytest.MonkeyPatch, error: BaseException
) -> None:
    fake = _FakeAiohttp(fail_with=error)
    _install(monkeypatch, fake)

    with pytest.raises(TransportError, match="Failed to connect to ws://down.test"):
        await open_build_socket("ws://down.test")

    assert fake.sessions[0].closed


@pytest.mark.asyncio
async def test_make_socket_factory_binds_heartbeat(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = _FakeAiohttp(ws=_FakeWS([]))
    _install(monkeypatch, fake)

    factory = make_socket_factory(heartbeat_seconds=None, connect_timeout_seconds=5.0)
    socket = await factory("ws://builds.test/ws/builds")

    assert fake.sessions[0].connect_args == [("ws://builds.test/ws/builds", None, True)]
    await socket.close()
