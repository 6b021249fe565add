"""
test_transport.py — WebSocketTransport handshake against a fake provider socket.
"""

import json

import pytest
from websockets.exceptions import ConnectionClosedOK
from websockets.protocol import State

from talkbridge.errors import RealtimeConnectionError
from talkbridge.realtime import transport as transport_module
from talkbridge.realtime.transport import WebSocketTransport


class FakeSocket:
    def __init__(self, frames):
        self.frames = list(frames)
        self.state = State.OPEN
        self.sent = []

    async def recv(self):
        if not self.frames:
            raise ConnectionClosedOK(None, None)
        return self.frames.pop(0)

    async def send(self, data):
        self.sent.append(data)

    async def close(self):
        self.state = State.CLOSED


@pytest.fixture
def fake_connect(monkeypatch):
    calls = []

    def _install(socket):
        async def _connect(uri, **kwargs):
            calls.append({"uri": uri, **kwargs})
            return socket
        monkeypatch.setattr(transport_module, "connect", _connect)
        return calls

    return _install


async def test_open_accepts_session_created(fake_connect):
    socket = FakeSocket([json.dumps({"type": "session.created", "session": {}})])
    calls = fake_connect(socket)

    channel = await WebSocketTransport("wss://example.test/v1/realtime", "gpt-realtime").open("ek_1")

    assert channel.is_open
    assert calls[0]["uri"] == "wss://example.test/v1/realtime?model=gpt-realtime"
    assert calls[0]["additional_headers"]["Authorization"] == "Bearer ek_1"
    assert await channel.send_event({"type": "response.create"}) is True
    assert json.loads(socket.sent[0]) == {"type": "response.create"}


async def test_open_rejects_unexpected_first_event(fake_connect):
    socket = FakeSocket([json.dumps({"type": "error", "error": {"message": "bad key"}})])
    fake_connect(socket)

    with pytest.raises(RealtimeConnectionError, match="Unexpected realtime session answer"):
        await WebSocketTransport("wss://example.test", "m").open("ek_1")
    assert socket.state is State.CLOSED


async def test_open_rejects_malformed_answer(fake_connect):
    socket = FakeSocket(["<html>nope</html>"])
    fake_connect(socket)

    with pytest.raises(RealtimeConnectionError, match="Malformed"):
        await WebSocketTransport("wss://example.test", "m").open("ek_1")


async def test_open_wraps_socket_errors(monkeypatch):
    async def _refuse(uri, **kwargs):
        raise OSError("connection refused")

    monkeypatch.setattr(transport_module, "connect", _refuse)
    with pytest.raises(RealtimeConnectionError, match="connection refused"):
        await WebSocketTransport("wss://example.test", "m").open("ek_1")


async def test_closed_socket_reads_as_none(fake_connect):
    socket = FakeSocket([json.dumps({"type": "session.created"})])
    fake_connect(socket)
    channel = await WebSocketTransport("wss://example.test", "m").open("ek_1")

    assert await channel.receive_text() is None
    await channel.close()
    assert not channel.is_open
    assert await channel.send_event({"type": "response.create"}) is False
