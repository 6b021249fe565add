"""
test_main_ws.py — Client WebSocket endpoint.

build_session is swapped for one that wires the in-memory transport, so
the tests drive the real receive loop and outbound queue without touching
the provider.
"""

import json

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from talkbridge import main
from talkbridge.agent.plugins.tourist import itinerary
from talkbridge.agent.plugins.tourist.plugin import TouristPlugin
from talkbridge.realtime.media import ClientMediaProvider
from talkbridge.realtime.session import VoiceSession

from conftest import FakeTokenProvider, FakeTransport, response_done


@pytest.fixture
def client(monkeypatch):
    def _build(plugin, session_id, post):
        media = ClientMediaProvider(sink=lambda chunk: post("server.voice.audio", {"data": chunk}))
        return VoiceSession(
            plugin,
            token_provider=FakeTokenProvider(),
            transport=FakeTransport(),
            media=media,
            on_navigate=lambda screen: post("server.navigate", {"screen": screen}),
            on_status=lambda status: post("server.agent.status", status),
        )

    monkeypatch.setattr(main, "build_session", _build)
    return TestClient(main.app)


def _send(ws, msg_type, payload=None):
    ws.send_text(json.dumps({"type": msg_type, "sessionId": "client", "payload": payload}))


def _next(ws):
    msg = ws.receive_json()
    return msg["type"], msg["payload"]


def test_unknown_agent_is_rejected(client):
    with client.websocket_connect("/ws?agent=nope") as ws:
        with pytest.raises(WebSocketDisconnect) as excinfo:
            ws.receive_text()
    assert excinfo.value.code == 4000


def test_ready_message_carries_public_flags(client):
    with client.websocket_connect("/ws?agent=tourist") as ws:
        msg_type, payload = _next(ws)
    assert msg_type == "server.ready"
    assert payload == {
        "agent": "tourist",
        "screen": "home",
        "flags": {"camera_open": False, "itinerary": itinerary.empty_itinerary()},
    }


def test_connect_pause_disconnect_statuses(client):
    with client.websocket_connect("/ws?agent=tourist") as ws:
        _next(ws)
        _send(ws, "client.voice.connect", {"microphone": True})
        assert _next(ws)[1]["state"] == "connecting"
        assert _next(ws)[1]["state"] == "connected"

        _send(ws, "client.voice.pause")
        msg_type, status = _next(ws)
        assert msg_type == "server.agent.status"
        assert status["connected"] is True and status["recording"] is False

        _send(ws, "client.voice.disconnect")
        assert _next(ws)[1]["state"] == "disconnected"


def test_denied_microphone_reports_error(client):
    with client.websocket_connect("/ws?agent=careflow") as ws:
        _next(ws)
        _send(ws, "client.voice.connect", {"microphone": False})
        assert _next(ws)[1]["state"] == "connecting"
        assert _next(ws)[1]["state"] == "disconnected"
        msg_type, payload = _next(ws)
    assert msg_type == "server.error"
    assert "Microphone access denied" in payload["detail"]


def test_bad_envelopes_are_skipped(client):
    with client.websocket_connect("/ws?agent=careflow") as ws:
        _next(ws)
        ws.send_text("not json")
        ws.send_text(json.dumps({"payload": {}}))
        _send(ws, "client.camera.close")
        assert _next(ws) == ("server.flags.update", {"key": "camera_open", "value": False})
        assert _next(ws) == ("server.flags.update", {"key": "vitals_active", "value": False})


def test_camera_frame_is_stored_but_not_echoed(client):
    with client.websocket_connect("/ws?agent=tourist") as ws:
        _next(ws)
        _send(ws, "client.camera.frame", {"image": "data:image/jpeg;base64,AAAA"})
        _send(ws, "client.camera.close")
        assert _next(ws) == ("server.flags.update", {"key": "camera_open", "value": False})
        session = list(main.sessions.values())[-1]
        assert session.flags.get("camera_frame") == "data:image/jpeg;base64,AAAA"


def test_mount_validates_screen(client):
    with client.websocket_connect("/ws?agent=careflow") as ws:
        _next(ws)
        _send(ws, "client.screen.mount", {"screen": "settings"})
        _send(ws, "client.screen.mount", {"screen": "nowhere"})
        _send(ws, "client.camera.close")
        _next(ws)
        session = list(main.sessions.values())[-1]
        assert session.current_screen == "settings"
        assert session.app_state["screen"] == "settings"


async def test_itinerary_updates_are_forwarded(make_session):
    session = make_session(TouristPlugin())
    posted = []
    main.forward_session_output(session, lambda msg_type, payload=None: posted.append((msg_type, payload)))

    await session.dispatcher.handle_response_done(response_done(
        {"name": "start_building_itinerary", "arguments": {"destination": "Bangkok", "days": 1}},
        {"name": "add_itinerary_step", "arguments": {"day": 0, "slot": "morning", "name": "Wat Arun"}},
        {"name": "finish_building_itinerary"},
    ))

    updates = [p["value"] for t, p in posted if t == "server.flags.update" and p["key"] == "itinerary"]
    assert len(updates) == 3
    assert updates[-1]["days"][0]["morning"]["name"] == "Wat Arun"
