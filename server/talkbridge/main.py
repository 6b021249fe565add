import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from talkbridge.agent.core.contracts import PluginBase
from talkbridge.agent.core.registry import get_plugin
from talkbridge.agent.plugin_loader import load_all_plugins
from talkbridge.config import load_settings
from talkbridge.errors import RealtimeConnectionError
from talkbridge.models import ChatMessage, WebSocketMessage
from talkbridge.proxy import router as proxy_router
from talkbridge.realtime.media import ClientMediaProvider
from talkbridge.realtime.session import VoiceSession
from talkbridge.realtime.transport import WebSocketTransport
from talkbridge.upstream import AnalysisClient, realtime_token_provider

logging.basicConfig(level=logging.INFO)

logger = logging.getLogger(__name__)

app = FastAPI(title="Talkbridge Voice Assistant")

# Auto-discover and register all plugins found under talkbridge.agent.plugins.
load_all_plugins()

app.include_router(proxy_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

sessions: Dict[str, VoiceSession] = {}

Post = Callable[..., None]

# Flags the browser never needs echoed back.
_PRIVATE_FLAGS = {"camera_frame"}


async def send_msg(websocket: WebSocket, session_id: str, msg_type: str, payload: dict = None):
    try:
        msg = WebSocketMessage(type=msg_type, sessionId=session_id, payload=payload)
        await websocket.send_text(msg.model_dump_json())
    except Exception as e:
        logger.error(f"Cannot send to ws: {e}")


def public_flags(session: VoiceSession) -> Dict[str, Any]:
    return {k: v for k, v in session.flags.snapshot().items() if k not in _PRIVATE_FLAGS}


def build_session(plugin: PluginBase, session_id: str, post: Post) -> VoiceSession:
    """Wire a VoiceSession to the provider and to this client's outbound queue."""
    settings = load_settings()
    media = ClientMediaProvider(sink=lambda chunk: post("server.voice.audio", {"data": chunk}))
    return VoiceSession(
        plugin,
        token_provider=realtime_token_provider(settings),
        transport=WebSocketTransport(settings.realtime_url, settings.realtime_model),
        media=media,
        analysis=AnalysisClient(settings, session_id),
        commit_delay=settings.commit_delay_s,
        on_navigate=lambda screen: post("server.navigate", {"screen": screen}),
        on_status=lambda status: post("server.agent.status", status),
    )


def forward_session_output(session: VoiceSession, post: Post) -> None:
    """Push committed chat entries and public flag changes to the client."""

    def _on_message(message: ChatMessage) -> None:
        if message.is_visual:
            post("server.visual", {"id": message.id, "artifact": message.artifact.model_dump()})
        else:
            post("server.transcript.final", {"id": message.id, "role": message.role, "text": message.text})

    def _on_flag(key: str, value: Any) -> None:
        if key not in _PRIVATE_FLAGS:
            post("server.flags.update", {"key": key, "value": value})

    session.conversation.subscribe(_on_message)
    session.flags.subscribe(_on_flag)


async def connect_session(session: VoiceSession, post: Post) -> None:
    try:
        await session.connect()
    except RealtimeConnectionError as exc:
        logger.error(f"[WebSocket] voice connect failed: {exc}")
        post("server.error", {"detail": str(exc)})


async def handle_client_message(session: VoiceSession, msg_type: str, payload: Dict[str, Any], post: Post) -> Optional[asyncio.Task]:
    """Apply one client message. Returns the connect task when one was started."""
    if msg_type == "client.voice.connect":
        media = session.manager.media
        if isinstance(media, ClientMediaProvider):
            media.microphone_granted = bool(payload.get("microphone", True))
        # Runs beside the receive loop so a disconnect can arrive mid-handshake.
        return asyncio.create_task(connect_session(session, post))

    elif msg_type == "client.voice.disconnect":
        await session.disconnect()

    elif msg_type == "client.voice.pause":
        await session.pause()

    elif msg_type == "client.voice.resume":
        await session.resume()

    elif msg_type == "client.audio.chunk":
        data = payload.get("data")
        if data:
            session.push_audio(data)

    elif msg_type == "client.screen.mount":
        screen = payload.get("screen")
        if screen in session.plugin.screens:
            session.app_state["screen"] = screen
            session.mount(screen)
        else:
            logger.warning("[WebSocket] ignoring mount of unknown screen %r", screen)

    elif msg_type == "client.camera.frame":
        session.flags.set("camera_frame", payload.get("image"))

    elif msg_type == "client.camera.close":
        session.flags.set("camera_open", False)
        session.flags.set("vitals_active", False)

    else:
        logger.warning("[WebSocket] unhandled message type %s", msg_type)
    return None


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, agent: str = "tourist"):
    # Validate agent_id before accepting so we can reject with a close code.
    try:
        plugin = get_plugin(agent)
    except KeyError as exc:
        await websocket.accept()
        await websocket.close(code=4000, reason=str(exc))
        logger.error("[WebSocket] Unknown agent_id=%r, closing with 4000", agent)
        return

    await websocket.accept()
    session_id = f"sess_{id(websocket)}"
    logger.info("[WebSocket] New connection: %s (agent=%s)", session_id, agent)

    # Single writer: every outbound message goes through this queue.
    outbox: asyncio.Queue = asyncio.Queue()

    def post(msg_type: str, payload: Optional[Dict[str, Any]] = None) -> None:
        outbox.put_nowait((msg_type, payload))

    async def _sender() -> None:
        while True:
            msg_type, payload = await outbox.get()
            await send_msg(websocket, session_id, msg_type, payload)

    sender = asyncio.create_task(_sender())
    session = build_session(plugin, session_id, post)
    forward_session_output(session, post)
    sessions[session_id] = session
    connect_task: Optional[asyncio.Task] = None

    try:
        post("server.ready", {"agent": agent, "screen": session.current_screen, "flags": public_flags(session)})

        while True:
            data = await websocket.receive_text()
            try:
                event = WebSocketMessage.model_validate_json(data)
            except ValidationError as e:
                logger.error(f"WebSocketMessage validation failed: {e}. Data: {data[:100]}")
                continue

            task = await handle_client_message(session, event.type, event.payload or {}, post)
            if task is not None:
                connect_task = task

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for session {session_id}")
    finally:
        await session.disconnect()
        if connect_task is not None and not connect_task.done():
            connect_task.cancel()
        sender.cancel()
        sessions.pop(session_id, None)
        logger.info(f"Session {session_id} removed from registry")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
