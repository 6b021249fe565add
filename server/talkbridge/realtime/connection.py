"""
connection.py — Session Connection Manager.

Owns the single realtime connection of a client session: the event
channel, the audio input track and the audio output. Nothing else touches
those handles; other components read the status flags or call the control
methods (connect / disconnect / pause / resume / send_function_result).

Channel events are delivered through a one-slot HandlerCell. Screens
re-register their handler on every mount and the reader task always reads
the cell, so a remount can never leave events flowing to a stale handler.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from talkbridge.errors import MediaAccessError, RealtimeConnectionError, TransportParseError
from talkbridge.models import FunctionCallResult
from talkbridge.realtime.media import AudioInputTrack, AudioOutput, MediaProvider
from talkbridge.realtime.transport import EventChannel, RealtimeTransport

logger = logging.getLogger(__name__)

TokenProvider = Callable[[str, List[Dict[str, Any]]], Awaitable[str]]
EventHandler = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]
StateListener = Callable[["ConnectionState", bool], None]

_AUDIO_DELTA_EVENTS = {"response.audio.delta", "response.output_audio.delta"}

# Long silence window so the assistant does not cut the user off mid-sentence.
SESSION_UPDATE = {
    "type": "session.update",
    "session": {
        "turn_detection": {
            "type": "server_vad",
            "threshold": 0.65,
            "prefix_padding_ms": 400,
            "silence_duration_ms": 1500,
        },
        "input_audio_transcription": {"model": "whisper-1"},
    },
}


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def parse_event(raw: str) -> Dict[str, Any]:
    """Decode one channel frame. Raises TransportParseError for anything but a JSON object."""
    try:
        event = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise TransportParseError(f"Invalid event JSON: {exc}") from exc
    if not isinstance(event, dict):
        raise TransportParseError(f"Event is not an object: {type(event).__name__}")
    return event


class HandlerCell:
    """Single-slot indirection to the latest registered event handler."""

    def __init__(self) -> None:
        self._handler: Optional[EventHandler] = None

    @property
    def current(self) -> Optional[EventHandler]:
        return self._handler

    def set(self, handler: Optional[EventHandler]) -> None:
        self._handler = handler

    async def dispatch(self, event: Dict[str, Any]) -> None:
        handler = self._handler
        if handler is None:
            logger.debug("[HandlerCell] no handler registered, dropping %s", event.get("type"))
            return
        result = handler(event)
        if inspect.isawaitable(result):
            await result


class SessionConnectionManager:
    def __init__(
        self,
        token_provider: TokenProvider,
        transport: RealtimeTransport,
        media: MediaProvider,
        on_state_change: Optional[StateListener] = None,
    ) -> None:
        self._token_provider = token_provider
        self._transport = transport
        self._media = media
        self._on_state_change = on_state_change

        self._state = ConnectionState.DISCONNECTED
        self._recording = False
        # Bumped by every connect attempt and every disconnect; a handshake
        # that finishes under an old generation is discarded.
        self._generation = 0

        self._channel: Optional[EventChannel] = None
        self._input: Optional[AudioInputTrack] = None
        self._output: Optional[AudioOutput] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._pump_task: Optional[asyncio.Task] = None

        self.handlers = HandlerCell()

    # ── Status ────────────────────────────────────────────────────────────

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def media(self) -> MediaProvider:
        return self._media

    @property
    def channel_open(self) -> bool:
        return self._channel is not None and self._channel.is_open

    def set_event_handler(self, handler: Optional[EventHandler]) -> None:
        self.handlers.set(handler)

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def connect(self, instructions: str, tools: List[Dict[str, Any]]) -> bool:
        """
        Fetch a token, open the audio devices and the event channel.

        Returns False without doing anything if a connection is already
        connecting or connected, or if disconnect() ran while the handshake
        was in flight. Raises RealtimeConnectionError on failure.
        """
        if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            logger.info("[Connection] connect() ignored, state=%s", self._state.value)
            return False

        self._generation += 1
        generation = self._generation
        self._set_state(ConnectionState.CONNECTING)

        input_track: Optional[AudioInputTrack] = None
        output: Optional[AudioOutput] = None
        channel: Optional[EventChannel] = None
        try:
            token = await self._token_provider(instructions, tools)
            if not token:
                raise RealtimeConnectionError("Token endpoint returned no client secret")
            if generation != self._generation:
                logger.info("[Connection] disconnected during token fetch, abandoning connect")
                return False
            input_track = self._media.open_input()
            output = self._media.open_output()
            channel = await self._transport.open(token)
        except Exception as exc:
            await self._release(channel, input_track, output)
            if generation == self._generation:
                self._set_state(ConnectionState.DISCONNECTED)
            if isinstance(exc, RealtimeConnectionError):
                raise
            if isinstance(exc, MediaAccessError):
                raise RealtimeConnectionError(f"Microphone access denied: {exc}") from exc
            raise RealtimeConnectionError(f"Failed to connect voice assistant: {exc}") from exc

        if generation != self._generation:
            logger.info("[Connection] disconnected during handshake, closing late channel")
            await self._release(channel, input_track, output)
            return False

        self._channel = channel
        self._input = input_track
        self._output = output
        self._reader_task = asyncio.create_task(self._read_loop(channel, output, generation))
        self._pump_task = asyncio.create_task(self._pump_audio(input_track, channel))
        self._recording = True
        self._set_state(ConnectionState.CONNECTED)
        logger.info("[Connection] voice connection established")

        await channel.send_event(SESSION_UPDATE)
        return True

    async def disconnect(self) -> None:
        """Stop media, close the channel and reset. Safe to call at any time, any number of times."""
        if self._state is ConnectionState.DISCONNECTED and self._channel is None:
            return

        self._generation += 1
        current = asyncio.current_task()
        for task in (self._reader_task, self._pump_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._reader_task = None
        self._pump_task = None

        channel, input_track, output = self._channel, self._input, self._output
        self._channel = None
        self._input = None
        self._output = None
        await self._release(channel, input_track, output)

        self._recording = False
        self._set_state(ConnectionState.DISCONNECTED)
        logger.info("[Connection] disconnected")

    # ── Controls ──────────────────────────────────────────────────────────

    async def pause(self) -> bool:
        """Mute both directions and cancel the reply in progress; the channel stays open."""
        if not self.is_connected:
            return False
        if self._input is not None:
            self._input.enabled = False
        if self._output is not None:
            self._output.muted = True
            self._output.paused = True
        await self.send_event({"type": "response.cancel"})
        self._recording = False
        self._notify()
        logger.info("[Connection] paused")
        return True

    async def resume(self) -> bool:
        if not self.is_connected:
            return False
        if self._input is not None:
            self._input.enabled = True
        if self._output is not None:
            self._output.muted = False
            self._output.paused = False
        self._recording = True
        self._notify()
        logger.info("[Connection] resumed")
        return True

    def push_audio(self, chunk_b64: str) -> None:
        if self._input is not None:
            self._input.push(chunk_b64)

    async def send_event(self, event: Dict[str, Any]) -> bool:
        channel = self._channel
        if channel is None:
            logger.warning("[Connection] no channel, dropping %s", event.get("type"))
            return False
        return await channel.send_event(event)

    async def send_function_result(self, call_id: Optional[str], output: str) -> bool:
        """Return a tool result and ask the model to continue its turn."""
        if not call_id:
            logger.warning("[Connection] function result without call_id dropped")
            return False
        if not self.channel_open:
            logger.warning("[Connection] channel not open, function result for %s dropped", call_id)
            return False
        result = FunctionCallResult(call_id=call_id, output=output)
        sent = await self.send_event({"type": "conversation.item.create", "item": result.as_item()})
        if sent:
            await self.send_event({"type": "response.create"})
        return sent

    # ── Internals ─────────────────────────────────────────────────────────

    async def _read_loop(self, channel: EventChannel, output: AudioOutput, generation: int) -> None:
        try:
            while True:
                raw = await channel.receive_text()
                if raw is None:
                    break
                try:
                    event = parse_event(raw)
                except TransportParseError as exc:
                    logger.warning(f"[Connection] dropping event: {exc}")
                    continue

                if event.get("type") in _AUDIO_DELTA_EVENTS:
                    try:
                        await output.play(event.get("delta") or "")
                    except Exception as exc:
                        logger.error(f"[Connection] audio output error: {exc}")
                    continue

                try:
                    await self.handlers.dispatch(event)
                except Exception as exc:
                    logger.error(f"[Connection] handler error on {event.get('type')}: {exc}", exc_info=True)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error(f"[Connection] reader stopped: {exc}")

        if generation == self._generation:
            logger.info("[Connection] channel closed by remote")
            await self.disconnect()

    async def _pump_audio(self, track: AudioInputTrack, channel: EventChannel) -> None:
        async for chunk in track.chunks():
            await channel.send_event({"type": "input_audio_buffer.append", "audio": chunk})

    async def _release(
        self,
        channel: Optional[EventChannel],
        input_track: Optional[AudioInputTrack],
        output: Optional[AudioOutput],
    ) -> None:
        if input_track is not None:
            input_track.stop()
        if output is not None:
            output.stop()
        if channel is not None:
            try:
                await channel.close()
            except Exception as exc:
                logger.debug(f"[Connection] channel close error ignored: {exc}")

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        logger.info("[Connection] %s -> %s", self._state.value, state.value)
        self._state = state
        self._notify()

    def _notify(self) -> None:
        if self._on_state_change is None:
            return
        try:
            self._on_state_change(self._state, self._recording)
        except Exception as exc:
            logger.error(f"[Connection] state listener error: {exc}")
