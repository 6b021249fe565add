"""
session.py — VoiceSession, the per-client shared context.

One VoiceSession exists per client WebSocket and outlives every screen the
client shows. Screens only get read access to the status flags
(is_agent_connected / is_recording) and a fixed set of controls; the
connection handles stay private to the SessionConnectionManager.

Event routing for one turn:

    speech_started / transcription.completed / audio_transcript.done
        -> EventSequencer (ordering, commit window)
    response.done
        -> FunctionCallDispatcher (side effects, results, visuals)

Each response.done is dispatched on its own task, chained behind the
previous turn. Calls keep their array order and turns keep theirs, while
the channel reader goes on delivering audio and speech events during a
slow handler (photo analysis, web search).
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from itertools import count
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional, Set, Union

from talkbridge.models import Speaker, TranscriptEvent
from talkbridge.realtime.connection import (
    ConnectionState,
    EventHandler,
    SessionConnectionManager,
    TokenProvider,
)
from talkbridge.realtime.conversation import Conversation
from talkbridge.realtime.dispatcher import FunctionCallDispatcher, FunctionRegistry, ToolContext
from talkbridge.realtime.media import MediaProvider
from talkbridge.realtime.sequencer import EventSequencer, Scheduler
from talkbridge.realtime.transport import RealtimeTransport
from talkbridge.realtime.visuals import VisualDeferralQueue
from talkbridge.store import SessionFlags

if TYPE_CHECKING:
    from talkbridge.agent.core.contracts import PluginBase

logger = logging.getLogger(__name__)

NavigateCallback = Callable[[str], Union[None, Awaitable[None]]]
StatusCallback = Callable[[Dict[str, Any]], None]

_USER_TRANSCRIPT_EVENTS = {"conversation.item.input_audio_transcription.completed"}
_ASSISTANT_TRANSCRIPT_EVENTS = {"response.audio_transcript.done", "response.output_audio_transcript.done"}


class VoiceSession:
    def __init__(
        self,
        plugin: "PluginBase",
        token_provider: TokenProvider,
        transport: RealtimeTransport,
        media: MediaProvider,
        analysis: Any = None,
        commit_delay: Optional[float] = None,
        scheduler: Optional[Scheduler] = None,
        on_navigate: Optional[NavigateCallback] = None,
        on_status: Optional[StatusCallback] = None,
    ) -> None:
        self.plugin = plugin
        self.analysis = analysis
        self.app_state: Dict[str, Any] = plugin.create_initial_state()
        self.flags = SessionFlags(plugin.initial_flags())

        self.conversation = Conversation()
        self.visuals = VisualDeferralQueue()
        sequencer_kwargs: Dict[str, Any] = {"scheduler": scheduler}
        if commit_delay is not None:
            sequencer_kwargs["commit_delay"] = commit_delay
        self.sequencer = EventSequencer(self.conversation, self.visuals, **sequencer_kwargs)

        self.registry = FunctionRegistry()
        plugin.register_tools(self.registry)
        self.dispatcher = FunctionCallDispatcher(self.registry, lambda call: ToolContext(call, self))

        self._on_navigate = on_navigate
        self._on_status = on_status
        self._turn_tasks: Set[asyncio.Task] = set()
        self._last_turn: Optional[asyncio.Task] = None
        self.manager = SessionConnectionManager(
            token_provider, transport, media, on_state_change=self._state_changed
        )

        self.current_screen: str = self.app_state.get("screen") or plugin.initial_screen
        self._mounts = count(1)
        self.mount(self.current_screen)

    # ── Read-only status ──────────────────────────────────────────────────

    @property
    def is_agent_connected(self) -> bool:
        return self.manager.is_connected

    @property
    def is_recording(self) -> bool:
        return self.manager.is_recording

    @property
    def connection_state(self) -> ConnectionState:
        return self.manager.state

    def status(self) -> Dict[str, Any]:
        return {
            "state": self.manager.state.value,
            "connected": self.manager.is_connected,
            "recording": self.manager.is_recording,
            "screen": self.current_screen,
        }

    # ── Controls ──────────────────────────────────────────────────────────

    async def connect(self) -> bool:
        return await self.manager.connect(self.plugin.instructions, self.registry.schemas())

    async def disconnect(self) -> None:
        self.sequencer.close()
        self.visuals.clear()
        current = asyncio.current_task()
        for task in list(self._turn_tasks):
            if task is not current:
                task.cancel()
        await self.manager.disconnect()

    async def wait_for_turns(self) -> None:
        """Wait until every dispatched turn has finished running its calls."""
        while self._last_turn is not None and not self._last_turn.done():
            await asyncio.wait([self._last_turn])

    async def pause(self) -> bool:
        return await self.manager.pause()

    async def resume(self) -> bool:
        return await self.manager.resume()

    async def send_function_result(self, call_id: Optional[str], output: str) -> bool:
        return await self.manager.send_function_result(call_id, output)

    def push_audio(self, chunk_b64: str) -> None:
        self.manager.push_audio(chunk_b64)

    # ── Screens ───────────────────────────────────────────────────────────

    def mount(self, screen: str) -> EventHandler:
        """Register a fresh channel handler for the screen that just mounted."""
        self.current_screen = screen
        mount_id = next(self._mounts)

        async def _handler(event: Dict[str, Any]) -> None:
            await self.handle_realtime_event(event, screen=screen, mount_id=mount_id)

        self.manager.set_event_handler(_handler)
        logger.info("[VoiceSession] handler registered for screen=%s (mount %d)", screen, mount_id)
        return _handler

    async def navigate(self, screen: str) -> None:
        if screen not in self.plugin.screens:
            logger.warning("[VoiceSession] unknown screen %r for plugin %s", screen, self.plugin.plugin_id)
            return
        self.app_state["screen"] = screen
        self.current_screen = screen
        if self._on_navigate is not None:
            result = self._on_navigate(screen)
            if inspect.isawaitable(result):
                await result

    # ── Channel events ────────────────────────────────────────────────────

    async def handle_realtime_event(self, event: Dict[str, Any], screen: str = "", mount_id: int = 0) -> None:
        event_type = event.get("type", "")

        if event_type == "input_audio_buffer.speech_started":
            self.sequencer.on_speech_started()

        elif event_type == "input_audio_buffer.speech_stopped":
            self.sequencer.on_speech_stopped()

        elif event_type in _USER_TRANSCRIPT_EVENTS:
            text = event.get("transcript") or ""
            if text.strip():
                logger.info(f"[VoiceSession] USER: {text}")
            self.sequencer.on_user_transcript(
                TranscriptEvent(speaker=Speaker.USER, text=text, item_id=event.get("item_id"))
            )

        elif event_type in _ASSISTANT_TRANSCRIPT_EVENTS:
            text = event.get("transcript") or ""
            if not text.strip():
                return
            logger.info(f"[VoiceSession] AI: {text}")
            self.sequencer.on_assistant_transcript(
                TranscriptEvent(speaker=Speaker.ASSISTANT, text=text, item_id=event.get("item_id"))
            )
            await self.plugin.on_assistant_reply(self, text)

        elif event_type == "response.function_call_arguments.done":
            # Partial view of a call; executed from response.done only.
            logger.debug("[VoiceSession] function call %s streamed, waiting for response.done", event.get("name"))

        elif event_type == "response.done":
            self.sequencer.on_response_done()
            self._schedule_turn(event)

        elif event_type == "error":
            logger.error(f"[VoiceSession] realtime error (screen={screen}, mount={mount_id}): {event.get('error')}")

    # ── Internals ─────────────────────────────────────────────────────────

    def _schedule_turn(self, event: Dict[str, Any]) -> None:
        task = asyncio.create_task(self._run_turn(event, self._last_turn))
        self._turn_tasks.add(task)
        task.add_done_callback(self._turn_tasks.discard)
        self._last_turn = task

    async def _run_turn(self, event: Dict[str, Any], previous: Optional[asyncio.Task]) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        try:
            await self.dispatcher.handle_response_done(event)
        except Exception as exc:
            logger.error(f"[VoiceSession] turn dispatch failed: {exc}", exc_info=True)

    def _state_changed(self, state: ConnectionState, recording: bool) -> None:
        if self._on_status is not None:
            self._on_status(self.status())
