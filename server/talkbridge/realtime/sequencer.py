"""
sequencer.py — Orders transcripts coming off the realtime channel.

The provider reports the user's transcription and the assistant's spoken
reply as independent events, and the reply can land first. The sequencer
holds an early assistant reply in a one-slot buffer for a short window so
that "user asked X" is always shown before "assistant answered Y".

Two interlocking cycles are tracked:

    user:       IDLE -> SPEAKING -> TRANSCRIBING -> IDLE
    assistant:  IDLE -> REPLYING (buffered) -> COMMITTED

Committing an assistant reply also drains the visual deferral queue, so
cards produced by function calls appear right after the reply they belong
to.

The commit window is a best-effort heuristic for network reordering, not
a guarantee; it is configurable through SEQUENCER_COMMIT_DELAY_MS.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from talkbridge.config import DEFAULT_COMMIT_DELAY_MS
from talkbridge.models import Speaker, TranscriptEvent, now_iso
from talkbridge.realtime.conversation import Conversation
from talkbridge.realtime.visuals import VisualDeferralQueue

logger = logging.getLogger(__name__)

# (delay_seconds, callback) -> handle with .cancel()
Scheduler = Callable[[float, Callable[[], None]], Any]


def _loop_scheduler(delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback)


class UserTurnState(str, Enum):
    IDLE = "idle"
    SPEAKING = "speaking"
    TRANSCRIBING = "transcribing"


class AssistantTurnState(str, Enum):
    IDLE = "idle"
    REPLYING = "replying"
    COMMITTED = "committed"


@dataclass
class PendingResponse:
    text: str
    received_at: str = field(default_factory=now_iso)
    timer: Any = None

    def cancel(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class EventSequencer:
    def __init__(
        self,
        conversation: Conversation,
        visuals: VisualDeferralQueue,
        commit_delay: float = DEFAULT_COMMIT_DELAY_MS / 1000.0,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self.conversation = conversation
        self.visuals = visuals
        self.commit_delay = commit_delay
        self._schedule = scheduler or _loop_scheduler

        self.user_state = UserTurnState.IDLE
        self.assistant_state = AssistantTurnState.IDLE
        self._pending: Optional[PendingResponse] = None
        # True once the current turn's user transcript has been shown.
        self._user_transcript_in_turn = False

    @property
    def pending(self) -> Optional[PendingResponse]:
        return self._pending

    # ── Channel events ────────────────────────────────────────────────────

    def on_speech_started(self) -> None:
        """A new user utterance began; any reply still buffered is stale."""
        if self._pending is not None:
            logger.info(f"[Sequencer] discarding buffered reply on speech start: {self._pending.text[:60]}")
            self._pending.cancel()
            self._pending = None
            self.assistant_state = AssistantTurnState.IDLE
        self.user_state = UserTurnState.SPEAKING
        self._user_transcript_in_turn = False

    def on_speech_stopped(self) -> None:
        self.user_state = UserTurnState.TRANSCRIBING

    def on_user_transcript(self, event: TranscriptEvent) -> None:
        self.user_state = UserTurnState.IDLE
        if not event.text.strip():
            return
        self.conversation.add_text(Speaker.USER.value, event.text)
        self._user_transcript_in_turn = True

        if self._pending is not None:
            logger.info("[Sequencer] committing buffered reply after user transcript")
            self._commit_pending()

    def on_assistant_transcript(self, event: TranscriptEvent) -> None:
        text = event.text
        if not text.strip():
            return

        if self._pending is not None:
            # An earlier reply is still waiting; keep it rather than drop it.
            self._commit_pending()

        if self._user_transcript_in_turn and self.user_state == UserTurnState.IDLE:
            self._commit(text)
            return

        pending = PendingResponse(text=text)
        pending.timer = self._schedule(self.commit_delay, lambda: self._on_commit_timer(pending))
        self._pending = pending
        self.assistant_state = AssistantTurnState.REPLYING

    def on_response_done(self) -> None:
        self._user_transcript_in_turn = False

    # ── Direct commits ────────────────────────────────────────────────────

    def commit_assistant(self, text: str) -> None:
        """Show an assistant note right away (tool status lines and the like)."""
        if self._pending is not None:
            self._commit_pending()
        self._commit(text)

    def close(self) -> None:
        """Drop any buffered reply without showing it."""
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        self.assistant_state = AssistantTurnState.IDLE
        self.user_state = UserTurnState.IDLE
        self._user_transcript_in_turn = False

    # ── Internals ─────────────────────────────────────────────────────────

    def _on_commit_timer(self, pending: PendingResponse) -> None:
        if self._pending is not pending:
            return
        pending.timer = None
        logger.info("[Sequencer] commit window elapsed, committing buffered reply")
        self._commit_pending()

    def _commit_pending(self) -> None:
        pending = self._pending
        if pending is None:
            return
        pending.cancel()
        self._pending = None
        self._commit(pending.text)

    def _commit(self, text: str) -> None:
        self.conversation.add_text(Speaker.ASSISTANT.value, text)
        for artifact in self.visuals.flush():
            self.conversation.add_visual(artifact)
        self.assistant_state = AssistantTurnState.COMMITTED
