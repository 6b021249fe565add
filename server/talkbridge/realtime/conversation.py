"""
conversation.py — Append-only display list for one session.

Holds chat bubbles and visual cards in the order the client must render
them. Listeners are notified synchronously after every append.
"""

from __future__ import annotations

import logging
from typing import Callable, List

from talkbridge.models import ChatMessage, VisualArtifact

logger = logging.getLogger(__name__)

# A repeated bubble with the same role and text inside this window is dropped.
DUPLICATE_WINDOW = 5

MessageListener = Callable[[ChatMessage], None]


class Conversation:
    def __init__(self) -> None:
        self._messages: List[ChatMessage] = []
        self._listeners: List[MessageListener] = []

    @property
    def messages(self) -> List[ChatMessage]:
        return list(self._messages)

    def subscribe(self, listener: MessageListener) -> None:
        self._listeners.append(listener)

    def add_text(self, role: str, text: str) -> ChatMessage | None:
        """Append a user/assistant bubble. Returns None if it was empty or a duplicate."""
        if not text or not text.strip():
            return None
        recent = [m for m in self._messages[-DUPLICATE_WINDOW:] if not m.is_visual]
        if any(m.role == role and m.text == text for m in recent):
            logger.info(f"[Conversation] dropping duplicate {role} message: {text[:60]}")
            return None
        message = ChatMessage(role=role, text=text)
        self._append(message)
        return message

    def add_visual(self, artifact: VisualArtifact) -> ChatMessage:
        message = ChatMessage(role="visual", artifact=artifact)
        self._append(message)
        return message

    def _append(self, message: ChatMessage) -> None:
        self._messages.append(message)
        for listener in list(self._listeners):
            try:
                listener(message)
            except Exception as exc:
                logger.error(f"[Conversation] listener error: {exc}")

    def __len__(self) -> int:
        return len(self._messages)
