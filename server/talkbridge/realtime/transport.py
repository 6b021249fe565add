"""
transport.py — Bidirectional event channel to the realtime provider.

RealtimeTransport.open() performs the handshake and hands back an
EventChannel carrying JSON events in both directions. The production
implementation speaks the provider's WebSocket protocol; tests plug in an
in-memory channel.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidStatus
from websockets.protocol import State

from talkbridge.errors import RealtimeConnectionError

logger = logging.getLogger(__name__)

_HANDSHAKE_TIMEOUT_S = 10.0


class EventChannel(ABC):
    """One open event stream. Owned by the SessionConnectionManager."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...

    @abstractmethod
    async def send_text(self, data: str) -> None:
        ...

    @abstractmethod
    async def receive_text(self) -> Optional[str]:
        """Next raw frame, or None once the channel has closed."""
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    async def send_event(self, event: Dict[str, Any]) -> bool:
        """Serialize and send one event. Never raises; returns False if it was not sent."""
        if not self.is_open:
            logger.warning("[Channel] not open, dropping %s", event.get("type"))
            return False
        try:
            await self.send_text(json.dumps(event))
            return True
        except Exception as exc:
            logger.error(f"[Channel] send failed for {event.get('type')}: {exc}")
            return False


class RealtimeTransport(ABC):
    @abstractmethod
    async def open(self, token: str) -> EventChannel:
        """Handshake with the provider. Raises RealtimeConnectionError on failure."""
        ...


# ── WebSocket implementation ──────────────────────────────────────────────────

class WebSocketChannel(EventChannel):
    def __init__(self, ws: ClientConnection) -> None:
        self._ws = ws

    @property
    def is_open(self) -> bool:
        return self._ws.state is State.OPEN

    async def send_text(self, data: str) -> None:
        await self._ws.send(data)

    async def receive_text(self) -> Optional[str]:
        try:
            frame = await self._ws.recv()
        except ConnectionClosed:
            return None
        if isinstance(frame, bytes):
            return frame.decode("utf-8", errors="replace")
        return frame

    async def close(self) -> None:
        try:
            await self._ws.close()
        except Exception as exc:
            logger.debug(f"[Channel] close error ignored: {exc}")


class WebSocketTransport(RealtimeTransport):
    def __init__(self, url: str, model: str, timeout: float = _HANDSHAKE_TIMEOUT_S) -> None:
        self.url = url
        self.model = model
        self.timeout = timeout

    async def open(self, token: str) -> EventChannel:
        uri = f"{self.url}?model={self.model}"
        headers = {
            "Authorization": f"Bearer {token}",
            "OpenAI-Beta": "realtime=v1",
        }
        try:
            ws = await connect(uri, additional_headers=headers, max_size=None, open_timeout=self.timeout)
        except InvalidStatus as exc:
            raise RealtimeConnectionError(
                f"Realtime handshake rejected (HTTP {exc.response.status_code})"
            ) from exc
        except (InvalidHandshake, OSError, asyncio.TimeoutError) as exc:
            raise RealtimeConnectionError(f"Realtime handshake failed: {exc}") from exc

        channel = WebSocketChannel(ws)
        # The provider answers the upgrade with session.created; anything else is a bad answer.
        try:
            raw = await asyncio.wait_for(channel.receive_text(), timeout=self.timeout)
            answer = json.loads(raw) if raw is not None else None
        except (asyncio.TimeoutError, json.JSONDecodeError) as exc:
            await channel.close()
            raise RealtimeConnectionError(f"Malformed realtime session answer: {exc}") from exc

        if not isinstance(answer, dict) or answer.get("type") != "session.created":
            await channel.close()
            raise RealtimeConnectionError(f"Unexpected realtime session answer: {str(answer)[:120]}")

        logger.info("[Transport] realtime session created (model=%s)", self.model)
        return channel
