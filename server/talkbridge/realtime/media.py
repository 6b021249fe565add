"""
media.py — Audio input/output devices for a realtime session.

The microphone lives in the browser: it streams base64 PCM16 chunks over
the client WebSocket and they are pushed into an AudioInputTrack. Audio
coming back from the provider is written to an AudioOutput whose sink
forwards it to the browser.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Awaitable, Callable, Optional, Union

from talkbridge.errors import MediaAccessError

logger = logging.getLogger(__name__)

AudioSink = Callable[[str], Union[None, Awaitable[None]]]

_STOP = object()


class AudioInputTrack:
    kind = "audio"

    def __init__(self, max_buffered: int = 500) -> None:
        self.enabled = True
        self._stopped = False
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_buffered)

    @property
    def stopped(self) -> bool:
        return self._stopped

    def push(self, chunk_b64: str) -> None:
        """Feed one chunk from the client. Dropped when stopped, disabled or the buffer is full."""
        if self._stopped or not self.enabled or not chunk_b64:
            return
        try:
            self._queue.put_nowait(chunk_b64)
        except asyncio.QueueFull:
            logger.warning("[Media] input buffer full, dropping audio chunk")

    async def chunks(self) -> AsyncIterator[str]:
        while True:
            item = await self._queue.get()
            if item is _STOP:
                return
            if self.enabled:
                yield item

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        self.enabled = False
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_STOP)


class AudioOutput:
    def __init__(self, sink: Optional[AudioSink] = None) -> None:
        self._sink = sink
        self.muted = False
        self.paused = False
        self._stopped = False

    @property
    def stopped(self) -> bool:
        return self._stopped

    async def play(self, chunk_b64: str) -> None:
        if self._stopped or self.muted or self.paused or self._sink is None:
            return
        result = self._sink(chunk_b64)
        if inspect.isawaitable(result):
            await result

    def stop(self) -> None:
        self._stopped = True
        self._sink = None


class MediaProvider(ABC):
    @abstractmethod
    def open_input(self) -> AudioInputTrack:
        """Raises MediaAccessError if the microphone is unavailable."""
        ...

    @abstractmethod
    def open_output(self) -> AudioOutput:
        ...


class ClientMediaProvider(MediaProvider):
    """Devices backed by the browser on the other end of the client WebSocket."""

    def __init__(self, sink: AudioSink, microphone_granted: bool = True) -> None:
        self._sink = sink
        self.microphone_granted = microphone_granted

    def open_input(self) -> AudioInputTrack:
        if not self.microphone_granted:
            raise MediaAccessError("Microphone permission denied by the client")
        return AudioInputTrack()

    def open_output(self) -> AudioOutput:
        return AudioOutput(self._sink)
