"""
visuals.py — Visual deferral queue.

Function calls can finish (and produce a map, an offer card, ...) before
the spoken reply they belong to has been transcribed. Artifacts wait here,
invisible to the client, until the sequencer commits the next assistant
message and drains the queue right after it.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, List

from talkbridge.models import VisualArtifact

logger = logging.getLogger(__name__)


class VisualDeferralQueue:
    def __init__(self) -> None:
        self._pending: Deque[VisualArtifact] = deque()

    def enqueue(self, artifact: VisualArtifact) -> None:
        self._pending.append(artifact)
        logger.info("[Visuals] queued %s (%d pending)", artifact.kind, len(self._pending))

    def flush(self) -> List[VisualArtifact]:
        """Remove and return every queued artifact in enqueue order."""
        drained = list(self._pending)
        self._pending.clear()
        return drained

    def clear(self) -> None:
        self._pending.clear()

    def __len__(self) -> int:
        return len(self._pending)
