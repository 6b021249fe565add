"""
errors.py — Error taxonomy for the voice session runtime.

Only RealtimeConnectionError is surfaced to the user (as a server.error
message on the client WebSocket). Every other class is caught where it
happens, logged, and the conversation carries on.
"""

from __future__ import annotations


class TalkbridgeError(Exception):
    """Base class for all runtime errors raised by this package."""


class RealtimeConnectionError(TalkbridgeError, ConnectionError):
    """Token fetch, media access or transport handshake failed during connect()."""


class MediaAccessError(TalkbridgeError):
    """The client refused microphone access (or no audio device is available)."""


class TransportParseError(TalkbridgeError):
    """An event frame on the channel was not valid JSON or not a JSON object."""


class FunctionArgumentError(TalkbridgeError):
    """A function call arrived with arguments that could not be decoded."""


class UpstreamAnalysisError(TalkbridgeError):
    """A vision, vitals or search call to an upstream provider failed."""


class DuplicateActionError(TalkbridgeError):
    """A state-mutating action was requested for a target it was already applied to."""

    def __init__(self, action_id: str, message: str = ""):
        self.action_id = action_id
        super().__init__(message or f"Action {action_id!r} has already been applied")


class UpstreamStatusError(TalkbridgeError):
    """An upstream HTTP API answered with a non-2xx status."""

    def __init__(self, status_code: int, details: str = ""):
        self.status_code = status_code
        self.details = details
        super().__init__(f"Upstream returned HTTP {status_code}")
