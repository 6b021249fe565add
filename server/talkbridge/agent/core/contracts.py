"""
contracts.py — Shared plugin interface for the application variants.

Every variant (tourist concierge, nurse assistant, ...) is a plugin: it
owns the realtime instructions, the function-call tools and the screens
its client can show. The runtime (main.py, VoiceSession) only talks to
plugins through PluginBase.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, TypedDict

if TYPE_CHECKING:
    from talkbridge.realtime.dispatcher import FunctionRegistry
    from talkbridge.realtime.session import VoiceSession


# ── App State ───────────────────────────────────────────────────────────────────
#
# Envelope keys the runtime reads. Variant data lives under state["domain"][plugin_id].

class AppState(TypedDict, total=False):
    screen: str                         # screen the client is showing
    meta: Dict[str, Any]                # { plugin_id, ... }
    domain: Dict[str, Any]              # plugin-owned payload keyed by plugin_id
    state_version: int


# ── Plugin Interface ──────────────────────────────────────────────────────────────

class PluginBase(ABC):
    """
    Abstract base for all application variants.

    Implement plugin_id, instructions, screens, create_initial_state and
    register_tools. The remaining hooks have no-op defaults.
    """

    @property
    @abstractmethod
    def plugin_id(self) -> str:
        """Unique slug, e.g. 'tourist' or 'careflow'."""
        ...

    @property
    def state_version(self) -> int:
        """Increment when the plugin's domain state shape changes."""
        return 1

    @property
    @abstractmethod
    def instructions(self) -> str:
        """System prompt sent with the realtime token request."""
        ...

    @property
    @abstractmethod
    def screens(self) -> List[str]:
        """Screen names the client can mount for this plugin."""
        ...

    @property
    def initial_screen(self) -> str:
        return self.screens[0]

    @abstractmethod
    def create_initial_state(self) -> Dict[str, Any]:
        """Return a fully-initialised AppState dict for a new session."""
        ...

    def initial_flags(self) -> Dict[str, Any]:
        """Seed values for the session flag store."""
        return {}

    @abstractmethod
    def register_tools(self, registry: "FunctionRegistry") -> None:
        """Register every function-call handler together with its schema."""
        ...

    async def on_assistant_reply(self, session: "VoiceSession", text: str) -> None:
        """
        Optional hook run after each finished assistant transcript.

        The default implementation is a no-op.
        """

    @property
    def capabilities(self) -> Dict[str, Any]:
        """
        Optional metadata about what this plugin supports.

        Not used by the runtime; intended for tooling and documentation.
        """
        return {}
