"""
plugin.py — CareflowPlugin.

CareFlow AI, a voice assistant for nurses. Setup context (specialty,
patient group) lives under state["domain"]["careflow"]; the compliance
score and pending navigation live in the session flag store.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, List

from talkbridge.agent.core.contracts import PluginBase
from talkbridge.agent.plugins.careflow import compliance
from talkbridge.agent.plugins.careflow.prompts import build_instructions

if TYPE_CHECKING:
    from talkbridge.realtime.session import VoiceSession

logger = logging.getLogger(__name__)

DEFAULT_SPECIALTY = "General Routine"
DEFAULT_PATIENT_CONTEXT = "Adult"

CONFIRMATION_WORDS = ("yes", "sure", "okay", "ok", "go ahead", "take me")


class CareflowPlugin(PluginBase):

    @property
    def plugin_id(self) -> str:
        return "careflow"

    @property
    def instructions(self) -> str:
        return build_instructions(DEFAULT_SPECIALTY, DEFAULT_PATIENT_CONTEXT)

    @property
    def screens(self) -> List[str]:
        return ["chat", "settings"]

    def create_initial_state(self) -> Dict[str, Any]:
        return {
            "screen": self.initial_screen,
            "meta": {"plugin_id": self.plugin_id},
            "state_version": self.state_version,
            "domain": {
                "careflow": {
                    "context": {
                        "specialty": DEFAULT_SPECIALTY,
                        "patientContext": DEFAULT_PATIENT_CONTEXT,
                    },
                },
            },
        }

    def initial_flags(self) -> Dict[str, Any]:
        return {
            compliance.SCORE_FLAG: compliance.INITIAL_SCORE,
            compliance.APPLIED_FLAG: [],
            "pending_navigation": None,
            "camera_open": False,
            "camera_frame": None,
            "vitals_active": False,
        }

    def register_tools(self, registry) -> None:
        from talkbridge.agent.plugins.careflow.tools import register_tools
        register_tools(registry)

    async def on_assistant_reply(self, session: "VoiceSession", text: str) -> None:
        """Complete an armed settings navigation once the spoken reply confirms it."""
        if session.flags.get("pending_navigation") != "settings":
            return
        lowered = text.lower()
        if any(word in lowered for word in CONFIRMATION_WORDS):
            logger.info("[CareflowPlugin] navigation to settings confirmed")
            session.flags.set("pending_navigation", None)
            await session.navigate("settings")

    @property
    def capabilities(self) -> Dict[str, Any]:
        return {
            "voice_greeting": "Hi, I'm CareFlow AI. How can I help with your patients today?",
            "required_compliance": compliance.REQUIRED_SCORE,
        }
