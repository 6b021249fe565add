"""
plugin.py — TouristPlugin.

Tourist ONE, a voice concierge for visitors to Thailand. Account data
(plan, loyalty balance) lives under state["domain"]["tourist"]. The
voice-built itinerary is a session flag so every change reaches the client
as server.flags.update.
"""

from __future__ import annotations

from typing import Any, Dict, List

from talkbridge.agent.core.contracts import PluginBase
from talkbridge.agent.plugins.tourist import itinerary
from talkbridge.agent.plugins.tourist.prompts import INSTRUCTIONS


class TouristPlugin(PluginBase):

    @property
    def plugin_id(self) -> str:
        return "tourist"

    @property
    def instructions(self) -> str:
        return INSTRUCTIONS

    @property
    def screens(self) -> List[str]:
        return ["home", "explore", "itinerary", "translate", "offers", "loyalty", "chat"]

    def create_initial_state(self) -> Dict[str, Any]:
        return {
            "screen": self.initial_screen,
            "meta": {"plugin_id": self.plugin_id},
            "state_version": self.state_version,
            "domain": {
                "tourist": {
                    "user": {
                        "plan_name": "Tourist 7-Day Unlimited",
                        "data_remaining": "45.2 GB",
                        "days_left": 5,
                    },
                    "loyalty": {"balance": 150},
                },
            },
        }

    def initial_flags(self) -> Dict[str, Any]:
        return {"camera_open": False, "camera_frame": None, "itinerary": itinerary.empty_itinerary()}

    def register_tools(self, registry) -> None:
        from talkbridge.agent.plugins.tourist.tools import register_tools
        register_tools(registry)

    @property
    def capabilities(self) -> Dict[str, Any]:
        return {
            "voice_greeting": "Sawasdee! I'm Tourist ONE. Where would you like to go today?",
            "visual_kinds": ["offer", "map", "currency", "transport", "atm", "directions"],
        }
