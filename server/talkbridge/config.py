"""
config.py — Environment-driven settings.

Values are read from the process environment (a .env file is loaded first
if present). Settings are resolved once per call to load_settings(); tests
build their own Settings directly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_REALTIME_MODEL = "gpt-realtime-2025-08-28"
DEFAULT_REALTIME_URL = "wss://api.openai.com/v1/realtime"
DEFAULT_COMMIT_DELAY_MS = 200


@dataclass(frozen=True)
class Settings:
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    realtime_model: str = DEFAULT_REALTIME_MODEL
    realtime_url: str = DEFAULT_REALTIME_URL
    voice: str = "shimmer"
    google_api_key: Optional[str] = None
    google_search_cx: Optional[str] = None
    vision_model: str = "gpt-4o"
    vitals_model: str = "claude-sonnet-4-20250514"
    commit_delay_ms: int = DEFAULT_COMMIT_DELAY_MS

    @property
    def commit_delay_s(self) -> float:
        return self.commit_delay_ms / 1000.0


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    """Build Settings from the current environment."""
    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or None,
        realtime_model=os.getenv("OPENAI_REALTIME_MODEL", DEFAULT_REALTIME_MODEL),
        realtime_url=os.getenv("OPENAI_REALTIME_URL", DEFAULT_REALTIME_URL),
        voice=os.getenv("OPENAI_VOICE", "shimmer"),
        google_api_key=os.getenv("GOOGLE_API_KEY") or None,
        google_search_cx=os.getenv("GOOGLE_SEARCH_CX") or None,
        vision_model=os.getenv("VISION_MODEL_ID", "gpt-4o"),
        vitals_model=os.getenv("VITALS_MODEL_ID", "claude-sonnet-4-20250514"),
        commit_delay_ms=_int_env("SEQUENCER_COMMIT_DELAY_MS", DEFAULT_COMMIT_DELAY_MS),
    )
