"""
upstream.py — Outbound calls to the AI providers.

Shared by the /api proxy routes and by function-call handlers:

    create_realtime_session   OpenAI realtime session (ephemeral client secret)
    analyze_photo             GPT-4o vision description of a camera frame
    analyze_vitals            Claude assessment of visible health indicators
    web_search                Google Custom Search, then GPT fallback

Plain HTTP goes through urllib on a worker thread; chat-model calls go
through LangChain so they can be traced with Langfuse.
"""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Dict, List, Optional

from talkbridge.config import Settings
from talkbridge.errors import RealtimeConnectionError, UpstreamAnalysisError, UpstreamStatusError
from talkbridge.tracing import llm_run_config

logger = logging.getLogger(__name__)

_OPENAI_SESSIONS_URL = "https://api.openai.com/v1/realtime/sessions"
_GOOGLE_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"
_HTTP_TIMEOUT_S = 20

DEFAULT_SEARCH_LOCATION = "Bangkok, Thailand"

MOCK_VITALS_RESULT = """**Vitals Assessment**

• Heart Rate: ~72-78 bpm (Normal range)
• Respiratory Rate: ~16-18 breaths/min (Normal)
• Skin Color: Good perfusion, no cyanosis
• Alertness: Appears alert and responsive
• No obvious signs of distress

Note: This is a demonstration. Real vitals require medical devices."""

FALLBACK_VITALS_RESULT = """**Assessment Summary**

• Visual inspection suggests stable condition
• No obvious signs of acute distress
• Further assessment recommended with vital sign equipment
• Document findings in patient chart

Note: AI analysis is for documentation assistance only."""

SEARCH_UNAVAILABLE_SUMMARY = (
    "I apologize, but I cannot search the internet right now. "
    "Please try searching on Google Maps or the official website."
)

_PHOTO_SYSTEM_PROMPT = (
    "You are analyzing a photo taken from a webcam or phone camera. This is a REAL photo of a person or "
    "their surroundings - NOT an X-ray, CT scan, MRI, or any medical imaging. Never describe this as "
    "medical imaging. Describe what you actually see: the person, their face, surroundings, objects, "
    "lighting, etc. If asked about health, only comment on what is visually apparent (skin condition, "
    "posture, visible bandages, etc)."
)

_PHOTO_DEFAULT_PROMPT = (
    "Describe what you see in this photo. Focus on the person, their surroundings, and any observations "
    "that might be relevant for healthcare documentation."
)


# ─── Helper: blocking HTTP ────────────────────────────────────────────────────

def _request_json(url: str, body: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None) -> Any:
    data = json.dumps(body).encode() if body is not None else None
    req = urllib.request.Request(url, data=data, headers=headers or {}, method="POST" if data else "GET")
    try:
        with urllib.request.urlopen(req, timeout=_HTTP_TIMEOUT_S) as resp:
            return json.loads(resp.read())
    except urllib.error.HTTPError as exc:
        details = exc.read().decode("utf-8", errors="replace")
        raise UpstreamStatusError(exc.code, details) from exc


async def request_json(url: str, body: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None) -> Any:
    """Run a JSON HTTP request on a worker thread so the event loop stays free."""
    return await asyncio.to_thread(_request_json, url, body, headers)


# ─── Helper: images ───────────────────────────────────────────────────────────

def split_data_url(image: str, default_media_type: str = "image/jpeg") -> tuple[str, str]:
    """Return (media_type, base64_payload) for a data URL or a bare base64 string."""
    if image.startswith("data:") and "," in image:
        header, payload = image.split(",", 1)
        media_type = header[len("data:"):].split(";", 1)[0] or default_media_type
        return media_type, payload
    if "," in image:
        return default_media_type, image.split(",", 1)[1]
    return default_media_type, image


# ─── Realtime session token ───────────────────────────────────────────────────

def realtime_session_config(settings: Settings, prompt: Optional[str], tools: Optional[List[Dict[str, Any]]]) -> Dict[str, Any]:
    config: Dict[str, Any] = {
        "model": settings.realtime_model,
        "voice": settings.voice,
        "instructions": prompt or "You are a helpful assistant.",
        "modalities": ["text", "audio"],
        "input_audio_format": "pcm16",
        "output_audio_format": "pcm16",
        "input_audio_transcription": {"model": "whisper-1"},
        "turn_detection": {
            "type": "server_vad",
            "threshold": 0.4,
            "prefix_padding_ms": 300,
            "silence_duration_ms": 500,
            "idle_timeout_ms": 10000,
        },
        "temperature": 0.6,
        "max_response_output_tokens": 4096,
    }
    if tools:
        config["tools"] = tools
        config["tool_choice"] = "auto"
    return config


async def create_realtime_session(settings: Settings, prompt: Optional[str], tools: Optional[List[Dict[str, Any]]]) -> Dict[str, Any]:
    """Create a realtime session upstream. Raises UpstreamStatusError on a non-2xx answer."""
    if not settings.openai_api_key:
        raise UpstreamStatusError(500, "OPENAI_API_KEY not configured")
    logger.info("[Upstream] creating realtime session (model=%s, tools=%s)",
                settings.realtime_model, [t.get("name") for t in tools or []])
    return await request_json(
        _OPENAI_SESSIONS_URL,
        realtime_session_config(settings, prompt, tools),
        {
            "Authorization": f"Bearer {settings.openai_api_key}",
            "Content-Type": "application/json",
        },
    )


def realtime_token_provider(settings: Settings):
    """TokenProvider for SessionConnectionManager: returns the ephemeral client secret."""

    async def _fetch(instructions: str, tools: List[Dict[str, Any]]) -> str:
        try:
            data = await create_realtime_session(settings, instructions, tools)
        except UpstreamStatusError as exc:
            raise RealtimeConnectionError(f"Token request failed with HTTP {exc.status_code}: {exc.details}") from exc
        except (urllib.error.URLError, OSError, ValueError) as exc:
            raise RealtimeConnectionError(f"Token request failed: {exc}") from exc
        secret = (data.get("client_secret") or {}).get("value")
        if not secret:
            raise RealtimeConnectionError("Token response did not contain a client secret")
        return secret

    return _fetch


# ─── Vision / vitals ──────────────────────────────────────────────────────────

async def analyze_photo(settings: Settings, image: str, prompt: Optional[str] = None, session_id: str = None) -> str:
    """Describe a camera frame with GPT-4o. Raises UpstreamAnalysisError on failure."""
    if not settings.openai_api_key:
        raise UpstreamAnalysisError("OPENAI_API_KEY not configured")
    try:
        from langchain_core.messages import HumanMessage, SystemMessage
        from langchain_openai import ChatOpenAI

        _media_type, payload = split_data_url(image)
        llm = ChatOpenAI(
            model=settings.vision_model,
            api_key=settings.openai_api_key,
            temperature=0.5,
            max_tokens=1024,
        )
        response = await llm.ainvoke(
            [
                SystemMessage(content=_PHOTO_SYSTEM_PROMPT),
                HumanMessage(content=[
                    {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{payload}", "detail": "low"}},
                    {"type": "text", "text": prompt or _PHOTO_DEFAULT_PROMPT},
                ]),
            ],
            config=llm_run_config(session_id, purpose="analyze_photo"),
        )
        return response.content
    except Exception as exc:
        logger.error(f"[Upstream] photo analysis failed: {exc}")
        raise UpstreamAnalysisError(str(exc)) from exc


def _vitals_prompt(context: Dict[str, Any]) -> str:
    specialty = context.get("specialty", "general care")
    patient_context = context.get("patientContext", "adult")
    return (
        f"You are CareFlow AI assisting a nurse in {specialty} with {patient_context} patients.\n\n"
        "Analyze this photo for visible health indicators:\n"
        "- Skin color and tone (pallor, cyanosis, jaundice)\n"
        "- Facial expressions (pain, distress, alertness)\n"
        "- Any visible medical devices or equipment\n"
        "- General appearance and condition\n"
        "- Approximate respiratory effort (if visible)\n\n"
        "Provide a concise clinical assessment (3-4 bullet points) that a nurse can document. Be professional "
        "and HIPAA-aware. If you cannot extract medical information from the image, state that clearly."
    )


async def analyze_vitals(settings: Settings, image: str, context: Optional[Dict[str, Any]] = None, session_id: str = None) -> str:
    """Assess visible vitals with Claude. Degrades to canned text, never raises."""
    if not settings.anthropic_api_key:
        logger.warning("[Upstream] ANTHROPIC_API_KEY not configured, using mock analysis")
        return MOCK_VITALS_RESULT
    try:
        from langchain_anthropic import ChatAnthropic
        from langchain_core.messages import HumanMessage

        media_type, payload = split_data_url(image)
        llm = ChatAnthropic(model=settings.vitals_model, api_key=settings.anthropic_api_key, max_tokens=1024)
        response = await llm.ainvoke(
            [HumanMessage(content=[
                {"type": "image", "source_type": "base64", "mime_type": media_type, "data": payload},
                {"type": "text", "text": _vitals_prompt(context or {})},
            ])],
            config=llm_run_config(session_id, purpose="analyze_vitals"),
        )
        return response.content if isinstance(response.content, str) else str(response.content)
    except Exception as exc:
        logger.error(f"[Upstream] vitals analysis failed: {exc}")
        return FALLBACK_VITALS_RESULT


# ─── Web search ───────────────────────────────────────────────────────────────

def _search_system_prompt(location: str) -> str:
    return (
        "You are a helpful assistant providing accurate, up-to-date information about businesses, shops, "
        "restaurants, and places in Thailand, especially Bangkok.\n\n"
        "IMPORTANT: When asked about specific businesses or shops:\n"
        "1. If you know the business exists in Thailand, provide details (location, address if known, hours, what they sell)\n"
        "2. If you're uncertain, say so and suggest alternatives\n"
        "3. For international brands, check if they have stores in Thailand\n"
        "4. Provide practical advice on how to find or verify the location\n\n"
        f"Current search context: User is in {location}"
    )


async def _google_search(settings: Settings, query: str, location: str) -> Optional[Dict[str, Any]]:
    params = urllib.parse.urlencode({
        "key": settings.google_api_key,
        "cx": settings.google_search_cx,
        "q": f"{query} {location}",
        "num": 5,
    })
    try:
        data = await request_json(f"{_GOOGLE_SEARCH_URL}?{params}")
    except Exception as exc:
        logger.warning(f"[Upstream] Google search failed: {exc}")
        return None
    results = [
        {
            "title": item.get("title"),
            "snippet": item.get("snippet"),
            "link": item.get("link"),
            "displayLink": item.get("displayLink"),
        }
        for item in data.get("items") or []
    ]
    logger.info("[Upstream] Google search returned %d results", len(results))
    return {
        "success": True,
        "source": "google",
        "results": results,
        "summary": "\n\n".join(f"{r['title']}: {r['snippet']}" for r in results[:3]),
    }


async def _gpt_search(settings: Settings, query: str, location: str, session_id: str = None) -> Optional[Dict[str, Any]]:
    try:
        from langchain_core.messages import HumanMessage, SystemMessage
        from langchain_openai import ChatOpenAI

        llm = ChatOpenAI(model="gpt-4o", api_key=settings.openai_api_key, temperature=0.3, max_tokens=500)
        response = await llm.ainvoke(
            [
                SystemMessage(content=_search_system_prompt(location)),
                HumanMessage(content=(
                    f'Search query: "{query}"\n\n'
                    "Please provide accurate, helpful information about this search. If it's a business/shop "
                    "query, include:\n- Whether this business exists in Thailand/Bangkok\n- Known locations or "
                    "addresses\n- Alternatives if the specific place doesn't exist\n- How to verify or find more "
                    "information"
                )),
            ],
            config=llm_run_config(session_id, purpose="web_search"),
        )
    except Exception as exc:
        logger.warning(f"[Upstream] GPT search fallback failed: {exc}")
        return None
    result = response.content
    return {
        "success": True,
        "source": "gpt-4",
        "results": [{"title": "AI Search Result", "snippet": result}],
        "summary": result,
    }


async def web_search(settings: Settings, query: str, location: Optional[str] = None, session_id: str = None) -> Dict[str, Any]:
    """Google first, GPT second, otherwise a failure summary the assistant can read out."""
    location = location or DEFAULT_SEARCH_LOCATION
    logger.info(f"[Upstream] web search: {query}")

    if settings.google_api_key and settings.google_search_cx:
        found = await _google_search(settings, query, location)
        if found is not None:
            return found

    if settings.openai_api_key:
        found = await _gpt_search(settings, query, location, session_id)
        if found is not None:
            return found

    logger.warning("[Upstream] no search provider available")
    return {
        "success": False,
        "error": "Search API not configured",
        "results": [],
        "summary": SEARCH_UNAVAILABLE_SUMMARY,
    }


class AnalysisClient:
    """Upstream calls bound to one session's settings; handed to function-call handlers."""

    def __init__(self, settings: Settings, session_id: str = None) -> None:
        self.settings = settings
        self.session_id = session_id

    async def analyze_photo(self, image: str, prompt: Optional[str] = None) -> str:
        return await analyze_photo(self.settings, image, prompt, self.session_id)

    async def analyze_vitals(self, image: str, context: Optional[Dict[str, Any]] = None) -> str:
        return await analyze_vitals(self.settings, image, context, self.session_id)

    async def search(self, query: str, location: Optional[str] = None) -> Dict[str, Any]:
        return await web_search(self.settings, query, location, self.session_id)
