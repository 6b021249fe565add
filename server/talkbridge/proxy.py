"""
proxy.py — Provider proxy API.

Endpoints:
    GET  /api/health          Liveness check.
    POST /api/token           Create a realtime session and return its ephemeral secret.
    POST /api/analyze-vitals  Visual vitals assessment (canned text when unavailable).
    POST /api/analyze-photo   Describe a camera frame.
    POST /api/search          Web search with GPT fallback.

Keys stay on the server; the browser only ever sees the ephemeral token.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from talkbridge import upstream
from talkbridge.agent.core.registry import describe_plugins, list_plugins
from talkbridge.config import Settings, load_settings
from talkbridge.errors import UpstreamAnalysisError, UpstreamStatusError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["proxy"])


def get_settings() -> Settings:
    return load_settings()


# ── Request models ────────────────────────────────────────────────────────────

class TokenRequest(BaseModel):
    prompt: Optional[str] = None
    tools: Optional[List[Dict[str, Any]]] = None


class PhotoRequest(BaseModel):
    image: str
    prompt: Optional[str] = None


class VitalsRequest(BaseModel):
    image: str
    context: Optional[Dict[str, Any]] = None
    sessionId: Optional[str] = None


class SearchRequest(BaseModel):
    query: str
    location: Optional[str] = None


# ── Endpoints ─────────────────────────────────────────────────────────────────

@router.get("/health")
def health():
    return {
        "status": "ok",
        "message": "Talkbridge API is running",
        "plugins": list_plugins(),
        "agents": describe_plugins(),
    }


@router.post("/token")
async def create_token(req: TokenRequest, settings: Settings = Depends(get_settings)):
    if not settings.openai_api_key:
        logger.error("[Proxy] OPENAI_API_KEY not configured")
        return JSONResponse(status_code=500, content={"error": "OPENAI_API_KEY not configured"})
    try:
        return await upstream.create_realtime_session(settings, req.prompt, req.tools)
    except UpstreamStatusError as exc:
        logger.error(f"[Proxy] OpenAI API error {exc.status_code}: {exc.details}")
        return JSONResponse(status_code=exc.status_code, content={"error": "OpenAI API error", "details": exc.details})
    except Exception as exc:
        logger.error(f"[Proxy] token request failed: {exc}")
        return JSONResponse(status_code=500, content={"error": "Failed to create session", "details": str(exc)})


@router.post("/analyze-vitals")
async def analyze_vitals(req: VitalsRequest, settings: Settings = Depends(get_settings)):
    result = await upstream.analyze_vitals(settings, req.image, req.context, req.sessionId)
    return {"result": result}


@router.post("/analyze-photo")
async def analyze_photo(req: PhotoRequest, settings: Settings = Depends(get_settings)):
    if not settings.openai_api_key:
        return JSONResponse(status_code=500, content={"error": "OPENAI_API_KEY not configured"})
    try:
        result = await upstream.analyze_photo(settings, req.image, req.prompt)
    except UpstreamAnalysisError as exc:
        return JSONResponse(status_code=500, content={"error": "Failed to analyze photo", "details": str(exc)})
    return {"result": result}


@router.post("/search")
async def search(req: SearchRequest, settings: Settings = Depends(get_settings)):
    try:
        return await upstream.web_search(settings, req.query, req.location)
    except Exception as exc:
        logger.error(f"[Proxy] search failed: {exc}")
        return JSONResponse(status_code=500, content={
            "success": False,
            "error": str(exc),
            "summary": "Search failed. Please try again or search manually.",
        })
