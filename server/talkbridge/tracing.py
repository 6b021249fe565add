"""
tracing.py — Langfuse tracing for chat-model calls.

Vision, vitals and search calls pass llm_run_config() as their LangChain
RunnableConfig. Without LANGFUSE_PUBLIC_KEY / LANGFUSE_SECRET_KEY the
config only carries metadata and nothing is sent anywhere.
"""

import logging
import os
from typing import Any, Dict, Optional

from langfuse.callback import CallbackHandler

logger = logging.getLogger(__name__)


def langfuse_handler(session_id: Optional[str] = None, purpose: Optional[str] = None) -> Optional[CallbackHandler]:
    public_key = os.getenv("LANGFUSE_PUBLIC_KEY")
    secret_key = os.getenv("LANGFUSE_SECRET_KEY")
    if not public_key or not secret_key:
        return None

    host = os.getenv("LANGFUSE_HOST") or os.getenv("LANGFUSE_BASE_URL", "https://cloud.langfuse.com")
    return CallbackHandler(
        public_key=public_key,
        secret_key=secret_key,
        host=host,
        session_id=session_id,
        trace_name=purpose,
        tags=[purpose] if purpose else None,
    )


def llm_run_config(session_id: Optional[str] = None, purpose: Optional[str] = None, **metadata: Any) -> Dict[str, Any]:
    config: Dict[str, Any] = {"metadata": {"session_id": session_id, "purpose": purpose, **metadata}}
    if purpose:
        config["run_name"] = purpose
    handler = langfuse_handler(session_id, purpose)
    if handler is not None:
        config["callbacks"] = [handler]
    else:
        logger.debug("[Tracing] Langfuse not configured, %s runs untraced", purpose or "call")
    return config
