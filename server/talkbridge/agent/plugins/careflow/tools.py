"""
tools.py — Function-call handlers for the CareFlow nurse assistant.

Patient records are gated by the compliance score (see compliance.py).
When access is refused the handler arms a pending settings navigation
that the plugin completes once the assistant's reply confirms it.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Tuple

from talkbridge.agent.plugins.careflow import compliance, records
from talkbridge.errors import DuplicateActionError, UpstreamAnalysisError
from talkbridge.realtime.dispatcher import FunctionRegistry, ToolContext, ToolHandler

logger = logging.getLogger(__name__)

PLUGIN_ID = "careflow"
PENDING_NAVIGATION_FLAG = "pending_navigation"

VITALS_BADGE = (
    "<vitals-badge>Vitals Monitoring Active</vitals-badge> I can see your live vital signs. "
    'Say "take a photo" to capture the current readings.'
)
VITALS_INACTIVE = "Vitals monitoring is not currently active. Please ask the user to start vitals monitoring first."
PHOTO_FAILURE_RESULT = "I had trouble analyzing the photo. Please try again."
PHOTO_PROMPT = (
    "Look at this photo and describe EXACTLY what you see. This is a real photo from a camera, NOT an X-ray "
    "or medical scan. Describe the person, their surroundings, any visible objects, and any observations "
    "about their appearance that could be relevant for healthcare documentation. Be specific about what is "
    "actually visible."
)


def _context(ctx: ToolContext) -> Dict[str, Any]:
    return ctx.state.get("domain", {}).get(PLUGIN_ID, {}).get("context", {})


def _close_camera(ctx: ToolContext) -> None:
    ctx.flags.set("camera_open", False)
    ctx.flags.set("vitals_active", False)


# ── Camera & vitals ───────────────────────────────────────────────────────────

def open_camera(ctx: ToolContext) -> None:
    ctx.flags.set("camera_open", True)
    ctx.flags.set("vitals_active", False)


def check_vitals(ctx: ToolContext) -> None:
    ctx.flags.set("camera_open", True)
    ctx.flags.set("vitals_active", True)
    ctx.flags.set("current_vitals", records.generate_vitals())
    ctx.announce(VITALS_BADGE)


async def read_current_vitals(ctx: ToolContext) -> None:
    vitals = ctx.flags.get("current_vitals")
    if not ctx.flags.get("vitals_active") or not vitals:
        await ctx.send_result(VITALS_INACTIVE)
        return
    await ctx.send_result(records.format_vitals(vitals))


async def take_photo(ctx: ToolContext) -> None:
    frame = ctx.flags.get("camera_frame")
    if not frame or ctx.analysis is None:
        logger.warning("[CareflowTools] take_photo without a camera frame or analysis client")
        await ctx.send_result(PHOTO_FAILURE_RESULT)
        return
    try:
        result = await ctx.analysis.analyze_photo(frame, ctx.arguments.get("prompt") or PHOTO_PROMPT)
    except UpstreamAnalysisError as exc:
        logger.error(f"[CareflowTools] photo analysis failed: {exc}")
        await ctx.send_result(PHOTO_FAILURE_RESULT)
        return
    await ctx.send_result(f"Photo captured and analyzed: {result}")


async def analyze_vitals_photo(ctx: ToolContext) -> None:
    frame = ctx.flags.get("camera_frame")
    if not frame or ctx.analysis is None:
        await ctx.send_result(PHOTO_FAILURE_RESULT)
        return
    assessment = await ctx.analysis.analyze_vitals(frame, _context(ctx))
    await ctx.send_result(assessment)


# ── Navigation ────────────────────────────────────────────────────────────────

async def navigate_to_settings(ctx: ToolContext) -> None:
    ctx.flags.set(PENDING_NAVIGATION_FLAG, None)
    _close_camera(ctx)
    await ctx.navigate("settings")


async def navigate_to_chat(ctx: ToolContext) -> None:
    await ctx.navigate("chat")


def _describe_settings(ctx: ToolContext) -> str:
    score = compliance.current_score(ctx.flags)
    applied = compliance.applied_settings(ctx.flags)
    if applied:
        applied_line = f"**Already applied:** {len(applied)} security setting(s)"
    else:
        applied_line = "**No settings applied yet** - recommend starting with Critical items"
    return (
        "You are currently on the **Security & Compliance Settings** page.\n\n"
        f"**Current Security Score: {score}%**\n\n"
        "This page displays:\n"
        "- **Security recommendations** that need attention\n"
        "- **Compliance categories**: Data Protection, Zero Trust, Identity & Access, Regulatory, "
        "Governance, and Logging\n"
        "- Each recommendation shows its **impact level** (Critical or High) and can be applied individually\n\n"
        "**Available actions:**\n"
        "- Critical items include: End-to-End Encryption, HIPAA Compliance Mode\n"
        "- High priority items include: Audit Logging, Secure Storage\n\n"
        f"{applied_line}\n\n"
        'The user can ask you to apply specific settings like "apply encryption" or "enable audit logging".'
    )


def _describe_chat(ctx: ToolContext) -> str:
    context = _context(ctx)
    return (
        "You are currently on the **CareFlow AI Chat** screen.\n\n"
        "This is the main conversation interface where:\n"
        "- Users can ask about **patient information** (requires security compliance)\n"
        "- Access **camera features** for photo capture and vitals monitoring\n"
        "- Navigate to **settings** for security configuration\n\n"
        "The chat shows conversation history and has controls for:\n"
        "- Voice recording (dynamic island)\n"
        "- Camera capture\n"
        "- Photo gallery (if photos have been taken)\n\n"
        f"Current session: {context.get('specialty', 'General Routine')} specialty, "
        f"{context.get('patientContext', 'Adult')} patient context."
    )


async def describe_current_screen(ctx: ToolContext) -> None:
    if ctx.state.get("screen") == "settings":
        await ctx.send_result(_describe_settings(ctx))
    else:
        await ctx.send_result(_describe_chat(ctx))


# ── Patient records & compliance ──────────────────────────────────────────────

async def get_patient_data(ctx: ToolContext) -> None:
    score = compliance.current_score(ctx.flags)
    if score < compliance.REQUIRED_SCORE:
        logger.info("[CareflowTools] patient data refused at %d%% compliance", score)
        await ctx.send_result(
            f"SECURITY_CHECK_REQUIRED: Current security compliance is {score}%. Patient data access requires "
            f"{compliance.REQUIRED_SCORE}% or higher compliance. You must inform the user about the security "
            "percentage and ask if you can take them to the configuration page."
        )
        ctx.flags.set(PENDING_NAVIGATION_FLAG, "settings")
        return
    patient_id = str(ctx.arguments.get("patient_id") or "unknown")
    await ctx.send_result(records.generate_patient_record(patient_id, _context(ctx).get("specialty", "General Routine")))


async def apply_security_setting(ctx: ToolContext) -> None:
    setting_id = ctx.arguments.get("setting_id") or ""
    setting = compliance.SECURITY_SETTINGS.get(setting_id)
    if setting is None:
        logger.error("[CareflowTools] invalid security setting id %r", setting_id)
        return
    try:
        old_score, new_score = compliance.apply_setting(ctx.flags, setting_id)
    except DuplicateActionError:
        message = f"{setting.title} is already enabled. Current security score: {compliance.current_score(ctx.flags)}%."
    else:
        message = f"✓ Successfully applied {setting.title}! Security score increased from {old_score}% to {new_score}%."
    await ctx.send_result(message)
    ctx.announce(message)


# ── Hospital ──────────────────────────────────────────────────────────────────

async def open_floor_map(ctx: ToolContext) -> None:
    _close_camera(ctx)
    ctx.flags.set("floor_map_open", True)
    await ctx.send_result(records.FLOOR_MAP_SUMMARY)


async def get_hospital_stats(ctx: ToolContext) -> None:
    await ctx.send_result(records.HOSPITAL_STATS)


# ── Schemas ───────────────────────────────────────────────────────────────────

_NO_ARGS: Dict[str, Any] = {"type": "object", "properties": {}}

_PHOTO_ARGS: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "prompt": {
            "type": "string",
            "description": "Optional specific analysis prompt for the photo (e.g., \"describe what you see\")",
        }
    },
}

TOOLS: List[Tuple[str, ToolHandler, str, Dict[str, Any]]] = [
    ("open_camera", open_camera, "Opens the camera preview window to capture patient photos", _NO_ARGS),
    ("check_vitals", check_vitals,
     "Opens the camera with live vital signs monitoring overlay (heart rate, blood pressure, SpO2, respiratory "
     "rate). Use this when the user asks to check vitals, monitor vitals, or see vital signs.", _NO_ARGS),
    ("read_current_vitals", read_current_vitals,
     'Reads the CURRENT vital signs being displayed on screen. Use this when user asks "what are the vitals", '
     '"read the vitals", "tell me the readings" while vitals monitoring is active.', _NO_ARGS),
    ("navigate_to_settings", navigate_to_settings,
     "Navigates to the security and compliance settings page", _NO_ARGS),
    ("get_patient_data", get_patient_data,
     "Retrieves patient records, vitals, medications, and visit history",
     {
         "type": "object",
         "properties": {"patient_id": {"type": "string", "description": "Patient ID or name"}},
         "required": ["patient_id"],
     }),
    ("apply_security_setting", apply_security_setting,
     "Applies a security recommendation by its ID. Use this when the user asks you to apply a specific "
     "security setting.",
     {
         "type": "object",
         "properties": {
             "setting_id": {
                 "type": "string",
                 "description": "The ID of the security setting to apply.",
                 "enum": list(compliance.SECURITY_SETTINGS),
             }
         },
         "required": ["setting_id"],
     }),
    ("navigate_to_chat", navigate_to_chat,
     "Navigates back to the main chat screen from settings or other pages", _NO_ARGS),
    ("take_photo", take_photo,
     "Captures a photo from the camera and analyzes it with AI vision. ONLY use this when the user explicitly "
     "asks to take a photo, capture an image, or when the camera preview is open.", _PHOTO_ARGS),
    ("analyze_vitals_photo", analyze_vitals_photo,
     "Assesses visible health indicators (skin tone, alertness, respiratory effort) in the current camera "
     "frame for charting. Use when the nurse asks for a visual assessment of the patient.", _NO_ARGS),
    ("describe_current_screen", describe_current_screen,
     'Describes what is currently visible on the app screen. Use this when the user asks "what do we see", '
     '"summarize this page", "what is on this screen", or similar questions about the current page.', _NO_ARGS),
    ("open_floor_map", open_floor_map,
     "Opens the hospital floor map showing patient locations, room status, wait times, and navigation.", _NO_ARGS),
    ("get_hospital_stats", get_hospital_stats,
     "Gets current hospital statistics including patients waiting, active patients, average wait time, and "
     "critical alerts.", _NO_ARGS),
]


def register_tools(registry: FunctionRegistry) -> None:
    for name, handler, description, parameters in TOOLS:
        registry.register(name, handler, description, parameters)
