"""
compliance.py — Security compliance score for the CareFlow nurse assistant.

The score gates patient-record access. It starts at INITIAL_SCORE and each
recommended setting adds a fixed amount, capped at MAX_SCORE. Applied
settings and the score are kept in the session flag store so every screen
sees the same values.
"""

from __future__ import annotations

import logging
from typing import Dict, List, NamedTuple, Tuple

from talkbridge.errors import DuplicateActionError
from talkbridge.store import SessionFlags

logger = logging.getLogger(__name__)

INITIAL_SCORE = 68
MAX_SCORE = 90
REQUIRED_SCORE = 85

SCORE_FLAG = "security_score"
APPLIED_FLAG = "applied_security_actions"


class SecuritySetting(NamedTuple):
    title: str
    impact: str
    increase: int


SECURITY_SETTINGS: Dict[str, SecuritySetting] = {
    "end-to-end-encryption": SecuritySetting("End-to-End Encryption (AES-256)", "Critical", 7),
    "audit-logging": SecuritySetting("Audit Logging & Access Controls", "High", 4),
    "secure-storage": SecuritySetting("Secure Data Storage with Apple Keychain", "High", 4),
    "hipaa-compliance-mode": SecuritySetting("HIPAA Compliance Mode", "Critical", 7),
}


def current_score(flags: SessionFlags) -> int:
    return flags.get_int(SCORE_FLAG, INITIAL_SCORE)


def applied_settings(flags: SessionFlags) -> List[str]:
    return list(flags.get(APPLIED_FLAG) or [])


def has_access(flags: SessionFlags) -> bool:
    return current_score(flags) >= REQUIRED_SCORE


def apply_setting(flags: SessionFlags, setting_id: str) -> Tuple[int, int]:
    """
    Apply one recommended setting and return (old_score, new_score).

    Raises KeyError for an unknown setting id and DuplicateActionError if
    the setting is already applied; neither case touches the flags.
    """
    setting = SECURITY_SETTINGS[setting_id]
    applied = applied_settings(flags)
    old_score = current_score(flags)
    if setting_id in applied:
        raise DuplicateActionError(setting_id, f"{setting.title} is already enabled")

    new_score = min(old_score + setting.increase, MAX_SCORE)
    flags.set(APPLIED_FLAG, applied + [setting_id])
    flags.set(SCORE_FLAG, new_score)
    logger.info("[Compliance] applied %s: %d%% -> %d%%", setting_id, old_score, new_score)
    return old_score, new_score
