"""
Session Resolution

Maps a WhatsApp phone number to the Bitrix24 Open Channel USER_CODE and back.

The key depends on the phone digits only, so the same number always lands in
the same Open Channel session no matter how it was formatted.
"""

import re

from openlines_bridge.contracts.models import SessionKey

SESSION_PREFIX = "whatsapp_"

_NON_DIGITS = re.compile(r"\D")


def digits_only(phone: str) -> str:
    """Strip everything but digits ("+1 (234) 567-8900" -> "12345678900")."""
    return _NON_DIGITS.sub("", phone or "")


def to_session_key(phone: str) -> SessionKey:
    """Derive the canonical session key for a phone number."""
    return SessionKey(user_code=f"{SESSION_PREFIX}{digits_only(phone)}")


def is_whatsapp_session(user_code: str) -> bool:
    """Check whether an Open Channel USER_CODE was created by this bridge."""
    return bool(user_code) and user_code.startswith(SESSION_PREFIX)


def phone_from_session_key(user_code: str) -> str:
    """
    Extract the phone number from a USER_CODE.

    Malformed codes yield "" so the caller can skip the session.
    """
    parts = (user_code or "").split("_")
    if len(parts) < 2:
        return ""
    return parts[1]
