"""
Session routing between WhatsApp numbers and Open Channel sessions.
"""

from openlines_bridge.routing.session import (
    SESSION_PREFIX,
    digits_only,
    is_whatsapp_session,
    phone_from_session_key,
    to_session_key,
)

__all__ = [
    "SESSION_PREFIX",
    "digits_only",
    "is_whatsapp_session",
    "phone_from_session_key",
    "to_session_key",
]
