"""
Meta Webhook Utilities

Helper functions for processing Meta Cloud API webhooks.
"""

import hashlib
import hmac
import logging
from typing import Any

logger = logging.getLogger(__name__)

WHATSAPP_OBJECT = "whatsapp_business_account"


def validate_signature(
    payload: bytes,
    signature_header: str | None,
    app_secret: str,
) -> bool:
    """
    Validate Meta webhook signature.

    Args:
        payload: Raw request body bytes
        signature_header: X-Hub-Signature-256 header value
        app_secret: Facebook App Secret

    Returns:
        True if signature is valid
    """
    if not signature_header:
        logger.warning("Missing signature header")
        return False

    if not signature_header.startswith("sha256="):
        logger.warning("Invalid signature format")
        return False

    expected = signature_header[7:]

    computed = hmac.new(
        app_secret.encode("utf-8"),
        payload,
        hashlib.sha256,
    ).hexdigest()

    return hmac.compare_digest(computed, expected)


def find_contact_name(contacts: list[dict[str, Any]], wa_id: str) -> str:
    """
    Recover the sender's profile name from a change's contacts[].

    First contact whose wa_id matches wins; no match gives "".
    """
    for contact in contacts or []:
        if isinstance(contact, dict) and contact.get("wa_id") == wa_id:
            return (contact.get("profile") or {}).get("name", "") or ""
    return ""


def extract_phone_number_id(payload: dict[str, Any]) -> str | None:
    """
    Extract phone_number_id from webhook payload.

    Used to flag webhooks addressed to another business number.
    """
    for entry in payload.get("entry") or []:
        if not isinstance(entry, dict):
            continue
        for change in entry.get("changes") or []:
            if not isinstance(change, dict):
                continue
            value = change.get("value")
            metadata = value.get("metadata") if isinstance(value, dict) else None
            phone_number_id = metadata.get("phone_number_id") if isinstance(metadata, dict) else None
            if phone_number_id:
                return phone_number_id
    return None
