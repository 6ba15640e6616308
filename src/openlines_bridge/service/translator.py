"""
Message Translator

Pure mapping between WhatsApp message payloads and Open Channel text,
and between Open Channel messages and WhatsApp send instructions.
"""

import os
from typing import Any
from urllib.parse import urlparse

from openlines_bridge.contracts.models import (
    ChannelMessage,
    GeoPoint,
    MediaRef,
    MessageKind,
    OutboundInstruction,
    RelayedMessage,
)

IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif"})
VIDEO_EXTENSIONS = frozenset({"mp4", "mov", "avi"})
AUDIO_EXTENSIONS = frozenset({"mp3", "wav", "ogg"})

_MEDIA_FALLBACK_TEXT = {
    MessageKind.IMAGE: "Image",
    MessageKind.VIDEO: "Video",
}


def render_text(message_payload: dict[str, Any]) -> str:
    """
    Render the Open Channel text for one WhatsApp message.

    Args:
        message_payload: One item of a webhook change's value.messages[]

    Returns:
        Human-readable text; never empty for non-text kinds
    """
    type_str = message_payload.get("type", "") or ""
    kind = MessageKind.from_provider(type_str)
    body = message_payload.get(type_str) if isinstance(message_payload.get(type_str), dict) else {}

    if kind == MessageKind.TEXT:
        return body.get("body", "") or ""

    if kind in _MEDIA_FALLBACK_TEXT:
        return body.get("caption") or _MEDIA_FALLBACK_TEXT[kind]

    if kind == MessageKind.AUDIO:
        return "Audio message"

    if kind == MessageKind.DOCUMENT:
        return body.get("caption") or body.get("filename") or "Document"

    if kind == MessageKind.LOCATION:
        return f"Location: {body.get('latitude', '')}, {body.get('longitude', '')}"

    if kind == MessageKind.CONTACTS:
        contacts = message_payload.get("contacts") or []
        count = len(contacts)
        return f"Shared {count} contact" + ("s" if count > 1 else "")

    return f"Unsupported message type: {type_str}"


def translate_inbound(message_payload: dict[str, Any]) -> ChannelMessage:
    """Build the normalized envelope for one WhatsApp message (media left unresolved)."""
    type_str = message_payload.get("type", "") or ""
    kind = MessageKind.from_provider(type_str)
    body = message_payload.get(type_str) if isinstance(message_payload.get(type_str), dict) else {}

    media_ref = None
    if kind in (MessageKind.IMAGE, MessageKind.VIDEO, MessageKind.AUDIO, MessageKind.DOCUMENT):
        media_ref = MediaRef(id=body.get("id", "") or "")

    geo = None
    if kind == MessageKind.LOCATION:
        geo = GeoPoint(lat=body.get("latitude"), lon=body.get("longitude"))

    return ChannelMessage(
        external_id=message_payload.get("id", "") or "",
        sender=message_payload.get("from", "") or "",
        timestamp_unix=str(message_payload.get("timestamp", "") or ""),
        kind=kind,
        text_content=render_text(message_payload),
        provider_type=type_str,
        media_ref=media_ref,
        geo=geo,
    )


def infer_media_kind(filename: str) -> MessageKind:
    """Infer the WhatsApp media kind from a file extension (default: document)."""
    extension = os.path.splitext(filename or "")[1].lstrip(".").lower()

    if extension in IMAGE_EXTENSIONS:
        return MessageKind.IMAGE
    if extension in VIDEO_EXTENSIONS:
        return MessageKind.VIDEO
    if extension in AUDIO_EXTENSIONS:
        return MessageKind.AUDIO
    return MessageKind.DOCUMENT


def filename_from_url(url: str) -> str:
    return os.path.basename(urlparse(url or "").path)


def build_outbound_instruction(message: RelayedMessage) -> OutboundInstruction:
    """
    Decide what to send to WhatsApp for an operator message.

    Only the first attached file is sent; the message body becomes its caption.
    """
    if not message.files:
        return OutboundInstruction(kind=MessageKind.TEXT, text=message.body)

    first = message.files[0]
    filename = first.name or filename_from_url(first.url)
    kind = infer_media_kind(filename)

    return OutboundInstruction(
        kind=kind,
        media_url=first.url,
        caption=message.body,
        filename=filename if kind == MessageKind.DOCUMENT else "",
    )
