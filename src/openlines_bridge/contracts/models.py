"""
Bridge Data Models

Provider-agnostic representations shared by the inbound and outbound paths.
None of these are persisted here: Bitrix24 is the system of record.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class MessageKind(str, Enum):
    """Message kinds the bridge knows how to translate."""

    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"
    LOCATION = "location"
    CONTACTS = "contacts"
    UNSUPPORTED = "unsupported"

    @classmethod
    def from_provider(cls, type_str: str) -> "MessageKind":
        """Map a WhatsApp message type string, unknown types become UNSUPPORTED."""
        try:
            kind = cls(type_str)
        except ValueError:
            return cls.UNSUPPORTED
        return kind


# Kinds WhatsApp accepts as a media link send
MEDIA_KINDS = frozenset({MessageKind.IMAGE, MessageKind.DOCUMENT, MessageKind.AUDIO, MessageKind.VIDEO})

# Kinds that may carry a caption (audio never does)
CAPTION_KINDS = frozenset({MessageKind.IMAGE, MessageKind.VIDEO, MessageKind.DOCUMENT})


@dataclass(frozen=True)
class ContactRef:
    """Sender of an inbound message, as seen by WhatsApp."""

    phone: str
    display_name: str = ""


@dataclass(frozen=True)
class SessionKey:
    """Deterministic Open Channel USER_CODE for one phone number."""

    user_code: str

    def __str__(self) -> str:
        return self.user_code


@dataclass(frozen=True)
class MediaRef:
    """Opaque WhatsApp media handle, optionally resolved to a signed URL."""

    id: str
    resolved_url: str | None = None


@dataclass(frozen=True)
class GeoPoint:
    lat: Any
    lon: Any


@dataclass(frozen=True)
class ChannelMessage:
    """
    Normalized inbound message envelope.

    Built per inbound event from the WhatsApp payload, never stored.
    """

    external_id: str
    sender: str
    timestamp_unix: str
    kind: MessageKind
    text_content: str
    provider_type: str = ""  # Raw WhatsApp "type" (kept for unsupported kinds)
    media_ref: MediaRef | None = None
    geo: GeoPoint | None = None

    def with_media_url(self, url: str | None) -> "ChannelMessage":
        """Copy of this message with the media reference resolved."""
        if self.media_ref is None:
            return self
        return ChannelMessage(
            external_id=self.external_id,
            sender=self.sender,
            timestamp_unix=self.timestamp_unix,
            kind=self.kind,
            text_content=self.text_content,
            provider_type=self.provider_type,
            media_ref=MediaRef(id=self.media_ref.id, resolved_url=url),
            geo=self.geo,
        )

    @property
    def media_url(self) -> str:
        if self.media_ref and self.media_ref.resolved_url:
            return self.media_ref.resolved_url
        return ""


@dataclass(frozen=True)
class RelayedFile:
    """File attached to a Bitrix24 Open Channel message."""

    url: str
    name: str = ""


@dataclass
class RelayedMessage:
    """
    Open Channel message as read back from Bitrix24.

    already_relayed is the idempotence guard of the relay loop. It is set when
    the message carries WHATSAPP_SENT (delivered by a previous cycle) or
    WHATSAPP_MESSAGE_ID (the message came from WhatsApp in the first place).
    """

    bitrix_message_id: int
    session_id: int
    author_id: int
    body: str
    files: list[RelayedFile] = field(default_factory=list)
    already_relayed: bool = False
    params: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_bitrix(cls, data: dict[str, Any], session_id: int) -> "RelayedMessage":
        """Create from an imopenlines.dialog.messages.get item."""
        params = data.get("PARAMS") or {}
        if not isinstance(params, dict):
            params = {}

        raw_files = data.get("FILES") or []
        if isinstance(raw_files, dict):
            raw_files = list(raw_files.values())
        elif not isinstance(raw_files, list):
            raw_files = []

        files = [
            RelayedFile(url=f.get("URL", "") or f.get("urlDownload", ""), name=f.get("NAME", "") or f.get("name", ""))
            for f in raw_files
            if isinstance(f, dict)
        ]

        return cls(
            bitrix_message_id=_to_int(data.get("ID")),
            session_id=session_id,
            author_id=_to_int(data.get("AUTHOR_ID")),
            body=data.get("MESSAGE") or data.get("TEXT") or "",
            files=files,
            already_relayed=bool(params.get("WHATSAPP_SENT")) or bool(params.get("WHATSAPP_MESSAGE_ID")),
            params=params,
        )


@dataclass(frozen=True)
class OpenChannelSession:
    """Active Bitrix24 Open Channel session."""

    session_id: int
    user_code: str


@dataclass(frozen=True)
class OutboundInstruction:
    """What to send to WhatsApp for one Bitrix24 message."""

    kind: MessageKind
    text: str = ""
    media_url: str = ""
    caption: str = ""
    filename: str = ""

    @property
    def is_media(self) -> bool:
        return self.kind != MessageKind.TEXT


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
