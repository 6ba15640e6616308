"""
Bitrix24 Gateway Base

Abstract interface over the Bitrix24 Open Channel / CRM surface.
Implementations: REST (inbound webhook URL), in-memory (development and tests).
"""

from abc import ABC, abstractmethod
from typing import Any

from openlines_bridge.contracts.models import (
    MessageKind,
    OpenChannelSession,
    RelayedMessage,
)
from openlines_bridge.core.results import GatewayResult

# PARAMS keys stamped on Open Channel messages
PARAM_MESSAGE_ID = "WHATSAPP_MESSAGE_ID"
PARAM_MESSAGE_TYPE = "WHATSAPP_MESSAGE_TYPE"
PARAM_TIMESTAMP = "WHATSAPP_TIMESTAMP"
PARAM_SENT = "WHATSAPP_SENT"

# Placeholder attachments for media kinds Bitrix24 can show inline
PLACEHOLDER_FILES = {
    MessageKind.IMAGE: ("image.jpg", "image/jpeg"),
    MessageKind.DOCUMENT: ("document.pdf", "application/pdf"),
}


def split_contact_name(name: str) -> tuple[str, str]:
    """Split a profile name on the first space into (NAME, LAST_NAME)."""
    parts = (name or "").strip().split(" ", 1)
    first = parts[0] or "WhatsApp"
    last = parts[1].strip() if len(parts) > 1 and parts[1].strip() else "User"
    return first, last


def compose_open_channel_text(content: str, media_url: str, kind: str) -> str:
    """Message text as written to the Open Channel (media URL appended for non-inline kinds)."""
    if media_url and MessageKind.from_provider(kind) not in PLACEHOLDER_FILES:
        return f"{content}\n\nMedia URL: {media_url}"
    return content


class BitrixGateway(ABC):
    """
    Abstract interface for Bitrix24.

    Every operation returns a GatewayResult and never raises, so a failure
    on one message never aborts its siblings.
    """

    @abstractmethod
    async def find_or_create_contact(self, phone: str, name: str) -> GatewayResult[dict[str, Any]]:
        """
        Find a CRM contact by digits-only phone, creating it on a miss.

        Not atomic: two concurrent first messages from one number may both create.
        """
        ...

    @abstractmethod
    async def get_or_create_session(
        self,
        user_identifier: str,
        contact: dict[str, Any],
    ) -> GatewayResult[int]:
        """Find the Open Channel session for a phone number, creating it on a miss."""
        ...

    @abstractmethod
    async def send_message_to_open_channel(
        self,
        session_id: int,
        content: str,
        media_url: str = "",
        kind: MessageKind | str = MessageKind.TEXT,
        external_id: str = "",
        timestamp: str = "",
    ) -> GatewayResult[int]:
        """
        Write a customer message into an Open Channel session.

        Returns:
            GatewayResult with the Bitrix24 message ID
        """
        ...

    @abstractmethod
    async def get_messages_from_open_channel(
        self,
        session_id: int,
        limit: int = 50,
    ) -> GatewayResult[list[RelayedMessage]]:
        """Read the most recent messages of a session."""
        ...

    @abstractmethod
    async def list_active_sessions(self) -> GatewayResult[list[OpenChannelSession]]:
        """List active sessions of the configured Open Channel line."""
        ...

    @abstractmethod
    async def mark_message_relayed(self, message: RelayedMessage) -> GatewayResult[bool]:
        """Flag a message as delivered to WhatsApp (PARAMS WHATSAPP_SENT=Y)."""
        ...

    @abstractmethod
    async def update_message_status(self, external_message_id: str, status: str) -> bool:
        """Project a WhatsApp delivery status onto Bitrix24."""
        ...

    @abstractmethod
    async def get_connection_info(self) -> GatewayResult[dict[str, Any]]:
        """Fetch the profile of the webhook user (connectivity check)."""
        ...

    async def close(self) -> None:
        """Release transport resources."""
        return None
