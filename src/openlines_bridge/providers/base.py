"""
WhatsApp Provider Base

Abstract interface for WhatsApp API providers.
Implementations: Meta Cloud API, Stub (for development and tests).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from openlines_bridge.contracts.models import MessageKind
from openlines_bridge.core.results import GatewayResult


class ProviderError(Exception):
    """Error from an upstream API (non-2xx response or transport failure)."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status: int | None = None,
        body: Any = None,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.code = code
        self.status = status
        self.body = body
        self.details = details or {}
        self.retryable = retryable


class DeliveryState(str, Enum):
    """WhatsApp message delivery states."""

    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


# States projected into Bitrix24; the others are only logged
FORWARDED_STATES = frozenset({DeliveryState.DELIVERED, DeliveryState.READ})


@dataclass
class DeliveryStatus:
    """
    Parsed delivery status update from webhook.
    """

    external_message_id: str
    recipient_id: str
    state: str  # sent, delivered, read, failed
    timestamp_unix: str
    error_code: str | None = None
    error_message: str | None = None
    raw_payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_webhook(cls, status_data: dict[str, Any]) -> "DeliveryStatus":
        error_code = None
        error_message = None
        errors = status_data.get("errors") or []
        error = errors[0] if isinstance(errors, list) and errors else None
        if isinstance(error, dict):
            error_code = str(error.get("code", ""))
            error_message = error.get("message") or error.get("title")

        return cls(
            external_message_id=status_data.get("id", ""),
            recipient_id=status_data.get("recipient_id", ""),
            state=status_data.get("status", ""),
            timestamp_unix=str(status_data.get("timestamp", "")),
            error_code=error_code,
            error_message=error_message,
            raw_payload=status_data,
        )


@dataclass
class ProviderResponse:
    """
    Response from provider after sending a message.
    """

    success: bool
    message_id: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


class WhatsAppProvider(ABC):
    """
    Abstract interface for WhatsApp API providers.

    Send operations return a ProviderResponse and are NOT retried: the Cloud API
    has no idempotency key, so a blind retry risks a duplicate delivery.
    Signaling calls (mark as read, typing) return bool and never raise.
    Lookups return a GatewayResult.
    """

    @abstractmethod
    async def send_text(
        self,
        to: str,
        text: str,
        reply_to: str | None = None,
        preview_url: bool = False,
    ) -> ProviderResponse:
        """
        Send a text message.

        Args:
            to: Recipient phone number (digits with country code, no + or leading zeros)
            text: Message text
            reply_to: Message ID to reply to (optional)
            preview_url: Whether to show URL previews

        Returns:
            ProviderResponse with message ID if successful
        """
        ...

    @abstractmethod
    async def send_media(
        self,
        to: str,
        kind: MessageKind | str,
        url: str,
        caption: str = "",
        filename: str | None = None,
    ) -> ProviderResponse:
        """
        Send an image, video, audio or document by public link.

        Any other kind is rejected before a request is made.
        The caption is only attached for image, video and document.
        """
        ...

    async def send_image(self, to: str, url: str, caption: str = "") -> ProviderResponse:
        return await self.send_media(to, MessageKind.IMAGE, url, caption)

    async def send_video(self, to: str, url: str, caption: str = "") -> ProviderResponse:
        return await self.send_media(to, MessageKind.VIDEO, url, caption)

    async def send_audio(self, to: str, url: str) -> ProviderResponse:
        return await self.send_media(to, MessageKind.AUDIO, url)

    async def send_document(
        self,
        to: str,
        url: str,
        filename: str | None = None,
        caption: str = "",
    ) -> ProviderResponse:
        return await self.send_media(to, MessageKind.DOCUMENT, url, caption, filename=filename)

    @abstractmethod
    async def send_location(
        self,
        to: str,
        latitude: float,
        longitude: float,
        name: str = "",
        address: str = "",
    ) -> ProviderResponse:
        """Send a location pin."""
        ...

    @abstractmethod
    async def send_contacts(
        self,
        to: str,
        contacts: list[dict[str, Any]],
    ) -> ProviderResponse:
        """Send one or more contact cards (Cloud API contacts objects)."""
        ...

    @abstractmethod
    async def mark_as_read(self, message_id: str) -> bool:
        """
        Mark an inbound message as read.

        Returns:
            True if successful
        """
        ...

    @abstractmethod
    async def send_typing_indicator(self, message_id: str) -> bool:
        """
        Show the typing indicator in reply to an inbound message.

        Returns:
            True if successful
        """
        ...

    @abstractmethod
    async def get_media_url(self, media_id: str) -> GatewayResult[str]:
        """
        Resolve a media ID to its short-lived signed download URL.

        The URL itself still requires the bearer token to download.
        """
        ...

    @abstractmethod
    async def download_media(self, url: str) -> GatewayResult[bytes]:
        """Download media bytes from a URL returned by get_media_url."""
        ...

    @abstractmethod
    async def get_phone_number_info(self) -> GatewayResult[dict[str, Any]]:
        """Fetch metadata of the configured business phone number."""
        ...

    @abstractmethod
    async def get_business_account_info(self) -> GatewayResult[dict[str, Any]]:
        """Fetch metadata of the configured WhatsApp Business Account."""
        ...

    async def close(self) -> None:
        """Release transport resources."""
        return None
