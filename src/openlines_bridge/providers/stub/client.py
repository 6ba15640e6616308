"""
Stub WhatsApp Provider

Development provider that logs all operations without making real API calls.
Useful for local development and testing.
"""

import logging
import random
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from openlines_bridge.contracts.models import CAPTION_KINDS, MEDIA_KINDS, MessageKind
from openlines_bridge.core.results import GatewayResult
from openlines_bridge.providers.base import ProviderError, ProviderResponse, WhatsAppProvider

logger = logging.getLogger(__name__)


class StubWhatsAppProvider(WhatsAppProvider):
    """
    Stub provider for development and testing.

    - Records all outbound messages in sent_messages
    - Generates fake message IDs
    - Can be configured to simulate failures
    """

    def __init__(
        self,
        simulate_failures: bool = False,
        failure_rate: float = 0.1,
    ):
        self.simulate_failures = simulate_failures
        self.failure_rate = failure_rate
        self.sent_messages: list[dict[str, Any]] = []
        self.read_receipts: list[str] = []
        self.typing_indicators: list[str] = []

    def _record(self, message_type: str, to: str, **data: Any) -> ProviderResponse:
        message_id = f"stub_msg_{uuid4().hex[:16]}"

        self.sent_messages.append(
            {
                "type": message_type,
                "to": to,
                "message_id": message_id,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                **data,
            }
        )

        logger.info(
            f"[STUB] Sending {message_type} message",
            extra={"to": to, "message_id": message_id},
        )

        if self._should_fail():
            return ProviderResponse(
                success=False,
                error_code="STUB_SIMULATED_FAILURE",
                error_message="Simulated failure for testing",
            )

        return ProviderResponse(
            success=True,
            message_id=message_id,
            raw_response={"stub": True, "message_id": message_id},
        )

    async def send_text(
        self,
        to: str,
        text: str,
        reply_to: str | None = None,
        preview_url: bool = False,
    ) -> ProviderResponse:
        """Log and return success for text message."""
        return self._record("text", to, text=text, reply_to=reply_to)

    async def send_media(
        self,
        to: str,
        kind: MessageKind | str,
        url: str,
        caption: str = "",
        filename: str | None = None,
    ) -> ProviderResponse:
        """Log and return success for media message."""
        try:
            media_kind = MessageKind(kind)
        except ValueError:
            media_kind = None

        if media_kind not in MEDIA_KINDS:
            return ProviderResponse(
                success=False,
                error_code="INVALID_MEDIA_TYPE",
                error_message=f"Invalid media type: {kind}",
            )

        return self._record(
            media_kind.value,
            to,
            url=url,
            caption=caption if media_kind in CAPTION_KINDS else "",
            filename=filename,
        )

    async def send_location(
        self,
        to: str,
        latitude: float,
        longitude: float,
        name: str = "",
        address: str = "",
    ) -> ProviderResponse:
        """Log and return success for location message."""
        return self._record("location", to, latitude=latitude, longitude=longitude, name=name)

    async def send_contacts(
        self,
        to: str,
        contacts: list[dict[str, Any]],
    ) -> ProviderResponse:
        """Log and return success for contacts message."""
        return self._record("contacts", to, contacts=contacts)

    async def mark_as_read(self, message_id: str) -> bool:
        """Log and return success for mark as read."""
        logger.debug(f"[STUB] Marking message as read: {message_id}")
        self.read_receipts.append(message_id)
        return True

    async def send_typing_indicator(self, message_id: str) -> bool:
        logger.debug(f"[STUB] Typing indicator for: {message_id}")
        self.typing_indicators.append(message_id)
        return True

    async def get_media_url(self, media_id: str) -> GatewayResult[str]:
        """Return a fake URL for media."""
        logger.debug(f"[STUB] Getting media URL for: {media_id}")
        if not media_id:
            return GatewayResult.failure(ProviderError("Empty media ID", code="EMPTY_MEDIA_ID"))
        return GatewayResult.success(f"https://stub.whatsapp.local/media/{media_id}")

    async def download_media(self, url: str) -> GatewayResult[bytes]:
        return GatewayResult.success(b"")

    async def get_phone_number_info(self) -> GatewayResult[dict[str, Any]]:
        return GatewayResult.success(
            {"id": "stub_phone_number", "display_phone_number": "+00 000 000 0000", "stub": True}
        )

    async def get_business_account_info(self) -> GatewayResult[dict[str, Any]]:
        return GatewayResult.success({"id": "stub_business_account", "stub": True})

    def _should_fail(self) -> bool:
        """Check if we should simulate a failure."""
        if not self.simulate_failures:
            return False

        return random.random() < self.failure_rate

    def get_sent_messages(self) -> list[dict[str, Any]]:
        return list(self.sent_messages)

    def clear_sent_messages(self) -> None:
        self.sent_messages.clear()
