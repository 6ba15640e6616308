"""
Outbound Message Handler

Sends operator messages to WhatsApp and reports connection health.
"""

import logging
from typing import Any

from openlines_bridge.bitrix.base import BitrixGateway
from openlines_bridge.contracts.models import MEDIA_KINDS, MessageKind, OutboundInstruction
from openlines_bridge.contracts.payloads import ConnectionStatus
from openlines_bridge.providers.base import ProviderResponse, WhatsAppProvider
from openlines_bridge.service.translator import filename_from_url

logger = logging.getLogger(__name__)


class OutboundHandler:
    """
    Handles outbound WhatsApp messages.

    Responsibilities:
    - Pick the send operation for a message kind
    - Fall back to text for unknown media types
    - Check connectivity of both upstream APIs
    """

    def __init__(self, provider: WhatsAppProvider, bitrix: BitrixGateway):
        self.provider = provider
        self.bitrix = bitrix

    async def send_instruction(self, to: str, instruction: OutboundInstruction) -> ProviderResponse:
        """Send one translated operator message."""
        if not instruction.is_media:
            return await self.provider.send_text(to, instruction.text)

        return await self.provider.send_media(
            to,
            instruction.kind,
            instruction.media_url,
            caption=instruction.caption,
            filename=instruction.filename or None,
        )

    async def process_outgoing_message(
        self,
        to: str,
        message: str,
        media_url: str = "",
        media_type: str = "",
    ) -> ProviderResponse:
        """
        Send a message to WhatsApp by explicit media type.

        Unknown media types become a text message with the URL appended.
        Documents are sent with the URL's basename as filename.
        """
        logger.info(
            "Processing outgoing message",
            extra={"to": to, "media_type": media_type, "has_media": bool(media_url)},
        )

        if not media_url:
            return await self.provider.send_text(to, message)

        kind = MessageKind.from_provider(media_type)
        if kind not in MEDIA_KINDS:
            return await self.provider.send_text(to, f"{message}\n\nMedia: {media_url}")

        return await self.send_instruction(
            to,
            OutboundInstruction(
                kind=kind,
                media_url=media_url,
                caption=message,
                filename=filename_from_url(media_url) if kind == MessageKind.DOCUMENT else "",
            ),
        )

    async def check_connection_status(self) -> ConnectionStatus:
        """Probe WhatsApp and Bitrix24 and collect the errors."""
        status = ConnectionStatus()

        whatsapp = await self.provider.get_phone_number_info()
        if whatsapp.ok:
            status.whatsapp = True
            status.whatsapp_info = whatsapp.value
        else:
            status.errors.append(f"WhatsApp API: {whatsapp.error_message}")

        bitrix = await self.bitrix.get_connection_info()
        if bitrix.ok:
            status.bitrix24 = True
            status.bitrix24_info = bitrix.value
        else:
            status.errors.append(f"Bitrix24: {bitrix.error_message}")

        return status

    async def status_dict(self) -> dict[str, Any]:
        return (await self.check_connection_status()).model_dump(exclude_none=True)
