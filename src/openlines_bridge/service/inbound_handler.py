"""
Inbound Message Handler

Processes incoming WhatsApp messages:
1. Translates the payload into Open Channel text
2. Resolves media to a download URL
3. Finds or creates the CRM contact
4. Finds or creates the Open Channel session
5. Writes the message into the session
6. Marks the message as read on WhatsApp
"""

import logging
from typing import Any

from openlines_bridge.bitrix.base import BitrixGateway
from openlines_bridge.providers.base import (
    FORWARDED_STATES,
    DeliveryStatus,
    WhatsAppProvider,
)
from openlines_bridge.service.translator import translate_inbound

logger = logging.getLogger(__name__)


class InboundHandler:
    """
    Handles incoming WhatsApp messages and delivery statuses.

    Every step reports failure through the result dict instead of raising,
    so one bad message never aborts the rest of a webhook batch.
    """

    def __init__(self, provider: WhatsAppProvider, bitrix: BitrixGateway):
        self.provider = provider
        self.bitrix = bitrix

    async def process_message(
        self,
        message_payload: dict[str, Any],
        contact_name: str = "",
    ) -> dict[str, Any]:
        """
        Forward one inbound WhatsApp message into Bitrix24.

        Args:
            message_payload: One item of value.messages[]
            contact_name: Profile name recovered from value.contacts[]

        Returns:
            Processing result dict ("status" is "processed" or "failed")
        """
        message = translate_inbound(message_payload)
        result: dict[str, Any] = {
            "message_id": message.external_id,
            "from": message.sender,
            "type": message.provider_type,
            "status": "processed",
        }

        logger.info(
            "Processing incoming WhatsApp message",
            extra={"message_id": message.external_id, "type": message.provider_type},
        )

        if message.media_ref is not None:
            media = await self.provider.get_media_url(message.media_ref.id)
            if not media.ok:
                logger.warning(
                    f"Could not resolve media URL: {media.error_message}",
                    extra={"message_id": message.external_id, "media_id": message.media_ref.id},
                )
            message = message.with_media_url(media.value if media.ok else None)

        contact_result = await self.bitrix.find_or_create_contact(message.sender, contact_name)
        if contact_result.ok and contact_result.value:
            contact = contact_result.value
        else:
            # Session creation still works without a CRM link
            contact = {"ID": 0, "NAME": contact_name, "PHONE": message.sender}

        session = await self.bitrix.get_or_create_session(message.sender, contact)
        if not session.ok:
            return self._failed(result, "session", session.error_message)

        forwarded = await self.bitrix.send_message_to_open_channel(
            session_id=session.value,
            content=message.text_content,
            media_url=message.media_url,
            kind=message.provider_type,
            external_id=message.external_id,
            timestamp=message.timestamp_unix,
        )
        if not forwarded.ok:
            return self._failed(result, "forward", forwarded.error_message)

        result["session_id"] = session.value
        result["bitrix_message_id"] = forwarded.value

        if message.external_id and not await self.provider.mark_as_read(message.external_id):
            logger.warning(f"Failed to mark message as read: {message.external_id}")

        return result

    async def handle_delivery_status(self, status: DeliveryStatus) -> dict[str, Any]:
        """
        Handle a delivery status update.

        Only delivered and read are projected into Bitrix24; sent and failed are logged.
        """
        if status.state not in {state.value for state in FORWARDED_STATES}:
            log = logger.warning if status.state == "failed" else logger.debug
            log(
                f"Delivery status {status.state} for {status.external_message_id}",
                extra={
                    "external_id": status.external_message_id,
                    "error_code": status.error_code,
                    "error_message": status.error_message,
                },
            )
            return {"status": "skipped", "state": status.state}

        updated = await self.bitrix.update_message_status(status.external_message_id, status.state)
        return {"status": "updated" if updated else "failed", "state": status.state}

    def _failed(self, result: dict[str, Any], step: str, error: str) -> dict[str, Any]:
        logger.error(
            f"Failed to process inbound message at {step}: {error}",
            extra={"message_id": result["message_id"]},
        )
        result["status"] = "failed"
        result["error"] = error
        return result
