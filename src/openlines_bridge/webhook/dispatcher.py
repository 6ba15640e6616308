"""
Webhook Dispatcher

Handles the Meta webhook contract:
- GET verification handshake (hub.mode / hub.verify_token / hub.challenge)
- POST event envelopes: entry[] -> changes[] -> value.messages[] / value.statuses[]
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from openlines_bridge.core.errors import ValidationError
from openlines_bridge.core.settings import Settings
from openlines_bridge.providers.base import DeliveryStatus
from openlines_bridge.providers.meta_cloud.webhook import (
    WHATSAPP_OBJECT,
    extract_phone_number_id,
    find_contact_name,
)
from openlines_bridge.service.inbound_handler import InboundHandler

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    """Outcome of one webhook envelope."""

    success: bool
    messages_processed: int = 0
    messages_failed: int = 0
    statuses_processed: int = 0
    entries_skipped: int = 0
    error: str | None = None
    results: list[dict[str, Any]] = field(default_factory=list)


class WebhookDispatcher:
    """
    Routes webhook envelopes to the inbound handler.

    A batch is reported unsuccessful only when the envelope is rejected or
    every message in it failed. Statuses never affect the outcome.
    """

    def __init__(self, settings: Settings, inbound: InboundHandler):
        self.settings = settings
        self.inbound = inbound

    def verify(self, mode: str | None, token: str | None, challenge: str | None) -> str | None:
        """
        Answer the subscription handshake.

        Returns:
            The challenge to echo back, or None to reject with 403
        """
        expected = self.settings.whatsapp_webhook_verify_token
        if mode == "subscribe" and expected and token == expected:
            logger.info("Webhook verified successfully")
            return challenge or ""

        logger.warning("Webhook verification failed", extra={"mode": mode})
        return None

    async def dispatch(self, payload: dict[str, Any]) -> DispatchResult:
        """Process a webhook envelope sent by Meta."""
        if payload.get("object") != WHATSAPP_OBJECT:
            logger.warning(f"Ignoring webhook for object: {payload.get('object')}")
            return DispatchResult(success=False, error="Invalid object type")

        logger.debug(
            "Received webhook",
            extra={"phone_number_id": extract_phone_number_id(payload)},
        )

        return await self._process_entries(payload.get("entry") or [], check_account=True)

    async def dispatch_test(self, payload: dict[str, Any]) -> DispatchResult:
        """
        Process a hand-crafted envelope (manual testing).

        Raises:
            ValidationError: if the payload has no entry list
        """
        entries = payload.get("entry") if isinstance(payload, dict) else None
        if not isinstance(entries, list):
            raise ValidationError("Invalid webhook data: entry list is required")

        return await self._process_entries(entries, check_account=False)

    async def _process_entries(self, entries: list[Any], check_account: bool) -> DispatchResult:
        result = DispatchResult(success=True)
        account_id = self.settings.whatsapp_business_account_id
        values = []

        for entry in entries:
            if not isinstance(entry, dict):
                continue

            # An unset account id matches no entry
            if check_account and (not account_id or str(entry.get("id", "")) != account_id):
                logger.warning(
                    "Skipping entry for another business account",
                    extra={"entry_id": entry.get("id")},
                )
                result.entries_skipped += 1
                continue

            for change in entry.get("changes") or []:
                if not isinstance(change, dict) or change.get("field") != "messages":
                    continue
                value = change.get("value") or {}
                if not _is_change_value(value):
                    raise ValidationError("Invalid webhook data: malformed change value")
                values.append(value)

        for value in values:
            await self._process_change(value, result)

        if result.messages_failed and result.messages_processed == 0:
            result.success = False
            result.error = "All messages failed"

        return result

    async def _process_change(self, value: dict[str, Any], result: DispatchResult) -> None:
        contacts = value.get("contacts") or []

        for message in value.get("messages") or []:
            if not isinstance(message, dict):
                continue

            name = find_contact_name(contacts, message.get("from", ""))
            outcome = await self.inbound.process_message(message, name)
            result.results.append(outcome)

            if outcome.get("status") == "processed":
                result.messages_processed += 1
            else:
                result.messages_failed += 1

        for status_data in value.get("statuses") or []:
            if not isinstance(status_data, dict):
                continue
            await self.inbound.handle_delivery_status(DeliveryStatus.from_webhook(status_data))
            result.statuses_processed += 1


def _is_change_value(value: Any) -> bool:
    """A change value is an object whose messages, statuses and contacts are lists."""
    if not isinstance(value, dict):
        return False
    return all(isinstance(value.get(key) or [], list) for key in ("messages", "statuses", "contacts"))
