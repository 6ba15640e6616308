"""
Bitrix24 REST Gateway

Production gateway calling the Bitrix24 REST API through an inbound webhook URL
(`<webhook_url>/<method>.json`).
"""

import logging
from typing import Any

import httpx

from openlines_bridge.bitrix.base import (
    PARAM_MESSAGE_ID,
    PARAM_MESSAGE_TYPE,
    PARAM_SENT,
    PARAM_TIMESTAMP,
    PLACEHOLDER_FILES,
    BitrixGateway,
    compose_open_channel_text,
    split_contact_name,
)
from openlines_bridge.contracts.models import (
    MessageKind,
    OpenChannelSession,
    RelayedMessage,
)
from openlines_bridge.core.results import GatewayResult
from openlines_bridge.core.settings import Settings
from openlines_bridge.providers.base import ProviderError
from openlines_bridge.routing.session import digits_only, to_session_key

logger = logging.getLogger(__name__)

# Raised by malformed REST results as well as by the transport
GATEWAY_ERRORS = (ProviderError, KeyError, TypeError, ValueError, AttributeError)


class BitrixRestGateway(BitrixGateway):
    """
    Bitrix24 gateway over the inbound webhook REST surface.

    Bound to one webhook URL and one Open Channel line taken from settings.
    """

    def __init__(
        self,
        settings: Settings,
        client: httpx.AsyncClient | None = None,
    ):
        settings.require("bitrix24_webhook_url", "bitrix24_open_channel_id")

        self.settings = settings
        self.base_url = settings.bitrix24_rest_url
        self.line_id = settings.bitrix24_open_channel_id
        self.timeout = settings.http_timeout
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _call(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """
        Call a REST method and return its "result" member.

        Raises:
            ProviderError: on transport failure, non-2xx status or an "error" body
        """
        client = await self._get_client()
        url = f"{self.base_url}{method}.json"

        logger.debug(f"Calling Bitrix24 method {method}", extra={"method": method})

        try:
            response = await client.post(url, json=params or {})
        except httpx.RequestError as e:
            raise ProviderError(
                message=f"HTTP request failed: {e}",
                code="HTTP_ERROR",
                retryable=True,
            ) from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400 or (isinstance(body, dict) and "error" in body):
            error = body if isinstance(body, dict) else {}
            raise ProviderError(
                message=error.get("error_description") or str(error.get("error") or f"HTTP {response.status_code}"),
                code=str(error.get("error") or response.status_code),
                status=response.status_code,
                body=body or response.text,
                retryable=response.status_code >= 500,
            )

        if not isinstance(body, dict):
            return None
        return body.get("result")

    async def find_or_create_contact(self, phone: str, name: str) -> GatewayResult[dict[str, Any]]:
        try:
            found = await self._call(
                "crm.contact.list",
                {
                    "filter": {"PHONE": digits_only(phone)},
                    "select": ["ID", "NAME", "LAST_NAME", "PHONE"],
                },
            )
            if found and not isinstance(found, list):
                raise unexpected_result("crm.contact.list", found)
            if found:
                contact = found[0]
                if not isinstance(contact, dict):
                    raise unexpected_result("crm.contact.list", found)
                logger.info(
                    "Found existing contact in Bitrix24",
                    extra={"phone": phone, "contact_id": contact.get("ID")},
                )
                return GatewayResult.success(contact)

            first_name, last_name = split_contact_name(name)
            contact_id = await self._call(
                "crm.contact.add",
                {
                    "fields": {
                        "NAME": first_name,
                        "LAST_NAME": last_name,
                        "SOURCE_ID": "WHATSAPP",
                        "PHONE": [{"VALUE": phone, "VALUE_TYPE": "WORK"}],
                    }
                },
            )
            if not contact_id:
                raise ProviderError("Failed to create contact in Bitrix24", code="CONTACT_NOT_CREATED")

            logger.info(
                "Created new contact in Bitrix24",
                extra={"phone": phone, "contact_id": contact_id},
            )

            contact = await self._call("crm.contact.get", {"id": contact_id})
            if not isinstance(contact, dict) or not contact:
                contact = {"ID": contact_id, "NAME": first_name}
            return GatewayResult.success(contact)

        except GATEWAY_ERRORS as e:
            logger.error(f"Error finding or creating contact: {e}", extra={"phone": phone})
            return GatewayResult.failure(e)

    async def get_or_create_session(
        self,
        user_identifier: str,
        contact: dict[str, Any],
    ) -> GatewayResult[int]:
        user_code = str(to_session_key(user_identifier))

        try:
            existing = await self._call("imopenlines.session.get", {"USER_CODE": user_code})
            if isinstance(existing, dict) and existing.get("ID"):
                session_id = int(existing["ID"])
                logger.debug(
                    "Found existing open channel session",
                    extra={"user_code": user_code, "session_id": session_id},
                )
                return GatewayResult.success(session_id)

            created = await self._call(
                "imopenlines.session.create",
                {
                    "USER_CODE": user_code,
                    "LINE_ID": self.line_id,
                    "CRM_CREATE": 0,
                    "CRM": {"ENTITY_TYPE": "CONTACT", "ENTITY_ID": contact.get("ID", 0)},
                    "USER_NAME": contact.get("NAME") or "WhatsApp User",
                    "USER_AVATAR": "",
                    "CHAT_TITLE": f"WhatsApp: {user_identifier}",
                },
            )
            if not created:
                raise ProviderError("Failed to create open channel session", code="SESSION_NOT_CREATED")

            logger.info(
                "Created new open channel session",
                extra={"user_code": user_code, "session_id": created},
            )
            return GatewayResult.success(int(created))

        except GATEWAY_ERRORS as e:
            logger.error(f"Error getting or creating session: {e}", extra={"user_code": user_code})
            return GatewayResult.failure(e)

    async def send_message_to_open_channel(
        self,
        session_id: int,
        content: str,
        media_url: str = "",
        kind: MessageKind | str = MessageKind.TEXT,
        external_id: str = "",
        timestamp: str = "",
    ) -> GatewayResult[int]:
        kind_value = str(getattr(kind, "value", kind))
        files: list[dict[str, Any]] = []

        placeholder = PLACEHOLDER_FILES.get(MessageKind.from_provider(kind_value))
        if media_url and placeholder:
            filename, mime_type = placeholder
            files.append(
                {
                    "name": filename,
                    "type": mime_type,
                    "tmp_name": media_url,
                    "size": 0,
                    "MODULE_ID": "imopenlines",
                }
            )

        params = {
            "SESSION_ID": session_id,
            "MESSAGE": compose_open_channel_text(content, media_url, kind_value),
            "SYSTEM": "N",
            "FILES": files,
            "PARAMS": {
                PARAM_MESSAGE_ID: external_id,
                PARAM_MESSAGE_TYPE: kind_value,
                PARAM_TIMESTAMP: timestamp,
            },
        }

        try:
            message_id = await self._call("imopenlines.message.add", params)
            if not message_id:
                raise ProviderError("Failed to send message to Open Channel", code="MESSAGE_NOT_ADDED")

            logger.info(
                "Sent message to Bitrix24 Open Channel",
                extra={"session_id": session_id, "message_id": message_id, "external_id": external_id},
            )
            return GatewayResult.success(int(message_id))

        except GATEWAY_ERRORS as e:
            logger.error(
                f"Error sending message to Open Channel: {e}",
                extra={"session_id": session_id, "external_id": external_id},
            )
            return GatewayResult.failure(e)

    async def get_messages_from_open_channel(
        self,
        session_id: int,
        limit: int = 50,
    ) -> GatewayResult[list[RelayedMessage]]:
        try:
            result = await self._call(
                "imopenlines.dialog.messages.get",
                {"SESSION_ID": session_id, "LIMIT": limit},
            )
            if isinstance(result, dict):
                result = result.get("messages") or list(result.values())
            if result is None:
                result = []
            if not isinstance(result, list):
                raise unexpected_result("imopenlines.dialog.messages.get", result)

            messages = [RelayedMessage.from_bitrix(item, session_id) for item in result if isinstance(item, dict)]
        except GATEWAY_ERRORS as e:
            logger.error(f"Error retrieving Open Channel messages: {e}", extra={"session_id": session_id})
            return GatewayResult.failure(e)

        logger.debug(
            f"Retrieved {len(messages)} messages from Open Channel",
            extra={"session_id": session_id},
        )
        return GatewayResult.success(messages)

    async def list_active_sessions(self) -> GatewayResult[list[OpenChannelSession]]:
        try:
            result = await self._call(
                "imopenlines.session.list",
                {"filter": {"LINE_ID": self.line_id, "CLOSED": "N"}},
            )
            if result and not isinstance(result, list):
                raise unexpected_result("imopenlines.session.list", result)
        except GATEWAY_ERRORS as e:
            logger.error(f"Error listing Open Channel sessions: {e}")
            return GatewayResult.failure(e)

        sessions = []
        for item in result or []:
            if not isinstance(item, dict):
                continue
            try:
                session_id = int(item.get("ID") or item.get("SESSION_ID") or 0)
            except (TypeError, ValueError):
                continue
            if session_id:
                sessions.append(OpenChannelSession(session_id=session_id, user_code=str(item.get("USER_CODE", ""))))

        return GatewayResult.success(sessions)

    async def mark_message_relayed(self, message: RelayedMessage) -> GatewayResult[bool]:
        try:
            await self._call(
                "imopenlines.message.update",
                {
                    "SESSION_ID": message.session_id,
                    "MESSAGE_ID": message.bitrix_message_id,
                    "PARAMS": {**message.params, PARAM_SENT: "Y"},
                },
            )
        except GATEWAY_ERRORS as e:
            logger.error(
                f"Error marking message as relayed: {e}",
                extra={"message_id": message.bitrix_message_id},
            )
            return GatewayResult.failure(e)

        return GatewayResult.success(True)

    async def update_message_status(self, external_message_id: str, status: str) -> bool:
        # No WhatsApp to Bitrix24 message id mapping exists, so the status is only logged
        logger.info(
            f"Delivery status {status} for {external_message_id}",
            extra={"external_id": external_message_id, "status": status},
        )
        return True

    async def get_connection_info(self) -> GatewayResult[dict[str, Any]]:
        try:
            profile = await self._call("profile")
        except GATEWAY_ERRORS as e:
            return GatewayResult.failure(e)
        return GatewayResult.success(profile if isinstance(profile, dict) else {})


def unexpected_result(method: str, result: Any) -> ProviderError:
    return ProviderError(
        message=f"Unexpected result from {method}: {type(result).__name__}",
        code="UNEXPECTED_RESULT",
        body=result,
    )
