"""
Meta Cloud API WhatsApp Provider

Production provider for WhatsApp Business Cloud API.
Implements the Graph API v18.0+ for sending messages and resolving media.
"""

import logging
from typing import Any

import httpx

from openlines_bridge.contracts.models import CAPTION_KINDS, MEDIA_KINDS, MessageKind
from openlines_bridge.core.results import GatewayResult
from openlines_bridge.core.settings import Settings
from openlines_bridge.providers.base import (
    ProviderError,
    ProviderResponse,
    WhatsAppProvider,
)

logger = logging.getLogger(__name__)


class MetaCloudWhatsAppProvider(WhatsAppProvider):
    """
    Meta Cloud API provider for WhatsApp Business.

    Bound to one business phone number and token taken from settings.
    """

    def __init__(
        self,
        settings: Settings,
        max_retries: int = 2,
        client: httpx.AsyncClient | None = None,
    ):
        settings.require("whatsapp_phone_number_id", "whatsapp_api_token")

        self.settings = settings
        self.phone_number_id = settings.whatsapp_phone_number_id
        self.base_url = settings.graph_api_base_url
        self.timeout = settings.http_timeout
        self.max_retries = max_retries
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    @property
    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.settings.whatsapp_api_token}"}

    @property
    def _messages_url(self) -> str:
        return f"{self.base_url}/{self.phone_number_id}/messages"

    async def _send_request(
        self,
        method: str,
        url: str,
        json_data: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Make one authenticated request, raising ProviderError on failure."""
        client = await self._get_client()

        try:
            if method.upper() == "GET":
                response = await client.get(url, headers=self._auth_headers)
            else:
                response = await client.post(url, headers=self._auth_headers, json=json_data)
        except httpx.RequestError as e:
            logger.error(f"HTTP request failed: {e}")
            raise ProviderError(
                message=f"HTTP request failed: {e}",
                code="HTTP_ERROR",
                retryable=True,
            ) from e

        if response.status_code >= 400:
            body = _safe_json(response)
            error = body.get("error", {}) if isinstance(body, dict) else {}
            if not isinstance(error, dict):
                error = {"message": str(error)}
            raise ProviderError(
                message=error.get("message", f"HTTP {response.status_code}"),
                code=str(error.get("code", response.status_code)),
                status=response.status_code,
                body=body if body else response.text,
                details=error,
                retryable=response.status_code >= 500,
            )

        return response

    async def _make_request(
        self,
        method: str,
        url: str,
        json_data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Make an authenticated API request and decode the JSON body.

        GETs are idempotent and retried on retryable errors; POSTs are sent once.
        """
        attempts = self.max_retries + 1 if method.upper() == "GET" else 1

        for attempt in range(attempts):
            try:
                response = await self._send_request(method, url, json_data)
                body = _safe_json(response)
                return body if isinstance(body, dict) else {}
            except ProviderError as e:
                if e.retryable and attempt + 1 < attempts:
                    logger.warning(
                        f"Retrying Graph API request after error: {e}",
                        extra={"url": url, "attempt": attempt},
                    )
                    continue
                raise

        # Unreachable: the loop either returns or raises
        raise ProviderError(message="Request not attempted", code="NO_ATTEMPT")

    async def _post_message(self, payload: dict[str, Any], description: str) -> ProviderResponse:
        """POST a message envelope and convert the outcome to a ProviderResponse."""
        try:
            response = await self._make_request("POST", self._messages_url, payload)
            message_id = (response.get("messages") or [{}])[0].get("id")

            logger.info(
                f"Sent {description} via Meta API",
                extra={"to": payload.get("to"), "message_id": message_id},
            )

            return ProviderResponse(
                success=True,
                message_id=message_id,
                raw_response=response,
            )

        except ProviderError as e:
            logger.error(f"Failed to send {description}: {e}", extra={"to": payload.get("to")})
            return ProviderResponse(
                success=False,
                error_code=e.code,
                error_message=str(e),
                raw_response=e.details,
            )

    def _envelope(self, to: str, message_type: str) -> dict[str, Any]:
        return {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": to,
            "type": message_type,
        }

    async def send_text(
        self,
        to: str,
        text: str,
        reply_to: str | None = None,
        preview_url: bool = False,
    ) -> ProviderResponse:
        """Send a text message via Graph API."""
        payload = self._envelope(to, "text")
        payload["text"] = {
            "preview_url": preview_url,
            "body": text,
        }

        if reply_to:
            payload["context"] = {"message_id": reply_to}

        return await self._post_message(payload, "text message")

    async def send_media(
        self,
        to: str,
        kind: MessageKind | str,
        url: str,
        caption: str = "",
        filename: str | None = None,
    ) -> ProviderResponse:
        """Send a media message by link via Graph API."""
        try:
            media_kind = MessageKind(kind)
        except ValueError:
            media_kind = None

        if media_kind not in MEDIA_KINDS:
            valid = ", ".join(sorted(k.value for k in MEDIA_KINDS))
            logger.error(f"Invalid media type: {kind}", extra={"valid_types": valid})
            return ProviderResponse(
                success=False,
                error_code="INVALID_MEDIA_TYPE",
                error_message=f"Invalid media type. Must be one of: {valid}",
            )

        media: dict[str, Any] = {"link": url}

        if caption and media_kind in CAPTION_KINDS:
            media["caption"] = caption

        if filename and media_kind == MessageKind.DOCUMENT:
            media["filename"] = filename

        payload = self._envelope(to, media_kind.value)
        payload[media_kind.value] = media

        return await self._post_message(payload, f"{media_kind.value} message")

    async def send_location(
        self,
        to: str,
        latitude: float,
        longitude: float,
        name: str = "",
        address: str = "",
    ) -> ProviderResponse:
        """Send a location message via Graph API."""
        location: dict[str, Any] = {"latitude": latitude, "longitude": longitude}
        if name:
            location["name"] = name
        if address:
            location["address"] = address

        payload = self._envelope(to, "location")
        payload["location"] = location

        return await self._post_message(payload, "location message")

    async def send_contacts(
        self,
        to: str,
        contacts: list[dict[str, Any]],
    ) -> ProviderResponse:
        """Send contact cards via Graph API."""
        payload = self._envelope(to, "contacts")
        payload["contacts"] = contacts

        return await self._post_message(payload, "contacts message")

    async def mark_as_read(self, message_id: str) -> bool:
        """Mark a message as read."""
        payload = {
            "messaging_product": "whatsapp",
            "status": "read",
            "message_id": message_id,
        }

        try:
            await self._make_request("POST", self._messages_url, payload)
            return True
        except ProviderError as e:
            logger.warning(f"Failed to mark message as read: {e}", extra={"message_id": message_id})
            return False

    async def send_typing_indicator(self, message_id: str) -> bool:
        """Mark the customer's message as read and show the typing indicator."""
        payload = {
            "messaging_product": "whatsapp",
            "status": "read",
            "message_id": message_id,
            "typing_indicator": {"type": "text"},
        }

        try:
            await self._make_request("POST", self._messages_url, payload)
            return True
        except ProviderError as e:
            logger.warning(f"Failed to send typing indicator: {e}", extra={"message_id": message_id})
            return False

    async def get_media_url(self, media_id: str) -> GatewayResult[str]:
        """Get the download URL for a media file."""
        if not media_id:
            return GatewayResult.failure(ProviderError("Empty media ID", code="EMPTY_MEDIA_ID"))

        try:
            response = await self._make_request("GET", f"{self.base_url}/{media_id}")
        except ProviderError as e:
            logger.warning(f"Failed to get media URL: {e}", extra={"media_id": media_id})
            return GatewayResult.failure(e)

        url = response.get("url")
        if not url:
            return GatewayResult.failure(
                ProviderError("Media response has no url", code="NO_MEDIA_URL", body=response)
            )

        logger.debug("Resolved media URL", extra={"media_id": media_id})
        return GatewayResult.success(url)

    async def download_media(self, url: str) -> GatewayResult[bytes]:
        """Download media content; the signed URL requires the same bearer token."""
        try:
            response = await self._send_request("GET", url)
        except ProviderError as e:
            logger.warning(f"Failed to download media: {e}")
            return GatewayResult.failure(e)

        logger.info("Downloaded media", extra={"content_length": len(response.content)})
        return GatewayResult.success(response.content)

    async def get_phone_number_info(self) -> GatewayResult[dict[str, Any]]:
        """Get the configured phone number metadata."""
        return await self._get_object(self.phone_number_id, "phone number info")

    async def get_business_account_info(self) -> GatewayResult[dict[str, Any]]:
        """Get the configured WhatsApp Business Account metadata."""
        account_id = self.settings.whatsapp_business_account_id
        if not account_id:
            return GatewayResult.failure(
                ProviderError("WHATSAPP_BUSINESS_ACCOUNT_ID is not configured", code="NOT_CONFIGURED")
            )
        return await self._get_object(account_id, "business account info")

    async def _get_object(self, object_id: str, description: str) -> GatewayResult[dict[str, Any]]:
        try:
            response = await self._make_request("GET", f"{self.base_url}/{object_id}")
        except ProviderError as e:
            logger.error(f"Failed to get {description}: {e}")
            return GatewayResult.failure(e)

        logger.info(f"Retrieved {description}", extra={"object_id": object_id})
        return GatewayResult.success(response)


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {}
