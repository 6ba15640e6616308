"""
Tests for the outbound handler.
"""

import pytest

from openlines_bridge.bitrix.stub import InMemoryBitrixGateway
from openlines_bridge.service.outbound_handler import OutboundHandler


@pytest.fixture
def outbound(provider, bitrix):
    return OutboundHandler(provider, bitrix)


class TestProcessOutgoingMessage:
    """Tests for sends by explicit media type."""

    @pytest.mark.asyncio
    async def test_text(self, outbound, provider):
        response = await outbound.process_outgoing_message("5511888888888", "Hello")

        assert response.success is True
        assert provider.get_sent_messages()[0]["type"] == "text"

    @pytest.mark.asyncio
    async def test_image(self, outbound, provider):
        await outbound.process_outgoing_message("1", "Caption", "https://x/p.png", "image")

        sent = provider.get_sent_messages()[0]
        assert (sent["type"], sent["url"], sent["caption"]) == ("image", "https://x/p.png", "Caption")

    @pytest.mark.asyncio
    async def test_audio_has_no_caption(self, outbound, provider):
        await outbound.process_outgoing_message("1", "Caption", "https://x/a.ogg", "audio")

        assert provider.get_sent_messages()[0]["caption"] == ""

    @pytest.mark.asyncio
    async def test_document_uses_url_basename(self, outbound, provider):
        await outbound.process_outgoing_message("1", "Contract", "https://x/files/contract.pdf?sig=1", "document")

        assert provider.get_sent_messages()[0]["filename"] == "contract.pdf"

    @pytest.mark.asyncio
    async def test_unknown_media_type_falls_back_to_text(self, outbound, provider):
        await outbound.process_outgoing_message("1", "See this", "https://x/s.webp", "sticker")

        sent = provider.get_sent_messages()[0]
        assert sent["type"] == "text"
        assert sent["text"] == "See this\n\nMedia: https://x/s.webp"


class TestConnectionStatus:
    """Tests for the connectivity check."""

    @pytest.mark.asyncio
    async def test_all_connected(self, outbound):
        status = await outbound.check_connection_status()

        assert status.whatsapp is True
        assert status.bitrix24 is True
        assert status.whatsapp_info["id"] == "stub_phone_number"
        assert status.errors == []

    @pytest.mark.asyncio
    async def test_bitrix_down(self, provider):
        outbound = OutboundHandler(provider, InMemoryBitrixGateway(failing_methods={"get_connection_info"}))

        status = await outbound.check_connection_status()

        assert status.whatsapp is True
        assert status.bitrix24 is False
        assert status.errors[0].startswith("Bitrix24: ")

    @pytest.mark.asyncio
    async def test_status_dict_omits_missing_info(self, provider):
        outbound = OutboundHandler(provider, InMemoryBitrixGateway(failing_methods={"get_connection_info"}))

        data = await outbound.status_dict()

        assert "bitrix24_info" not in data
        assert "whatsapp_info" in data
