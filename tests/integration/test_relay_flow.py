"""
Integration Test: Relay Flow (Bitrix24 operator reply -> WhatsApp)

Verifies the complete outbound path:
1. Customer message arrives through the webhook
2. Operator replies in the Open Channel
3. A relay cycle delivers the reply and flags it WHATSAPP_SENT
4. The next cycle delivers nothing
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from bridge_relay.main import run_once
from bridge_webhook.main import create_app
from openlines_bridge.service.relay import RelayCoordinator


@pytest.fixture
def coordinator(meta_provider, rest_gateway):
    return RelayCoordinator(meta_provider, rest_gateway)


def open_conversation(bitrix_api, rest_settings, meta_provider, rest_gateway, webhook) -> int:
    # No lifespan: shutdown would close the mocked HTTP clients still needed by the relay
    client = TestClient(create_app(rest_settings, meta_provider, rest_gateway))
    assert client.post("/webhook", json=webhook).json() == {"success": True}
    return bitrix_api.sessions["whatsapp_5511888888888"]


class TestRelayFlow:
    """End-to-end operator reply."""

    @pytest.mark.asyncio
    async def test_reply_delivered_once(self, coordinator, bitrix_api, graph_api):
        session_id = await self._seed_session(bitrix_api)
        reply_id = bitrix_api.add_agent_reply(session_id, "Hi John, how can we help?")

        assert await coordinator.run_cycle() == 1

        [sent] = graph_api.sent_messages()
        assert sent["to"] == "5511888888888"
        assert sent["text"]["body"] == "Hi John, how can we help?"

        update = next(p for m, p in bitrix_api.calls if m == "imopenlines.message.update")
        assert update["MESSAGE_ID"] == int(reply_id)
        assert update["PARAMS"]["WHATSAPP_SENT"] == "Y"

        assert await coordinator.run_cycle() == 0
        assert len(graph_api.sent_messages()) == 1

    @pytest.mark.asyncio
    async def test_typing_indicator_anchored_on_customer_message(self, coordinator, bitrix_api, graph_api):
        session_id = await self._seed_session(bitrix_api)
        bitrix_api.add_agent_reply(session_id, "One moment")

        await coordinator.run_cycle()

        typing = [body for _, _, body in graph_api.requests if "typing_indicator" in body]
        assert typing == [
            {
                "messaging_product": "whatsapp",
                "status": "read",
                "message_id": "wamid.SEED",
                "typing_indicator": {"type": "text"},
            }
        ]

    @pytest.mark.asyncio
    async def test_file_reply(self, coordinator, bitrix_api, graph_api):
        session_id = await self._seed_session(bitrix_api)
        bitrix_api.add_agent_reply(
            session_id,
            "Here is the catalog",
            files=[{"ID": "9", "NAME": "catalog.pdf", "URL": "https://example.bitrix24.com/disk/9"}],
        )

        assert await coordinator.run_cycle() == 1

        [sent] = graph_api.sent_messages()
        assert sent["type"] == "document"
        assert sent["document"] == {
            "link": "https://example.bitrix24.com/disk/9",
            "caption": "Here is the catalog",
            "filename": "catalog.pdf",
        }

    @pytest.mark.asyncio
    async def test_customer_messages_not_echoed(self, coordinator, bitrix_api, graph_api):
        await self._seed_session(bitrix_api)

        assert await coordinator.run_cycle() == 0
        assert graph_api.sent_messages() == []

    @pytest.mark.asyncio
    async def test_flag_failure_leaves_message_pending(self, coordinator, bitrix_api, graph_api):
        """Test a reply whose flag write fails is sent again next cycle."""
        session_id = await self._seed_session(bitrix_api)
        bitrix_api.add_agent_reply(session_id, "Reply")
        bitrix_api.unavailable.add("imopenlines.message.update")

        assert await coordinator.run_cycle() == 1

        bitrix_api.unavailable.clear()
        assert await coordinator.run_cycle() == 1
        assert len(graph_api.sent_messages()) == 2

    async def _seed_session(self, bitrix_api) -> int:
        """Create a session with one customer message, as the webhook would."""
        user_code = "whatsapp_5511888888888"
        session_id = bitrix_api._imopenlines_session_create({"USER_CODE": user_code})
        bitrix_api._imopenlines_message_add(
            {
                "SESSION_ID": session_id,
                "MESSAGE": "Hello",
                "FILES": [],
                "PARAMS": {"WHATSAPP_MESSAGE_ID": "wamid.SEED", "WHATSAPP_MESSAGE_TYPE": "text", "WHATSAPP_TIMESTAMP": "1"},
            }
        )
        return session_id


class TestWebhookThenRelay:
    """Full round trip through both processes."""

    def test_round_trip(self, rest_settings, meta_provider, rest_gateway, bitrix_api, graph_api, text_message_webhook):
        session_id = open_conversation(bitrix_api, rest_settings, meta_provider, rest_gateway, text_message_webhook)
        bitrix_api.add_agent_reply(session_id, "Thanks for reaching out")

        count = asyncio.run(RelayCoordinator(meta_provider, rest_gateway).run_cycle())

        assert count == 1
        assert graph_api.sent_messages()[-1]["text"]["body"] == "Thanks for reaching out"


class TestRunOnce:
    """One-shot relay entry point."""

    @pytest.mark.asyncio
    async def test_run_once_with_stubs(self, settings, provider, bitrix):
        session = await bitrix.get_or_create_session("5511888888888", {"ID": 1})
        bitrix.add_agent_message(session.value, "Hello from the operator")

        assert await run_once(settings, provider, bitrix) == 1
        assert provider.get_sent_messages()[0]["text"] == "Hello from the operator"
