"""
Pytest fixtures for bridge tests.
"""

import pytest

from openlines_bridge.bitrix.stub import InMemoryBitrixGateway
from openlines_bridge.core.settings import Settings
from openlines_bridge.providers.stub import StubWhatsAppProvider


def make_settings(**overrides) -> Settings:
    """Settings isolated from the environment's .env file."""
    values = {
        "whatsapp_provider": "stub",
        "whatsapp_phone_number_id": "PHONE_123",
        "whatsapp_business_account_id": "WABA_123456",
        "whatsapp_api_token": "test_token",
        "whatsapp_webhook_verify_token": "verify_me",
        "whatsapp_app_secret": "",
        "bitrix24_provider": "memory",
        "bitrix24_domain": "example.bitrix24.com",
        "bitrix24_webhook_url": "https://example.bitrix24.com/rest/1/abc",
        "bitrix24_open_channel_id": "7",
        "redis_url": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings():
    """Settings wired to the stub provider and in-memory Bitrix24."""
    return make_settings()


@pytest.fixture
def settings_factory():
    """Build settings with overrides."""
    return make_settings


@pytest.fixture
def provider():
    return StubWhatsAppProvider()


@pytest.fixture
def bitrix():
    return InMemoryBitrixGateway()


@pytest.fixture
def sample_phone():
    """Sample phone number."""
    return "5511888888888"


@pytest.fixture
def text_message_webhook(sample_phone):
    """Sample Meta webhook for a text message."""
    return {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "WABA_123456",
                "changes": [
                    {
                        "value": {
                            "messaging_product": "whatsapp",
                            "metadata": {
                                "display_phone_number": "5511999999999",
                                "phone_number_id": "PHONE_123",
                            },
                            "contacts": [
                                {
                                    "profile": {"name": "John Doe"},
                                    "wa_id": sample_phone,
                                }
                            ],
                            "messages": [
                                {
                                    "from": sample_phone,
                                    "id": "wamid.HBgM",
                                    "timestamp": "1704067200",
                                    "text": {"body": "Hello there"},
                                    "type": "text",
                                }
                            ],
                        },
                        "field": "messages",
                    }
                ],
            }
        ],
    }


@pytest.fixture
def status_webhook(sample_phone):
    """Sample Meta webhook for delivery statuses."""
    return {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "WABA_123456",
                "changes": [
                    {
                        "value": {
                            "messaging_product": "whatsapp",
                            "metadata": {"phone_number_id": "PHONE_123"},
                            "statuses": [
                                {"id": "wamid.OUT1", "status": "sent", "timestamp": "1704067300", "recipient_id": sample_phone},
                                {"id": "wamid.OUT1", "status": "delivered", "timestamp": "1704067301", "recipient_id": sample_phone},
                                {"id": "wamid.OUT1", "status": "read", "timestamp": "1704067302", "recipient_id": sample_phone},
                                {
                                    "id": "wamid.OUT2",
                                    "status": "failed",
                                    "timestamp": "1704067303",
                                    "recipient_id": sample_phone,
                                    "errors": [{"code": 131026, "title": "Message undeliverable"}],
                                },
                            ],
                        },
                        "field": "messages",
                    }
                ],
            }
        ],
    }
