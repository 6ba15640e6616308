"""
Tests for settings and component factories.
"""

import pydantic
import pytest

from openlines_bridge.bitrix import get_gateway
from openlines_bridge.bitrix.client import BitrixRestGateway
from openlines_bridge.bitrix.stub import InMemoryBitrixGateway
from openlines_bridge.core.errors import ConfigurationError
from openlines_bridge.providers import get_provider
from openlines_bridge.providers.meta_cloud import MetaCloudWhatsAppProvider
from openlines_bridge.providers.stub import StubWhatsAppProvider


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, settings_factory):
        settings = settings_factory()

        assert settings.whatsapp_api_version == "v18.0"
        assert settings.http_timeout == 30.0
        assert settings.relay_message_limit == 50
        assert settings.graph_api_base_url == "https://graph.facebook.com/v18.0"

    def test_rest_url_trailing_slash(self, settings_factory):
        assert settings_factory().bitrix24_rest_url == "https://example.bitrix24.com/rest/1/abc/"
        assert settings_factory(bitrix24_webhook_url="https://b/rest/1/x/").bitrix24_rest_url == "https://b/rest/1/x/"

    def test_from_environment(self, monkeypatch, settings_factory):
        monkeypatch.setenv("RELAY_MESSAGE_LIMIT", "20")
        monkeypatch.setenv("WHATSAPP_API_VERSION", "v19.0")

        from openlines_bridge.core.settings import Settings

        settings = Settings(_env_file=None)

        assert settings.relay_message_limit == 20
        assert settings.graph_api_base_url == "https://graph.facebook.com/v19.0"

    def test_frozen(self, settings):
        with pytest.raises(pydantic.ValidationError):
            settings.whatsapp_api_token = "changed"

    def test_require_lists_missing(self, settings_factory):
        settings = settings_factory(bitrix24_webhook_url="", bitrix24_open_channel_id="")

        with pytest.raises(ConfigurationError) as exc_info:
            settings.require("bitrix24_webhook_url", "bitrix24_open_channel_id", "whatsapp_api_token")

        assert exc_info.value.missing == ["bitrix24_webhook_url", "bitrix24_open_channel_id"]


class TestFactories:
    """Tests for provider and gateway selection."""

    def test_stub_provider(self, settings):
        assert isinstance(get_provider(settings), StubWhatsAppProvider)

    def test_meta_provider(self, settings_factory):
        assert isinstance(get_provider(settings_factory(whatsapp_provider="meta")), MetaCloudWhatsAppProvider)

    def test_memory_gateway(self, settings):
        assert isinstance(get_gateway(settings), InMemoryBitrixGateway)

    def test_rest_gateway(self, settings_factory):
        assert isinstance(get_gateway(settings_factory(bitrix24_provider="rest")), BitrixRestGateway)

    def test_rest_gateway_requires_credentials(self, settings_factory):
        with pytest.raises(ConfigurationError):
            get_gateway(settings_factory(bitrix24_provider="rest", bitrix24_open_channel_id=""))
