"""
WhatsApp Providers

Provider implementations for the WhatsApp side of the bridge.
Supports Meta Cloud API (production) and Stub (development).
"""

from openlines_bridge.core.settings import Settings
from openlines_bridge.providers.base import (
    DeliveryStatus,
    ProviderError,
    ProviderResponse,
    WhatsAppProvider,
)


def get_provider(settings: Settings) -> WhatsAppProvider:
    """Build the provider selected by WHATSAPP_PROVIDER."""
    if settings.whatsapp_provider == "stub":
        from openlines_bridge.providers.stub import StubWhatsAppProvider

        return StubWhatsAppProvider()

    from openlines_bridge.providers.meta_cloud import MetaCloudWhatsAppProvider

    return MetaCloudWhatsAppProvider(settings)


__all__ = [
    "DeliveryStatus",
    "ProviderError",
    "ProviderResponse",
    "WhatsAppProvider",
    "get_provider",
]
