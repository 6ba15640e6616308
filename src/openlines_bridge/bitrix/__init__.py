"""
Bitrix24 Gateways

Open Channel / CRM access for the bridge.
Supports the REST inbound webhook (production) and an in-memory store (development).
"""

from openlines_bridge.bitrix.base import BitrixGateway
from openlines_bridge.core.settings import Settings


def get_gateway(settings: Settings) -> BitrixGateway:
    """Build the gateway selected by BITRIX24_PROVIDER."""
    if settings.bitrix24_provider == "memory":
        from openlines_bridge.bitrix.stub import InMemoryBitrixGateway

        return InMemoryBitrixGateway()

    from openlines_bridge.bitrix.client import BitrixRestGateway

    return BitrixRestGateway(settings)


__all__ = ["BitrixGateway", "get_gateway"]
