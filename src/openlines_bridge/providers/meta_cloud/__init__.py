"""Meta Cloud API WhatsApp provider."""

from openlines_bridge.providers.meta_cloud.client import MetaCloudWhatsAppProvider
from openlines_bridge.providers.meta_cloud.webhook import find_contact_name, validate_signature

__all__ = [
    "MetaCloudWhatsAppProvider",
    "find_contact_name",
    "validate_signature",
]
