"""Stub WhatsApp provider for development."""

from openlines_bridge.providers.stub.client import StubWhatsAppProvider

__all__ = ["StubWhatsAppProvider"]
