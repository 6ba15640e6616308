"""
Bridge error taxonomy.

ProviderError (transport/non-2xx from an upstream API) lives in
openlines_bridge.providers.base next to the provider interface.
"""


class ValidationError(Exception):
    """Malformed webhook or API payload. Maps to HTTP 400, never retried."""


class ConfigurationError(Exception):
    """Required credential or setting is missing. Fatal at startup."""

    def __init__(self, message: str, missing: list[str] | None = None):
        super().__init__(message)
        self.missing = missing or []
