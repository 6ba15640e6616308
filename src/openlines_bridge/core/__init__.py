"""
Core infrastructure: settings, logging, errors, result type.
"""

from openlines_bridge.core.errors import ConfigurationError, ValidationError
from openlines_bridge.core.results import GatewayResult
from openlines_bridge.core.settings import Settings, get_settings

__all__ = [
    "ConfigurationError",
    "GatewayResult",
    "Settings",
    "ValidationError",
    "get_settings",
]
