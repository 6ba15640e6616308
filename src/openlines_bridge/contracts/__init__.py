"""
Bridge contracts: data models and API payloads.
"""

from openlines_bridge.contracts.models import (
    CAPTION_KINDS,
    MEDIA_KINDS,
    ChannelMessage,
    ContactRef,
    GeoPoint,
    MediaRef,
    MessageKind,
    OpenChannelSession,
    OutboundInstruction,
    RelayedFile,
    RelayedMessage,
    SessionKey,
)
from openlines_bridge.contracts.payloads import ConnectionStatus, SuccessResponse, SendTestRequest

__all__ = [
    "CAPTION_KINDS",
    "MEDIA_KINDS",
    "ChannelMessage",
    "ConnectionStatus",
    "ContactRef",
    "GeoPoint",
    "MediaRef",
    "MessageKind",
    "OpenChannelSession",
    "OutboundInstruction",
    "RelayedFile",
    "RelayedMessage",
    "SessionKey",
    "SuccessResponse",
    "SendTestRequest",
]
