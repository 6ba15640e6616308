"""Bridge services: inbound, outbound and relay."""

from openlines_bridge.service.inbound_handler import InboundHandler
from openlines_bridge.service.locks import InProcessRelayLock, RedisRelayLock, RelayLock, get_relay_lock
from openlines_bridge.service.outbound_handler import OutboundHandler
from openlines_bridge.service.relay import RelayCoordinator, filter_new_agent_messages

__all__ = [
    "InProcessRelayLock",
    "InboundHandler",
    "OutboundHandler",
    "RedisRelayLock",
    "RelayCoordinator",
    "RelayLock",
    "filter_new_agent_messages",
    "get_relay_lock",
]
