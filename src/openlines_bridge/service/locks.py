"""
Relay Locks

Single-flight locks for relay cycles. Two overlapping cycles could both read a
message before either marks it relayed, so only one cycle may run at a time.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from uuid import uuid4

import redis

from openlines_bridge.core.redis import get_redis_client
from openlines_bridge.core.settings import Settings

logger = logging.getLogger(__name__)

RELAY_LOCK_KEY = "openlines_bridge:relay_lock"

# Delete the key only if we still own it
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class RelayLock(ABC):
    """Non-blocking lock: acquire() returns False when a cycle is already running."""

    @abstractmethod
    async def acquire(self) -> bool: ...

    @abstractmethod
    async def release(self) -> None: ...


class InProcessRelayLock(RelayLock):
    """Serializes cycles within one process."""

    def __init__(self):
        self._lock = asyncio.Lock()

    async def acquire(self) -> bool:
        if self._lock.locked():
            return False
        await self._lock.acquire()
        return True

    async def release(self) -> None:
        if self._lock.locked():
            self._lock.release()


class RedisRelayLock(RelayLock):
    """
    Serializes cycles across processes with SET NX PX.

    The TTL bounds how long a crashed holder can block other pollers.
    """

    def __init__(
        self,
        client: redis.Redis,
        key: str = RELAY_LOCK_KEY,
        ttl_seconds: int = 300,
    ):
        self.client = client
        self.key = key
        self.ttl_ms = ttl_seconds * 1000
        self._token: str | None = None

    async def acquire(self) -> bool:
        token = uuid4().hex
        try:
            acquired = await asyncio.to_thread(self.client.set, self.key, token, nx=True, px=self.ttl_ms)
        except redis.RedisError as e:
            logger.error(f"Could not acquire relay lock: {e}")
            return False

        if acquired:
            self._token = token
            return True
        return False

    async def release(self) -> None:
        if self._token is None:
            return
        token, self._token = self._token, None
        try:
            await asyncio.to_thread(self.client.eval, _RELEASE_SCRIPT, 1, self.key, token)
        except redis.RedisError as e:
            logger.warning(f"Could not release relay lock (expires after TTL): {e}")


def get_relay_lock(settings: Settings) -> RelayLock:
    """Redis lock when REDIS_URL is set, in-process lock otherwise."""
    if settings.redis_url:
        return RedisRelayLock(
            get_redis_client(settings.redis_url),
            ttl_seconds=settings.relay_lock_ttl_seconds,
        )
    return InProcessRelayLock()
