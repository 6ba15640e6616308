"""
Redis client utilities.

Redis is optional: it only backs the cross-process relay lock.
Clients are created lazily to avoid import-time connections.
"""

import functools

import redis


@functools.lru_cache()
def get_redis_client(url: str) -> redis.Redis:
    """
    Get Redis client for a URL (cached).

    This function lazily initializes the Redis client to avoid import-time connections.
    """
    return redis.from_url(url, decode_responses=True)
