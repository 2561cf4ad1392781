"""Redis pub/sub — cache invalidation between portal processes.

Learn: Redis pub/sub is fire-and-forget. If no one is listening, the message
is lost. That's fine here: a missed message only means a mirror is served
until its next refetch, and the local process is always right.

Channel: musaib:cache. Payload: {"table": ..., "origin": ...} where origin
is the publishing CacheRegistry's id, so a process ignores its own echo.
"""

import asyncio
import json
from typing import Optional

import redis.asyncio as aioredis
import structlog

from musaib.stores.cache import CacheRegistry

logger = structlog.get_logger()

CACHE_CHANNEL = "musaib:cache"

# Global Redis connection pool (initialized in lifespan)
_redis: Optional[aioredis.Redis] = None


async def init_redis(url: str) -> aioredis.Redis:
    """Initialize the Redis connection pool.

    The pool only becomes visible to redis_available() once a ping went
    through; a failed ping closes it and re-raises.
    """
    global _redis
    client = aioredis.from_url(
        url,
        encoding="utf-8",
        decode_responses=True,
    )
    try:
        await client.ping()
    except Exception:
        await client.aclose()
        raise
    _redis = client
    return _redis


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    """Get the Redis connection (must be initialized first)."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


def redis_available() -> bool:
    return _redis is not None


async def publish_cache_event(table: str, origin: str) -> None:
    """Tell other processes that `table` changed.

    Used as the CacheRegistry broadcaster. A no-op when Redis is down.
    """
    if _redis is None:
        return
    payload = json.dumps({"table": table, "origin": origin})
    await _redis.publish(CACHE_CHANNEL, payload)


def handle_cache_message(registry: CacheRegistry, data: str) -> None:
    """Apply one pub/sub payload to the registry; malformed payloads are logged."""
    try:
        msg = json.loads(data)
        table, origin = msg["table"], msg["origin"]
    except (json.JSONDecodeError, KeyError, TypeError):
        logger.warning("realtime.bad_message", data=data[:200])
        return
    registry.on_remote_change(table, origin)


async def listen_cache_events(registry: CacheRegistry) -> None:
    """Forward cache events from Redis into the registry until cancelled."""
    r = get_redis()
    pubsub = r.pubsub()
    await pubsub.subscribe(CACHE_CHANNEL)
    logger.info("realtime.listening", channel=CACHE_CHANNEL)
    try:
        async for message in pubsub.listen():
            if message["type"] == "message":
                handle_cache_message(registry, message["data"])
    except asyncio.CancelledError:
        pass
    finally:
        await pubsub.unsubscribe(CACHE_CHANNEL)
        await pubsub.aclose()
