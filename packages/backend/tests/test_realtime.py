"""Cache invalidation over Redis pub/sub — message handling without a server."""

import json

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from musaib.realtime import pubsub
from musaib.stores.cache import CacheRegistry


def test_remote_message_marks_table_stale():
    registry = CacheRegistry()
    services = registry.acquire("services")
    family = registry.acquire("family_members:user:1")

    pubsub.handle_cache_message(
        registry, json.dumps({"table": "services", "origin": "other-process"})
    )
    assert services.stale
    assert not family.stale


def test_own_message_is_ignored():
    registry = CacheRegistry()
    services = registry.acquire("services")
    pubsub.handle_cache_message(
        registry, json.dumps({"table": "services", "origin": registry.origin})
    )
    assert not services.stale


@pytest.mark.parametrize("data", ["not json", "{}", '{"table": "services"}', "[]"])
def test_malformed_message_is_dropped(data):
    registry = CacheRegistry()
    services = registry.acquire("services")
    pubsub.handle_cache_message(registry, data)
    assert not services.stale


def test_redis_not_initialized():
    assert not pubsub.redis_available()
    with pytest.raises(RuntimeError):
        pubsub.get_redis()


@pytest.mark.asyncio
async def test_publish_without_redis_is_a_noop():
    await pubsub.publish_cache_event("services", "origin")


@pytest.mark.asyncio
async def test_publish_uses_cache_channel(monkeypatch):
    published = []

    class FakeRedis:
        async def publish(self, channel, payload):
            published.append((channel, json.loads(payload)))

    monkeypatch.setattr(pubsub, "_redis", FakeRedis())
    await pubsub.publish_cache_event("service_requests", "abc")
    assert published == [
        (pubsub.CACHE_CHANNEL, {"table": "service_requests", "origin": "abc"})
    ]


class FakeRedis:
    def __init__(self, reachable: bool):
        self.reachable = reachable
        self.closed = False

    async def ping(self):
        if not self.reachable:
            raise RedisConnectionError("Connection refused")
        return True

    async def aclose(self):
        self.closed = True


@pytest.mark.asyncio
async def test_failed_ping_leaves_redis_unavailable(monkeypatch):
    fake = FakeRedis(reachable=False)
    monkeypatch.setattr(pubsub.aioredis, "from_url", lambda *a, **kw: fake)

    with pytest.raises(RedisConnectionError):
        await pubsub.init_redis("redis://127.0.0.1:1/0")

    assert fake.closed
    assert not pubsub.redis_available()
    await pubsub.publish_cache_event("services", "origin")


@pytest.mark.asyncio
async def test_successful_ping_makes_redis_available(monkeypatch):
    fake = FakeRedis(reachable=True)
    monkeypatch.setattr(pubsub.aioredis, "from_url", lambda *a, **kw: fake)

    assert await pubsub.init_redis("redis://localhost:6379/0") is fake
    assert pubsub.redis_available()

    await pubsub.close_redis()
    assert fake.closed
    assert not pubsub.redis_available()
