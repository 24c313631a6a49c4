"""Integration tests for the Redis tag index using testcontainers."""

import pytest

# Skip all tests if redis or testcontainers are not installed
pytest.importorskip("redis")
pytest.importorskip("testcontainers")

import redis.asyncio
from testcontainers.redis import RedisContainer

from tagcache import CleanMode, TagCache
from tagcache.backends.redis import AsyncRedisBackend
from tagcache.index.redis import AsyncRedisTagIndex


@pytest.fixture(scope="module")
def redis_container():
    """Start a Redis container for the test module."""
    with RedisContainer() as container:
        yield container


@pytest.fixture
async def redis_client(redis_container):
    """Create an async Redis client and flush it afterwards."""
    client = redis.asyncio.Redis(
        host=redis_container.get_container_host_ip(),
        port=redis_container.get_exposed_port(6379),
        decode_responses=False,
    )
    yield client
    await client.flushdb()
    await client.aclose()


@pytest.fixture
def redis_index(redis_client) -> AsyncRedisTagIndex:
    """Create an AsyncRedisTagIndex with a test prefix."""
    return AsyncRedisTagIndex(redis_client, prefix="test:index")


class TestAsyncRedisTagIndex:
    """Integration tests for AsyncRedisTagIndex."""

    async def test_insert_and_exists(self, redis_index: AsyncRedisTagIndex) -> None:
        """Test recording and checking a row."""
        assert not await redis_index.exists("k1", "a")
        await redis_index.insert("k1", "a")
        await redis_index.insert("k1", "a")
        assert await redis_index.exists("k1", "a")
        assert await redis_index.tags_for_key("k1") == {"a"}

    async def test_find_keys(self, redis_index: AsyncRedisTagIndex) -> None:
        """Test membership queries, including the empty tag."""
        await redis_index.insert("k1", "a")
        await redis_index.insert("k1", "b")
        await redis_index.insert("k2", "b")
        await redis_index.insert("k3", "")

        assert await redis_index.find_keys_by_tag_in(["a", ""]) == {"k1", "k3"}
        assert await redis_index.find_keys_by_tag_in([]) == set()
        assert await redis_index.find_keys_by_tag_not_in(["b"]) == {"k3"}
        assert await redis_index.find_keys_by_tag_not_in([]) == {"k1", "k2", "k3"}

    async def test_delete_by_key(self, redis_index: AsyncRedisTagIndex) -> None:
        """Test that deleting a key drops it from every tag."""
        await redis_index.insert("k1", "a")
        await redis_index.insert("k1", "b")
        await redis_index.insert("k2", "a")

        await redis_index.delete_by_key("k1")

        assert await redis_index.find_keys_by_tag_in(["a", "b"]) == {"k2"}
        assert await redis_index.all_keys() == {"k2"}
        assert await redis_index.all_tags() == {"a"}

    async def test_all_tags_keeps_no_registry(
        self, redis_index: AsyncRedisTagIndex, redis_client
    ) -> None:
        """Test that dropped tags leave nothing behind in Redis."""
        await redis_index.insert("k1", "a")
        await redis_index.insert("k1", "user:7")
        await redis_index.insert("k2", "")
        assert await redis_index.all_tags() == {"a", "user:7", ""}

        await redis_index.delete_by_key("k1")

        assert await redis_index.all_tags() == {""}
        assert not await redis_client.exists("test:index:tags")
        assert not await redis_client.exists("test:index:tag:a")

    async def test_clear_leaves_cache_entries(
        self, redis_index: AsyncRedisTagIndex, redis_client
    ) -> None:
        """Test that clearing the index does not touch cached values."""
        backend = AsyncRedisBackend(redis_client, prefix="test")
        await backend.save("v", "k1")
        await redis_index.insert("k1", "a")

        await redis_index.clear()

        assert await redis_index.all_keys() == set()
        assert await redis_index.all_tags() == set()
        assert await backend.load("k1") == "v"


async def test_tag_cache_over_redis(redis_client) -> None:
    """Test the full tag cache with Redis for both stores."""
    cache = TagCache(
        AsyncRedisBackend(redis_client, prefix="app"),
        AsyncRedisTagIndex(redis_client, prefix="app:index"),
        track_untagged=True,
        reconcile_index=True,
    )
    await cache.save("v1", "k1", ["a", "b"])
    await cache.save("v2", "k2", ["b", "c"])
    await cache.save("v3", "k3")

    await cache.clean(CleanMode.MATCHING_TAG, ["a"])
    await cache.clean(CleanMode.NOT_MATCHING_TAG, ["b"])

    assert await cache.load("k1") is None
    assert await cache.load("k2") == "v2"
    assert await cache.load("k3") is None

    await cache.clean(CleanMode.ALL)
    assert await cache.get_tags() == []
