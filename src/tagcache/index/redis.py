"""Redis tag index."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable
from typing import Any

from redis.exceptions import RedisError

from tagcache.errors import IndexUnavailable


def _decode(values: Iterable[bytes | str]) -> set[str]:
    return {v.decode("utf-8") if isinstance(v, bytes) else v for v in values}


class AsyncRedisTagIndex:
    """Async tag index stored as Redis sets.

    Each tag owns a set of keys and each key owns a set of tags, so a
    (key, tag) pair can never be stored twice.
    """

    def __init__(
        self,
        client: Any,  # redis.asyncio.Redis
        *,
        prefix: str = "tagcache:index",
    ) -> None:
        self._client = client
        self._prefix = prefix

    def _tag_key(self, tag: str) -> str:
        """Redis set holding the cache keys tagged with tag."""
        return f"{self._prefix}:tag:{tag}"

    def _key_key(self, key: str) -> str:
        """Redis set holding the tags of a cache key."""
        return f"{self._prefix}:key:{key}"

    @property
    def _keys_registry(self) -> str:
        return f"{self._prefix}:keys"

    async def exists(self, key: str, tag: str) -> bool:
        try:
            return bool(await self._client.sismember(self._key_key(key), tag))
        except RedisError as e:
            raise IndexUnavailable(f"Redis SISMEMBER failed for {key!r}") from e

    async def insert(self, key: str, tag: str) -> None:
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.sadd(self._tag_key(tag), key)
                pipe.sadd(self._key_key(key), tag)
                pipe.sadd(self._keys_registry, key)
                await pipe.execute()
        except RedisError as e:
            raise IndexUnavailable(f"Redis insert failed for {key!r}") from e

    async def delete_by_key(self, key: str) -> None:
        try:
            tags = _decode(await self._client.smembers(self._key_key(key)))
            async with self._client.pipeline(transaction=True) as pipe:
                for tag in tags:
                    pipe.srem(self._tag_key(tag), key)
                pipe.delete(self._key_key(key))
                pipe.srem(self._keys_registry, key)
                await pipe.execute()
        except RedisError as e:
            raise IndexUnavailable(f"Redis delete failed for {key!r}") from e

    async def find_keys_by_tag_in(self, tags: Iterable[str]) -> set[str]:
        tag_keys = [self._tag_key(tag) for tag in set(tags)]
        if not tag_keys:
            return set()
        try:
            return _decode(await self._client.sunion(tag_keys))
        except RedisError as e:
            raise IndexUnavailable("Redis SUNION failed") from e

    async def find_keys_by_tag_not_in(self, tags: Iterable[str]) -> set[str]:
        tag_keys = [self._tag_key(tag) for tag in set(tags)]
        try:
            return _decode(await self._client.sdiff([self._keys_registry, *tag_keys]))
        except RedisError as e:
            raise IndexUnavailable("Redis SDIFF failed") from e

    async def tags_for_key(self, key: str) -> set[str]:
        try:
            return _decode(await self._client.smembers(self._key_key(key)))
        except RedisError as e:
            raise IndexUnavailable(f"Redis SMEMBERS failed for {key!r}") from e

    async def all_tags(self) -> set[str]:
        # Redis drops a set with its last member, so every tag set left is in use
        start = len(self._tag_key(""))
        tags: set[str] = set()
        try:
            async for batch in self._scan_batches(self._tag_key("*")):
                tags.update(name[start:] for name in _decode(batch))
        except RedisError as e:
            raise IndexUnavailable("Redis tag listing failed") from e
        return tags

    async def all_keys(self) -> set[str]:
        try:
            return _decode(await self._client.smembers(self._keys_registry))
        except RedisError as e:
            raise IndexUnavailable("Redis SMEMBERS failed") from e

    async def clear(self) -> None:
        try:
            for pattern in (self._tag_key("*"), self._key_key("*")):
                async for batch in self._scan_batches(pattern):
                    await self._client.delete(*batch)
            await self._client.delete(self._keys_registry)
        except RedisError as e:
            raise IndexUnavailable("Redis clear failed") from e

    async def disconnect(self) -> None:
        """Close the Redis connection."""
        await self._client.aclose()

    async def _scan_batches(self, pattern: str) -> AsyncIterator[list[Any]]:
        cursor = 0
        while True:
            cursor, names = await self._client.scan(cursor, match=pattern, count=100)
            if names:
                yield names
            if cursor == 0:
                break
