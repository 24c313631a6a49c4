"""Redis cache backend."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from redis.exceptions import RedisError

from tagcache.duration import now_ms, parse_duration, resolve_ttl
from tagcache.errors import BackendUnavailable
from tagcache.types import DEFAULT_TTL, TTL, CacheRecord, CleanMode, Duration

logger = logging.getLogger(__name__)


def _serialize_record(record: CacheRecord) -> str:
    """Serialize a cache record to JSON."""
    return json.dumps(
        {
            "payload": record.payload,
            "modified_at": record.modified_at,
            "expires_at": record.expires_at,
        }
    )


def _deserialize_record(data: bytes | str) -> CacheRecord:
    """Deserialize JSON to a cache record."""
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    obj = json.loads(data)
    return CacheRecord(
        payload=obj["payload"],
        modified_at=obj["modified_at"],
        expires_at=obj["expires_at"],
    )


class AsyncRedisBackend:
    """Async Redis cache backend.

    Expiry is delegated to Redis (``PX``), so ``clean(OLD)`` has nothing to do
    and ``skip_validity_check`` cannot resurrect an expired entry.
    """

    def __init__(
        self,
        client: Any,  # redis.asyncio.Redis
        *,
        prefix: str = "tagcache",
        default_ttl: Duration | None = None,
    ) -> None:
        self._client = client
        self._prefix = prefix
        resolve_ttl(default_ttl)  # reject a bad default up front
        self._default_ttl = default_ttl

    def _cache_key(self, key: str) -> str:
        """Generate full Redis key for cache entries."""
        return f"{self._prefix}:cache:{key}"

    async def _get_record(self, key: str) -> CacheRecord | None:
        try:
            data = await self._client.get(self._cache_key(key))
        except RedisError as e:
            raise BackendUnavailable(f"Redis GET failed for {key!r}") from e
        if data is None:
            return None
        return _deserialize_record(data)

    async def load(self, key: str, skip_validity_check: bool = False) -> str | None:
        """Get a payload by key."""
        record = await self._get_record(key)
        return record.payload if record is not None else None

    async def test(self, key: str) -> int | None:
        """Get the last-modified timestamp of a live entry."""
        record = await self._get_record(key)
        return record.modified_at if record is not None else None

    async def save(
        self,
        payload: str,
        key: str,
        tags: list[str] | None = None,
        ttl: TTL = DEFAULT_TTL,
    ) -> bool:
        """Store a payload with automatic expiration."""
        ttl_ms = resolve_ttl(ttl, self._default_ttl)
        now = now_ms()
        record = CacheRecord(
            payload=payload,
            modified_at=now,
            expires_at=now + ttl_ms if ttl_ms is not None else None,
        )
        try:
            result = await self._client.set(
                self._cache_key(key),
                _serialize_record(record),
                px=ttl_ms,
            )
        except RedisError as e:
            raise BackendUnavailable(f"Redis SET failed for {key!r}") from e
        return bool(result)

    async def remove(self, key: str) -> bool:
        """Delete an entry. Deleting a missing key is not an error."""
        try:
            await self._client.delete(self._cache_key(key))
        except RedisError as e:
            raise BackendUnavailable(f"Redis DEL failed for {key!r}") from e
        return True

    async def clean(
        self, mode: CleanMode = CleanMode.ALL, tags: list[str] | None = None
    ) -> bool:
        """Remove all entries under the prefix. OLD is handled by Redis expiry."""
        mode = CleanMode(mode)
        if mode is CleanMode.OLD:
            return True
        if mode is not CleanMode.ALL:
            # No tag support
            return False
        deleted = 0
        try:
            async for keys in self._scan_batches():
                deleted += await self._client.delete(*keys)
        except RedisError as e:
            raise BackendUnavailable("Redis clean failed") from e
        logger.debug("Deleted %d cache keys under prefix %r", deleted, self._prefix)
        return True

    async def _scan_batches(self) -> AsyncIterator[list[Any]]:
        # Use SCAN to walk all cache keys under the prefix
        cursor: int = 0
        pattern = f"{self._prefix}:cache:*"
        while True:
            result = await self._client.scan(cursor, match=pattern, count=100)
            cursor = result[0]
            keys = result[1]
            if keys:
                yield keys
            if cursor == 0:
                break

    async def touch(self, key: str, extra_ttl: Duration) -> bool:
        """Extend the lifetime of a live entry."""
        full_key = self._cache_key(key)
        try:
            remaining = await self._client.pttl(full_key)
            if remaining == -2:
                return False
            if remaining == -1:
                # Infinite lifetime
                return True
            extended = remaining + parse_duration(extra_ttl)
            return bool(await self._client.pexpire(full_key, extended))
        except RedisError as e:
            raise BackendUnavailable(f"Redis touch failed for {key!r}") from e

    async def get_ids(self) -> list[str]:
        """List the keys of all live entries."""
        offset = len(f"{self._prefix}:cache:")
        ids: list[str] = []
        try:
            async for keys in self._scan_batches():
                for full_key in keys:
                    if isinstance(full_key, bytes):
                        full_key = full_key.decode("utf-8")
                    ids.append(full_key[offset:])
        except RedisError as e:
            raise BackendUnavailable("Redis SCAN failed") from e
        return ids

    async def get_metadata(self, key: str) -> dict[str, Any] | None:
        """Get the metadata of a live entry, reading expiry from Redis."""
        record = await self._get_record(key)
        if record is None:
            return None
        try:
            remaining = await self._client.pttl(self._cache_key(key))
        except RedisError as e:
            raise BackendUnavailable(f"Redis PTTL failed for {key!r}") from e
        expires_at = now_ms() + remaining if remaining >= 0 else None
        return {"modified_at": record.modified_at, "expires_at": expires_at}

    async def disconnect(self) -> None:
        """Close the Redis connection."""
        await self._client.aclose()
