"""In-memory cache backend (async only)."""

import asyncio
from collections import OrderedDict
from typing import Any

from tagcache.duration import now_ms, parse_duration, resolve_ttl
from tagcache.types import DEFAULT_TTL, TTL, CacheRecord, CleanMode, Duration


class AsyncMemoryBackend:
    """Async in-memory cache backend with optional LRU eviction."""

    def __init__(
        self,
        max_items: int | None = None,
        default_ttl: Duration | None = None,
    ) -> None:
        self._cache: OrderedDict[str, CacheRecord] = OrderedDict()
        self._max_items = max_items
        resolve_ttl(default_ttl)  # reject a bad default up front
        self._default_ttl = default_ttl
        self._lock = asyncio.Lock()

    @staticmethod
    def _is_live(record: CacheRecord, now: int) -> bool:
        return record.expires_at is None or now <= record.expires_at

    async def load(self, key: str, skip_validity_check: bool = False) -> str | None:
        """Get a payload by key."""
        async with self._lock:
            record = self._cache.get(key)
            if record is None:
                return None
            if not skip_validity_check and not self._is_live(record, now_ms()):
                return None
            self._cache.move_to_end(key)  # LRU touch
            return record.payload

    async def test(self, key: str) -> int | None:
        """Get the last-modified timestamp of a live entry."""
        async with self._lock:
            record = self._cache.get(key)
            if record is None or not self._is_live(record, now_ms()):
                return None
            return record.modified_at

    async def save(
        self,
        payload: str,
        key: str,
        tags: list[str] | None = None,
        ttl: TTL = DEFAULT_TTL,
    ) -> bool:
        """Store a payload."""
        ttl_ms = resolve_ttl(ttl, self._default_ttl)
        now = now_ms()
        record = CacheRecord(
            payload=payload,
            modified_at=now,
            expires_at=now + ttl_ms if ttl_ms is not None else None,
        )
        async with self._lock:
            self._cache[key] = record
            self._cache.move_to_end(key)
            if self._max_items and len(self._cache) > self._max_items:
                self._cache.popitem(last=False)
        return True

    async def remove(self, key: str) -> bool:
        """Remove an entry. Removing a missing key is not an error."""
        async with self._lock:
            self._cache.pop(key, None)
        return True

    async def clean(
        self, mode: CleanMode = CleanMode.ALL, tags: list[str] | None = None
    ) -> bool:
        """Remove all entries or only expired ones."""
        mode = CleanMode(mode)
        async with self._lock:
            if mode is CleanMode.ALL:
                self._cache.clear()
                return True
            if mode is CleanMode.OLD:
                now = now_ms()
                for key, record in list(self._cache.items()):
                    if not self._is_live(record, now):
                        del self._cache[key]
                return True
        # No tag support
        return False

    async def touch(self, key: str, extra_ttl: Duration) -> bool:
        """Extend the lifetime of a live entry."""
        extra = parse_duration(extra_ttl)
        async with self._lock:
            record = self._cache.get(key)
            if record is None or not self._is_live(record, now_ms()):
                return False
            if record.expires_at is not None:
                self._cache[key] = CacheRecord(
                    payload=record.payload,
                    modified_at=record.modified_at,
                    expires_at=record.expires_at + extra,
                )
            return True

    async def get_ids(self) -> list[str]:
        """List the keys of all live entries."""
        now = now_ms()
        async with self._lock:
            return [k for k, r in self._cache.items() if self._is_live(r, now)]

    async def get_metadata(self, key: str) -> dict[str, Any] | None:
        """Get the metadata of a live entry."""
        async with self._lock:
            record = self._cache.get(key)
            if record is None or not self._is_live(record, now_ms()):
                return None
            return {"modified_at": record.modified_at, "expires_at": record.expires_at}

    async def disconnect(self) -> None:
        """Disconnect from the storage backend (no-op for memory)."""
        pass
