"""In-memory tag index (async only)."""

import asyncio
from collections.abc import Iterable

from tagcache.types import TagMapping


class AsyncMemoryTagIndex:
    """Async in-memory tag index.

    With ``unique=False`` repeated inserts of the same pair are stored as
    separate rows, mirroring a table without a uniqueness constraint.
    """

    def __init__(self, unique: bool = True) -> None:
        self._rows: list[TagMapping] = []
        self._unique = unique
        self._lock = asyncio.Lock()

    @property
    def rows(self) -> list[TagMapping]:
        """Snapshot of the stored rows."""
        return list(self._rows)

    async def exists(self, key: str, tag: str) -> bool:
        async with self._lock:
            return TagMapping(key, tag) in self._rows

    async def insert(self, key: str, tag: str) -> None:
        row = TagMapping(key, tag)
        async with self._lock:
            if self._unique and row in self._rows:
                return
            self._rows.append(row)

    async def delete_by_key(self, key: str) -> None:
        async with self._lock:
            self._rows = [row for row in self._rows if row.cache_key != key]

    async def find_keys_by_tag_in(self, tags: Iterable[str]) -> set[str]:
        wanted = set(tags)
        async with self._lock:
            return {row.cache_key for row in self._rows if row.tag in wanted}

    async def find_keys_by_tag_not_in(self, tags: Iterable[str]) -> set[str]:
        excluded = set(tags)
        async with self._lock:
            keys = {row.cache_key for row in self._rows}
            matching = {row.cache_key for row in self._rows if row.tag in excluded}
        return keys - matching

    async def tags_for_key(self, key: str) -> set[str]:
        async with self._lock:
            return {row.tag for row in self._rows if row.cache_key == key}

    async def all_tags(self) -> set[str]:
        async with self._lock:
            return {row.tag for row in self._rows}

    async def all_keys(self) -> set[str]:
        async with self._lock:
            return {row.cache_key for row in self._rows}

    async def clear(self) -> None:
        async with self._lock:
            self._rows.clear()

    async def disconnect(self) -> None:
        """Disconnect (no-op for memory)."""
        pass
