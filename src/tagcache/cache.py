"""Tag-aware cache on top of a backend without tag support.

``TagCache`` stores values in an inner backend and keeps the key/tag
association in a separate tag index. The two stores are written one after
the other, never together:

- ``save`` writes the value first and only tags it once the backend
  accepted it, so the index never names a key that failed to store.
- ``remove`` drops the index rows first, then the value.
- Tag sweeps resolve keys from the index and remove each one through
  ``remove``, so a matched key loses its value and all of its other tags.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from tagcache.backends.base import AsyncCacheBackend, AsyncExtendedCacheBackend
from tagcache.config import (
    BackendDescriptor,
    IndexDescriptor,
    coerce_backend,
    coerce_index,
    parse_options,
    resolve_backend,
    resolve_index,
)
from tagcache.errors import (
    BackendUnavailable,
    ConfigurationError,
    IndexUnavailable,
    UnsupportedOperation,
)
from tagcache.index.base import AsyncTagIndex
from tagcache.types import (
    DEFAULT_TTL,
    SENTINEL_TAG,
    TTL,
    CleanMode,
    CleanResult,
    Duration,
)

logger = logging.getLogger(__name__)


def _normalize_tags(tags: str | Iterable[str] | None) -> list[str]:
    """Turn a tag argument into a de-duplicated list, keeping order."""
    if tags is None:
        return []
    if isinstance(tags, str):
        return [tags]
    return list(dict.fromkeys(tags))


class TagCache:
    """Cache decorator adding tags to any ``AsyncCacheBackend``."""

    def __init__(
        self,
        backend: AsyncCacheBackend | BackendDescriptor | Mapping[str, Any],
        index: AsyncTagIndex | IndexDescriptor | Mapping[str, Any],
        *,
        track_untagged: bool = False,
        allow_duplicate_mappings: bool = False,
        reconcile_index: bool = False,
    ) -> None:
        if backend is None:
            raise ConfigurationError("The backend option is not set")
        if index is None:
            raise ConfigurationError("The index option is not set")
        self._index = resolve_index(coerce_index(index))
        self._backend = resolve_backend(coerce_backend(backend))
        self._track_untagged = track_untagged
        self._allow_duplicates = allow_duplicate_mappings
        self._reconcile_index = reconcile_index

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> TagCache:
        """Create a tag cache from a raw option mapping.

        Example:
            cache = TagCache.from_options({
                "backend": {"name": "memory"},
                "table": {"name": "sql", "options": {"url": "sqlite+aiosqlite://"}},
                "trackUntagged": True,
            })
            await cache.index.create_schema()

        A descriptor-built SQL index starts without its table, so call
        ``create_schema()`` once before the first save.
        """
        parsed = parse_options(options)
        return cls(
            parsed.backend,
            parsed.index,
            track_untagged=parsed.track_untagged,
            allow_duplicate_mappings=parsed.allow_duplicate_mappings,
            reconcile_index=parsed.reconcile_index,
        )

    @property
    def backend(self) -> AsyncCacheBackend:
        return self._backend

    @property
    def index(self) -> AsyncTagIndex:
        return self._index

    # -------------------------------------------------------------------------
    # Cache contract
    # -------------------------------------------------------------------------

    async def load(self, key: str, skip_validity_check: bool = False) -> str | None:
        """Get a cached payload, or None if absent."""
        return await self._backend.load(key, skip_validity_check)

    async def test(self, key: str) -> int | None:
        """Get the last-modified timestamp (Unix ms) of a cached entry."""
        return await self._backend.test(key)

    async def save(
        self,
        payload: str,
        key: str,
        tags: str | Iterable[str] | None = None,
        ttl: TTL = DEFAULT_TTL,
    ) -> bool:
        """Store a payload and tag it.

        The backend never sees the tags. If the backend refuses the value
        the index is left untouched. If the index fails while tagging, the
        value stays cached under-tagged and a warning is logged.
        """
        if not await self._backend.save(payload, key, [], ttl):
            logger.debug("Backend refused %r; not tagging", key)
            return False

        effective = _normalize_tags(tags)
        if not effective and self._track_untagged:
            effective = [SENTINEL_TAG]

        try:
            for tag in effective:
                if self._allow_duplicates or not await self.index.exists(key, tag):
                    await self.index.insert(key, tag)
        except IndexUnavailable:
            logger.warning(
                "Saved %r but could not record tags %r", key, effective, exc_info=True
            )
        return True

    async def remove(self, key: str) -> bool:
        """Remove an entry and, unless duplicates are allowed, its tag rows."""
        if not self._allow_duplicates:
            await self.index.delete_by_key(key)
        return await self._backend.remove(key)

    async def clean(
        self,
        mode: CleanMode | str = CleanMode.ALL,
        tags: str | Iterable[str] | None = None,
    ) -> bool:
        """Clean cache entries.

        Available modes are:
            ALL: remove every entry (tags unused)
            OLD: remove expired entries (tags unused)
            MATCHING_TAG: remove entries carrying at least one of tags
            NOT_MATCHING_TAG: remove entries carrying none of tags
        """
        mode = CleanMode(mode)
        if mode.uses_tags:
            return (await self.sweep(mode, tags)).ok

        result = await self._backend.clean(mode, [])
        if result and self._reconcile_index:
            await self._reconcile(mode)
        return result

    async def sweep(
        self,
        mode: CleanMode | str,
        tags: str | Iterable[str] | None,
    ) -> CleanResult:
        """Remove every key matching (or not matching) tags.

        Removal is best-effort: a key that fails to go is recorded in the
        result and the sweep carries on. Failing to resolve the keys at all
        raises ``IndexUnavailable``.
        """
        mode = CleanMode(mode)
        wanted = set(_normalize_tags(tags))
        if mode is CleanMode.MATCHING_TAG:
            keys = await self.index.find_keys_by_tag_in(wanted)
        elif mode is CleanMode.NOT_MATCHING_TAG:
            keys = await self.index.find_keys_by_tag_not_in(wanted)
        else:
            raise ValueError(f"sweep() needs a tag mode, got {mode.value!r}")

        result = CleanResult()
        for key in sorted(keys):
            try:
                removed = await self.remove(key)
            except (BackendUnavailable, IndexUnavailable):
                logger.warning(
                    "Could not remove %r during %s", key, mode.value, exc_info=True
                )
                removed = False
            if removed:
                result.removed.append(key)
            else:
                result.failed.append(key)

        if result.failed:
            logger.warning(
                "%s sweep for %r left %d of %d keys behind",
                mode.value,
                sorted(wanted),
                len(result.failed),
                len(keys),
            )
        else:
            logger.debug("%s sweep removed %d keys", mode.value, len(result.removed))
        return result

    # -------------------------------------------------------------------------
    # Index queries and maintenance
    # -------------------------------------------------------------------------

    async def get_tags(self) -> list[str]:
        """All tags currently recorded, without the untagged sentinel."""
        tags = await self.index.all_tags()
        tags.discard(SENTINEL_TAG)
        return sorted(tags)

    async def get_ids_matching_any_tags(self, tags: str | Iterable[str]) -> list[str]:
        return sorted(await self.index.find_keys_by_tag_in(_normalize_tags(tags)))

    async def get_ids_not_matching_tags(self, tags: str | Iterable[str]) -> list[str]:
        return sorted(await self.index.find_keys_by_tag_not_in(_normalize_tags(tags)))

    async def prune_orphans(self) -> int:
        """Delete the tag rows of keys whose value is gone from the backend.

        A key saved again while its rows are being dropped gets its rows
        back: the value is checked a second time after the delete and the
        snapshot taken before it is re-inserted. Tags added by that
        concurrent save after the snapshot can still be lost, so run this
        while writes are quiet if that matters.
        """
        pruned = 0
        for key in sorted(await self.index.all_keys()):
            if await self._backend.test(key) is not None:
                continue
            tags = await self.index.tags_for_key(key)
            await self.index.delete_by_key(key)
            if await self._backend.test(key) is not None:
                for tag in sorted(tags):
                    await self.index.insert(key, tag)
                logger.debug("Kept tag rows of %r; it was saved again", key)
                continue
            pruned += 1
        if pruned:
            logger.debug("Pruned tag rows of %d missing keys", pruned)
        return pruned

    async def _reconcile(self, mode: CleanMode) -> None:
        try:
            await self.prune_orphans()
        except (BackendUnavailable, IndexUnavailable):
            logger.warning(
                "Could not reconcile tag index after %s clean",
                mode.value,
                exc_info=True,
            )

    # -------------------------------------------------------------------------
    # Backend extensions
    # -------------------------------------------------------------------------

    def _extended(self, operation: str) -> AsyncExtendedCacheBackend:
        if not isinstance(self._backend, AsyncExtendedCacheBackend):
            raise UnsupportedOperation(
                f"{type(self._backend).__name__} has no {operation}()"
            )
        return self._backend

    async def touch(self, key: str, extra_ttl: Duration) -> bool:
        """Extend the lifetime of a cached entry."""
        return await self._extended("touch").touch(key, extra_ttl)

    async def get_ids(self) -> list[str]:
        """List the keys of all cached entries."""
        return await self._extended("get_ids").get_ids()

    async def get_metadata(self, key: str) -> dict[str, Any] | None:
        """Backend metadata of an entry, plus its tags from the index."""
        metadata = await self._extended("get_metadata").get_metadata(key)
        if metadata is None:
            return None
        tags = await self.index.tags_for_key(key)
        tags.discard(SENTINEL_TAG)
        return {**metadata, "tags": sorted(tags)}

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def disconnect(self) -> None:
        """Disconnect the backend and the index."""
        await self._backend.disconnect()
        await self._index.disconnect()

    async def __aenter__(self) -> TagCache:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.disconnect()


__all__ = ["TagCache"]
