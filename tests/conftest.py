"""Shared pytest fixtures."""

from collections.abc import Iterable

import pytest

from tagcache import (
    AsyncMemoryBackend,
    AsyncMemoryTagIndex,
    BackendUnavailable,
    IndexUnavailable,
    TagCache,
)
from tagcache.types import DEFAULT_TTL, TTL


class RefusingBackend(AsyncMemoryBackend):
    """Backend whose saves always fail."""

    async def save(
        self,
        payload: str,
        key: str,
        tags: list[str] | None = None,
        ttl: TTL = DEFAULT_TTL,
    ) -> bool:
        return False


class BrokenRemoveBackend(AsyncMemoryBackend):
    """Backend that cannot remove selected keys."""

    def __init__(self, broken: Iterable[str], *, raises: bool = False) -> None:
        super().__init__()
        self.broken = set(broken)
        self.raises = raises

    async def remove(self, key: str) -> bool:
        if key in self.broken:
            if self.raises:
                raise BackendUnavailable(f"cannot remove {key}")
            return False
        return await super().remove(key)


class FlakyIndex(AsyncMemoryTagIndex):
    """Memory index that can be told to fail writes or lookups."""

    def __init__(self, unique: bool = True) -> None:
        super().__init__(unique=unique)
        self.fail_writes = False
        self.fail_lookups = False

    async def insert(self, key: str, tag: str) -> None:
        if self.fail_writes:
            raise IndexUnavailable("index down")
        await super().insert(key, tag)

    async def find_keys_by_tag_in(self, tags: Iterable[str]) -> set[str]:
        if self.fail_lookups:
            raise IndexUnavailable("index down")
        return await super().find_keys_by_tag_in(tags)

    async def find_keys_by_tag_not_in(self, tags: Iterable[str]) -> set[str]:
        if self.fail_lookups:
            raise IndexUnavailable("index down")
        return await super().find_keys_by_tag_not_in(tags)


@pytest.fixture
def backend() -> AsyncMemoryBackend:
    """Create a fresh AsyncMemoryBackend for each test."""
    return AsyncMemoryBackend()


@pytest.fixture
def index() -> AsyncMemoryTagIndex:
    """Create a fresh AsyncMemoryTagIndex for each test."""
    return AsyncMemoryTagIndex()


@pytest.fixture
def cache(backend: AsyncMemoryBackend, index: AsyncMemoryTagIndex) -> TagCache:
    """TagCache over memory stores with default options."""
    return TagCache(backend, index)


@pytest.fixture
def tracking_cache(backend: AsyncMemoryBackend, index: AsyncMemoryTagIndex) -> TagCache:
    """TagCache that records untagged entries."""
    return TagCache(backend, index, track_untagged=True)
