"""Base protocol for tag index stores."""

from collections.abc import Iterable
from typing import Protocol, runtime_checkable


@runtime_checkable
class AsyncTagIndex(Protocol):
    """Durable mapping of (cache key, tag) rows queried by tag membership."""

    async def exists(self, key: str, tag: str) -> bool:
        """Check whether a (key, tag) row exists."""
        ...

    async def insert(self, key: str, tag: str) -> None:
        """Record that key is tagged with tag."""
        ...

    async def delete_by_key(self, key: str) -> None:
        """Delete every row for key."""
        ...

    async def find_keys_by_tag_in(self, tags: Iterable[str]) -> set[str]:
        """Distinct keys having at least one row whose tag is in tags."""
        ...

    async def find_keys_by_tag_not_in(self, tags: Iterable[str]) -> set[str]:
        """Distinct keys having no row whose tag is in tags."""
        ...

    async def tags_for_key(self, key: str) -> set[str]:
        """Tags recorded for key."""
        ...

    async def all_tags(self) -> set[str]:
        """Every distinct tag in the index."""
        ...

    async def all_keys(self) -> set[str]:
        """Every distinct key in the index."""
        ...

    async def clear(self) -> None:
        """Delete every row."""
        ...

    async def disconnect(self) -> None:
        """Release the underlying connection."""
        ...
