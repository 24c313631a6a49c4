"""Base protocols for inner cache backends."""

from typing import Any, Protocol, runtime_checkable

from tagcache.types import DEFAULT_TTL, TTL, CleanMode, Duration


@runtime_checkable
class AsyncCacheBackend(Protocol):
    """Async key/value cache backend with no tag support."""

    async def load(self, key: str, skip_validity_check: bool = False) -> str | None:
        """Get a payload by key, or None if absent or expired."""
        ...

    async def test(self, key: str) -> int | None:
        """Get the last-modified timestamp (Unix ms) of a live entry."""
        ...

    async def save(
        self,
        payload: str,
        key: str,
        tags: list[str] | None = None,
        ttl: TTL = DEFAULT_TTL,
    ) -> bool:
        """Store a payload. Tags are accepted for compatibility and ignored.

        ``ttl=None`` stores the entry with an infinite lifetime and
        ``DEFAULT_TTL`` uses the backend's default.
        """
        ...

    async def remove(self, key: str) -> bool:
        """Remove an entry."""
        ...

    async def clean(
        self, mode: CleanMode = CleanMode.ALL, tags: list[str] | None = None
    ) -> bool:
        """Remove all entries (ALL) or expired entries (OLD)."""
        ...

    async def disconnect(self) -> None:
        """Disconnect from the storage backend."""
        ...


@runtime_checkable
class AsyncExtendedCacheBackend(Protocol):
    """Optional mixin for backends with extension calls."""

    async def touch(self, key: str, extra_ttl: Duration) -> bool:
        """Extend the lifetime of a live entry."""
        ...

    async def get_ids(self) -> list[str]:
        """List the keys of all live entries."""
        ...

    async def get_metadata(self, key: str) -> dict[str, Any] | None:
        """Get ``modified_at`` and ``expires_at`` of a live entry."""
        ...
