"""Inner cache backends for tagcache (async only)."""

from contextlib import suppress

from tagcache.backends.base import AsyncCacheBackend, AsyncExtendedCacheBackend
from tagcache.backends.memory import AsyncMemoryBackend

# Optional backends - only available when dependencies are installed
with suppress(ImportError):
    from tagcache.backends.redis import AsyncRedisBackend

__all__ = [
    "AsyncCacheBackend",
    "AsyncExtendedCacheBackend",
    "AsyncMemoryBackend",
    "AsyncRedisBackend",
]
