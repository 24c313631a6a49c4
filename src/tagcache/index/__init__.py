"""Tag index stores for tagcache (async only)."""

from contextlib import suppress

from tagcache.index.base import AsyncTagIndex
from tagcache.index.memory import AsyncMemoryTagIndex

# Optional stores - only available when dependencies are installed
with suppress(ImportError):
    from tagcache.index.redis import AsyncRedisTagIndex

with suppress(ImportError):
    from tagcache.index.sql import AsyncSqlTagIndex

__all__ = [
    "AsyncMemoryTagIndex",
    "AsyncRedisTagIndex",
    "AsyncSqlTagIndex",
    "AsyncTagIndex",
]
