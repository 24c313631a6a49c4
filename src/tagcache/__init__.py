"""tagcache - Tag-based invalidation for caches that have no tags."""

from contextlib import suppress

# Backends (async only)
from tagcache.backends import (
    AsyncCacheBackend,
    AsyncExtendedCacheBackend,
    AsyncMemoryBackend,
)

# Core
from tagcache.cache import TagCache

# Configuration
from tagcache.config import (
    BackendDescriptor,
    IndexDescriptor,
    TagCacheOptions,
    parse_options,
    register_backend,
    register_index,
)

# Duration parsing
from tagcache.duration import parse_duration
from tagcache.errors import (
    BackendUnavailable,
    ConfigurationError,
    IndexUnavailable,
    TagCacheError,
    UnsupportedOperation,
)

# Tag indexes
from tagcache.index import AsyncMemoryTagIndex, AsyncTagIndex

# Core types
from tagcache.types import (
    DEFAULT_TTL,
    SENTINEL_TAG,
    TTL,
    CacheRecord,
    CleanMode,
    CleanResult,
    Duration,
    TagMapping,
)

# Optional imports - only available when dependencies are installed
with suppress(ImportError):
    from tagcache.backends import AsyncRedisBackend

with suppress(ImportError):
    from tagcache.index import AsyncRedisTagIndex

with suppress(ImportError):
    from tagcache.index import AsyncSqlTagIndex

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_TTL",
    "SENTINEL_TAG",
    "TTL",
    "AsyncCacheBackend",
    "AsyncExtendedCacheBackend",
    "AsyncMemoryBackend",
    "AsyncMemoryTagIndex",
    "AsyncRedisBackend",
    "AsyncRedisTagIndex",
    "AsyncSqlTagIndex",
    "AsyncTagIndex",
    "BackendDescriptor",
    "BackendUnavailable",
    "CacheRecord",
    "CleanMode",
    "CleanResult",
    "ConfigurationError",
    "Duration",
    "IndexDescriptor",
    "IndexUnavailable",
    "TagCache",
    "TagCacheError",
    "TagCacheOptions",
    "TagMapping",
    "UnsupportedOperation",
    "parse_duration",
    "parse_options",
    "register_backend",
    "register_index",
]
