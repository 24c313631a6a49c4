"""Configuration parsing and backend/index registries.

Backends and indexes can be given as ready instances or as descriptors
naming a registered factory::

    {
        "backend": {"name": "redis", "options": {"url": "redis://localhost"}},
        "index": {"name": "sql", "options": {"url": "sqlite+aiosqlite://"}},
        "trackUntagged": True,
    }

Descriptors are built when the tag cache is constructed, so an unknown
name or a bad option fails there. Built stores connect lazily.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from tagcache.backends.base import AsyncCacheBackend
from tagcache.backends.memory import AsyncMemoryBackend
from tagcache.errors import ConfigurationError
from tagcache.index.base import AsyncTagIndex
from tagcache.index.memory import AsyncMemoryTagIndex

BackendFactory = Callable[..., AsyncCacheBackend]
IndexFactory = Callable[..., AsyncTagIndex]


@dataclass(frozen=True, slots=True)
class BackendDescriptor:
    """Registered backend name plus constructor options."""

    name: str
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class IndexDescriptor:
    """Registered index name plus constructor options."""

    name: str
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class TagCacheOptions:
    """Validated tag cache options."""

    backend: AsyncCacheBackend | BackendDescriptor
    index: AsyncTagIndex | IndexDescriptor
    track_untagged: bool = False
    allow_duplicate_mappings: bool = False
    reconcile_index: bool = False


_BACKENDS: dict[str, BackendFactory] = {}
_INDEXES: dict[str, IndexFactory] = {}

_OPTION_ALIASES: dict[str, str] = {
    "backend": "backend",
    "index": "index",
    "table": "index",
    "track_untagged": "track_untagged",
    "trackUntagged": "track_untagged",
    "allow_duplicate_mappings": "allow_duplicate_mappings",
    "allowDuplicateMappings": "allow_duplicate_mappings",
    "duplicates_ok": "allow_duplicate_mappings",
    "reconcile_index": "reconcile_index",
    "reconcileIndex": "reconcile_index",
}


def register_backend(name: str, factory: BackendFactory) -> None:
    """Make a backend factory available to descriptors under name."""
    _BACKENDS[name] = factory


def register_index(name: str, factory: IndexFactory) -> None:
    """Make an index factory available to descriptors under name."""
    _INDEXES[name] = factory


def registered_backends() -> list[str]:
    return sorted(_BACKENDS)


def registered_indexes() -> list[str]:
    return sorted(_INDEXES)


def parse_options(options: Mapping[str, Any]) -> TagCacheOptions:
    """Validate a raw option mapping.

    Raises:
        ConfigurationError: if a required option is missing, an option is
            unknown or a value has the wrong shape.
    """
    if not isinstance(options, Mapping):
        raise ConfigurationError("Options must be a mapping")

    values: dict[str, Any] = {}
    for raw_name, value in options.items():
        name = _OPTION_ALIASES.get(raw_name)
        if name is None:
            raise ConfigurationError(f"Unknown option: {raw_name!r}")
        if name in values:
            raise ConfigurationError(f"Option {name!r} given more than once")
        values[name] = value

    if values.get("backend") is None:
        raise ConfigurationError("The backend option is not set")
    if values.get("index") is None:
        raise ConfigurationError("The index option is not set")

    for flag in ("track_untagged", "allow_duplicate_mappings", "reconcile_index"):
        if flag in values and not isinstance(values[flag], bool):
            raise ConfigurationError(f"Option {flag!r} must be a bool")

    return TagCacheOptions(
        backend=coerce_backend(values.pop("backend")),
        index=coerce_index(values.pop("index")),
        **values,
    )


def coerce_backend(value: Any) -> AsyncCacheBackend | BackendDescriptor:
    """Accept a backend instance, a descriptor or a descriptor mapping."""
    if isinstance(value, BackendDescriptor):
        return value
    if isinstance(value, Mapping):
        name, options = _descriptor_parts(value, "backend")
        return BackendDescriptor(name, options)
    if isinstance(value, AsyncCacheBackend):
        return value
    raise ConfigurationError("The backend option is not correctly set")


def coerce_index(value: Any) -> AsyncTagIndex | IndexDescriptor:
    """Accept an index instance, a descriptor or a descriptor mapping."""
    if isinstance(value, IndexDescriptor):
        return value
    if isinstance(value, Mapping):
        name, options = _descriptor_parts(value, "index")
        return IndexDescriptor(name, options)
    if isinstance(value, AsyncTagIndex):
        return value
    raise ConfigurationError("The index option is not correctly set")


def resolve_backend(value: AsyncCacheBackend | BackendDescriptor) -> AsyncCacheBackend:
    """Build the backend a descriptor names, or pass an instance through."""
    if not isinstance(value, BackendDescriptor):
        return value
    factory = _BACKENDS.get(value.name)
    if factory is None:
        raise ConfigurationError(
            f"Unknown backend {value.name!r}; registered: {registered_backends()}"
        )
    return _build(factory, value.options, f"backend {value.name!r}")


def resolve_index(value: AsyncTagIndex | IndexDescriptor) -> AsyncTagIndex:
    """Build the index a descriptor names, or pass an instance through."""
    if not isinstance(value, IndexDescriptor):
        return value
    factory = _INDEXES.get(value.name)
    if factory is None:
        raise ConfigurationError(
            f"Unknown index {value.name!r}; registered: {registered_indexes()}"
        )
    return _build(factory, value.options, f"index {value.name!r}")


def _descriptor_parts(
    value: Mapping[str, Any], what: str
) -> tuple[str, dict[str, Any]]:
    name = value.get("name", value.get("class"))
    if not isinstance(name, str) or not name:
        raise ConfigurationError(f"The {what} descriptor needs a 'name'")
    options = value.get("options")
    if options is None:
        options = {}
    if not isinstance(options, Mapping):
        raise ConfigurationError(f"The {what} descriptor 'options' must be a mapping")
    unknown = set(value) - {"name", "class", "options"}
    if unknown:
        raise ConfigurationError(f"Unknown {what} descriptor fields: {sorted(unknown)}")
    return name, dict(options)


def _build(factory: Callable[..., Any], options: Mapping[str, Any], what: str) -> Any:
    try:
        return factory(**options)
    except ConfigurationError:
        raise
    except (TypeError, ValueError, ImportError) as e:
        raise ConfigurationError(f"Could not construct {what}: {e}") from e


# ---------------------------------------------------------------------------
# Built-in factories
# ---------------------------------------------------------------------------


def _redis_client(url: str | None, client: Any) -> Any:
    if client is not None:
        return client
    if url is None:
        raise ConfigurationError("Redis needs either 'url' or 'client'")
    import redis.asyncio

    return redis.asyncio.Redis.from_url(url)


def _redis_backend(
    *, url: str | None = None, client: Any = None, **options: Any
) -> AsyncCacheBackend:
    from tagcache.backends.redis import AsyncRedisBackend

    return AsyncRedisBackend(_redis_client(url, client), **options)


def _redis_index(
    *, url: str | None = None, client: Any = None, **options: Any
) -> AsyncTagIndex:
    from tagcache.index.redis import AsyncRedisTagIndex

    return AsyncRedisTagIndex(_redis_client(url, client), **options)


def _sql_index(
    *, url: str | None = None, engine: Any = None, **options: Any
) -> AsyncTagIndex:
    from sqlalchemy.exc import ArgumentError, InvalidRequestError
    from sqlalchemy.ext.asyncio import create_async_engine

    from tagcache.index.sql import AsyncSqlTagIndex

    if engine is None:
        if url is None:
            raise ConfigurationError("SQL index needs either 'url' or 'engine'")
        try:
            engine = create_async_engine(url)
        except (ArgumentError, InvalidRequestError) as e:
            raise ConfigurationError(f"Bad SQL index url {url!r}: {e}") from e
    return AsyncSqlTagIndex(engine, **options)


register_backend("memory", AsyncMemoryBackend)
register_backend("redis", _redis_backend)
register_index("memory", AsyncMemoryTagIndex)
register_index("redis", _redis_index)
register_index("sql", _sql_index)
