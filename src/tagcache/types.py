"""Core types for tagcache."""

from dataclasses import dataclass, field
from enum import Enum

# Reserved tag recorded for entries saved without tags when untagged
# tracking is enabled.
SENTINEL_TAG = ""


class CleanMode(str, Enum):
    """Cleaning modes understood by backends and the tag cache."""

    ALL = "all"
    OLD = "old"
    MATCHING_TAG = "matchingTag"
    NOT_MATCHING_TAG = "notMatchingTag"

    @property
    def uses_tags(self) -> bool:
        return self in (CleanMode.MATCHING_TAG, CleanMode.NOT_MATCHING_TAG)


@dataclass(frozen=True, slots=True)
class CacheRecord:
    """A stored payload with metadata."""

    payload: str
    modified_at: int  # Unix timestamp ms
    expires_at: int | None  # None means infinite lifetime


@dataclass(frozen=True, slots=True)
class TagMapping:
    """A single (cache key, tag) row of the tag index."""

    cache_key: str
    tag: str


@dataclass(slots=True)
class CleanResult:
    """Outcome of a tag sweep."""

    removed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


# Duration type alias
Duration = str | int  # "30s", "5m", "2h", "1d", "150ms" or milliseconds


class DefaultTTL(Enum):
    """Marker for "use the backend's default TTL" (None means infinite)."""

    DEFAULT = "default"


DEFAULT_TTL = DefaultTTL.DEFAULT

# TTL accepted by save(): a duration, None for an infinite lifetime, or
# DEFAULT_TTL to fall back to the backend default
TTL = Duration | None | DefaultTTL
