"""Exceptions raised by tagcache."""


class TagCacheError(Exception):
    """Base class for all tagcache errors."""


class ConfigurationError(TagCacheError):
    """A required option is missing or malformed."""


class BackendUnavailable(TagCacheError):
    """The inner cache backend failed to perform an I/O operation."""


class IndexUnavailable(TagCacheError):
    """The tag index failed to perform an I/O operation."""


class UnsupportedOperation(TagCacheError):
    """The inner cache backend does not implement an extension call."""


__all__ = [
    "BackendUnavailable",
    "ConfigurationError",
    "IndexUnavailable",
    "TagCacheError",
    "UnsupportedOperation",
]
