"""Tests for package exports."""


def test_exports_available() -> None:
    """Test that the public API is importable from the package root."""
    from tagcache import (
        AsyncMemoryBackend,
        AsyncMemoryTagIndex,
        CleanMode,
        ConfigurationError,
        TagCache,
        DEFAULT_TTL,
        parse_duration,
    )

    # Just verify they're importable
    assert TagCache is not None
    assert AsyncMemoryBackend is not None
    assert AsyncMemoryTagIndex is not None
    assert CleanMode is not None
    assert ConfigurationError is not None
    assert parse_duration is not None
    assert DEFAULT_TTL is not None


def test_tag_cache_is_a_backend() -> None:
    """Test that a TagCache satisfies the backend protocol itself."""
    from tagcache import (
        AsyncCacheBackend,
        AsyncMemoryBackend,
        AsyncMemoryTagIndex,
        TagCache,
    )

    cache = TagCache(AsyncMemoryBackend(), AsyncMemoryTagIndex())
    assert isinstance(cache, AsyncCacheBackend)
