"""Tests for option parsing and the backend/index registries."""

import pytest

from tagcache import (
    AsyncMemoryBackend,
    AsyncMemoryTagIndex,
    BackendDescriptor,
    ConfigurationError,
    IndexDescriptor,
    TagCache,
    parse_options,
    register_backend,
    register_index,
)


class TestParseOptions:
    """Tests for parse_options."""

    def test_defaults(self) -> None:
        """Test that every flag defaults to off."""
        opts = parse_options(
            {"backend": {"name": "memory"}, "index": {"name": "memory"}}
        )
        assert opts.backend == BackendDescriptor("memory", {})
        assert opts.index == IndexDescriptor("memory", {})
        assert opts.track_untagged is False
        assert opts.allow_duplicate_mappings is False
        assert opts.reconcile_index is False

    def test_aliases(self) -> None:
        """Test camelCase and legacy option names."""
        opts = parse_options(
            {
                "backend": {"class": "memory", "options": {"max_items": 5}},
                "table": {"name": "memory"},
                "trackUntagged": True,
                "duplicates_ok": True,
                "reconcileIndex": False,
            }
        )
        assert opts.backend == BackendDescriptor("memory", {"max_items": 5})
        assert opts.track_untagged is True
        assert opts.allow_duplicate_mappings is True
        assert opts.reconcile_index is False

    def test_instances_pass_through(self) -> None:
        """Test that ready-made stores are accepted as-is."""
        backend = AsyncMemoryBackend()
        index = AsyncMemoryTagIndex()
        opts = parse_options({"backend": backend, "index": index})
        assert opts.backend is backend
        assert opts.index is index

    @pytest.mark.parametrize(
        "options",
        [
            {"index": {"name": "memory"}},
            {"backend": {"name": "memory"}},
            {"backend": None, "index": {"name": "memory"}},
            {"backend": "memory", "index": {"name": "memory"}},
            {"backend": {"name": "memory"}, "index": 42},
            {"backend": {"options": {}}, "index": {"name": "memory"}},
            {"backend": {"name": "memory", "options": []}, "index": {"name": "memory"}},
            {"backend": {"name": "memory", "extra": 1}, "index": {"name": "memory"}},
            {"backend": {"name": "memory"}, "index": {"name": "memory"}, "ttl": 5},
            {
                "backend": {"name": "memory"},
                "index": {"name": "memory"},
                "trackUntagged": "yes",
            },
            {
                "backend": {"name": "memory"},
                "index": {"name": "memory"},
                "table": {"name": "memory"},
            },
        ],
    )
    def test_rejects_malformed(self, options: dict) -> None:
        """Test that malformed option sets raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            parse_options(options)


class TestConstruction:
    """Tests for building a TagCache from options."""

    def test_from_options(self) -> None:
        """Test building memory stores from descriptors."""
        cache = TagCache.from_options(
            {
                "backend": {"name": "memory", "options": {"max_items": 10}},
                "index": {"name": "memory", "options": {"unique": False}},
                "trackUntagged": True,
            }
        )
        assert isinstance(cache.backend, AsyncMemoryBackend)
        assert isinstance(cache.index, AsyncMemoryTagIndex)

    def test_unknown_backend_fails_fast(self) -> None:
        """Test that an unregistered backend name is rejected at once."""
        with pytest.raises(ConfigurationError, match="Unknown backend"):
            TagCache({"name": "nope"}, {"name": "memory"})

    def test_unknown_index_fails_fast(self) -> None:
        """Test that an unregistered index name is rejected before first use."""
        with pytest.raises(ConfigurationError, match="Unknown index"):
            TagCache({"name": "memory"}, {"name": "nope"})

    def test_bad_factory_options(self) -> None:
        """Test that constructor errors become ConfigurationError."""
        with pytest.raises(ConfigurationError, match="Could not construct"):
            TagCache({"name": "memory", "options": {"bogus": 1}}, {"name": "memory"})

    def test_bad_index_options_fail_at_construction(self) -> None:
        """Test that index constructor errors surface before any save."""
        with pytest.raises(ConfigurationError, match="Could not construct index"):
            TagCache(AsyncMemoryBackend(), {"name": "memory", "options": {"bogus": 1}})

    def test_sql_without_url(self) -> None:
        """Test that the sql index needs a url or engine at construction."""
        pytest.importorskip("sqlalchemy")
        with pytest.raises(ConfigurationError, match="url"):
            TagCache(AsyncMemoryBackend(), {"name": "sql"})

    def test_sql_bad_url(self) -> None:
        """Test that an unparseable SQL url is a configuration error."""
        pytest.importorskip("sqlalchemy")
        with pytest.raises(ConfigurationError, match="Bad SQL index url"):
            TagCache(
                AsyncMemoryBackend(),
                {"name": "sql", "options": {"url": "not a database url"}},
            )

    def test_missing_stores(self) -> None:
        """Test that None stores are rejected."""
        with pytest.raises(ConfigurationError):
            TagCache(None, {"name": "memory"})  # type: ignore[arg-type]
        with pytest.raises(ConfigurationError):
            TagCache(AsyncMemoryBackend(), None)  # type: ignore[arg-type]

    def test_redis_without_url(self) -> None:
        """Test that the redis backend needs a url or client."""
        pytest.importorskip("redis")
        with pytest.raises(ConfigurationError, match="url"):
            TagCache({"name": "redis"}, {"name": "memory"})

    async def test_custom_registrations(self) -> None:
        """Test that registered factories are used by descriptors."""
        built: list[str] = []

        def make_backend(**options: object) -> AsyncMemoryBackend:
            built.append("backend")
            return AsyncMemoryBackend()

        def make_index(**options: object) -> AsyncMemoryTagIndex:
            built.append("index")
            return AsyncMemoryTagIndex()

        register_backend("test-backend", make_backend)
        register_index("test-index", make_index)

        cache = TagCache(
            BackendDescriptor("test-backend"), IndexDescriptor("test-index")
        )
        assert built == ["index", "backend"]

        await cache.save("v", "k1", ["a"])
        assert built == ["index", "backend"]
        assert await cache.get_ids_matching_any_tags("a") == ["k1"]
