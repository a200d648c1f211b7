"""Tests for the cache fallback loader and cache stores."""

import json

import pytest

from asset_ledger.cache.fallback import FallbackAssetLoader, cache_key
from asset_ledger.cache.store import AssetCache, JsonFileAssetCache, MemoryAssetCache
from asset_ledger.reconstruction.builder import AssetViewBuilder
from asset_ledger.utils.errors import LedgerDecodeError, TransientLedgerError
from asset_ledger.utils.types import FailureKind

from ..fakes import OWNER_A, OWNER_B, FakeLedger


def make_loader(ledger, cache=None, retry_attempts: int = 1) -> FallbackAssetLoader:
    """Build a loader with no backoff delay."""
    return FallbackAssetLoader(
        AssetViewBuilder(ledger),
        cache=cache,
        retry_attempts=retry_attempts,
        retry_backoff=0,
    )


class TestCacheKey:
    """Test cache key derivation."""

    def test_scope_only(self) -> None:
        """Test keys without an address."""
        assert cache_key("all") == "assets_all"

    def test_address_is_normalized(self) -> None:
        """Test the address part is lowercased."""
        assert cache_key("mine", " 0xABC ") == "assets_mine_0xabc"


class TestFallbackAssetLoader:
    """Test fresh-first loading with cache fallback."""

    @pytest.mark.asyncio
    async def test_fresh_result_written_to_cache(self, scenario_ledger) -> None:
        """Test a successful load is returned and cached."""
        cache = MemoryAssetCache()

        outcome = await make_loader(scenario_ledger, cache).load_all()

        assert not outcome.from_cache
        assert [asset.id for asset in outcome.assets] == [1, 2]
        document = json.loads(cache.get("assets_all"))
        assert [item["id"] for item in document["assets"]] == [1, 2]
        assert "saved_at" in document

    @pytest.mark.asyncio
    async def test_transient_failure_serves_cache(self, scenario_ledger) -> None:
        """Test cached views are shown when the ledger is unreachable."""
        cache = MemoryAssetCache()
        loader = make_loader(scenario_ledger, cache)
        await loader.load_all()
        scenario_ledger.fail(("metadata", 1), TransientLedgerError("connection refused"))

        outcome = await loader.load_all()

        assert outcome.from_cache
        assert outcome.cached_at is not None
        assert "connection refused" in outcome.error
        assert [asset.id for asset in outcome.assets] == [1, 2]
        assert outcome.assets[0].permissions == {OWNER_A.lower(), OWNER_B.lower()}

    @pytest.mark.asyncio
    async def test_cached_view_keeps_failures(self, scenario_ledger) -> None:
        """Test assets that failed fresh are still reported when served from cache."""
        cache = MemoryAssetCache()
        loader = make_loader(scenario_ledger, cache)
        scenario_ledger.fail(("events", 1), TransientLedgerError("reset"))
        await loader.load_all()
        scenario_ledger.fail(("metadata", 1), TransientLedgerError("connection refused"))

        outcome = await loader.load_all()

        assert outcome.from_cache
        assert [asset.id for asset in outcome.assets] == [2]
        assert [failure.asset_id for failure in outcome.failures] == [1]
        assert outcome.failures[0].kind is FailureKind.PERMISSION_LOG

    @pytest.mark.asyncio
    async def test_transient_failure_without_cache_raises(self, scenario_ledger) -> None:
        """Test there is nothing to fall back to on a cold cache."""
        scenario_ledger.fail(("metadata", 1), TransientLedgerError("connection refused"))

        with pytest.raises(TransientLedgerError):
            await make_loader(scenario_ledger, MemoryAssetCache()).load_all()

    @pytest.mark.asyncio
    async def test_empty_fresh_result_not_replaced(self, ledger) -> None:
        """Test an empty ledger is shown as empty even with a warm cache."""
        cache = MemoryAssetCache()
        populated = FakeLedger()
        populated.register(OWNER_A)
        await make_loader(populated, cache).load_all()

        outcome = await make_loader(ledger, cache).load_all()

        assert outcome.assets == []
        assert not outcome.from_cache

    @pytest.mark.asyncio
    async def test_non_transient_errors_do_not_use_cache(self, scenario_ledger) -> None:
        """Test only transient failures trigger the fallback."""
        cache = MemoryAssetCache()
        loader = make_loader(scenario_ledger, cache)
        await loader.load_all()
        scenario_ledger.fail(("metadata", 1), RuntimeError("bug"))

        with pytest.raises(RuntimeError):
            await loader.load_all()

    @pytest.mark.asyncio
    async def test_retries_before_falling_back(self, scenario_ledger) -> None:
        """Test the load is attempted retry_attempts times."""
        scenario_ledger.fail(("metadata", 1), TransientLedgerError("timeout"))

        with pytest.raises(TransientLedgerError):
            await make_loader(scenario_ledger, retry_attempts=3).load_all()

        assert scenario_ledger.calls.count(("metadata", 1)) == 3

    @pytest.mark.asyncio
    async def test_recovers_on_retry(self, scenario_ledger) -> None:
        """Test a later attempt can succeed with fresh data."""
        loader = make_loader(scenario_ledger, retry_attempts=2)
        original = loader.builder.load_all
        calls = []

        async def flaky_load_all(stop=None):
            calls.append(stop)
            if len(calls) == 1:
                raise TransientLedgerError("timeout")
            return await original()

        loader.builder.load_all = flaky_load_all

        outcome = await loader.load_all()

        assert len(calls) == 2
        assert not outcome.from_cache
        assert [asset.id for asset in outcome.assets] == [1, 2]

    @pytest.mark.asyncio
    async def test_corrupt_cache_is_ignored(self, scenario_ledger) -> None:
        """Test an unreadable cache entry re-raises the ledger error."""
        cache = MemoryAssetCache()
        cache.set("assets_all", "{not json")
        scenario_ledger.fail(("metadata", 1), TransientLedgerError("timeout"))

        with pytest.raises(TransientLedgerError):
            await make_loader(scenario_ledger, cache).load_all()

    @pytest.mark.asyncio
    async def test_filtered_loads_use_own_keys(self, scenario_ledger) -> None:
        """Test owner and access views are cached per address."""
        cache = MemoryAssetCache()
        loader = make_loader(scenario_ledger, cache)

        mine = await loader.load_mine(OWNER_A)
        accessible = await loader.load_accessible(OWNER_B)

        assert [asset.id for asset in mine.assets] == [1]
        assert [asset.id for asset in accessible.assets] == [1]
        assert cache.get(cache_key("mine", OWNER_A)) is not None
        assert cache.get(cache_key("accessible", OWNER_B)) is not None
        assert cache.get("assets_all") is None

    @pytest.mark.asyncio
    async def test_failures_reported(self, scenario_ledger) -> None:
        """Test per-asset failures reach the caller."""
        scenario_ledger.fail(("events", 2), LedgerDecodeError("garbage"))

        outcome = await make_loader(scenario_ledger).load_all()

        assert [asset.id for asset in outcome.assets] == [1]
        assert [failure.asset_id for failure in outcome.failures] == [2]


class TestJsonFileAssetCache:
    """Test the file-backed cache."""

    def test_satisfies_protocol(self, tmp_path) -> None:
        """Test both stores implement the cache protocol."""
        assert isinstance(JsonFileAssetCache(tmp_path), AssetCache)
        assert isinstance(MemoryAssetCache(), AssetCache)

    def test_missing_key(self, tmp_path) -> None:
        """Test absent keys return None."""
        assert JsonFileAssetCache(tmp_path).get("assets_all") is None

    def test_set_and_get(self, tmp_path) -> None:
        """Test values persist across instances."""
        JsonFileAssetCache(tmp_path).set("assets_all", '{"assets": []}')

        assert JsonFileAssetCache(tmp_path).get("assets_all") == '{"assets": []}'
        assert not list(tmp_path.glob("*.tmp"))

    def test_unsafe_key_characters(self, tmp_path) -> None:
        """Test keys cannot escape the cache directory."""
        cache = JsonFileAssetCache(tmp_path)

        cache.set("../outside", "x")

        assert cache.get("../outside") == "x"
        assert not (tmp_path.parent / "outside.json").exists()

    def test_creates_directory(self, tmp_path) -> None:
        """Test the directory is created on demand."""
        directory = tmp_path / "nested" / "cache"

        JsonFileAssetCache(directory)

        assert directory.is_dir()
