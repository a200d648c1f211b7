"""Caller-side policy: fresh reconstruction first, cached views on outage."""

import asyncio
import json
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

import structlog
from pydantic import BaseModel, Field, ValidationError

from ..reconstruction.builder import AssetViewBuilder
from ..utils.addresses import normalize_address
from ..utils.errors import TransientLedgerError
from ..utils.types import Asset, AssetBatch, AssetLoadFailure
from .store import AssetCache

logger = structlog.get_logger(__name__)


def cache_key(scope: str, address: str | None = None) -> str:
    """Key under which a view is cached, e.g. ``assets_mine_0xabc...``."""
    if address is None:
        return f"assets_{scope}"
    return f"assets_{scope}_{normalize_address(address)}"


class LoadOutcome(BaseModel):
    """Assets to display and where they came from."""

    assets: list[Asset] = Field(default_factory=list)
    failures: list[AssetLoadFailure] = Field(default_factory=list)
    from_cache: bool = Field(default=False, description="Served from the cache")
    cached_at: datetime | None = Field(None, description="When the cached view was saved")
    error: str | None = Field(None, description="Ledger error that forced the fallback")


class FallbackAssetLoader:
    """Wraps an ``AssetViewBuilder`` with retries and a cache fallback.

    The cache is only read after transient failures exhaust the retries. It is
    never used to skip a fresh reconstruction, and an empty fresh result is
    returned as is.
    """

    def __init__(
        self,
        builder: AssetViewBuilder,
        cache: AssetCache | None = None,
        retry_attempts: int = 3,
        retry_backoff: float = 1.0,
    ) -> None:
        """Initialize the loader."""
        self.builder = builder
        self.cache = cache
        self.retry_attempts = max(1, retry_attempts)
        self.retry_backoff = retry_backoff

    async def load_all(self) -> LoadOutcome:
        """Load every asset."""
        return await self._load(cache_key("all"), self.builder.load_all)

    async def load_mine(self, owner: str) -> LoadOutcome:
        """Load the assets owned by an address."""
        return await self._load(
            cache_key("mine", owner), lambda: self.builder.load_mine(owner)
        )

    async def load_accessible(self, address: str) -> LoadOutcome:
        """Load the assets an address can access."""
        return await self._load(
            cache_key("accessible", address),
            lambda: self.builder.load_accessible(address),
        )

    async def _load(
        self, key: str, fetch: Callable[[], Awaitable[AssetBatch]]
    ) -> LoadOutcome:
        try:
            batch = await self._fetch_with_retry(fetch)
        except TransientLedgerError as e:
            cached = self._read_cache(key)
            if cached is None:
                raise
            logger.warning(
                "Serving cached assets after ledger failure",
                key=key,
                count=len(cached.assets),
                error=str(e),
            )
            return cached.model_copy(update={"error": str(e)})

        self._write_cache(key, batch)
        return LoadOutcome(assets=batch.assets, failures=batch.failures)

    async def _fetch_with_retry(
        self, fetch: Callable[[], Awaitable[AssetBatch]]
    ) -> AssetBatch:
        for attempt in range(self.retry_attempts):
            try:
                return await fetch()
            except TransientLedgerError as e:
                logger.warning(
                    "Ledger load failed",
                    attempt=attempt + 1,
                    max_attempts=self.retry_attempts,
                    error=str(e),
                )
                if attempt == self.retry_attempts - 1:
                    raise
                await asyncio.sleep(self.retry_backoff * 2**attempt)

        raise RuntimeError("retry loop exited without a result")

    def _write_cache(self, key: str, batch: AssetBatch) -> None:
        if self.cache is None:
            return
        document = {
            "saved_at": datetime.now(timezone.utc).isoformat(),
            "assets": [asset.model_dump(mode="json") for asset in batch.assets],
            "failures": [
                failure.model_dump(mode="json") for failure in batch.failures
            ],
        }
        try:
            self.cache.set(key, json.dumps(document))
        except OSError as e:
            logger.error("Failed to write asset cache", key=key, error=str(e))

    def _read_cache(self, key: str) -> LoadOutcome | None:
        if self.cache is None:
            return None
        raw = self.cache.get(key)
        if raw is None:
            return None
        try:
            document = json.loads(raw)
            return LoadOutcome(
                assets=[Asset.model_validate(item) for item in document["assets"]],
                failures=[
                    AssetLoadFailure.model_validate(item)
                    for item in document.get("failures", [])
                ],
                from_cache=True,
                cached_at=document.get("saved_at"),
            )
        except (json.JSONDecodeError, KeyError, TypeError, ValidationError) as e:
            logger.error("Ignoring unreadable cache entry", key=key, error=str(e))
            return None
