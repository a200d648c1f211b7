"""Composition of ledger reads into materialized asset views."""

import asyncio
import time
from typing import Any

import structlog

from ..ledger.reader import LedgerReader
from ..utils.addresses import is_sentinel_owner
from ..utils.config import LedgerConfig
from ..utils.errors import (
    LedgerDecodeError,
    LedgerReadError,
    LedgerRevertError,
    LoadCancelledError,
    PermissionLogError,
    TransientLedgerError,
)
from ..utils.types import (
    Asset,
    AssetBatch,
    AssetLoadFailure,
    AssetRecord,
    FailureKind,
    PermissionEvent,
    UsageHistory,
)
from .enumerator import ResourceEnumerator, looks_like_end_of_data
from .permissions import PermissionReconciler, reconcile_permissions
from .usage import UsageAggregator

logger = structlog.get_logger(__name__)


def classify_failure(error: BaseException) -> FailureKind:
    """Classify why a single asset could not be built."""
    if isinstance(error, PermissionLogError):
        return FailureKind.PERMISSION_LOG
    if isinstance(error, TransientLedgerError):
        return FailureKind.TRANSIENT
    if isinstance(error, LedgerDecodeError | LedgerRevertError):
        return FailureKind.DECODE
    return FailureKind.UNEXPECTED


def assemble_asset(
    record: AssetRecord, events: list[PermissionEvent], history: UsageHistory
) -> Asset:
    """Combine the three facets of one asset into its view."""
    return Asset(
        id=record.id,
        name=record.name,
        asset_type=record.asset_type,
        description=record.description,
        content_ref=record.content_ref,
        author=record.author,
        owner=record.owner,
        created_at=record.created_at,
        permissions=reconcile_permissions(record.owner, events),
        usage_log=history.entries,
        usage_error=history.error,
    )


class AssetViewBuilder:
    """Rebuilds asset views from the ledger on every call.

    Holds no state between calls; any caching belongs to the caller.
    """

    def __init__(
        self,
        reader: LedgerReader,
        max_concurrency: int = 8,
        usage_page_size: int = 10,
    ) -> None:
        """Initialize the builder."""
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.reader = reader
        self.max_concurrency = max_concurrency
        self.enumerator = ResourceEnumerator(reader)
        self.permissions = PermissionReconciler(reader)
        self.usage = UsageAggregator(reader, page_size=usage_page_size)

    @classmethod
    def from_config(cls, reader: LedgerReader, config: LedgerConfig) -> "AssetViewBuilder":
        """Build with concurrency limits from ledger settings."""
        return cls(
            reader,
            max_concurrency=config.max_concurrency,
            usage_page_size=config.usage_page_size,
        )

    async def _build(self, asset_id: int) -> Asset | None:
        """Read the three facets of an asset concurrently and assemble it.

        Returns ``None`` when the owner is the sentinel. Metadata errors take
        precedence over permission log errors.
        """
        record, events, history = await asyncio.gather(
            self.reader.get_owner_and_metadata(asset_id),
            self.permissions.read_events(asset_id),
            self.usage.history(asset_id),
            return_exceptions=True,
        )
        for result in (record, events, history):
            if isinstance(result, asyncio.CancelledError):
                raise result
        if isinstance(record, BaseException):
            raise record
        if is_sentinel_owner(record.owner):
            return None
        if isinstance(events, BaseException):
            raise events
        if isinstance(history, BaseException):
            raise history
        return assemble_asset(record, events, history)

    async def _build_limited(
        self,
        asset_id: int,
        semaphore: asyncio.Semaphore,
        stop: asyncio.Event | None,
    ) -> Asset | None:
        async with semaphore:
            if stop is not None and stop.is_set():
                raise LoadCancelledError(f"Load stopped before asset {asset_id}")
            return await self._build(asset_id)

    async def load_all(self, stop: asyncio.Event | None = None) -> AssetBatch:
        """Load every registered asset in ascending id order.

        Per-asset failures are collected in the batch; an enumeration failure
        propagates. Setting ``stop`` cancels in-flight fetches and raises
        ``LoadCancelledError``; partial results are discarded.
        """
        start_time = time.monotonic()
        semaphore = asyncio.Semaphore(self.max_concurrency)
        tasks: dict[int, asyncio.Task[Asset | None]] = {}

        try:
            async for asset_id in self.enumerator.ids():
                if stop is not None and stop.is_set():
                    raise LoadCancelledError(
                        f"Load stopped after discovering {len(tasks)} assets"
                    )
                tasks[asset_id] = asyncio.create_task(
                    self._build_limited(asset_id, semaphore, stop)
                )
            results = await _gather_until_stopped(list(tasks.values()), stop)
        except BaseException:
            await _cancel_all(tasks.values())
            raise

        if stop is not None and stop.is_set():
            raise LoadCancelledError("Load stopped before completion")

        batch = AssetBatch()
        for asset_id, result in zip(tasks, results):
            if isinstance(result, asyncio.CancelledError | LoadCancelledError):
                raise result
            if isinstance(result, BaseException):
                kind = classify_failure(result)
                log_fields: dict[str, Any] = {
                    "asset_id": asset_id,
                    "kind": kind.value,
                    "error": str(result),
                }
                if kind is FailureKind.UNEXPECTED:
                    logger.error("Asset build failed unexpectedly", **log_fields)
                else:
                    logger.warning("Asset build failed", **log_fields)
                batch.failures.append(
                    AssetLoadFailure(asset_id=asset_id, kind=kind, message=str(result))
                )
            elif result is None:
                logger.warning("Asset disappeared after enumeration", asset_id=asset_id)
            else:
                batch.assets.append(result)

        logger.info(
            "Loaded assets",
            discovered=len(tasks),
            loaded=len(batch.assets),
            failed=len(batch.failures),
            execution_time=time.monotonic() - start_time,
        )
        return batch

    async def load_one(self, asset_id: int) -> Asset | None:
        """Load a single asset, or ``None`` if the id is not registered."""
        if asset_id < 1:
            raise ValueError(f"Asset ids start at 1, got {asset_id}")
        try:
            asset = await self._build(asset_id)
        except LedgerReadError as e:
            if looks_like_end_of_data(e):
                logger.info("Asset not found", asset_id=asset_id)
                return None
            raise
        if asset is None:
            logger.info("Asset not found", asset_id=asset_id)
        return asset

    async def load_mine(
        self, owner: str, stop: asyncio.Event | None = None
    ) -> AssetBatch:
        """Load the assets currently owned by an address."""
        batch = await self.load_all(stop=stop)
        mine = [asset for asset in batch.assets if asset.is_owned_by(owner)]
        logger.info("Filtered owned assets", owner=owner, total=len(batch.assets), owned=len(mine))
        return AssetBatch(assets=mine, failures=batch.failures)

    async def load_accessible(
        self, address: str, stop: asyncio.Event | None = None
    ) -> AssetBatch:
        """Load the assets an address owns or has been granted access to."""
        batch = await self.load_all(stop=stop)
        accessible = [asset for asset in batch.assets if asset.has_access(address)]
        logger.info(
            "Filtered accessible assets",
            address=address,
            total=len(batch.assets),
            accessible=len(accessible),
        )
        return AssetBatch(assets=accessible, failures=batch.failures)


async def _gather_until_stopped(
    tasks: list[asyncio.Task[Asset | None]], stop: asyncio.Event | None
) -> list[Any]:
    gathered = asyncio.gather(*tasks, return_exceptions=True)
    if stop is None:
        return await gathered

    stopped = asyncio.create_task(stop.wait())
    try:
        done, _ = await asyncio.wait(
            {gathered, stopped}, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        stopped.cancel()
    if gathered in done:
        return gathered.result()
    raise LoadCancelledError(f"Load stopped with {len(tasks)} assets in flight")


async def _cancel_all(tasks: Any) -> None:
    pending = [task for task in tasks if not task.done()]
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
