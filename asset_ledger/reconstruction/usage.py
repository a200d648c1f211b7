"""Aggregation of an asset's count-indexed usage log."""

import asyncio

import structlog

from ..ledger.reader import LedgerReader
from ..utils.types import UsageEntry, UsageHistory

logger = structlog.get_logger(__name__)


class UsageAggregator:
    """Pages through ``[0, count)`` and returns entries in index order."""

    def __init__(self, reader: LedgerReader, page_size: int = 10) -> None:
        """Initialize the aggregator."""
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self.reader = reader
        self.page_size = page_size

    async def history(self, asset_id: int) -> UsageHistory:
        """Read the usage log of an asset.

        An unreadable count yields an empty history. A failed entry read stops
        paging and returns the entries before it with ``error`` set.
        """
        try:
            count = await self.reader.get_usage_count(asset_id)
        except Exception as e:
            logger.warning("Usage count unreadable", asset_id=asset_id, error=str(e))
            return UsageHistory()

        entries: list[UsageEntry] = []
        for start in range(0, count, self.page_size):
            indexes = range(start, min(start + self.page_size, count))
            results = await asyncio.gather(
                *(self.reader.get_usage_entry(asset_id, index) for index in indexes),
                return_exceptions=True,
            )
            for index, result in zip(indexes, results):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                if isinstance(result, Exception):
                    logger.warning(
                        "Usage log read stopped early",
                        asset_id=asset_id,
                        index=index,
                        count=count,
                        error=str(result),
                    )
                    return UsageHistory(
                        entries=entries,
                        error=f"entry {index} of {count} unreadable: {result}",
                    )
                entries.append(result)

        return UsageHistory(entries=entries)
