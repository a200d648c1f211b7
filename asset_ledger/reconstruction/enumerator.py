"""Discovery of registered asset ids by sequential probing."""

from collections.abc import AsyncIterator

import structlog

from ..ledger.reader import LedgerReader
from ..utils.addresses import is_sentinel_owner
from ..utils.errors import LedgerDecodeError, LedgerRevertError

logger = structlog.get_logger(__name__)


def looks_like_end_of_data(error: BaseException) -> bool:
    """Whether a failed probe means the id lies past the end of the registry.

    Only valid while ids are dense and start at 1: an empty/undecodable result
    or a contract revert is taken as "does not exist". Network and provider
    failures never qualify.
    """
    return isinstance(error, LedgerDecodeError | LedgerRevertError)


class ResourceEnumerator:
    """Yields the contiguous ids ``1..N`` that have a non-sentinel owner."""

    def __init__(self, reader: LedgerReader) -> None:
        """Initialize the enumerator."""
        self.reader = reader

    async def ids(self) -> AsyncIterator[int]:
        """Probe ids upward from 1 until the sentinel or end of data.

        Each call starts a fresh probe. Probes run one at a time since each
        depends on the previous id existing.
        """
        asset_id = 1
        while True:
            try:
                record = await self.reader.get_owner_and_metadata(asset_id)
            except Exception as e:
                if not looks_like_end_of_data(e):
                    raise
                logger.debug("End of data reached", asset_id=asset_id, error=str(e))
                break

            if is_sentinel_owner(record.owner):
                logger.debug("Sentinel owner reached", asset_id=asset_id)
                break

            yield asset_id
            asset_id += 1

        logger.info("Asset enumeration complete", total=asset_id - 1)

    async def count(self) -> int:
        """Number of registered assets."""
        total = 0
        async for _ in self.ids():
            total += 1
        return total
