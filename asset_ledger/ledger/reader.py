"""Read-only ledger reader interface."""

from abc import ABC, abstractmethod
from typing import Any

from ..utils.types import AssetRecord, PermissionEvent, UsageEntry


class LedgerReader(ABC):
    """Typed read-only accessors over the asset registry.

    Implementations raise ``LedgerDecodeError`` when the ledger returns empty or
    undecodable data, ``LedgerRevertError`` when the contract rejects the call
    and ``TransientLedgerError`` for network or provider failures.
    """

    @abstractmethod
    async def get_owner_and_metadata(self, asset_id: int) -> AssetRecord:
        """Read owner and metadata of an asset.

        An id that was never registered comes back with the sentinel owner.
        """

    @abstractmethod
    async def get_permission_events(self, asset_id: int) -> list[PermissionEvent]:
        """Read every grant/revoke event of an asset in emission order."""

    @abstractmethod
    async def get_usage_count(self, asset_id: int) -> int:
        """Read the number of usage entries logged for an asset."""

    @abstractmethod
    async def get_usage_entry(self, asset_id: int, index: int) -> UsageEntry:
        """Read one usage entry by index."""

    async def is_connected(self) -> bool:
        """Whether the ledger endpoint answers."""
        return True

    async def close(self) -> None:
        """Release transport resources."""

    async def __aenter__(self) -> "LedgerReader":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
