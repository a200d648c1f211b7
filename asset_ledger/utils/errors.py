"""Error taxonomy for ledger reads and asset reconstruction."""


class AssetLedgerError(Exception):
    """Base exception for asset ledger errors."""


class ConfigurationError(AssetLedgerError):
    """Missing or invalid ledger configuration. Fatal, never retried."""


class LedgerReadError(AssetLedgerError):
    """A read against the ledger failed."""

    def __init__(
        self,
        message: str,
        asset_id: int | None = None,
        operation: str | None = None,
    ):
        """Initialize ledger read error."""
        super().__init__(message)
        self.asset_id = asset_id
        self.operation = operation


class TransientLedgerError(LedgerReadError):
    """Network or provider failure. The caller may retry."""


class LedgerDecodeError(LedgerReadError):
    """The ledger returned empty or undecodable data."""


class LedgerRevertError(LedgerReadError):
    """The contract rejected the call."""


class PermissionLogError(AssetLedgerError):
    """The permission event log of a valid asset could not be read."""

    def __init__(self, asset_id: int, reason: str):
        """Initialize permission log error."""
        super().__init__(f"Permission log unavailable for asset {asset_id}: {reason}")
        self.asset_id = asset_id
        self.reason = reason


class LoadCancelledError(AssetLedgerError):
    """A bulk load was stopped before completion."""
