"""Ledger reader backed by an EVM JSON-RPC endpoint."""

import asyncio
from collections.abc import Awaitable
from datetime import datetime, timezone
from typing import Any, TypeVar

import aiohttp
import structlog
from eth_abi.exceptions import DecodingError
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import (
    BadFunctionCallOutput,
    BadResponseFormat,
    ContractLogicError,
    ProviderConnectionError,
    TimeExhausted,
    Web3RPCError,
)

from ..utils.config import LedgerConfig
from ..utils.errors import (
    ConfigurationError,
    LedgerDecodeError,
    LedgerReadError,
    LedgerRevertError,
    TransientLedgerError,
)
from ..utils.types import (
    AssetRecord,
    PermissionEvent,
    PermissionEventKind,
    UsageEntry,
)
from .reader import LedgerReader

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_PERMISSION_EVENT_INPUTS = [
    {"indexed": True, "name": "assetId", "type": "uint256"},
    {"indexed": False, "name": "grantee", "type": "address"},
]

REGISTRY_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "viewAsset",
        "stateMutability": "view",
        "inputs": [{"name": "assetId", "type": "uint256"}],
        "outputs": [
            {"name": "id", "type": "uint256"},
            {"name": "name", "type": "string"},
            {"name": "assetType", "type": "string"},
            {"name": "description", "type": "string"},
            {"name": "assetURI", "type": "string"},
            {"name": "author", "type": "address"},
            {"name": "owner", "type": "address"},
            {"name": "creationTimestamp", "type": "uint256"},
        ],
    },
    {
        "type": "function",
        "name": "usageCount",
        "stateMutability": "view",
        "inputs": [{"name": "assetId", "type": "uint256"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "viewUsageEntry",
        "stateMutability": "view",
        "inputs": [
            {"name": "assetId", "type": "uint256"},
            {"name": "index", "type": "uint256"},
        ],
        "outputs": [
            {"name": "actor", "type": "address"},
            {"name": "timestamp", "type": "uint256"},
            {"name": "description", "type": "string"},
        ],
    },
    {
        "type": "event",
        "name": "PermissionGranted",
        "anonymous": False,
        "inputs": _PERMISSION_EVENT_INPUTS,
    },
    {
        "type": "event",
        "name": "PermissionRevoked",
        "anonymous": False,
        "inputs": _PERMISSION_EVENT_INPUTS,
    },
]

_EVENT_KINDS = {
    "PermissionGranted": PermissionEventKind.GRANT,
    "PermissionRevoked": PermissionEventKind.REVOKE,
}


def classify_web3_error(
    error: BaseException, asset_id: int | None, operation: str
) -> LedgerReadError | None:
    """Map a web3/transport exception onto the ledger error taxonomy.

    Only transport and provider failures are transient. Returns ``None`` for
    anything else, such as ABI or validation errors; those are re-raised
    unchanged by the caller.
    """
    message = f"{operation} failed for asset {asset_id}: {error}"
    if isinstance(error, ContractLogicError):
        return LedgerRevertError(message, asset_id, operation)
    if isinstance(error, BadFunctionCallOutput | DecodingError):
        return LedgerDecodeError(message, asset_id, operation)
    if isinstance(
        error,
        aiohttp.ClientError
        | asyncio.TimeoutError
        | OSError
        | ProviderConnectionError
        | TimeExhausted
        | BadResponseFormat
        | Web3RPCError,
    ):
        return TransientLedgerError(message, asset_id, operation)
    return None


def _from_unix(seconds: int) -> datetime:
    return datetime.fromtimestamp(int(seconds), tz=timezone.utc)


class Web3LedgerReader(LedgerReader):
    """Reads the asset registry contract through ``AsyncWeb3``."""

    def __init__(
        self,
        endpoint: str,
        contract_address: str,
        timeout: int = 30,
        from_block: int = 0,
    ) -> None:
        """Initialize the reader for one deployed registry."""
        if not endpoint:
            raise ConfigurationError("JSON-RPC endpoint not configured")
        if not AsyncWeb3.is_address(contract_address):
            raise ConfigurationError(
                f"Invalid registry contract address: {contract_address!r}"
            )

        self.endpoint = endpoint
        self.from_block = from_block
        self._w3 = AsyncWeb3(
            AsyncHTTPProvider(
                endpoint,
                request_kwargs={"timeout": aiohttp.ClientTimeout(total=timeout)},
                exception_retry_configuration=None,
            )
        )
        self._contract = self._w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(contract_address),
            abi=REGISTRY_ABI,
        )

    @classmethod
    def from_config(cls, config: LedgerConfig) -> "Web3LedgerReader":
        """Build a reader from ledger settings."""
        return cls(
            endpoint=config.endpoint,
            contract_address=config.require_contract_address(),
            timeout=config.timeout,
            from_block=config.from_block,
        )

    async def _read(self, operation: str, asset_id: int, call: Awaitable[T]) -> T:
        try:
            return await call
        except Exception as e:
            classified = classify_web3_error(e, asset_id, operation)
            if classified is None:
                raise
            logger.debug(
                "Ledger read failed",
                operation=operation,
                asset_id=asset_id,
                error_type=type(classified).__name__,
                error=str(e),
            )
            raise classified from e

    async def get_owner_and_metadata(self, asset_id: int) -> AssetRecord:
        """Read owner and metadata through ``viewAsset``."""
        result = await self._read(
            "viewAsset", asset_id, self._contract.functions.viewAsset(asset_id).call()
        )
        (
            _,
            name,
            asset_type,
            description,
            asset_uri,
            author,
            owner,
            creation_timestamp,
        ) = result
        return AssetRecord(
            id=asset_id,
            name=name,
            asset_type=asset_type,
            description=description,
            content_ref=asset_uri,
            author=author,
            owner=owner,
            created_at=_from_unix(creation_timestamp),
        )

    async def get_permission_events(self, asset_id: int) -> list[PermissionEvent]:
        """Read grant and revoke logs and merge them in chain order."""
        logs: list[Any] = []
        for event_name in _EVENT_KINDS:
            event = getattr(self._contract.events, event_name)
            logs.extend(
                await self._read(
                    f"{event_name}.get_logs",
                    asset_id,
                    event.get_logs(
                        argument_filters={"assetId": asset_id},
                        from_block=self.from_block,
                    ),
                )
            )

        logs.sort(
            key=lambda log: (log["blockNumber"], log["transactionIndex"], log["logIndex"])
        )
        return [
            PermissionEvent(
                kind=_EVENT_KINDS[log["event"]],
                asset_id=asset_id,
                grantee=log["args"]["grantee"],
                order=position,
            )
            for position, log in enumerate(logs)
        ]

    async def get_usage_count(self, asset_id: int) -> int:
        """Read ``usageCount``."""
        count = await self._read(
            "usageCount", asset_id, self._contract.functions.usageCount(asset_id).call()
        )
        return int(count)

    async def get_usage_entry(self, asset_id: int, index: int) -> UsageEntry:
        """Read ``viewUsageEntry``."""
        actor, timestamp, description = await self._read(
            "viewUsageEntry",
            asset_id,
            self._contract.functions.viewUsageEntry(asset_id, index).call(),
        )
        return UsageEntry(
            index=index,
            actor=actor,
            timestamp=_from_unix(timestamp),
            description=description,
        )

    async def is_connected(self) -> bool:
        """Probe the endpoint."""
        try:
            return bool(await self._w3.is_connected())
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            logger.warning("Ledger endpoint unreachable", endpoint=self.endpoint, error=str(e))
            return False

    async def close(self) -> None:
        """Close the provider's HTTP session."""
        await self._w3.provider.disconnect()
