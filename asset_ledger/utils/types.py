"""Type definitions for the asset ledger."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_serializer

from .addresses import normalize_address


class AssetCategory(str, Enum):
    """Dashboard categories an asset type is mapped onto."""

    DATASET = "dataset"
    MODEL = "model"
    PROJECT = "project"
    REPORT = "report"


class PermissionEventKind(str, Enum):
    """Kinds of permission events emitted by the registry contract."""

    GRANT = "grant"
    REVOKE = "revoke"


class FailureKind(str, Enum):
    """Classification of a per-asset load failure."""

    TRANSIENT = "transient"
    PERMISSION_LOG = "permission_log"
    DECODE = "decode"
    UNEXPECTED = "unexpected"


def map_asset_type(asset_type: str) -> AssetCategory:
    """Map a free-form registered asset type onto a category."""
    normalized = asset_type.lower()
    for category in AssetCategory:
        if category.value in normalized:
            return category
    return AssetCategory.DATASET


class AssetRecord(BaseModel):
    """Owner and metadata of one asset as stored on the ledger."""

    id: int = Field(..., ge=1, description="Ledger-assigned asset identifier")
    name: str = Field("", description="Asset name")
    asset_type: str = Field("", description="Asset type as registered")
    description: str = Field("", description="Asset description")
    content_ref: str = Field("", description="Locator of the stored file")
    author: str = Field("", description="Address that registered the asset")
    owner: str = Field("", description="Current owner address")
    created_at: datetime = Field(..., description="Registration time (UTC)")


class PermissionEvent(BaseModel):
    """A grant or revoke of read access on an asset."""

    kind: PermissionEventKind = Field(..., description="Grant or revoke")
    asset_id: int = Field(..., ge=1, description="Asset the event applies to")
    grantee: str = Field(..., description="Address being granted or revoked")
    order: int = Field(..., ge=0, description="Position in ledger emission order")


class UsageEntry(BaseModel):
    """One append-only usage log entry."""

    index: int = Field(..., ge=0, description="Position in the asset's usage log")
    actor: str = Field(..., description="Address that logged the usage")
    timestamp: datetime = Field(..., description="Time the usage was logged (UTC)")
    description: str = Field("", description="Free-form usage description")


class UsageHistory(BaseModel):
    """Usage log of one asset, possibly cut short by a failed read."""

    entries: list[UsageEntry] = Field(default_factory=list)
    error: str | None = Field(None, description="Why the log was cut short")

    @property
    def partial(self) -> bool:
        """Whether reading stopped before the end of the log."""
        return self.error is not None


class Asset(BaseModel):
    """Materialized view of one registered asset."""

    id: int = Field(..., ge=1, description="Ledger-assigned asset identifier")
    name: str = Field(..., description="Asset name")
    asset_type: str = Field(..., description="Asset type as registered")
    description: str = Field("", description="Asset description")
    content_ref: str = Field("", description="Locator of the stored file")
    author: str = Field(..., description="Address that registered the asset")
    owner: str = Field(..., description="Current owner address")
    created_at: datetime = Field(..., description="Registration time (UTC)")
    permissions: frozenset[str] = Field(
        default_factory=frozenset, description="Normalized addresses with access"
    )
    usage_log: list[UsageEntry] = Field(
        default_factory=list, description="Usage entries, oldest first"
    )
    usage_error: str | None = Field(
        None, description="Set when the usage log was only partially read"
    )

    @field_serializer("permissions")
    def _serialize_permissions(self, permissions: frozenset[str]) -> list[str]:
        return sorted(permissions)

    @property
    def category(self) -> AssetCategory:
        """Dashboard category derived from the raw asset type."""
        return map_asset_type(self.asset_type)

    def is_owned_by(self, address: str) -> bool:
        """Check case-insensitive ownership."""
        return normalize_address(self.owner) == normalize_address(address)

    def has_access(self, address: str) -> bool:
        """Check whether an address may read the asset."""
        return (
            self.is_owned_by(address)
            or normalize_address(address) in self.permissions
        )


class AssetLoadFailure(BaseModel):
    """An asset that could not be built during a bulk load."""

    asset_id: int = Field(..., ge=1)
    kind: FailureKind = Field(..., description="Failure classification")
    message: str = Field("", description="Human-readable reason")


class AssetBatch(BaseModel):
    """Result of a bulk load: assets in ascending id order plus failures."""

    assets: list[Asset] = Field(default_factory=list)
    failures: list[AssetLoadFailure] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Whether every discovered asset was built."""
        return not self.failures

    @property
    def ids(self) -> list[int]:
        """Identifiers of the built assets."""
        return [asset.id for asset in self.assets]
