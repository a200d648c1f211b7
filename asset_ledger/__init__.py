"""Asset Ledger: materialized views of a blockchain asset registry."""

from .reconstruction import (
    AssetViewBuilder,
    PermissionReconciler,
    ResourceEnumerator,
    UsageAggregator,
    reconcile_permissions,
)
from .utils.types import (
    Asset,
    AssetBatch,
    PermissionEvent,
    PermissionEventKind,
    UsageEntry,
)

__version__ = "0.1.0"

__all__ = [
    "Asset",
    "AssetBatch",
    "AssetViewBuilder",
    "PermissionEvent",
    "PermissionEventKind",
    "PermissionReconciler",
    "ResourceEnumerator",
    "UsageAggregator",
    "UsageEntry",
    "__version__",
    "reconcile_permissions",
]
