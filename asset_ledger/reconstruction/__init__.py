"""Asset state reconstruction from the ledger."""

from .builder import AssetViewBuilder, assemble_asset, classify_failure
from .enumerator import ResourceEnumerator, looks_like_end_of_data
from .permissions import (
    PermissionReconciler,
    apply_permission_event,
    reconcile_permissions,
)
from .usage import UsageAggregator

__all__ = [
    "AssetViewBuilder",
    "PermissionReconciler",
    "ResourceEnumerator",
    "UsageAggregator",
    "apply_permission_event",
    "assemble_asset",
    "classify_failure",
    "looks_like_end_of_data",
    "reconcile_permissions",
]
