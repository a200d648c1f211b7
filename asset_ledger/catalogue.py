"""Search, statistics and download links over materialized assets."""

import re
from collections.abc import Iterable
from typing import Any

from .utils.addresses import normalize_address
from .utils.types import Asset, AssetCategory, map_asset_type

CID_V0_PATTERN = re.compile(r"^Qm[1-9A-HJ-NP-Za-km-z]{44}$")
CID_V1_PATTERN = re.compile(r"^[a-z2-7]{59}$")
_GATEWAY_PATH_PATTERN = re.compile(r"/ipfs/([a-zA-Z0-9]+)")

__all__ = [
    "AssetCategory",
    "content_url",
    "extract_cid",
    "filter_assets",
    "is_valid_cid",
    "map_asset_type",
    "summarize_assets",
]


def is_valid_cid(value: str) -> bool:
    """Check for a CIDv0 or base32 CIDv1."""
    return bool(CID_V0_PATTERN.match(value) or CID_V1_PATTERN.match(value))


def extract_cid(content_ref: str) -> str | None:
    """Pull the CID out of an ``ipfs://`` URI, a gateway URL or a bare CID."""
    content_ref = content_ref.strip()
    if content_ref.startswith("ipfs://"):
        return content_ref[len("ipfs://"):] or None

    match = _GATEWAY_PATH_PATTERN.search(content_ref)
    if match:
        return match.group(1)

    if is_valid_cid(content_ref):
        return content_ref
    return None


def content_url(content_ref: str, gateway: str) -> str:
    """Download URL for an asset's stored file.

    References without a recognizable CID are returned unchanged.
    """
    cid = extract_cid(content_ref)
    if cid is None:
        return content_ref
    return f"{gateway.rstrip('/')}/{cid}"


def filter_assets(
    assets: Iterable[Asset],
    query: str | None = None,
    category: AssetCategory | str | None = None,
) -> list[Asset]:
    """Filter by a case-insensitive name/description search and a category."""
    needle = (query or "").strip().lower()
    wanted = AssetCategory(category) if category else None

    results = []
    for asset in assets:
        if needle and not (
            needle in asset.name.lower() or needle in asset.description.lower()
        ):
            continue
        if wanted is not None and asset.category is not wanted:
            continue
        results.append(asset)
    return results


def summarize_assets(assets: Iterable[Asset]) -> dict[str, Any]:
    """Dashboard statistics for a set of assets."""
    assets = list(assets)

    category_counts = {category.value: 0 for category in AssetCategory}
    for asset in assets:
        category_counts[asset.category.value] += 1

    owners = {normalize_address(asset.owner) for asset in assets}
    shared = sum(1 for asset in assets if len(asset.permissions) > 1)

    return {
        "total_assets": len(assets),
        "category_counts": category_counts,
        "distinct_owners": len(owners),
        "shared_assets": shared,
        "total_usage_entries": sum(len(asset.usage_log) for asset in assets),
        "assets_with_partial_usage": sum(
            1 for asset in assets if asset.usage_error is not None
        ),
    }
