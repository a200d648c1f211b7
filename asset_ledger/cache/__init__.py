"""Local fallback cache for asset views."""

from .fallback import FallbackAssetLoader, LoadOutcome, cache_key
from .store import AssetCache, JsonFileAssetCache, MemoryAssetCache

__all__ = [
    "AssetCache",
    "FallbackAssetLoader",
    "JsonFileAssetCache",
    "LoadOutcome",
    "MemoryAssetCache",
    "cache_key",
]
