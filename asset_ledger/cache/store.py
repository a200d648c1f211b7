"""Keyed blob stores used as a last-resort display source."""

import re
from pathlib import Path
from typing import Protocol, runtime_checkable

import structlog

logger = structlog.get_logger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


@runtime_checkable
class AssetCache(Protocol):
    """Simple keyed blob store."""

    def get(self, key: str) -> str | None:
        """Return the stored value or ``None``."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store a value under a key."""
        ...


class MemoryAssetCache:
    """In-process cache, mostly useful for tests and short-lived sessions."""

    def __init__(self) -> None:
        """Initialize an empty cache."""
        self._values: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        """Return the stored value or ``None``."""
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        """Store a value under a key."""
        self._values[key] = value


class JsonFileAssetCache:
    """Stores one JSON document per key under a directory."""

    def __init__(self, directory: str | Path = ".asset-cache") -> None:
        """Initialize the cache directory."""
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        logger.debug("File cache initialized", directory=str(self.directory))

    def _path(self, key: str) -> Path:
        return self.directory / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    def get(self, key: str) -> str | None:
        """Return the stored document or ``None`` when absent or unreadable."""
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.error("Failed to read cache entry", file=str(path), error=str(e))
            return None

    def set(self, key: str, value: str) -> None:
        """Write a document atomically."""
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(value, encoding="utf-8")
        tmp_path.replace(path)
