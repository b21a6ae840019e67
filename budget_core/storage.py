"""Persistence backends for the household budget stores.

Backends are plain key-value stores of JSON text. The stores above them own
parsing and validation, so a backend never needs to understand the records
it holds.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from .exceptions import PersistenceError

KEY_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,100}$")


class KeyValueBackend(ABC):
    """Interface every persistence backend implements."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored text for ``key`` or None when absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``; removing an absent key is a no-op."""

    @abstractmethod
    def keys(self) -> List[str]:
        """Return every stored key."""


class MemoryBackend(KeyValueBackend):
    """Dictionary-backed storage used by tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._items: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self._items[key] = value

    def delete(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._items)


class JSONDirectoryBackend(KeyValueBackend):
    """One ``<key>.json`` file per key with crash-safe writes."""

    def __init__(self, base_path: Path) -> None:
        self._base_path = Path(base_path)
        self._base_path.mkdir(parents=True, exist_ok=True)

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(f"Unable to read from {path}") from exc

    def set(self, key: str, value: str) -> None:
        path = self._path_for(key)
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            with temp_path.open("w", encoding="utf-8") as handle:
                handle.write(value)
                handle.flush()
            # Use replace for atomic move on POSIX; ensures crash-safe persistence.
            temp_path.replace(path)
        except OSError as exc:
            raise PersistenceError(f"Unable to write to {path}") from exc

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            raise PersistenceError(f"Unable to delete {path}") from exc

    def keys(self) -> List[str]:
        try:
            return sorted(path.stem for path in self._base_path.glob("*.json"))
        except OSError as exc:
            raise PersistenceError(f"Unable to list {self._base_path}") from exc

    @property
    def base_path(self) -> Path:
        return self._base_path

    def _path_for(self, key: str) -> Path:
        # Keys become file names; refuse anything that could escape the directory.
        if not KEY_PATTERN.fullmatch(key):
            raise PersistenceError(f"Invalid storage key '{key}'")
        return self._base_path / f"{key}.json"
