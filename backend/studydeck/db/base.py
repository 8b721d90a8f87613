"""
Key-Value Persistence Base

Defines the key-value collaborator the card store persists through, plus
the in-memory implementation used for local runs and tests.

The card store only needs four operations on string keys and string
values; every backend translates its own "storage is full" failure into
StorageCapacityExceeded so the store can roll back uniformly.

Usage:
    from studydeck.db.base import MemoryBackend

    backend = MemoryBackend(max_bytes=5 * 1024 * 1024)
    backend.set("studydeck:deck:python", "[]")
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from studydeck.errors import StorageCapacityExceeded

logger = logging.getLogger(__name__)


class KeyValueBackend(ABC):
    """Synchronous string key-value store."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is missing."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Store a value, replacing any previous one.

        Raises:
            StorageCapacityExceeded: If the backend has no room for the value
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""

    @abstractmethod
    def keys(self, prefix: str = "") -> list[str]:
        """List stored keys starting with ``prefix``."""

    def close(self) -> None:
        """Release connections held by the backend."""


def record_size(key: str, value: str) -> int:
    """Bytes a key/value pair occupies, counted as UTF-8."""
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class MemoryBackend(KeyValueBackend):
    """
    Dict-backed backend with a total-size quota.

    Behaves like a browser key-value store: a write that would push the
    total past ``max_bytes`` is refused and the previous value is kept.
    """

    def __init__(self, max_bytes: Optional[int] = None):
        """
        Args:
            max_bytes: Total quota in bytes (None or 0 = unlimited)
        """
        self.max_bytes = max_bytes or None
        self._data: dict[str, str] = {}

    def used_bytes(self) -> int:
        return sum(record_size(k, v) for k, v in self._data.items())

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.max_bytes is not None:
            current = self._data.get(key)
            freed = record_size(key, current) if current is not None else 0
            attempted = self.used_bytes() - freed + record_size(key, value)
            if attempted > self.max_bytes:
                logger.error(
                    f"Memory backend quota exceeded writing {key}: "
                    f"{attempted} > {self.max_bytes} bytes"
                )
                raise StorageCapacityExceeded(attempted_bytes=attempted)
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._data if k.startswith(prefix))
