"""
In-memory cache backend.

A dict-backed implementation of the CacheBackend protocol. It stands in for
the persistent tier within one process: values are stored as bytes exactly as
a file or network backend would receive them, so the record cache's
serialization path is exercised end to end.
"""

from __future__ import annotations

import threading
from typing import Dict, List, Optional


class MemoryCacheBackend:
    """
    Byte-valued key/value store held in process memory.
    """

    def __init__(self) -> None:
        self._items: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def has(self, key: str) -> bool:
        return key in self._items

    def get(self, key: str) -> Optional[bytes]:
        return self._items.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._items[key] = bytes(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def list_keys_by_prefix(self, prefix: str) -> List[str]:
        with self._lock:
            return sorted(key for key in self._items if key.startswith(prefix))

    def __len__(self) -> int:
        return len(self._items)


__all__ = ["MemoryCacheBackend"]
