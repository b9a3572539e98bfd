"""
In-Memory Storage Implementation

Keeps collections in a dict. Used by tests and by the "memory" backend.
Records are deep-copied on the way in and out so callers can never alias
what has been "persisted".
"""

import copy
from typing import Optional

from flourish.services.storage.interface import BlobStorageInterface


class InMemoryBlobStorage(BlobStorageInterface):
    """Dict-backed blob storage."""

    def __init__(self, initial: Optional[dict[str, list[dict]]] = None):
        self._collections: dict[str, list[dict]] = copy.deepcopy(initial or {})
        self._values: dict[str, str] = {}
        self.save_count = 0

    def load(self, key: str) -> Optional[list[dict]]:
        if key not in self._collections:
            return None
        return copy.deepcopy(self._collections[key])

    def save(self, key: str, records: list[dict]) -> None:
        self._collections[key] = copy.deepcopy(records)
        self.save_count += 1

    def load_value(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def save_value(self, key: str, value: str) -> None:
        self._values[key] = value

    def keys(self) -> list[str]:
        return sorted(self._collections)
