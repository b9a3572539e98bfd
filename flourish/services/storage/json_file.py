"""
JSON File Storage Implementation

DESIGN DECISION: The local store is one JSON document:

    {"collections": {"accounts": [...], ...}, "values": {"currencyCode": "USD"}}

The whole document is rewritten on every save through a temporary file and
an atomic rename, so a crash mid-write leaves the previous version intact.

TRADEOFFS:
- Every save rewrites the file (fine for a single user's data)
- No concurrent writers across processes
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from flourish.services.storage.interface import (
    BlobStorageInterface,
    SerializationError,
    StorageError,
)


class JsonFileBlobStorage(BlobStorageInterface):
    """Single-file JSON blob storage."""

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)
        self._document: Optional[dict] = None

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict:
        """Read (and cache) the document from disk."""
        if self._document is not None:
            return self._document

        if not self._path.exists():
            self._document = {"collections": {}, "values": {}}
            return self._document

        try:
            with self._path.open("r", encoding="utf-8") as fh:
                document = json.load(fh)
        except json.JSONDecodeError as e:
            raise SerializationError(f"Corrupt data file {self._path}: {e}")
        except OSError as e:
            raise StorageError(f"Failed to read {self._path}: {e}")

        if not isinstance(document, dict):
            raise SerializationError(f"Unexpected data file layout in {self._path}")

        document.setdefault("collections", {})
        document.setdefault("values", {})
        self._document = document
        return document

    def _write(self) -> None:
        """Atomically replace the file with the cached document."""
        document = self._read()
        directory = self._path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self._path.name}.",
                dir=directory,
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(document, fh, indent=2)
                os.replace(tmp_path, self._path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except TypeError as e:
            raise SerializationError(f"Data is not JSON serializable: {e}")
        except OSError as e:
            raise StorageError(f"Failed to write {self._path}: {e}")

    def load(self, key: str) -> Optional[list[dict]]:
        records = self._read()["collections"].get(key)
        if records is None:
            return None
        if not isinstance(records, list):
            raise SerializationError(f"Collection '{key}' is not a list")
        return records

    def save(self, key: str, records: list[dict]) -> None:
        self._read()["collections"][key] = records
        self._write()

    def load_value(self, key: str) -> Optional[str]:
        return self._read()["values"].get(key)

    def save_value(self, key: str, value: str) -> None:
        self._read()["values"][key] = value
        self._write()
