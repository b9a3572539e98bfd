"""
Storage Services Package

Provides the abstract blob-store interface and its implementations:
in-memory, a local JSON file, and Google Sheets.
"""

from flourish.services.storage.interface import (
    BlobStorageInterface,
    ConnectionError,
    SerializationError,
    StorageError,
)
from flourish.services.storage.memory import InMemoryBlobStorage
from flourish.services.storage.json_file import JsonFileBlobStorage
from flourish.services.storage.google_sheets import (
    GoogleSheetsBlobStorage,
    GoogleSheetsClient,
)

__all__ = [
    # Interfaces
    "BlobStorageInterface",
    # Exceptions
    "ConnectionError",
    "SerializationError",
    "StorageError",
    # Implementations
    "GoogleSheetsBlobStorage",
    "GoogleSheetsClient",
    "InMemoryBlobStorage",
    "JsonFileBlobStorage",
]
