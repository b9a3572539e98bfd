"""Services package."""

from flourish.services.storage import (
    BlobStorageInterface,
    ConnectionError,
    GoogleSheetsBlobStorage,
    GoogleSheetsClient,
    InMemoryBlobStorage,
    JsonFileBlobStorage,
    SerializationError,
    StorageError,
)

__all__ = [
    "BlobStorageInterface",
    "ConnectionError",
    "GoogleSheetsBlobStorage",
    "GoogleSheetsClient",
    "InMemoryBlobStorage",
    "JsonFileBlobStorage",
    "SerializationError",
    "StorageError",
]
