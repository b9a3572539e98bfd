"""
Abstract Storage Interface

DESIGN DECISION: The entity store talks to persistence through a key-value
blob interface. This allows us to:
1. Keep a JSON file on the device for local use
2. Mirror collections into Google Sheets where the user can inspect them
3. Use in-memory storage for testing
4. Keep bookkeeping logic decoupled from storage implementation

The interface is intentionally tiny: a named collection of field-keyed
records can be loaded or overwritten in full, plus one scalar setting.
"""

from abc import ABC, abstractmethod
from typing import Optional


class BlobStorageInterface(ABC):
    """
    Abstract interface for collection blob storage.

    Any storage implementation (JSON file, Google Sheets, etc.)
    must implement these methods.
    """

    @abstractmethod
    def load(self, key: str) -> Optional[list[dict]]:
        """
        Load the records persisted for a collection.

        Args:
            key: Collection key (e.g., 'accounts')

        Returns:
            The records, or None if the collection was never saved

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def save(self, key: str, records: list[dict]) -> None:
        """
        Overwrite the persisted records for a collection.

        Args:
            key: Collection key
            records: Field-name-keyed records

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def load_value(self, key: str) -> Optional[str]:
        """
        Load a scalar setting (e.g., the currency code).

        Returns:
            The stored value, or None if never saved
        """
        pass

    @abstractmethod
    def save_value(self, key: str, value: str) -> None:
        """
        Store a scalar setting.

        Raises:
            StorageError: If the write fails
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class SerializationError(StorageError):
    """Persisted data could not be encoded or decoded."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
