from abc import ABC, abstractmethod
from typing import Optional


class StorageBackend(ABC):
    """
    Durable string key-value storage (localStorage-like).

    Implementations raise ``OSError`` (or a subclass) on I/O failure; the
    persistence adapter turns that into ``PersistenceError``.
    """

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value or None when the key is absent."""

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Overwrite the value stored under ``key``."""

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Delete ``key``; absent keys are ignored."""
