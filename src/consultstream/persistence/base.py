"""Abstract base class for key/value persistence backends.

This module defines the storage capability injected into the session
persistence manager. The abstraction hides:
- Storage format on disk (or not on disk at all)
- Connection management
"""

from abc import ABC, abstractmethod


class KeyValueStore(ABC):
    """Abstract key/value backend.

    Values are opaque text blobs. No transactional guarantees are assumed.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Initialize the backend."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the backend gracefully."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Read the blob stored under a key, or None if absent."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store a blob under a key, replacing any previous value."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key if present."""

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """Get the backend type identifier."""

    async def __aenter__(self) -> "KeyValueStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()
