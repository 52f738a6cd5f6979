"""Abstract base class for the uploaded-file blob store."""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: FilesystemBlobStore, MemoryBlobStore
# Located in: studykb/providers/storage/
class IBlobStore(ABC):
    """Key-value store for raw uploaded binaries.

    Keys are document ids (or embedded-image refs derived from them).
    """

    @abstractmethod
    async def put(self, key: str, data: bytes) -> str:
        """Store *data* under *key* and return the key to read it back with."""

    @abstractmethod
    async def read(self, key: str) -> bytes:
        """Return the bytes stored under *key*.

        Raises
        ------
        studykb.utils.errors.StorageError
            If the key is missing or the backend fails.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove *key*.

        Raises
        ------
        studykb.utils.errors.StorageError
            If the backend fails.  Deleting a missing key is a no-op.
        """
