"""Abstract base classes for document and chunk persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from studykb.models.chunk import KnowledgeChunk
from studykb.models.document import Document, ProcessingStatus


# Concrete implementations: MemoryDocumentStore, SQLiteDocumentStore
# Located in: studykb/providers/storage/
class IDocumentStore(ABC):
    """Persistence contract for :class:`Document` records."""

    @abstractmethod
    async def create(self, document: Document) -> Document:
        """Insert a new document and return it."""

    @abstractmethod
    async def get(self, document_id: str) -> Document | None:
        """Return the document or ``None`` when the id is unknown."""

    @abstractmethod
    async def update(self, document_id: str, patch: dict[str, Any]) -> Document:
        """Apply *patch* (top-level field -> value) and return the new document.

        ``updated_at`` is refreshed on every write.

        Raises
        ------
        studykb.utils.errors.DocumentNotFoundError
            If the id is unknown.
        studykb.utils.errors.PersistenceError
            If the backend write fails.
        """

    @abstractmethod
    async def list_documents(
        self,
        subject_id: str | None = None,
        status: ProcessingStatus | None = None,
        active_only: bool = True,
    ) -> list[Document]:
        """Return matching documents, newest first."""


class IChunkStore(ABC):
    """Persistence contract for :class:`KnowledgeChunk` rows."""

    @abstractmethod
    async def insert_many(self, chunks: list[KnowledgeChunk]) -> int:
        """Insert all *chunks* in one transaction; return the row count.

        Raises
        ------
        studykb.utils.errors.PersistenceError
            If the write fails.  No row from the batch is visible afterwards.
        """

    @abstractmethod
    async def find_by_document(self, document_id: str) -> list[KnowledgeChunk]:
        """Return the document's chunks ordered by ``chunk_index``."""

    @abstractmethod
    async def delete_by_document(self, document_id: str) -> int:
        """Delete every chunk of *document_id*; return the count removed."""

    @abstractmethod
    async def replace_for_document(self, document_id: str, chunks: list[KnowledgeChunk]) -> int:
        """Atomically delete the document's chunks and insert *chunks*.

        Either the old set or the new set is visible afterwards, never a mix.
        """
