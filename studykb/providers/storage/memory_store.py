"""In-memory document and chunk stores.

Each store guards its map with an ``asyncio.Lock``; multi-row writes build
the new state first and swap it in under the lock, so a batch is either
fully visible or not at all.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

from studykb.interfaces.document_store import IChunkStore, IDocumentStore
from studykb.models.chunk import KnowledgeChunk
from studykb.models.document import Document, ProcessingStatus
from studykb.utils.errors import DocumentNotFoundError, PersistenceError


class MemoryDocumentStore(IDocumentStore):
    def __init__(self) -> None:
        self._documents: dict[str, Document] = {}
        self._lock = asyncio.Lock()

    async def create(self, document: Document) -> Document:
        async with self._lock:
            if document.id in self._documents:
                raise PersistenceError(f"Document {document.id} already exists", provider_name="memory")
            self._documents[document.id] = document
        return document

    async def get(self, document_id: str) -> Document | None:
        return self._documents.get(document_id)

    async def update(self, document_id: str, patch: dict[str, Any]) -> Document:
        async with self._lock:
            current = self._documents.get(document_id)
            if current is None:
                raise DocumentNotFoundError(f"Document {document_id} not found", provider_name="memory")
            updated = current.model_copy(
                update={**patch, "updated_at": datetime.now(tz=timezone.utc)}  # noqa: UP017
            )
            self._documents[document_id] = updated
        return updated

    async def list_documents(
        self,
        subject_id: str | None = None,
        status: ProcessingStatus | None = None,
        active_only: bool = True,
    ) -> list[Document]:
        docs = [
            d
            for d in self._documents.values()
            if (subject_id is None or d.subject_id == subject_id)
            and (status is None or d.processing.status == status)
            and (not active_only or d.is_active)
        ]
        return sorted(docs, key=lambda d: d.created_at, reverse=True)


class MemoryChunkStore(IChunkStore):
    def __init__(self) -> None:
        self._chunks: dict[str, list[KnowledgeChunk]] = {}
        self._lock = asyncio.Lock()

    async def insert_many(self, chunks: list[KnowledgeChunk]) -> int:
        if not chunks:
            return 0
        staged: dict[str, list[KnowledgeChunk]] = {}
        for chunk in chunks:
            staged.setdefault(chunk.document_id, []).append(chunk)
        async with self._lock:
            for document_id, new_rows in staged.items():
                merged = self._chunks.get(document_id, []) + new_rows
                self._chunks[document_id] = sorted(merged, key=lambda c: c.chunk_index)
        return len(chunks)

    async def find_by_document(self, document_id: str) -> list[KnowledgeChunk]:
        return list(self._chunks.get(document_id, []))

    async def delete_by_document(self, document_id: str) -> int:
        async with self._lock:
            return len(self._chunks.pop(document_id, []))

    async def replace_for_document(self, document_id: str, chunks: list[KnowledgeChunk]) -> int:
        if any(c.document_id != document_id for c in chunks):
            raise PersistenceError("Chunk batch contains rows for another document", provider_name="memory")
        ordered = sorted(chunks, key=lambda c: c.chunk_index)
        async with self._lock:
            if ordered:
                self._chunks[document_id] = ordered
            else:
                self._chunks.pop(document_id, None)
        return len(ordered)

    async def count(self) -> int:
        return sum(len(rows) for rows in self._chunks.values())
