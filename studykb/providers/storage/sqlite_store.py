"""SQLite-backed document and chunk stores.

Persists documents and chunks to a local SQLite database using
``aiosqlite`` for async I/O.  Documents are stored as a JSON payload plus
indexed filter columns; chunks get one row each with the embedding vector
JSON-encoded.  Multi-row chunk writes run in a single transaction.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from studykb.interfaces.document_store import IChunkStore, IDocumentStore
from studykb.models.chunk import ChunkType, KnowledgeChunk
from studykb.models.document import Document, ProcessingStatus
from studykb.utils.errors import DocumentNotFoundError, PersistenceError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/knowledge_base.db")

_CREATE_DOCUMENTS_SQL = """\
CREATE TABLE IF NOT EXISTS documents (
    id          TEXT    PRIMARY KEY,
    subject_id  TEXT,
    status      TEXT    NOT NULL,
    is_active   INTEGER NOT NULL DEFAULT 1,
    created_at  TEXT    NOT NULL,
    payload     TEXT    NOT NULL
);
"""

_CREATE_CHUNKS_SQL = """\
CREATE TABLE IF NOT EXISTS knowledge_chunks (
    id              TEXT    PRIMARY KEY,
    document_id     TEXT    NOT NULL,
    chunk_index     INTEGER NOT NULL,
    content         TEXT    NOT NULL,
    embedding       TEXT    NOT NULL,
    summary         TEXT,
    page_number     INTEGER,
    token_count     INTEGER NOT NULL DEFAULT 0,
    char_count      INTEGER NOT NULL DEFAULT 0,
    chunk_type      TEXT    NOT NULL,
    semantic_score  REAL    NOT NULL DEFAULT 1.0,
    created_at      TEXT    NOT NULL,
    UNIQUE(document_id, chunk_index)
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_subject ON documents(subject_id);",
    "CREATE INDEX IF NOT EXISTS idx_documents_status ON documents(status);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_document ON knowledge_chunks(document_id, chunk_index);",
]

_INSERT_DOCUMENT_SQL = """\
INSERT INTO documents (id, subject_id, status, is_active, created_at, payload)
VALUES (?, ?, ?, ?, ?, ?);
"""

_UPDATE_DOCUMENT_SQL = """\
UPDATE documents
SET subject_id = ?, status = ?, is_active = ?, payload = ?
WHERE id = ?;
"""

_INSERT_CHUNK_SQL = """\
INSERT INTO knowledge_chunks (
    id, document_id, chunk_index, content, embedding, summary, page_number,
    token_count, char_count, chunk_type, semantic_score, created_at
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_SELECT_CHUNKS_SQL = """\
SELECT id, document_id, chunk_index, content, embedding, summary, page_number,
       token_count, char_count, chunk_type, semantic_score, created_at
FROM knowledge_chunks
WHERE document_id = ?
ORDER BY chunk_index ASC;
"""


async def initialize_schema(db_path: str | Path) -> None:
    """Create both tables and their indices if they don't exist."""
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    async with aiosqlite.connect(str(path)) as db:
        await db.execute(_CREATE_DOCUMENTS_SQL)
        await db.execute(_CREATE_CHUNKS_SQL)
        for idx_sql in _CREATE_INDICES_SQL:
            await db.execute(idx_sql)
        await db.commit()
    logger.info("knowledge_base_db_initialized", path=str(path))


class SQLiteDocumentStore(IDocumentStore):
    """SQLite-backed document persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        await initialize_schema(self._db_path)

    async def create(self, document: Document) -> Document:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(
                    _INSERT_DOCUMENT_SQL,
                    (
                        document.id,
                        document.subject_id,
                        document.processing.status.value,
                        int(document.is_active),
                        document.created_at.isoformat(),
                        document.model_dump_json(),
                    ),
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise PersistenceError(f"Failed to create document: {exc}", provider_name="sqlite") from exc
        return document

    async def get(self, document_id: str) -> Document | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute("SELECT payload FROM documents WHERE id = ?", (document_id,))
            row = await cursor.fetchone()
        if row is None:
            return None
        return Document.model_validate_json(row[0])

    async def update(self, document_id: str, patch: dict[str, Any]) -> Document:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(
                    "SELECT payload FROM documents WHERE id = ?", (document_id,)
                )
                row = await cursor.fetchone()
                if row is None:
                    raise DocumentNotFoundError(
                        f"Document {document_id} not found", provider_name="sqlite"
                    )
                current = Document.model_validate_json(row[0])
                updated = current.model_copy(
                    update={**patch, "updated_at": datetime.now(tz=timezone.utc)}  # noqa: UP017
                )
                await db.execute(
                    _UPDATE_DOCUMENT_SQL,
                    (
                        updated.subject_id,
                        updated.processing.status.value,
                        int(updated.is_active),
                        updated.model_dump_json(),
                        document_id,
                    ),
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise PersistenceError(f"Failed to update document: {exc}", provider_name="sqlite") from exc
        return updated

    async def list_documents(
        self,
        subject_id: str | None = None,
        status: ProcessingStatus | None = None,
        active_only: bool = True,
    ) -> list[Document]:
        clauses: list[str] = []
        params: list[Any] = []
        if subject_id is not None:
            clauses.append("subject_id = ?")
            params.append(subject_id)
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if active_only:
            clauses.append("is_active = 1")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                f"SELECT payload FROM documents {where} ORDER BY created_at DESC",  # noqa: S608
                params,
            )
            rows = await cursor.fetchall()
        return [Document.model_validate_json(r[0]) for r in rows]


class SQLiteChunkStore(IChunkStore):
    """SQLite-backed chunk persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        await initialize_schema(self._db_path)

    async def insert_many(self, chunks: list[KnowledgeChunk]) -> int:
        if not chunks:
            return 0
        async with aiosqlite.connect(str(self._db_path)) as db:
            try:
                await db.executemany(_INSERT_CHUNK_SQL, [_chunk_row(c) for c in chunks])
                await db.commit()
            except aiosqlite.Error as exc:
                await db.rollback()
                raise PersistenceError(f"Chunk batch insert failed: {exc}", provider_name="sqlite") from exc
        logger.debug("chunks_inserted", count=len(chunks))
        return len(chunks)

    async def find_by_document(self, document_id: str) -> list[KnowledgeChunk]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(_SELECT_CHUNKS_SQL, (document_id,))
            rows = await cursor.fetchall()
        return [_row_to_chunk(r) for r in rows]

    async def delete_by_document(self, document_id: str) -> int:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(
                    "DELETE FROM knowledge_chunks WHERE document_id = ?", (document_id,)
                )
                await db.commit()
                return cursor.rowcount
        except aiosqlite.Error as exc:
            raise PersistenceError(f"Chunk delete failed: {exc}", provider_name="sqlite") from exc

    async def replace_for_document(self, document_id: str, chunks: list[KnowledgeChunk]) -> int:
        if any(c.document_id != document_id for c in chunks):
            raise PersistenceError("Chunk batch contains rows for another document", provider_name="sqlite")
        async with aiosqlite.connect(str(self._db_path)) as db:
            try:
                await db.execute("DELETE FROM knowledge_chunks WHERE document_id = ?", (document_id,))
                if chunks:
                    await db.executemany(_INSERT_CHUNK_SQL, [_chunk_row(c) for c in chunks])
                await db.commit()
            except aiosqlite.Error as exc:
                await db.rollback()
                raise PersistenceError(f"Chunk replace failed: {exc}", provider_name="sqlite") from exc
        logger.debug("chunks_replaced", document_id=document_id, count=len(chunks))
        return len(chunks)


def _chunk_row(chunk: KnowledgeChunk) -> tuple:
    return (
        chunk.id,
        chunk.document_id,
        chunk.chunk_index,
        chunk.content,
        json.dumps(chunk.embedding),
        chunk.summary,
        chunk.page_number,
        chunk.token_count,
        chunk.char_count,
        chunk.chunk_type.value,
        chunk.semantic_score,
        chunk.created_at.isoformat(),
    )


def _row_to_chunk(row: aiosqlite.Row) -> KnowledgeChunk:
    return KnowledgeChunk(
        id=row["id"],
        document_id=row["document_id"],
        chunk_index=row["chunk_index"],
        content=row["content"],
        embedding=json.loads(row["embedding"]),
        summary=row["summary"],
        page_number=row["page_number"],
        token_count=row["token_count"],
        char_count=row["char_count"],
        chunk_type=ChunkType(row["chunk_type"]),
        semantic_score=row["semantic_score"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )
