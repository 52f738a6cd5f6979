"""Downstream facade of the knowledge base.

This is the only object the application layer (HTTP handlers, CLI) talks
to.  It owns no processing logic itself: uploads go to the blob and
document stores, ingestion is handed to the :class:`IngestionQueue`, and
questions go to the :class:`RetrievalEngine`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog

from studykb.interfaces.blob_store import IBlobStore
from studykb.interfaces.document_store import IChunkStore, IDocumentStore
from studykb.models.chunk import KnowledgeChunk
from studykb.models.document import (
    Document,
    DocumentType,
    ProcessingStatus,
    Visibility,
)
from studykb.models.rag import ChunkStats, RAGAnswer
from studykb.pipeline import status_machine
from studykb.pipeline.ingestion_queue import IngestionQueue
from studykb.pipeline.progress_tracker import ProgressTracker
from studykb.services.retrieval.retrieval_engine import RetrievalEngine
from studykb.utils.errors import (
    DocumentNotFoundError,
    ExtractionError,
    InvalidStatusTransitionError,
    PipelineError,
)

logger = structlog.get_logger(logger_name=__name__)


def document_type_for(content_type: str) -> DocumentType:
    """Map an upload's MIME type onto a :class:`DocumentType`.

    Raises
    ------
    ExtractionError
        If the type is not one the extractor supports.
    """
    mime = (content_type or "").lower()
    if mime == "application/pdf":
        return DocumentType.PDF
    if "presentation" in mime or mime == "application/vnd.ms-powerpoint":
        return DocumentType.SLIDESHOW
    if "wordprocessing" in mime or "msword" in mime:
        return DocumentType.WORD_DOCUMENT
    if mime.startswith("image/"):
        return DocumentType.IMAGE
    raise ExtractionError(f"Unsupported file type: {content_type or 'unknown'}")


class KnowledgeBaseService:
    """Upload, ingestion, status and question-answering entry points.

    Parameters
    ----------
    document_store, chunk_store, blob_store:
        Persistence backends shared with the ingestion pipeline.
    queue:
        Bounded ingestion queue feeding the pipeline.
    retrieval:
        Engine answering questions over completed documents.
    progress_tracker:
        Optional tracker for live progress listeners.
    """

    def __init__(
        self,
        document_store: IDocumentStore,
        chunk_store: IChunkStore,
        blob_store: IBlobStore,
        queue: IngestionQueue,
        retrieval: RetrievalEngine,
        progress_tracker: ProgressTracker | None = None,
    ) -> None:
        self._documents = document_store
        self._chunks = chunk_store
        self._blobs = blob_store
        self._queue = queue
        self._retrieval = retrieval
        self._progress = progress_tracker

    @property
    def queue(self) -> IngestionQueue:
        return self._queue

    @property
    def progress_tracker(self) -> ProgressTracker | None:
        return self._progress

    # ------------------------------------------------------------------
    # Upload and ingestion
    # ------------------------------------------------------------------

    async def register_document(
        self,
        owner_id: str,
        title: str,
        data: bytes,
        content_type: str,
        original_filename: str = "",
        subject_id: str | None = None,
        description: str = "",
        visibility: Visibility = Visibility.PRIVATE,
        tags: list[str] | None = None,
        enqueue: bool = True,
    ) -> Document:
        """Store an uploaded file, create its record and queue ingestion."""
        doc_type = document_type_for(content_type)
        document = Document(
            owner_id=owner_id,
            subject_id=subject_id,
            title=title,
            description=description,
            doc_type=doc_type,
            original_filename=original_filename,
            file_size=len(data),
            content_type=content_type,
            visibility=visibility,
            tags=list(tags or []),
        )
        storage_path = await self._blobs.put(document.id, data)
        document = await self._documents.create(
            document.model_copy(update={"storage_path": storage_path})
        )
        logger.info(
            "document_registered",
            document_id=document.id,
            doc_type=doc_type.value,
            size=len(data),
        )
        if enqueue:
            self.enqueue_ingestion(document.id)
        return document

    def enqueue_ingestion(self, document_id: str) -> bool:
        """Fire-and-forget admission of *document_id* to the pipeline.

        Returns ``False`` when the document is already queued or running.
        """
        return self._queue.enqueue(document_id)

    async def get_processing_status(self, document_id: str) -> dict[str, Any]:
        """Return ``status``, ``progress``, ``current_step``, ``message`` and ``error``."""
        document = await self._require(document_id)
        state = document.processing
        return {
            "document_id": document.id,
            "status": state.status.value,
            "progress": state.progress,
            "current_step": state.current_step.value,
            "message": state.message,
            "error": state.error,
        }

    async def reprocess_document(self, document_id: str) -> Document:
        """Reset a finished (or failed) document to pending and queue it again.

        The new run replaces the document's chunks when it saves.

        Raises
        ------
        InvalidStatusTransitionError
            If the document is currently processing.
        """
        document = await self._require(document_id)
        reset = status_machine.reset_for_reprocessing(document.processing)
        document = await self._documents.update(
            document_id, {"processing": reset, "extracted_content": None}
        )
        if self._progress is not None:
            await self._progress.update(document_id, reset)
        logger.info("document_reprocess_requested", document_id=document_id)
        self.enqueue_ingestion(document_id)
        return document

    # ------------------------------------------------------------------
    # Question answering
    # ------------------------------------------------------------------

    async def retrieve_and_answer(
        self,
        question: str,
        subject_id: str | None = None,
        document_ids: list[str] | None = None,
    ) -> RAGAnswer:
        return await self._retrieval.retrieve_and_answer(
            question, subject_id=subject_id, document_ids=document_ids
        )

    # ------------------------------------------------------------------
    # Document management
    # ------------------------------------------------------------------

    async def get_document(self, document_id: str) -> Document:
        return await self._require(document_id)

    async def list_documents(
        self,
        subject_id: str | None = None,
        status: ProcessingStatus | None = None,
    ) -> list[Document]:
        return await self._documents.list_documents(subject_id=subject_id, status=status)

    async def get_document_chunks(
        self, document_id: str
    ) -> tuple[list[KnowledgeChunk], ChunkStats]:
        """Return the document's chunks (embeddings stripped) and totals.

        Raises
        ------
        PipelineError
            If the document has not completed processing.
        """
        document = await self._require(document_id)
        if document.status != ProcessingStatus.COMPLETED:
            raise PipelineError(
                f"Document {document_id} is not processed yet (status: {document.status.value})"
            )
        chunks = [
            chunk.model_copy(update={"embedding": []})
            for chunk in await self._chunks.find_by_document(document_id)
        ]
        total_tokens = sum(chunk.token_count for chunk in chunks)
        stats = ChunkStats(
            total_chunks=len(chunks),
            avg_tokens=round(total_tokens / len(chunks)) if chunks else 0,
            total_tokens=total_tokens,
        )
        return chunks, stats

    async def delete_document(self, document_id: str) -> Document:
        """Soft-delete the document, drop its chunks and (best effort) its file.

        Raises
        ------
        InvalidStatusTransitionError
            If the document is currently processing.
        """
        document = await self._require(document_id)
        if document.status == ProcessingStatus.PROCESSING:
            raise InvalidStatusTransitionError(
                f"Document {document_id} is processing and cannot be deleted yet"
            )
        document = await self._documents.update(document_id, {"is_active": False})
        removed = await self._chunks.delete_by_document(document_id)
        try:
            await self._blobs.delete(document.storage_path or document.id)
        except Exception as exc:
            logger.warning("blob_delete_failed", document_id=document_id, error=str(exc))
        if self._progress is not None:
            self._progress.forget(document_id)
        logger.info("document_deleted", document_id=document_id, chunks_removed=removed)
        return document

    async def record_view(self, document_id: str) -> Document:
        """Increment the view counter and stamp the access time."""
        document = await self._require(document_id)
        stats = document.stats.model_copy(
            update={
                "view_count": document.stats.view_count + 1,
                "last_accessed_at": datetime.now(tz=timezone.utc),  # noqa: UP017
            }
        )
        return await self._documents.update(document_id, {"stats": stats})

    async def shutdown(self) -> None:
        await self._queue.stop()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _require(self, document_id: str) -> Document:
        document = await self._documents.get(document_id)
        if document is None or not document.is_active:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return document
