"""Keyword-gated retrieval over persisted chunks.

Document scope
    * explicit ``document_ids``: exactly those documents, in caller order
      (missing, deleted or unfinished documents are skipped, no relevance
      ranking);
    * otherwise: completed documents (optionally of one subject) ranked by
      keyword hits in title, description and chunk text, top N kept.  With
      no keywords the most recent documents are used.

Chunk selection walks the scoped documents in order and their chunks in
reading order, keeping chunks with substantive content that pass the
relevance gate (skipped for explicit selection) until the global cap is
reached.  Kept content is truncated before it reaches the prompt.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from studykb.interfaces.document_store import IChunkStore, IDocumentStore
from studykb.models.chunk import KnowledgeChunk
from studykb.models.document import Document, ProcessingStatus
from studykb.models.rag import RetrievalResult, RetrievedChunk, SearchMethod
from studykb.services.retrieval.keywords import is_relevant, keyword_hits

logger = structlog.get_logger(logger_name=__name__)

MAX_CHUNK_CHARS = 1500

_TITLE_WEIGHT = 3
_DESCRIPTION_WEIGHT = 2


@dataclass(frozen=True)
class RetrievalLimits:
    """Numeric knobs shared by keyword and vector retrieval."""

    top_documents: int = 3
    max_chunks: int = 5
    max_chunks_selected: int = 10
    min_chunk_chars: int = 50
    max_chunk_chars: int = MAX_CHUNK_CHARS
    max_keywords: int = 8
    similarity_threshold: float = 0.6

    def chunk_cap(self, explicit: bool) -> int:
        return self.max_chunks_selected if explicit else self.max_chunks


def to_retrieved(
    document: Document, chunk: KnowledgeChunk, max_chars: int, score: float | None = None
) -> RetrievedChunk:
    return RetrievedChunk(
        document_id=document.id,
        title=document.title,
        page_number=chunk.display_page,
        content=chunk.content[:max_chars],
        chunk_index=chunk.chunk_index,
        score=score,
    )


async def load_explicit_documents(
    document_store: IDocumentStore, document_ids: list[str]
) -> list[Document]:
    """Return the active, completed documents among *document_ids*, in caller order."""
    documents: list[Document] = []
    seen: set[str] = set()
    for document_id in document_ids:
        if document_id in seen:
            continue
        seen.add(document_id)
        document = await document_store.get(document_id)
        if document is None or not document.is_active:
            logger.warning("retrieval_document_skipped", document_id=document_id, reason="missing")
            continue
        if document.status != ProcessingStatus.COMPLETED:
            logger.warning(
                "retrieval_document_skipped",
                document_id=document_id,
                reason=document.status.value,
            )
            continue
        documents.append(document)
    return documents


class KeywordSearcher:
    """Finds prompt chunks by keyword relevance."""

    def __init__(
        self,
        document_store: IDocumentStore,
        chunk_store: IChunkStore,
        limits: RetrievalLimits | None = None,
    ) -> None:
        self._documents = document_store
        self._chunks = chunk_store
        self._limits = limits or RetrievalLimits()

    async def search(
        self,
        keywords: list[str],
        subject_id: str | None = None,
        document_ids: list[str] | None = None,
    ) -> RetrievalResult:
        explicit = bool(document_ids)
        cache: dict[str, list[KnowledgeChunk]] = {}
        if explicit:
            documents = await load_explicit_documents(self._documents, document_ids or [])
        else:
            documents = await self._rank_documents(keywords, subject_id, cache)

        limits = self._limits
        cap = limits.chunk_cap(explicit)
        selected: list[RetrievedChunk] = []
        for document in documents:
            if len(selected) >= cap:
                break
            chunks = cache.get(document.id)
            if chunks is None:
                chunks = await self._chunks.find_by_document(document.id)
            for chunk in chunks:
                if len(selected) >= cap:
                    break
                if len(chunk.content.strip()) <= limits.min_chunk_chars:
                    continue
                if explicit or not keywords or is_relevant(chunk.content, keywords):
                    selected.append(to_retrieved(document, chunk, limits.max_chunk_chars))

        logger.info(
            "keyword_search_complete",
            keywords=keywords,
            explicit=explicit,
            documents_found=len(documents),
            chunks_found=len(selected),
        )
        return RetrievalResult(
            chunks=selected,
            keywords=keywords,
            documents_found=len(documents),
            search_method=SearchMethod.KEYWORD,
        )

    async def _rank_documents(
        self,
        keywords: list[str],
        subject_id: str | None,
        cache: dict[str, list[KnowledgeChunk]],
    ) -> list[Document]:
        candidates = await self._documents.list_documents(
            subject_id=subject_id, status=ProcessingStatus.COMPLETED
        )
        top = self._limits.top_documents
        if not keywords:
            return candidates[:top]

        scored: list[tuple[int, Document]] = []
        for document in candidates:
            chunks = await self._chunks.find_by_document(document.id)
            cache[document.id] = chunks
            score = (
                _TITLE_WEIGHT * len(keyword_hits(document.title, keywords))
                + _DESCRIPTION_WEIGHT * len(keyword_hits(document.description or "", keywords))
                + sum(len(keyword_hits(chunk.content, keywords)) for chunk in chunks)
            )
            if score > 0:
                scored.append((score, document))
        # Stable sort keeps newest-first order among equal scores.
        scored.sort(key=lambda item: item[0], reverse=True)
        return [document for _, document in scored[:top]]
