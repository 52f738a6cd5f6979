"""Embedding similarity retrieval over persisted chunk vectors.

The question is embedded with the same provider used at ingestion time and
compared against every candidate chunk with cosine similarity.  Chunks at
or below the similarity threshold are dropped; the best ``top_k`` remain.
Candidates are the chunks of the explicitly selected documents, or of all
completed documents (optionally of one subject).
"""

from __future__ import annotations

import numpy as np
import structlog

from studykb.interfaces.document_store import IChunkStore, IDocumentStore
from studykb.interfaces.embedding_provider import IEmbeddingProvider
from studykb.models.chunk import KnowledgeChunk
from studykb.models.document import Document, ProcessingStatus
from studykb.models.rag import RetrievalResult, RetrievedChunk, SearchMethod
from studykb.services.retrieval.keyword_search import (
    RetrievalLimits,
    load_explicit_documents,
    to_retrieved,
)
from studykb.utils.errors import EmbeddingBatchError

logger = structlog.get_logger(logger_name=__name__)


def cosine_similarities(query: list[float], matrix: list[list[float]]) -> np.ndarray:
    """Cosine similarity of *query* against each row of *matrix*.

    Zero vectors score 0.0.
    """
    q = np.asarray(query, dtype=np.float64)
    m = np.asarray(matrix, dtype=np.float64)
    if m.ndim != 2 or m.shape[1] != q.shape[0]:
        raise EmbeddingBatchError(
            f"Query dimension {q.shape[0]} does not match stored vectors {m.shape}"
        )
    norms = np.linalg.norm(m, axis=1) * np.linalg.norm(q)
    dots = m @ q
    return np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)


class VectorSearcher:
    """Finds prompt chunks by embedding similarity."""

    def __init__(
        self,
        embedder: IEmbeddingProvider,
        document_store: IDocumentStore,
        chunk_store: IChunkStore,
        limits: RetrievalLimits | None = None,
    ) -> None:
        self._embedder = embedder
        self._documents = document_store
        self._chunks = chunk_store
        self._limits = limits or RetrievalLimits()

    async def search(
        self,
        question: str,
        subject_id: str | None = None,
        document_ids: list[str] | None = None,
    ) -> RetrievalResult:
        explicit = bool(document_ids)
        if explicit:
            documents = await load_explicit_documents(self._documents, document_ids or [])
        else:
            documents = await self._documents.list_documents(
                subject_id=subject_id, status=ProcessingStatus.COMPLETED
            )

        candidates: list[tuple[Document, KnowledgeChunk]] = []
        for document in documents:
            for chunk in await self._chunks.find_by_document(document.id):
                if chunk.embedding:
                    candidates.append((document, chunk))

        top_k = self._limits.chunk_cap(explicit)
        selected: list[RetrievedChunk] = []
        if candidates:
            query_vector = await self._embedder.embed_single(question)
            scores = cosine_similarities(query_vector, [c.embedding for _, c in candidates])
            ranked = sorted(range(len(candidates)), key=lambda i: float(scores[i]), reverse=True)
            for i in ranked:
                score = float(scores[i])
                if score <= self._limits.similarity_threshold or len(selected) >= top_k:
                    break
                document, chunk = candidates[i]
                selected.append(
                    to_retrieved(document, chunk, self._limits.max_chunk_chars, score=round(score, 4))
                )

        documents_found = len({c.document_id for c in selected})
        logger.info(
            "vector_search_complete",
            candidates=len(candidates),
            chunks_found=len(selected),
            documents_found=documents_found,
            threshold=self._limits.similarity_threshold,
        )
        return RetrievalResult(
            chunks=selected,
            keywords=[],
            documents_found=documents_found,
            search_method=SearchMethod.VECTOR,
        )
