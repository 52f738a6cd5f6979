"""Retrieval-augmented answering over the knowledge base.

    question ──> retrieve() ──> RetrievalResult (chunks already truncated)
                                    │
                                    ├──> build_prompt() ──> LLM ──> answer
                                    └──> sources[]  (same chunk list, same order)

Vector mode embeds the question and ranks chunk vectors; any failure in
that path (embedding API down, dimension mismatch, store error) falls back
to keyword retrieval so the student still gets an answer.
"""

from __future__ import annotations

import structlog

from studykb.interfaces.document_store import IChunkStore, IDocumentStore
from studykb.interfaces.embedding_provider import IEmbeddingProvider
from studykb.interfaces.llm_provider import ILLMProvider
from studykb.models.rag import (
    AnswerMeta,
    RAGAnswer,
    RetrievalResult,
    SearchMethod,
    SourceReference,
    UsageInfo,
)
from studykb.services.retrieval.keyword_search import KeywordSearcher, RetrievalLimits
from studykb.services.retrieval.keywords import extract_keywords
from studykb.services.retrieval.prompt_builder import SYSTEM_PROMPT, build_prompt
from studykb.services.retrieval.vector_search import VectorSearcher
from studykb.utils.errors import ConfigurationError, RetrievalUpstreamError

logger = structlog.get_logger(logger_name=__name__)


class RetrievalEngine:
    """Selects source chunks for a question and produces a cited answer.

    Parameters
    ----------
    document_store, chunk_store:
        Read access to documents and their persisted chunks.
    llm:
        Completion provider for the final answer.
    embedder:
        Embedding provider; required when *mode* is ``vector``.
    mode:
        Primary search method.
    limits:
        Document/chunk caps, truncation length and similarity threshold.
    temperature, max_tokens:
        Answer generation parameters.
    """

    def __init__(
        self,
        document_store: IDocumentStore,
        chunk_store: IChunkStore,
        llm: ILLMProvider,
        embedder: IEmbeddingProvider | None = None,
        mode: SearchMethod = SearchMethod.KEYWORD,
        limits: RetrievalLimits | None = None,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> None:
        self._limits = limits or RetrievalLimits()
        self._llm = llm
        self._mode = SearchMethod(mode)
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._keyword = KeywordSearcher(document_store, chunk_store, self._limits)
        self._vector: VectorSearcher | None = None
        if self._mode == SearchMethod.VECTOR:
            if embedder is None:
                raise ConfigurationError("Vector retrieval requires an embedding provider")
            self._vector = VectorSearcher(embedder, document_store, chunk_store, self._limits)

    @property
    def mode(self) -> SearchMethod:
        return self._mode

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def retrieve(
        self,
        question: str,
        subject_id: str | None = None,
        document_ids: list[str] | None = None,
    ) -> RetrievalResult:
        """Return the chunks to ground an answer to *question* on."""
        document_ids = list(document_ids or [])
        if self._vector is not None:
            try:
                return await self._vector.search(question, subject_id, document_ids)
            except Exception as exc:
                logger.warning(
                    "vector_search_fallback",
                    error=f"{type(exc).__name__}: {exc}",
                )

        keywords = extract_keywords(question, self._limits.max_keywords)
        return await self._keyword.search(keywords, subject_id, document_ids)

    async def retrieve_and_answer(
        self,
        question: str,
        subject_id: str | None = None,
        document_ids: list[str] | None = None,
    ) -> RAGAnswer:
        """Retrieve sources, ask the LLM and return the cited answer.

        Raises
        ------
        RetrievalUpstreamError
            If the answer completion fails.
        """
        result = await self.retrieve(question, subject_id, document_ids)
        prompt = build_prompt(question, result.chunks)

        try:
            completion = await self._llm.complete(
                system_prompt=SYSTEM_PROMPT,
                user_prompt=prompt,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        except Exception as exc:
            raise RetrievalUpstreamError(
                f"Answer generation failed: {exc}",
                provider_name=self._llm.get_provider_name(),
            ) from exc

        sources = [
            SourceReference(
                document_id=chunk.document_id,
                title=chunk.title,
                page_number=chunk.page_number,
            )
            for chunk in result.chunks
        ]
        logger.info(
            "retrieval_complete",
            search_method=result.search_method.value,
            documents_found=result.documents_found,
            chunks_found=len(result.chunks),
            prompt_chars=len(prompt),
            tokens=completion.tokens,
        )
        return RAGAnswer(
            answer=completion.content,
            sources=sources,
            usage=UsageInfo(tokens=completion.tokens, cost=completion.cost),
            meta=AnswerMeta(
                keywords=result.keywords,
                documents_found=result.documents_found,
                chunks_found=len(result.chunks),
                search_method=result.search_method,
            ),
        )
