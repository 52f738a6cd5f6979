"""Shared pytest fixtures for the studykb test suite."""

from __future__ import annotations

import hashlib
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from studykb.interfaces.embedding_provider import IEmbeddingProvider
from studykb.interfaces.llm_provider import ILLMProvider
from studykb.interfaces.ocr_provider import IOCRProvider
from studykb.models.document import Document, DocumentType
from studykb.models.extraction import ExtractedDocument, OCRResult
from studykb.models.rag import LLMCompletion
from studykb.pipeline.progress_tracker import ProgressTracker
from studykb.providers.cache.memory_cache import MemoryCacheProvider
from studykb.providers.storage.blob_store import MemoryBlobStore
from studykb.providers.storage.memory_store import MemoryChunkStore, MemoryDocumentStore
from studykb.services.ingestion.embedding_batcher import EmbeddingBatcher
from studykb.services.ingestion.ingestion_pipeline import IngestionPipeline
from studykb.services.ingestion.semantic_chunker import SemanticChunker
from studykb.utils.errors import EmbeddingBatchError, ExtractionError
from studykb.utils.tokens import TokenCounter

# ---------------------------------------------------------------------------
# Embedding fixtures
# ---------------------------------------------------------------------------

_EMBEDDING_DIM = 64


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Deterministic unit-length vector derived from SHA-256 of *text*."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    raw = digest
    while len(raw) < dim:
        raw += hashlib.sha256(raw).digest()
    values = [(b - 127.5) / 127.5 for b in raw[:dim]]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider.

    ``fail_on_call`` makes the n-th ``embed`` call (1-based) raise
    :class:`EmbeddingBatchError`.  ``vectors`` pins the vector for a text.
    """

    def __init__(
        self,
        fail_on_call: int | None = None,
        vectors: dict[str, list[float]] | None = None,
    ) -> None:
        self.calls: list[list[str]] = []
        self._fail_on_call = fail_on_call
        self._vectors = dict(vectors or {})

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self._fail_on_call is not None and len(self.calls) == self._fail_on_call:
            raise EmbeddingBatchError("embedding service unavailable", provider_name="mock-embedding")
        return [self._vectors.get(t) or _hash_to_vector(t) for t in texts]

    def get_dimension(self) -> int:
        return _EMBEDDING_DIM

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# OCR fixtures
# ---------------------------------------------------------------------------


class ScriptedOCRProvider(IOCRProvider):
    """Returns a scripted text (or raises a scripted error) per image payload."""

    def __init__(self, script: dict[bytes, str | Exception] | None = None) -> None:
        self.script = dict(script or {})
        self.calls: list[bytes] = []

    async def recognize(self, image_bytes: bytes, language_hints: str | None = None) -> OCRResult:
        self.calls.append(image_bytes)
        outcome = self.script.get(image_bytes, "")
        if isinstance(outcome, Exception):
            raise outcome
        return OCRResult(text=outcome, confidence=91.0 if outcome else 0.0, provider_used="scripted")

    def get_provider_name(self) -> str:
        return "scripted-ocr"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Extraction fixtures
# ---------------------------------------------------------------------------


class StubExtractor:
    """Stands in for TextExtractor: returns a prepared ExtractedDocument per document id."""

    def __init__(self) -> None:
        self.outputs: dict[str, ExtractedDocument | Exception] = {}
        self.calls: list[str] = []

    def set(self, document_id: str, outcome: ExtractedDocument | Exception) -> None:
        self.outputs[document_id] = outcome

    async def extract(self, document: Document) -> ExtractedDocument:
        self.calls.append(document.id)
        outcome = self.outputs.get(document.id)
        if outcome is None:
            raise ExtractionError(f"No stub output for {document.id}")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


# ---------------------------------------------------------------------------
# Provider fixtures
# ---------------------------------------------------------------------------


def completion(content: str, prompt_tokens: int = 120, completion_tokens: int = 80) -> LLMCompletion:
    return LLMCompletion(
        content=content,
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        cost=0.0012,
        model="mock-model",
        provider="mock-llm",
    )


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    """Mock ILLMProvider.

    Override with ``mock_llm_provider.complete.return_value = completion(...)``
    or ``.side_effect`` for specific tests.
    """
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.is_available.return_value = True
    mock.complete = AsyncMock(return_value=completion("not json"))
    return mock


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def ocr_provider() -> ScriptedOCRProvider:
    return ScriptedOCRProvider()


@pytest.fixture
def token_counter() -> TokenCounter:
    """Approximation-only counter (no tokenizer download in tests)."""
    return TokenCounter(use_tokenizer=False)


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def document_store() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture
def chunk_store() -> MemoryChunkStore:
    return MemoryChunkStore()


@pytest.fixture
def blob_store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def make_document() -> Callable[..., Document]:
    """Factory for Document records with sensible defaults."""

    def _make(**overrides: Any) -> Document:
        fields: dict[str, Any] = {
            "owner_id": "user-1",
            "title": "Lecture Notes",
            "doc_type": DocumentType.PDF,
        }
        fields.update(overrides)
        return Document(**fields)

    return _make


# ---------------------------------------------------------------------------
# Pipeline fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def stub_extractor() -> StubExtractor:
    return StubExtractor()


@pytest.fixture
def progress_tracker() -> ProgressTracker:
    return ProgressTracker()


@pytest.fixture
def pipeline_factory(
    document_store: MemoryDocumentStore,
    chunk_store: MemoryChunkStore,
    blob_store: MemoryBlobStore,
    stub_extractor: StubExtractor,
    ocr_provider: ScriptedOCRProvider,
    mock_llm_provider: ILLMProvider,
    mock_embedding_provider: MockEmbeddingProvider,
    token_counter: TokenCounter,
    progress_tracker: ProgressTracker,
) -> Callable[..., IngestionPipeline]:
    """Build an IngestionPipeline over in-memory stores and mocks.

    Keyword overrides: ``embedder``, ``batch_size``, ``llm``, ``extractor``.
    """

    def _build(
        embedder: IEmbeddingProvider | None = None,
        batch_size: int = 100,
        llm: ILLMProvider | None = None,
        extractor: Any = None,
    ) -> IngestionPipeline:
        chunker = SemanticChunker(
            llm=llm or mock_llm_provider,
            cache=MemoryCacheProvider(),
            token_counter=token_counter,
        )
        return IngestionPipeline(
            document_store=document_store,
            chunk_store=chunk_store,
            extractor=extractor or stub_extractor,
            ocr=ocr_provider,
            blob_store=blob_store,
            chunker=chunker,
            batcher=EmbeddingBatcher(embedder or mock_embedding_provider, batch_size=batch_size),
            progress_tracker=progress_tracker,
        )

    return _build
