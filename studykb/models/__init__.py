"""studykb domain models -- re-exports all public model classes.

Submodules by concern:
    - document.py    -- Document record, processing state, enums
    - extraction.py  -- transient per-page extraction output and OCR results
    - chunk.py       -- persisted knowledge chunks and chunker proposals
    - rag.py         -- retrieval results, grounded answers, LLM completions
"""

from __future__ import annotations

from studykb.models.chunk import (
    AI_CHUNK_SCORE,
    FALLBACK_CHUNK_SCORE,
    ChunkProposal,
    ChunkType,
    KnowledgeChunk,
)
from studykb.models.document import (
    Document,
    DocumentMetadata,
    DocumentType,
    ExtractedContentSummary,
    Language,
    ProcessingState,
    ProcessingStatus,
    ProcessingStep,
    UsageStats,
    Visibility,
)
from studykb.models.extraction import ExtractedDocument, ExtractedPage, OCRResult, PageImage
from studykb.models.rag import (
    AnswerMeta,
    ChunkStats,
    LLMCompletion,
    RAGAnswer,
    RetrievalResult,
    RetrievedChunk,
    SearchMethod,
    SourceReference,
    UsageInfo,
)

__all__ = [
    "AI_CHUNK_SCORE",
    "AnswerMeta",
    "ChunkProposal",
    "ChunkStats",
    "ChunkType",
    "Document",
    "DocumentMetadata",
    "DocumentType",
    "ExtractedContentSummary",
    "ExtractedDocument",
    "ExtractedPage",
    "FALLBACK_CHUNK_SCORE",
    "KnowledgeChunk",
    "LLMCompletion",
    "Language",
    "OCRResult",
    "PageImage",
    "ProcessingState",
    "ProcessingStatus",
    "ProcessingStep",
    "RAGAnswer",
    "RetrievalResult",
    "RetrievedChunk",
    "SearchMethod",
    "SourceReference",
    "UsageInfo",
    "UsageStats",
    "Visibility",
]
