"""Chunk models: the persisted, embedded unit of the knowledge base.

``KnowledgeChunk`` rows are bulk-created once per successful ingestion pass
and never updated; reprocessing replaces them wholesale.  Indices for a
document are contiguous from 0 in reading order.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ChunkType(str, Enum):  # noqa: UP042
    PARAGRAPH = "paragraph"
    SECTION = "section"
    SEMANTIC = "semantic"


# Quality scores assigned by the chunker.
AI_CHUNK_SCORE = 1.0
FALLBACK_CHUNK_SCORE = 0.8


class ChunkProposal(BaseModel):
    """One chunk suggested by the semantic chunker, before embedding.

    Also the value type stored in the chunking cache.
    """

    model_config = ConfigDict(frozen=True)

    content: str
    summary: str | None = None
    chunk_type: ChunkType = ChunkType.SEMANTIC
    semantic_score: float = Field(default=AI_CHUNK_SCORE, ge=0.0, le=1.0)


class KnowledgeChunk(BaseModel):
    """A persisted chunk with its embedding vector."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    document_id: str
    content: str
    embedding: list[float] = Field(default_factory=list, repr=False)
    summary: str | None = None

    page_number: int | None = Field(default=None, ge=1)
    chunk_index: int = Field(ge=0, description="0-based position in reading order.")
    token_count: int = Field(default=0, ge=0)
    char_count: int = Field(default=0, ge=0)
    chunk_type: ChunkType = ChunkType.SEMANTIC
    semantic_score: float = Field(default=AI_CHUNK_SCORE, ge=0.0, le=1.0)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )

    @property
    def display_page(self) -> int:
        """Source page, or ``chunk_index + 1`` when the page is unknown."""
        return self.page_number if self.page_number is not None else self.chunk_index + 1
