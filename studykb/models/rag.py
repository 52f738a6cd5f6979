"""Retrieval-augmented generation models.

Query flow: question -> :class:`RetrievalResult` (chunks actually sent to
the model) -> prompt -> LLM -> :class:`RAGAnswer`.  ``RAGAnswer.sources``
is derived from the same ``RetrievedChunk`` list that built the prompt, so
citations can never reference a chunk the model did not see.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SearchMethod(str, Enum):  # noqa: UP042
    KEYWORD = "keyword"
    VECTOR = "vector"


class RetrievedChunk(BaseModel):
    """A chunk selected for the prompt, already truncated."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    title: str
    page_number: int = Field(ge=1)
    content: str
    chunk_index: int = Field(default=0, ge=0)
    score: float | None = Field(
        default=None, description="Cosine similarity (vector mode only)."
    )


class RetrievalResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    chunks: list[RetrievedChunk] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    documents_found: int = Field(default=0, ge=0)
    search_method: SearchMethod = SearchMethod.KEYWORD


class SourceReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    document_id: str
    title: str
    page_number: int


class UsageInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    tokens: int = Field(default=0, ge=0)
    cost: float = Field(default=0.0, ge=0.0, description="USD.")


class AnswerMeta(BaseModel):
    model_config = ConfigDict(frozen=True)

    keywords: list[str] = Field(default_factory=list)
    documents_found: int = 0
    chunks_found: int = 0
    search_method: SearchMethod = SearchMethod.KEYWORD


class RAGAnswer(BaseModel):
    """Grounded answer returned by ``retrieve_and_answer``."""

    model_config = ConfigDict(frozen=True)

    answer: str
    sources: list[SourceReference] = Field(default_factory=list)
    usage: UsageInfo = Field(default_factory=UsageInfo)
    meta: AnswerMeta = Field(default_factory=AnswerMeta)


class LLMCompletion(BaseModel):
    """Text returned by an LLM provider plus token usage and cost."""

    model_config = ConfigDict(frozen=True)

    content: str
    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)
    cost: float = Field(default=0.0, ge=0.0)
    model: str = ""
    provider: str = ""

    @property
    def tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class ChunkStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_chunks: int = 0
    avg_tokens: int = 0
    total_tokens: int = 0
