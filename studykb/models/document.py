"""Document models for the studykb knowledge base.

A :class:`Document` is created once per uploaded study file (status
``pending``) and afterwards mutated only by the ingestion pipeline as it
advances through the processing steps.  All models are frozen; updates
produce new instances via ``model_copy(update={...})`` and are written back
through :class:`~studykb.interfaces.document_store.IDocumentStore`.

Lifecycle:
    upload -> PENDING -> PROCESSING (extracting / ocr / chunking / embedding /
    saving) -> COMPLETED, with FAILED reachable from any processing step.
    Deletion is soft (``is_active=False``).
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------
class DocumentType(str, Enum):  # noqa: UP042
    """Declared type of an uploaded file."""

    PDF = "pdf"
    SLIDESHOW = "pptx"
    WORD_DOCUMENT = "docx"
    IMAGE = "image"


class ProcessingStatus(str, Enum):  # noqa: UP042
    """Top-level ingestion state.  Legal moves live in pipeline/status_machine.py."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ProcessingStep(str, Enum):  # noqa: UP042
    """Fine-grained step reported while a document is processing."""

    UPLOADING = "uploading"
    EXTRACTING = "extracting"
    OCR = "ocr"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    SAVING = "saving"
    COMPLETED = "completed"
    FAILED = "failed"


class Visibility(str, Enum):  # noqa: UP042
    PRIVATE = "private"
    SUBJECT = "subject"
    PUBLIC = "public"


class Language(str, Enum):  # noqa: UP042
    """Output of the language detector."""

    CHINESE = "zh"
    ENGLISH = "en"
    MIXED = "mixed"
    NONE = "none"


# ---------------------------------------------------------------------------
# Sub-records
# ---------------------------------------------------------------------------
class DocumentMetadata(BaseModel):
    """Properties read from the file plus corpus statistics.

    ``word_count`` and ``language`` are written as soon as the corpus is
    assembled, so they survive a later failure in the same attempt.
    """

    model_config = ConfigDict(frozen=True)

    page_count: int = Field(default=0, ge=0)
    author: str | None = None
    created_at: datetime | None = Field(
        default=None, description="Creation date from the file's properties."
    )
    modified_at: datetime | None = Field(
        default=None, description="Modification date from the file's properties."
    )
    word_count: int = Field(default=0, ge=0)
    language: Language | None = None


class ExtractedContentSummary(BaseModel):
    """Compact record kept after ingestion in place of the raw text.

    Set when an ingestion attempt completes; cleared when the document is
    queued for reprocessing.
    """

    model_config = ConfigDict(frozen=True)

    page_count: int = Field(default=0, ge=0)
    total_chunks: int = Field(default=0, ge=0)
    avg_tokens_per_chunk: int = Field(default=0, ge=0)
    word_count: int = Field(default=0, ge=0)
    language: Language | None = None


class ProcessingState(BaseModel):
    """Snapshot of a document's ingestion progress."""

    model_config = ConfigDict(frozen=True)

    status: ProcessingStatus = ProcessingStatus.PENDING
    progress: int = Field(default=0, ge=0, le=100, description="Percent complete.")
    current_step: ProcessingStep = ProcessingStep.UPLOADING
    message: str = ""
    error: str | None = Field(
        default=None, description='Failure detail as "<Category>: <message>".'
    )
    started_at: datetime | None = None
    completed_at: datetime | None = None


class UsageStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    view_count: int = Field(default=0, ge=0)
    last_accessed_at: datetime | None = None


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------
class Document(BaseModel):
    """One uploaded study file and its ingestion state."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    owner_id: str
    subject_id: str | None = None

    title: str
    description: str = ""
    doc_type: DocumentType
    original_filename: str = ""
    storage_path: str = Field(default="", description="Blob-store key or path.")
    file_size: int = Field(default=0, ge=0)
    content_type: str = ""

    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    extracted_content: ExtractedContentSummary | None = None
    processing: ProcessingState = Field(default_factory=ProcessingState)

    visibility: Visibility = Visibility.PRIVATE
    shared_with: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)

    stats: UsageStats = Field(default_factory=UsageStats)
    is_active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def status(self) -> ProcessingStatus:
        return self.processing.status

    def can_access(self, user_id: str) -> bool:
        """Return ``True`` if *user_id* owns, is shared on, or the file is public.

        Subject-scoped visibility depends on subject membership, which lives
        outside this library; callers check it themselves.
        """
        if self.owner_id == user_id:
            return True
        if self.visibility == Visibility.PUBLIC:
            return True
        return user_id in self.shared_with
