"""Custom exception hierarchy for studykb.

All application exceptions inherit from :class:`KnowledgeBaseError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "tesseract", "sqlite") caused the failure.

The hierarchy is organized by failure domain:

    KnowledgeBaseError  (base -- catch-all for any studykb error)
    +-- ExtractionError              (fatal: unreadable or unsupported binary)
    +-- OCRError                     (non-fatal: isolated to a single image)
    +-- ChunkingDegradation          (non-fatal: AI chunking fell back)
    +-- EmbeddingBatchError          (fatal: any embedding batch failed)
    +-- PersistenceError             (fatal: chunk/document write failed)
    +-- StorageError                 (fatal: blob store read/delete failed)
    +-- LLMError                     (any completion API call failure)
    +-- RetrievalUpstreamError       (answer generation failed during retrieval)
    +-- PipelineError                (orchestration failures)
    |   +-- InvalidStatusTransitionError
    +-- DocumentNotFoundError        (unknown or deleted document id)
    +-- ConfigurationError           (startup / missing config)

The ingestion pipeline records a failed document's error as
``"<ClassName>: <message>"``, so the class name doubles as the error
category shown to users.
"""


class KnowledgeBaseError(Exception):
    """Base exception for all studykb errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    @property
    def category(self) -> str:
        """Short error category recorded in a document's processing status."""
        return type(self).__name__

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Ingestion errors
# ---------------------------------------------------------------------------

class ExtractionError(KnowledgeBaseError):
    """Raised when a stored binary cannot be parsed (corrupt or unsupported)."""

    def __init__(
        self,
        message: str = "Text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class OCRError(KnowledgeBaseError):
    """Raised when the OCR engine fails on a single image."""

    def __init__(
        self,
        message: str = "OCR recognition failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ChunkingDegradation(KnowledgeBaseError):
    """Signals that AI chunking failed and the deterministic splitter took over.

    Raised and caught inside the chunker; it never reaches the pipeline.
    """

    def __init__(
        self,
        message: str = "AI chunking unavailable, using fallback splitter",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingBatchError(KnowledgeBaseError):
    """Raised when any batch of an embedding run fails."""

    def __init__(
        self,
        message: str = "Embedding batch failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PersistenceError(KnowledgeBaseError):
    """Raised when a chunk or document write fails."""

    def __init__(
        self,
        message: str = "Persistence operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StorageError(KnowledgeBaseError):
    """Raised when the blob store cannot read or delete a stored file."""

    def __init__(
        self,
        message: str = "Blob storage operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# LLM / retrieval errors
# ---------------------------------------------------------------------------

class LLMError(KnowledgeBaseError):
    """Raised when an LLM API call fails or returns an unusable response."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RetrievalUpstreamError(KnowledgeBaseError):
    """Raised when the grounded-answer completion fails during retrieval.

    Request-level only: retrieval never changes document state.
    """

    def __init__(
        self,
        message: str = "Answer generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Orchestration / configuration errors
# ---------------------------------------------------------------------------

class PipelineError(KnowledgeBaseError):
    """Raised when pipeline orchestration fails."""

    def __init__(
        self,
        message: str = "Pipeline orchestration failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class InvalidStatusTransitionError(PipelineError):
    """Raised when a processing-status change is not in the transition table."""

    def __init__(
        self,
        message: str = "Invalid processing status transition",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DocumentNotFoundError(KnowledgeBaseError):
    """Raised when a document id is unknown or the document was deleted."""

    def __init__(
        self,
        message: str = "Document not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(KnowledgeBaseError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
