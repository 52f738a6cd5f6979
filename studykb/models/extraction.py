"""Text-extraction models: the transient output of a source processor.

These records live only for the duration of one ingestion attempt; the
raw text is never persisted on the document.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from studykb.models.document import DocumentMetadata


class OCRResult(BaseModel):
    """Text recognised in one image."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=100.0)
    provider_used: str = ""


class PageImage(BaseModel):
    """An image embedded in a page, optionally awaiting OCR.

    ``data`` carries the raw bytes when the processor could pull them out
    of the file; otherwise the pipeline reads ``ref`` from the blob store.
    """

    model_config = ConfigDict(frozen=True)

    ref: str = Field(default="", description="Blob-store key or xref label.")
    needs_ocr: bool = False
    ocr_text: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=100.0)
    data: bytes | None = Field(default=None, exclude=True, repr=False)


class ExtractedPage(BaseModel):
    """Plain text of one page (or slide, or line segment) in reading order."""

    model_config = ConfigDict(frozen=True)

    page_number: int = Field(ge=1)
    text: str = ""
    images: list[PageImage] = Field(default_factory=list)


class ExtractedDocument(BaseModel):
    """Result of :meth:`TextExtractor.extract`."""

    model_config = ConfigDict(frozen=True)

    full_text: str = ""
    pages: list[ExtractedPage] = Field(default_factory=list)
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)

    @property
    def images(self) -> list[PageImage]:
        return [image for page in self.pages for image in page.images]
