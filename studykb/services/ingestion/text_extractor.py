"""Dispatches a stored document to its format-specific source processor.

Reads the binary from the blob store, then runs the processor for the
document's declared type.  The synchronous parsers (PyMuPDF, python-pptx,
python-docx) run in a worker thread so large files never block the event
loop.  Images go through OCR directly.

The extractor never runs OCR for embedded images; it only flags them with
``needs_ocr=True`` for the pipeline's OCR step.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

import structlog

from studykb.interfaces.blob_store import IBlobStore
from studykb.interfaces.ocr_provider import IOCRProvider
from studykb.models.document import Document, DocumentType
from studykb.models.extraction import ExtractedDocument
from studykb.services.ingestion.source_processors import (
    ImageProcessor,
    PDFProcessor,
    SlideDeckProcessor,
    WordProcessor,
)
from studykb.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)


class _SyncProcessor(Protocol):
    def process(self, data: bytes) -> ExtractedDocument: ...


class TextExtractor:
    """Turns a stored upload into per-page plain text plus metadata.

    Parameters
    ----------
    blob_store:
        Source of the raw bytes, keyed by ``document.storage_path`` (or the
        document id when no path was recorded).
    ocr:
        OCR engine used for image uploads.
    ocr_languages:
        Tesseract language string for image uploads.
    ocr_embedded_images:
        Flag images embedded in PDFs and slide decks for OCR.
    min_embedded_image_size:
        Minimum side length (px) of embedded PDF images worth OCR'ing.
    """

    def __init__(
        self,
        blob_store: IBlobStore,
        ocr: IOCRProvider,
        ocr_languages: str = "chi_sim+eng",
        ocr_embedded_images: bool = False,
        min_embedded_image_size: int = 64,
    ) -> None:
        self._blob_store = blob_store
        self._image_processor = ImageProcessor(ocr, languages=ocr_languages)
        self._processors: dict[DocumentType, _SyncProcessor] = {
            DocumentType.PDF: PDFProcessor(
                ocr_embedded_images=ocr_embedded_images,
                min_image_size=min_embedded_image_size,
            ),
            DocumentType.SLIDESHOW: SlideDeckProcessor(ocr_embedded_images=ocr_embedded_images),
            DocumentType.WORD_DOCUMENT: WordProcessor(),
        }

    async def extract(self, document: Document) -> ExtractedDocument:
        """Extract text from *document*'s stored binary.

        Raises
        ------
        ExtractionError
            If the binary is empty, unsupported or cannot be parsed.
        studykb.utils.errors.StorageError
            If the blob store cannot read the file.
        """
        key = document.storage_path or document.id
        data = await self._blob_store.read(key)
        if not data:
            raise ExtractionError(f"Stored file for document {document.id} is empty")

        if document.doc_type == DocumentType.IMAGE:
            extracted = await self._image_processor.process(data, ref=key)
        else:
            processor = self._processors.get(document.doc_type)
            if processor is None:
                raise ExtractionError(f"Unsupported file type: {document.doc_type}")
            try:
                extracted = await asyncio.to_thread(processor.process, data)
            except ExtractionError:
                raise
            except Exception as exc:
                raise ExtractionError(
                    f"{document.doc_type.value} extraction failed: {exc}"
                ) from exc

        logger.info(
            "text_extracted",
            document_id=document.id,
            doc_type=document.doc_type.value,
            pages=len(extracted.pages),
            chars=len(extracted.full_text),
            images_pending_ocr=sum(1 for i in extracted.images if i.needs_ocr),
        )
        return extracted
