"""Source processor for image uploads (photos of notes, scanned handouts)."""

from __future__ import annotations

import structlog

from studykb.interfaces.ocr_provider import IOCRProvider
from studykb.models.document import DocumentMetadata
from studykb.models.extraction import ExtractedDocument, ExtractedPage, PageImage
from studykb.utils.errors import ExtractionError, OCRError

logger = structlog.get_logger(logger_name=__name__)


class ImageProcessor:
    """Transcribes a whole image into a single page record.

    The page carries one embedded-image entry holding the same OCR text and
    its confidence.  For an image upload OCR *is* the extraction, so an OCR
    failure is fatal here and surfaces as :class:`ExtractionError`.
    """

    def __init__(self, ocr: IOCRProvider, languages: str = "chi_sim+eng") -> None:
        self._ocr = ocr
        self._languages = languages

    async def process(self, data: bytes, ref: str = "") -> ExtractedDocument:
        try:
            result = await self._ocr.recognize(data, self._languages)
        except OCRError as exc:
            raise ExtractionError(
                f"Image OCR failed: {exc.message}", provider_name=exc.provider_name
            ) from exc

        text = result.text.strip()
        page = ExtractedPage(
            page_number=1,
            text=text,
            images=[PageImage(ref=ref, needs_ocr=False, ocr_text=text, confidence=result.confidence)],
        )
        logger.info("image_processed", chars=len(text), confidence=round(result.confidence, 2))
        return ExtractedDocument(
            full_text=text,
            pages=[page],
            metadata=DocumentMetadata(page_count=1),
        )
