"""Source processor for PDF files.

Reads the PDF from memory with PyMuPDF (fitz) and returns one page record
per PDF page, including pages without a text layer.  Document properties
supply author and creation/modification dates when present.

With ``ocr_embedded_images`` enabled, raster images embedded in a page are
attached to that page's record with ``needs_ocr=True`` and their raw bytes,
so the pipeline's OCR step can transcribe scanned pages and figures.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from studykb.models.document import DocumentMetadata
from studykb.models.extraction import ExtractedDocument, ExtractedPage, PageImage
from studykb.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

# "D:YYYYMMDDHHmmSS" followed by an optional "Z" or "+HH'mm'" offset.
_PDF_DATE = re.compile(
    r"^D?:?(?P<ts>\d{4}(?:\d{2}){0,5})(?P<tz>Z|[+-]\d{2}'?\d{2}'?)?"
)
_TS_FORMATS = {
    4: "%Y",
    6: "%Y%m",
    8: "%Y%m%d",
    10: "%Y%m%d%H",
    12: "%Y%m%d%H%M",
    14: "%Y%m%d%H%M%S",
}


def parse_pdf_date(value: str | None) -> datetime | None:
    """Parse a PDF date string such as ``D:20240115103000+08'00'``.

    Returns ``None`` for empty or malformed values.
    """
    if not value:
        return None
    match = _PDF_DATE.match(value.strip())
    if not match:
        return None
    ts = match.group("ts")
    try:
        parsed = datetime.strptime(ts, _TS_FORMATS[len(ts)])
    except (KeyError, ValueError):
        return None

    tz = match.group("tz")
    if not tz or tz == "Z":
        return parsed.replace(tzinfo=timezone.utc)  # noqa: UP017
    digits = tz[1:].replace("'", "")
    offset = timedelta(hours=int(digits[:2]), minutes=int(digits[2:4] or 0))
    if tz[0] == "-":
        offset = -offset
    return parsed.replace(tzinfo=timezone(offset))


class PDFProcessor:
    """Extracts per-page text (and optionally embedded images) from a PDF.

    Parameters
    ----------
    ocr_embedded_images:
        Flag embedded raster images for OCR.
    min_image_size:
        Embedded images smaller than this on either side are ignored
        (bullets, logos, rules).
    """

    def __init__(self, ocr_embedded_images: bool = False, min_image_size: int = 64) -> None:
        self._ocr_embedded_images = ocr_embedded_images
        self._min_image_size = min_image_size

    def process(self, data: bytes) -> ExtractedDocument:
        """Parse *data* as a PDF.

        Raises
        ------
        ExtractionError
            If the bytes are not a readable PDF or it is password protected.
        """
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            raise ExtractionError(f"Cannot open PDF: {exc}", provider_name="pymupdf") from exc

        try:
            if doc.needs_pass:
                raise ExtractionError("PDF is password protected", provider_name="pymupdf")

            pages: list[ExtractedPage] = []
            for index, page in enumerate(doc):
                images = self._embedded_images(doc, page, index + 1) if self._ocr_embedded_images else []
                pages.append(
                    ExtractedPage(
                        page_number=index + 1,
                        text=page.get_text("text").strip(),
                        images=images,
                    )
                )

            props = doc.metadata or {}
            metadata = DocumentMetadata(
                page_count=doc.page_count,
                author=(props.get("author") or "").strip() or None,
                created_at=parse_pdf_date(props.get("creationDate")),
                modified_at=parse_pdf_date(props.get("modDate")),
            )
        except ExtractionError:
            raise
        except Exception as exc:
            raise ExtractionError(f"Failed to read PDF pages: {exc}", provider_name="pymupdf") from exc
        finally:
            doc.close()

        full_text = "\n\n".join(p.text for p in pages if p.text)
        logger.info(
            "pdf_processed",
            pages=len(pages),
            chars=len(full_text),
            images=sum(len(p.images) for p in pages),
        )
        return ExtractedDocument(full_text=full_text, pages=pages, metadata=metadata)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _embedded_images(self, doc: fitz.Document, page: fitz.Page, page_number: int) -> list[PageImage]:
        images: list[PageImage] = []
        seen: set[int] = set()
        for info in page.get_images(full=True):
            xref = info[0]
            if xref in seen:
                continue
            seen.add(xref)
            try:
                extracted = doc.extract_image(xref)
            except Exception as exc:  # noqa: BLE001
                logger.warning("pdf_image_extract_failed", page=page_number, xref=xref, error=str(exc))
                continue
            if not extracted:
                continue
            if min(extracted.get("width", 0), extracted.get("height", 0)) < self._min_image_size:
                continue
            images.append(
                PageImage(
                    ref=f"page{page_number}-xref{xref}",
                    needs_ocr=True,
                    data=extracted["image"],
                )
            )
        return images
