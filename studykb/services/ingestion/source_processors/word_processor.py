"""Source processor for Word (.docx) documents.

python-docx exposes the body as paragraphs; their text is joined with
single line breaks and segmented on those breaks, dropping empty lines.
Each non-empty line becomes one page record.
"""

from __future__ import annotations

import io
from datetime import datetime, timezone

import docx  # python-docx
import structlog

from studykb.models.document import DocumentMetadata
from studykb.models.extraction import ExtractedDocument, ExtractedPage
from studykb.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)  # noqa: UP017


class WordProcessor:
    def process(self, data: bytes) -> ExtractedDocument:
        """Parse *data* as a .docx document.

        Raises
        ------
        ExtractionError
            If the bytes are not a readable .docx file.
        """
        try:
            document = docx.Document(io.BytesIO(data))
        except Exception as exc:
            raise ExtractionError(f"Cannot open word document: {exc}", provider_name="python-docx") from exc

        raw_text = "\n".join(p.text for p in document.paragraphs)
        lines = [line.strip() for line in raw_text.split("\n") if line.strip()]
        pages = [ExtractedPage(page_number=i, text=line) for i, line in enumerate(lines, start=1)]

        props = document.core_properties
        metadata = DocumentMetadata(
            page_count=len(pages),
            author=(props.author or "").strip() or None,
            created_at=_as_utc(props.created),
            modified_at=_as_utc(props.modified),
        )
        logger.info("word_document_processed", paragraphs=len(document.paragraphs), segments=len(pages))
        return ExtractedDocument(full_text="\n".join(lines), pages=pages, metadata=metadata)
