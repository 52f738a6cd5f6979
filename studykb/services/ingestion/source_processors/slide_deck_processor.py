"""Source processor for PowerPoint (.pptx) slide decks.

python-pptx yields the text of every shape; slides are rendered into one
raw text where paragraphs within a shape are separated by one line break,
shapes by a blank line, and slides by a run of two blank lines.  That raw
text is then segmented on the blank-line run, falling back to single
blank lines when the larger separator yields only one segment.
"""

from __future__ import annotations

import io
from datetime import datetime, timezone

import structlog
from pptx import Presentation
from pptx.enum.shapes import MSO_SHAPE_TYPE

from studykb.models.document import DocumentMetadata
from studykb.models.extraction import ExtractedDocument, ExtractedPage, PageImage
from studykb.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

SLIDE_SEPARATOR = "\n\n\n"
PARAGRAPH_SEPARATOR = "\n\n"


def split_segments(raw_text: str) -> list[str]:
    """Split on blank-line runs, or on single blank lines if that yields one segment."""
    segments = [s.strip() for s in raw_text.split(SLIDE_SEPARATOR) if s.strip()]
    if len(segments) <= 1:
        segments = [s.strip() for s in raw_text.split(PARAGRAPH_SEPARATOR) if s.strip()]
    return segments


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)  # noqa: UP017


class SlideDeckProcessor:
    """Extracts slide text (and optionally pictures for OCR) from a .pptx file."""

    def __init__(self, ocr_embedded_images: bool = False) -> None:
        self._ocr_embedded_images = ocr_embedded_images

    def process(self, data: bytes) -> ExtractedDocument:
        """Parse *data* as a .pptx presentation.

        Raises
        ------
        ExtractionError
            If the bytes are not a readable presentation.
        """
        try:
            presentation = Presentation(io.BytesIO(data))
        except Exception as exc:
            raise ExtractionError(f"Cannot open presentation: {exc}", provider_name="python-pptx") from exc

        slide_texts: list[str] = []
        slide_images: list[list[PageImage]] = []
        for number, slide in enumerate(presentation.slides, start=1):
            shape_texts: list[str] = []
            images: list[PageImage] = []
            for shape in slide.shapes:
                if shape.has_text_frame:
                    text = "\n".join(
                        p.text.strip() for p in shape.text_frame.paragraphs if p.text.strip()
                    )
                    if text:
                        shape_texts.append(text)
                elif self._ocr_embedded_images and shape.shape_type == MSO_SHAPE_TYPE.PICTURE:
                    images.append(
                        PageImage(
                            ref=f"slide{number}-shape{shape.shape_id}",
                            needs_ocr=True,
                            data=shape.image.blob,
                        )
                    )
            slide_texts.append(PARAGRAPH_SEPARATOR.join(shape_texts))
            slide_images.append(images)

        raw_text = SLIDE_SEPARATOR.join(t for t in slide_texts if t)
        segments = split_segments(raw_text)

        pages = [
            ExtractedPage(page_number=i, text=segment)
            for i, segment in enumerate(segments, start=1)
        ]
        all_images = [image for images in slide_images for image in images]
        if all_images:
            # Pictures stay on their slide when segmentation is per slide.
            if pages and len(segments) == sum(1 for t in slide_texts if t):
                pages = self._attach_images(pages, slide_texts, slide_images)
            elif pages:
                pages[0] = pages[0].model_copy(update={"images": all_images})
            else:
                pages = [ExtractedPage(page_number=1, text="", images=all_images)]

        props = presentation.core_properties
        metadata = DocumentMetadata(
            page_count=len(pages),
            author=(props.author or "").strip() or None,
            created_at=_as_utc(props.created),
            modified_at=_as_utc(props.modified),
        )
        logger.info("slide_deck_processed", slides=len(slide_texts), segments=len(pages))
        return ExtractedDocument(full_text=raw_text.strip(), pages=pages, metadata=metadata)

    @staticmethod
    def _attach_images(
        pages: list[ExtractedPage],
        slide_texts: list[str],
        slide_images: list[list[PageImage]],
    ) -> list[ExtractedPage]:
        result: list[ExtractedPage] = []
        page_iter = iter(pages)
        pending: list[PageImage] = []
        for text, images in zip(slide_texts, slide_images):
            pending.extend(images)
            if not text:
                continue
            page = next(page_iter)
            result.append(page.model_copy(update={"images": pending}))
            pending = []
        if pending and result:
            last = result[-1]
            result[-1] = last.model_copy(update={"images": [*last.images, *pending]})
        return result
