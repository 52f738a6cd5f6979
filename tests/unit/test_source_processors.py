"""Unit tests for the PDF, slide-deck, word and image processors and TextExtractor.

Fixture files are built in memory with PyMuPDF, python-pptx, python-docx
and Pillow so no binary test data is checked in.
"""

from __future__ import annotations

import io
from datetime import datetime, timedelta, timezone

import docx
import fitz
import pytest
from PIL import Image
from pptx import Presentation
from pptx.util import Inches

from studykb.models.document import DocumentType
from studykb.services.ingestion.source_processors import (
    ImageProcessor,
    PDFProcessor,
    SlideDeckProcessor,
    WordProcessor,
)
from studykb.services.ingestion.source_processors.pdf_processor import parse_pdf_date
from studykb.services.ingestion.source_processors.slide_deck_processor import split_segments
from studykb.services.ingestion.text_extractor import TextExtractor
from studykb.utils.errors import ExtractionError, OCRError, StorageError
from tests.conftest import ScriptedOCRProvider


# ======================================================================
# Fixture builders
# ======================================================================


def _png(width: int = 120, height: int = 120, color: str = "white") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def _pdf(pages: list[str], image: bytes | None = None, author: str = "") -> bytes:
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text)
        if image is not None:
            page.insert_image(fitz.Rect(72, 120, 272, 320), stream=image)
    if author:
        doc.set_metadata({"author": author})
    data = doc.tobytes()
    doc.close()
    return data


def _pptx(slides: list[list[str]], picture_on: int | None = None) -> bytes:
    presentation = Presentation()
    blank = presentation.slide_layouts[6]
    for index, shapes in enumerate(slides):
        slide = presentation.slides.add_slide(blank)
        for n, text in enumerate(shapes):
            box = slide.shapes.add_textbox(Inches(1), Inches(1 + n), Inches(6), Inches(1))
            box.text_frame.text = text
        if picture_on == index:
            slide.shapes.add_picture(io.BytesIO(_png()), Inches(1), Inches(4))
    presentation.core_properties.author = "Prof. Ada"
    buffer = io.BytesIO()
    presentation.save(buffer)
    return buffer.getvalue()


def _docx(paragraphs: list[str], author: str = "") -> bytes:
    document = docx.Document()
    for text in paragraphs:
        document.add_paragraph(text)
    if author:
        document.core_properties.author = author
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


# ======================================================================
# PDF
# ======================================================================


class TestPDFProcessor:
    def test_one_record_per_page_including_blank(self) -> None:
        data = _pdf(["Newton's first law", "", "Second law F = ma"], author="Isaac")

        result = PDFProcessor().process(data)

        assert [p.page_number for p in result.pages] == [1, 2, 3]
        assert result.pages[0].text == "Newton's first law"
        assert result.pages[1].text == ""
        assert result.metadata.page_count == 3
        assert result.metadata.author == "Isaac"
        assert result.full_text == "Newton's first law\n\nSecond law F = ma"

    def test_embedded_images_flagged_when_enabled(self) -> None:
        data = _pdf(["Diagram page"], image=_png(200, 200))

        assert PDFProcessor().process(data).images == []

        images = PDFProcessor(ocr_embedded_images=True).process(data).images
        assert len(images) == 1
        assert images[0].needs_ocr is True
        assert images[0].data
        assert images[0].ref.startswith("page1-xref")

    def test_small_embedded_images_ignored(self) -> None:
        data = _pdf(["Bullet page"], image=_png(10, 10))
        assert PDFProcessor(ocr_embedded_images=True, min_image_size=64).process(data).images == []

    def test_garbage_bytes_raise(self) -> None:
        with pytest.raises(ExtractionError):
            PDFProcessor().process(b"definitely not a pdf")

    def test_password_protected_raises(self) -> None:
        doc = fitz.open()
        doc.new_page().insert_text((72, 72), "secret")
        data = doc.tobytes(encryption=fitz.PDF_ENCRYPT_AES_256, user_pw="pw", owner_pw="pw")
        doc.close()

        with pytest.raises(ExtractionError, match="password"):
            PDFProcessor().process(data)


class TestParsePdfDate:
    def test_with_offset(self) -> None:
        parsed = parse_pdf_date("D:20240115103000+08'00'")
        assert parsed == datetime(2024, 1, 15, 10, 30, tzinfo=timezone(timedelta(hours=8)))

    def test_utc_and_short_forms(self) -> None:
        assert parse_pdf_date("D:20240115Z") == datetime(2024, 1, 15, tzinfo=timezone.utc)
        assert parse_pdf_date("2023") == datetime(2023, 1, 1, tzinfo=timezone.utc)

    def test_negative_offset(self) -> None:
        parsed = parse_pdf_date("D:20240115103000-05'30'")
        assert parsed is not None
        assert parsed.utcoffset() == -timedelta(hours=5, minutes=30)

    @pytest.mark.parametrize("value", [None, "", "yesterday", "D:abc"])
    def test_invalid(self, value) -> None:
        assert parse_pdf_date(value) is None


# ======================================================================
# Slide decks
# ======================================================================


class TestSlideDeckProcessor:
    def test_slides_become_segments(self) -> None:
        data = _pptx([["Sorting", "Bubble sort\nInsertion sort"], ["Searching"]])

        result = SlideDeckProcessor().process(data)

        assert [p.text for p in result.pages] == [
            "Sorting\n\nBubble sort\nInsertion sort",
            "Searching",
        ]
        assert result.metadata.page_count == 2
        assert result.metadata.author == "Prof. Ada"

    def test_single_slide_falls_back_to_blank_lines(self) -> None:
        result = SlideDeckProcessor().process(_pptx([["Stacks", "Queues"]]))
        assert [p.text for p in result.pages] == ["Stacks", "Queues"]

    def test_pictures_stay_on_their_slide(self) -> None:
        data = _pptx([["Trees"], ["Graphs"]], picture_on=1)

        result = SlideDeckProcessor(ocr_embedded_images=True).process(data)

        assert result.pages[0].images == []
        assert len(result.pages[1].images) == 1
        assert result.pages[1].images[0].needs_ocr is True

    def test_pictures_ignored_when_disabled(self) -> None:
        data = _pptx([["Trees"], ["Graphs"]], picture_on=0)
        assert SlideDeckProcessor().process(data).images == []

    def test_picture_only_deck(self) -> None:
        data = _pptx([[]], picture_on=0)
        result = SlideDeckProcessor(ocr_embedded_images=True).process(data)
        assert len(result.pages) == 1
        assert result.pages[0].text == ""
        assert len(result.pages[0].images) == 1

    def test_garbage_bytes_raise(self) -> None:
        with pytest.raises(ExtractionError):
            SlideDeckProcessor().process(b"PK not really a zip")

    def test_split_segments(self) -> None:
        assert split_segments("a\n\n\nb\n\nc") == ["a", "b\n\nc"]
        assert split_segments("a\n\nb") == ["a", "b"]
        assert split_segments("   ") == []


# ======================================================================
# Word documents
# ======================================================================


class TestWordProcessor:
    def test_each_non_empty_line_is_a_segment(self) -> None:
        data = _docx(["Heading", "", "First paragraph.", "   ", "Second paragraph."], author="Ada")

        result = WordProcessor().process(data)

        assert [(p.page_number, p.text) for p in result.pages] == [
            (1, "Heading"),
            (2, "First paragraph."),
            (3, "Second paragraph."),
        ]
        assert result.full_text == "Heading\nFirst paragraph.\nSecond paragraph."
        assert result.metadata.author == "Ada"
        assert result.metadata.page_count == 3

    def test_garbage_bytes_raise(self) -> None:
        with pytest.raises(ExtractionError):
            WordProcessor().process(b"not a docx")


# ======================================================================
# Images
# ======================================================================


class TestImageProcessor:
    @pytest.mark.asyncio
    async def test_whole_image_is_one_page(self) -> None:
        ocr = ScriptedOCRProvider({b"photo": "  Mitochondria make ATP.  "})

        result = await ImageProcessor(ocr).process(b"photo", ref="doc-1")

        assert result.full_text == "Mitochondria make ATP."
        assert len(result.pages) == 1
        image = result.pages[0].images[0]
        assert image.ocr_text == "Mitochondria make ATP."
        assert image.confidence == 91.0
        assert image.needs_ocr is False

    @pytest.mark.asyncio
    async def test_ocr_failure_is_fatal(self) -> None:
        ocr = ScriptedOCRProvider({b"photo": OCRError("unreadable", provider_name="scripted-ocr")})

        with pytest.raises(ExtractionError, match="Image OCR failed"):
            await ImageProcessor(ocr).process(b"photo")


# ======================================================================
# TextExtractor dispatch
# ======================================================================


class TestTextExtractor:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("doc_type", "data", "expected"),
        [
            (DocumentType.PDF, _pdf(["Thermodynamics"]), "Thermodynamics"),
            (DocumentType.SLIDESHOW, _pptx([["Kinematics"]]), "Kinematics"),
            (DocumentType.WORD_DOCUMENT, _docx(["Optics"]), "Optics"),
        ],
    )
    async def test_dispatches_by_type(
        self, blob_store, ocr_provider, make_document, doc_type, data, expected
    ) -> None:
        document = make_document(doc_type=doc_type, storage_path="upload-1")
        await blob_store.put("upload-1", data)

        result = await TextExtractor(blob_store, ocr_provider).extract(document)

        assert result.pages[0].text == expected

    @pytest.mark.asyncio
    async def test_image_uses_ocr(self, blob_store, make_document) -> None:
        document = make_document(doc_type=DocumentType.IMAGE)
        await blob_store.put(document.id, b"scan")
        ocr = ScriptedOCRProvider({b"scan": "Cell division"})

        result = await TextExtractor(blob_store, ocr).extract(document)

        assert result.full_text == "Cell division"
        assert ocr.calls == [b"scan"]

    @pytest.mark.asyncio
    async def test_empty_blob_raises(self, blob_store, ocr_provider, make_document) -> None:
        document = make_document()
        await blob_store.put(document.id, b"")

        with pytest.raises(ExtractionError, match="empty"):
            await TextExtractor(blob_store, ocr_provider).extract(document)

    @pytest.mark.asyncio
    async def test_missing_blob_raises_storage_error(self, blob_store, ocr_provider, make_document) -> None:
        with pytest.raises(StorageError):
            await TextExtractor(blob_store, ocr_provider).extract(make_document())

    @pytest.mark.asyncio
    async def test_corrupt_file_raises(self, blob_store, ocr_provider, make_document) -> None:
        document = make_document(doc_type=DocumentType.WORD_DOCUMENT)
        await blob_store.put(document.id, b"corrupt")

        with pytest.raises(ExtractionError):
            await TextExtractor(blob_store, ocr_provider).extract(document)
