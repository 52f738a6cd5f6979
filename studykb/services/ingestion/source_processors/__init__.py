"""Format-specific source processors.

Each processor turns the raw bytes of one uploaded file into an
:class:`~studykb.models.extraction.ExtractedDocument`:

    - PDFProcessor        -- PyMuPDF, one page record per PDF page
    - SlideDeckProcessor  -- python-pptx, blank-line-run segmentation
    - WordProcessor       -- python-docx, one record per non-empty line
    - ImageProcessor      -- OCR of the whole image (async)

Unreadable input raises :class:`~studykb.utils.errors.ExtractionError`.
"""

from studykb.services.ingestion.source_processors.image_processor import ImageProcessor
from studykb.services.ingestion.source_processors.pdf_processor import PDFProcessor
from studykb.services.ingestion.source_processors.slide_deck_processor import SlideDeckProcessor
from studykb.services.ingestion.source_processors.word_processor import WordProcessor

__all__ = ["ImageProcessor", "PDFProcessor", "SlideDeckProcessor", "WordProcessor"]
