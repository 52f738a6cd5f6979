"""OCR provider adapters."""

from studykb.providers.ocr.tesseract_provider import TesseractOCRProvider

__all__ = ["TesseractOCRProvider"]
