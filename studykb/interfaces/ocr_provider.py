"""Abstract base class for OCR service providers.

Defines the image -> text contract used for image uploads and for embedded
images flagged ``needs_ocr`` inside extracted pages.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from studykb.models.extraction import OCRResult


# Concrete implementation: TesseractOCRProvider (studykb/providers/ocr/)
class IOCRProvider(ABC):
    """Contract for OCR services."""

    @abstractmethod
    async def recognize(self, image_bytes: bytes, language_hints: str | None = None) -> OCRResult:
        """Run OCR on *image_bytes* and return the transcription.

        Parameters
        ----------
        image_bytes:
            Raw encoded image (PNG, JPEG, ...).
        language_hints:
            Engine language string such as ``"chi_sim+eng"``; ``None`` uses
            the provider default.

        Returns
        -------
        OCRResult
            Text plus mean confidence in ``[0, 100]``.

        Raises
        ------
        studykb.utils.errors.OCRError
            If the engine fails or times out.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"tesseract"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the engine binary/credentials are present."""
