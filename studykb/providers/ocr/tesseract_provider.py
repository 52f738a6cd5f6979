"""Tesseract OCR provider for study-material images.

Wraps pytesseract.  Images are normalised with Pillow (RGB or grayscale,
small images upscaled) and recognised with ``image_to_data`` so one pass
yields both the text and per-word confidences.  The blocking call runs in
a worker thread via ``asyncio.to_thread`` and is bounded by a timeout.
"""

from __future__ import annotations

import asyncio
import io
import time

import pytesseract
from PIL import Image

from studykb.interfaces.ocr_provider import IOCRProvider
from studykb.models.extraction import OCRResult
from studykb.utils.errors import OCRError
from studykb.utils.logging import get_logger


class TesseractOCRProvider(IOCRProvider):
    """OCR provider backed by Google Tesseract via pytesseract.

    Parameters
    ----------
    languages:
        Default Tesseract language string, e.g. ``"chi_sim+eng"``.
    timeout_seconds:
        Upper bound on one recognition call.
    page_segmentation_mode:
        Tesseract ``--psm`` value (3 = fully automatic).
    grayscale:
        Convert to single-channel before recognition.
    upscale_min_width:
        Images narrower than this are upscaled proportionally.
    """

    def __init__(
        self,
        languages: str = "chi_sim+eng",
        timeout_seconds: float = 30.0,
        page_segmentation_mode: int = 3,
        grayscale: bool = True,
        upscale_min_width: int = 1000,
    ) -> None:
        self._languages = languages
        self._timeout = timeout_seconds
        self._psm = page_segmentation_mode
        self._grayscale = grayscale
        self._upscale_min_width = upscale_min_width
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # IOCRProvider interface
    # ------------------------------------------------------------------

    async def recognize(self, image_bytes: bytes, language_hints: str | None = None) -> OCRResult:
        """Recognise the text in *image_bytes*."""
        if not image_bytes:
            raise OCRError("No image data provided", provider_name=self.get_provider_name())

        languages = language_hints or self._languages
        start = time.perf_counter()
        try:
            text, confidence = await asyncio.wait_for(
                asyncio.to_thread(self._recognize_sync, image_bytes, languages),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as exc:
            raise OCRError(
                f"Tesseract timed out after {self._timeout:g}s",
                provider_name=self.get_provider_name(),
            ) from exc
        except OCRError:
            raise
        except Exception as exc:
            self._logger.error(
                "ocr_extraction_failed",
                provider="tesseract",
                error=str(exc),
                processing_time=round(time.perf_counter() - start, 3),
            )
            raise OCRError(
                f"Tesseract OCR failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        self._logger.info(
            "ocr_extraction_complete",
            provider="tesseract",
            languages=languages,
            confidence=round(confidence, 2),
            chars=len(text),
            processing_time=round(time.perf_counter() - start, 3),
        )
        return OCRResult(text=text, confidence=confidence, provider_used="tesseract")

    def get_provider_name(self) -> str:
        return "tesseract"

    def is_available(self) -> bool:
        """Check that the Tesseract binary can be found."""
        try:
            pytesseract.get_tesseract_version()
            return True
        except pytesseract.TesseractNotFoundError:
            return False

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _prepare(self, image_bytes: bytes) -> Image.Image:
        image = Image.open(io.BytesIO(image_bytes))
        image = image.convert("L" if self._grayscale else "RGB")
        if image.width and image.width < self._upscale_min_width:
            scale = self._upscale_min_width / image.width
            image = image.resize(
                (self._upscale_min_width, max(1, int(image.height * scale))),
                Image.Resampling.LANCZOS,
            )
        return image

    def _recognize_sync(self, image_bytes: bytes, languages: str) -> tuple[str, float]:
        """Run Tesseract once and rebuild text from word-level data.

        Returns the text (line breaks at block/paragraph/line changes) and
        the mean word confidence in ``[0, 100]``.
        """
        image = self._prepare(image_bytes)
        data = pytesseract.image_to_data(
            image,
            lang=languages,
            config=f"--psm {self._psm}",
            output_type=pytesseract.Output.DICT,
        )

        lines: list[list[str]] = []
        confidences: list[float] = []
        prev_key: tuple[int, int, int] | None = None

        for i, raw_word in enumerate(data["text"]):
            word = raw_word.strip()
            conf = float(data["conf"][i])
            # conf == -1 marks layout rows, not words
            if not word or conf < 0:
                continue
            key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
            if key != prev_key:
                lines.append([])
                prev_key = key
            lines[-1].append(word)
            confidences.append(conf)

        text = "\n".join(" ".join(words) for words in lines).strip()
        confidence = sum(confidences) / len(confidences) if confidences else 0.0
        return text, max(0.0, min(100.0, confidence))
