"""Unit tests for TesseractOCRProvider with pytesseract patched out."""

from __future__ import annotations

import io
import time
from unittest.mock import patch

import pytesseract
import pytest
from PIL import Image

from studykb.providers.ocr.tesseract_provider import TesseractOCRProvider
from studykb.utils.errors import OCRError


def _png(width: int = 100, height: int = 50) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), "white").save(buffer, format="PNG")
    return buffer.getvalue()


_WORD_DATA = {
    "text": ["", "Photosynthesis", "needs", "light", ""],
    "conf": [-1, 90, 80, 70, -1],
    "block_num": [1, 1, 1, 1, 1],
    "par_num": [1, 1, 1, 1, 1],
    "line_num": [0, 1, 1, 2, 2],
}


class TestTesseractOCRProvider:
    @pytest.mark.asyncio
    async def test_rebuilds_lines_and_mean_confidence(self) -> None:
        provider = TesseractOCRProvider()
        with patch(
            "studykb.providers.ocr.tesseract_provider.pytesseract.image_to_data",
            return_value=_WORD_DATA,
        ) as image_to_data:
            result = await provider.recognize(_png())

        assert result.text == "Photosynthesis needs\nlight"
        assert result.confidence == pytest.approx(80.0)
        assert result.provider_used == "tesseract"
        assert image_to_data.call_args.kwargs["lang"] == "chi_sim+eng"
        assert image_to_data.call_args.kwargs["config"] == "--psm 3"

    @pytest.mark.asyncio
    async def test_language_hint_overrides_default(self) -> None:
        provider = TesseractOCRProvider(languages="eng")
        with patch(
            "studykb.providers.ocr.tesseract_provider.pytesseract.image_to_data",
            return_value=_WORD_DATA,
        ) as image_to_data:
            await provider.recognize(_png(), language_hints="chi_sim")

        assert image_to_data.call_args.kwargs["lang"] == "chi_sim"

    @pytest.mark.asyncio
    async def test_no_words_means_zero_confidence(self) -> None:
        empty = {key: [] for key in _WORD_DATA}
        with patch(
            "studykb.providers.ocr.tesseract_provider.pytesseract.image_to_data",
            return_value=empty,
        ):
            result = await TesseractOCRProvider().recognize(_png())

        assert result.text == ""
        assert result.confidence == 0.0

    @pytest.mark.asyncio
    async def test_empty_bytes_raise(self) -> None:
        with pytest.raises(OCRError, match="No image data"):
            await TesseractOCRProvider().recognize(b"")

    @pytest.mark.asyncio
    async def test_engine_failure_raises_ocr_error(self) -> None:
        with patch(
            "studykb.providers.ocr.tesseract_provider.pytesseract.image_to_data",
            side_effect=RuntimeError("tesseract crashed"),
        ):
            with pytest.raises(OCRError) as exc_info:
                await TesseractOCRProvider().recognize(_png())

        assert exc_info.value.provider_name == "tesseract"

    @pytest.mark.asyncio
    async def test_unreadable_image_raises_ocr_error(self) -> None:
        with pytest.raises(OCRError):
            await TesseractOCRProvider().recognize(b"not an image")

    @pytest.mark.asyncio
    async def test_timeout_raises_ocr_error(self) -> None:
        provider = TesseractOCRProvider(timeout_seconds=0.05)

        def slow(_image_bytes: bytes, _languages: str) -> tuple[str, float]:
            time.sleep(0.3)
            return "late", 50.0

        with patch.object(provider, "_recognize_sync", side_effect=slow):
            with pytest.raises(OCRError, match="timed out"):
                await provider.recognize(_png())

    def test_prepare_upscales_and_converts(self) -> None:
        image = TesseractOCRProvider(upscale_min_width=1000)._prepare(_png(100, 50))
        assert image.size == (1000, 500)
        assert image.mode == "L"

        wide = TesseractOCRProvider(grayscale=False)._prepare(_png(1200, 10))
        assert wide.size == (1200, 10)
        assert wide.mode == "RGB"

    def test_is_available(self) -> None:
        provider = TesseractOCRProvider()
        with patch(
            "studykb.providers.ocr.tesseract_provider.pytesseract.get_tesseract_version",
            return_value="5.3.0",
        ):
            assert provider.is_available() is True
        with patch(
            "studykb.providers.ocr.tesseract_provider.pytesseract.get_tesseract_version",
            side_effect=pytesseract.TesseractNotFoundError(),
        ):
            assert provider.is_available() is False
