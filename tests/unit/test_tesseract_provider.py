"""Unit tests for the local Tesseract provider and image preprocessing.

pytesseract calls are mocked; no tesseract binary is needed.
"""

import io
from collections.abc import Generator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import pytesseract
from PIL import Image

from invoice_reader.ocr.preprocess import is_image, preprocess_image
from invoice_reader.ocr.tesseract_provider import TesseractOCRProvider, _assemble_text
from invoice_reader.shared.config import Settings
from invoice_reader.shared.errors import ProviderUnavailable

MODULE = "invoice_reader.ocr.tesseract_provider.pytesseract"

WORD_DATA = {
    "text": ["", "Faktura", "nr", "FV/1", "", "Razem", "100,00"],
    "conf": [-1, 96, 90, 84, -1, 95.5, 84.5],
    "block_num": [1, 1, 1, 1, 2, 2, 2],
    "par_num": [1, 1, 1, 1, 1, 1, 1],
    "line_num": [1, 1, 1, 1, 1, 1, 1],
}


@pytest.fixture
def png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (120, 40), "white").save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, ocr_lang="pol+eng", local_ocr_workers=2)


@pytest.fixture
def engine() -> Generator[MagicMock, None, None]:
    """Patch pytesseract with a working engine that has pol and eng installed."""
    with patch(f"{MODULE}.get_tesseract_version", return_value="5.3.0") as version, patch(
        f"{MODULE}.get_languages", return_value=["eng", "osd", "pol"]
    ), patch(f"{MODULE}.image_to_data", return_value=WORD_DATA) as image_to_data:
        image_to_data.version = version
        yield image_to_data


class TestAssembleText:
    """Tests for rebuilding text from word boxes."""

    def test_lines_and_blocks(self) -> None:
        text, _ = _assemble_text(WORD_DATA)

        assert text == "Faktura nr FV/1\n\nRazem 100,00"

    def test_mean_confidence_ignores_negative(self) -> None:
        _, confidence = _assemble_text(WORD_DATA)

        assert confidence == pytest.approx(0.9)

    def test_no_words(self) -> None:
        text, confidence = _assemble_text({"text": ["", " "], "conf": [-1, -1]})

        assert text == ""
        assert confidence == 0.0


class TestTesseractOCRProvider:
    """Tests for TesseractOCRProvider."""

    def test_provider_name(self, settings: Settings) -> None:
        assert TesseractOCRProvider(settings).provider_name == "tesseract"

    def test_recognize(self, settings: Settings, engine: MagicMock, png_bytes: bytes) -> None:
        provider = TesseractOCRProvider(settings)

        result = provider.recognize(png_bytes)

        assert result.text == "Faktura nr FV/1\n\nRazem 100,00"
        assert result.confidence == pytest.approx(0.9)
        assert result.provider_id == "tesseract"
        assert result.elapsed_ms >= 0
        _, kwargs = engine.call_args
        assert kwargs["lang"] == "pol+eng"
        assert "--psm 3" in kwargs["config"]

    def test_recognize_from_path(
        self, settings: Settings, engine: MagicMock, png_bytes: bytes, tmp_path: Path
    ) -> None:
        path = tmp_path / "scan.png"
        path.write_bytes(png_bytes)

        result = TesseractOCRProvider(settings).recognize(path)

        assert result.text.startswith("Faktura")

    def test_contexts_created_once(
        self, settings: Settings, engine: MagicMock, png_bytes: bytes
    ) -> None:
        provider = TesseractOCRProvider(settings)

        for _ in range(3):
            provider.recognize(png_bytes)

        # One verification per pooled context, none per call
        assert engine.version.call_count == settings.local_ocr_workers

    def test_checkout_returns_context_to_pool(self, settings: Settings, engine: MagicMock) -> None:
        provider = TesseractOCRProvider(settings)

        with provider._checkout() as first, provider._checkout() as second:
            assert first.lang == second.lang == "pol+eng"
            assert provider._pool is not None
            assert provider._pool.qsize() == 0

        assert provider._pool.qsize() == 2

    def test_close_releases_pool(
        self, settings: Settings, engine: MagicMock, png_bytes: bytes
    ) -> None:
        provider = TesseractOCRProvider(settings)
        provider.recognize(png_bytes)

        provider.close()
        provider.close()

        assert provider._pool is None

    def test_missing_language(self, engine: MagicMock, png_bytes: bytes) -> None:
        provider = TesseractOCRProvider(Settings(_env_file=None, ocr_lang="pol+deu"))

        with pytest.raises(ProviderUnavailable, match="deu"):
            provider.recognize(png_bytes)

    def test_missing_binary(self, settings: Settings, png_bytes: bytes) -> None:
        provider = TesseractOCRProvider(settings)

        with patch(
            f"{MODULE}.get_tesseract_version", side_effect=pytesseract.TesseractNotFoundError()
        ):
            with pytest.raises(ProviderUnavailable):
                provider.recognize(png_bytes)
            assert provider.is_available() is False

    def test_engine_error(self, settings: Settings, engine: MagicMock, png_bytes: bytes) -> None:
        engine.side_effect = pytesseract.TesseractError(1, "image too small")

        with pytest.raises(ProviderUnavailable, match="image too small"):
            TesseractOCRProvider(settings).recognize(png_bytes)


class TestPreprocess:
    """Tests for image preprocessing."""

    def test_threshold_binarizes(self) -> None:
        image = Image.new("RGB", (10, 10), (200, 120, 40))
        settings = Settings(_env_file=None, image_enhance=True, image_threshold=True)

        processed = preprocess_image(image, settings)

        assert processed.mode == "L"
        assert set(processed.getdata()) <= {0, 255}

    def test_enhance_only_is_grayscale(self) -> None:
        image = Image.new("RGB", (10, 10), "white")
        settings = Settings(_env_file=None, image_enhance=True, image_threshold=False)

        assert preprocess_image(image, settings).mode == "L"

    def test_disabled_returns_original(self) -> None:
        image = Image.new("RGB", (10, 10), "white")
        settings = Settings(_env_file=None, image_enhance=False, image_threshold=False)

        assert preprocess_image(image, settings) is image

    def test_failure_falls_back_to_original(self, caplog: pytest.LogCaptureFixture) -> None:
        image = MagicMock()
        image.convert.side_effect = OSError("truncated image")

        result = preprocess_image(image, Settings(_env_file=None))

        assert result is image
        assert "preprocessing failed" in caplog.text

    @pytest.mark.parametrize(
        "name,expected", [("a.png", True), ("a.TIF", True), ("a.jpeg", True), ("a.pdf", False)]
    )
    def test_is_image(self, name: str, expected: bool) -> None:
        assert is_image(Path(name)) is expected
