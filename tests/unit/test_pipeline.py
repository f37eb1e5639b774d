"""Unit tests for the single-invoice pipeline.

External engines are mocked: the PDF text layer is patched and the OCR
provider is a MagicMock.
"""

from collections.abc import Generator
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from invoice_reader.extraction.schema import InvoiceRecord
from invoice_reader.ocr.base import OCRProvider, OCRResult
from invoice_reader.pdf.text_layer import TextLayerFound
from invoice_reader.pipeline.service import InvoiceReader, process_invoice
from invoice_reader.shared.config import Settings
from invoice_reader.shared.errors import (
    AcquisitionFailed,
    InvoiceProcessingError,
    MissingCredentials,
    ProviderUnavailable,
    UnsupportedFormat,
)

DIGITAL_INVOICE_TEXT = """Faktura nr FV/2025/001
Data wystawienia: 15.10.2025

Sprzedawca:
ACME Sp. z o.o.
NIP: 123-456-32-18

Razem netto: 100,00 zł
Razem VAT: 23,00 zł
Razem brutto: 123,00 zł
"""


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(_env_file=None, cache_dir=tmp_path / "cache")


@pytest.fixture
def mock_provider() -> MagicMock:
    provider = MagicMock(spec=OCRProvider)
    provider.provider_name = "tesseract"
    provider.recognize.return_value = OCRResult(
        text="Faktura nr FV/9/2025\nDo zapłaty: 50,00 zł",
        confidence=0.8,
        elapsed_ms=40,
        provider_id="tesseract",
    )
    return provider


@pytest.fixture
def reader(settings: Settings, mock_provider: MagicMock) -> InvoiceReader:
    return InvoiceReader(settings, provider=mock_provider)


@pytest.fixture
def pdf_path(tmp_path: Path) -> Path:
    path = tmp_path / "invoice.pdf"
    path.write_bytes(b"%PDF-1.4 digital invoice")
    return path


@pytest.fixture
def image_path(tmp_path: Path) -> Path:
    path = tmp_path / "scan.png"
    path.write_bytes(b"\x89PNG fake image")
    return path


@pytest.fixture
def text_layer() -> Generator[MagicMock, None, None]:
    with patch(
        "invoice_reader.acquisition.service.extract_text_layer",
        return_value=TextLayerFound(text=DIGITAL_INVOICE_TEXT, pages=1),
    ) as mock:
        yield mock


class TestDigitalPdf:
    """End-to-end processing of a PDF with a text layer."""

    def test_record_fields(
        self, reader: InvoiceReader, pdf_path: Path, text_layer: MagicMock
    ) -> None:
        record = reader.read_invoice(pdf_path)

        assert record.provider_id == "builtin-pdf"
        assert record.invoice_number == "FV/2025/001"
        assert record.seller.tax_id == "1234563218"
        assert record.totals is not None
        assert record.totals.net is not None
        assert record.totals.net.value == Decimal("100.00")
        assert record.page_count == 1
        assert record.source_identifier == str(pdf_path)

    def test_seller_nip_check_passes(
        self, reader: InvoiceReader, pdf_path: Path, text_layer: MagicMock
    ) -> None:
        record = reader.read_invoice(pdf_path)

        seller_check = next(v for v in record.validations if v.name == "SELLER_NIP_CHECK")
        assert seller_check.passed is True
        assert 0.0 <= record.confidence <= 1.0

    def test_provider_not_called(
        self,
        reader: InvoiceReader,
        pdf_path: Path,
        text_layer: MagicMock,
        mock_provider: MagicMock,
    ) -> None:
        reader.read_invoice(pdf_path)

        mock_provider.recognize.assert_not_called()


class TestCaching:
    """Tests for cache use in the pipeline."""

    def test_second_call_served_from_cache(
        self, reader: InvoiceReader, pdf_path: Path, text_layer: MagicMock
    ) -> None:
        first = reader.read_invoice(pdf_path)
        second = reader.read_invoice(pdf_path)

        assert second == first
        text_layer.assert_called_once()

    def test_no_cache_bypasses_lookup(
        self, reader: InvoiceReader, pdf_path: Path, text_layer: MagicMock
    ) -> None:
        reader.read_invoice(pdf_path)
        reader.read_invoice(pdf_path, use_cache=False)

        assert text_layer.call_count == 2

    def test_cache_write_failure_does_not_fail_call(
        self, tmp_path: Path, mock_provider: MagicMock, pdf_path: Path, text_layer: MagicMock
    ) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        reader = InvoiceReader(
            Settings(_env_file=None, cache_dir=blocker), provider=mock_provider
        )

        record = reader.read_invoice(pdf_path)

        assert isinstance(record, InvoiceRecord)
        assert record.invoice_number == "FV/2025/001"


class TestImages:
    """Tests for image input through the OCR provider."""

    def test_image_uses_provider(
        self, reader: InvoiceReader, image_path: Path, mock_provider: MagicMock
    ) -> None:
        record = reader.read_invoice(image_path)

        mock_provider.recognize.assert_called_once_with(image_path.read_bytes())
        assert record.provider_id == "tesseract"
        assert record.invoice_number == "FV/9/2025"
        assert record.ocr_elapsed_ms == 40
        assert record.totals is not None
        assert record.totals.gross is not None
        assert record.totals.gross.value == Decimal("50.00")


class TestFailures:
    """Tests for error wrapping."""

    def test_missing_file(self, reader: InvoiceReader, tmp_path: Path) -> None:
        with pytest.raises(InvoiceProcessingError) as exc_info:
            reader.read_invoice(tmp_path / "missing.pdf")

        assert isinstance(exc_info.value.cause, AcquisitionFailed)
        assert exc_info.value.source == str(tmp_path / "missing.pdf")

    def test_unsupported_format(self, reader: InvoiceReader, tmp_path: Path) -> None:
        path = tmp_path / "notes.txt"
        path.write_text("hello")

        with pytest.raises(InvoiceProcessingError) as exc_info:
            reader.read_invoice(path)

        assert isinstance(exc_info.value.__cause__, UnsupportedFormat)
        assert str(exc_info.value).startswith(f"Failed to process invoice {path}:")

    def test_provider_failure_is_wrapped(
        self, reader: InvoiceReader, image_path: Path, mock_provider: MagicMock
    ) -> None:
        mock_provider.recognize.side_effect = ProviderUnavailable("engine down")

        with pytest.raises(InvoiceProcessingError) as exc_info:
            reader.read_invoice(image_path)

        assert isinstance(exc_info.value.cause, ProviderUnavailable)

    def test_missing_credentials_raised_before_processing(self, tmp_path: Path) -> None:
        settings = Settings(_env_file=None, ocr_provider="gcv", cache_dir=tmp_path)

        with pytest.raises(MissingCredentials):
            InvoiceReader(settings)


class TestLifecycle:
    """Tests for reader resource handling."""

    def test_context_manager_closes_provider(
        self, settings: Settings, mock_provider: MagicMock
    ) -> None:
        with InvoiceReader(settings, provider=mock_provider):
            pass

        mock_provider.close.assert_called_once()

    def test_process_invoice_function(
        self, settings: Settings, pdf_path: Path, text_layer: MagicMock
    ) -> None:
        record = process_invoice(pdf_path, settings=settings)

        assert record.provider_id == "builtin-pdf"
        assert record.invoice_number == "FV/2025/001"
