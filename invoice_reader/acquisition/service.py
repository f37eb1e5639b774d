"""Text acquisition: turn a document file into raw text.

PDFs use their embedded text layer when one exists and are rasterized and
OCR'd page by page otherwise. Images go straight to the OCR provider.
"""

import logging
import time
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from invoice_reader.extraction.schema import ProviderId
from invoice_reader.ocr.base import OCRProvider
from invoice_reader.ocr.preprocess import is_image
from invoice_reader.pdf.rasterize import rasterize_pdf
from invoice_reader.pdf.text_layer import TextLayerFound, extract_text_layer, is_pdf
from invoice_reader.shared.config import Settings
from invoice_reader.shared.errors import (
    AcquisitionFailed,
    ProviderUnavailable,
    UnsupportedFormat,
)

logger = logging.getLogger(__name__)

# Embedded PDF text is exact; OCR signals are ignored for it
TEXT_LAYER_CONFIDENCE = 0.95


class DocumentFormat(str, Enum):
    """Supported input formats."""

    PDF = "pdf"
    IMAGE = "image"
    UNSUPPORTED = "unsupported"


class AcquiredText(BaseModel):
    """Raw text of a document with its provenance."""

    raw_text: str
    page_count: int = Field(..., ge=0)
    provider_id: ProviderId
    confidence: float = Field(..., ge=0, le=1)
    elapsed_ms: int = Field(..., ge=0)


def classify_format(path: Path) -> DocumentFormat:
    """Classify a file by its extension."""
    if is_pdf(path):
        return DocumentFormat.PDF
    if is_image(path):
        return DocumentFormat.IMAGE
    return DocumentFormat.UNSUPPORTED


class TextAcquisition:
    """Acquires text from PDFs and images using a configured OCR provider."""

    def __init__(self, settings: Settings, provider: OCRProvider) -> None:
        """Initialize text acquisition.

        Args:
            settings: Application settings
            provider: OCR provider for images and scanned PDFs
        """
        self.settings = settings
        self.provider = provider

    def acquire(self, path: Path) -> AcquiredText:
        """Acquire the text of one document.

        Args:
            path: Path to a PDF or image file

        Returns:
            AcquiredText with text, page count, provider and confidence

        Raises:
            UnsupportedFormat: If the file type is not supported
            ProviderUnavailable: If OCR is needed and the provider fails
            AcquisitionFailed: On any other read or render error
        """
        document_format = classify_format(path)
        if document_format is DocumentFormat.UNSUPPORTED:
            raise UnsupportedFormat(f"Unsupported file format: {path.suffix or path.name}")

        try:
            if document_format is DocumentFormat.PDF:
                return self._acquire_pdf(path)
            return self._acquire_image(path)
        except (UnsupportedFormat, ProviderUnavailable, AcquisitionFailed):
            raise
        except Exception as e:
            raise AcquisitionFailed(f"Could not read {path.name}: {e}") from e

    def _acquire_pdf(self, path: Path) -> AcquiredText:
        start_time = time.perf_counter()

        layer = extract_text_layer(path, self.settings.pdf_min_text_chars)
        if isinstance(layer, TextLayerFound):
            logger.debug(f"Using text layer of {path.name} ({layer.pages} pages)")
            return AcquiredText(
                raw_text=layer.text,
                page_count=layer.pages,
                provider_id="builtin-pdf",
                confidence=TEXT_LAYER_CONFIDENCE,
                elapsed_ms=int((time.perf_counter() - start_time) * 1000),
            )

        logger.info(f"{path.name}: {layer.reason}, falling back to OCR")
        pages = rasterize_pdf(path, self.settings.pdf_dpi, self.settings.pdf_scale)
        if not pages:
            raise AcquisitionFailed(f"PDF rendered to zero pages: {path.name}")

        results = [self.provider.recognize(page) for page in pages]

        return AcquiredText(
            raw_text="\n\n".join(result.text for result in results),
            page_count=len(pages),
            provider_id=self.provider.provider_name,
            confidence=min(result.confidence for result in results),
            elapsed_ms=sum(result.elapsed_ms for result in results),
        )

    def _acquire_image(self, path: Path) -> AcquiredText:
        result = self.provider.recognize(path.read_bytes())
        return AcquiredText(
            raw_text=result.text,
            page_count=1,
            provider_id=result.provider_id,
            confidence=result.confidence,
            elapsed_ms=result.elapsed_ms,
        )
