"""Single-invoice processing pipeline.

Cache lookup, text acquisition, field extraction, validation and scoring.
Every fatal failure surfaces as InvoiceProcessingError carrying the source
path and the underlying cause.
"""

import logging
import time
from pathlib import Path
from types import TracebackType

from invoice_reader.acquisition.service import TextAcquisition
from invoice_reader.cache.service import ResultCache, file_hash
from invoice_reader.extraction.normalize import normalize_invoice_data
from invoice_reader.extraction.schema import InvoiceRecord
from invoice_reader.ocr.base import OCRProvider
from invoice_reader.ocr.factory import create_ocr_provider
from invoice_reader.pipeline.metrics import (
    invoice_processing_duration_seconds,
    invoices_processed_total,
    ocr_processing_duration_seconds,
)
from invoice_reader.shared.config import Settings, get_settings
from invoice_reader.shared.errors import AcquisitionFailed, InvoiceProcessingError

logger = logging.getLogger(__name__)


class InvoiceReader:
    """Reads invoices with one configured provider and cache.

    Holds the OCR provider for its whole lifetime; use as a context manager
    or call close() to release provider resources.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        provider: OCRProvider | None = None,
        cache: ResultCache | None = None,
    ) -> None:
        """Initialize reader.

        Args:
            settings: Application settings (read from the environment if omitted)
            provider: OCR provider (built from settings if omitted)
            cache: Result cache (built from settings if omitted)

        Raises:
            MissingCredentials: If the selected cloud provider lacks credentials
        """
        self.settings = settings or get_settings()
        self.settings.validate_provider_credentials()

        self.provider = provider or create_ocr_provider(self.settings)
        self.cache = cache or ResultCache(self.settings)
        self.acquisition = TextAcquisition(self.settings, self.provider)

    def __enter__(self) -> "InvoiceReader":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Release provider resources."""
        self.provider.close()

    def read_invoice(self, path: str | Path, use_cache: bool = True) -> InvoiceRecord:
        """Process one invoice file.

        Args:
            path: Path to a PDF or image
            use_cache: Consult and update the result cache

        Returns:
            Validated InvoiceRecord

        Raises:
            InvoiceProcessingError: If the file cannot be processed
        """
        path = Path(path)
        start_time = time.perf_counter()

        try:
            record = self._read(path, use_cache)
        except Exception as e:
            invoices_processed_total.labels(status="failed", provider="none").inc()
            logger.error(f"Failed to process {path}: {e}")
            raise InvoiceProcessingError(path, e) from e

        elapsed = time.perf_counter() - start_time
        invoice_processing_duration_seconds.observe(elapsed)
        invoices_processed_total.labels(status="success", provider=record.provider_id).inc()
        logger.info(
            f"Processed {path.name}: provider={record.provider_id}, "
            f"confidence={record.confidence:.2f}, time={elapsed * 1000:.0f}ms"
        )
        return record

    def _read(self, path: Path, use_cache: bool) -> InvoiceRecord:
        if not path.is_file():
            raise AcquisitionFailed(f"File not found: {path}")

        key = None
        if use_cache and self.cache.enabled:
            try:
                key = file_hash(path)
            except OSError as e:
                raise AcquisitionFailed(f"Could not read {path.name}: {e}") from e

            cached = self.cache.get(key)
            if cached is not None:
                logger.debug(f"Cache hit for {path.name} ({key[:12]})")
                return cached

        acquired = self.acquisition.acquire(path)
        ocr_processing_duration_seconds.labels(provider=acquired.provider_id).observe(
            acquired.elapsed_ms / 1000
        )

        record = normalize_invoice_data(
            raw_text=acquired.raw_text,
            source=str(path),
            provider_id=acquired.provider_id,
            ocr_confidence=acquired.confidence,
            page_count=acquired.page_count,
            ocr_elapsed_ms=acquired.elapsed_ms,
        )

        if key is not None:
            self.cache.put(key, record)

        return record


def process_invoice(
    path: str | Path, settings: Settings | None = None, use_cache: bool = True
) -> InvoiceRecord:
    """Process a single invoice with a short-lived reader.

    Args:
        path: Path to a PDF or image
        settings: Application settings (read from the environment if omitted)
        use_cache: Consult and update the result cache

    Returns:
        Validated InvoiceRecord

    Raises:
        MissingCredentials: If the selected cloud provider lacks credentials
        InvoiceProcessingError: If the file cannot be processed
    """
    with InvoiceReader(settings) as reader:
        return reader.read_invoice(path, use_cache=use_cache)
