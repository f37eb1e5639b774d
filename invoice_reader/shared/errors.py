"""Exception hierarchy for the invoice reader.

Every error raised by the pipeline derives from InvoiceReaderError so callers
can catch the whole family in one place. A PDF without a text layer is not an
error: see invoice_reader.pdf.text_layer.NoTextLayer.
"""

from pathlib import Path


class InvoiceReaderError(Exception):
    """Base class for all invoice reader errors."""


class UnsupportedFormat(InvoiceReaderError):
    """File is neither a PDF nor a supported image."""


class AcquisitionFailed(InvoiceReaderError):
    """Text could not be acquired from the file.

    Wraps the underlying I/O or rendering error, available as __cause__.
    """


class ProviderUnavailable(InvoiceReaderError):
    """OCR provider cannot be used or its call failed."""


class MissingCredentials(ProviderUnavailable):
    """Selected provider's credentials or configuration are incomplete."""


class CacheWriteFailed(InvoiceReaderError):
    """Result could not be written to the cache. Never fatal."""


class InvoiceProcessingError(InvoiceReaderError):
    """Processing of a single invoice failed.

    Attributes:
        source: Path of the file that failed
        cause: Underlying error (also available as __cause__)
    """

    def __init__(self, source: str | Path, cause: BaseException) -> None:
        self.source = str(source)
        self.cause = cause
        super().__init__(f"Failed to process invoice {self.source}: {cause}")
