"""Prometheus metrics for the invoice pipeline.

Exposes key metrics for monitoring:
- Invoice counts by outcome and provider
- Pipeline and OCR duration histograms
- Cache hit/miss counts and write failures

Based on Prometheus best practices:
https://prometheus.io/docs/practices/naming/
"""

from prometheus_client import Counter, Histogram, generate_latest
from prometheus_client.openmetrics.exposition import CONTENT_TYPE_LATEST

# Invoice processing metrics
invoices_processed_total = Counter(
    "invoices_processed_total",
    "Total invoices processed",
    ["status", "provider"],  # success/failed, provider id ("none" when unknown)
)

invoice_processing_duration_seconds = Histogram(
    "invoice_processing_duration_seconds",
    "End-to-end invoice processing duration in seconds",
    buckets=(0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

# OCR processing metrics
ocr_processing_duration_seconds = Histogram(
    "ocr_processing_duration_seconds",
    "Text acquisition duration in seconds",
    ["provider"],
    buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0),
)

# Cache metrics
invoice_cache_lookups_total = Counter(
    "invoice_cache_lookups_total",
    "Result cache lookups",
    ["result"],  # hit, miss
)

invoice_cache_write_failures_total = Counter(
    "invoice_cache_write_failures_total",
    "Result cache writes that failed",
)


def get_metrics() -> tuple[bytes, str]:
    """Generate Prometheus metrics in text format.

    Returns:
        Tuple of (metrics bytes, content type)
    """
    return generate_latest(), CONTENT_TYPE_LATEST
