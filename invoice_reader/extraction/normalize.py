"""Build a validated InvoiceRecord from raw document text."""

import logging
import time

from invoice_reader.extraction.fields import (
    extract_buyer,
    extract_currency,
    extract_dates,
    extract_invoice_number,
    extract_seller,
    extract_totals,
)
from invoice_reader.extraction.schema import (
    ExtractedField,
    InvoiceParty,
    InvoiceRecord,
    InvoiceTotals,
    ProviderId,
)
from invoice_reader.extraction.tables import detect_line_items
from invoice_reader.extraction.validate import calculate_confidence, validate_invoice_data

logger = logging.getLogger(__name__)


def _audit_fields(
    invoice_number: str | None,
    issue_date: str | None,
    sale_date: str | None,
    seller: InvoiceParty,
    buyer: InvoiceParty | None,
    currency: str,
    totals: InvoiceTotals | None,
    confidence: float,
) -> list[ExtractedField]:
    candidates: list[tuple[str, object]] = [
        ("invoiceNumber", invoice_number),
        ("issueDate", issue_date),
        ("saleDate", sale_date),
        ("seller.name", seller.name),
        ("seller.taxId", seller.tax_id),
        ("buyer.name", buyer.name if buyer else None),
        ("buyer.taxId", buyer.tax_id if buyer else None),
        ("currency", currency),
        ("totals.net", totals.net.value if totals and totals.net else None),
        ("totals.vat", totals.vat.value if totals and totals.vat else None),
        ("totals.gross", totals.gross.value if totals and totals.gross else None),
    ]
    return [
        ExtractedField(label=label, value=str(value), confidence=confidence)
        for label, value in candidates
        if value is not None
    ]


def normalize_invoice_data(
    raw_text: str,
    source: str,
    provider_id: ProviderId,
    ocr_confidence: float,
    page_count: int,
    ocr_elapsed_ms: int | None = None,
) -> InvoiceRecord:
    """Extract, validate and score an invoice from raw text.

    Args:
        raw_text: Text produced by text acquisition
        source: Source identifier (usually the file path)
        provider_id: Provider that produced the text
        ocr_confidence: Confidence reported by the provider
        page_count: Number of pages in the source document
        ocr_elapsed_ms: Time spent acquiring the text

    Returns:
        Frozen InvoiceRecord with validations and confidence filled in
    """
    start_time = time.perf_counter()

    invoice_number = extract_invoice_number(raw_text)
    dates = extract_dates(raw_text)
    seller = extract_seller(raw_text)
    buyer = extract_buyer(raw_text)
    currency = extract_currency(raw_text)
    positions = detect_line_items(raw_text, currency)
    totals = extract_totals(raw_text, currency)

    fields = _audit_fields(
        invoice_number,
        dates.issue_date,
        dates.sale_date,
        seller,
        buyer,
        currency,
        totals,
        ocr_confidence,
    )

    parse_elapsed_ms = int((time.perf_counter() - start_time) * 1000)

    draft = InvoiceRecord(
        source_identifier=source,
        provider_id=provider_id,
        confidence=0.0,
        page_count=page_count,
        ocr_elapsed_ms=ocr_elapsed_ms,
        parse_elapsed_ms=parse_elapsed_ms,
        seller=seller,
        buyer=buyer,
        invoice_number=invoice_number,
        issue_date=dates.issue_date,
        sale_date=dates.sale_date,
        positions=tuple(positions) or None,
        totals=totals,
        currency=currency,
        raw_text=raw_text,
        fields=tuple(fields),
    )

    validations = validate_invoice_data(draft)
    confidence = calculate_confidence(draft, validations, ocr_confidence)

    logger.debug(
        f"Parsed {source}: {len(positions)} positions, "
        f"{sum(1 for v in validations if v.passed)}/{len(validations)} checks passed"
    )

    return draft.model_copy(
        update={"validations": tuple(validations), "confidence": confidence}
    )
