"""Invoice validation and confidence scoring."""

import re
from collections.abc import Sequence
from datetime import date
from decimal import Decimal

from invoice_reader.extraction.polish import validate_nip
from invoice_reader.extraction.schema import (
    InvoicePosition,
    InvoiceRecord,
    InvoiceTotals,
    Money,
    ValidationOutcome,
)

TOTALS_TOLERANCE = Decimal("0.01")

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def validate_invoice_data(record: InvoiceRecord) -> list[ValidationOutcome]:
    """Run all applicable validation checks on a record.

    Args:
        record: Extracted invoice record

    Returns:
        Validation outcomes in check order
    """
    validations: list[ValidationOutcome] = []

    if record.seller.tax_id:
        valid = validate_nip(record.seller.tax_id)
        validations.append(
            ValidationOutcome(
                name="SELLER_NIP_CHECK",
                passed=valid,
                details=None if valid else f"Invalid seller NIP: {record.seller.tax_id}",
            )
        )

    if record.buyer and record.buyer.tax_id:
        valid = validate_nip(record.buyer.tax_id)
        validations.append(
            ValidationOutcome(
                name="BUYER_NIP_CHECK",
                passed=valid,
                details=None if valid else f"Invalid buyer NIP: {record.buyer.tax_id}",
            )
        )

    if record.positions and record.totals:
        validations.append(validate_totals(record.positions, record.totals))

    if record.issue_date:
        validations.append(_validate_date("ISSUE_DATE_FORMAT", record.issue_date))

    if record.sale_date:
        validations.append(_validate_date("SALE_DATE_FORMAT", record.sale_date))

    validations.append(
        ValidationOutcome(
            name="INVOICE_NUMBER_EXISTS",
            passed=bool(record.invoice_number),
            details=None if record.invoice_number else "Invoice number not found",
        )
    )

    return validations


def _sum(amounts: list[Money | None]) -> Decimal:
    return sum((amount.value for amount in amounts if amount is not None), Decimal("0"))


def validate_totals(
    positions: Sequence[InvoicePosition], totals: InvoiceTotals
) -> ValidationOutcome:
    """Check that position sums match the invoice totals within 0.01.

    Totals that were not extracted are skipped.
    """
    components = [
        ("Net", _sum([p.net for p in positions]), totals.net),
        ("VAT", _sum([p.vat for p in positions]), totals.vat),
        ("Gross", _sum([p.gross for p in positions]), totals.gross),
    ]

    mismatches = [
        f"{label} mismatch: {calculated:.2f} vs {expected.value:.2f}"
        for label, calculated, expected in components
        if expected is not None and abs(calculated - expected.value) > TOTALS_TOLERANCE
    ]

    return ValidationOutcome(
        name="TOTALS_MATCH",
        passed=not mismatches,
        details="; ".join(mismatches) if mismatches else None,
    )


def _validate_date(name: str, value: str) -> ValidationOutcome:
    passed = bool(_ISO_DATE.match(value))
    if passed:
        try:
            date.fromisoformat(value)
        except ValueError:
            passed = False

    return ValidationOutcome(
        name=name,
        passed=passed,
        details=None if passed else f"Invalid date: {value}",
    )


def _passed(validations: Sequence[ValidationOutcome], name: str) -> bool:
    return any(v.name == name and v.passed for v in validations)


def calculate_confidence(
    record: InvoiceRecord,
    validations: Sequence[ValidationOutcome],
    ocr_confidence: float,
) -> float:
    """Compute overall record confidence in [0, 1].

    Weighted signals: OCR quality 0.2, valid seller NIP 0.2, invoice number
    0.2, dates 0.1 + 0.1, totals match 0.2. Signals that do not apply are
    left out of the maximum.

    Args:
        record: Extracted invoice record
        validations: Outcomes from validate_invoice_data
        ocr_confidence: Confidence reported by text acquisition

    Returns:
        Confidence score
    """
    score = 0.0
    max_score = 0.0

    score += ocr_confidence * 0.2
    max_score += 0.2

    if record.seller.tax_id:
        max_score += 0.2
        if _passed(validations, "SELLER_NIP_CHECK"):
            score += 0.2

    max_score += 0.2
    if record.invoice_number:
        score += 0.2

    max_score += 0.2
    if record.issue_date or record.sale_date:
        score += 0.1
    if record.issue_date and record.sale_date:
        score += 0.1

    if record.positions and record.totals:
        max_score += 0.2
        if _passed(validations, "TOTALS_MATCH"):
            score += 0.2

    if max_score <= 0:
        return min(max(ocr_confidence, 0.0), 1.0)

    return min(max(score / max_score, 0.0), 1.0)
