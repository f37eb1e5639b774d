"""Invoice record models produced by the extraction pipeline.

All models are frozen and their collections are tuples: a record is built
once per pipeline run and never mutated. Use model_copy(update=...) to derive
a new one.
"""

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ProviderId = Literal["builtin-pdf", "tesseract", "gcv", "textract"]


class Money(BaseModel):
    """Monetary amount. The value is only meaningful with its currency."""

    model_config = ConfigDict(frozen=True)

    value: Decimal
    currency: str = Field(..., description="Currency code (ISO 4217)")


class InvoiceParty(BaseModel):
    """Seller or buyer of an invoice."""

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    tax_id: str | None = Field(None, description="Polish NIP, digits only")
    address: str | None = None


class InvoicePosition(BaseModel):
    """Single line item.

    Amounts are not required to reconcile with each other (net + vat need not
    equal gross); OCR text is noisy.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    quantity: Decimal | None = None
    unit: str | None = None
    unit_price: Money | None = None
    vat_rate: str | None = None
    net: Money | None = None
    vat: Money | None = None
    gross: Money | None = None


class VatBreakdown(BaseModel):
    """Totals for one VAT rate."""

    model_config = ConfigDict(frozen=True)

    rate: str
    net: Money
    vat: Money
    gross: Money


class InvoiceTotals(BaseModel):
    """Invoice-level totals."""

    model_config = ConfigDict(frozen=True)

    net: Money | None = None
    vat: Money | None = None
    gross: Money | None = None
    by_rate: tuple[VatBreakdown, ...] | None = None


class ExtractedField(BaseModel):
    """Audit trail entry for a value found in the document."""

    model_config = ConfigDict(frozen=True)

    label: str
    value: str
    page: int | None = None
    bounding_box: tuple[float, float, float, float] | None = None
    confidence: float | None = Field(None, ge=0, le=1)


class ValidationOutcome(BaseModel):
    """Result of one validation check."""

    model_config = ConfigDict(frozen=True)

    name: str
    passed: bool
    details: str | None = None


class InvoiceRecord(BaseModel):
    """Structured, validated invoice extracted from one document."""

    model_config = ConfigDict(frozen=True)

    source_identifier: str
    provider_id: ProviderId
    confidence: float = Field(..., ge=0, le=1, description="Overall record confidence")
    page_count: int = Field(..., ge=0)
    ocr_elapsed_ms: int | None = None
    parse_elapsed_ms: int | None = None

    seller: InvoiceParty = Field(default_factory=InvoiceParty)
    buyer: InvoiceParty | None = None

    invoice_number: str | None = None
    issue_date: str | None = Field(None, description="YYYY-MM-DD")
    sale_date: str | None = Field(None, description="YYYY-MM-DD")

    positions: tuple[InvoicePosition, ...] | None = None
    totals: InvoiceTotals | None = None
    currency: str | None = None

    raw_text: str
    fields: tuple[ExtractedField, ...] = Field(default_factory=tuple)
    validations: tuple[ValidationOutcome, ...] = Field(default_factory=tuple)
