"""Invoice-level field extraction from raw document text.

Each extractor tries an ordered list of patterns and returns the first
usable match. Patterns cover Polish and English labels.
"""

import re
from dataclasses import dataclass

from invoice_reader.extraction.polish import extract_nip, parse_amount, parse_date
from invoice_reader.extraction.schema import InvoiceParty, InvoiceTotals, Money

_INVOICE_NUMBER_PATTERNS = [
    re.compile(
        r"\b(?:Faktura|Invoice|VAT)\s*(?:(?:number|nr|no)(?![a-z])\.?|#)[:\s]*([A-Z0-9/\-]+)",
        re.IGNORECASE,
    ),
    re.compile(r"\b(?:nr|no)[:.\s]*faktury[:\s]*([A-Z0-9/\-]+)", re.IGNORECASE),
    re.compile(r"\b(FV[/\-]?\d+[/\-]\d+(?:[/\-]\d+)*)", re.IGNORECASE),
]

_ISSUE_DATE_PATTERNS = [
    re.compile(r"(?:data\s+wystawienia|date\s+of\s+issue)[:\s]+([^\n]+)", re.IGNORECASE),
    re.compile(r"(?:wystawiono|issued)[:\s]+([^\n]+)", re.IGNORECASE),
]

_SALE_DATE_PATTERNS = [
    re.compile(r"(?:data\s+sprzedaży|date\s+of\s+sale)[:\s]+([^\n]+)", re.IGNORECASE),
    re.compile(r"(?:sprzedaż|sale)[:\s]+([^\n]+)", re.IGNORECASE),
]

_SELLER_HEADER = r"(?:Sprzedawca|Seller|Wystawca)"
_BUYER_HEADER = r"(?:Nabywca|Buyer|Klient|Customer)"

_CURRENCY_PATTERNS = [
    re.compile(r"\b(PLN|EUR|USD|GBP)\b", re.IGNORECASE),
    re.compile(r"(?<!\w)(złotych|złote|złoty|zł)(?!\w)", re.IGNORECASE),
]

# One amount, optionally with space-grouped thousands; never spans lines and
# never a percentage ("23%" is a rate, not an amount)
_AMOUNT = r"(\d{1,3}(?:[ \u00a0']\d{3})+(?:[.,]\d+)?|\d+(?:[.,]\d+)*)(?![\d.,]*\s*%)"

_NET_PATTERNS = [
    re.compile(rf"(?:razem\s+netto|total\s+net|suma\s+netto)[:\s]+{_AMOUNT}", re.IGNORECASE),
    re.compile(rf"\b(?:netto|net)[:\s]+{_AMOUNT}", re.IGNORECASE),
]

_VAT_PATTERNS = [
    re.compile(rf"(?:razem\s+vat|total\s+vat|suma\s+vat)[:\s]+{_AMOUNT}", re.IGNORECASE),
    re.compile(rf"\b(?:podatek|vat|tax)[:\s]+{_AMOUNT}", re.IGNORECASE),
]

_GROSS_PATTERNS = [
    re.compile(
        rf"(?:razem\s+brutto|total\s+gross|suma\s+brutto|do\s+zapłaty)[:\s]+{_AMOUNT}",
        re.IGNORECASE,
    ),
    re.compile(rf"\b(?:brutto|gross)[:\s]+{_AMOUNT}", re.IGNORECASE),
]


@dataclass(frozen=True)
class InvoiceDates:
    """Issue and sale dates in YYYY-MM-DD format."""

    issue_date: str | None = None
    sale_date: str | None = None


def extract_invoice_number(text: str) -> str | None:
    """Extract invoice number (e.g. "FV/2025/001")."""
    for pattern in _INVOICE_NUMBER_PATTERNS:
        match = pattern.search(text)
        if match:
            number = match.group(1).strip()
            if number:
                return number
    return None


def _first_date(text: str, patterns: list[re.Pattern[str]]) -> str | None:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            parsed = parse_date(match.group(1))
            if parsed:
                return parsed
    return None


def extract_dates(text: str) -> InvoiceDates:
    """Extract issue and sale dates from labeled lines."""
    return InvoiceDates(
        issue_date=_first_date(text, _ISSUE_DATE_PATTERNS),
        sale_date=_first_date(text, _SALE_DATE_PATTERNS),
    )


def _party_section(text: str, header: str, stop_header: str) -> str | None:
    """Return up to 5 lines following a party header.

    Capture ends early at a blank line or at the other party's header.
    """
    match = re.search(rf"{header}[:\s]+([^\n]+(?:\n[^\n]+){{0,4}})", text, re.IGNORECASE)
    if not match:
        return None

    lines: list[str] = []
    for line in match.group(1).split("\n"):
        if lines and re.match(rf"\s*{stop_header}\b", line, re.IGNORECASE):
            break
        lines.append(line)
    return "\n".join(lines)


def _parse_party(section: str) -> InvoiceParty:
    lines = [line.strip() for line in section.split("\n") if line.strip()]
    return InvoiceParty(
        name=lines[0] if lines else None,
        tax_id=extract_nip(section),
        address=", ".join(lines[1:]) if len(lines) > 1 else None,
    )


def extract_seller(text: str) -> InvoiceParty:
    """Extract seller name, address and NIP. Empty party if not found."""
    section = _party_section(text, _SELLER_HEADER, _BUYER_HEADER)
    if section is None:
        return InvoiceParty()
    return _parse_party(section)


def extract_buyer(text: str) -> InvoiceParty | None:
    """Extract buyer name, address and NIP."""
    section = _party_section(text, _BUYER_HEADER, _SELLER_HEADER)
    if section is None:
        return None
    return _parse_party(section)


def extract_currency(text: str) -> str:
    """Detect invoice currency, defaulting to PLN."""
    for pattern in _CURRENCY_PATTERNS:
        match = pattern.search(text)
        if match:
            currency = match.group(1).upper()
            if currency.startswith("ZŁ"):
                return "PLN"
            return currency
    return "PLN"


def _first_amount(text: str, patterns: list[re.Pattern[str]], currency: str) -> Money | None:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            amount = parse_amount(match.group(1))
            if amount is not None:
                return Money(value=amount, currency=currency)
    return None


def extract_totals(text: str, currency: str) -> InvoiceTotals | None:
    """Extract net, VAT and gross totals.

    Returns:
        InvoiceTotals, or None if none of the three totals was found
    """
    net = _first_amount(text, _NET_PATTERNS, currency)
    vat = _first_amount(text, _VAT_PATTERNS, currency)
    gross = _first_amount(text, _GROSS_PATTERNS, currency)

    if net is None and vat is None and gross is None:
        return None

    return InvoiceTotals(net=net, vat=vat, gross=gross)
