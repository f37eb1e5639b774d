"""Line item (invoice position) detection.

Two passes: find a table header and parse the rows below it; if no header
exists, fall back to scanning every line for something that looks like an
item row.
"""

import logging
import re
from decimal import Decimal

from invoice_reader.extraction.polish import normalize_vat_rate, parse_amount
from invoice_reader.extraction.schema import InvoicePosition, Money

logger = logging.getLogger(__name__)

_HEADER_ROW_NUMBER = re.compile(r"\blp\b|\bno\.|\bnr\b|#")
_HEADER_NAME = re.compile(r"nazwa|name|description|opis")
_HEADER_PRICE = re.compile(r"cena|price|kwota|amount|wartość")
_TABLE_END = re.compile(r"\b(?:razem|total|suma)\b", re.IGNORECASE)
_SUMMARY_LABEL = re.compile(r"^\s*(?:razem|total|suma)\b", re.IGNORECASE)

# Space-grouped thousands ("1 234,56") or a plain number ("12", "150,00")
_NUMBER_TOKEN = re.compile(r"\d{1,3}(?:[ \u00a0]\d{3})+(?:[.,]\d+)?|\d+(?:[.,]\d+)?")
_GROUP_SEPARATOR = re.compile(r"[ \u00a0]")
_PERCENT_SUFFIX = re.compile(r"\s*%")
_ROW_NUMBER = re.compile(r"^\s*\d{1,3}[.)]?\s+(?=[^\d\s])")
_UNIT = re.compile(
    r"\s*(szt\.?|sztuk|kpl\.?|godz\.?|usł\.?|kg|m2|m3|mb|h|l|m|pcs|pc|hrs?|units?)(?=\s|$)",
    re.IGNORECASE,
)

_HAS_AMOUNT = re.compile(r"\d+[,.]\d{2}")
_HAS_WORD = re.compile(r"[a-zA-ZąćęłńóśźżĄĆĘŁŃÓŚŹŻ]{3,}")
_DATE = re.compile(r"\d{1,2}[./-]\d{1,2}[./-]\d{4}|\d{4}[./-]\d{1,2}[./-]\d{1,2}")

_ROW_TOLERANCE = Decimal("0.01")


def detect_line_items(text: str, currency: str) -> list[InvoicePosition]:
    """Detect invoice positions in raw text.

    Args:
        text: Raw document text
        currency: Currency code applied to all amounts

    Returns:
        Detected positions (possibly empty)
    """
    lines = [line.strip() for line in text.split("\n") if line.strip()]

    table_start = _find_table_start(lines)
    if table_start is None:
        return _detect_line_items_heuristic(text, currency)

    positions: list[InvoicePosition] = []
    for line in lines[table_start:]:
        if _TABLE_END.search(line):
            break
        position = parse_line_item(line, currency, strip_row_number=True)
        if position:
            positions.append(position)

    logger.debug(f"Table detected at line {table_start}: {len(positions)} positions")
    return positions


def _find_table_start(lines: list[str]) -> int | None:
    for index, line in enumerate(lines):
        lowered = line.lower()
        if (
            _HEADER_ROW_NUMBER.search(lowered)
            and _HEADER_NAME.search(lowered)
            and _HEADER_PRICE.search(lowered)
        ):
            return index + 1
    return None


def parse_line_item(
    line: str, currency: str, strip_row_number: bool = False
) -> InvoicePosition | None:
    """Parse one row of an item table.

    Numeric tokens are assigned by position: quantity, unit price, and from
    the end gross, VAT (five or more tokens) and net (third from the end).
    A token followed by "%" is the VAT rate.

    A leading "1 200,00" is read as thousands unless only the split reading
    (quantity 1, price 200,00) agrees with a later row amount.

    Args:
        line: Row text
        currency: Currency code for amounts
        strip_row_number: Drop a leading row number ("1.", "2)", "3 ")

    Returns:
        InvoicePosition, or None if the row has fewer than two numbers
    """
    if strip_row_number:
        line = _ROW_NUMBER.sub("", line, count=1)

    vat_rate: str | None = None
    tokens: list[tuple[re.Match[str], Decimal]] = []

    for match in _NUMBER_TOKEN.finditer(line):
        if _PERCENT_SUFFIX.match(line, match.end()):
            vat_rate = normalize_vat_rate(match.group(0))
            continue
        amount = parse_amount(match.group(0))
        if amount is not None:
            tokens.append((match, amount))

    if not tokens:
        return None

    first = tokens[0][0]
    amounts = [amount for _, amount in tokens]
    quantity_end = first.end()

    split = _split_grouped_quantity(first.group(0), amounts)
    if split is not None:
        quantity_length, amounts = split
        quantity_end = first.start() + quantity_length

    if len(amounts) < 2:
        return None

    first_digit = re.search(r"\d", line)
    name = line[: first_digit.start()].strip(" \t-:;,|") if first_digit else line
    if not name:
        name = line.strip()

    unit = None
    unit_match = _UNIT.match(line, quantity_end)
    if unit_match:
        unit = unit_match.group(1)

    net = vat = gross = None
    if len(amounts) >= 3:
        net = Money(value=amounts[-3], currency=currency)
        gross = Money(value=amounts[-1], currency=currency)
    if len(amounts) >= 5:
        vat = Money(value=amounts[-2], currency=currency)

    return InvoicePosition(
        name=name,
        quantity=amounts[0],
        unit=unit,
        unit_price=Money(value=amounts[1], currency=currency),
        vat_rate=vat_rate,
        net=net,
        vat=vat,
        gross=gross,
    )


def _reconciles(amounts: list[Decimal]) -> bool:
    """True if quantity x unit price equals one of the later row amounts."""
    if len(amounts) < 3:
        return False
    expected = amounts[0] * amounts[1]
    return any(abs(expected - amount) <= _ROW_TOLERANCE for amount in amounts[2:])


def _split_grouped_quantity(
    token: str, amounts: list[Decimal]
) -> tuple[int, list[Decimal]] | None:
    """Re-read a grouped first token as quantity followed by unit price.

    Returns:
        Tuple of (length of the quantity text, new amounts), or None to keep
        the grouped reading
    """
    parts = _GROUP_SEPARATOR.split(token, maxsplit=1)
    if len(parts) != 2 or _reconciles(amounts):
        return None

    price = parse_amount(parts[1])
    if price is None:
        return None

    split = [Decimal(parts[0]), price, *amounts[1:]]
    if not _reconciles(split):
        return None
    return len(parts[0]), split


def _detect_line_items_heuristic(text: str, currency: str) -> list[InvoicePosition]:
    """Keep lines with a 2-decimal amount and a real word (rejects page/footer noise).

    Dates are blanked before parsing so "15.10.2025" never counts as an
    amount. Lines starting with a summary label are never items.
    """
    positions: list[InvoicePosition] = []

    for raw_line in text.split("\n"):
        line = _DATE.sub(" ", raw_line).strip()
        if not (_HAS_AMOUNT.search(line) and _HAS_WORD.search(line)):
            continue
        if _SUMMARY_LABEL.match(line):
            continue
        position = parse_line_item(line, currency)
        if position and len(position.name) > 3:
            positions.append(position)

    return positions
