"""Polish-specific parsing and validation rules.

Pure functions for NIP tax ids, dates, amounts and VAT rates as they appear
on Polish (and bilingual Polish/English) invoices.
"""

import re
from decimal import Decimal, InvalidOperation

NIP_WEIGHTS = (6, 5, 7, 2, 3, 4, 5, 6, 7)

# Standard rates plus exempt (zw), not subject (np) and reverse charge (oo)
POLISH_VAT_RATES = ["0%", "5%", "8%", "23%", "zw", "np", "oo"]

_NIP_PATTERNS = [
    re.compile(r"NIP[:\s]+(\d{3}[\s-]?\d{3}[\s-]?\d{2}[\s-]?\d{2})", re.IGNORECASE),
    re.compile(r"NIP[:\s]+(\d{10})", re.IGNORECASE),
    re.compile(r"(?:Tax|VAT)\s*ID[:\s]+PL[\s-]?(\d{10})", re.IGNORECASE),
]

_DATE_PATTERNS = [
    re.compile(r"(\d{1,2})[./-](\d{1,2})[./-](\d{4})"),
    re.compile(r"(\d{4})[./-](\d{1,2})[./-](\d{1,2})"),
]

_CURRENCY_NOISE = re.compile(r"złotych|złote|złoty|zł|PLN|EUR|USD|GBP|[€$£]", re.IGNORECASE)
_PLAIN_NUMBER = re.compile(r"[-+]?\d+(?:\.\d+)?")


def validate_nip(nip: str) -> bool:
    """Validate a Polish NIP using its mod-11 weighted checksum.

    Args:
        nip: NIP with or without separators (e.g. "123-456-32-18")

    Returns:
        True if the NIP has 10 digits and a valid checksum
    """
    digits = re.sub(r"\D", "", nip)
    if len(digits) != 10:
        return False

    checksum = sum(int(d) * w for d, w in zip(digits[:9], NIP_WEIGHTS)) % 11
    # A checksum of 10 can never match a single digit
    if checksum == 10:
        return False

    return checksum == int(digits[9])


def extract_nip(text: str) -> str | None:
    """Extract the first valid NIP from text.

    Labeled patterns are tried first; if none yields a valid NIP, any bare
    10-digit sequence that passes the checksum is accepted.

    Args:
        text: Text to search

    Returns:
        NIP as 10 digits, or None if nothing validates
    """
    for pattern in _NIP_PATTERNS:
        match = pattern.search(text)
        if match:
            nip = re.sub(r"\D", "", match.group(1))
            if validate_nip(nip):
                return nip

    for digits in re.findall(r"\d{10}", text):
        if validate_nip(digits):
            return digits

    return None


def parse_date(text: str) -> str | None:
    """Parse a Polish-style date into ISO format.

    Supports dd.mm.yyyy, dd-mm-yyyy, dd/mm/yyyy and the year-first variants.

    Args:
        text: Text containing a date

    Returns:
        Date as YYYY-MM-DD, or None if no plausible date is found
    """
    for pattern in _DATE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue

        first, month, last = match.groups()
        if len(last) == 4:
            year, day = last, first
        else:
            year, day = first, last

        if 1 <= int(month) <= 12 and 1 <= int(day) <= 31:
            return f"{year}-{int(month):02d}-{int(day):02d}"

    return None


def parse_amount(text: str) -> Decimal | None:
    """Parse a monetary amount written in Polish or English notation.

    Handles currency words and symbols, space and apostrophe thousands
    separators and both decimal separators ("1 234,56 zł", "1.234,56",
    "1,234.56").

    Args:
        text: Amount text

    Returns:
        Parsed amount, or None if the text is not numeric
    """
    cleaned = _CURRENCY_NOISE.sub("", text)
    cleaned = re.sub(r"[\s']", "", cleaned).strip(".,")
    if not cleaned:
        return None

    if "," in cleaned and "." in cleaned:
        # Whichever separator comes last is the decimal separator
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        if cleaned.count(",") == 1:
            cleaned = cleaned.replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif cleaned.count(".") > 1:
        cleaned = cleaned.replace(".", "")

    if not _PLAIN_NUMBER.fullmatch(cleaned):
        return None

    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None


def normalize_vat_rate(text: str) -> str:
    """Normalize a VAT rate to "23%" or one of the special codes.

    Args:
        text: Raw rate text (e.g. "8 %", "zwolniony")

    Returns:
        Normalized rate, or the input unchanged if it is not recognized
    """
    cleaned = text.lower().strip()

    match = re.search(r"(\d+)\s*%?", cleaned)
    if match:
        return f"{match.group(1)}%"

    if "zw" in cleaned:
        return "zw"
    if "np" in cleaned or "nie" in cleaned:
        return "np"
    if "oo" in cleaned:
        return "oo"

    return text
