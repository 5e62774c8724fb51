"""Italian-locale date parsing and normalization utilities."""

import re
from datetime import date, datetime, timedelta

from statement_ledger.utils.text_utils import Normalized

# Day/month/year with '/', '-' or '.' separators; two or four digit years
ITALIAN_DATE_PATTERN = re.compile(r"(?<!\d)(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4}|\d{2})(?!\d)")

ISO_DATE_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")

# Spreadsheet serial numbers count days from this epoch
SERIAL_DATE_EPOCH = date(1899, 12, 30)

# Numbers above this are treated as spreadsheet serial dates
SERIAL_DATE_THRESHOLD = 1000

# Two-digit years above the pivot belong to the previous century
TWO_DIGIT_YEAR_PIVOT = 50

_SERIAL_PATTERN = re.compile(r"^\d+(\.\d+)?$")

ITALIAN_MONTHS = {
    "GENNAIO": 1,
    "FEBBRAIO": 2,
    "MARZO": 3,
    "APRILE": 4,
    "MAGGIO": 5,
    "GIUGNO": 6,
    "LUGLIO": 7,
    "AGOSTO": 8,
    "SETTEMBRE": 9,
    "OTTOBRE": 10,
    "NOVEMBRE": 11,
    "DICEMBRE": 12,
}


def expand_year(year: int, digits: int) -> int:
    """Expand a two-digit year around the pivot.

    Args:
        year: Year as parsed.
        digits: Number of digits in the original token.

    Returns:
        Four-digit year.
    """
    if digits != 2:
        return year
    return 1900 + year if year > TWO_DIGIT_YEAR_PIVOT else 2000 + year


def serial_to_date(serial: float) -> date:
    """Convert a spreadsheet serial number to a date.

    Args:
        serial: Days since 1899-12-30 (fractional part is the time of day).

    Returns:
        The calendar date.

    Raises:
        ValueError: If the serial is outside the representable date range.
    """
    try:
        return SERIAL_DATE_EPOCH + timedelta(days=int(serial))
    except OverflowError as e:
        raise ValueError(f"Serial date out of range: {serial}") from e


def parse_date(raw_date: object) -> date:
    """Parse an Italian-formatted date into a date object.

    Handles:
    - DD/MM/YYYY, DD-MM-YYYY, DD.MM.YYYY
    - DD/MM/YY (years > 50 map to 19xx, otherwise 20xx)
    - ISO YYYY-MM-DD
    - Spreadsheet serial numbers (numeric values above 1000)
    - date/datetime objects

    Args:
        raw_date: The raw value to parse.

    Returns:
        Parsed date object.

    Raises:
        ValueError: If the value cannot be parsed.
    """
    if isinstance(raw_date, datetime):
        return raw_date.date()
    if isinstance(raw_date, date):
        return raw_date
    if isinstance(raw_date, (int, float)) and not isinstance(raw_date, bool):
        if raw_date > SERIAL_DATE_THRESHOLD:
            return serial_to_date(raw_date)
        raise ValueError(f"Numeric value too small for a serial date: {raw_date}")

    if raw_date is None:
        raise ValueError("Empty date value")

    date_str = str(raw_date).strip()
    if not date_str:
        raise ValueError("Empty date string")

    if _SERIAL_PATTERN.match(date_str):
        serial = float(date_str)
        if serial > SERIAL_DATE_THRESHOLD:
            return serial_to_date(serial)

    iso_match = ISO_DATE_PATTERN.match(date_str)
    if iso_match:
        year, month, day = (int(g) for g in iso_match.groups())
        return date(year, month, day)

    match = ITALIAN_DATE_PATTERN.search(date_str)
    if not match:
        raise ValueError(f"Unable to parse date: {raw_date!r}")

    day, month = int(match.group(1)), int(match.group(2))
    year = expand_year(int(match.group(3)), len(match.group(3)))
    # date() raises ValueError for impossible calendar dates
    return date(year, month, day)


def normalize_date_checked(raw_date: object, today: date | None = None) -> Normalized[date]:
    """Normalize a date, falling back to today when unparseable.

    Args:
        raw_date: The raw value to normalize.
        today: Fallback date (defaults to ``date.today()``).

    Returns:
        Normalized result with ``defaulted`` set when the fallback was used.
    """
    try:
        return Normalized(parse_date(raw_date))
    except ValueError:
        return Normalized(today or date.today(), defaulted=True)


def normalize_date(raw_date: object, today: date | None = None) -> str:
    """Normalize a date to ISO format (YYYY-MM-DD).

    Unparseable input yields today's date.

    Args:
        raw_date: The raw value to normalize.
        today: Fallback date (defaults to ``date.today()``).

    Returns:
        ISO formatted date string.
    """
    return normalize_date_checked(raw_date, today).value.isoformat()


def find_dates(text: str) -> list[str]:
    """Find DD/MM/YYYY date tokens in text, in order of appearance."""
    return re.findall(r"\b\d{2}/\d{2}/\d{4}\b", text)


def parse_italian_long_date(text: str) -> date | None:
    """Parse a long-form Italian date such as ``13 SETTEMBRE 2025``.

    Args:
        text: Text containing the date.

    Returns:
        The date, or None if no valid long-form date is present.
    """
    pattern = r"(\d{1,2})\s+(" + "|".join(ITALIAN_MONTHS) + r")\s+(\d{4})"
    match = re.search(pattern, text.upper())
    if not match:
        return None
    try:
        return date(int(match.group(3)), ITALIAN_MONTHS[match.group(2)], int(match.group(1)))
    except ValueError:
        return None
