"""Decimal utilities for Italian-formatted amounts.

All monetary values are Decimal to avoid floating-point precision issues.
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from statement_ledger.utils.text_utils import Normalized

# Everything except digits, separators and minus is noise
_NON_NUMERIC_RE = re.compile(r"[^\d,.\-]")

# Leading numeric prefix, the rest of the string is ignored
_NUMERIC_PREFIX_RE = re.compile(r"^-?(\d+(\.\d*)?|\.\d+)")

# Italian amount token: 1.234,56 / 15,24 / 8847,41
AMOUNT_TOKEN_PATTERN = r"[+-]?\d{1,3}(?:\.\d{3})*,\d{2}|[+-]?\d+,\d{2}"

CENT = Decimal("0.01")


def parse_amount(raw_amount: object) -> Decimal:
    """Parse an Italian-formatted amount into an absolute Decimal.

    Rules:
    - Strip everything except digits, ',', '.', '-'
    - Both '.' and ',' present: '.' is a thousands separator, ',' the decimal point
    - Only ',' present: it is the decimal point
    - Trailing garbage after the numeric prefix is ignored
    - The sign is dropped; direction is decided by classification

    Args:
        raw_amount: The raw amount (string or number).

    Returns:
        Absolute amount as Decimal.

    Raises:
        ValueError: If no numeric value can be extracted.
    """
    if isinstance(raw_amount, bool) or raw_amount is None:
        raise ValueError(f"Not an amount: {raw_amount!r}")
    if isinstance(raw_amount, (int, float, Decimal)):
        try:
            return abs(Decimal(str(raw_amount)))
        except InvalidOperation as e:
            raise ValueError(f"Not an amount: {raw_amount!r}") from e

    cleaned = _NON_NUMERIC_RE.sub("", str(raw_amount))
    if "." in cleaned and "," in cleaned:
        cleaned = cleaned.replace(".", "").replace(",", ".", 1)
    elif "," in cleaned:
        cleaned = cleaned.replace(",", ".", 1)

    match = _NUMERIC_PREFIX_RE.match(cleaned)
    if not match:
        raise ValueError(f"Unable to parse amount: {raw_amount!r}")

    return abs(Decimal(match.group(0)))


def normalize_amount_checked(raw_amount: object) -> Normalized[Decimal]:
    """Normalize an amount, falling back to zero when unparseable.

    Args:
        raw_amount: The raw amount.

    Returns:
        Normalized result with ``defaulted`` set when zero was substituted.
    """
    try:
        return Normalized(parse_amount(raw_amount))
    except ValueError:
        return Normalized(Decimal("0"), defaulted=True)


def normalize_amount(raw_amount: object) -> Decimal:
    """Normalize an amount; malformed input yields Decimal 0, never raises."""
    return normalize_amount_checked(raw_amount).value


def round_currency(amount: Decimal) -> Decimal:
    """Round to cents using ROUND_HALF_UP."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(amount: Decimal) -> str:
    """Format an amount with two decimals (1234.5 -> '1234.50')."""
    rounded = round_currency(amount)
    if rounded == 0:
        rounded = Decimal("0.00")
    return f"{rounded:.2f}"


def format_italian(amount: Decimal) -> str:
    """Format an amount Italian style (1234.5 -> '1.234,50')."""
    text = f"{round_currency(amount):,.2f}"
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


def parse_signed_amount(raw_amount: str) -> Decimal:
    """Parse an amount keeping an explicit leading minus sign.

    Balances can be negative, unlike transaction amounts.

    Args:
        raw_amount: Amount text such as "+8.847,41" or "-120,00".

    Returns:
        Signed Decimal.

    Raises:
        ValueError: If no numeric value can be extracted.
    """
    value = parse_amount(raw_amount)
    return -value if raw_amount.strip().startswith("-") else value
