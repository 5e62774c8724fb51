"""Generic parser for free-text statement lines.

Each reconstructed line is tried against three patterns in order:

1. Two dates, amount, known operation keyword, description
2. Two dates, amount, free-form description (operation inferred)
3. One date, amount, description

Lines matching none of them are treated as noise or continuation text.
"""

import re
from collections.abc import Sequence
from typing import Optional

from statement_ledger.models.transaction import RawTransactionCandidate
from statement_ledger.parsers.base import BaseParser, DocumentKind, ParseResult
from statement_ledger.processing.classifier import TransactionClassifier, extract_operation_type
from statement_ledger.utils.logging_config import get_logger
from statement_ledger.utils.text_utils import clean_description

logger = get_logger(__name__)

# Lines shorter than this cannot hold a transaction
MIN_LINE_LENGTH = 10

_DATE = r"\d{2}/\d{2}/\d{2}(?:\d{2})?"
_AMOUNT = r"\d{1,3}(?:\.\d{3})+,\d{2}|\d+,\d{2}"

OPERATION_LINE_PATTERN = re.compile(
    rf"^\s*({_DATE})\s+({_DATE})\s+({_AMOUNT})\s+"
    r"(PAGAMENTO\s+POS|BONIFICO|ADDEBITO|POSTAGIRO|ACCR\.?\s?RIC\.?)\s+(.+)$",
    re.IGNORECASE,
)
TWO_DATE_LINE_PATTERN = re.compile(
    rf"^\s*({_DATE})\s+({_DATE})\s+({_AMOUNT})\s+(.+)$",
    re.IGNORECASE,
)
SINGLE_DATE_LINE_PATTERN = re.compile(
    rf"^\s*({_DATE})\s+({_AMOUNT})\s+(.+)$",
    re.IGNORECASE,
)

_LEADING_DATE = re.compile(rf"^\s*{_DATE}\b")

# Trailing reference and routing codes that carry no meaning for the user
TRAILING_CODE_PATTERNS = [
    re.compile(r"\s*OPERAZIONE\s+\d+\s*CARTA\s+\d+$", re.IGNORECASE),
    re.compile(r"\s*TRN\s+[A-Z0-9]+$", re.IGNORECASE),
    re.compile(r"\s*BPPIITRR(XXX)?$", re.IGNORECASE),
    re.compile(r"\s*BITAITRRXXX$", re.IGNORECASE),
    re.compile(r"\s*BNLIITRRXXX$", re.IGNORECASE),
    re.compile(r"\s*CID\.[A-Z0-9]+\s+\d+\s+MAN\.[A-Z0-9-]+$", re.IGNORECASE),
]

# ISO country codes printed after POS merchant locations
COUNTRY_CODES = {
    "ITA", "GBR", "IRL", "USA", "LUX", "NLD", "DEU", "FRA", "ESP",
    "BEL", "CHE", "AUT", "PRT", "SWE", "DNK", "POL", "CAN",
}

_POS_MERCHANT = re.compile(r"\d{2}/\d{2}/\d{4}\s+[\d.:]+\s+(.+)")
_TRANSFER_PARTY = re.compile(r"(?:^|\s)(?:A|Da)\s+(.+?)(?:\s+TRN\b|$)", re.IGNORECASE)
_GIRO_PARTY = re.compile(r"(?:^|\s)Da\s+(.+?)(?:\s+TRN\b|$)", re.IGNORECASE)
_DIRECT_DEBIT = re.compile(r"DIRETTO\s+SDD\*{0,2}\s+(.+?)(?:\s+CID\b|$)", re.IGNORECASE)


def strip_trailing_codes(text: str) -> str:
    """Remove trailing reference, card and routing codes."""
    cleaned = text.strip()
    for pattern in TRAILING_CODE_PATTERNS:
        cleaned = pattern.sub("", cleaned).strip()
    return cleaned


def _drop_country_code(text: str) -> str:
    words = text.split()
    if len(words) > 1 and words[-1] in COUNTRY_CODES:
        words = words[:-1]
    return " ".join(words)


def extract_meaningful_description(description: str, operation_type: Optional[str]) -> str:
    """Reduce a raw description to the part that identifies the counterparty.

    POS payments keep the merchant (without timestamp and country code),
    transfers keep the counterparty, direct debits keep the creditor.

    Args:
        description: Raw description text following the amount.
        operation_type: Operation keyword, if known.

    Returns:
        Cleaned description (placeholder if nothing is left).
    """
    if not description or not description.strip():
        return clean_description(None)

    cleaned = strip_trailing_codes(re.sub(r"\s+", " ", description))
    operation = (operation_type or "").upper()

    if "PAGAMENTO POS" in operation:
        match = _POS_MERCHANT.search(cleaned)
        if match:
            return clean_description(_drop_country_code(match.group(1)))
    elif "BONIFICO" in operation:
        match = _TRANSFER_PARTY.search(cleaned)
        if match:
            return clean_description(match.group(1))
    elif "ADDEBITO" in operation:
        match = _DIRECT_DEBIT.search(cleaned)
        if match:
            return clean_description(match.group(1))
    elif "POSTAGIRO" in operation:
        match = _GIRO_PARTY.search(cleaned)
        if match:
            return clean_description(match.group(1))

    cleaned = re.sub(r"^\d{2}/\d{2}/\d{4}\s+[\d.:]+\s+", "", cleaned)
    cleaned = re.sub(r"\s+OPERAZIONE\b.*$", "", cleaned, flags=re.IGNORECASE)
    cleaned = _drop_country_code(cleaned)
    return clean_description(cleaned)


class GenericLineParser(BaseParser):
    """Regex parser for single-line statement layouts.

    Used for PDF statements that are not recognized as a specialized
    layout. Produces at most one candidate per line.
    """

    def __init__(self, classifier: Optional[TransactionClassifier] = None):
        """Initialize parser.

        Args:
            classifier: Classifier used to decide direction from the raw
                description (defaults to the standard rule set).
        """
        self.classifier = classifier or TransactionClassifier()

    @property
    def supported_kinds(self) -> list[DocumentKind]:
        """Return supported document kinds."""
        return [DocumentKind.PDF]

    @property
    def source_kind(self) -> str:
        """Return the transaction id prefix."""
        return "pdf"

    def can_parse(self, content: Sequence) -> bool:
        """Check whether any line looks like a transaction."""
        return any(self.parse_line(str(line)) is not None for line in content)

    def parse(self, content: Sequence) -> ParseResult:
        """Parse reconstructed lines.

        Args:
            content: Reconstructed text lines.

        Returns:
            ParseResult with one candidate per matching line.
        """
        result = ParseResult()
        for index, line in enumerate(content):
            candidate = self.parse_line(str(line), index)
            if candidate is not None:
                result.candidates.append(candidate)
            elif _LEADING_DATE.match(str(line)):
                # Starts like a transaction but has no usable shape
                result.unparsed_lines += 1
                logger.debug(f"Skipping unparseable line {index}: {str(line)[:60]!r}")

        logger.info(
            f"{self.name}: {len(result.candidates)} candidates from {len(content)} lines "
            f"({result.unparsed_lines} unparsed)"
        )
        return result

    def parse_line(self, line: str, index: Optional[int] = None) -> Optional[RawTransactionCandidate]:
        """Parse a single line.

        Args:
            line: Reconstructed line.
            index: Line number, recorded on the candidate.

        Returns:
            A candidate, or None if the line matches no pattern.
        """
        if not line or len(line.strip()) < MIN_LINE_LENGTH:
            return None

        match = OPERATION_LINE_PATTERN.match(line)
        if match:
            accounting, value, amount, operation, description = match.groups()
            operation = re.sub(r"\s+", " ", operation).upper()
            return self._candidate(amount, description, operation, accounting, value, index)

        match = TWO_DATE_LINE_PATTERN.match(line)
        if match:
            accounting, value, amount, description = match.groups()
            operation = extract_operation_type(description)
            return self._candidate(amount, description, operation, accounting, value, index)

        match = SINGLE_DATE_LINE_PATTERN.match(line)
        if match:
            booked, amount, description = match.groups()
            return self._candidate(amount, description, None, booked, None, index)

        return None

    def _candidate(
        self,
        amount: str,
        description: str,
        operation: Optional[str],
        accounting_date: Optional[str],
        value_date: Optional[str],
        index: Optional[int],
    ) -> RawTransactionCandidate:
        # Direction is decided on the full text; the cleaned description
        # loses prepositions such as "A"/"Da" that mark transfers
        direction = self.classifier.classify(operation, f"{operation or ''} {description}")
        return RawTransactionCandidate(
            amount_text=amount,
            description_text=extract_meaningful_description(description, operation),
            accounting_date=accounting_date,
            value_date=value_date,
            operation_type_hint=operation,
            direction=direction,
            source_line=index,
        )
