"""Parser for BancoPosta "Saldo e movimenti" statements.

In this layout one transaction spans up to three physical lines::

    PAGAMENTO POS STAZIONE FRUTTA                    <- description
    13/09/2025 11/09/2025 15,24                      <- anchor: dates + amount
    11/09/2025 09.27 ROMA OP.662210 CARTA ****2943   <- optional card detail

Some exports print the description between the dates and the amount on
the anchor line itself; that inline text is used when present.

The scan is a small state machine over the line list:
SEEKING_SECTION -> SEEKING_HEADER -> PARSING -> DONE.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from statement_ledger.models.balance import BalanceAssertion, StatementMetadata
from statement_ledger.models.transaction import RawTransactionCandidate
from statement_ledger.parsers.base import BaseParser, DocumentKind, ParseResult
from statement_ledger.processing.classifier import TransactionClassifier, extract_operation_type
from statement_ledger.utils.date_utils import parse_date, parse_italian_long_date
from statement_ledger.utils.decimal_utils import parse_signed_amount
from statement_ledger.utils.logging_config import get_logger
from statement_ledger.utils.text_utils import collapse_whitespace

logger = get_logger(__name__)

# At least this many markers identify the layout
FORMAT_MARKERS = ["SALDO E MOVIMENTI", "RIEPILOGO CONTO CORRENTE", "LISTA MOVIMENTI", "BANCOPOSTA"]
MIN_FORMAT_MARKERS = 3

SECTION_MARKERS = ["LISTA MOVIMENTI"]
HEADER_MARKERS = ["DATA CONTABILE", "DATA VALUTA"]

# Lines containing any of these are page furniture, never descriptions
NOISE_SUBSTRINGS = ["PAG.", "BANCOPOSTA", "POSTEITALIANE", "POSTE ITALIANE", "SALDO", "RIEPILOGO", "TOTALE"]

# Card detail lines are short; longer lines belong to the next transaction
MAX_DETAIL_LENGTH = 60

_DATE = r"\d{2}/\d{2}/\d{4}"
_AMOUNT = r"\d{1,3}(?:\.\d{3})+,\d{2}|\d+,\d{2}"

ANCHOR_PATTERN = re.compile(rf"^\s*({_DATE})\s+({_DATE})(?:\s+(.*?))?\s+({_AMOUNT})\s*(?:€)?\s*$")

IBAN_PATTERN = re.compile(r"IBAN\s+(IT[A-Z0-9]{25})")
ACCOUNT_PATTERN = re.compile(r"CONTO\s+NR\.?\s+(\d+)")
HOLDER_PATTERN = re.compile(r"INTESTATO\s+A\s+(.+)$")
BALANCE_PATTERN = re.compile(
    r"SALDO CONTABILE\s*([+-]?[\d.,]+)\s*€?\s*SALDO DISPONIBILE\s*([+-]?[\d.,]+)\s*€?",
    re.IGNORECASE,
)

# Card and operation references printed after the merchant
CARD_CODE_PATTERNS = [
    re.compile(r"\s*OP\.?\s*\d+\s+CARTA\s+\*+\d+\s*$", re.IGNORECASE),
    re.compile(r"\s*OPERAZIONE\s+\d+\s+CARTA\s+\*?\d+\s*$", re.IGNORECASE),
    re.compile(r"\s*CARTA\s+\*+\d+\s*$", re.IGNORECASE),
    re.compile(r"\s*OP\.?\s*\d+\s*$", re.IGNORECASE),
]
TIMESTAMP_PATTERN = re.compile(r"\s*\d{2}/\d{2}/\d{4}\s+\d{2}[.:]\d{2}\b")


def is_bancoposta_format(text: str) -> bool:
    """Check whether document text looks like a BancoPosta statement.

    Args:
        text: Full document text.

    Returns:
        True if at least three layout markers are present.
    """
    normalized = collapse_whitespace(text.upper())
    found = sum(1 for marker in FORMAT_MARKERS if marker in normalized)
    return found >= MIN_FORMAT_MARKERS


def clean_card_codes(description: str) -> str:
    """Remove embedded timestamps and trailing card/operation codes."""
    cleaned = TIMESTAMP_PATTERN.sub("", collapse_whitespace(description))
    for pattern in CARD_CODE_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    return collapse_whitespace(cleaned)


class ScanState(Enum):
    """States of the statement scan."""

    SEEKING_SECTION = "seeking_section"
    SEEKING_HEADER = "seeking_header"
    PARSING = "parsing"
    DONE = "done"


@dataclass
class StatementScanner:
    """Line scanner holding state between steps.

    Attributes:
        lines: Reconstructed lines, indexable for look-around.
        state: Current scan state.
        position: Index of the next line to examine.
        consumed: Indices already used as description or detail.
        anchors: Indices of anchor lines seen so far.
    """

    lines: list[str]
    state: ScanState = ScanState.SEEKING_SECTION
    position: int = 0
    consumed: set[int] = field(default_factory=set)
    anchors: list[int] = field(default_factory=list)

    @property
    def finished(self) -> bool:
        return self.state == ScanState.DONE

    def step(self) -> Optional[int]:
        """Advance by one line.

        Returns:
            The index of an anchor line when one is found in PARSING
            state, otherwise None.
        """
        if self.position >= len(self.lines):
            self.state = ScanState.DONE
            return None

        index = self.position
        line = self.lines[index].upper()
        self.position += 1

        if self.state == ScanState.SEEKING_SECTION:
            if any(marker in line for marker in SECTION_MARKERS):
                self.state = ScanState.SEEKING_HEADER
            elif all(marker in line for marker in HEADER_MARKERS):
                # Section title missing on some exports
                self.state = ScanState.PARSING
        elif self.state == ScanState.SEEKING_HEADER:
            if all(marker in line for marker in HEADER_MARKERS):
                self.state = ScanState.PARSING
            elif is_anchor(self.lines[index]):
                # Header row lost in extraction; this line is already data
                self.state = ScanState.PARSING
                self.anchors.append(index)
                return index
        elif self.state == ScanState.PARSING:
            if is_anchor(self.lines[index]):
                self.anchors.append(index)
                return index
        return None


def is_anchor(line: str) -> bool:
    """Check whether a line carries a date pair and a trailing amount."""
    return ANCHOR_PATTERN.match(line) is not None


def is_noise(line: str) -> bool:
    """Check whether a line is page furniture, a section title or a column header."""
    upper = line.upper()
    if any(marker in upper for marker in SECTION_MARKERS + HEADER_MARKERS):
        return True
    return any(noise in upper for noise in NOISE_SUBSTRINGS)


class BancoPostaParser(BaseParser):
    """Multi-line parser for BancoPosta statement exports."""

    def __init__(self, classifier: Optional[TransactionClassifier] = None):
        """Initialize parser.

        Args:
            classifier: Classifier for income/expense (defaults to the
                standard rule set).
        """
        self.classifier = classifier or TransactionClassifier()

    @property
    def supported_kinds(self) -> list[DocumentKind]:
        """Return supported document kinds."""
        return [DocumentKind.PDF]

    @property
    def source_kind(self) -> str:
        """Return the transaction id prefix."""
        return "bancoposta"

    def can_parse(self, content: Sequence) -> bool:
        """Check for the BancoPosta layout markers."""
        return is_bancoposta_format("\n".join(str(line) for line in content))

    def parse(self, content: Sequence) -> ParseResult:
        """Parse a BancoPosta statement.

        Args:
            content: Reconstructed text lines.

        Returns:
            ParseResult with candidates, metadata and balance assertion.
        """
        lines = [str(line) for line in content]
        result = ParseResult(
            metadata=self.extract_metadata(lines),
            balance_assertion=self.extract_balance(lines),
        )

        scanner = StatementScanner(lines)
        while not scanner.finished:
            anchor = scanner.step()
            if anchor is None:
                continue
            candidate = self._build_candidate(scanner, anchor)
            if candidate is None:
                result.unparsed_lines += 1
            else:
                result.candidates.append(candidate)

        logger.info(
            f"{self.name}: {len(result.candidates)} candidates from {len(lines)} lines "
            f"({result.unparsed_lines} unparsed)"
        )
        return result

    def _build_candidate(self, scanner: StatementScanner, anchor: int) -> Optional[RawTransactionCandidate]:
        match = ANCHOR_PATTERN.match(scanner.lines[anchor])
        if not match:
            return None
        accounting_date, value_date, inline, amount = match.groups()

        if inline and inline.strip():
            description = inline.strip()
        else:
            description_index = self._find_description(scanner, anchor)
            if description_index is None:
                logger.debug(f"No description for anchor line {anchor}, skipping")
                return None
            scanner.consumed.add(description_index)
            description = scanner.lines[description_index].strip()

        detail_index = self._find_detail(scanner, anchor)
        if detail_index is not None:
            scanner.consumed.add(detail_index)
            description = f"{description} {scanner.lines[detail_index].strip()}"

        raw_description = collapse_whitespace(description)
        operation = extract_operation_type(raw_description)
        return RawTransactionCandidate(
            amount_text=amount,
            description_text=clean_card_codes(raw_description),
            accounting_date=accounting_date,
            value_date=value_date,
            operation_type_hint=operation,
            direction=self.classifier.classify(operation, raw_description),
            source_line=anchor,
        )

    @staticmethod
    def _find_description(scanner: StatementScanner, anchor: int) -> Optional[int]:
        """Nearest usable line above the anchor, not crossing the previous anchor."""
        previous_anchor = scanner.anchors[-2] if len(scanner.anchors) > 1 else -1
        for index in range(anchor - 1, previous_anchor, -1):
            line = scanner.lines[index]
            if index in scanner.consumed or not line.strip():
                continue
            if is_anchor(line) or is_noise(line):
                continue
            return index
        return None

    @staticmethod
    def _find_detail(scanner: StatementScanner, anchor: int) -> Optional[int]:
        """The line below the anchor when it is card detail for this transaction."""
        index = anchor + 1
        if index >= len(scanner.lines):
            return None
        line = scanner.lines[index].strip()
        if not line or len(line) > MAX_DETAIL_LENGTH:
            return None
        if is_anchor(line) or is_noise(line):
            return None
        # A line followed by an anchor (page furniture aside) is the next description
        for following in range(index + 1, len(scanner.lines)):
            text = scanner.lines[following]
            if not text.strip() or is_noise(text):
                continue
            if is_anchor(text):
                return None
            break
        return index

    def extract_metadata(self, lines: list[str]) -> StatementMetadata:
        """Extract account details from the statement header.

        Args:
            lines: Reconstructed lines.

        Returns:
            StatementMetadata (fields are None when not found).
        """
        metadata = StatementMetadata()
        for line in lines:
            upper = line.upper()
            if metadata.iban is None:
                match = IBAN_PATTERN.search(upper)
                if match:
                    metadata.iban = match.group(1)
            if metadata.account_number is None:
                match = ACCOUNT_PATTERN.search(upper)
                if match:
                    metadata.account_number = match.group(1)
            if metadata.holder is None:
                match = HOLDER_PATTERN.search(line.strip())
                if match:
                    metadata.holder = collapse_whitespace(match.group(1))
            if metadata.statement_date is None and "SALDO E MOVIMENTI" in upper:
                metadata.statement_date = parse_italian_long_date(upper)
        return metadata

    def extract_balance(self, lines: list[str]) -> Optional[BalanceAssertion]:
        """Extract the balance from the book/available balance header line.

        The available balance is preferred; the book balance is used when
        the available one cannot be parsed.

        Args:
            lines: Reconstructed lines.

        Returns:
            BalanceAssertion, or None if the header line is missing.
        """
        for line in lines:
            match = BALANCE_PATTERN.search(line)
            if not match:
                continue
            date_match = re.search(_DATE, line)
            statement_date = None
            if date_match:
                try:
                    statement_date = parse_date(date_match.group(0))
                except ValueError:
                    statement_date = None

            book_text, available_text = match.groups()
            for pattern_name, text in (("SALDO DISPONIBILE", available_text), ("SALDO CONTABILE", book_text)):
                try:
                    value = parse_signed_amount(text)
                except ValueError:
                    continue
                return BalanceAssertion(value=value, extraction_pattern=pattern_name, statement_date=statement_date)
        return None
