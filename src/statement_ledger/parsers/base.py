"""Parser base classes, parse results and ingestion errors."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from statement_ledger.models.balance import BalanceAssertion, StatementMetadata
from statement_ledger.models.transaction import RawTransactionCandidate
from statement_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)


class ParseError(Exception):
    """Exception raised when a document's structure cannot be parsed."""

    def __init__(self, message: str, source: Optional[str] = None):
        """Initialize ParseError.

        Args:
            message: Error message.
            source: Optional name of the document that failed to parse.
        """
        self.source = source
        super().__init__(message)


class IngestionError(ParseError):
    """Document-level failure: too small, unreadable or unsupported."""

    pass


class DocumentKind(Enum):
    """Kinds of statement documents the pipeline accepts."""

    PDF = "pdf"
    SPREADSHEET = "spreadsheet"


@dataclass
class ParseResult:
    """Output of a statement parser.

    Attributes:
        candidates: Transactions found, not yet normalized.
        balance_assertion: Balance stated by the document, if found.
        metadata: Account information from the header, if found.
        unparsed_lines: Lines or rows that looked like data but were skipped.
    """

    candidates: list[RawTransactionCandidate] = field(default_factory=list)
    balance_assertion: Optional[BalanceAssertion] = None
    metadata: Optional[StatementMetadata] = None
    unparsed_lines: int = 0


class BaseParser(ABC):
    """Abstract base class for statement parsers.

    Subclasses must implement:
    - supported_kinds: Document kinds this parser handles
    - source_kind: Prefix used for transaction ids
    - can_parse(): Check if this parser understands the content
    - parse(): Turn the content into transaction candidates
    """

    @property
    @abstractmethod
    def supported_kinds(self) -> list[DocumentKind]:
        """Return the document kinds this parser supports."""
        pass

    @property
    @abstractmethod
    def source_kind(self) -> str:
        """Return the prefix used in transaction ids (e.g. 'pdf', 'xlsx')."""
        pass

    @property
    def name(self) -> str:
        """Return parser name for logging."""
        return self.__class__.__name__

    @abstractmethod
    def can_parse(self, content: Sequence) -> bool:
        """Check if this parser can handle the content.

        Args:
            content: Reconstructed lines (text documents) or a cell grid
                (spreadsheets).

        Returns:
            True if this parser understands the layout.
        """
        pass

    @abstractmethod
    def parse(self, content: Sequence) -> ParseResult:
        """Parse content into transaction candidates.

        Line and row level problems are skipped, never raised.

        Args:
            content: Reconstructed lines or a cell grid.

        Returns:
            ParseResult with candidates and optional balance/metadata.

        Raises:
            ParseError: If the document structure is unusable.
        """
        pass

    def supports(self, kind: DocumentKind) -> bool:
        """Check if this parser handles a document kind."""
        return kind in self.supported_kinds
