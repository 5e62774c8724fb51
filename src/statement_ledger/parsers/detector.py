"""Statement layout detection and parser selection."""

from collections.abc import Sequence
from typing import Optional

from statement_ledger.parsers.bancoposta_parser import BancoPostaParser
from statement_ledger.parsers.base import BaseParser, DocumentKind, IngestionError
from statement_ledger.parsers.line_parser import GenericLineParser
from statement_ledger.parsers.spreadsheet_parser import SpreadsheetRowParser
from statement_ledger.processing.classifier import TransactionClassifier
from statement_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)


class FormatDetector:
    """Chooses the parser for a document.

    Specialized layouts are tried first; the generic line parser is the
    fallback for any other PDF.
    """

    def __init__(self, classifier: Optional[TransactionClassifier] = None):
        """Initialize with all available parsers.

        Args:
            classifier: Classifier shared by the text parsers.
        """
        classifier = classifier or TransactionClassifier()
        self.specialized: list[BaseParser] = [BancoPostaParser(classifier)]
        self.generic = GenericLineParser(classifier)
        self.spreadsheet = SpreadsheetRowParser()

    def detect(self, kind: DocumentKind, content: Sequence) -> BaseParser:
        """Select a parser for the content.

        Args:
            kind: Document kind.
            content: Reconstructed lines (PDF) or cell grid (spreadsheet).

        Returns:
            The parser to use.

        Raises:
            IngestionError: If the kind is not supported.
        """
        if kind == DocumentKind.SPREADSHEET:
            return self.spreadsheet
        if kind != DocumentKind.PDF:
            raise IngestionError(f"Unsupported document kind: {kind}")

        for parser in self.specialized:
            if parser.can_parse(content):
                logger.info(f"Detected layout: {parser.name}")
                return parser

        logger.info(f"No specialized layout detected, using {self.generic.name}")
        return self.generic


# Module-level singleton
_detector: Optional[FormatDetector] = None


def get_detector() -> FormatDetector:
    """Get the default detector instance."""
    global _detector
    if _detector is None:
        _detector = FormatDetector()
    return _detector


def detect_parser(kind: DocumentKind, content: Sequence) -> BaseParser:
    """Select a parser using the default detector."""
    return get_detector().detect(kind, content)
