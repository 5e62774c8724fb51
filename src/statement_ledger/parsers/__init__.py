"""Statement parsers for PDF text and spreadsheet layouts."""

from statement_ledger.parsers.bancoposta_parser import BancoPostaParser, is_bancoposta_format
from statement_ledger.parsers.base import (
    BaseParser,
    DocumentKind,
    IngestionError,
    ParseError,
    ParseResult,
)
from statement_ledger.parsers.detector import FormatDetector, detect_parser, get_detector
from statement_ledger.parsers.layout import (
    PdfTextExtractor,
    RawTextFragment,
    reconstruct_lines,
    reconstruct_page,
)
from statement_ledger.parsers.line_parser import GenericLineParser
from statement_ledger.parsers.spreadsheet_parser import SpreadsheetCellExtractor, SpreadsheetRowParser

__all__ = [
    "BaseParser",
    "DocumentKind",
    "IngestionError",
    "ParseError",
    "ParseResult",
    "BancoPostaParser",
    "is_bancoposta_format",
    "FormatDetector",
    "detect_parser",
    "get_detector",
    "PdfTextExtractor",
    "RawTextFragment",
    "reconstruct_lines",
    "reconstruct_page",
    "GenericLineParser",
    "SpreadsheetCellExtractor",
    "SpreadsheetRowParser",
]
