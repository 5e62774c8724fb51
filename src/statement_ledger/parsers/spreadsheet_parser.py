"""Spreadsheet statement parsing.

``SpreadsheetCellExtractor`` turns workbook (or CSV) bytes into a grid of
strings; ``SpreadsheetRowParser`` resolves the header row and maps data
rows to transaction candidates. Debit/credit columns fix the direction
of each row, so the classifier is not consulted here.
"""

import csv
import io
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from openpyxl import load_workbook

from statement_ledger.models.transaction import RawTransactionCandidate, TransactionType
from statement_ledger.parsers.base import BaseParser, DocumentKind, IngestionError, ParseError, ParseResult
from statement_ledger.utils.decimal_utils import normalize_amount
from statement_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)

# Maximum spreadsheet size to prevent memory exhaustion (50 MB)
MAX_SPREADSHEET_BYTES = 50 * 1024 * 1024

# Rows with smaller amounts are ignored
MIN_ROW_AMOUNT = Decimal("0.01")

# Header phrases per column, matched as lowercase substrings
ACCOUNTING_DATE_HEADERS = ["data contabile", "accounting date", "data operazione"]
VALUE_DATE_HEADERS = ["data valuta", "value date"]
DEBIT_HEADERS = ["addebiti", "addebito", "uscite", "debit"]
CREDIT_HEADERS = ["accrediti", "accredito", "entrate", "credit"]
DESCRIPTION_HEADERS = ["descrizione", "description", "causale"]
GENERIC_DATE_HEADERS = ["data", "date"]

# openpyxl workbooks are zip archives
_ZIP_MAGIC = b"PK\x03\x04"


def stringify_cell(value: object) -> str:
    """Convert a cell value to text.

    Dates become DD/MM/YYYY, whole floats drop their ".0".

    Args:
        value: Raw cell value.

    Returns:
        Cell text ("" for empty cells).
    """
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%d/%m/%Y")
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


class SpreadsheetCellExtractor:
    """Reads the first sheet of a workbook (or a CSV export) into a grid."""

    def __init__(self, max_bytes: int = MAX_SPREADSHEET_BYTES):
        """Initialize extractor.

        Args:
            max_bytes: Larger documents are rejected.
        """
        self.max_bytes = max_bytes

    def extract_grid(self, data: bytes, source: Optional[str] = None) -> list[list[str]]:
        """Extract a row-major grid of cell strings.

        Args:
            data: Document bytes (xlsx or CSV).
            source: Document name for error messages.

        Returns:
            Rows of stringified cells, header rows included.

        Raises:
            IngestionError: If the document is too large or unreadable.
        """
        if len(data) > self.max_bytes:
            raise IngestionError(
                f"Spreadsheet too large ({len(data) / 1024 / 1024:.1f} MB). "
                f"Maximum allowed is {self.max_bytes / 1024 / 1024:.0f} MB",
                source,
            )
        if data.startswith(_ZIP_MAGIC):
            return self._extract_workbook(data, source)
        return self._extract_csv(data, source)

    def _extract_workbook(self, data: bytes, source: Optional[str]) -> list[list[str]]:
        try:
            wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
            try:
                sheet = wb.worksheets[0]
                grid = [[stringify_cell(v) for v in row] for row in sheet.iter_rows(values_only=True)]
            finally:
                wb.close()
        except Exception as e:
            raise IngestionError(f"Failed to read workbook: {e}", source) from e
        logger.debug(f"Read {len(grid)} rows from first worksheet")
        return grid

    def _extract_csv(self, data: bytes, source: Optional[str]) -> list[list[str]]:
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError:
            text = data.decode("latin-1")
        if "\x00" in text:
            raise IngestionError("Unsupported spreadsheet format (binary content)", source)

        sample = text[:4096]
        try:
            dialect = csv.Sniffer().sniff(sample, delimiters=";,\t|")
            delimiter = dialect.delimiter
        except csv.Error:
            delimiter = ";"
        grid = [[cell.strip() for cell in row] for row in csv.reader(io.StringIO(text), delimiter=delimiter)]
        logger.debug(f"Read {len(grid)} CSV rows (delimiter {delimiter!r})")
        return grid


@dataclass
class ColumnMapping:
    """Column indices resolved from the header row (None = absent)."""

    accounting_date: Optional[int] = None
    value_date: Optional[int] = None
    debit: Optional[int] = None
    credit: Optional[int] = None
    description: Optional[int] = None

    @property
    def has_amount(self) -> bool:
        return self.debit is not None or self.credit is not None


def _find_column(header: list[str], phrases: list[str], exclude: set[int] | None = None) -> Optional[int]:
    for index, cell in enumerate(header):
        if exclude and index in exclude:
            continue
        text = cell.lower()
        if any(phrase in text for phrase in phrases):
            return index
    return None


def _safe_get(row: Sequence[str], index: Optional[int]) -> str:
    if index is None or index >= len(row):
        return ""
    return str(row[index]).strip()


class SpreadsheetRowParser(BaseParser):
    """Maps tabular statement rows to transaction candidates."""

    @property
    def supported_kinds(self) -> list[DocumentKind]:
        """Return supported document kinds."""
        return [DocumentKind.SPREADSHEET]

    @property
    def source_kind(self) -> str:
        """Return the transaction id prefix."""
        return "xlsx"

    def can_parse(self, content: Sequence) -> bool:
        """Check whether the grid has a recognizable header row."""
        return self.find_header_row(content) is not None

    def parse(self, content: Sequence) -> ParseResult:
        """Parse a cell grid.

        A header without amount or description columns yields an empty
        result and every non-blank data row counts as unparsed.

        Args:
            content: Row-major grid of cell strings.

        Returns:
            ParseResult with one candidate per usable data row.

        Raises:
            ParseError: If no header row can be found.
        """
        grid = [list(row) for row in content]
        header_index = self.find_header_row(grid)
        if header_index is None:
            raise ParseError("No header row found in spreadsheet")

        mapping = self.detect_column_mapping(grid[header_index])
        result = ParseResult()
        if not mapping.has_amount or mapping.description is None:
            result.unparsed_lines = sum(
                1 for row in grid[header_index + 1:] if any(cell.strip() for cell in row)
            )
            logger.warning(
                f"{self.name}: header lacks amount or description columns, "
                f"skipping {result.unparsed_lines} rows: {grid[header_index]}"
            )
            return result

        for row_index in range(header_index + 1, len(grid)):
            candidate = self._parse_row(grid[row_index], mapping, row_index)
            if candidate is None:
                if any(cell.strip() for cell in grid[row_index]):
                    result.unparsed_lines += 1
                continue
            result.candidates.append(candidate)

        logger.info(
            f"{self.name}: {len(result.candidates)} candidates from {len(grid) - header_index - 1} rows "
            f"({result.unparsed_lines} skipped)"
        )
        return result

    @staticmethod
    def find_header_row(grid: Sequence[Sequence[str]]) -> Optional[int]:
        """Find the header row.

        A row is the header when its first cell mentions the accounting
        date, or mentions a date and the row has more than three columns.

        Args:
            grid: Row-major grid.

        Returns:
            Index of the header row, or None.
        """
        for index, row in enumerate(grid):
            if not row:
                continue
            first = str(row[0]).strip().lower()
            if any(phrase in first for phrase in ACCOUNTING_DATE_HEADERS):
                return index
            if any(phrase in first for phrase in GENERIC_DATE_HEADERS) and len(row) > 3:
                return index
        return None

    @staticmethod
    def detect_column_mapping(header: Sequence[str]) -> ColumnMapping:
        """Resolve column indices from header cell text.

        Args:
            header: Header row cells.

        Returns:
            ColumnMapping with the indices found.
        """
        cells = [str(cell) for cell in header]
        mapping = ColumnMapping(
            accounting_date=_find_column(cells, ACCOUNTING_DATE_HEADERS),
            value_date=_find_column(cells, VALUE_DATE_HEADERS),
            debit=_find_column(cells, DEBIT_HEADERS),
            credit=_find_column(cells, CREDIT_HEADERS),
            description=_find_column(cells, DESCRIPTION_HEADERS),
        )
        if mapping.accounting_date is None and mapping.value_date is None:
            taken = {i for i in (mapping.debit, mapping.credit, mapping.description) if i is not None}
            mapping.accounting_date = _find_column(cells, GENERIC_DATE_HEADERS, exclude=taken)
        logger.debug(f"Column mapping: {mapping}")
        return mapping

    def _parse_row(
        self, row: Sequence[str], mapping: ColumnMapping, row_index: int
    ) -> Optional[RawTransactionCandidate]:
        accounting_date = _safe_get(row, mapping.accounting_date)
        value_date = _safe_get(row, mapping.value_date)
        debit = _safe_get(row, mapping.debit)
        credit = _safe_get(row, mapping.credit)
        description = _safe_get(row, mapping.description)

        if not any((accounting_date, value_date, debit, credit, description)):
            return None

        if debit and normalize_amount(debit) > 0:
            amount_text, direction = debit, TransactionType.EXPENSE
        elif credit and normalize_amount(credit) > 0:
            amount_text, direction = credit, TransactionType.INCOME
        else:
            return None

        if normalize_amount(amount_text) <= MIN_ROW_AMOUNT:
            logger.debug(f"Row {row_index}: amount {amount_text!r} below minimum, skipping")
            return None
        if not (value_date or accounting_date) or not description:
            logger.debug(f"Row {row_index}: missing date or description, skipping")
            return None

        return RawTransactionCandidate(
            amount_text=amount_text,
            description_text=description,
            accounting_date=accounting_date or None,
            value_date=value_date or None,
            direction=direction,
            source_line=row_index,
        )
