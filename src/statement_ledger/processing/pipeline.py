"""End-to-end ingestion of a single statement document."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Union

from statement_ledger.config import Config
from statement_ledger.models.balance import BalanceAssertion, BalanceValidation, StatementMetadata
from statement_ledger.models.transaction import Transaction
from statement_ledger.parsers.base import DocumentKind, IngestionError, ParseError
from statement_ledger.parsers.detector import FormatDetector
from statement_ledger.parsers.layout import PdfTextExtractor, reconstruct_lines
from statement_ledger.parsers.spreadsheet_parser import SpreadsheetCellExtractor
from statement_ledger.processing.balance import BalanceExtractor, BalanceReconciler, compute_balance
from statement_ledger.processing.categorizer import Categorizer
from statement_ledger.processing.classifier import TransactionClassifier
from statement_ledger.processing.deduplicator import Deduplicator
from statement_ledger.processing.normalizer import Normalizer
from statement_ledger.storage.base import TransactionStore
from statement_ledger.utils.logging_config import LogContext, get_logger, register_sensitive_values

logger = get_logger(__name__)


@dataclass
class IngestionStats:
    """Per-run counters.

    Attributes:
        total_parsed: Candidates produced by the parser.
        inserted: Transactions written to the store.
        duplicates: Transactions skipped because they already existed.
        unparsed: Lines or rows that looked like data but did not parse.
        skipped: Candidates dropped during normalization (zero amount).
        defaulted_dates: Transactions whose date fell back to today.
        defaulted_amounts: Candidates whose amount fell back to zero.
    """

    total_parsed: int = 0
    inserted: int = 0
    duplicates: int = 0
    unparsed: int = 0
    skipped: int = 0
    defaulted_dates: int = 0
    defaulted_amounts: int = 0


@dataclass
class IngestionResult:
    """Outcome of ingesting one document.

    Attributes:
        transactions: New transactions, categorized and persisted.
        stats: Run counters.
        parser_name: Parser that handled the document.
        balance_assertion: Balance stated by the document, if found.
        balance_validation: Reconciliation against history, if a balance was found.
        metadata: Account information from the statement header, if found.
    """

    transactions: list[Transaction] = field(default_factory=list)
    stats: IngestionStats = field(default_factory=IngestionStats)
    parser_name: str = ""
    balance_assertion: Optional[BalanceAssertion] = None
    balance_validation: Optional[BalanceValidation] = None
    metadata: Optional[StatementMetadata] = None

    @property
    def has_balance_alert(self) -> bool:
        """True when the document balance disagrees with history."""
        return self.balance_validation is not None and not self.balance_validation.is_consistent


def _document_kind(kind: Union[str, DocumentKind]) -> DocumentKind:
    if isinstance(kind, DocumentKind):
        return kind
    try:
        return DocumentKind(str(kind).lower())
    except ValueError:
        raise IngestionError(f"Unsupported document kind: {kind}") from None


class IngestionPipeline:
    """Runs extract, parse, normalize, dedup, categorize and persist for a document.

    The store is read once at the start of a run (hashes, rules, categories)
    and written once at the end, so a failed run persists nothing.
    """

    def __init__(
        self,
        config: Config,
        store: TransactionStore,
        pdf_extractor: Optional[PdfTextExtractor] = None,
        cell_extractor: Optional[SpreadsheetCellExtractor] = None,
        classifier: Optional[TransactionClassifier] = None,
    ):
        """Initialize pipeline.

        Args:
            config: Application configuration.
            store: Persistence backend.
            pdf_extractor: PDF fragment extractor (pdfplumber by default).
            cell_extractor: Spreadsheet grid extractor (openpyxl by default).
            classifier: Income/expense classifier shared by parsers and normalizer.
        """
        self.config = config
        self.store = store
        self.pdf_extractor = pdf_extractor or PdfTextExtractor(config.ingestion.max_pdf_pages)
        self.cell_extractor = cell_extractor or SpreadsheetCellExtractor(config.ingestion.max_spreadsheet_bytes)
        self.classifier = classifier or TransactionClassifier()
        self.detector = FormatDetector(self.classifier)
        self.normalizer = Normalizer(self.classifier)
        self.balance_extractor = BalanceExtractor()
        self.reconciler = BalanceReconciler(config.balance)

    def ingest(
        self,
        document: bytes,
        kind: Union[str, DocumentKind],
        file_name: str = "",
        today: Optional[date] = None,
    ) -> IngestionResult:
        """Ingest one document.

        Args:
            document: Raw document bytes.
            kind: "pdf" or "spreadsheet".
            file_name: Document name recorded on transactions and balances.
            today: Fallback date for unparseable dates (default: today).

        Returns:
            IngestionResult with the new transactions and run statistics.

        Raises:
            IngestionError: If the document is too small, unreadable or of
                an unsupported kind.
            ParseError: If the document structure cannot be parsed.
            StorageError: If the batch insert fails.
        """
        document_kind = _document_kind(kind)
        source = file_name or "document"
        with LogContext(logger, "extract", file=source, kind=document_kind.value, size=len(document)):
            if len(document) < self.config.ingestion.min_document_bytes:
                raise IngestionError(
                    f"Document too small ({len(document)} bytes, "
                    f"minimum {self.config.ingestion.min_document_bytes})",
                    file_name,
                )
            content = self._extract(document, document_kind, file_name)

        parser = self.detector.detect(document_kind, content)
        with LogContext(logger, "parse", file=source, parser=parser.name):
            try:
                parsed = parser.parse(content)
            except ParseError as e:
                if e.source is None:
                    e.source = file_name
                raise
        if parsed.metadata is not None:
            register_sensitive_values(parsed.metadata.holder, parsed.metadata.iban)
        logger.info(f"{parser.name} found {len(parsed.candidates)} candidates in {source}")

        result = IngestionResult(parser_name=parser.name, metadata=parsed.metadata)
        result.balance_assertion = parsed.balance_assertion or self._find_balance(document_kind, content)

        with LogContext(logger, "normalize", file=source, candidates=len(parsed.candidates)):
            normalized = self.normalizer.normalize(parsed.candidates, parser.source_kind, file_name, today)
        with LogContext(logger, "dedup", file=source, transactions=len(normalized.transactions)):
            dedup = Deduplicator(self.store.load_existing_hashes()).find_duplicates(normalized.transactions)

        with LogContext(logger, "categorize", file=source, transactions=len(dedup.unique)):
            categorizer = Categorizer(
                self.store.load_active_rules(),
                self.store.load_categories().values(),
                self.config.fallback_category,
            )
            categorizer.categorize(dedup.unique)
        with LogContext(logger, "insert", file=source, transactions=len(dedup.unique)):
            inserted = self.store.insert_transactions(dedup.unique)

        result.transactions = dedup.unique
        result.stats = IngestionStats(
            total_parsed=len(parsed.candidates),
            inserted=inserted.inserted,
            duplicates=len(dedup.duplicates) + inserted.duplicates,
            unparsed=parsed.unparsed_lines,
            skipped=normalized.skipped,
            defaulted_dates=normalized.defaulted_dates,
            defaulted_amounts=normalized.defaulted_amounts,
        )

        if result.balance_assertion is not None:
            with LogContext(logger, "reconcile", file=source):
                result.balance_validation = self._reconcile(result.balance_assertion, file_name)

        logger.info(
            f"Ingested {source}: {result.stats.inserted} inserted, "
            f"{result.stats.duplicates} duplicates, {result.stats.unparsed} unparsed"
        )
        return result

    def _extract(self, document: bytes, kind: DocumentKind, file_name: str) -> Sequence:
        if kind == DocumentKind.PDF:
            pages = self.pdf_extractor.extract_fragments(document, file_name)
            lines = reconstruct_lines(pages, self.config.ingestion.column_gap)
            if not lines:
                raise IngestionError("No text found in PDF (scanned documents are not supported)", file_name)
            logger.info(f"Reconstructed {len(lines)} lines from {len(pages)} pages")
            return lines

        grid = self.cell_extractor.extract_grid(document, file_name)
        if not grid:
            raise IngestionError("Spreadsheet contains no rows", file_name)
        logger.info(f"Read {len(grid)} spreadsheet rows")
        return grid

    def _find_balance(self, kind: DocumentKind, content: Sequence) -> Optional[BalanceAssertion]:
        if kind == DocumentKind.PDF:
            return self.balance_extractor.extract_from_lines(content)
        return self.balance_extractor.extract_from_grid(content)

    def _reconcile(self, assertion: BalanceAssertion, file_name: str) -> BalanceValidation:
        inputs = self.store.get_running_balance_inputs()
        computed = compute_balance(inputs.base_balance, inputs.prior_transactions)
        validation = self.reconciler.validate(computed, assertion.value, inputs.base_balance)
        # A document balance becomes the base only when nothing better is set
        self.store.save_file_balance(assertion, file_name, select=inputs.base_source == "default")
        return validation


def ingest_document(
    document: bytes,
    kind: Union[str, DocumentKind],
    config: Config,
    store: TransactionStore,
    file_name: str = "",
) -> IngestionResult:
    """Convenience wrapper around IngestionPipeline.ingest."""
    return IngestionPipeline(config, store).ingest(document, kind, file_name)
