"""Candidate to Transaction normalization."""

import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from statement_ledger.models.transaction import RawTransactionCandidate, Transaction
from statement_ledger.processing.classifier import TransactionClassifier
from statement_ledger.processing.deduplicator import compute_content_hash
from statement_ledger.utils.date_utils import normalize_date_checked
from statement_ledger.utils.decimal_utils import format_amount, normalize_amount_checked
from statement_ledger.utils.logging_config import get_logger
from statement_ledger.utils.text_utils import clean_description

logger = get_logger(__name__)

# Characters of the description kept in transaction ids
ID_DESCRIPTION_LENGTH = 20


def generate_transaction_id(
    source_kind: str, txn_date: date, amount: Decimal, description: str, index: int
) -> str:
    """Build a deterministic transaction id.

    Args:
        source_kind: Document kind prefix (e.g. "pdf", "xlsx").
        txn_date: Canonical date.
        amount: Amount.
        description: Cleaned description.
        index: Position of the candidate in its document.

    Returns:
        Id of the form ``{source}-{date}-{amount}-{desc}-{index}``.
    """
    desc = re.sub(r"[^A-Za-z0-9]", "", description[:ID_DESCRIPTION_LENGTH])
    return f"{source_kind}-{txn_date.isoformat()}-{format_amount(amount)}-{desc}-{index}"


@dataclass
class NormalizationResult:
    """Transactions built from candidates plus fallback counters.

    Attributes:
        transactions: Normalized transactions.
        skipped: Candidates dropped because their amount was zero.
        defaulted_dates: Transactions whose date fell back to today.
        defaulted_amounts: Candidates whose amount fell back to zero.
    """

    transactions: list[Transaction] = field(default_factory=list)
    skipped: int = 0
    defaulted_dates: int = 0
    defaulted_amounts: int = 0


class Normalizer:
    """Turns parser candidates into canonical transactions.

    Dates prefer the value date. Unparseable dates fall back to today and
    unparseable amounts to zero; both are counted so callers can tell
    defaulted values from real ones. Zero-amount candidates are dropped.
    """

    def __init__(self, classifier: Optional[TransactionClassifier] = None):
        """Initialize normalizer.

        Args:
            classifier: Used when a candidate carries no direction.
        """
        self.classifier = classifier or TransactionClassifier()

    def normalize(
        self,
        candidates: list[RawTransactionCandidate],
        source_kind: str,
        source_file: str = "",
        today: Optional[date] = None,
    ) -> NormalizationResult:
        """Normalize a document's candidates.

        Args:
            candidates: Candidates in document order.
            source_kind: Id prefix of the parser that produced them.
            source_file: Document name.
            today: Fallback date for unparseable dates.

        Returns:
            NormalizationResult.
        """
        result = NormalizationResult()

        for index, candidate in enumerate(candidates):
            amount = normalize_amount_checked(candidate.amount_text)
            if amount.defaulted:
                result.defaulted_amounts += 1
                logger.debug(f"Unparseable amount {candidate.amount_text!r}, defaulted to 0")
            if amount.value <= 0:
                result.skipped += 1
                continue

            value_date = self._optional_date(candidate.value_date)
            accounting_date = self._optional_date(candidate.accounting_date)
            primary = normalize_date_checked(candidate.value_date or candidate.accounting_date, today)
            if primary.defaulted:
                result.defaulted_dates += 1
                logger.debug(
                    f"Unparseable date {candidate.value_date or candidate.accounting_date!r}, "
                    f"defaulted to {primary.value}"
                )

            description = clean_description(candidate.description_text)
            transaction_type = candidate.direction or self.classifier.classify(
                candidate.operation_type_hint, candidate.description_text
            )

            result.transactions.append(
                Transaction(
                    id=generate_transaction_id(source_kind, primary.value, amount.value, description, index),
                    date=primary.value,
                    amount=amount.value,
                    description=description,
                    transaction_type=transaction_type,
                    value_date=value_date,
                    accounting_date=accounting_date,
                    content_hash=compute_content_hash(primary.value, amount.value, description, transaction_type),
                    source_kind=source_kind,
                    source_file=source_file,
                    source_line=candidate.source_line,
                )
            )

        logger.info(
            f"Normalized {len(result.transactions)} transactions "
            f"({result.skipped} skipped, {result.defaulted_dates} defaulted dates, "
            f"{result.defaulted_amounts} defaulted amounts)"
        )
        return result

    @staticmethod
    def _optional_date(raw: Optional[str]) -> Optional[date]:
        if not raw:
            return None
        checked = normalize_date_checked(raw)
        return None if checked.defaulted else checked.value


def normalize_candidates(
    candidates: list[RawTransactionCandidate], source_kind: str, source_file: str = ""
) -> NormalizationResult:
    """Convenience wrapper around Normalizer.normalize."""
    return Normalizer().normalize(candidates, source_kind, source_file)
