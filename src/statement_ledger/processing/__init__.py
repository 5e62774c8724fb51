"""Transaction processing components.

The ingestion pipeline lives in ``statement_ledger.processing.pipeline``
and is imported from there, since it depends on the parsers.
"""

from statement_ledger.processing.balance import (
    BalanceExtractor,
    BalanceReconciler,
    compute_balance,
    running_balances,
    validate_balance,
)
from statement_ledger.processing.categorizer import (
    Categorizer,
    categorize_transactions,
    preview_categorization,
    recategorize_all,
)
from statement_ledger.processing.classifier import TransactionClassifier, classify, extract_operation_type
from statement_ledger.processing.deduplicator import (
    Deduplicator,
    compute_content_hash,
    find_duplicates,
)
from statement_ledger.processing.normalizer import Normalizer, normalize_candidates

__all__ = [
    "BalanceExtractor",
    "BalanceReconciler",
    "compute_balance",
    "running_balances",
    "validate_balance",
    "Categorizer",
    "categorize_transactions",
    "preview_categorization",
    "recategorize_all",
    "TransactionClassifier",
    "classify",
    "extract_operation_type",
    "Deduplicator",
    "compute_content_hash",
    "find_duplicates",
    "Normalizer",
    "normalize_candidates",
]
