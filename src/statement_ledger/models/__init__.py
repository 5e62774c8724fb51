"""Data models for transactions, categories and balances."""

from statement_ledger.models.balance import (
    AlertLevel,
    BalanceAssertion,
    BalanceValidation,
    RunningBalanceInputs,
    StatementMetadata,
)
from statement_ledger.models.category import (
    Category,
    CategoryMatch,
    CategoryRule,
    CategorySource,
    CategoryType,
    MatchType,
    sort_rules,
)
from statement_ledger.models.transaction import (
    RawTransactionCandidate,
    Transaction,
    TransactionType,
)

__all__ = [
    "AlertLevel",
    "BalanceAssertion",
    "BalanceValidation",
    "RunningBalanceInputs",
    "StatementMetadata",
    "Category",
    "CategoryMatch",
    "CategoryRule",
    "CategorySource",
    "CategoryType",
    "MatchType",
    "sort_rules",
    "RawTransactionCandidate",
    "Transaction",
    "TransactionType",
]
