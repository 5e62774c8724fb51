"""Transaction data models for ingested bank statements."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum


class TransactionType(Enum):
    """Direction of a transaction."""

    INCOME = "income"  # Money in
    EXPENSE = "expense"  # Money out


@dataclass
class RawTransactionCandidate:
    """Untyped transaction data as found by a parser, before normalization.

    Attributes:
        amount_text: Amount exactly as it appears in the source.
        description_text: Description text as found (may span joined lines).
        accounting_date: Accounting (booking) date text, if present.
        value_date: Value date text, if present.
        operation_type_hint: Operation keyword found next to the amount
            (e.g. "PAGAMENTO POS", "BONIFICO").
        direction: Direction already encoded by the source layout (spreadsheet
            debit/credit columns). None means the classifier decides.
        source_line: Line or row number the candidate was built from.
    """

    amount_text: str
    description_text: str
    accounting_date: str | None = None
    value_date: str | None = None
    operation_type_hint: str | None = None
    direction: TransactionType | None = None
    source_line: int | None = None


@dataclass
class Transaction:
    """Normalized transaction.

    Attributes:
        id: Deterministic id derived from source kind, date, amount,
            truncated description and sequence index.
        date: Canonical transaction date (value date when available).
        amount: Non-negative amount.
        description: Cleaned description.
        transaction_type: Income or expense, decided once at classification.
        value_date: Value date, if known.
        accounting_date: Accounting date, if known.
        category: Assigned category name.
        category_id: Assigned category id (None for the fallback).
        category_source: "manual", "rule" or "fallback".
        is_manual_override: Whether a user pinned the category.
        manual_category_id: Category id pinned by the user.
        content_hash: Uniqueness key over date, amount, description and type.
        source_kind: Kind of document the transaction came from.
        source_file: Name of the source document.
        source_line: Line or row in the source document.
    """

    id: str
    date: date
    amount: Decimal
    description: str
    transaction_type: TransactionType
    value_date: date | None = None
    accounting_date: date | None = None
    category: str = "Other"
    category_id: int | None = None
    category_source: str = "fallback"
    is_manual_override: bool = False
    manual_category_id: int | None = None
    content_hash: str = ""
    source_kind: str = ""
    source_file: str = ""
    source_line: int | None = None

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError(f"Transaction amount must be non-negative, got {self.amount}")

    @property
    def is_income(self) -> bool:
        """Whether this transaction adds to the balance."""
        return self.transaction_type == TransactionType.INCOME

    @property
    def signed_amount(self) -> Decimal:
        """Amount signed by direction (negative for expenses)."""
        return self.amount if self.is_income else -self.amount

    @property
    def balance_date(self) -> date:
        """Date used to order transactions for running balances."""
        return self.value_date or self.date

    def assign_category(self, name: str, category_id: int | None, source: str) -> None:
        """Assign a category.

        Args:
            name: Category name.
            category_id: Category id (None for the fallback category).
            source: How the category was decided ("manual", "rule", "fallback").
        """
        self.category = name
        self.category_id = category_id
        self.category_source = source

    def __repr__(self) -> str:
        return (
            f"Transaction(date={self.date}, "
            f"description={self.description[:30]!r}, "
            f"amount={self.signed_amount}, "
            f"category={self.category!r})"
        )
