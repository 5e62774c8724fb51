"""Content hashing and duplicate detection.

Two transactions with the same date, amount (to the cent), normalized
description and type are the same transaction. The content hash is the
uniqueness key used when persisting.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from statement_ledger.models.transaction import Transaction, TransactionType
from statement_ledger.utils.decimal_utils import format_amount
from statement_ledger.utils.logging_config import get_logger
from statement_ledger.utils.text_utils import collapse_whitespace

logger = get_logger(__name__)

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def rolling_hash(text: str) -> int:
    """32-bit rolling hash (h = h * 31 + unit) over UTF-16 code units.

    Args:
        text: Text to hash.

    Returns:
        Signed 32-bit hash value.
    """
    h = 0
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    return h - 0x100000000 if h >= 0x80000000 else h


def compute_content_hash(
    txn_date: date | str,
    amount: Decimal,
    description: str,
    transaction_type: TransactionType | str,
) -> str:
    """Compute the content hash of a transaction.

    Args:
        txn_date: Transaction date (date or ISO string).
        amount: Transaction amount.
        description: Description (normalized here: trimmed, lowercased,
            whitespace collapsed).
        transaction_type: Income or expense.

    Returns:
        Base-36 string of the absolute 32-bit hash.
    """
    date_str = txn_date.isoformat() if isinstance(txn_date, date) else str(txn_date)
    type_str = transaction_type.value if isinstance(transaction_type, TransactionType) else str(transaction_type)
    normalized = collapse_whitespace(description.lower())
    key = f"{date_str}-{format_amount(amount)}-{normalized}-{type_str}"
    return _to_base36(abs(rolling_hash(key)))


def transaction_hash(txn: Transaction) -> str:
    """Content hash of a transaction's defining fields."""
    return compute_content_hash(txn.date, txn.amount, txn.description, txn.transaction_type)


@dataclass
class DeduplicationResult:
    """Split of a batch into new and already known transactions."""

    unique: list[Transaction] = field(default_factory=list)
    duplicates: list[Transaction] = field(default_factory=list)


class Deduplicator:
    """Filters transactions whose content hash is already known.

    The set of known hashes is owned by the caller and passed in; the
    deduplicator adds each accepted hash so repeats inside one batch are
    caught too.
    """

    def __init__(self, existing_hashes: set[str] | None = None):
        """Initialize deduplicator.

        Args:
            existing_hashes: Hashes already persisted.
        """
        self.seen: set[str] = set(existing_hashes or ())

    def find_duplicates(self, transactions: list[Transaction]) -> DeduplicationResult:
        """Partition transactions into unique and duplicate.

        Args:
            transactions: Transactions in document order.

        Returns:
            DeduplicationResult; the first occurrence of a hash is unique.
        """
        result = DeduplicationResult()
        for txn in transactions:
            if not txn.content_hash:
                txn.content_hash = transaction_hash(txn)
            if txn.content_hash in self.seen:
                result.duplicates.append(txn)
                continue
            self.seen.add(txn.content_hash)
            result.unique.append(txn)

        logger.info(f"Found {len(result.duplicates)} duplicate transactions, {len(result.unique)} new")
        return result


def find_duplicates(transactions: list[Transaction], existing_hashes: set[str]) -> DeduplicationResult:
    """Convenience wrapper around Deduplicator.find_duplicates."""
    return Deduplicator(existing_hashes).find_duplicates(transactions)
