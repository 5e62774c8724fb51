"""Persistence contract used by the ingestion pipeline."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from statement_ledger.models.balance import BalanceAssertion, RunningBalanceInputs
from statement_ledger.models.category import Category, CategoryRule
from statement_ledger.models.transaction import Transaction


class StorageError(Exception):
    """Exception raised when a persistence operation fails."""

    pass


@dataclass(frozen=True)
class InsertResult:
    """Outcome of a batch insert.

    Attributes:
        inserted: Rows written.
        duplicates: Rows skipped because their content hash already existed.
    """

    inserted: int
    duplicates: int


class TransactionStore(ABC):
    """Read/write contract for ledger state.

    Implementations must make ``insert_transactions`` atomic: either the
    whole batch is applied or nothing is.
    """

    @abstractmethod
    def load_existing_hashes(self) -> set[str]:
        """Return content hashes of all persisted transactions."""
        pass

    @abstractmethod
    def load_categories(self) -> dict[int, Category]:
        """Return all categories keyed by id."""
        pass

    @abstractmethod
    def load_active_rules(self) -> list[CategoryRule]:
        """Return enabled rules of active categories in evaluation order."""
        pass

    @abstractmethod
    def insert_transactions(self, batch: list[Transaction]) -> InsertResult:
        """Insert a batch, skipping rows whose content hash exists.

        Raises:
            StorageError: If the batch cannot be written; nothing is kept.
        """
        pass

    @abstractmethod
    def get_running_balance_inputs(self) -> RunningBalanceInputs:
        """Return the base balance and all persisted transactions."""
        pass

    @abstractmethod
    def list_transactions(self) -> list[Transaction]:
        """Return all persisted transactions."""
        pass

    @abstractmethod
    def update_categories(self, updates: dict[str, tuple[str, Optional[int]]]) -> None:
        """Set category name and id for transactions by transaction id."""
        pass

    @abstractmethod
    def set_manual_category(self, transaction_id: str, category_id: Optional[int]) -> None:
        """Pin a category on a transaction, or clear the pin with None."""
        pass

    @abstractmethod
    def save_file_balance(
        self, assertion: BalanceAssertion, file_name: str, select: bool = False
    ) -> int:
        """Record a balance read from a document and return its id."""
        pass

    @abstractmethod
    def select_file_balance(self, balance_id: int) -> None:
        """Use a recorded file balance as the base balance."""
        pass

    @abstractmethod
    def set_manual_balance(self, value: Decimal, reason: str = "manual") -> None:
        """Override the base balance."""
        pass

    @abstractmethod
    def clear_manual_balance(self) -> None:
        """Remove the manual base balance override."""
        pass

    @abstractmethod
    def seed_categories(self, categories: list[Category], rules: list[CategoryRule]) -> bool:
        """Insert default categories and rules if none exist.

        Returns:
            True if the store was seeded.
        """
        pass

    @abstractmethod
    def latest_file_balance(self) -> Optional[BalanceAssertion]:
        """Return the most recently recorded file balance, if any."""
        pass
