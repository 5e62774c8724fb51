"""Balance assertion and reconciliation data models."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from statement_ledger.models.transaction import Transaction


class AlertLevel(Enum):
    """Severity of a balance discrepancy."""

    NONE = "none"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class BalanceAssertion:
    """Balance stated in a source document.

    Attributes:
        value: Asserted balance (signed).
        extraction_pattern: Name of the phrase pattern that matched.
        statement_date: Date the balance refers to, if found.
    """

    value: Decimal
    extraction_pattern: str
    statement_date: Optional[date] = None


@dataclass
class BalanceValidation:
    """Comparison between a computed and an asserted balance.

    Attributes:
        current_balance: Balance computed from transaction history.
        base_balance: Starting balance used for the computation.
        difference: current_balance minus the asserted balance.
        alert_level: Severity of the discrepancy.
        asserted_balance: Balance stated by the document.
    """

    current_balance: Decimal
    base_balance: Decimal
    difference: Decimal
    alert_level: AlertLevel
    asserted_balance: Optional[Decimal] = None

    @property
    def is_consistent(self) -> bool:
        """True when no alert is raised."""
        return self.alert_level == AlertLevel.NONE


@dataclass
class StatementMetadata:
    """Account information found in a statement header."""

    iban: Optional[str] = None
    account_number: Optional[str] = None
    holder: Optional[str] = None
    statement_date: Optional[date] = None


@dataclass
class RunningBalanceInputs:
    """Inputs for computing the current balance.

    Attributes:
        base_balance: Starting balance.
        base_source: Where the base came from ("manual", "file", "default").
        prior_transactions: Persisted transactions to apply.
    """

    base_balance: Decimal
    base_source: str = "default"
    prior_transactions: list[Transaction] = field(default_factory=list)
