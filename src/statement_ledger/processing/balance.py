"""Balance extraction from documents and reconciliation with history."""

import re
from collections.abc import Iterable, Sequence
from datetime import date
from decimal import Decimal
from typing import Optional

from statement_ledger.config import BalanceConfig
from statement_ledger.models.balance import AlertLevel, BalanceAssertion, BalanceValidation
from statement_ledger.models.transaction import Transaction
from statement_ledger.utils.date_utils import parse_date
from statement_ledger.utils.decimal_utils import AMOUNT_TOKEN_PATTERN, parse_signed_amount
from statement_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)

# Balance phrases in order of preference
BALANCE_PHRASES = [
    "SALDO DISPONIBILE",
    "SALDO CONTABILE FINALE",
    "SALDO FINALE",
    "SALDO CONTABILE",
    "SALDO AL",
]

_AMOUNT_TOKEN = re.compile(AMOUNT_TOKEN_PATTERN)
_NUMERIC_CELL = re.compile(r"^[+-]?[\d.,]*\d[\d.,]*\s*€?$")
_DATE_TOKEN = re.compile(r"\b\d{2}/\d{2}/(?:\d{4}|\d{2})\b")

# Rows searched above and below a balance line for its date
DATE_SEARCH_RADIUS = 1


def _first_date(texts: Iterable[str]) -> Optional[date]:
    for text in texts:
        for token in _DATE_TOKEN.findall(text):
            try:
                return parse_date(token)
            except ValueError:
                continue
    return None


def _nearby(items: Sequence, index: int) -> list:
    """Item at index followed by its neighbours within the search radius."""
    order = [index]
    for offset in range(1, DATE_SEARCH_RADIUS + 1):
        order.extend([index - offset, index + offset])
    return [items[i] for i in order if 0 <= i < len(items)]


class BalanceExtractor:
    """Finds the balance stated in a document."""

    def __init__(self, phrases: Optional[list[str]] = None):
        """Initialize extractor.

        Args:
            phrases: Balance phrases in order of preference.
        """
        self.phrases = phrases or list(BALANCE_PHRASES)

    def extract_from_lines(self, lines: Sequence[str]) -> Optional[BalanceAssertion]:
        """Extract a balance from text lines.

        For the most preferred phrase that occurs, the last amount on the
        last line containing it is the asserted balance.

        Args:
            lines: Document text lines.

        Returns:
            BalanceAssertion, or None if no phrase with an amount is found.
        """
        for phrase in self.phrases:
            for index in range(len(lines) - 1, -1, -1):
                line = lines[index]
                if phrase not in line.upper():
                    continue
                tokens = _AMOUNT_TOKEN.findall(line)
                if not tokens:
                    continue
                value = parse_signed_amount(tokens[-1])
                statement_date = _first_date(_nearby(lines, index))
                logger.debug(f"Balance {value} found via {phrase!r} on line {index}")
                return BalanceAssertion(value=value, extraction_pattern=phrase, statement_date=statement_date)
        return None

    def extract_from_grid(self, grid: Sequence[Sequence[str]]) -> Optional[BalanceAssertion]:
        """Extract a balance from a spreadsheet grid.

        The value is the nearest numeric cell to the right of the phrase
        cell, or else the cell directly below it.

        Args:
            grid: Row-major grid of cell strings.

        Returns:
            BalanceAssertion, or None if no phrase with a value is found.
        """
        for phrase in self.phrases:
            for row_index, row in enumerate(grid):
                for col_index, cell in enumerate(row):
                    if phrase not in str(cell).upper():
                        continue
                    value = self._value_near(grid, row_index, col_index)
                    if value is None:
                        continue
                    rows = [" ".join(str(c) for c in r) for r in _nearby(grid, row_index)]
                    return BalanceAssertion(
                        value=value, extraction_pattern=phrase, statement_date=_first_date(rows)
                    )
        return None

    @staticmethod
    def _value_near(grid: Sequence[Sequence[str]], row_index: int, col_index: int) -> Optional[Decimal]:
        row = grid[row_index]
        candidates = [str(c) for c in row[col_index + 1:]]
        if row_index + 1 < len(grid) and col_index < len(grid[row_index + 1]):
            candidates.append(str(grid[row_index + 1][col_index]))
        for text in candidates:
            text = text.strip()
            if text and _NUMERIC_CELL.match(text) and not _DATE_TOKEN.search(text):
                try:
                    return parse_signed_amount(text)
                except ValueError:
                    continue
        return None


def ordered_by_value_date(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Transactions sorted by value date ascending, stable for equal dates."""
    return sorted(transactions, key=lambda t: (t.balance_date, t.id))


def compute_balance(base_balance: Decimal, transactions: Iterable[Transaction]) -> Decimal:
    """Apply transactions to a base balance.

    Args:
        base_balance: Starting balance.
        transactions: Transactions to apply.

    Returns:
        base + income - expense.
    """
    balance = base_balance
    for txn in ordered_by_value_date(transactions):
        balance += txn.signed_amount
    return balance


def running_balances(base_balance: Decimal, transactions: Iterable[Transaction]) -> list[tuple[Transaction, Decimal]]:
    """Balance after each transaction, ordered by value date.

    Args:
        base_balance: Starting balance.
        transactions: Transactions to apply.

    Returns:
        List of (transaction, balance after it).
    """
    balance = base_balance
    series: list[tuple[Transaction, Decimal]] = []
    for txn in ordered_by_value_date(transactions):
        balance += txn.signed_amount
        series.append((txn, balance))
    return series


class BalanceReconciler:
    """Compares computed balances with balances stated by documents.

    The result is advisory: a mismatch only raises an alert level.
    """

    def __init__(self, config: Optional[BalanceConfig] = None):
        """Initialize reconciler.

        Args:
            config: Alert thresholds (defaults when None).
        """
        self.config = config or BalanceConfig()

    def alert_level(self, difference: Decimal, base_balance: Decimal) -> AlertLevel:
        """Severity of a difference relative to the base balance.

        Args:
            difference: Computed minus asserted balance.
            base_balance: Base balance of the computation.

        Returns:
            AlertLevel.
        """
        magnitude = abs(difference)
        if base_balance != 0:
            ratio = magnitude / abs(base_balance)
            low, high = self.config.low_ratio, self.config.high_ratio
        else:
            ratio = magnitude
            low, high = self.config.low_absolute, self.config.high_absolute

        if ratio <= low:
            return AlertLevel.NONE
        if ratio > high:
            return AlertLevel.HIGH
        return AlertLevel.MEDIUM

    def validate(self, computed: Decimal, asserted: Decimal, base_balance: Decimal) -> BalanceValidation:
        """Validate a computed balance against an asserted one.

        Args:
            computed: Balance computed from history.
            asserted: Balance stated by a document.
            base_balance: Base used for the computation.

        Returns:
            BalanceValidation.
        """
        difference = computed - asserted
        level = self.alert_level(difference, base_balance)
        if level != AlertLevel.NONE:
            logger.warning(
                f"Balance mismatch ({level.value}): computed {computed}, "
                f"document states {asserted}, difference {difference}"
            )
        return BalanceValidation(
            current_balance=computed,
            base_balance=base_balance,
            difference=difference,
            alert_level=level,
            asserted_balance=asserted,
        )


def validate_balance(
    computed: Decimal,
    asserted: Decimal,
    base_balance: Decimal,
    config: Optional[BalanceConfig] = None,
) -> BalanceValidation:
    """Convenience wrapper around BalanceReconciler.validate."""
    return BalanceReconciler(config).validate(computed, asserted, base_balance)
