"""Tests for balance extraction and reconciliation."""

from datetime import date
from decimal import Decimal

import pytest

from statement_ledger.config import BalanceConfig
from statement_ledger.models.balance import AlertLevel
from statement_ledger.models.transaction import Transaction, TransactionType
from statement_ledger.processing.balance import (
    BalanceExtractor,
    BalanceReconciler,
    compute_balance,
    running_balances,
    validate_balance,
)


def make_transaction(
    txn_id: str, amount: str, transaction_type: TransactionType, value_date: date = date(2025, 9, 1)
) -> Transaction:
    """Create a test transaction."""
    return Transaction(
        id=txn_id,
        date=value_date,
        amount=Decimal(amount),
        description=txn_id,
        transaction_type=transaction_type,
        value_date=value_date,
    )


@pytest.fixture
def history() -> list[Transaction]:
    """One income of 500 and one expense of 200."""
    return [
        make_transaction("stipendio", "500", TransactionType.INCOME, date(2025, 9, 1)),
        make_transaction("spesa", "200", TransactionType.EXPENSE, date(2025, 9, 5)),
    ]


class TestComputeBalance:
    """Tests for balance computation."""

    def test_applies_signed_amounts(self, history: list[Transaction]) -> None:
        """Test base + income - expense."""
        assert compute_balance(Decimal("1000"), history) == Decimal("1300")

    def test_empty_history(self) -> None:
        """Test that the base is returned unchanged."""
        assert compute_balance(Decimal("42.50"), []) == Decimal("42.50")

    def test_running_balances_ordered_by_value_date(self, history: list[Transaction]) -> None:
        """Test the balance series."""
        series = running_balances(Decimal("1000"), list(reversed(history)))

        assert [t.id for t, _ in series] == ["stipendio", "spesa"]
        assert [b for _, b in series] == [Decimal("1500"), Decimal("1300")]


class TestBalanceReconciler:
    """Tests for alert levels."""

    def test_consistent(self, history: list[Transaction]) -> None:
        """Test a matching asserted balance."""
        computed = compute_balance(Decimal("1000"), history)
        validation = validate_balance(computed, Decimal("1300"), Decimal("1000"))

        assert validation.difference == Decimal("0")
        assert validation.alert_level == AlertLevel.NONE
        assert validation.is_consistent

    def test_high_ratio(self, history: list[Transaction]) -> None:
        """Test a 30% discrepancy."""
        computed = compute_balance(Decimal("1000"), history)
        validation = validate_balance(computed, Decimal("1000"), Decimal("1000"))

        assert validation.difference == Decimal("300")
        assert validation.current_balance == Decimal("1300")
        assert validation.asserted_balance == Decimal("1000")
        assert validation.alert_level == AlertLevel.HIGH

    @pytest.mark.parametrize(
        "difference,expected",
        [
            ("0", AlertLevel.NONE),
            ("50", AlertLevel.NONE),
            ("-50", AlertLevel.NONE),
            ("51", AlertLevel.MEDIUM),
            ("200", AlertLevel.MEDIUM),
            ("-201", AlertLevel.HIGH),
        ],
    )
    def test_ratio_thresholds(self, difference: str, expected: AlertLevel) -> None:
        """Test ratio bounds against a base of 1000."""
        assert BalanceReconciler().alert_level(Decimal(difference), Decimal("1000")) == expected

    @pytest.mark.parametrize(
        "difference,expected",
        [("30", AlertLevel.NONE), ("100", AlertLevel.MEDIUM), ("250", AlertLevel.HIGH)],
    )
    def test_absolute_thresholds_for_zero_base(self, difference: str, expected: AlertLevel) -> None:
        """Test the absolute bounds used when the base is zero."""
        assert BalanceReconciler().alert_level(Decimal(difference), Decimal("0")) == expected

    def test_negative_base_uses_magnitude(self) -> None:
        """Test ratios against an overdrawn base."""
        assert BalanceReconciler().alert_level(Decimal("10"), Decimal("-1000")) == AlertLevel.NONE

    def test_custom_thresholds(self) -> None:
        """Test configured ratios."""
        reconciler = BalanceReconciler(BalanceConfig(low_ratio=Decimal("0.01"), high_ratio=Decimal("0.02")))
        assert reconciler.alert_level(Decimal("30"), Decimal("1000")) == AlertLevel.HIGH


class TestBalanceExtractor:
    """Tests for text balance extraction."""

    def test_prefers_available_balance(self, bancoposta_lines: list[str]) -> None:
        """Test phrase preference on a statement header."""
        assertion = BalanceExtractor().extract_from_lines(bancoposta_lines)

        assert assertion is not None
        assert assertion.value == Decimal("1300.00")
        assert assertion.extraction_pattern == "SALDO DISPONIBILE"

    def test_negative_balance_with_date(self) -> None:
        """Test a signed balance and a date on the neighbouring line."""
        lines = ["ESTRATTO CONTO AL 30/09/2025", "SALDO FINALE -120,00", "FINE"]

        assertion = BalanceExtractor().extract_from_lines(lines)

        assert assertion is not None
        assert assertion.value == Decimal("-120.00")
        assert assertion.statement_date == date(2025, 9, 30)

    def test_last_occurrence_wins(self) -> None:
        """Test that the closing balance is preferred over the opening one."""
        lines = ["SALDO CONTABILE 100,00", "MOVIMENTI", "SALDO CONTABILE 250,00"]

        assertion = BalanceExtractor().extract_from_lines(lines)

        assert assertion is not None
        assert assertion.value == Decimal("250.00")

    def test_phrase_without_amount(self) -> None:
        """Test that a phrase with no amount is not an assertion."""
        assert BalanceExtractor().extract_from_lines(["SALDO DISPONIBILE", "NESSUN IMPORTO"]) is None
