"""Tests for candidate normalization."""

from datetime import date
from decimal import Decimal

import pytest

from statement_ledger.models.transaction import RawTransactionCandidate, TransactionType
from statement_ledger.processing.normalizer import Normalizer, generate_transaction_id, normalize_candidates

TODAY = date(2025, 10, 19)


@pytest.fixture
def normalizer() -> Normalizer:
    """Normalizer with the default classifier."""
    return Normalizer()


class TestNormalizer:
    """Tests for Normalizer."""

    def test_prefers_value_date(self, normalizer: Normalizer) -> None:
        """Test the canonical date and the kept secondary dates."""
        candidate = RawTransactionCandidate(
            amount_text="15,24",
            description_text="PAGAMENTO POS  STAZIONE FRUTTA",
            accounting_date="13/09/2025",
            value_date="11/09/2025",
            operation_type_hint="PAGAMENTO POS",
        )

        result = normalizer.normalize([candidate], "pdf", "estratto.pdf", TODAY)

        txn = result.transactions[0]
        assert txn.date == date(2025, 9, 11)
        assert txn.value_date == date(2025, 9, 11)
        assert txn.accounting_date == date(2025, 9, 13)
        assert txn.amount == Decimal("15.24")
        assert txn.description == "PAGAMENTO POS STAZIONE FRUTTA"
        assert txn.transaction_type == TransactionType.EXPENSE
        assert txn.source_file == "estratto.pdf"
        assert txn.content_hash

    def test_direction_from_source_wins(self, normalizer: Normalizer) -> None:
        """Test that a parser-provided direction skips classification."""
        candidate = RawTransactionCandidate(
            amount_text="20,00",
            description_text="PAGAMENTO POS RIMBORSO",
            value_date="01/10/2025",
            direction=TransactionType.INCOME,
        )

        txn = normalizer.normalize([candidate], "xlsx", today=TODAY).transactions[0]

        assert txn.transaction_type == TransactionType.INCOME

    def test_zero_and_garbage_amounts_skipped(self, normalizer: Normalizer) -> None:
        """Test that zero amounts are dropped and garbage is counted as defaulted."""
        candidates = [
            RawTransactionCandidate(amount_text="0,00", description_text="X", value_date="01/10/2025"),
            RawTransactionCandidate(amount_text="n/d", description_text="Y", value_date="01/10/2025"),
        ]

        result = normalizer.normalize(candidates, "pdf", today=TODAY)

        assert result.transactions == []
        assert result.skipped == 2
        assert result.defaulted_amounts == 1

    def test_bad_date_defaults_to_today(self, normalizer: Normalizer) -> None:
        """Test the date fallback and its counter."""
        candidate = RawTransactionCandidate(amount_text="5,00", description_text="BAR", value_date="99/99/2025")

        result = normalizer.normalize([candidate], "pdf", today=TODAY)

        assert result.transactions[0].date == TODAY
        assert result.transactions[0].value_date is None
        assert result.defaulted_dates == 1

    def test_empty_description_placeholder(self, normalizer: Normalizer) -> None:
        """Test the placeholder description."""
        candidate = RawTransactionCandidate(amount_text="5,00", description_text="  ", value_date="01/10/2025")
        txn = normalizer.normalize([candidate], "pdf", today=TODAY).transactions[0]
        assert txn.description == "Transaction"

    def test_ids_are_deterministic(self, normalizer: Normalizer) -> None:
        """Test that re-normalizing the same candidates yields the same ids."""
        candidates = [
            RawTransactionCandidate(amount_text="5,00", description_text="BAR", value_date="01/10/2025"),
            RawTransactionCandidate(amount_text="5,00", description_text="BAR", value_date="01/10/2025"),
        ]

        first = [t.id for t in normalizer.normalize(candidates, "pdf", today=TODAY).transactions]
        second = [t.id for t in normalizer.normalize(candidates, "pdf", today=TODAY).transactions]

        assert first == second
        assert first[0] != first[1]


class TestGenerateTransactionId:
    """Tests for generate_transaction_id."""

    def test_format(self) -> None:
        """Test the id layout and description truncation."""
        txn_id = generate_transaction_id(
            "pdf", date(2025, 9, 11), Decimal("15.24"), "PAGAMENTO POS STAZIONE FRUTTA", 3
        )
        assert txn_id == "pdf-2025-09-11-15.24-PAGAMENTOPOSSTAZIO-3"


class TestNormalizeCandidates:
    """Tests for the normalize_candidates wrapper."""

    def test_classifies_without_direction(self) -> None:
        """Test that the default classifier decides the direction."""
        candidate = RawTransactionCandidate(
            amount_text="1.500,00",
            description_text="ACCREDITO STIPENDIO OTTOBRE",
            value_date="01/10/2025",
        )

        result = normalize_candidates([candidate], "pdf", "ottobre.pdf")

        assert result.transactions[0].transaction_type == TransactionType.INCOME
        assert result.transactions[0].amount == Decimal("1500.00")
