"""Tests for the multi-line BancoPosta statement parser."""

from datetime import date
from decimal import Decimal

import pytest

from statement_ledger.models.transaction import TransactionType
from statement_ledger.parsers.bancoposta_parser import (
    BancoPostaParser,
    ScanState,
    StatementScanner,
    clean_card_codes,
    is_anchor,
    is_bancoposta_format,
    is_noise,
)
from statement_ledger.processing.normalizer import Normalizer


@pytest.fixture
def parser() -> BancoPostaParser:
    """Parser with the default classifier."""
    return BancoPostaParser()


class TestFormatDetection:
    """Tests for is_bancoposta_format."""

    def test_detects_layout(self, bancoposta_lines: list[str]) -> None:
        """Test that the sample statement is recognized."""
        assert is_bancoposta_format("\n".join(bancoposta_lines))

    def test_needs_three_markers(self) -> None:
        """Test that two markers are not enough."""
        assert not is_bancoposta_format("BANCOPOSTA\nLISTA MOVIMENTI")
        assert is_bancoposta_format("BancoPosta  lista   movimenti  riepilogo conto corrente")


class TestScanner:
    """Tests for the statement scan state machine."""

    def test_state_transitions(self, bancoposta_lines: list[str]) -> None:
        """Test seeking-section, seeking-header, parsing and done."""
        scanner = StatementScanner(bancoposta_lines)
        states = []
        anchors = []
        while not scanner.finished:
            anchor = scanner.step()
            states.append(scanner.state)
            if anchor is not None:
                anchors.append(anchor)

        assert states[0] == ScanState.SEEKING_SECTION
        assert states[6] == ScanState.SEEKING_HEADER
        assert states[7] == ScanState.PARSING
        assert states[-1] == ScanState.DONE
        assert anchors == [9]

    def test_anchor_before_header_starts_parsing(self) -> None:
        """Test recovery when the column header row is missing."""
        scanner = StatementScanner(["LISTA MOVIMENTI", "01/09/2025 01/09/2025 10,00"])
        scanner.step()
        assert scanner.step() == 1
        assert scanner.state == ScanState.PARSING

    def test_no_section_yields_nothing(self) -> None:
        """Test that anchors outside the transaction list are ignored."""
        scanner = StatementScanner(["01/09/2025 01/09/2025 10,00"])
        assert scanner.step() is None
        scanner.step()
        assert scanner.finished


class TestLineHelpers:
    """Tests for anchor, noise and card-code helpers."""

    def test_is_anchor(self) -> None:
        """Test anchor lines with and without inline description."""
        assert is_anchor("13/09/2025 11/09/2025 15,24")
        assert is_anchor("13/09/2025 11/09/2025 COMMISSIONE 1,00 €")
        assert is_anchor("13/09/2025   11/09/2025   1.234,56")
        assert not is_anchor("13/09/2025 15,24")
        assert not is_anchor("PAGAMENTO POS 15,24")

    def test_is_noise(self) -> None:
        """Test page furniture detection."""
        assert is_noise("Pag. 2 di 5")
        assert is_noise("SALDO FINALE 1.000,00")
        assert is_noise("DATA CONTABILE DATA VALUTA")
        assert not is_noise("PAGAMENTO POS LIDL")

    def test_clean_card_codes(self) -> None:
        """Test removal of timestamps and card references."""
        assert clean_card_codes("PAGAMENTO POS BAR 13/09/2025 10.32 CARTA ****2943") == "PAGAMENTO POS BAR"
        assert clean_card_codes("PAGAMENTO POS BAR OP. 123 CARTA ***2943") == "PAGAMENTO POS BAR"


class TestBancoPostaParser:
    """Tests for BancoPostaParser.parse."""

    def test_three_line_pos_payment(self, parser: BancoPostaParser, bancoposta_lines: list[str]) -> None:
        """Test the description / dates+amount / card detail layout."""
        result = parser.parse(bancoposta_lines)

        assert len(result.candidates) == 1
        candidate = result.candidates[0]
        assert candidate.amount_text == "15,24"
        assert candidate.accounting_date == "13/09/2025"
        assert candidate.value_date == "11/09/2025"
        assert candidate.description_text == "PAGAMENTO POS STAZIONE FRUTTA ROMA"
        assert candidate.operation_type_hint == "PAGAMENTO POS"
        assert candidate.direction == TransactionType.EXPENSE

    def test_normalized_transaction(self, parser: BancoPostaParser, bancoposta_lines: list[str]) -> None:
        """Test the end-to-end shape of the normalized transaction."""
        result = parser.parse(bancoposta_lines)
        normalized = Normalizer().normalize(result.candidates, parser.source_kind)

        assert len(normalized.transactions) == 1
        txn = normalized.transactions[0]
        assert txn.amount == Decimal("15.24")
        assert txn.transaction_type == TransactionType.EXPENSE
        assert txn.date == date(2025, 9, 11)
        assert txn.accounting_date == date(2025, 9, 13)
        assert txn.description == "PAGAMENTO POS STAZIONE FRUTTA ROMA"
        assert "2943" not in txn.description

    def test_metadata(self, parser: BancoPostaParser, bancoposta_lines: list[str]) -> None:
        """Test account details from the header."""
        metadata = parser.parse(bancoposta_lines).metadata

        assert metadata is not None
        assert metadata.iban == "IT60X0542811101000000123456"
        assert metadata.account_number == "000012345678"
        assert metadata.holder == "MARIO ROSSI"
        assert metadata.statement_date == date(2025, 9, 30)

    def test_balance_prefers_available(self, parser: BancoPostaParser) -> None:
        """Test that the available balance is the asserted one."""
        assertion = parser.extract_balance(["SALDO CONTABILE 1.300,00 € SALDO DISPONIBILE 1.250,50 €"])

        assert assertion is not None
        assert assertion.value == Decimal("1250.50")
        assert assertion.extraction_pattern == "SALDO DISPONIBILE"

    def test_no_balance_line(self, parser: BancoPostaParser) -> None:
        """Test that a missing balance header yields None."""
        assert parser.extract_balance(["LISTA MOVIMENTI"]) is None

    def test_consecutive_transactions(self, parser: BancoPostaParser) -> None:
        """Test that descriptions are not shared across anchors."""
        lines = [
            "LISTA MOVIMENTI",
            "DATA CONTABILE DATA VALUTA",
            "BONIFICO DA MARIO ROSSI",
            "01/09/2025 01/09/2025 500,00",
            "PAGAMENTO POS LIDL MILANO",
            "02/09/2025 02/09/2025 42,10",
            "Pag. 1 di 2",
            "ADDEBITO DIRETTO ENEL ENERGIA",
            "03/09/2025 03/09/2025 80,00",
        ]
        result = parser.parse(lines)

        descriptions = [c.description_text for c in result.candidates]
        assert descriptions == [
            "BONIFICO DA MARIO ROSSI",
            "PAGAMENTO POS LIDL MILANO",
            "ADDEBITO DIRETTO ENEL ENERGIA",
        ]
        assert result.candidates[0].direction == TransactionType.INCOME
        assert result.candidates[1].direction == TransactionType.EXPENSE

    def test_page_break_between_description_and_anchor(self, parser: BancoPostaParser) -> None:
        """Test that a page footer does not let the detail lookup take the next description."""
        lines = [
            "LISTA MOVIMENTI",
            "DATA CONTABILE DATA VALUTA",
            "BONIFICO DA MARIO ROSSI",
            "01/09/2025 01/09/2025 500,00",
            "PAGAMENTO POS LIDL MILANO",
            "Pag. 2 di 5",
            "02/09/2025 02/09/2025 42,10",
        ]
        result = parser.parse(lines)

        assert len(result.candidates) == 2
        assert result.unparsed_lines == 0
        first, second = result.candidates
        assert first.description_text == "BONIFICO DA MARIO ROSSI"
        assert first.amount_text == "500,00"
        assert first.direction == TransactionType.INCOME
        assert "LIDL" in second.description_text
        assert second.amount_text == "42,10"

    def test_inline_description(self, parser: BancoPostaParser) -> None:
        """Test anchors that carry the description on the same line."""
        lines = ["LISTA MOVIMENTI", "DATA CONTABILE DATA VALUTA", "30/09/2025 30/09/2025 IMPOSTA DI BOLLO 2,00"]
        result = parser.parse(lines)

        assert len(result.candidates) == 1
        assert result.candidates[0].description_text == "IMPOSTA DI BOLLO"
        assert result.candidates[0].amount_text == "2,00"

    def test_anchor_without_description_is_unparsed(self, parser: BancoPostaParser) -> None:
        """Test that an orphan anchor is skipped and counted."""
        lines = ["LISTA MOVIMENTI", "DATA CONTABILE DATA VALUTA", "01/09/2025 01/09/2025 5,00"]
        result = parser.parse(lines)

        assert result.candidates == []
        assert result.unparsed_lines == 1
