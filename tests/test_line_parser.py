"""Tests for the generic single-line statement parser."""

import pytest

from statement_ledger.models.transaction import TransactionType
from statement_ledger.parsers.line_parser import (
    GenericLineParser,
    extract_meaningful_description,
    strip_trailing_codes,
)


@pytest.fixture
def parser() -> GenericLineParser:
    """Parser with the default classifier."""
    return GenericLineParser()


class TestParseLine:
    """Tests for GenericLineParser.parse_line."""

    def test_pos_payment_with_operation_keyword(self, parser: GenericLineParser) -> None:
        """Test a POS line: merchant kept, timestamp, codes and country dropped."""
        line = (
            "12/09/25 13/09/25 4,99 PAGAMENTO POS 12/09/2025 10.15 "
            "Google YouTube Member London GBR OPERAZIONE 123456 CARTA 2943"
        )
        candidate = parser.parse_line(line, 7)

        assert candidate is not None
        assert candidate.amount_text == "4,99"
        assert candidate.description_text == "Google YouTube Member London"
        assert candidate.operation_type_hint == "PAGAMENTO POS"
        assert candidate.accounting_date == "12/09/25"
        assert candidate.value_date == "13/09/25"
        assert candidate.direction == TransactionType.EXPENSE
        assert candidate.source_line == 7

    def test_incoming_transfer(self, parser: GenericLineParser) -> None:
        """Test that direction is decided before the preposition is stripped."""
        line = "01/10/2025 01/10/2025 1.500,00 BONIFICO Da ACME SRL TRN ABC123XYZ"
        candidate = parser.parse_line(line)

        assert candidate is not None
        assert candidate.amount_text == "1.500,00"
        assert candidate.description_text == "ACME SRL"
        assert candidate.direction == TransactionType.INCOME

    def test_outgoing_transfer(self, parser: GenericLineParser) -> None:
        """Test a transfer to a person."""
        line = "02/10/2025 02/10/2025 200,00 BONIFICO A Luigi Verdi TRN XYZ987 BPPIITRRXXX"
        candidate = parser.parse_line(line)

        assert candidate is not None
        assert candidate.description_text == "Luigi Verdi"
        assert candidate.direction == TransactionType.EXPENSE

    def test_two_dates_free_description(self, parser: GenericLineParser) -> None:
        """Test the second pattern, with the keyword inferred from the description."""
        line = "05/10/2025 05/10/2025 35,00 PRELIEVO ATM VIA ROMA"
        candidate = parser.parse_line(line)

        assert candidate is not None
        assert candidate.operation_type_hint == "PRELIEVO"
        assert candidate.description_text == "PRELIEVO ATM VIA ROMA"
        assert candidate.direction == TransactionType.EXPENSE

    def test_single_date(self, parser: GenericLineParser) -> None:
        """Test the single-date fallback pattern."""
        candidate = parser.parse_line("07/10/2025 12,50 FARMACIA CENTRALE")

        assert candidate is not None
        assert candidate.accounting_date == "07/10/2025"
        assert candidate.value_date is None
        assert candidate.amount_text == "12,50"
        assert candidate.description_text == "FARMACIA CENTRALE"

    @pytest.mark.parametrize(
        "line",
        [
            "",
            "short",
            "Estratto conto al 30/09/2025",
            "DATA CONTABILE DATA VALUTA IMPORTO DESCRIZIONE",
            "13/09/2025 13/09/2025 senza importo",
        ],
    )
    def test_non_transaction_lines(self, parser: GenericLineParser, line: str) -> None:
        """Test that noise and continuation lines yield nothing."""
        assert parser.parse_line(line) is None


class TestParse:
    """Tests for GenericLineParser.parse."""

    def test_counts_unparsed_date_lines(self, parser: GenericLineParser) -> None:
        """Test that date-led lines without a usable shape are counted, others ignored."""
        lines = [
            "ESTRATTO CONTO",
            "07/10/2025 12,50 FARMACIA CENTRALE",
            "continuazione descrizione",
            "08/10/2025 importo illeggibile",
        ]
        result = parser.parse(lines)

        assert len(result.candidates) == 1
        assert result.unparsed_lines == 1
        assert result.balance_assertion is None

    def test_can_parse(self, parser: GenericLineParser) -> None:
        """Test detection of at least one transaction line."""
        assert parser.can_parse(["07/10/2025 12,50 FARMACIA CENTRALE"])
        assert not parser.can_parse(["nothing to see"])

    def test_source_kind(self, parser: GenericLineParser) -> None:
        """Test the id prefix."""
        assert parser.source_kind == "pdf"


class TestDescriptionExtraction:
    """Tests for operation-specific description extraction."""

    def test_direct_debit_creditor(self) -> None:
        """Test that direct debits keep the creditor name."""
        text = "DIRETTO SDD ENEL ENERGIA SPA CID.IT123 456 MAN.AB-12"
        assert extract_meaningful_description(text, "ADDEBITO") == "ENEL ENERGIA SPA"

    def test_postagiro_counterparty(self) -> None:
        """Test postal giro counterparty extraction."""
        assert extract_meaningful_description("Da ANNA BIANCHI TRN 998877", "POSTAGIRO") == "ANNA BIANCHI"

    def test_empty(self) -> None:
        """Test the placeholder for empty descriptions."""
        assert extract_meaningful_description("  ", None) == "Transaction"

    def test_strip_trailing_codes(self) -> None:
        """Test removal of routing codes."""
        assert strip_trailing_codes("ROSSI MARIO BITAITRRXXX") == "ROSSI MARIO"
