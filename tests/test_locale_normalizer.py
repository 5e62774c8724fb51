"""Tests for Italian amount, date and description normalization."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from statement_ledger.utils.date_utils import (
    expand_year,
    normalize_date,
    normalize_date_checked,
    parse_date,
    parse_italian_long_date,
)
from statement_ledger.utils.decimal_utils import (
    format_amount,
    format_italian,
    normalize_amount,
    normalize_amount_checked,
    parse_signed_amount,
)
from statement_ledger.utils.text_utils import (
    EMPTY_DESCRIPTION,
    clean_description,
    normalize_for_matching,
)


class TestNormalizeAmount:
    """Tests for normalize_amount."""

    def test_thousands_and_decimal_separators(self) -> None:
        """Test that '.' is a thousands separator when ',' is present."""
        assert normalize_amount("1.234,56") == Decimal("1234.56")

    def test_comma_decimal(self) -> None:
        """Test a comma-only amount."""
        assert normalize_amount("4,99") == Decimal("4.99")

    def test_garbage_yields_zero(self) -> None:
        """Test that malformed input yields zero without raising."""
        assert normalize_amount("garbage") == Decimal("0")
        assert normalize_amount("") == Decimal("0")
        assert normalize_amount(None) == Decimal("0")

    def test_sign_and_currency_are_dropped(self) -> None:
        """Test that the result is the absolute value without currency symbols."""
        assert normalize_amount("-120,00 €") == Decimal("120.00")
        assert normalize_amount("+8.847,41") == Decimal("8847.41")

    def test_numeric_cells(self) -> None:
        """Test numeric spreadsheet values."""
        assert normalize_amount(15.5) == Decimal("15.5")
        assert normalize_amount(-3) == Decimal("3")

    def test_defaulted_flag(self) -> None:
        """Test that the checked variant distinguishes fallback from real zero."""
        assert normalize_amount_checked("abc").defaulted is True
        real_zero = normalize_amount_checked("0,00")
        assert real_zero.defaulted is False
        assert real_zero.value == Decimal("0")


class TestSignedAmounts:
    """Tests for signed parsing and formatting."""

    def test_negative_balance_keeps_sign(self) -> None:
        """Test that an explicit minus survives for balances."""
        assert parse_signed_amount("-1.000,50") == Decimal("-1000.50")

    def test_plain_dot_decimal(self) -> None:
        """Test a dot-decimal amount typed on the command line."""
        assert parse_signed_amount("1234.56") == Decimal("1234.56")

    def test_invalid_raises(self) -> None:
        """Test that the strict parser raises on garbage."""
        with pytest.raises(ValueError):
            parse_signed_amount("n/a")

    def test_format_amount(self) -> None:
        """Test two-decimal formatting and negative zero."""
        assert format_amount(Decimal("1234.5")) == "1234.50"
        assert format_amount(Decimal("-0.001")) == "0.00"

    def test_format_italian(self) -> None:
        """Test Italian grouping."""
        assert format_italian(Decimal("1234.5")) == "1.234,50"


class TestNormalizeDate:
    """Tests for date parsing and normalization."""

    def test_two_digit_year(self) -> None:
        """Test DD/MM/YY in the current century."""
        assert normalize_date("13/09/25") == "2025-09-13"

    def test_four_digit_year(self) -> None:
        """Test DD/MM/YYYY."""
        assert normalize_date("13/09/2025") == "2025-09-13"

    def test_alternate_separators(self) -> None:
        """Test '-' and '.' separators."""
        assert parse_date("01-02-2024") == date(2024, 2, 1)
        assert parse_date("01.02.2024") == date(2024, 2, 1)

    def test_year_pivot(self) -> None:
        """Test that years above 50 map to the previous century."""
        assert expand_year(51, 2) == 1951
        assert expand_year(50, 2) == 2050
        assert expand_year(1999, 4) == 1999

    def test_serial_dates(self) -> None:
        """Test spreadsheet serial numbers (days since 1899-12-30)."""
        assert parse_date(45000) == date(2023, 3, 15)
        assert parse_date("45000") == date(2023, 3, 15)

    def test_datetime_objects(self) -> None:
        """Test that date and datetime values pass through."""
        assert parse_date(datetime(2024, 5, 6, 10, 30)) == date(2024, 5, 6)
        assert parse_date(date(2024, 5, 6)) == date(2024, 5, 6)

    def test_iso_date(self) -> None:
        """Test ISO input."""
        assert parse_date("2024-05-06") == date(2024, 5, 6)

    def test_impossible_date_raises(self) -> None:
        """Test that invalid calendar dates are rejected by the strict parser."""
        with pytest.raises(ValueError):
            parse_date("31/02/2024")

    @pytest.mark.parametrize("raw", ["13/09/202", "13/09/20255", "1/1/1"])
    def test_year_must_have_two_or_four_digits(self, raw: str) -> None:
        """Test that one, three and five digit years are rejected."""
        with pytest.raises(ValueError):
            parse_date(raw)
        today = date(2025, 1, 1)
        assert normalize_date_checked(raw, today=today).defaulted is True

    def test_unparseable_defaults_to_today(self) -> None:
        """Test the lenient fallback and that it is reported as defaulted."""
        today = date(2025, 1, 1)
        result = normalize_date_checked("not a date", today=today)
        assert result.value == today
        assert result.defaulted is True
        assert normalize_date("", today=today) == "2025-01-01"

    def test_parsed_date_is_not_defaulted(self) -> None:
        """Test that a real date is not flagged."""
        assert normalize_date_checked("13/09/2025").defaulted is False

    def test_long_italian_date(self) -> None:
        """Test month-name dates from statement headers."""
        assert parse_italian_long_date("Saldo e movimenti al 30 settembre 2025") == date(2025, 9, 30)
        assert parse_italian_long_date("nessuna data") is None


class TestDescriptions:
    """Tests for description cleaning and matching normalization."""

    def test_collapses_whitespace(self) -> None:
        """Test whitespace collapsing and trimming."""
        assert clean_description("  PAGAMENTO   POS\tLIDL  ") == "PAGAMENTO POS LIDL"

    def test_empty_placeholder(self) -> None:
        """Test that empty descriptions become the placeholder."""
        assert clean_description("") == EMPTY_DESCRIPTION
        assert clean_description("   ") == EMPTY_DESCRIPTION
        assert clean_description(None) == "Transaction"

    def test_normalize_for_matching(self) -> None:
        """Test lowercasing and accent stripping."""
        assert normalize_for_matching("  Caffè   Società ") == "caffe societa"
        assert normalize_for_matching(None) == ""
