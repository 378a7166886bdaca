from datetime import date
from decimal import Decimal

from club_statements.normalizers.tokens import (
    clean_description,
    fix_character_confusions,
    normalize_date,
    parse_currency,
    parse_currency_amount,
)


def test_normalize_date_keeps_canonical_dates() -> None:
    assert normalize_date("05/07/2025") == "05/07/2025"
    assert normalize_date("29/02/2024") == "29/02/2024"


def test_normalize_date_repairs_letter_o_read_as_zero() -> None:
    assert normalize_date("O5/O7/2O25") == "05/07/2025"


def test_normalize_date_separators_and_short_years() -> None:
    assert normalize_date("5-7-25") == "05/07/2025"
    assert normalize_date("18.04.99") == "18/04/1999"
    assert normalize_date(" 1 / 2 / 2024 ") == "01/02/2024"


def test_normalize_date_swaps_transposed_day_and_month() -> None:
    assert normalize_date("04/18/2025") == "18/04/2025"


def test_normalize_date_rejects_impossible_dates() -> None:
    assert normalize_date("30/02/2025") is None
    assert normalize_date("31/13/2025") is None
    assert normalize_date("12/2025") is None
    assert normalize_date("") is None
    assert normalize_date(None) is None


def test_normalize_date_rejects_dates_beyond_future_cutoff() -> None:
    today = date(2025, 1, 1)
    assert normalize_date("01/01/2027", today=today) == "01/01/2027"
    assert normalize_date("02/01/2027", today=today) is None
    assert normalize_date("02/01/2026", today=today, max_future_years=1) is None


def test_fix_character_confusions_only_touches_digit_neighbours() -> None:
    assert fix_character_confusions("Sl2") == "512"
    assert fix_character_confusions("1OO5") == "1005"
    assert fix_character_confusions("Social Outing") == "Social Outing"


def test_parse_currency_requires_decimal_point() -> None:
    assert parse_currency_amount("123") is None
    assert parse_currency("123").parse_status == "invalid"


def test_parse_currency_plain_negative_and_thousands() -> None:
    assert parse_currency_amount("123.45") == Decimal("123.45")
    assert parse_currency_amount("(123.45)") == Decimal("-123.45")
    assert parse_currency_amount("-£12.00") == Decimal("-12.00")
    assert parse_currency_amount("1,234.56") == Decimal("1234.56")
    assert parse_currency_amount("£ 1 610.00") == Decimal("1610.00")


def test_parse_currency_comma_decimal_rules() -> None:
    assert parse_currency_amount("12,34") == Decimal("12.34")
    assert parse_currency_amount("1.234,56") == Decimal("1234.56")
    assert parse_currency_amount("1,234") is None


def test_parse_currency_negative_words() -> None:
    assert parse_currency_amount("12.50 debit") == Decimal("-12.50")
    assert parse_currency_amount("Out 8.00") == Decimal("-8.00")


def test_parse_currency_range_and_strict_shape() -> None:
    assert parse_currency_amount("50000.00") == Decimal("50000.00")
    assert parse_currency_amount("50000.01") is None
    assert parse_currency_amount("0.00") is None
    assert parse_currency_amount("1234567.00") is None
    assert parse_currency_amount("12.345") is None
    assert parse_currency_amount("60000.00", max_amount=Decimal("100000")) == Decimal("60000.00")


def test_parse_currency_repairs_confused_digits() -> None:
    parsed = parse_currency("1O.5O")
    assert parsed.value == Decimal("10.50")
    assert "CLEANED" in parsed.parse_warnings


def test_clean_description_strips_artifacts_and_caps_length() -> None:
    assert clean_description("  Welsh   3000s | Registration ** ") == "Welsh 3000s Registration"
    assert clean_description("Food & Catering #1") == "Food & Catering 1"
    assert len(clean_description("x" * 300, max_length=100)) == 100
