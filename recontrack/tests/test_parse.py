from __future__ import annotations

import datetime as dt
from decimal import Decimal

from recontrack.etl.parse import clean_string, parse_date, parse_decimal, parse_int


def test_parse_decimal_cases():
    assert parse_decimal("$1,234.50") == Decimal("1234.50")
    assert parse_decimal("(2,000)") == Decimal("-2000")
    assert parse_decimal("12.5") == Decimal("12.5")
    assert parse_decimal("") is None
    assert parse_decimal("n/a") is None
    assert parse_decimal(None) is None


def test_parse_int_rejects_fractions_and_garbage():
    assert parse_int("45,000") == 45000
    assert parse_int("2020.0") == 2020
    assert parse_int("2020.5") is None
    assert parse_int("abc") is None


def test_parse_date_formats():
    expected = dt.date(2023, 10, 1)
    assert parse_date("2023-10-01") == expected
    assert parse_date("10/1/2023") == expected
    assert parse_date("2023/10/01") == expected
    assert parse_date("10/01/23") == expected
    assert parse_date("2023-10-01 00:00:00") == expected
    assert parse_date("10/1/2023 12:00:00 AM") == expected
    assert parse_date("not a date") is None
    assert parse_date("") is None


def test_clean_string_collapses_whitespace():
    assert clean_string(" A\nB\t  C ") == "A B C"
    assert clean_string("   ") is None
    assert clean_string("nan") is None
