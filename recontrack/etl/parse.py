from __future__ import annotations

import datetime as dt
import re
from decimal import Decimal, InvalidOperation
from typing import Any

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%Y/%m/%d",
    "%m/%d/%y",
    "%m-%d-%Y",
    "%Y%m%d",
)
# DMS exports append midnight times ("2023-10-01 00:00:00", "10/1/2023 12:00:00 AM")
_TIME_SUFFIX_RE = re.compile(r"[ T]\d{1,2}:\d{2}(:\d{2}(\.\d+)?)?\s*([AaPp][Mm])?(Z|[+-]\d{2}:?\d{2})?$")


def clean_string(value: Any) -> str | None:
    """Trim and collapse whitespace; blank becomes None."""
    if value is None:
        return None
    text = str(value)
    text = re.sub(r"\s+", " ", text, flags=re.MULTILINE).strip()
    if not text or text.lower() == "nan":
        return None
    return text


def parse_decimal(value: Any) -> Decimal | None:
    """Parse currency-like strings/numbers into Decimal, None when unparseable.

    Handles symbols, thousands commas and parenthesized negatives.
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = Decimal(str(value))
        except InvalidOperation:
            return None
        return number if number.is_finite() else None

    text = str(value).strip()
    if text == "":
        return None

    # Parentheses indicate negative
    is_negative = text.startswith("(") and text.endswith(")")
    text = text.replace("$", "").replace("(", "").replace(")", "").replace(",", "").strip()
    if not text:
        return None

    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    if not number.is_finite():
        return None
    return -number if is_negative else number


def parse_int(value: Any) -> int | None:
    """Parse integer-like values ("45,000", "2020.0"); fractional or bad input gives None."""
    number = parse_decimal(value)
    if number is None:
        return None
    if number != number.to_integral_value():
        return None
    return int(number)


def parse_date(value: Any) -> dt.date | None:
    """Parse many date formats to date, returning None on failure."""
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    text = str(value).strip()
    if not text:
        return None
    text = _TIME_SUFFIX_RE.sub("", text).strip()

    for fmt in _DATE_FORMATS:
        try:
            return dt.datetime.strptime(text, fmt).date()
        except ValueError:
            pass
    # Fallback to pandas for the long tail of formats
    try:
        import pandas as pd

        ts = pd.to_datetime(text, errors="coerce")
        if pd.isna(ts):
            return None
        return ts.date()
    except Exception:
        return None

