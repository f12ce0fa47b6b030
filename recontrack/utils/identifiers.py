from __future__ import annotations

import math
import re
from typing import Any

import numpy as np

_DECIMAL_TRAIL_RE = re.compile(r"\.0+$")


def _strip_decimal_suffix(text: str) -> str:
    """Remove trailing .0 sequences from numeric identifiers (e.g. op code ``100.0``)."""
    if '.' not in text:
        return text
    return _DECIMAL_TRAIL_RE.sub('', text)


def normalize_identifier_value(value: Any) -> str | None:
    """Normalize raw identifier values (RO numbers, op codes) to clean strings or None.

    Case is preserved; only surrounding whitespace and float artefacts are removed.
    """
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.lower() == 'nan':
            return None
        return _strip_decimal_suffix(text)
    if isinstance(value, (np.integer, int)):
        return str(int(value))
    if isinstance(value, (np.floating, float)):
        if math.isnan(value):
            return None
        if float(value).is_integer():
            return str(int(value))
        text = format(float(value), '.15g')
        return _strip_decimal_suffix(text)
    try:
        text = str(value).strip()
    except Exception:
        return None
    if not text:
        return None
    if text.lower() == 'nan':
        return None
    return _strip_decimal_suffix(text)


def normalize_vin(value: Any) -> str | None:
    """Join key for VINs: trimmed and upper-cased, None when blank."""
    if value is None:
        return None
    text = str(value).strip().upper()
    return text or None


def normalize_op_code(value: Any) -> str | None:
    """Comparison form of an operation code (string form, trimmed, upper-cased)."""
    text = normalize_identifier_value(value)
    return text.upper() if text else None

