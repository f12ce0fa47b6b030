from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

import pandas as pd

from recontrack.etl.classify import FileKind
from recontrack.etl.normalize import FIELD_ALIASES, REQUIRED_FIELDS, canonical_column


@dataclass
class ContractViolation:
    file_name: str
    field_name: str
    violation_type: str
    details: str


def check_required_fields(columns: Iterable[str], file_name: str, kind: FileKind) -> List[ContractViolation]:
    """Report required fields of ``kind`` for which no accepted column spelling is present."""
    present = {canonical_column(c) for c in columns}
    violations: List[ContractViolation] = []
    for field_name in REQUIRED_FIELDS[kind]:
        if any(alias in present for alias in FIELD_ALIASES[field_name]):
            continue
        violations.append(
            ContractViolation(
                file_name=file_name,
                field_name=field_name,
                violation_type="missing_column",
                details=f"No column for '{field_name}' in {file_name} (accepted: {', '.join(FIELD_ALIASES[field_name])})",
            )
        )
    return violations


def check_no_duplicate_keys(keys: Iterable[str], file_name: str, field_name: str) -> List[ContractViolation]:
    """Flag entity keys repeated within one file; the loader keeps the last occurrence."""
    ser = pd.Series(list(keys), dtype="object")
    if ser.empty:
        return []
    dup_mask = ser.duplicated(keep=False)
    if not dup_mask.any():
        return []
    dup_rows = int(dup_mask.sum())
    distinct = int(ser[dup_mask].nunique())
    return [
        ContractViolation(
            file_name=file_name,
            field_name=field_name,
            violation_type="duplicate_key",
            details=f"{dup_rows} rows share {distinct} repeated '{field_name}' values; last occurrence wins",
        )
    ]


def violations_to_dataframe(violations: List[ContractViolation]) -> pd.DataFrame:
    if not violations:
        return pd.DataFrame(columns=["file_name", "field_name", "violation_type", "details"])
    return pd.DataFrame([v.__dict__ for v in violations])
