"""Classify DMS export files by name.

The file name is the only signal of what an export contains, so every caller
that drops files into the intake area must follow the naming convention:
``inventory`` for inventory snapshots, and a service marker plus ``open`` /
``closed`` (and ``detail`` for line-level exports) for repair orders.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

from recontrack.errors import UnrecognizedFileError

UNKNOWN_FILE_TYPE = "UNKNOWN"

_SERVICE_MARKERS = ("service", "salesclosed", "salesopen", "detailsclosed", "detailsopen")


class FileKind(str, Enum):
    INVENTORY = "INVENTORY"
    RO_CLOSED = "RO_CLOSED"
    RO_CLOSED_DETAILS = "RO_CLOSED_DETAILS"
    RO_OPEN = "RO_OPEN"
    RO_OPEN_DETAILS = "RO_OPEN_DETAILS"

    @property
    def is_details(self) -> bool:
        return self in (FileKind.RO_CLOSED_DETAILS, FileKind.RO_OPEN_DETAILS)

    @property
    def is_repair_order(self) -> bool:
        return self in (FileKind.RO_CLOSED, FileKind.RO_OPEN)

    @property
    def is_open(self) -> bool:
        return self in (FileKind.RO_OPEN, FileKind.RO_OPEN_DETAILS)


def detect_file_kind(file_name: str | Path) -> Optional[FileKind]:
    """Return the export kind for a file name, or None when unrecognized.

    Matching is case-insensitive on the base name. ``inventory`` wins over
    everything else; repair-order names need a service marker and are split
    into header/detail variants on the presence of ``detail``.
    """
    name = Path(str(file_name)).name.lower()
    if "inventory" in name:
        return FileKind.INVENTORY
    if not any(marker in name for marker in _SERVICE_MARKERS):
        return None
    is_detail = "detail" in name
    if "closed" in name:
        return FileKind.RO_CLOSED_DETAILS if is_detail else FileKind.RO_CLOSED
    if "open" in name:
        return FileKind.RO_OPEN_DETAILS if is_detail else FileKind.RO_OPEN
    return None


def classify_or_raise(file_name: str | Path) -> FileKind:
    kind = detect_file_kind(file_name)
    if kind is None:
        raise UnrecognizedFileError(Path(str(file_name)).name)
    return kind
