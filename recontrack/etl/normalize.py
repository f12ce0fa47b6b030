"""Map raw DMS CSV rows onto typed inventory and repair-order records.

DMS exports spell the same column several ways (``stockno``, ``StockNumber``,
``Stock No``) depending on the report and the export tool. Headers are
canonicalized (lower-case, alphanumerics only) and each field is read from the
first accepted spelling that holds a non-empty value. Numeric and date fields
coerce to None when unparseable so one bad cell never aborts a file; rows
missing their kind's required fields are dropped.
"""

from __future__ import annotations

import datetime as dt
import re
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from recontrack.etl.classify import FileKind
from recontrack.etl.parse import clean_string, parse_date, parse_decimal, parse_int
from recontrack.utils.clock import utc_today
from recontrack.utils.identifiers import normalize_identifier_value
from recontrack.utils.stores import StoreDirectory

_COLUMN_NORMALIZE_RE = re.compile(r"[^0-9a-z]+")

# Ordered: the first spelling present with a non-empty value wins
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "vin": ("vin", "vehiclevin", "vinnumber"),
    "stock_no": ("stockno", "stocknumber", "stock"),
    "stock_type": ("stocktype", "newused", "vehicletype"),
    "inventory_company": ("inventorycompany", "companynumber", "company", "storecode", "store"),
    "entry_date": ("entrydate", "datein", "inventorydate", "receiveddate"),
    "year": ("year", "modelyear", "vehicleyear"),
    "make": ("make", "makenameupper", "makename"),
    "model": ("model", "modelname", "modelnameupper"),
    "mileage": ("mileage", "miles", "odometer"),
    "lot_location": ("lotlocation", "location", "lot"),
    "sold_date": ("solddate", "vehiclesolddate", "datesold"),
    "ro_number": ("ronumber", "repairorder", "repairordernumber", "ro"),
    "open_date": ("opendate", "roopendate", "dateopened"),
    "close_date": ("closedate", "roclosedate", "dateclosed"),
    "ro_status_code": ("rostatuscode", "rostatus", "status"),
    "op_code": ("opcode", "operationcode", "operation"),
    "op_description": ("opcodedescription", "opcodedesc", "operationdescription", "description"),
    "labor_type": ("labortype",),
    "labor_sale": ("laborsale", "laborsales"),
    "labor_cost": ("laborcost",),
    "parts_sale": ("partssale", "partssales"),
    "parts_cost": ("partscost",),
}

REQUIRED_FIELDS: Dict[FileKind, Tuple[str, ...]] = {
    FileKind.INVENTORY: ("vin", "stock_no", "stock_type"),
    FileKind.RO_CLOSED: ("ro_number", "vin"),
    FileKind.RO_OPEN: ("ro_number", "vin"),
    FileKind.RO_CLOSED_DETAILS: ("ro_number", "op_code"),
    FileKind.RO_OPEN_DETAILS: ("ro_number", "op_code"),
}


def canonical_column(name: Any) -> str:
    return _COLUMN_NORMALIZE_RE.sub("", str(name).strip().lower())


def canonicalize_row(row: Mapping[Any, Any]) -> Dict[str, str]:
    """Re-key a raw row by canonical column name, keeping the first non-empty value."""
    out: Dict[str, str] = {}
    for key, value in row.items():
        if key is None:
            continue
        canon = canonical_column(key)
        if not canon:
            continue
        text = clean_string(value)
        if text is None:
            out.setdefault(canon, "")
            continue
        if not out.get(canon):
            out[canon] = text
    return out


def pick(row: Mapping[str, str], field_name: str) -> Optional[str]:
    for alias in FIELD_ALIASES[field_name]:
        value = row.get(alias)
        if value:
            return value
    return None


@dataclass
class InventoryRecord:
    vin: str
    stock_no: str
    stock_type: str
    inventory_company: Optional[str]
    entry_date: dt.date
    year: Optional[int] = None
    make: Optional[str] = None
    model: Optional[str] = None
    mileage: Optional[int] = None
    lot_location: Optional[str] = None
    sold_date: Optional[dt.date] = None

    @property
    def key(self) -> str:
        return self.vin

    def to_row(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RepairOrderRecord:
    ro_number: str
    vin: str
    open_date: Optional[dt.date] = None
    close_date: Optional[dt.date] = None
    ro_status_code: Optional[str] = None
    is_open: bool = False

    @property
    def key(self) -> str:
        return self.ro_number

    def to_row(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RepairOrderLineRecord:
    ro_number: str
    op_code: str
    op_description: Optional[str] = None
    labor_type: Optional[str] = None
    labor_sale: Optional[Decimal] = None
    labor_cost: Optional[Decimal] = None
    parts_sale: Optional[Decimal] = None
    parts_cost: Optional[Decimal] = None

    def to_row(self) -> Dict[str, Any]:
        return asdict(self)


Record = Union[InventoryRecord, RepairOrderRecord, RepairOrderLineRecord]


@dataclass
class NormalizationStats:
    rows_seen: int = 0
    rows_kept: int = 0
    rows_dropped: int = 0
    invalid_store_values: int = 0

    def merge(self, other: "NormalizationStats") -> None:
        self.rows_seen += other.rows_seen
        self.rows_kept += other.rows_kept
        self.rows_dropped += other.rows_dropped
        self.invalid_store_values += other.invalid_store_values


class RecordNormalizer:
    """Normalize raw rows for one processing date.

    ``today`` stands in for a missing inventory entry date; reconciliation needs
    some date even when the export left it blank.
    """

    def __init__(self, stores: StoreDirectory, eligible_stock_type: str = "USED", today: Optional[dt.date] = None):
        self.stores = stores
        self.eligible_stock_type = eligible_stock_type.strip().upper()
        self.today = today or utc_today()

    def normalize_inventory(self, raw: Mapping[Any, Any], stats: Optional[NormalizationStats] = None) -> Optional[InventoryRecord]:
        row = canonicalize_row(raw)
        vin = pick(row, "vin")
        stock_no = pick(row, "stock_no")
        stock_type = (pick(row, "stock_type") or "").upper()
        if not vin or not stock_no or stock_type != self.eligible_stock_type:
            return None

        raw_store = pick(row, "inventory_company")
        store_code = self.stores.resolve(raw_store)
        if raw_store and store_code is None and stats is not None:
            stats.invalid_store_values += 1

        return InventoryRecord(
            vin=vin,
            stock_no=stock_no,
            stock_type=stock_type,
            inventory_company=store_code,
            entry_date=parse_date(pick(row, "entry_date")) or self.today,
            year=parse_int(pick(row, "year")),
            make=pick(row, "make"),
            model=pick(row, "model"),
            mileage=parse_int(pick(row, "mileage")),
            lot_location=pick(row, "lot_location"),
            sold_date=parse_date(pick(row, "sold_date")),
        )

    def normalize_repair_order(self, raw: Mapping[Any, Any], is_open: bool) -> Optional[RepairOrderRecord]:
        row = canonicalize_row(raw)
        ro_number = normalize_identifier_value(pick(row, "ro_number"))
        vin = pick(row, "vin")
        if not ro_number or not vin:
            return None
        return RepairOrderRecord(
            ro_number=ro_number,
            vin=vin,
            open_date=parse_date(pick(row, "open_date")),
            close_date=parse_date(pick(row, "close_date")),
            ro_status_code=pick(row, "ro_status_code"),
            is_open=is_open,
        )

    def normalize_line(
        self,
        raw: Mapping[Any, Any],
        seen_ro_numbers: Optional[Dict[str, None]] = None,
    ) -> Optional[RepairOrderLineRecord]:
        row = canonicalize_row(raw)
        ro_number = normalize_identifier_value(pick(row, "ro_number"))
        # Lines dropped for a missing op code still mark their RO as replaced
        if ro_number and seen_ro_numbers is not None:
            seen_ro_numbers.setdefault(ro_number, None)
        op_code = normalize_identifier_value(pick(row, "op_code"))
        if not ro_number or not op_code:
            return None
        return RepairOrderLineRecord(
            ro_number=ro_number,
            op_code=op_code,
            op_description=pick(row, "op_description"),
            labor_type=pick(row, "labor_type"),
            labor_sale=parse_decimal(pick(row, "labor_sale")),
            labor_cost=parse_decimal(pick(row, "labor_cost")),
            parts_sale=parse_decimal(pick(row, "parts_sale")),
            parts_cost=parse_decimal(pick(row, "parts_cost")),
        )

    def normalize_rows(
        self,
        kind: FileKind,
        rows: Iterable[Mapping[Any, Any]],
        stats: Optional[NormalizationStats] = None,
        seen_ro_numbers: Optional[Dict[str, None]] = None,
    ) -> List[Record]:
        stats = stats if stats is not None else NormalizationStats()
        records: List[Record] = []
        for raw in rows:
            stats.rows_seen += 1
            if kind is FileKind.INVENTORY:
                record = self.normalize_inventory(raw, stats)
            elif kind.is_details:
                record = self.normalize_line(raw, seen_ro_numbers)
            else:
                record = self.normalize_repair_order(raw, is_open=kind.is_open)
            if record is None:
                stats.rows_dropped += 1
                continue
            stats.rows_kept += 1
            records.append(record)
        return records
