from __future__ import annotations

import datetime as dt
from decimal import Decimal

from recontrack.etl.classify import FileKind
from recontrack.etl.normalize import NormalizationStats, RecordNormalizer, canonical_column

TODAY = dt.date(2023, 10, 20)


def test_canonical_column_variants():
    assert canonical_column("Stock No") == canonical_column("stock_no") == canonical_column("StockNo") == "stockno"


def test_inventory_aliases_and_filters(stores):
    norm = RecordNormalizer(stores, today=TODAY)
    stats = NormalizationStats()
    rows = [
        {"VIN": " V1 ", "Stock No": "S1", "StockType": "used", "Company": "1", "EntryDate": "10/01/2023", "Year": "2020.0", "Mileage": "45,000"},
        {"vin": "V2", "stocknumber": "S2", "stocktype": "NEW", "entrydate": "2023-10-01"},
        {"vin": "V3", "stockno": "", "stocktype": "USED"},
        {"vin": "V4", "stockno": "S4", "stocktype": "USED", "inventorycompany": "LCF", "entrydate": "garbage"},
        {"vin": "V5", "stockno": "S5", "stocktype": "USED", "inventorycompany": "99"},
    ]
    records = norm.normalize_rows(FileKind.INVENTORY, rows, stats)

    assert [r.vin for r in records] == ["V1", "V4", "V5"]
    v1, v4, v5 = records
    assert v1.stock_no == "S1" and v1.inventory_company == "1"
    assert v1.entry_date == dt.date(2023, 10, 1)
    assert v1.year == 2020 and v1.mileage == 45000
    assert v4.inventory_company == "2"
    # unparseable entry date falls back to the processing date
    assert v4.entry_date == TODAY
    assert v5.inventory_company is None
    assert stats.rows_seen == 5 and stats.rows_kept == 3 and stats.rows_dropped == 2
    assert stats.invalid_store_values == 1


def test_repair_order_headers(stores):
    norm = RecordNormalizer(stores, today=TODAY)
    records = norm.normalize_rows(
        FileKind.RO_OPEN,
        [
            {"RONumber": "R1", "VIN": "V1", "OpenDate": "2023-10-02", "ROStatusCode": "O"},
            {"ronumber": "", "vin": "V1"},
            {"ronumber": "R3", "vin": ""},
        ],
    )
    assert len(records) == 1
    ro = records[0]
    assert ro.ro_number == "R1" and ro.is_open is True
    assert ro.open_date == dt.date(2023, 10, 2) and ro.close_date is None
    assert ro.key == "R1"


def test_detail_lines_keep_op_code_as_string(stores):
    norm = RecordNormalizer(stores, today=TODAY)
    seen = {}
    records = norm.normalize_rows(
        FileKind.RO_CLOSED_DETAILS,
        [
            {"ronumber": "R1", "opcode": "100.0", "opcodedescription": "Recon", "laborcost": "$120.50", "partscost": "(10)"},
            {"ronumber": "R1", "opcode": "UCI", "laborcost": "abc"},
            {"ronumber": "R2", "opcode": ""},
        ],
        seen_ro_numbers=seen,
    )
    assert [r.op_code for r in records] == ["100", "UCI"]
    assert records[0].labor_cost == Decimal("120.50")
    assert records[0].parts_cost == Decimal("-10")
    assert records[1].labor_cost is None
    # R2 had no usable line but is still part of the file's RO set
    assert list(seen) == ["R1", "R2"]
