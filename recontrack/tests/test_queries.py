from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest

from recontrack.errors import InvalidFilterError, VehicleNotFoundError
from recontrack.etl.normalize import RepairOrderLineRecord, RepairOrderRecord
from recontrack.service.queries import QueryService, VehicleFilters, round_half_up

NOW = dt.datetime(2023, 10, 20, 12, 0, 0)


def _fact(vin, stock, company, entry, status, days, cost="0"):
    return {
        "vin": vin,
        "stock_no": stock,
        "inventory_company": company,
        "entry_date": entry,
        "lot_location": None,
        "year": 2020,
        "make": "Toyota",
        "model": "Camry",
        "mileage": 1000,
        "sold_date": None,
        "last_recon_ro_number": None,
        "last_recon_close_date": None,
        "recon_days": days,
        "recon_status": status,
        "total_labor_cost": Decimal(cost),
        "total_parts_cost": Decimal("0"),
        "total_recon_cost": Decimal(cost),
        "computed_at": NOW,
    }


@pytest.fixture
def service(storage, stores):
    storage.replace_facts(
        [
            _fact("VIN001", "STK001", "1", dt.date(2023, 10, 1), "COMPLETE", 3, "100.50"),
            _fact("VIN002", "STK002", "2", dt.date(2023, 10, 5), "COMPLETE", 4, "20.25"),
            _fact("VIN003", "STK003", "1", dt.date(2023, 10, 2), "IN_PROGRESS", 18),
            _fact("VIN004", "ABC_1", "3", None, "IN_PROGRESS", 12),
        ]
    )
    return QueryService(storage, stores, default_page_size=2, max_page_size=3)


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(2.49) == 2


def test_dashboard_stats(service):
    stats = service.dashboard_stats()
    # mean of 3, 4, 18, 12 = 9.25
    assert stats.avg_recon_days == 9
    assert stats.median_recon_days == 8
    assert stats.count_complete == 2
    assert stats.count_in_progress == 2
    assert stats.count_no_recon == 0
    assert stats.count_over_threshold == 2
    assert stats.total_recon_cost == Decimal("120.75")


def test_dashboard_stats_empty(storage, stores):
    stats = QueryService(storage, stores).dashboard_stats()
    assert stats.avg_recon_days == 0 and stats.count_complete == 0
    assert stats.total_recon_cost == Decimal("0.00")


def test_list_vehicles_default_sort_and_paging(service):
    page = service.list_vehicles()
    assert page.total == 4 and page.page == 1 and page.limit == 2
    assert [v["vin"] for v in page.items] == ["VIN003", "VIN004"]
    assert page.items[0]["store_name"] == "ACF"

    page2 = service.list_vehicles(VehicleFilters(page=2))
    assert [v["vin"] for v in page2.items] == ["VIN002", "VIN001"]


def test_list_vehicles_limit_is_capped(service):
    assert service.list_vehicles(VehicleFilters(limit=100)).limit == 3


def test_list_vehicles_filters(service):
    assert service.list_vehicles(VehicleFilters(search="stk00")).total == 3
    assert service.list_vehicles(VehicleFilters(search="vin004")).total == 1
    # underscore matches literally, not as a wildcard
    assert service.list_vehicles(VehicleFilters(search="c_1")).total == 1
    assert service.list_vehicles(VehicleFilters(search="c%")).total == 0

    by_name = service.list_vehicles(VehicleFilters(store="acf"))
    by_code = service.list_vehicles(VehicleFilters(store="1"))
    assert by_name.total == by_code.total == 2
    assert service.list_vehicles(VehicleFilters(store="All", status="all")).total == 4
    assert service.list_vehicles(VehicleFilters(status="complete")).total == 2


def test_list_vehicles_date_sort_puts_nulls_last(service):
    page = service.list_vehicles(VehicleFilters(sort_by="date_asc", limit=3))
    assert [v["vin"] for v in page.items] == ["VIN001", "VIN003", "VIN002"]
    last = service.list_vehicles(VehicleFilters(sort_by="date_desc", page=2, limit=3))
    assert [v["vin"] for v in last.items] == ["VIN004"]


@pytest.mark.parametrize(
    "filters",
    [
        VehicleFilters(store="XYZ"),
        VehicleFilters(status="SOLD"),
        VehicleFilters(sort_by="price"),
        VehicleFilters(page=0),
        VehicleFilters(limit=-1),
    ],
)
def test_invalid_filters(service, filters):
    with pytest.raises(InvalidFilterError):
        service.list_vehicles(filters)


def test_get_vehicle_with_history(service, storage):
    storage.upsert_repair_orders(
        [
            RepairOrderRecord("R1", "vin001", dt.date(2023, 10, 2), dt.date(2023, 10, 4)),
            RepairOrderRecord("R2", "VIN001", dt.date(2023, 10, 6), None, is_open=True),
            RepairOrderRecord("R3", "VIN001", dt.date(2023, 10, 3), dt.date(2023, 10, 8)),
            RepairOrderRecord("R9", "VIN002", dt.date(2023, 10, 3), dt.date(2023, 10, 8)),
        ]
    )
    storage.replace_repair_order_lines(
        ["R1", "R3"],
        [
            RepairOrderLineRecord("R1", "LOF", op_description="Lube Oil Filter"),
            RepairOrderLineRecord("R3", "UCI", op_description="Recon", labor_cost=Decimal("90")),
        ],
    )

    detail = service.get_vehicle("VIN001")
    assert detail.vehicle["vin"] == "VIN001"
    assert detail.vehicle["store_name"] == "ACF"
    assert [ro["ro_number"] for ro in detail.ro_history] == ["R2", "R3", "R1"]
    r3 = detail.ro_history[1]
    assert r3["lines"][0]["op_code"] == "UCI"
    assert r3["lines"][0]["description"] == "Recon"
    assert detail.ro_history[0]["lines"] == []


def test_get_vehicle_normalizes_vin(service):
    assert service.get_vehicle(" vin002 ").vehicle["vin"] == "VIN002"


def test_get_vehicle_missing(service):
    with pytest.raises(VehicleNotFoundError):
        service.get_vehicle("NOPE")


def test_ingestion_logs_newest_first_and_capped(storage, stores):
    for i in range(5):
        storage.append_ingestion_log(f"file{i}.csv", "INVENTORY", "SUCCESS", row_count=i)
    service = QueryService(storage, stores, ingestion_log_limit=3)
    logs = service.list_ingestion_logs()
    assert [l["file_name"] for l in logs] == ["file4.csv", "file3.csv", "file2.csv"]
    assert len(service.list_ingestion_logs(limit=10)) == 5
