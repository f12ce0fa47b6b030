"""Read-side queries behind the dashboard: stats, vehicle list, detail and ingest log."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, List, Optional

import pandas as pd

from recontrack.db.base import ReconStorage, Row
from recontrack.db.schema import ReconStatus
from recontrack.errors import InvalidFilterError, VehicleNotFoundError
from recontrack.sql.queries import SORT_OPTIONS, FactQuery
from recontrack.utils.config import Config
from recontrack.utils.logger import get_logger
from recontrack.utils.stores import StoreDirectory

logger = get_logger(__name__)

ALL = "all"
STATUS_VALUES = [s.value for s in ReconStatus]


def round_half_up(value: float) -> int:
    """Round to a whole number with .5 going away from zero (Python's round() is banker's)."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass
class DashboardStats:
    avg_recon_days: int = 0
    median_recon_days: int = 0
    count_in_progress: int = 0
    count_complete: int = 0
    count_no_recon: int = 0
    count_over_threshold: int = 0
    total_recon_cost: Decimal = Decimal("0.00")


@dataclass
class VehicleFilters:
    search: Optional[str] = None
    store: Optional[str] = None
    status: Optional[str] = None
    sort_by: Optional[str] = None
    page: int = 1
    limit: Optional[int] = None


@dataclass
class VehiclePage:
    items: List[Row]
    total: int
    page: int
    limit: int


@dataclass
class VehicleDetail:
    vehicle: Row
    ro_history: List[Row] = field(default_factory=list)


def _is_unset(value: Optional[str]) -> bool:
    return value is None or str(value).strip() == "" or str(value).strip().lower() == ALL


def _positive_int(field_name: str, value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidFilterError(field_name, value) from None
    if number < 1 or (isinstance(value, float) and not value.is_integer()):
        raise InvalidFilterError(field_name, value)
    return number


class QueryService:
    def __init__(
        self,
        storage: ReconStorage,
        stores: StoreDirectory,
        over_threshold_days: int = 10,
        default_page_size: int = 50,
        max_page_size: int = 500,
        ingestion_log_limit: int = 20,
    ):
        self.storage = storage
        self.stores = stores
        self.over_threshold_days = over_threshold_days
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size
        self.ingestion_log_limit = ingestion_log_limit

    @classmethod
    def from_config(cls, storage: ReconStorage, cfg: Config) -> "QueryService":
        return cls(
            storage,
            StoreDirectory(cfg.stores),
            over_threshold_days=cfg.recon.over_threshold_days,
            default_page_size=cfg.query.default_page_size,
            max_page_size=cfg.query.max_page_size,
            ingestion_log_limit=cfg.query.ingestion_log_limit,
        )

    def dashboard_stats(self) -> DashboardStats:
        facts = pd.DataFrame(self.storage.fetch_facts(), columns=["recon_status", "recon_days", "total_recon_cost"])
        if facts.empty:
            return DashboardStats()

        days = pd.to_numeric(facts["recon_days"], errors="coerce").dropna()
        status = facts["recon_status"].astype(str)
        cost = pd.to_numeric(facts["total_recon_cost"].map(lambda v: None if v is None else float(v)), errors="coerce")
        return DashboardStats(
            avg_recon_days=round_half_up(days.mean()) if not days.empty else 0,
            median_recon_days=round_half_up(days.median()) if not days.empty else 0,
            count_in_progress=int((status == ReconStatus.IN_PROGRESS.value).sum()),
            count_complete=int((status == ReconStatus.COMPLETE.value).sum()),
            count_no_recon=int((status == ReconStatus.NO_RECON_FOUND.value).sum()),
            count_over_threshold=int((days > self.over_threshold_days).sum()),
            total_recon_cost=Decimal(f"{cost.fillna(0.0).sum():.2f}"),
        )

    def _fact_query(self, filters: VehicleFilters) -> FactQuery:
        store_code = None
        if not _is_unset(filters.store):
            store_code = self.stores.resolve(filters.store)
            if store_code is None:
                raise InvalidFilterError("store", filters.store, self.stores.describe())

        status = None
        if not _is_unset(filters.status):
            status = str(filters.status).strip().upper()
            if status not in STATUS_VALUES:
                raise InvalidFilterError("status", filters.status, STATUS_VALUES)

        sort_by = (filters.sort_by or "days_desc").strip().lower()
        if sort_by not in SORT_OPTIONS:
            raise InvalidFilterError("sort_by", filters.sort_by, list(SORT_OPTIONS))

        page = _positive_int("page", filters.page if filters.page is not None else 1)
        limit = _positive_int("limit", filters.limit if filters.limit is not None else self.default_page_size)
        limit = min(limit, self.max_page_size)

        search = filters.search.strip() if filters.search else None
        return FactQuery(
            search=search or None,
            store_code=store_code,
            status=status,
            sort_by=sort_by,
            offset=(page - 1) * limit,
            limit=limit,
        )

    def _with_store_name(self, row: Row) -> Row:
        out = dict(row)
        out["store_name"] = self.stores.name_for(row.get("inventory_company"))
        return out

    def list_vehicles(self, filters: Optional[VehicleFilters] = None) -> VehiclePage:
        filters = filters or VehicleFilters()
        query = self._fact_query(filters)
        items, total = self.storage.query_facts(query)
        logger.debug("Vehicle query %s matched %d rows", query, total)
        page = query.offset // query.limit + 1
        return VehiclePage(
            items=[self._with_store_name(r) for r in items],
            total=total,
            page=page,
            limit=query.limit,
        )

    def get_vehicle(self, vin: str) -> VehicleDetail:
        fact = self.storage.get_fact(vin) if vin else None
        if fact is None:
            raise VehicleNotFoundError(vin)
        history = []
        for ro in self.storage.repair_orders_for_vin(fact["vin"]):
            lines = [
                {
                    "op_code": line["op_code"],
                    "description": line.get("op_description"),
                    "labor_type": line.get("labor_type"),
                    "labor_sale": line.get("labor_sale"),
                    "labor_cost": line.get("labor_cost"),
                    "parts_sale": line.get("parts_sale"),
                    "parts_cost": line.get("parts_cost"),
                }
                for line in ro.get("lines", [])
            ]
            history.append({**{k: v for k, v in ro.items() if k != "lines"}, "lines": lines})
        return VehicleDetail(vehicle=self._with_store_name(fact), ro_history=history)

    def list_ingestion_logs(self, limit: Optional[int] = None) -> List[Row]:
        limit = _positive_int("limit", limit if limit is not None else self.ingestion_log_limit)
        return self.storage.recent_ingestion_logs(limit)
