"""
Rebuild fact_recon_vehicles from the raw tables.

A vehicle is in recon once any repair order on its VIN carries a line with
the trigger op code. The newest closed trigger RO (ties: highest RO number)
marks recon complete; recon days run from the inventory entry date to that
close date, or to today while no trigger RO is closed yet. Costs cover every
line of every RO on the VIN, whatever the op code.

The join and aggregation run in polars on frames built with explicit
schemas, so empty tables flow through the same code path.
"""

from __future__ import annotations

import datetime as dt
import threading
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

import polars as pl

from recontrack.db.base import ReconStorage, Row
from recontrack.db.schema import FACT_COLUMNS, ReconStatus
from recontrack.errors import ReconciliationError
from recontrack.utils.clock import utc_now
from recontrack.utils.config import Config
from recontrack.utils.identifiers import normalize_op_code
from recontrack.utils.logger import get_logger

logger = get_logger(__name__)

# Fact replacement is delete-all then insert; one rebuild at a time per process
_RECOMPUTE_LOCK = threading.Lock()

INVENTORY_SCHEMA = {
    "vin": pl.Utf8,
    "stock_no": pl.Utf8,
    "stock_type": pl.Utf8,
    "inventory_company": pl.Utf8,
    "entry_date": pl.Date,
    "lot_location": pl.Utf8,
    "year": pl.Int64,
    "make": pl.Utf8,
    "model": pl.Utf8,
    "mileage": pl.Int64,
    "sold_date": pl.Date,
}
REPAIR_ORDER_SCHEMA = {
    "ro_number": pl.Utf8,
    "vin": pl.Utf8,
    "open_date": pl.Date,
    "close_date": pl.Date,
}
LINE_SCHEMA = {
    "ro_number": pl.Utf8,
    "op_code": pl.Utf8,
    "labor_cost": pl.Float64,
    "parts_cost": pl.Float64,
}
_MONEY_COLUMNS = ("total_labor_cost", "total_parts_cost", "total_recon_cost")


def _frame(rows: Sequence[Row], schema: Dict[str, Any]) -> pl.DataFrame:
    projected = []
    for row in rows:
        item = {}
        for name, dtype in schema.items():
            value = row.get(name)
            if dtype == pl.Float64 and value is not None:
                value = float(value)
            item[name] = value
        projected.append(item)
    if not projected:
        return pl.DataFrame(schema=schema)
    return pl.DataFrame(projected, schema=schema)


def _vin_key(column: str = "vin") -> pl.Expr:
    return pl.col(column).str.strip_chars().str.to_uppercase()


def _money(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(f"{float(value):.2f}")


def build_fact_frame(
    inventory: pl.DataFrame,
    repair_orders: pl.DataFrame,
    lines: pl.DataFrame,
    today: dt.date,
    trigger_op_code: str = "UCI",
    eligible_stock_type: str = "USED",
    include_vehicles_without_recon: bool = False,
) -> pl.DataFrame:
    """Pure fact computation over raw frames; no I/O."""
    trigger = normalize_op_code(trigger_op_code)
    eligible = eligible_stock_type.strip().upper()

    vehicles = (
        inventory.filter(
            (pl.col("stock_type").str.strip_chars().str.to_uppercase() == eligible)
            & pl.col("sold_date").is_null()
        )
        .with_columns(_vin_key().alias("vin_key"))
        .sort("vin")
        .unique(subset=["vin_key"], keep="first", maintain_order=True)
    )
    ros = repair_orders.with_columns(_vin_key().alias("vin_key")).select(
        ["ro_number", "vin_key", "close_date"]
    )

    trigger_ros = (
        lines.filter(pl.col("op_code").str.strip_chars().str.to_uppercase() == trigger)
        .select("ro_number")
        .unique()
        .join(ros, on="ro_number", how="inner")
    )
    recon_vins = trigger_ros.select("vin_key").unique().with_columns(pl.lit(True).alias("has_recon"))
    latest_closed = (
        trigger_ros.filter(pl.col("close_date").is_not_null())
        .sort(["vin_key", "close_date", "ro_number"], descending=[False, True, True])
        .unique(subset=["vin_key"], keep="first", maintain_order=True)
        .select(
            "vin_key",
            pl.col("ro_number").alias("last_recon_ro_number"),
            pl.col("close_date").alias("last_recon_close_date"),
        )
    )
    costs = (
        lines.join(ros.select(["ro_number", "vin_key"]), on="ro_number", how="inner")
        .group_by("vin_key")
        .agg(
            pl.col("labor_cost").fill_null(0.0).sum().alias("total_labor_cost"),
            pl.col("parts_cost").fill_null(0.0).sum().alias("total_parts_cost"),
        )
    )

    facts = (
        vehicles.join(recon_vins, on="vin_key", how="left")
        .join(latest_closed, on="vin_key", how="left")
        .join(costs, on="vin_key", how="left")
    )
    if not include_vehicles_without_recon:
        facts = facts.filter(pl.col("has_recon").fill_null(False))

    today_lit = pl.lit(today, dtype=pl.Date)
    facts = facts.with_columns(
        pl.when(pl.col("has_recon").is_null())
        .then(pl.lit(ReconStatus.NO_RECON_FOUND.value))
        .when(pl.col("last_recon_close_date").is_not_null())
        .then(pl.lit(ReconStatus.COMPLETE.value))
        .otherwise(pl.lit(ReconStatus.IN_PROGRESS.value))
        .alias("recon_status"),
        pl.col("total_labor_cost").fill_null(0.0).round(2),
        pl.col("total_parts_cost").fill_null(0.0).round(2),
    ).with_columns(
        pl.when(pl.col("recon_status") == ReconStatus.COMPLETE.value)
        .then((pl.col("last_recon_close_date") - pl.col("entry_date")).dt.total_days())
        .when(pl.col("recon_status") == ReconStatus.IN_PROGRESS.value)
        .then((today_lit - pl.col("entry_date")).dt.total_days())
        .otherwise(None)
        .cast(pl.Int64)
        .alias("recon_days"),
        (pl.col("total_labor_cost") + pl.col("total_parts_cost")).round(2).alias("total_recon_cost"),
    )

    return facts.select([c for c in FACT_COLUMNS if c != "computed_at"]).sort("vin")


def fact_rows(facts: pl.DataFrame, computed_at: dt.datetime) -> List[Row]:
    rows: List[Row] = []
    for row in facts.to_dicts():
        for name in _MONEY_COLUMNS:
            row[name] = _money(row[name])
        row["computed_at"] = computed_at
        rows.append(row)
    return rows


class Reconciler:
    def __init__(
        self,
        storage: ReconStorage,
        trigger_op_code: str = "UCI",
        eligible_stock_type: str = "USED",
        include_vehicles_without_recon: bool = False,
    ):
        self.storage = storage
        self.trigger_op_code = trigger_op_code
        self.eligible_stock_type = eligible_stock_type
        self.include_vehicles_without_recon = include_vehicles_without_recon

    @classmethod
    def from_config(cls, storage: ReconStorage, cfg: Config) -> "Reconciler":
        return cls(
            storage,
            trigger_op_code=cfg.recon.trigger_op_code,
            eligible_stock_type=cfg.recon.eligible_stock_type,
            include_vehicles_without_recon=cfg.recon.include_vehicles_without_recon,
        )

    def recompute(self, today: Optional[dt.date] = None) -> int:
        """Replace every fact row from the current raw tables; returns the fact count."""
        with _RECOMPUTE_LOCK:
            now = utc_now()
            today = today or now.date()
            try:
                facts = build_fact_frame(
                    _frame(self.storage.fetch_inventory(), INVENTORY_SCHEMA),
                    _frame(self.storage.fetch_repair_orders(), REPAIR_ORDER_SCHEMA),
                    _frame(self.storage.fetch_repair_order_lines(), LINE_SCHEMA),
                    today=today,
                    trigger_op_code=self.trigger_op_code,
                    eligible_stock_type=self.eligible_stock_type,
                    include_vehicles_without_recon=self.include_vehicles_without_recon,
                )
                count = self.storage.replace_facts(fact_rows(facts, now))
            except Exception as e:
                logger.error("Fact rebuild failed: %s", e)
                raise ReconciliationError("Failed to rebuild recon facts", e) from e

        by_status = facts.group_by("recon_status").len().to_dicts() if count else []
        logger.info(
            "Rebuilt %d recon facts as of %s (trigger op code %s): %s",
            count,
            today.isoformat(),
            self.trigger_op_code,
            {r["recon_status"]: r["len"] for r in by_status},
        )
        return count
