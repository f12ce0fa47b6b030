"""
SQLAlchemy implementation of the storage port.

Upserts use the dialect's ``INSERT ... ON CONFLICT DO UPDATE`` (SQLite and
PostgreSQL), executed as executemany batches inside one transaction per call.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, insert, select

from recontrack.db.base import ReconStorage, Row
from recontrack.db.schema import (
    fact_recon_vehicles,
    ingestion_logs,
    inventory_vehicles,
    metadata,
    service_ro_details,
    service_ros,
)
from recontrack.etl.normalize import InventoryRecord, RepairOrderLineRecord, RepairOrderRecord
from recontrack.sql.queries import (
    FactQuery,
    fact_count_select,
    fact_page_select,
    lines_for_ros_select,
    recent_logs_select,
    repair_orders_for_vin_select,
)
from recontrack.utils.clock import utc_now
from recontrack.utils.identifiers import normalize_vin
from recontrack.utils.logger import get_logger

logger = get_logger(__name__)

# Always refreshed on VIN conflict
INVENTORY_MUTABLE = ("stock_no", "entry_date", "lot_location", "mileage", "sold_date", "updated_at")
# Additionally refreshed when overwrite_classification is on
INVENTORY_CLASSIFICATION = ("stock_type", "inventory_company", "year", "make", "model")
REPAIR_ORDER_MUTABLE = ("close_date", "ro_status_code", "updated_at")


def _chunks(rows: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    for i in range(0, len(rows), size):
        yield rows[i:i + size]


class SqlReconStorage(ReconStorage):
    def __init__(self, engine, batch_size: int = 500):
        self.engine = engine
        self.batch_size = max(1, int(batch_size))

    # -- helpers ------------------------------------------------------------

    def _dialect_insert(self, table):
        name = self.engine.dialect.name
        if name == "sqlite":
            from sqlalchemy.dialects.sqlite import insert as dialect_insert
        elif name == "postgresql":
            from sqlalchemy.dialects.postgresql import insert as dialect_insert
        else:
            raise NotImplementedError(f"Upserts are not supported on dialect '{name}'")
        return dialect_insert(table)

    def _upsert(self, table, key: str, rows: List[Row], update_columns: Sequence[str]) -> int:
        if not rows:
            return 0
        stmt = self._dialect_insert(table)
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c[key]],
            set_={name: stmt.excluded[name] for name in update_columns},
        )
        with self.engine.begin() as conn:
            for batch in _chunks(rows, self.batch_size):
                conn.execute(stmt, list(batch))
        return len(rows)

    @staticmethod
    def _rows(result) -> List[Row]:
        return [dict(r) for r in result.mappings().all()]

    # -- schema -------------------------------------------------------------

    def create_schema(self) -> None:
        metadata.create_all(self.engine)
        logger.info("Ensured recon tables exist on %s", self.engine.dialect.name)

    # -- raw entities -------------------------------------------------------

    def upsert_inventory(self, records: Sequence[InventoryRecord], overwrite_classification: bool = False) -> int:
        now = utc_now()
        rows = [{**r.to_row(), "updated_at": now} for r in records]
        update_columns = list(INVENTORY_MUTABLE)
        if overwrite_classification:
            update_columns.extend(INVENTORY_CLASSIFICATION)
        return self._upsert(inventory_vehicles, "vin", rows, update_columns)

    def upsert_repair_orders(self, records: Sequence[RepairOrderRecord]) -> int:
        now = utc_now()
        rows = [{**r.to_row(), "updated_at": now} for r in records]
        return self._upsert(service_ros, "ro_number", rows, REPAIR_ORDER_MUTABLE)

    def replace_repair_order_lines(self, ro_numbers: Sequence[str], records: Sequence[RepairOrderLineRecord]) -> int:
        ro_list = list(dict.fromkeys(ro_numbers))
        rows = [r.to_row() for r in records]
        if not ro_list and not rows:
            return 0
        with self.engine.begin() as conn:
            for batch in _chunks(ro_list, self.batch_size):
                conn.execute(delete(service_ro_details).where(service_ro_details.c.ro_number.in_(list(batch))))
            for batch in _chunks(rows, self.batch_size):
                conn.execute(insert(service_ro_details), list(batch))
        logger.debug("Replaced lines for %d ROs with %d rows", len(ro_list), len(rows))
        return len(rows)

    def fetch_inventory(self) -> List[Row]:
        with self.engine.connect() as conn:
            return self._rows(conn.execute(select(inventory_vehicles).order_by(inventory_vehicles.c.vin)))

    def fetch_repair_orders(self) -> List[Row]:
        with self.engine.connect() as conn:
            return self._rows(conn.execute(select(service_ros).order_by(service_ros.c.ro_number)))

    def fetch_repair_order_lines(self) -> List[Row]:
        with self.engine.connect() as conn:
            stmt = select(service_ro_details).order_by(service_ro_details.c.ro_number, service_ro_details.c.id)
            return self._rows(conn.execute(stmt))

    # -- ingestion log ------------------------------------------------------

    def append_ingestion_log(
        self,
        file_name: str,
        file_type: str,
        status: str,
        row_count: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> Row:
        entry = {
            "file_name": file_name,
            "file_type": file_type,
            "status": status,
            "row_count": row_count,
            "error_message": error_message,
            "ingested_at": utc_now(),
        }
        with self.engine.begin() as conn:
            result = conn.execute(insert(ingestion_logs).values(**entry))
            entry["id"] = result.inserted_primary_key[0]
        return entry

    def recent_ingestion_logs(self, limit: int) -> List[Row]:
        with self.engine.connect() as conn:
            return self._rows(conn.execute(recent_logs_select(limit)))

    # -- facts --------------------------------------------------------------

    def replace_facts(self, rows: Sequence[Row]) -> int:
        rows = list(rows)
        with self.engine.begin() as conn:
            conn.execute(delete(fact_recon_vehicles))
            for batch in _chunks(rows, self.batch_size):
                conn.execute(insert(fact_recon_vehicles), list(batch))
        return len(rows)

    def fetch_facts(self) -> List[Row]:
        with self.engine.connect() as conn:
            return self._rows(conn.execute(select(fact_recon_vehicles).order_by(fact_recon_vehicles.c.vin)))

    def query_facts(self, query: FactQuery) -> Tuple[List[Row], int]:
        with self.engine.connect() as conn:
            total = int(conn.execute(fact_count_select(query)).scalar_one())
            items = self._rows(conn.execute(fact_page_select(query)))
        return items, total

    def get_fact(self, vin: str) -> Optional[Row]:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(fact_recon_vehicles).where(fact_recon_vehicles.c.vin == vin)
            ).mappings().first()
            if row is None:
                # Fall back to the normalized form used by reconciliation joins
                key = normalize_vin(vin)
                if key is None:
                    return None
                row = conn.execute(
                    select(fact_recon_vehicles).where(func.upper(func.trim(fact_recon_vehicles.c.vin)) == key)
                ).mappings().first()
        return dict(row) if row is not None else None

    def repair_orders_for_vin(self, vin: str) -> List[Row]:
        key = normalize_vin(vin)
        if key is None:
            return []
        with self.engine.connect() as conn:
            ros = self._rows(conn.execute(repair_orders_for_vin_select(key)))
            ro_numbers = [r["ro_number"] for r in ros]
            lines_by_ro: Dict[str, List[Row]] = {n: [] for n in ro_numbers}
            for batch in _chunks(ro_numbers, self.batch_size):
                for line in self._rows(conn.execute(lines_for_ros_select(list(batch)))):
                    lines_by_ro.setdefault(line["ro_number"], []).append(line)
        for ro in ros:
            ro["lines"] = lines_by_ro.get(ro["ro_number"], [])
        return ros

    def table_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        with self.engine.connect() as conn:
            for table in (inventory_vehicles, service_ros, service_ro_details, ingestion_logs, fact_recon_vehicles):
                counts[table.name] = int(conn.execute(select(func.count()).select_from(table)).scalar_one())
        return counts
