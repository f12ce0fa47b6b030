"""
SQLAlchemy Core tables for the recon pipeline.

Raw tables (inventory_vehicles, service_ros, service_ro_details,
ingestion_logs) are written by ingestion. fact_recon_vehicles is owned by the
reconciliation engine and rebuilt wholesale on every recompute.

service_ros.vin is deliberately not a foreign key: RO exports routinely
reference vehicles that are not (or no longer) in the used inventory.
"""

import enum

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
)

metadata = MetaData()

MONEY = Numeric(12, 2)


class ReconStatus(str, enum.Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETE = "COMPLETE"
    # Only produced when vehicles without recon work are kept in the fact table
    NO_RECON_FOUND = "NO_RECON_FOUND"


class IngestStatus(str, enum.Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


inventory_vehicles = Table(
    "inventory_vehicles",
    metadata,
    Column("vin", String(64), primary_key=True),
    Column("stock_no", String(64), nullable=False),
    Column("stock_type", String(16)),
    Column("inventory_company", String(16)),
    Column("entry_date", Date, nullable=False),
    Column("year", Integer),
    Column("make", String(64)),
    Column("model", String(128)),
    Column("mileage", Integer),
    Column("lot_location", String(128)),
    Column("sold_date", Date),
    Column("updated_at", DateTime, nullable=False),
)

service_ros = Table(
    "service_ros",
    metadata,
    Column("ro_number", String(64), primary_key=True),
    Column("vin", String(64), nullable=False, index=True),
    Column("open_date", Date),
    Column("close_date", Date),
    Column("ro_status_code", String(32)),
    Column("is_open", Boolean, nullable=False, default=False),
    Column("updated_at", DateTime, nullable=False),
)

service_ro_details = Table(
    "service_ro_details",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("ro_number", String(64), nullable=False, index=True),
    Column("op_code", String(64), nullable=False),
    Column("op_description", Text),
    Column("labor_type", String(32)),
    Column("labor_sale", MONEY),
    Column("labor_cost", MONEY),
    Column("parts_sale", MONEY),
    Column("parts_cost", MONEY),
)

ingestion_logs = Table(
    "ingestion_logs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("file_name", String(512), nullable=False),
    Column("file_type", String(32), nullable=False),
    Column("ingested_at", DateTime, nullable=False, index=True),
    Column("row_count", Integer),
    Column("status", String(16), nullable=False),
    Column("error_message", Text),
)

fact_recon_vehicles = Table(
    "fact_recon_vehicles",
    metadata,
    Column("vin", String(64), primary_key=True),
    # Denormalized inventory fields for dashboard rendering
    Column("stock_no", String(64)),
    Column("inventory_company", String(16)),
    Column("entry_date", Date),
    Column("lot_location", String(128)),
    Column("year", Integer),
    Column("make", String(64)),
    Column("model", String(128)),
    Column("mileage", Integer),
    Column("sold_date", Date),
    # Computed recon outputs
    Column("last_recon_ro_number", String(64)),
    Column("last_recon_close_date", Date),
    Column("recon_days", Integer),
    Column("recon_status", String(16), nullable=False),
    Column("total_labor_cost", MONEY),
    Column("total_parts_cost", MONEY),
    Column("total_recon_cost", MONEY),
    Column("computed_at", DateTime, nullable=False),
    Index("ix_fact_recon_status", "recon_status"),
    Index("ix_fact_recon_company", "inventory_company"),
)

FACT_COLUMNS = [c.name for c in fact_recon_vehicles.columns]
