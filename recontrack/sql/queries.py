"""Centralized SQL statement builders for reads.

Free-text search is bound as a parameter through ``contains(autoescape=True)``
so user input never reaches the SQL text and ``%``/``_`` match literally.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import String, and_, func, select
from sqlalchemy.sql import Select
from sqlalchemy.sql.elements import ColumnElement

from recontrack.db.schema import fact_recon_vehicles, ingestion_logs, service_ro_details, service_ros

SORT_OPTIONS = ("days_desc", "days_asc", "date_desc", "date_asc")


@dataclass
class FactQuery:
    search: Optional[str] = None
    store_code: Optional[str] = None
    status: Optional[str] = None
    sort_by: str = "days_desc"
    offset: int = 0
    limit: int = 50


def fact_filter_clauses(query: FactQuery) -> List[ColumnElement]:
    fact = fact_recon_vehicles
    clauses: List[ColumnElement] = []
    if query.search:
        needle = query.search.strip().lower()
        if needle:
            clauses.append(
                func.lower(fact.c.stock_no, type_=String).contains(needle, autoescape=True)
                | func.lower(fact.c.vin, type_=String).contains(needle, autoescape=True)
            )
    if query.store_code:
        clauses.append(fact.c.inventory_company == query.store_code)
    if query.status:
        clauses.append(fact.c.recon_status == query.status)
    return clauses


def fact_order_by(sort_by: str) -> list:
    fact = fact_recon_vehicles
    if sort_by == "days_asc":
        primary = fact.c.recon_days.asc().nulls_last()
    elif sort_by == "date_desc":
        primary = fact.c.entry_date.desc().nulls_last()
    elif sort_by == "date_asc":
        primary = fact.c.entry_date.asc().nulls_last()
    elif sort_by == "days_desc":
        primary = fact.c.recon_days.desc().nulls_last()
    else:
        raise ValueError(f"Unsupported sort option: {sort_by!r}")
    # VIN keeps pagination stable across equal sort values
    return [primary, fact.c.vin.asc()]


def fact_page_select(query: FactQuery) -> Select:
    clauses = fact_filter_clauses(query)
    stmt = select(fact_recon_vehicles)
    if clauses:
        stmt = stmt.where(and_(*clauses))
    return stmt.order_by(*fact_order_by(query.sort_by)).limit(int(query.limit)).offset(int(query.offset))


def fact_count_select(query: FactQuery) -> Select:
    clauses = fact_filter_clauses(query)
    stmt = select(func.count()).select_from(fact_recon_vehicles)
    if clauses:
        stmt = stmt.where(and_(*clauses))
    return stmt


def repair_orders_for_vin_select(vin_key: str) -> Select:
    ro = service_ros
    return (
        select(ro)
        .where(func.upper(func.trim(ro.c.vin)) == vin_key)
        .order_by(ro.c.close_date.desc().nulls_first(), ro.c.open_date.desc().nulls_last(), ro.c.ro_number.desc())
    )


def lines_for_ros_select(ro_numbers: List[str]) -> Select:
    d = service_ro_details
    return select(d).where(d.c.ro_number.in_(ro_numbers)).order_by(d.c.ro_number, d.c.id)


def recent_logs_select(limit: int) -> Select:
    log = ingestion_logs
    return select(log).order_by(log.c.ingested_at.desc(), log.c.id.desc()).limit(int(limit))
