"""
Entry point for callers embedding the recon tracker (HTTP layer, scripts).

``ReconTracker`` wires config, engine, storage, loader, reconciler and query
service once and exposes the operations the dashboard needs.
"""

from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from recontrack.db.base import ReconStorage, Row
from recontrack.db.storage import SqlReconStorage
from recontrack.etl.loader import BatchLoader
from recontrack.etl.reconcile import Reconciler
from recontrack.etl.uploads import stage_uploads
from recontrack.pipeline.ingest_all import IngestSummary, process_incoming
from recontrack.service.queries import DashboardStats, QueryService, VehicleDetail, VehicleFilters, VehiclePage
from recontrack.utils.config import Config, load_config
from recontrack.utils.db import get_db_connection


class ReconTracker:
    def __init__(self, cfg: Config, storage: ReconStorage):
        self.cfg = cfg
        self.storage = storage
        self.loader = BatchLoader.from_config(storage, cfg)
        self.reconciler = Reconciler.from_config(storage, cfg)
        self.queries = QueryService.from_config(storage, cfg)

    @classmethod
    def from_config(
        cls,
        config_path: Optional[str | Path] = None,
        cli_overrides: Optional[Dict[str, Any]] = None,
        engine=None,
    ) -> "ReconTracker":
        cfg = load_config(config_path, cli_overrides)
        engine = engine if engine is not None else get_db_connection(cfg)
        storage = SqlReconStorage(engine, batch_size=cfg.ingest.batch_size)
        storage.create_schema()
        return cls(cfg, storage)

    def ingest(self, today: Optional[dt.date] = None) -> IngestSummary:
        return process_incoming(self.storage, self.cfg, self.loader, self.reconciler, today=today)

    def accept_uploads(
        self,
        files: Iterable[Path | str],
        names: Optional[Sequence[str]] = None,
        today: Optional[dt.date] = None,
    ) -> IngestSummary:
        stage_uploads(files, self.cfg.paths.incoming, names=names)
        return self.ingest(today=today)

    def recompute(self, today: Optional[dt.date] = None) -> int:
        return self.reconciler.recompute(today=today)

    def get_dashboard_stats(self) -> DashboardStats:
        return self.queries.dashboard_stats()

    def list_vehicles(self, **filters: Any) -> VehiclePage:
        return self.queries.list_vehicles(VehicleFilters(**filters))

    def get_vehicle(self, vin: str) -> VehicleDetail:
        return self.queries.get_vehicle(vin)

    def list_ingestion_logs(self, limit: Optional[int] = None) -> List[Row]:
        return self.queries.list_ingestion_logs(limit)

    def describe(self) -> Dict[str, Any]:
        """Resolved settings plus the store directory, for diagnostics."""
        return {"config": self.cfg.to_dict(), "stores": self.queries.stores.describe()}
