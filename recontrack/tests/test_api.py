from __future__ import annotations

import datetime as dt

import pytest
from click.testing import CliRunner
from sqlalchemy import create_engine

from recontrack.api import ReconTracker
from recontrack.db.storage import SqlReconStorage
from recontrack.errors import VehicleNotFoundError
from recontrack.ops.seed import SAMPLE_FILES, write_samples

TODAY = dt.date(2023, 10, 20)


@pytest.fixture
def tracker(cfg):
    engine = create_engine(f"sqlite:///{cfg.database.sqlite_path}")
    storage = SqlReconStorage(engine)
    storage.create_schema()
    yield ReconTracker(cfg, storage)
    engine.dispose()


def test_seeded_samples_produce_expected_facts(tracker):
    write_samples(tracker.cfg.paths.incoming)
    summary = tracker.ingest(today=TODAY)

    assert sorted(summary.processed) == sorted(SAMPLE_FILES)
    assert summary.fact_count == 3

    page = tracker.list_vehicles(sort_by="days_asc")
    by_vin = {v["vin"]: v for v in page.items}
    # VIN003 has no trigger work; VIN005 is sold; VIN006 is new
    assert set(by_vin) == {"VIN001", "VIN002", "VIN004"}
    assert by_vin["VIN001"]["recon_days"] == 7
    assert by_vin["VIN001"]["last_recon_ro_number"] == "RO1002"
    assert by_vin["VIN002"]["recon_days"] == 4
    assert by_vin["VIN004"]["recon_status"] == "IN_PROGRESS"
    assert by_vin["VIN004"]["recon_days"] == 5
    assert by_vin["VIN004"]["store_name"] == "CFMG"

    stats = tracker.get_dashboard_stats()
    assert stats.count_complete == 2 and stats.count_in_progress == 1
    assert stats.avg_recon_days == round(16 / 3)

    detail = tracker.get_vehicle("VIN001")
    assert [ro["ro_number"] for ro in detail.ro_history] == ["RO1002", "RO1001"]
    assert len(tracker.list_ingestion_logs()) == 5


def test_accept_uploads_stages_and_ingests(tracker, tmp_path, write_csv):
    upload = write_csv(tmp_path / "spool", "tmp-1", "vin,stockno,stocktype\nV9,S9,USED\n")
    summary = tracker.accept_uploads([upload], names=["inventory_upload.csv"], today=TODAY)
    assert summary.processed == ["inventory_upload.csv"]
    assert [r["vin"] for r in tracker.storage.fetch_inventory()] == ["V9"]
    with pytest.raises(VehicleNotFoundError):
        tracker.get_vehicle("V9")


def test_recompute_and_describe(tracker):
    assert tracker.recompute(today=TODAY) == 0
    info = tracker.describe()
    assert info["stores"] == ["1=ACF", "2=LCF", "3=CFMG"]


def test_ingest_cli_recompute_only(tmp_path):
    config = tmp_path / "config.yaml"
    config.write_text(
        "paths:\n"
        f"  incoming: {tmp_path / 'incoming'}\n"
        f"  processed: {tmp_path / 'processed'}\n"
        f"  rejected: {tmp_path / 'rejected'}\n"
        f"  outputs: {tmp_path / 'outputs'}\n"
        "database:\n"
        f"  sqlite_path: {tmp_path / 'cli.db'}\n",
        encoding="utf-8",
    )
    from recontrack.pipeline.ingest_all import main

    result = CliRunner().invoke(main, ["--config", str(config), "--recompute-only"])
    assert result.exit_code == 0, result.output
    assert "Rebuilt 0 recon facts" in result.output
