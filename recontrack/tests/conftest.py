from __future__ import annotations

from pathlib import Path
from typing import Dict

import pytest
from sqlalchemy import create_engine

from recontrack.db.storage import SqlReconStorage
from recontrack.utils.config import load_config
from recontrack.utils.stores import StoreDirectory


@pytest.fixture(autouse=True)
def clear_recontrack_env(monkeypatch):
    for var in [
        "RECONTRACK_DB_ENGINE",
        "RECONTRACK_SQLITE_PATH",
        "RECONTRACK_DATABASE_URL",
        "RECONTRACK_INCOMING_DIR",
        "RECONTRACK_TRIGGER_OP_CODE",
        "RECONTRACK_INCLUDE_NO_RECON",
        "RECONTRACK_LOG_LEVEL",
    ]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr("recontrack.utils.logger._configured_level", None)


@pytest.fixture
def make_cfg(tmp_path):
    def _make(**sections):
        overrides: Dict[str, dict] = {
            "paths": {
                "incoming": str(tmp_path / "incoming"),
                "processed": str(tmp_path / "processed"),
                "rejected": str(tmp_path / "rejected"),
                "outputs": str(tmp_path / "outputs"),
            },
            "database": {"engine": "sqlite", "sqlite_path": str(tmp_path / "recon.db")},
        }
        for name, values in sections.items():
            overrides.setdefault(name, {}).update(values)
        return load_config(tmp_path / "missing.yaml", cli_overrides=overrides)

    return _make


@pytest.fixture
def cfg(make_cfg):
    return make_cfg()


@pytest.fixture
def engine(tmp_path):
    eng = create_engine(f"sqlite:///{tmp_path / 'recon.db'}")
    yield eng
    eng.dispose()


@pytest.fixture
def storage(engine):
    store = SqlReconStorage(engine, batch_size=2)
    store.create_schema()
    return store


@pytest.fixture
def stores():
    return StoreDirectory({"1": "ACF", "2": "LCF", "3": "CFMG"})


@pytest.fixture
def write_csv():
    def _write(directory: Path, name: str, content: str, encoding: str = "utf-8") -> Path:
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_bytes(content.encode(encoding))
        return path

    return _write
