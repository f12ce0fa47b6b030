import types
from pathlib import Path

import pytest

from recontrack.utils import db as dbmod


class DummyEngine:
    def __init__(self, url: str):
        self.url = url


@pytest.fixture
def captured(monkeypatch):
    seen = {}

    def fake_create_engine(url: str, *_, **__):
        seen["url"] = url
        return DummyEngine(url)

    monkeypatch.setattr(dbmod, "create_engine", fake_create_engine)
    return seen


def _cfg(**database):
    return types.SimpleNamespace(database=types.SimpleNamespace(**database))


def test_postgres_without_url_falls_back_to_sqlite(monkeypatch, caplog, captured, tmp_path):
    path = tmp_path / "fallback.sqlite"
    monkeypatch.setattr(dbmod, "load_config", lambda: _cfg(engine="postgres", sqlite_path=path, strict_db=False, url=None))

    caplog.set_level("INFO")
    engine = dbmod.get_db_connection()

    assert isinstance(engine, DummyEngine)
    assert captured["url"] == f"sqlite:///{path}"
    assert any("falling back to SQLite" in msg for msg in caplog.messages)


def test_strict_db_refuses_fallback(captured, tmp_path):
    with pytest.raises(RuntimeError):
        dbmod.get_db_connection(_cfg(engine="postgres", sqlite_path=tmp_path / "x.db", strict_db=True, url=None))
    assert "url" not in captured


def test_postgres_url_from_env_is_normalized(monkeypatch, captured, tmp_path):
    monkeypatch.setenv("RECONTRACK_DATABASE_URL", "postgres://u:p@db:5432/recon")
    engine = dbmod.get_db_connection(_cfg(engine="postgres", sqlite_path=tmp_path / "x.db", strict_db=True, url=None))
    assert engine.url == "postgresql://u:p@db:5432/recon"


def test_custom_sqlite_path(captured, tmp_path):
    path = tmp_path / "nested" / "custom.db"
    dbmod.get_db_connection(_cfg(engine="sqlite", sqlite_path=path, strict_db=False))
    assert captured["url"] == f"sqlite:///{path}"
    assert path.parent.is_dir()


def test_validate_connection(engine):
    assert dbmod.validate_connection(engine) is True
