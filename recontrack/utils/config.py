from __future__ import annotations

import os
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from recontrack.utils.paths import ROOT_DIR, INCOMING_DIR, PROCESSED_DIR, REJECTED_DIR, OUTPUTS_DIR
from recontrack.utils.logger import apply_log_level, is_valid_level


@dataclass
class Paths:
    incoming: Path
    processed: Path
    rejected: Path
    outputs: Path


@dataclass
class Database:
    engine: str = "sqlite"  # sqlite | postgres
    sqlite_path: Path = ROOT_DIR.parent / "recontrack.db"
    # Connection URL for non-SQLite engines; RECONTRACK_DATABASE_URL wins when set
    url: Optional[str] = None
    # Refuse to fall back to SQLite when the configured engine is unreachable/unset
    strict_db: bool = False
    echo: bool = False


@dataclass
class Ingest:
    batch_size: int = 500
    file_extensions: list[str] = field(default_factory=lambda: [".csv"])
    encodings: list[str] = field(default_factory=lambda: ["utf-8-sig", "utf-8", "cp1252", "latin-1"])
    # None disables the per-file parse budget
    max_parse_seconds: Optional[float] = None
    fail_on_contract_breach: bool = False


@dataclass
class Recon:
    trigger_op_code: str = "UCI"
    eligible_stock_type: str = "USED"
    # Later policy excludes vehicles with no trigger-coded RO; True restores NO_RECON_FOUND rows
    include_vehicles_without_recon: bool = False
    # When True an inventory re-load also overwrites stock type, store and year/make/model
    overwrite_classification_on_conflict: bool = False
    over_threshold_days: int = 10


@dataclass
class Query:
    default_page_size: int = 50
    max_page_size: int = 500
    ingestion_log_limit: int = 20


@dataclass
class Logging:
    level: str = "INFO"
    jsonl: bool = True


def _default_stores() -> Dict[str, str]:
    return {"1": "ACF", "2": "LCF", "3": "CFMG"}


@dataclass
class Config:
    paths: Paths
    database: Database = field(default_factory=Database)
    ingest: Ingest = field(default_factory=Ingest)
    recon: Recon = field(default_factory=Recon)
    query: Query = field(default_factory=Query)
    stores: Dict[str, str] = field(default_factory=_default_stores)
    logging: Logging = field(default_factory=Logging)

    def to_dict(self) -> Dict[str, Any]:
        def _convert(obj: Any) -> Any:
            if isinstance(obj, Path):
                return str(obj)
            if isinstance(obj, dict):
                return {k: _convert(v) for k, v in obj.items()}
            if isinstance(obj, list):
                return [_convert(v) for v in obj]
            return obj

        return {
            "paths": _convert(asdict(self.paths)),
            "database": _convert(asdict(self.database)),
            "ingest": _convert(asdict(self.ingest)),
            "recon": _convert(asdict(self.recon)),
            "query": _convert(asdict(self.query)),
            "stores": dict(self.stores),
            "logging": _convert(asdict(self.logging)),
        }


_TRUTHY = {"1", "true", "yes", "on"}


def _load_yaml(path: Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _merge_overrides(base: Dict[str, Any], overrides: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not overrides:
        return base

    def deep_merge(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
        out = dict(a)
        for k, v in (b or {}).items():
            if isinstance(v, dict) and isinstance(out.get(k), dict):
                out[k] = deep_merge(out[k], v)
            else:
                out[k] = v
        return out

    return deep_merge(base, overrides)


def _apply_env_overrides(cfg_dict: Dict[str, Any]) -> None:
    env_db_engine = os.getenv("RECONTRACK_DB_ENGINE")
    env_sqlite_path = os.getenv("RECONTRACK_SQLITE_PATH")
    env_incoming = os.getenv("RECONTRACK_INCOMING_DIR")
    env_trigger = os.getenv("RECONTRACK_TRIGGER_OP_CODE")
    env_include_no_recon = os.getenv("RECONTRACK_INCLUDE_NO_RECON")
    env_log_level = os.getenv("RECONTRACK_LOG_LEVEL")
    if env_db_engine:
        cfg_dict.setdefault("database", {})["engine"] = env_db_engine
    if env_sqlite_path:
        cfg_dict.setdefault("database", {})["sqlite_path"] = env_sqlite_path
    if env_incoming:
        cfg_dict.setdefault("paths", {})["incoming"] = env_incoming
    if env_trigger:
        cfg_dict.setdefault("recon", {})["trigger_op_code"] = env_trigger
    if env_include_no_recon is not None:
        val = str(env_include_no_recon).strip().lower() in _TRUTHY
        cfg_dict.setdefault("recon", {})["include_vehicles_without_recon"] = val
    if env_log_level:
        cfg_dict.setdefault("logging", {})["level"] = env_log_level


def _paths_from_dict(d: Dict[str, Any]) -> Paths:
    return Paths(
        incoming=Path(d.get("incoming", INCOMING_DIR)).resolve(),
        processed=Path(d.get("processed", PROCESSED_DIR)).resolve(),
        rejected=Path(d.get("rejected", REJECTED_DIR)).resolve(),
        outputs=Path(d.get("outputs", OUTPUTS_DIR)).resolve(),
    )


def _stores_from_dict(raw: Any) -> Dict[str, str]:
    if not raw:
        return _default_stores()
    if not isinstance(raw, dict):
        raise ValueError("stores must be a mapping of store code -> store name")
    stores: Dict[str, str] = {}
    for code, name in raw.items():
        code_str = str(code).strip()
        name_str = str(name).strip()
        if not code_str or not name_str:
            raise ValueError(f"stores entries need a code and a name, got {code!r}: {name!r}")
        stores[code_str] = name_str
    return stores


def load_config(config_path: Optional[str | Path] = None, cli_overrides: Optional[Dict[str, Any]] = None) -> Config:
    if config_path is None:
        config_path = ROOT_DIR / "config.yaml"

    cfg_path_obj = Path(config_path)
    cfg_dict = _load_yaml(cfg_path_obj) if cfg_path_obj.exists() else {}

    allowed_top = {"paths", "database", "ingest", "recon", "query", "stores", "logging"}
    unknown_top = set(cfg_dict.keys()) - allowed_top
    if unknown_top:
        raise ValueError(f"Unknown top-level config keys: {sorted(unknown_top)}. Allowed: {sorted(allowed_top)}")

    _apply_env_overrides(cfg_dict)
    cfg_dict = _merge_overrides(cfg_dict, cli_overrides)

    database = cfg_dict.get("database", {}) or {}
    ingest_cfg = cfg_dict.get("ingest", {}) or {}
    recon_cfg = cfg_dict.get("recon", {}) or {}
    query_cfg = cfg_dict.get("query", {}) or {}
    log_cfg = cfg_dict.get("logging", {}) or {}

    raw_exts = ingest_cfg.get("file_extensions", [".csv"])
    if isinstance(raw_exts, str):
        raw_exts = [raw_exts]
    file_extensions: list[str] = []
    for ext in raw_exts or []:
        ext_str = str(ext).strip().lower()
        if not ext_str:
            continue
        if not ext_str.startswith("."):
            ext_str = "." + ext_str
        if ext_str not in file_extensions:
            file_extensions.append(ext_str)

    max_parse = ingest_cfg.get("max_parse_seconds")
    max_parse_seconds = float(max_parse) if max_parse not in (None, "", 0) else None

    cfg = Config(
        paths=_paths_from_dict(cfg_dict.get("paths") or {}),
        database=Database(
            engine=str(database.get("engine", "sqlite")).strip().lower(),
            sqlite_path=Path(database.get("sqlite_path", ROOT_DIR.parent / "recontrack.db")).resolve(),
            url=(str(database["url"]) if database.get("url") else None),
            strict_db=bool(database.get("strict_db", False)),
            echo=bool(database.get("echo", False)),
        ),
        ingest=Ingest(
            batch_size=int(ingest_cfg.get("batch_size", 500)),
            file_extensions=file_extensions or [".csv"],
            encodings=[str(e) for e in (ingest_cfg.get("encodings") or ["utf-8-sig", "utf-8", "cp1252", "latin-1"])],
            max_parse_seconds=max_parse_seconds,
            fail_on_contract_breach=bool(ingest_cfg.get("fail_on_contract_breach", False)),
        ),
        recon=Recon(
            trigger_op_code=str(recon_cfg.get("trigger_op_code", "UCI")).strip(),
            eligible_stock_type=str(recon_cfg.get("eligible_stock_type", "USED")).strip().upper(),
            include_vehicles_without_recon=bool(recon_cfg.get("include_vehicles_without_recon", False)),
            overwrite_classification_on_conflict=bool(recon_cfg.get("overwrite_classification_on_conflict", False)),
            over_threshold_days=int(recon_cfg.get("over_threshold_days", 10)),
        ),
        query=Query(
            default_page_size=int(query_cfg.get("default_page_size", 50)),
            max_page_size=int(query_cfg.get("max_page_size", 500)),
            ingestion_log_limit=int(query_cfg.get("ingestion_log_limit", 20)),
        ),
        stores=_stores_from_dict(cfg_dict.get("stores")),
        logging=Logging(
            level=str(log_cfg.get("level", "INFO")),
            jsonl=bool(log_cfg.get("jsonl", True)),
        ),
    )

    if cfg.database.engine not in {"sqlite", "postgres"}:
        raise ValueError("database.engine must be 'sqlite' or 'postgres'")
    if cfg.ingest.batch_size <= 0:
        raise ValueError("ingest.batch_size must be a positive integer")
    if cfg.ingest.max_parse_seconds is not None and cfg.ingest.max_parse_seconds < 0:
        raise ValueError("ingest.max_parse_seconds must be non-negative")
    if not cfg.recon.trigger_op_code:
        raise ValueError("recon.trigger_op_code must not be empty")
    if cfg.query.default_page_size <= 0 or cfg.query.max_page_size <= 0:
        raise ValueError("query page sizes must be positive")
    if cfg.query.default_page_size > cfg.query.max_page_size:
        raise ValueError("query.default_page_size must not exceed query.max_page_size")
    if cfg.query.ingestion_log_limit <= 0:
        raise ValueError("query.ingestion_log_limit must be positive")
    if not is_valid_level(cfg.logging.level):
        raise ValueError(f"logging.level must be a logging level name, got {cfg.logging.level!r}")

    for p in [cfg.paths.incoming, cfg.paths.processed, cfg.paths.rejected, cfg.paths.outputs]:
        Path(p).mkdir(parents=True, exist_ok=True)

    apply_log_level(cfg.logging.level)
    return cfg
