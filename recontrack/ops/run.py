from __future__ import annotations

import json
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, Optional

import yaml

from recontrack.utils.config import Config
from recontrack.utils.logger import get_logger
from recontrack.utils.paths import OUTPUTS_DIR

logger = get_logger(__name__)


def _utc_now_id() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")


@contextmanager
def run_context(phase: str, cfg: Optional[Config] = None) -> Iterator[Dict[str, object]]:
    """Record one pipeline run under ``<outputs>/runs/<run_id>``.

    Writes ``logs.jsonl`` events, a resolved config snapshot and start/finish
    entries in the shared ``runs.jsonl`` registry. Exceptions from the body are
    logged and re-raised.
    """
    outputs = Path(cfg.paths.outputs) if cfg is not None else OUTPUTS_DIR
    run_id = _utc_now_id()
    run_dir = outputs / "runs" / run_id
    run_dir.mkdir(parents=True, exist_ok=True)
    logs_path = run_dir / "logs.jsonl"
    manifest_path = run_dir / "manifest.json"
    registry_path = outputs / "runs" / "runs.jsonl"
    jsonl_enabled = cfg.logging.jsonl if cfg is not None else True

    def log(event: Dict[str, object]) -> None:
        if not jsonl_enabled:
            return
        payload = {"ts": datetime.now(timezone.utc).isoformat(), "phase": phase, "run_id": run_id}
        payload.update(event)
        with open(logs_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(payload, default=str) + "\n")

    def write_manifest(files: Dict[str, str]) -> None:
        with open(manifest_path, "w", encoding="utf-8") as f:
            json.dump({"files": files}, f, indent=2)

    def append_registry(entry: Dict[str, object]) -> None:
        entry_with_ids = {"run_id": run_id, **entry}
        try:
            with open(registry_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry_with_ids, default=str) + "\n")
        except OSError as e:
            logger.warning("Could not append to run registry %s: %s", registry_path, e)

    t0 = time.time()
    start_ts = datetime.now(timezone.utc).isoformat()
    log({"level": "INFO", "event": "start"})
    append_registry({"started_at": start_ts, "status": "running", "phase": phase, "artifacts_path": str(run_dir)})
    if cfg is not None:
        with open(run_dir / "config_resolved.yaml", "w", encoding="utf-8") as f:
            yaml.safe_dump(cfg.to_dict(), f, sort_keys=False)

    try:
        yield {"run_id": run_id, "run_dir": str(run_dir), "log": log, "write_manifest": write_manifest}
    except Exception as e:
        elapsed = int((time.time() - t0) * 1000)
        log({"level": "ERROR", "event": "exception", "err": str(e), "duration_ms": elapsed})
        append_registry({
            "started_at": start_ts,
            "finished_at": datetime.now(timezone.utc).isoformat(),
            "status": "error",
            "phase": phase,
            "artifacts_path": str(run_dir),
            "error": str(e),
        })
        raise
    elapsed = int((time.time() - t0) * 1000)
    log({"level": "INFO", "event": "finish", "duration_ms": elapsed})
    append_registry({
        "started_at": start_ts,
        "finished_at": datetime.now(timezone.utc).isoformat(),
        "status": "finished",
        "phase": phase,
        "artifacts_path": str(run_dir),
    })
