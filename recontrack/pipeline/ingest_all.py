"""
One ingest pass over the intake directory.

Files are classified and loaded strictly one after another in sorted name
order. Each file gets an ingestion log row and moves to ``processed`` or
``rejected``; one bad file never stops the others. A loaded file that cannot
be moved stays in intake and is loaded again next pass. Facts are rebuilt
once at the end when at least one file loaded.
"""

from __future__ import annotations

import datetime as dt
import shutil
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

import click

from recontrack.db.base import ReconStorage
from recontrack.db.schema import IngestStatus
from recontrack.db.storage import SqlReconStorage
from recontrack.etl.classify import UNKNOWN_FILE_TYPE, classify_or_raise
from recontrack.etl.contracts import ContractViolation, violations_to_dataframe
from recontrack.etl.loader import BatchLoader
from recontrack.etl.reconcile import Reconciler
from recontrack.ops.run import run_context
from recontrack.utils.clock import utc_today
from recontrack.utils.config import Config, load_config
from recontrack.utils.db import get_db_connection
from recontrack.utils.logger import get_logger

logger = get_logger(__name__)

# Two triggers in one process would otherwise race on the same intake files
_INGEST_LOCK = threading.Lock()


@dataclass
class IngestSummary:
    processed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    recomputed: bool = False
    fact_count: Optional[int] = None
    errors: Dict[str, str] = field(default_factory=dict)


def pending_files(incoming_dir: Path, extensions: List[str]) -> List[Path]:
    """Intake files with an accepted extension, sorted by name."""
    incoming_dir = Path(incoming_dir)
    if not incoming_dir.exists():
        return []
    allowed = {e.lower() for e in extensions}
    return sorted(
        (p for p in incoming_dir.iterdir() if p.is_file() and p.suffix.lower() in allowed),
        key=lambda p: p.name,
    )


def archive_file(path: Path, dest_dir: Path) -> Path:
    """Move ``path`` into ``dest_dir`` as ``<UTC timestamp>_<name>``; never overwrites."""
    dest_dir = Path(dest_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    dest = dest_dir / f"{stamp}_{path.name}"
    n = 1
    while dest.exists():
        dest = dest_dir / f"{stamp}_{path.stem}-{n}{path.suffix}"
        n += 1
    shutil.move(str(path), str(dest))
    return dest


def process_incoming(
    storage: ReconStorage,
    cfg: Config,
    loader: Optional[BatchLoader] = None,
    reconciler: Optional[Reconciler] = None,
    today: Optional[dt.date] = None,
) -> IngestSummary:
    loader = loader or BatchLoader.from_config(storage, cfg)
    reconciler = reconciler or Reconciler.from_config(storage, cfg)
    summary = IngestSummary()

    with _INGEST_LOCK, run_context("ingest", cfg) as ctx:
        # One processing date for entry-date defaults and in-progress recon days
        today = today or utc_today()
        files = pending_files(cfg.paths.incoming, cfg.ingest.file_extensions)
        if not files:
            logger.info("No pending files in %s", cfg.paths.incoming)
        violations: List[ContractViolation] = []

        for path in files:
            file_type = UNKNOWN_FILE_TYPE
            try:
                kind = classify_or_raise(path.name)
                file_type = kind.value
                result = loader.load_file(path, kind, today=today)
            except Exception as e:
                logger.error("Rejected %s: %s", path.name, e)
                storage.append_ingestion_log(
                    path.name, file_type, IngestStatus.FAILED.value, error_message=str(e)
                )
                if path.exists():
                    archive_file(path, cfg.paths.rejected)
                summary.failed.append(path.name)
                summary.errors[path.name] = str(e)
                ctx["log"]({"level": "ERROR", "event": "file_failed", "file": path.name, "file_type": file_type, "err": str(e)})
                continue

            violations.extend(result.violations)
            storage.append_ingestion_log(
                path.name, file_type, IngestStatus.SUCCESS.value, row_count=result.rows_written
            )
            summary.processed.append(path.name)
            # Rows are committed; a failed move leaves the file for the next pass
            try:
                archived_as = archive_file(path, cfg.paths.processed).name
            except OSError as e:
                archived_as = None
                logger.error("Loaded %s but could not archive it: %s", path.name, e)
            ctx["log"]({
                "level": "INFO",
                "event": "file_loaded",
                "file": path.name,
                "file_type": file_type,
                "rows_read": result.rows_read,
                "rows_written": result.rows_written,
                "archived_as": archived_as,
            })

        if violations:
            report = Path(ctx["run_dir"]) / "contract_violations.csv"
            violations_to_dataframe(violations).to_csv(report, index=False)
            ctx["write_manifest"]({"contract_violations": str(report)})

        if summary.processed:
            summary.fact_count = reconciler.recompute(today=today)
            summary.recomputed = True

        ctx["log"]({
            "level": "INFO",
            "event": "summary",
            "processed": len(summary.processed),
            "failed": len(summary.failed),
            "fact_count": summary.fact_count,
        })

    logger.info(
        "Ingest pass finished: %d processed, %d failed, recomputed=%s",
        len(summary.processed),
        len(summary.failed),
        summary.recomputed,
    )
    return summary


@click.command()
@click.option("--config", default=str((Path(__file__).parents[1] / "config.yaml").resolve()))
@click.option("--recompute-only", is_flag=True, default=False, help="Rebuild facts from the raw tables without reading intake files")
def main(config: str, recompute_only: bool) -> None:
    """Ingest every pending DMS export, then rebuild recon facts."""
    cfg = load_config(config)
    storage = SqlReconStorage(get_db_connection(cfg), batch_size=cfg.ingest.batch_size)
    storage.create_schema()
    if recompute_only:
        with run_context("recompute", cfg):
            count = Reconciler.from_config(storage, cfg).recompute()
        click.echo(f"Rebuilt {count} recon facts")
        return
    summary = process_incoming(storage, cfg)
    click.echo(
        f"Processed {len(summary.processed)} files, failed {len(summary.failed)}; "
        f"facts={summary.fact_count if summary.recomputed else 'unchanged'}"
    )
    for name, err in summary.errors.items():
        click.echo(f"  {name}: {err}", err=True)


if __name__ == "__main__":
    main()
