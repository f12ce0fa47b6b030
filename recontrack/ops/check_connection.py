from __future__ import annotations

import sys
from pathlib import Path

import click
from sqlalchemy import inspect

from recontrack.db.schema import metadata
from recontrack.db.storage import SqlReconStorage
from recontrack.utils.config import load_config
from recontrack.utils.db import get_db_connection, validate_connection
from recontrack.utils.logger import get_logger

logger = get_logger(__name__)


@click.command()
@click.option("--config", default=str((Path(__file__).parents[1] / "config.yaml").resolve()))
def main(config: str) -> None:
    """Check DB connectivity and report row counts for each recon table."""
    cfg = load_config(config)
    engine = get_db_connection(cfg)
    logger.info("Connected using SQLAlchemy dialect: %s", engine.dialect.name)
    if not validate_connection(engine):
        sys.exit(1)

    existing = set(inspect(engine).get_table_names())
    missing = sorted(set(metadata.tables) - existing)
    if missing:
        logger.warning("Missing tables: %s (run recontrack-init-db)", ", ".join(missing))
        sys.exit(1)

    for table, count in SqlReconStorage(engine).table_counts().items():
        click.echo(f"{table}: {count}")
    logger.info("All recon tables are reachable.")


if __name__ == "__main__":
    main()
