from __future__ import annotations

from pathlib import Path

import click

from recontrack.db.storage import SqlReconStorage
from recontrack.utils.config import load_config
from recontrack.utils.db import get_db_connection, validate_connection
from recontrack.utils.logger import get_logger

logger = get_logger(__name__)


@click.command()
@click.option("--config", default=str((Path(__file__).parents[1] / "config.yaml").resolve()))
def main(config: str) -> None:
    """Create the recon tables if they do not exist yet."""
    cfg = load_config(config)
    engine = get_db_connection(cfg)
    if not validate_connection(engine):
        raise click.ClickException("Database is not reachable")
    SqlReconStorage(engine).create_schema()
    click.echo(f"Schema ready on {engine.dialect.name}")


if __name__ == "__main__":
    main()
