from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Optional

import click
import pandas as pd

from recontrack.api import ReconTracker
from recontrack.utils.logger import get_logger

logger = get_logger(__name__)

_PREVIEW_COLUMNS = ["vin", "stock_no", "store_name", "entry_date", "recon_status", "recon_days", "total_recon_cost"]


@click.command()
@click.option("--config", default=str((Path(__file__).parents[1] / "config.yaml").resolve()))
@click.option("--status", default=None, help="IN_PROGRESS, COMPLETE or NO_RECON_FOUND")
@click.option("--store", default=None, help="Store code or name")
@click.option("--search", default=None, help="Substring of stock number or VIN")
@click.option("--sort", "sort_by", default="days_desc", show_default=True)
@click.option("--rows", default=20, show_default=True, help="Number of vehicles to show")
def main(config: str, status: Optional[str], store: Optional[str], search: Optional[str], sort_by: str, rows: int) -> None:
    """Print dashboard stats and one page of recon vehicles."""
    tracker = ReconTracker.from_config(config)
    stats = tracker.get_dashboard_stats()
    for key, value in asdict(stats).items():
        click.echo(f"{key}: {value}")

    page = tracker.list_vehicles(search=search, store=store, status=status, sort_by=sort_by, limit=rows)
    click.echo(f"\n{page.total} vehicles match; showing {len(page.items)}")
    if page.items:
        df = pd.DataFrame(page.items)
        cols = [c for c in _PREVIEW_COLUMNS if c in df.columns]
        click.echo(df[cols].to_string(index=False))


if __name__ == "__main__":
    main()
