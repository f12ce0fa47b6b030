"""Write a small set of sample DMS exports into the intake directory and ingest them."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List

import click

from recontrack.api import ReconTracker
from recontrack.utils.logger import get_logger

logger = get_logger(__name__)

SAMPLE_FILES: Dict[str, str] = {
    "inventory_sample.csv": (
        "vin,stockno,stocktype,inventorycompany,entrydate,year,make,model,mileage,lotlocation,solddate\n"
        "VIN001,STK001,USED,1,2023-10-01,2020,Toyota,Camry,45000,Lot A,\n"
        "VIN002,STK002,USED,2,2023-10-05,2021,Honda,Civic,30000,Lot B,\n"
        "VIN003,STK003,USED,1,2023-10-10,2019,Ford,F-150,60000,Lot A,\n"
        "VIN004,STK004,USED,3,2023-10-15,2022,Tesla,Model 3,15000,Lot C,\n"
        "VIN005,STK005,USED,2,2023-10-20,2018,Chevrolet,Malibu,50000,Lot B,2023-11-01\n"
        "VIN006,STK006,NEW,1,2023-10-20,2024,Toyota,RAV4,12,Lot D,\n"
    ),
    "servicesalesclosed_sample.csv": (
        "ronumber,vin,opendate,closedate,rostatuscode\n"
        "RO1001,VIN001,2023-10-02,2023-10-04,C\n"
        "RO1002,VIN001,2023-10-06,2023-10-08,C\n"
        "RO1003,VIN002,2023-10-06,2023-10-09,C\n"
        "RO1005,VIN005,2023-10-21,2023-10-22,C\n"
    ),
    "servicesalesdetailsclosed_sample.csv": (
        "ronumber,opcode,opcodedescription,labortype,laborsale,laborcost,partssale,partscost\n"
        "RO1001,LOF,Lube Oil Filter,C,49.95,18.00,22.00,11.50\n"
        "RO1002,UCI,Used Vehicle Recon,I,450.00,210.00,380.00,190.00\n"
        "RO1002,DET,Detail,I,150.00,75.00,,\n"
        "RO1003,UCI,Used Vehicle Recon,I,300.00,140.00,120.00,60.00\n"
        "RO1005,LOF,Lube Oil Filter,C,49.95,18.00,22.00,11.50\n"
    ),
    "servicesalesopen_sample.csv": (
        "ronumber,vin,opendate,rostatuscode\n"
        "RO1004,VIN004,2023-10-16,O\n"
    ),
    "servicesalesdetailsopen_sample.csv": (
        "ronumber,opcode,opcodedescription,labortype,laborcost,partscost\n"
        "RO1004,UCI,Used Vehicle Recon,I,95.00,\n"
    ),
}


def write_samples(incoming_dir: Path) -> List[Path]:
    incoming_dir = Path(incoming_dir)
    incoming_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for name, content in SAMPLE_FILES.items():
        path = incoming_dir / name
        path.write_text(content, encoding="utf-8")
        written.append(path)
    return written


@click.command()
@click.option("--config", default=str((Path(__file__).parents[1] / "config.yaml").resolve()))
@click.option("--ingest/--no-ingest", default=True, help="Run an ingest pass after writing the samples")
def main(config: str, ingest: bool) -> None:
    """Seed the intake directory with sample exports."""
    tracker = ReconTracker.from_config(config)
    written = write_samples(tracker.cfg.paths.incoming)
    logger.info("Wrote %d sample files into %s", len(written), tracker.cfg.paths.incoming)
    if not ingest:
        return
    summary = tracker.ingest()
    click.echo(f"Seeded: {len(summary.processed)} files loaded, {summary.fact_count} recon facts")


if __name__ == "__main__":
    main()
