"""UTC clock shared by ingest, storage and fact rebuilds."""

from __future__ import annotations

import datetime as dt


def utc_now() -> dt.datetime:
    """Naive UTC timestamp; DateTime columns are stored without zone."""
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


def utc_today() -> dt.date:
    """Processing date for missing entry dates and in-progress recon days."""
    return utc_now().date()
