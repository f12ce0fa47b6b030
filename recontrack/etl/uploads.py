from __future__ import annotations

import shutil
from pathlib import Path, PureWindowsPath
from typing import Iterable, List, Optional, Sequence

from recontrack.utils.logger import get_logger

logger = get_logger(__name__)


def safe_upload_name(name: str) -> str:
    """Base name of an uploaded file, with any directory part (POSIX or Windows) removed."""
    base = PureWindowsPath(str(name)).name
    base = Path(base).name
    if base in ("", ".", ".."):
        raise ValueError(f"Invalid upload file name: {name!r}")
    return base


def stage_uploads(
    files: Iterable[Path | str],
    incoming_dir: Path | str,
    names: Optional[Sequence[str]] = None,
) -> List[Path]:
    """Copy uploaded files into the intake directory under their original names.

    The name is the only thing the classifier sees, so it is kept as-is apart
    from directory components. An existing intake file with the same name is
    overwritten. ``names`` carries the client-side file names when the uploads
    were spooled to temporary paths.
    """
    sources = [Path(f) for f in files]
    if not sources:
        raise ValueError("No files uploaded")
    if names is not None and len(names) != len(sources):
        raise ValueError("names must match the uploaded files one to one")
    dest_dir = Path(incoming_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)

    staged: List[Path] = []
    for i, src in enumerate(sources):
        if not src.is_file():
            raise FileNotFoundError(f"Uploaded file not found: {src}")
        dest = dest_dir / safe_upload_name(names[i] if names is not None else src.name)
        shutil.copy2(src, dest)
        staged.append(dest)
    logger.info("Staged %d uploaded files into %s", len(staged), dest_dir)
    return staged
