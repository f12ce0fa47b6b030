"""
Load one classified DMS export into the raw tables.

The CSV is read in fixed-size chunks with every value kept as a string; the
normalizer decides what each cell means. Entity keys are de-duplicated over
the whole file (last occurrence wins) before anything is written, so the
storage call for a file is a single transaction.

The encoding is picked from a bounded prefix of the file. When a later chunk
fails to decode, the file is read again with the next candidate encoding;
nothing has been written at that point.
"""

from __future__ import annotations

import codecs
import datetime as dt
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence

import pandas as pd

from recontrack.db.base import ReconStorage
from recontrack.errors import ContractBreachError, FileParseError, IngestTimeoutError
from recontrack.etl.classify import FileKind
from recontrack.etl.contracts import ContractViolation, check_no_duplicate_keys, check_required_fields
from recontrack.etl.normalize import NormalizationStats, Record, RecordNormalizer
from recontrack.utils.config import Config
from recontrack.utils.logger import get_logger
from recontrack.utils.stores import StoreDirectory

logger = get_logger(__name__)

# Bytes read to pick an encoding; the rest is checked as chunks decode
SNIFF_BYTES = 64 * 1024


@dataclass
class LoadResult:
    file_name: str
    kind: FileKind
    rows_read: int
    rows_written: int
    stats: NormalizationStats
    violations: List[ContractViolation] = field(default_factory=list)


def detect_encoding(path: Path, encodings: Sequence[str], sniff_bytes: int = SNIFF_BYTES) -> str:
    """Return the first encoding that decodes the first ``sniff_bytes`` of the file."""
    with open(path, "rb") as fh:
        head = fh.read(sniff_bytes)
    # A prefix may end inside a multi-byte character; only a short file is final
    final = len(head) < sniff_bytes
    last_err: Exception | None = None
    for enc in encodings:
        try:
            codecs.getincrementaldecoder(enc)().decode(head, final=final)
            return enc
        except UnicodeDecodeError as e:
            last_err = e
            continue
    raise FileParseError(f"Could not decode {Path(path).name} with any of {list(encodings)}", path, last_err)


def dedupe_last_wins(records: List[Record]) -> List[Record]:
    """Keep the last record per key; order follows each key's first appearance."""
    latest: Dict[str, Record] = {}
    for record in records:
        latest[record.key] = record
    return list(latest.values())


@dataclass
class _ParsedFile:
    records: List[Record]
    seen_ro_numbers: Dict[str, None]
    stats: NormalizationStats
    violations: List[ContractViolation]
    rows_read: int


class BatchLoader:
    def __init__(
        self,
        storage: ReconStorage,
        stores: StoreDirectory,
        batch_size: int = 500,
        encodings: Optional[Sequence[str]] = None,
        max_parse_seconds: Optional[float] = None,
        fail_on_contract_breach: bool = False,
        eligible_stock_type: str = "USED",
        overwrite_classification: bool = False,
        sniff_bytes: int = SNIFF_BYTES,
    ):
        self.storage = storage
        self.stores = stores
        self.batch_size = max(1, int(batch_size))
        self.encodings = list(encodings or ["utf-8-sig", "utf-8", "cp1252", "latin-1"])
        self.max_parse_seconds = max_parse_seconds
        self.fail_on_contract_breach = fail_on_contract_breach
        self.eligible_stock_type = eligible_stock_type
        self.overwrite_classification = overwrite_classification
        self.sniff_bytes = max(1, int(sniff_bytes))

    @classmethod
    def from_config(cls, storage: ReconStorage, cfg: Config) -> "BatchLoader":
        return cls(
            storage,
            StoreDirectory(cfg.stores),
            batch_size=cfg.ingest.batch_size,
            encodings=cfg.ingest.encodings,
            max_parse_seconds=cfg.ingest.max_parse_seconds,
            fail_on_contract_breach=cfg.ingest.fail_on_contract_breach,
            eligible_stock_type=cfg.recon.eligible_stock_type,
            overwrite_classification=cfg.recon.overwrite_classification_on_conflict,
        )

    def _iter_chunks(self, path: Path, encoding: str) -> Iterator[pd.DataFrame]:
        """Yield string-typed chunks; decode errors propagate so the caller can retry."""
        try:
            reader = pd.read_csv(
                path,
                dtype=str,
                keep_default_na=False,
                encoding=encoding,
                chunksize=self.batch_size,
                skipinitialspace=True,
            )
        except pd.errors.EmptyDataError:
            return
        except UnicodeDecodeError:
            raise
        except (pd.errors.ParserError, ValueError) as e:
            raise FileParseError(f"Failed to parse {path.name}", path, e) from e
        with reader:
            while True:
                try:
                    chunk = next(reader)
                except StopIteration:
                    return
                except pd.errors.EmptyDataError:
                    return
                except UnicodeDecodeError:
                    raise
                except (pd.errors.ParserError, ValueError) as e:
                    raise FileParseError(f"Failed to parse {path.name}", path, e) from e
                yield chunk

    def _check_header(self, columns: List[str], path: Path, kind: FileKind) -> List[ContractViolation]:
        violations = check_required_fields(columns, path.name, kind)
        for v in violations:
            logger.warning("Contract: %s", v.details)
        if violations and self.fail_on_contract_breach:
            raise ContractBreachError(path, violations)
        return violations

    def _parse(self, path: Path, kind: FileKind, encoding: str, normalizer: RecordNormalizer, t0: float) -> _ParsedFile:
        parsed = _ParsedFile(records=[], seen_ro_numbers={}, stats=NormalizationStats(), violations=[], rows_read=0)
        header_checked = False
        for chunk in self._iter_chunks(path, encoding):
            if not header_checked:
                parsed.violations.extend(self._check_header(list(chunk.columns), path, kind))
                header_checked = True
            parsed.rows_read += len(chunk)
            parsed.records.extend(
                normalizer.normalize_rows(kind, chunk.to_dict("records"), parsed.stats, parsed.seen_ro_numbers)
            )
            if self.max_parse_seconds is not None:
                elapsed = time.monotonic() - t0
                if elapsed > self.max_parse_seconds:
                    raise IngestTimeoutError(path, elapsed, self.max_parse_seconds)
        return parsed

    def load_file(self, path: Path | str, kind: FileKind, today: Optional[dt.date] = None) -> LoadResult:
        path = Path(path)
        detected = detect_encoding(path, self.encodings, self.sniff_bytes)
        candidates = self.encodings[self.encodings.index(detected):]
        normalizer = RecordNormalizer(self.stores, self.eligible_stock_type, today=today)

        t0 = time.monotonic()
        parsed: Optional[_ParsedFile] = None
        last_err: Exception | None = None
        for encoding in candidates:
            try:
                parsed = self._parse(path, kind, encoding, normalizer, t0)
                break
            except UnicodeDecodeError as e:
                logger.warning("%s: %s failed past the first %d bytes (%s)", path.name, encoding, self.sniff_bytes, e.reason)
                last_err = e
        if parsed is None:
            raise FileParseError(f"Could not decode {path.name} with any of {candidates}", path, last_err)

        records = parsed.records
        violations = parsed.violations
        if kind.is_details:
            rows_written = self.storage.replace_repair_order_lines(list(parsed.seen_ro_numbers), records)
        else:
            key_field = "vin" if kind is FileKind.INVENTORY else "ro_number"
            dup = check_no_duplicate_keys([r.key for r in records], path.name, key_field)
            for v in dup:
                logger.info("%s: %s", path.name, v.details)
            violations.extend(dup)
            unique = dedupe_last_wins(records)
            if kind is FileKind.INVENTORY:
                rows_written = self.storage.upsert_inventory(unique, overwrite_classification=self.overwrite_classification)
            else:
                rows_written = self.storage.upsert_repair_orders(unique)

        stats = parsed.stats
        if stats.invalid_store_values:
            logger.warning("%s: %d rows carried an unknown store code", path.name, stats.invalid_store_values)
        logger.info(
            "Loaded %s as %s (%s): read=%d kept=%d dropped=%d written=%d",
            path.name, kind.value, encoding, parsed.rows_read, stats.rows_kept, stats.rows_dropped, rows_written,
        )
        return LoadResult(
            file_name=path.name,
            kind=kind,
            rows_read=parsed.rows_read,
            rows_written=rows_written,
            stats=stats,
            violations=violations,
        )
