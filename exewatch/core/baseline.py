"""
ExeWatch - Baseline persistence.

The baseline is a CSV file with one accepted fingerprint per path. This
module is its only writer: scans and diffs never touch it directly.
"""

import contextlib
import csv
import logging
import os
import tempfile
from collections.abc import Iterable, Iterator
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

from exewatch.core.models import ExecutableRecord, MergeResult

logger = logging.getLogger(__name__)

FIELDNAMES = ["Path", "Name", "PrimaryHash", "SecondaryHash", "Size", "Created", "Modified"]

_LEGACY_TIME_FORMATS = ("%m/%d/%Y %H:%M:%S", "%m/%d/%Y %I:%M:%S %p")


class Baseline:
    """Path-keyed set of accepted records with a derived hash index."""

    def __init__(
        self,
        records: Iterable[ExecutableRecord] = (),
        last_updated: Optional[datetime] = None,
    ) -> None:
        self._records: dict[str, ExecutableRecord] = {}
        for record in records:
            self._records[self.key(record.path)] = record
        self._by_hash: dict[str, ExecutableRecord] = {}
        for record in self._records.values():
            if record.primary_hash:
                self._by_hash.setdefault(record.primary_hash, record)
        self.last_updated = last_updated

    @staticmethod
    def key(path: str) -> str:
        return os.path.normcase(path)

    def get(self, path: str) -> Optional[ExecutableRecord]:
        return self._records.get(self.key(path))

    def find_by_hash(self, primary_hash: str) -> Optional[ExecutableRecord]:
        if not primary_hash:
            return None
        return self._by_hash.get(primary_hash)

    def records(self) -> list[ExecutableRecord]:
        """All records sorted by path."""
        return sorted(self._records.values(), key=lambda r: r.path)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and self.key(path) in self._records

    def __iter__(self) -> Iterator[ExecutableRecord]:
        return iter(self.records())

    def __len__(self) -> int:
        return len(self._records)

    def __bool__(self) -> bool:
        return bool(self._records)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    value = value.strip()
    parsed: Optional[datetime] = None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        for fmt in _LEGACY_TIME_FORMATS:
            try:
                parsed = datetime.strptime(value, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        logger.debug("Unparseable baseline timestamp: %r", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_size(value: Optional[str]) -> int:
    try:
        return int(value or 0)
    except ValueError:
        return 0


def _decode_current(row: dict[str, Any]) -> ExecutableRecord:
    path = (row.get("Path") or "").strip()
    return ExecutableRecord(
        path=path,
        name=(row.get("Name") or "").strip() or Path(path).name,
        size=_parse_size(row.get("Size")),
        primary_hash=(row.get("PrimaryHash") or "").strip().lower(),
        secondary_hash=(row.get("SecondaryHash") or "").strip().lower(),
        created=_parse_timestamp(row.get("Created")),
        modified=_parse_timestamp(row.get("Modified")),
    )


def _decode_single_hash(row: dict[str, Any]) -> ExecutableRecord:
    """Schema 1: one 'Hash' column that predates the two-hash layout."""
    upgraded = dict(row)
    upgraded["PrimaryHash"] = upgraded.pop("Hash", "")
    upgraded.setdefault("SecondaryHash", "")
    return _decode_current(upgraded)


_DECODERS: dict[int, Callable[[dict[str, Any]], ExecutableRecord]] = {
    1: _decode_single_hash,
    2: _decode_current,
}


def detect_schema_version(fieldnames: Optional[Iterable[str]]) -> int:
    """Return the baseline schema version implied by a CSV header."""
    names = {n.strip() for n in fieldnames or ()}
    if "PrimaryHash" in names:
        return 2
    if "Hash" in names:
        return 1
    raise ValueError("Baseline header has no hash column: %s" % sorted(names))


def _encode(record: ExecutableRecord) -> dict[str, Any]:
    return {
        "Path": record.path,
        "Name": record.name,
        "PrimaryHash": record.primary_hash,
        "SecondaryHash": record.secondary_hash,
        "Size": record.size,
        "Created": record.created.isoformat() if record.created else "",
        "Modified": record.modified.isoformat() if record.modified else "",
    }


class BaselineStore:
    """
    Durable baseline stored as CSV.

    Writes replace the whole file through a temporary file in the same
    directory, so readers never observe a half-written baseline.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def last_write_time(self) -> Optional[datetime]:
        """Last write time of the baseline file; None when it does not exist."""
        try:
            mtime = self.path.stat().st_mtime
        except OSError:
            return None
        return datetime.fromtimestamp(mtime, tz=timezone.utc)

    def load(self) -> Baseline:
        """Load the baseline. Missing or unreadable files give an empty baseline."""
        if not self.exists():
            logger.info("Baseline file not found: %s", self.path)
            return Baseline()
        try:
            with open(self.path, encoding="utf-8-sig", newline="") as f:
                lines = f.read().splitlines()
            # Tabular exporters may prepend a "#TYPE ..." line.
            if lines and lines[0].startswith("#TYPE"):
                lines = lines[1:]
            reader = csv.DictReader(lines)
            decode = _DECODERS[detect_schema_version(reader.fieldnames)]
            records = []
            for row in reader:
                record = decode(row)
                if not record.path:
                    logger.warning("Skipping baseline row without a path: %s", row)
                    continue
                records.append(record)
        except (OSError, csv.Error, ValueError) as e:
            logger.warning("Failed to load baseline %s, treating as empty: %s", self.path, e)
            return Baseline()
        return Baseline(records, last_updated=self.last_write_time())

    def replace_all(
        self,
        records: Iterable[ExecutableRecord],
        stamp: Optional[datetime] = None,
    ) -> Baseline:
        """Overwrite the baseline with exactly these records."""
        baseline = Baseline(records)
        self._write(baseline, stamp)
        logger.info("Baseline replaced: %s (%d entries)", self.path, len(baseline))
        return baseline

    def merge(
        self,
        records: Iterable[ExecutableRecord],
        stamp: Optional[datetime] = None,
    ) -> MergeResult:
        """
        Upsert records by path. Entries absent from the input are kept: an
        incremental scan only sees changed files, not the whole tree.
        """
        incoming = list(records)
        result = MergeResult()
        if not incoming:
            return result
        current = self.load()
        merged: dict[str, ExecutableRecord] = {Baseline.key(r.path): r for r in current}
        for record in incoming:
            key = Baseline.key(record.path)
            if key in merged:
                result.updated += 1
            else:
                result.added += 1
            merged[key] = record
        self._write(Baseline(merged.values()), stamp)
        logger.info(
            "Baseline merged: %s (%d added, %d updated)", self.path, result.added, result.updated
        )
        return result

    def _write(self, baseline: Baseline, stamp: Optional[datetime]) -> None:
        path = self.path.resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".baseline-", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                writer = csv.DictWriter(f, fieldnames=FIELDNAMES)
                writer.writeheader()
                for record in baseline:
                    writer.writerow(_encode(record))
            os.replace(tmp_name, path)
        except OSError as e:
            logger.error("Failed to save baseline %s: %s", path, e)
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise
        if stamp is not None:
            ts = stamp.timestamp()
            os.utime(path, (ts, ts))
