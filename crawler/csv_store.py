"""
CSV storage for listing and profile records.

Both files are append-only during a crawl and keyed by profile URL.
Rows are fully quoted with embedded quotes doubled, one record per line.
"""

import csv
import enum
import hashlib
import io
import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple, Union

from crawler.models import PROFILE_FIELDS, ListingRecord, ProfileRecord

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
Record = Union[ListingRecord, ProfileRecord]


@dataclass(frozen=True)
class CsvSchema:
    """Column layout of one CSV file."""
    header: Tuple[str, ...]
    fields: Tuple[str, ...]
    key_index: int
    factory: Callable[..., Record]

    @property
    def header_line(self) -> str:
        return ",".join(self.header) + "\n"

    def to_row(self, record: Record) -> List[str]:
        return [str(getattr(record, name) or "") for name in self.fields]

    def from_row(self, row: List[str]) -> Optional[Record]:
        """Build a record from a parsed row, None if the key column is missing."""
        if len(row) <= self.key_index or not row[self.key_index].strip():
            return None
        values = {name: (row[i] if i < len(row) else "") for i, name in enumerate(self.fields)}
        values[self.fields[self.key_index]] = row[self.key_index].strip()
        return self.factory(**values)

    def key_of(self, record: Record) -> str:
        return getattr(record, self.fields[self.key_index])


LISTING_SCHEMA = CsvSchema(
    header=("Name", "Location", "Profile URL"),
    fields=("name", "location", "profile_url"),
    key_index=2,
    factory=ListingRecord,
)

DETAIL_SCHEMA = CsvSchema(
    header=(
        "URL", "Canton", "City", "Nickname", "Category", "Phone number",
        "Status (active or inactive)", "Certified or not", "About",
        "Number of visits", "Services provided", "Location", "Description",
        "Link (if any in the ad)", "Number of likes", "Number of followers",
        "Number of reviews",
    ),
    fields=tuple(PROFILE_FIELDS),
    key_index=0,
    factory=ProfileRecord,
)


# One lock per resolved file path, shared by every appender and reconciler
_file_locks: Dict[str, threading.RLock] = {}
_file_locks_guard = threading.Lock()


def lock_for(path: PathLike) -> threading.RLock:
    """Get the process-wide lock guarding a CSV file."""
    key = str(Path(path).resolve())
    with _file_locks_guard:
        lock = _file_locks.get(key)
        if lock is None:
            lock = threading.RLock()
            _file_locks[key] = lock
        return lock


class FilePairLock:
    """Exclusive hold on a current/stored file pair, acquired in a fixed order."""

    def __init__(self, first: PathLike, second: PathLike):
        paths = sorted({str(Path(first).resolve()), str(Path(second).resolve())})
        self._locks = [lock_for(p) for p in paths]

    def __enter__(self):
        for lock in self._locks:
            lock.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        for lock in reversed(self._locks):
            lock.release()
        return False


def format_row(values: Iterable[str]) -> str:
    buffer = io.StringIO()
    csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n").writerow(list(values))
    return buffer.getvalue()


def read_rows(path: PathLike) -> List[List[str]]:
    """Read all data rows (header skipped). Missing file reads as empty."""
    path = Path(path)
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", newline="") as f:
        reader = csv.reader(f)
        next(reader, None)
        return [row for row in reader if any(cell.strip() for cell in row)]


def read_records(path: PathLike, schema: CsvSchema) -> List[Record]:
    """Read every well-formed record; rows without a key are skipped."""
    records = []
    skipped = 0
    for row in read_rows(path):
        record = schema.from_row(row)
        if record is None:
            skipped += 1
            continue
        records.append(record)
    if skipped:
        logger.warning("Skipped %d malformed rows in %s", skipped, Path(path).name)
    return records


def write_records(path: PathLike, records: Iterable[Record], schema: CsvSchema):
    """
    Replace a file with header plus records.

    Writes to a temporary sibling and renames it over the target, so readers
    see either the old or the new file. I/O errors propagate.
    """
    path = Path(path)
    tmp_path = path.with_name(f".{path.name}.tmp")
    try:
        with tmp_path.open("w", encoding="utf-8", newline="") as f:
            f.write(schema.header_line)
            for record in records:
                f.write(format_row(schema.to_row(record)))
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


def count_rows(path: PathLike) -> int:
    """Number of data rows in a CSV file, 0 if missing or unreadable."""
    try:
        return len(read_rows(path))
    except (OSError, csv.Error, UnicodeError) as e:
        logger.error("Error counting rows in %s: %s", path, e)
        return 0


# Reconciliation marker: records that a current file has not changed since
# it was last reconciled. Any write through this module removes it.

def _marker_path(path: PathLike) -> Path:
    path = Path(path)
    return path.with_name(f".{path.name}.reconciled")


def _digest(path: Path) -> str:
    sha = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            sha.update(chunk)
    return sha.hexdigest()


def mark_reconciled(path: PathLike):
    path = Path(path)
    _marker_path(path).write_text(_digest(path), encoding="utf-8")


def clear_reconciled(path: PathLike):
    marker = _marker_path(path)
    if marker.exists():
        marker.unlink()


def is_reconciled(path: PathLike) -> bool:
    """True if the file is byte-identical to what the last reconciliation wrote."""
    path = Path(path)
    marker = _marker_path(path)
    if not path.exists() or not marker.exists():
        return False
    return marker.read_text(encoding="utf-8").strip() == _digest(path)


class AppendResult(enum.Enum):
    """Outcome of one append."""
    WRITTEN = "written"
    DUPLICATE = "duplicate"
    ERROR = "error"

    @property
    def written(self) -> bool:
        return self is AppendResult.WRITTEN


class ThreadSafeCsvAppender:
    """
    Appends records to one CSV file from many worker threads.

    Each append re-reads the file to collect existing keys, so cost grows
    with file size (quadratic over a crawl). That is fine for a few
    thousand rows; a cached key set would be needed beyond that.
    """

    def __init__(self, path: PathLike, schema: CsvSchema):
        self.path = Path(path)
        self.schema = schema
        self._lock = lock_for(self.path)

    def clear(self):
        """Truncate the file to just the header row."""
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(self.schema.header_line, encoding="utf-8")
            clear_reconciled(self.path)
            logger.info("Created new %s with header", self.path.name)

    def existing_keys(self) -> Set[str]:
        keys = set()
        for row in read_rows(self.path):
            if len(row) > self.schema.key_index:
                key = row[self.schema.key_index].strip()
                if key:
                    keys.add(key)
        return keys

    def count(self) -> int:
        with self._lock:
            return count_rows(self.path)

    def append(self, record: Record) -> AppendResult:
        """
        Append one record unless its key is already in the file.

        Returns:
            WRITTEN, DUPLICATE, or ERROR if the file could not be read or written
        """
        written, _, error = self._append([record])
        if error:
            return AppendResult.ERROR
        return AppendResult.WRITTEN if written else AppendResult.DUPLICATE

    def append_many(self, records: List[Record]) -> Tuple[int, int]:
        """
        Append a batch under one lock hold, skipping known and repeated keys.

        Returns:
            Tuple of (written, duplicates); an I/O error counts as nothing written
        """
        written, duplicates, _ = self._append(records)
        return written, duplicates

    def _append(self, records: List[Record]) -> Tuple[int, int, bool]:
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                if not self.path.exists() or self.path.stat().st_size == 0:
                    self.path.write_text(self.schema.header_line, encoding="utf-8")
                    logger.debug("CSV header written to %s", self.path.name)

                seen = self.existing_keys()
                lines = []
                duplicates = 0
                for record in records:
                    key = self.schema.key_of(record)
                    if key in seen:
                        duplicates += 1
                        logger.debug("Skipping duplicate URL: %s", key)
                        continue
                    seen.add(key)
                    lines.append(format_row(self.schema.to_row(record)))

                if lines:
                    with self.path.open("a", encoding="utf-8", newline="") as f:
                        f.write("".join(lines))
                    clear_reconciled(self.path)
                return len(lines), duplicates, False
            except (OSError, csv.Error, UnicodeError) as e:
                logger.error("Error writing to %s: %s", self.path.name, e)
                return 0, 0, True
