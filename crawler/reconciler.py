"""
Reconciliation of the "current" and "stored" listing files.

After a crawl pass, "current" holds everything the crawl found and "stored"
holds the dataset from previous passes. Reconciliation leaves:

- stored: previous stored records still present in current, plus the new ones
- current: only the records that were not already stored (this cycle's delta)

A profile missing from one pass is pruned from stored immediately.
"""

import csv
import logging
from pathlib import Path
from typing import Dict, List

from crawler.csv_store import (
    LISTING_SCHEMA,
    CsvSchema,
    FilePairLock,
    PathLike,
    Record,
    is_reconciled,
    mark_reconciled,
    read_records,
    write_records,
)
from crawler.exceptions import ReconciliationError
from crawler.models import ReconciliationReport

logger = logging.getLogger(__name__)


def _index(records: List[Record], schema: CsvSchema) -> Dict[str, Record]:
    # Later rows win for repeated keys; position stays that of the first
    by_key: Dict[str, Record] = {}
    for record in records:
        by_key[schema.key_of(record)] = record
    return by_key


class CsvReconciler:
    """Computes new/duplicate/obsolete partitions and rewrites both files."""

    def __init__(self, schema: CsvSchema = LISTING_SCHEMA):
        self.schema = schema

    def reconcile(
        self,
        current_path: PathLike,
        stored_path: PathLike,
        force: bool = False
    ) -> ReconciliationReport:
        """
        Reconcile the two files.

        Holds both file locks for the whole operation, so no appender can
        write either file meanwhile. Running it again on an unchanged,
        already reconciled current file is a no-op unless ``force`` is set.

        Args:
            current_path: File the latest crawl appended to
            stored_path: Accumulated dataset, created if missing
            force: Reconcile even if current was already reconciled

        Returns:
            ReconciliationReport with partition sizes and final totals

        Raises:
            ReconciliationError: If either file could not be read or written
        """
        current_path = Path(current_path)
        stored_path = Path(stored_path)

        with FilePairLock(current_path, stored_path):
            try:
                return self._reconcile(current_path, stored_path, force)
            except (OSError, csv.Error, UnicodeError) as e:
                logger.error("CSV reconciliation error: %s", e)
                raise ReconciliationError(f"CSV reconciliation failed: {e}") from e

    def _reconcile(self, current_path: Path, stored_path: Path, force: bool) -> ReconciliationReport:
        schema = self.schema

        if not current_path.exists():
            raise FileNotFoundError(f"{current_path.name} not found")

        if not force and stored_path.exists() and is_reconciled(current_path):
            total_current = len(read_records(current_path, schema))
            total_stored = len(read_records(stored_path, schema))
            logger.info(
                "%s unchanged since last reconciliation, nothing to do",
                current_path.name
            )
            return ReconciliationReport(
                new_records=0,
                duplicates_removed=0,
                obsolete_records=0,
                total_stored=total_stored,
                total_current=total_current
            )

        current_records = read_records(current_path, schema)
        logger.info("Read %d records from %s", len(current_records), current_path.name)

        if stored_path.exists():
            stored_records = read_records(stored_path, schema)
            logger.info("Read %d records from %s", len(stored_records), stored_path.name)
        else:
            stored_records = []
            logger.info("No %s yet, starting an empty stored set", stored_path.name)

        current_map = _index(current_records, schema)
        stored_map = _index(stored_records, schema)

        new_records = [r for key, r in current_map.items() if key not in stored_map]
        duplicate_keys = [key for key in current_map if key in stored_map]
        obsolete_keys = [key for key in stored_map if key not in current_map]

        logger.info(
            "Analysis: %d new, %d duplicates, %d obsolete",
            len(new_records), len(duplicate_keys), len(obsolete_keys)
        )

        kept_stored = [r for key, r in stored_map.items() if key in current_map]
        updated_stored = kept_stored + new_records

        # Stored before current: a failed second write must leave the full
        # crawl in current
        write_records(stored_path, updated_stored, schema)
        logger.info(
            "Updated %s: removed %d obsolete, added %d new records",
            stored_path.name, len(obsolete_keys), len(new_records)
        )

        write_records(current_path, new_records, schema)
        mark_reconciled(current_path)
        logger.info(
            "Updated %s: removed %d duplicates, kept %d new records",
            current_path.name, len(duplicate_keys), len(new_records)
        )

        return ReconciliationReport(
            new_records=len(new_records),
            duplicates_removed=len(duplicate_keys),
            obsolete_records=len(obsolete_keys),
            total_stored=len(updated_stored),
            total_current=len(new_records)
        )


def reconcile(
    current_path: PathLike,
    stored_path: PathLike,
    schema: CsvSchema = LISTING_SCHEMA,
    force: bool = False
) -> ReconciliationReport:
    """Reconcile a current/stored file pair. See CsvReconciler.reconcile."""
    return CsvReconciler(schema).reconcile(current_path, stored_path, force=force)
