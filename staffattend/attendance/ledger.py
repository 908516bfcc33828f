"""In-process attendance record store keyed by (identity, day), with CSV export."""

from __future__ import annotations

import fcntl
import logging
import os
import threading
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

import pandas as pd

from staffattend.io_utils import ensure_dir
from staffattend.types import AttendanceRecord, DuplicateRecordError

LOGGER = logging.getLogger("staffattend.attendance.ledger")

LEDGER_COLUMNS = ["identity_id", "day", "check_in", "check_out", "status", "method"]

Key = Tuple[str, date]


def _as_day(value: Union[date, datetime]) -> date:
    return value.date() if isinstance(value, datetime) else value


class AttendanceLedger:
    """Record store with at-most-one-create per (identity, day).

    Writes go through a lock so two concurrent check-ins for the same person
    cannot both create a record, and a closed day cannot be closed again.
    """

    def __init__(self, records: Iterable[AttendanceRecord] = ()) -> None:
        self._lock = threading.Lock()
        self._records: Dict[Key, AttendanceRecord] = {}
        for record in records:
            self._records[(record.identity_id, record.day)] = record

    def __len__(self) -> int:
        return len(self._records)

    def lookup(self, identity_id: str, day: Union[date, datetime]) -> Optional[AttendanceRecord]:
        with self._lock:
            return self._records.get((identity_id, _as_day(day)))

    def create(self, record: AttendanceRecord) -> AttendanceRecord:
        key = (record.identity_id, record.day)
        with self._lock:
            if key in self._records:
                raise DuplicateRecordError(record.identity_id, record.day)
            self._records[key] = record
        LOGGER.debug("Created record %s", key)
        return record

    def save(self, record: AttendanceRecord) -> AttendanceRecord:
        """Persist a check-out on an existing open record."""
        key = (record.identity_id, record.day)
        with self._lock:
            current = self._records.get(key)
            if current is None:
                raise KeyError(f"No attendance record for {record.identity_id} on {record.day.isoformat()}")
            if current.check_out is not None:
                raise DuplicateRecordError(record.identity_id, record.day)
            self._records[key] = record
        LOGGER.debug("Updated record %s", key)
        return record

    def records_for(self, day: Union[date, datetime]) -> List[AttendanceRecord]:
        target = _as_day(day)
        with self._lock:
            records = [r for (_, d), r in self._records.items() if d == target]
        return sorted(records, key=lambda r: r.check_in)

    def remove_identity(self, identity_id: str) -> int:
        """Drop every record of one identity (used when staff are deleted)."""
        with self._lock:
            keys = [key for key in self._records if key[0] == identity_id]
            for key in keys:
                del self._records[key]
        return len(keys)

    def to_frame(self) -> pd.DataFrame:
        with self._lock:
            records = list(self._records.values())
        rows = [
            {
                "identity_id": r.identity_id,
                "day": r.day,
                "check_in": r.check_in,
                "check_out": r.check_out,
                "status": r.status,
                "method": r.method,
            }
            for r in sorted(records, key=lambda r: (r.day, r.check_in))
        ]
        return pd.DataFrame(rows, columns=LEDGER_COLUMNS)

    def export_csv(self, path: Path) -> Path:
        ensure_dir(path.parent)
        df = self.to_frame()
        tmp_path = path.with_name(path.name + ".tmp")
        df.to_csv(tmp_path, index=False)
        os.replace(tmp_path, path)
        LOGGER.info("Exported %d attendance rows to %s", len(df), path)
        return path


def load_ledger_csv(path: Path) -> AttendanceLedger:
    """Rebuild a ledger from a CSV written by :meth:`AttendanceLedger.export_csv`."""
    if not path.exists():
        LOGGER.info("Ledger %s not found; starting empty", path)
        return AttendanceLedger()
    df = pd.read_csv(path, dtype={"identity_id": str})
    records = []
    for row in df.itertuples(index=False):
        check_out = None if pd.isna(row.check_out) else pd.Timestamp(row.check_out).to_pydatetime()
        records.append(
            AttendanceRecord(
                identity_id=row.identity_id,
                day=pd.Timestamp(row.day).date(),
                check_in=pd.Timestamp(row.check_in).to_pydatetime(),
                check_out=check_out,
                status=row.status,
                method=row.method,
            )
        )
    LOGGER.info("Loaded %d attendance rows from %s", len(records), path)
    return AttendanceLedger(records)


@contextmanager
def ledger_file_lock(path: Path) -> Iterator[Path]:
    """Hold an exclusive lock on ``path`` for a whole load, log, export cycle.

    Kiosk processes sharing one CSV must load and export inside this block,
    otherwise the last writer drops the other's records.
    """
    ensure_dir(path.parent)
    lock_path = path.with_name(path.name + ".lock")
    with lock_path.open("a") as fh:
        fcntl.flock(fh.fileno(), fcntl.LOCK_EX)
        LOGGER.debug("Acquired ledger lock %s", lock_path)
        try:
            yield path
        finally:
            fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
