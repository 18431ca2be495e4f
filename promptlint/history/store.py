"""
PromptLint - History Store
Append-only analysis log: abstract interface, JSON Lines file and in-memory implementations.
"""

import os
import json
import time
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List

from ..models.record import AnalysisRecord


logger = logging.getLogger(__name__)


class HistoryStore(ABC):
    """
    Append-only log of AnalysisRecord.

    Records are immutable once appended; nothing here updates or deletes.
    """

    def __init__(self):
        self._id_lock = threading.Lock()
        self._last_id = 0

    @abstractmethod
    def append(self, record: AnalysisRecord) -> None:
        """Persist one record."""
        pass

    @abstractmethod
    def read_all(self) -> List[AnalysisRecord]:
        """Snapshot of all records, ascending by timestamp."""
        pass

    def new_id(self) -> int:
        """Timestamp-derived id (microseconds), strictly increasing per store."""
        with self._id_lock:
            candidate = time.time_ns() // 1000
            self._last_id = max(candidate, self._last_id + 1)
            return self._last_id


class InMemoryHistoryStore(HistoryStore):
    """Store kept in a list. Used by tests and when persistence is disabled."""

    def __init__(self, records: List[AnalysisRecord] = None):
        super().__init__()
        self._lock = threading.Lock()
        self._records: List[AnalysisRecord] = list(records or [])

    def append(self, record: AnalysisRecord) -> None:
        with self._lock:
            self._records.append(record)

    def read_all(self) -> List[AnalysisRecord]:
        with self._lock:
            snapshot = list(self._records)
        return sorted(snapshot, key=lambda r: r.timestamp)


class JsonlHistoryStore(HistoryStore):
    """
    Store backed by a JSON Lines file, one record per line.

    Appends are serialized with a lock; reads see whatever complete lines
    exist at call time. Corrupt lines are skipped with a warning.
    """

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)
        self._lock = threading.Lock()
        self.path.parent.mkdir(parents=True, exist_ok=True)

        existing = self._read_lines()
        if existing:
            self._last_id = max(r.id for r in existing)

    def append(self, record: AnalysisRecord) -> None:
        line = json.dumps(record.to_dict(), ensure_ascii=False)
        with self._lock:
            # A torn last line must not swallow the new record
            prefix = "\n" if self._ends_mid_line() else ""
            with open(self.path, 'a', encoding='utf-8') as f:
                f.write(prefix + line + "\n")

    def _ends_mid_line(self) -> bool:
        if not self.path.exists() or self.path.stat().st_size == 0:
            return False
        with open(self.path, 'rb') as f:
            f.seek(-1, os.SEEK_END)
            return f.read(1) != b"\n"

    def read_all(self) -> List[AnalysisRecord]:
        return sorted(self._read_lines(), key=lambda r: r.timestamp)

    def _read_lines(self) -> List[AnalysisRecord]:
        if not self.path.exists():
            return []

        records = []
        with open(self.path, 'rb') as f:
            for line_no, raw in enumerate(f, start=1):
                raw = raw.strip()
                if not raw:
                    continue
                try:
                    records.append(AnalysisRecord.from_dict(json.loads(raw.decode('utf-8'))))
                except (ValueError, KeyError, TypeError) as e:
                    logger.warning("Skipping corrupt history line %d in %s: %s", line_no, self.path, e)
        return records
