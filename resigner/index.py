"""
resigner/index.py — Analysis Index

Process-wide, in-memory map of identifier -> AnalysisRecord. Lookups run
concurrently under a shared lock; inserts take the lock exclusively. The
index is a cache in front of the Artifact Store and is lost on restart.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Dict, List, Optional

from models.analysis import AnalysisRecord
from resigner.errors import DuplicateIdentifier

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """Many readers or one writer. Waiting writers block new readers."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read_locked(self):
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self):
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class AnalysisIndex:
    """Concurrency-safe identifier -> AnalysisRecord mapping."""

    def __init__(self):
        self._lock = ReadWriteLock()
        # dicts keep insertion order; find_by_origin relies on it
        self._records: Dict[str, AnalysisRecord] = {}

    def init_app(self, app):
        app.extensions["analysis_index"] = self

    def find_by_origin(self, url: str) -> Optional[AnalysisRecord]:
        """Return the first record ever stored for url, if any."""
        if not url:
            return None
        with self._lock.read_locked():
            for record in self._records.values():
                if record.origin == url:
                    return record
        return None

    def find_by_identifier(self, identifier: str) -> Optional[AnalysisRecord]:
        with self._lock.read_locked():
            return self._records.get(identifier)

    def insert(self, record: AnalysisRecord) -> None:
        with self._lock.write_locked():
            if record.identifier in self._records:
                raise DuplicateIdentifier(
                    f"Identifier {record.identifier} already present in the analysis index"
                )
            self._records[record.identifier] = record
        logger.info("Indexed %r", record)

    def discard(self, identifier: str) -> Optional[AnalysisRecord]:
        """Drop an entry; used only when rolling back a failed analysis."""
        with self._lock.write_locked():
            return self._records.pop(identifier, None)

    def records(self) -> List[AnalysisRecord]:
        with self._lock.read_locked():
            return list(self._records.values())

    def __len__(self):
        with self._lock.read_locked():
            return len(self._records)
