"""
In-process storage backend (``memory://``) for development and tests.

Same interface as the PostgreSQL repositories. All state lives in the
process and is lost on exit.
"""

import copy
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional

from models.activity import ActivityLogEntry
from models.consent import ConsentRecord

SEARCH_FIELDS = ("consent_id", "ip", "status", "domain")


class InMemoryConsentRepository:
    """Append-only list of consent records guarded by a lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: List[ConsentRecord] = []
        self._next_id = 1

    def insert(self, record: ConsentRecord) -> ConsentRecord:
        with self._lock:
            stored = record.model_copy(update={"id": self._next_id})
            self._next_id += 1
            self._records.append(stored)
        return stored

    def _snapshot(self) -> List[ConsentRecord]:
        with self._lock:
            return list(self._records)

    def find_by_consent_id(self, consent_id: str) -> List[ConsentRecord]:
        matches = [r for r in self._snapshot() if r.consent_id == consent_id]
        return sorted(matches, key=lambda r: (r.created_at, r.id))

    @staticmethod
    def _matches(record: ConsentRecord, search: str) -> bool:
        if not search:
            return True
        needle = search.lower()
        return any(needle in getattr(record, field).lower() for field in SEARCH_FIELDS)

    def search(
        self,
        search: str = "",
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[ConsentRecord]:
        matches = [r for r in self._snapshot() if self._matches(r, search)]
        matches.sort(key=lambda r: (r.created_at, r.id), reverse=True)
        if limit is None:
            return matches[offset:]
        return matches[offset:offset + limit]

    def count(self, search: str = "", since: Optional[datetime] = None) -> int:
        return sum(
            1 for r in self._snapshot()
            if self._matches(r, search) and (since is None or r.created_at >= since)
        )

    def count_by_status(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for record in self._snapshot():
            counts[record.status] = counts.get(record.status, 0) + 1
        return counts

    def count_accepted_by_category(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for record in self._snapshot():
            for name in record.accepted_categories():
                counts[name] = counts.get(name, 0) + 1
        return counts

    def delete_older_than(self, cutoff: datetime) -> int:
        with self._lock:
            kept = [r for r in self._records if r.created_at >= cutoff]
            deleted = len(self._records) - len(kept)
            self._records = kept
        return deleted


class InMemoryActivityLogRepository:

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: List[ActivityLogEntry] = []

    def append(self, message: str, created_at: datetime) -> ActivityLogEntry:
        with self._lock:
            entry = ActivityLogEntry(id=len(self._entries) + 1, message=message, created_at=created_at)
            self._entries.append(entry)
        return entry

    def recent(self, limit: int = 100) -> List[ActivityLogEntry]:
        with self._lock:
            entries = list(self._entries)
        entries.sort(key=lambda e: (e.created_at, e.id), reverse=True)
        return entries[:limit]


class InMemorySettingsRepository:
    """Values are deep-copied in and out so callers never share state."""

    def __init__(self):
        self._lock = threading.Lock()
        self._values: Dict[str, Any] = {}

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            if key not in self._values:
                return default
            return copy.deepcopy(self._values[key])

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._values[key] = copy.deepcopy(value)
