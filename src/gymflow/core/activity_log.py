"""Bounded activity log for gymflow.

Newest entries first; once the capacity is reached each new entry evicts the
oldest one. Entries are immutable.
"""

from __future__ import annotations

import uuid
from collections import deque
from datetime import datetime
from threading import Lock
from typing import Iterable

from gymflow.models import AutomationLogEntry, LogEntryType

DEFAULT_CAPACITY = 100


class ActivityLog:
    """Append-only, capacity-bounded audit trail."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity <= 0:
            raise ValueError(f"Activity log capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._entries: deque[AutomationLogEntry] = deque(maxlen=capacity)
        self._lock = Lock()

    @property
    def capacity(self) -> int:
        """Maximum number of retained entries."""
        return self._capacity

    def append(self, entry: AutomationLogEntry) -> None:
        """Prepend an entry, evicting the oldest when full."""
        with self._lock:
            self._entries.appendleft(entry)

    def record(
        self,
        plan_id: str,
        plan_name: str,
        message: str,
        type: LogEntryType = LogEntryType.INFO,
        timestamp: datetime | None = None,
    ) -> AutomationLogEntry:
        """Build and append a new entry."""
        entry = AutomationLogEntry(
            id=uuid.uuid4().hex,
            plan_id=plan_id,
            plan_name=plan_name,
            timestamp=timestamp or datetime.now(),
            message=message,
            type=type,
        )
        self.append(entry)
        return entry

    def list(self, limit: int | None = None) -> list[AutomationLogEntry]:
        """Get entries newest first, optionally only the first ``limit``."""
        with self._lock:
            entries = list(self._entries)
        if limit is not None:
            entries = entries[: max(limit, 0)]
        return entries

    def count_since(self, when: datetime) -> int:
        """Count entries at or after ``when``."""
        with self._lock:
            entries = list(self._entries)

        count = 0
        for entry in entries:
            timestamp = entry.timestamp
            if timestamp.tzinfo is None and when.tzinfo is not None:
                timestamp = timestamp.replace(tzinfo=when.tzinfo)
            elif timestamp.tzinfo is not None and when.tzinfo is None:
                timestamp = timestamp.replace(tzinfo=None)
            if timestamp >= when:
                count += 1
        return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def restore(self, entries: Iterable[AutomationLogEntry]) -> None:
        """Replace the log from a newest-first snapshot, keeping the newest entries."""
        kept = list(entries)[: self._capacity]
        with self._lock:
            self._entries = deque(kept, maxlen=self._capacity)
