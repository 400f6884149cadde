"""Pending suggestion store for gymflow.

Holds the suggestions waiting for the user. A candidate is rejected while a
pending suggestion with the same dedup key exists:
- ordinary plans: one pending suggestion per ``plan_id``
- system checks: one pending suggestion per exact ``title``
"""

from __future__ import annotations

import uuid
from datetime import datetime
from threading import Lock
from typing import Iterable

from loguru import logger

from gymflow.models import DedupMode, PendingSuggestion, SuggestionCandidate


class SuggestionStore:
    """Newest-first, thread-safe store of pending suggestions."""

    def __init__(self):
        self._items: list[PendingSuggestion] = []
        self._lock = Lock()

    def _matches(self, suggestion: PendingSuggestion, key: str, mode: DedupMode) -> bool:
        if mode == DedupMode.TITLE:
            return suggestion.title == key
        return suggestion.plan_id == key

    def has_key(self, key: str, mode: DedupMode = DedupMode.PLAN_ID) -> bool:
        """Check if a pending suggestion already uses a dedup key."""
        with self._lock:
            return any(self._matches(s, key, mode) for s in self._items)

    def add(
        self,
        candidate: SuggestionCandidate,
        now: datetime | None = None,
    ) -> PendingSuggestion | None:
        """Insert a candidate unless it duplicates a pending suggestion.

        Args:
            candidate: The suggestion to insert
            now: Creation time (default: now)

        Returns:
            The inserted suggestion, or None if it was a duplicate.
        """
        now = now or datetime.now()
        key = candidate.dedup_key

        with self._lock:
            if any(self._matches(s, key, candidate.dedup_mode) for s in self._items):
                logger.debug(f"Suggestion for '{key}' already pending, skipped")
                return None

            suggestion = PendingSuggestion.from_candidate(candidate, uuid.uuid4().hex, now)
            self._items.insert(0, suggestion)

        logger.info(f"New suggestion '{suggestion.title}' from plan '{suggestion.plan_id}'")
        return suggestion

    def dismiss(self, suggestion_id: str) -> bool:
        """Remove one suggestion by id.

        Returns:
            True if it was removed, False if no such suggestion is pending.
        """
        with self._lock:
            for i, suggestion in enumerate(self._items):
                if suggestion.id == suggestion_id:
                    del self._items[i]
                    logger.debug(f"Dismissed suggestion '{suggestion_id}'")
                    return True
        return False

    def sweep_expired(self, now: datetime) -> list[PendingSuggestion]:
        """Remove every suggestion whose expiry is at or before ``now``.

        Returns:
            The removed suggestions.
        """
        with self._lock:
            expired = [s for s in self._items if s.is_expired(now)]
            if expired:
                self._items = [s for s in self._items if not s.is_expired(now)]

        if expired:
            logger.debug(f"Swept {len(expired)} expired suggestions")
        return expired

    def get(self, suggestion_id: str) -> PendingSuggestion | None:
        """Get a pending suggestion by id."""
        with self._lock:
            for suggestion in self._items:
                if suggestion.id == suggestion_id:
                    return suggestion.model_copy()
        return None

    def list(self) -> list[PendingSuggestion]:
        """Get pending suggestions, newest first."""
        with self._lock:
            return [s.model_copy() for s in self._items]

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def restore(self, suggestions: Iterable[PendingSuggestion]) -> int:
        """Replace the store contents from a snapshot (newest first).

        Later suggestions that duplicate an earlier one's dedup key are
        dropped so at most one is pending per key.

        Returns:
            Number of suggestions dropped.
        """
        kept: list[PendingSuggestion] = []
        seen: set[tuple[DedupMode, str]] = set()
        dropped = 0

        for suggestion in suggestions:
            key = suggestion.title if suggestion.dedup_mode == DedupMode.TITLE else suggestion.plan_id
            if (suggestion.dedup_mode, key) in seen:
                dropped += 1
                continue
            seen.add((suggestion.dedup_mode, key))
            kept.append(suggestion.model_copy())

        with self._lock:
            self._items = kept

        if dropped:
            logger.warning(f"Dropped {dropped} duplicate suggestions while restoring")
        return dropped
