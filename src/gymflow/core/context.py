"""Context snapshot assembly for gymflow.

The engine never queries storage itself. Collaborators hand over members and
workout history, and these helpers reduce them to one :class:`ContextSnapshot`
for a single representative subject.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Iterable, Mapping

import pytz
from loguru import logger
from pydantic import ValidationError

from gymflow.models import ActivityRecord, ContextSnapshot, SubjectRecord

ContextProvider = Callable[[], ContextSnapshot]

# Number of workout records kept in a snapshot
DEFAULT_HISTORY = 3


def localize_now(timezone: str, now: datetime | None = None) -> datetime:
    """Get ``now`` in the given timezone.

    Naive values are taken to already be local time in ``timezone``.
    """
    tz = pytz.timezone(timezone)
    if now is None:
        return datetime.now(tz)
    if now.tzinfo is None:
        return tz.localize(now)
    return now.astimezone(tz)


def select_active_subject(
    members: Iterable[SubjectRecord | Mapping[str, Any]],
) -> SubjectRecord | None:
    """Pick the representative subject: the first active one, else the first."""
    records: list[SubjectRecord] = []
    for member in members:
        if isinstance(member, SubjectRecord):
            records.append(member)
            continue
        try:
            records.append(SubjectRecord.model_validate(member))
        except ValidationError as e:
            logger.warning(f"Skipping invalid member record: {e}")

    for record in records:
        if record.status == "Active":
            return record
    return records[0] if records else None


def build_context(
    members: Iterable[SubjectRecord | Mapping[str, Any]],
    activity: Iterable[ActivityRecord | Mapping[str, Any]],
    timezone: str = "Asia/Ho_Chi_Minh",
    now: datetime | None = None,
    history: int = DEFAULT_HISTORY,
) -> ContextSnapshot:
    """Build the context snapshot of one cycle.

    Args:
        members: Member records
        activity: Workout log records in any order
        timezone: Local timezone used for hour-of-day predicates
        now: Evaluation time (default: now)
        history: Number of most recent workout records to keep

    Returns:
        ContextSnapshot with activity sorted oldest first.
    """
    local_now = localize_now(timezone, now)

    records: list[ActivityRecord] = []
    for item in activity:
        if isinstance(item, ActivityRecord):
            records.append(item)
            continue
        try:
            records.append(ActivityRecord.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping invalid activity record: {e}")

    records.sort(key=lambda r: _comparable(r.timestamp, local_now))

    return ContextSnapshot(
        now=local_now,
        subject=select_active_subject(members),
        recent_activity=records[-history:] if history > 0 else [],
    )


def _comparable(timestamp: datetime, reference: datetime) -> datetime:
    if timestamp.tzinfo is not None:
        return timestamp
    localize = getattr(reference.tzinfo, "localize", None)
    if localize:
        return localize(timestamp)
    return timestamp.replace(tzinfo=reference.tzinfo)


class StaticContextProvider:
    """Context provider over in-memory collections.

    ``members`` and ``activity`` may be replaced between cycles; ``clock``
    is injectable for tests.
    """

    def __init__(
        self,
        members: list | None = None,
        activity: list | None = None,
        timezone: str = "Asia/Ho_Chi_Minh",
        clock: Callable[[], datetime] | None = None,
    ):
        self.members = members or []
        self.activity = activity or []
        self._timezone = timezone
        self._clock = clock

    def __call__(self) -> ContextSnapshot:
        now = self._clock() if self._clock else None
        return build_context(self.members, self.activity, timezone=self._timezone, now=now)
