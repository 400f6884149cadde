"""System-level checks for gymflow.

These rules live outside the plan registry and run every cycle. They share
the suggestion store and activity log with the plans but dedup on the exact
suggestion title instead of the plan id, and never touch plan counters.
"""

from __future__ import annotations

from typing import Callable

from gymflow.core.evaluator import days_between, parse_date
from gymflow.models import (
    SYSTEM_PLAN_ID,
    ContextSnapshot,
    DedupMode,
    SuggestionCandidate,
    SuggestionPriority,
)

EXPIRY_WARNING_TITLE = "⚠️ Sắp hết hạn gói tập"
MONOTONY_WARNING_TITLE = "🛑 Cảnh báo Lặp Bài"

EXPIRY_WARNING_DAYS = 3
MONOTONY_STREAK = 3
MONOTONY_RECENT_DAYS = 2


def check_membership_expiry(context: ContextSnapshot) -> SuggestionCandidate | None:
    """Warn when the subject's membership expires within three days."""
    subject = context.subject
    if subject is None:
        return None

    expiry = parse_date(subject.expiry_date, context.now)
    if expiry is None:
        return None

    days_left = days_between(expiry, context.now)
    if not 0 <= days_left <= EXPIRY_WARNING_DAYS:
        return None

    return SuggestionCandidate(
        plan_id=SYSTEM_PLAN_ID,
        title=EXPIRY_WARNING_TITLE,
        message=f"Gói tập của {subject.name} sẽ hết hạn trong {days_left} ngày nữa. Gia hạn ngay!",
        icon="alert-triangle",
        priority=SuggestionPriority.HIGH,
        dedup_mode=DedupMode.TITLE,
    )


def check_exercise_monotony(context: ContextSnapshot) -> SuggestionCandidate | None:
    """Warn when the last three workouts repeat the same exercise.

    Only relevant when the most recent of the three is at most two days old.
    """
    # recent_activity is oldest first
    recent = context.recent_activity[-MONOTONY_STREAK:]
    if len(recent) < MONOTONY_STREAK:
        return None

    names = {record.name for record in recent}
    if len(names) != 1:
        return None

    last = parse_date(recent[-1].timestamp, context.now)
    if last is None or days_between(context.now, last) > MONOTONY_RECENT_DAYS:
        return None

    exercise = recent[-1].name
    return SuggestionCandidate(
        plan_id=SYSTEM_PLAN_ID,
        title=MONOTONY_WARNING_TITLE,
        message=(
            f'Bạn đã tập "{exercise}" {MONOTONY_STREAK} lần liên tiếp. '
            "Cơ bắp cần kích thích mới để phát triển! Hãy thử bài biến thể khác."
        ),
        icon="repeat",
        priority=SuggestionPriority.MEDIUM,
        dedup_mode=DedupMode.TITLE,
    )


SystemCheck = Callable[[ContextSnapshot], "SuggestionCandidate | None"]

# (display name, check) in evaluation order
SYSTEM_CHECKS: tuple[tuple[str, SystemCheck], ...] = (
    ("Membership Expiry", check_membership_expiry),
    ("Exercise Monotony", check_exercise_monotony),
)
