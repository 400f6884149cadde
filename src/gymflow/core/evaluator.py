"""Condition evaluation for gymflow plans.

Each known plan id maps to a hand-written predicate. ``trigger_condition`` on
the plan is documentation only and is never interpreted. Plans without a
predicate fall back to a small, configurable random trigger chance.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Callable

from loguru import logger

from gymflow.models import (
    ActionPayload,
    AutomationPlan,
    ContextSnapshot,
    SuggestionPriority,
)

# Inactivity threshold of the discipline check, in whole days
INACTIVITY_DAYS = 3


@dataclass
class EvaluationResult:
    """Result of evaluating one plan."""

    should_trigger: bool
    payload_override: ActionPayload | None = None


NO_TRIGGER = EvaluationResult(should_trigger=False)

Predicate = Callable[[AutomationPlan, ContextSnapshot], EvaluationResult]


def parse_date(value: Any, reference: datetime | None = None) -> datetime | None:
    """Parse a stored date value.

    Accepts datetimes, dates and ISO-8601 strings (a trailing ``Z`` is
    allowed). Naive results take the timezone of ``reference``; aware
    results are converted to it.

    Returns:
        The parsed datetime, or None for missing or malformed input.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time())
    elif isinstance(value, str):
        cleaned = value.strip()
        if not cleaned or cleaned.upper() == "N/A":
            return None
        if cleaned.endswith("Z"):
            cleaned = cleaned[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(cleaned)
        except ValueError:
            return None
    else:
        return None

    if reference is not None:
        if parsed.tzinfo is None and reference.tzinfo is not None:
            localize = getattr(reference.tzinfo, "localize", None)
            parsed = localize(parsed) if localize else parsed.replace(tzinfo=reference.tzinfo)
        elif parsed.tzinfo is not None and reference.tzinfo is not None:
            parsed = parsed.astimezone(reference.tzinfo)
        elif parsed.tzinfo is not None and reference.tzinfo is None:
            parsed = parsed.replace(tzinfo=None)

    return parsed


def days_between(later: datetime, earlier: datetime) -> int:
    """Whole days from ``earlier`` to ``later``, truncated toward zero."""
    return int((later - earlier) / timedelta(days=1))


class ConditionEvaluator:
    """Maps a plan and a context snapshot to a trigger decision."""

    def __init__(
        self,
        fallback_probability: float = 0.05,
        rng: random.Random | None = None,
        workout_hour: int = 17,
    ):
        """Initialize the evaluator.

        Args:
            fallback_probability: Chance per cycle that a plan without a
                predicate fires. 0 disables the fallback.
            rng: Random source for the fallback, injectable for tests.
            workout_hour: Local hour of the scheduled workout.
        """
        self._fallback_probability = fallback_probability
        self._rng = rng or random.Random()
        self._workout_hour = workout_hour
        self._predicates: dict[str, Predicate] = {
            "energy_001": self._morning_window,
            "nutrition_004": self._late_evening,
            "mindset_001": self._inactivity_streak,
            "mindset_004": self._birthday,
            "nutrition_003": self._pre_workout_meal,
        }

    def register(self, plan_id: str, predicate: Predicate) -> None:
        """Register or replace the predicate of a plan id."""
        self._predicates[plan_id] = predicate

    def has_predicate(self, plan_id: str) -> bool:
        """Check if a plan id has a dedicated predicate."""
        return plan_id in self._predicates

    def evaluate(self, plan: AutomationPlan, context: ContextSnapshot) -> EvaluationResult:
        """Evaluate one plan against the context.

        Exceptions raised by a predicate propagate to the caller, which owns
        the fault boundary.
        """
        predicate = self._predicates.get(plan.id, self._fallback)
        result = predicate(plan, context)
        if result.should_trigger:
            logger.debug(f"Plan '{plan.id}' condition met")
        return result

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------

    def _morning_window(self, plan: AutomationPlan, context: ContextSnapshot) -> EvaluationResult:
        return EvaluationResult(6 <= context.hour <= 8)

    def _late_evening(self, plan: AutomationPlan, context: ContextSnapshot) -> EvaluationResult:
        return EvaluationResult(context.hour >= 22)

    def _pre_workout_meal(self, plan: AutomationPlan, context: ContextSnapshot) -> EvaluationResult:
        # Two hours before the scheduled workout
        return EvaluationResult(context.hour == (self._workout_hour - 2) % 24)

    def _inactivity_streak(self, plan: AutomationPlan, context: ContextSnapshot) -> EvaluationResult:
        subject = context.subject
        if subject is None:
            return NO_TRIGGER

        last_active = parse_date(subject.last_check_in, context.now)
        if last_active is None:
            last_active = parse_date(subject.join_date, context.now)
        if last_active is None:
            return NO_TRIGGER

        days_off = days_between(context.now, last_active)
        if days_off < INACTIVITY_DAYS:
            return NO_TRIGGER

        override = plan.action_payload.model_copy(
            update={
                "message": f"Bạn đã nghỉ {days_off} ngày rồi. Quay lại ngay trước khi mất cơ bắp! 💪",
            }
        )
        return EvaluationResult(True, override)

    def _birthday(self, plan: AutomationPlan, context: ContextSnapshot) -> EvaluationResult:
        subject = context.subject
        if subject is None:
            return NO_TRIGGER

        dob = parse_date(subject.date_of_birth, context.now)
        if dob is None:
            return NO_TRIGGER
        if dob.day != context.now.day or dob.month != context.now.month:
            return NO_TRIGGER

        return EvaluationResult(
            True,
            ActionPayload(
                title=f"🎉 Happy Birthday, {subject.name}!",
                message="Quà sinh nhật từ Gym: Voucher giảm giá 20% gia hạn gói tập!",
                icon="gift",
                priority=SuggestionPriority.HIGH,
            ),
        )

    def _fallback(self, plan: AutomationPlan, context: ContextSnapshot) -> EvaluationResult:
        if self._fallback_probability <= 0:
            return NO_TRIGGER
        return EvaluationResult(self._rng.random() < self._fallback_probability)
