"""Automation engine for gymflow.

One engine instance owns the plan registry, the suggestion store, the
activity log and the engine status. A cycle:

1. takes the non-reentrant guard (a concurrent cycle is a no-op)
2. sweeps expired suggestions
3. evaluates every enabled plan in registry order; a new suggestion bumps
   the plan's counter and appends one activity log entry
4. runs the system-level checks
5. records the run time and releases the guard
"""

from __future__ import annotations

import random
import time
from datetime import datetime
from threading import Lock
from typing import Callable

from loguru import logger

from gymflow.core.activity_log import ActivityLog
from gymflow.core.context import localize_now
from gymflow.core.evaluator import ConditionEvaluator
from gymflow.core.registry import PlanRegistry
from gymflow.core.suggestions import SuggestionStore
from gymflow.core.system_checks import SYSTEM_CHECKS, SystemCheck
from gymflow.models import (
    SYSTEM_PLAN_ID,
    SYSTEM_PLAN_NAME,
    AutomationLogEntry,
    AutomationPlan,
    ContextSnapshot,
    CycleReport,
    EngineConfig,
    EngineStats,
    EngineStatus,
    LogEntryType,
    PendingSuggestion,
    SuggestionCandidate,
    SuggestionPriority,
)

StatusObserver = Callable[[EngineStatus], None]


class AutomationEngine:
    """Evaluates automation plans and produces pending suggestions."""

    def __init__(
        self,
        registry: PlanRegistry | None = None,
        suggestions: SuggestionStore | None = None,
        activity_log: ActivityLog | None = None,
        evaluator: ConditionEvaluator | None = None,
        config: EngineConfig | None = None,
        system_checks: tuple[tuple[str, SystemCheck], ...] = SYSTEM_CHECKS,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        """Initialize the engine.

        Args:
            registry: Plan registry (default: built-in plans)
            suggestions: Suggestion store
            activity_log: Activity log (default capacity from config)
            evaluator: Condition evaluator (default built from config)
            config: Engine configuration
            system_checks: (name, check) pairs run after the plans
            monotonic: Monotonic clock used for the cycle deadline
        """
        self._config = config or EngineConfig()
        self.registry = registry or PlanRegistry()
        self.suggestions = suggestions or SuggestionStore()
        self.activity_log = activity_log or ActivityLog(self._config.log_capacity)

        if evaluator is None:
            rng = None
            if self._config.fallback_seed is not None:
                rng = random.Random(self._config.fallback_seed)
            evaluator = ConditionEvaluator(
                fallback_probability=self._config.fallback_probability,
                rng=rng,
                workout_hour=self._config.workout_hour,
            )
        self.evaluator = evaluator

        self._system_checks = system_checks
        self._monotonic = monotonic
        self._guard = Lock()
        self._status = EngineStatus()
        self._status_lock = Lock()
        self._observers: list[StatusObserver] = []

    @property
    def config(self) -> EngineConfig:
        """Engine configuration."""
        return self._config

    # =========================================================================
    # Status
    # =========================================================================

    @property
    def status(self) -> EngineStatus:
        """Current engine status (a copy)."""
        with self._status_lock:
            return self._status.model_copy()

    def subscribe(self, observer: StatusObserver) -> None:
        """Call ``observer`` with the new status on every status change."""
        self._observers.append(observer)

    def unsubscribe(self, observer: StatusObserver) -> None:
        """Stop notifying an observer."""
        if observer in self._observers:
            self._observers.remove(observer)

    def _update_status(self, **changes) -> None:
        with self._status_lock:
            self._status = self._status.model_copy(update=changes)
            status = self._status.model_copy()

        for observer in list(self._observers):
            try:
                observer(status)
            except Exception as e:
                logger.error(f"Error in status observer: {e}")

    def restore_status(self, status: EngineStatus) -> None:
        """Restore the last run time from a snapshot. A restored engine is never running."""
        self._update_status(is_running=False, last_run_at=status.last_run_at)

    # =========================================================================
    # Cycle
    # =========================================================================

    @property
    def is_cycle_running(self) -> bool:
        """Check if a cycle currently holds the guard."""
        return self._guard.locked()

    def run_cycle(self, context: ContextSnapshot) -> CycleReport:
        """Run one evaluation cycle.

        A call made while another cycle is running returns immediately with
        ``skipped=True`` and changes nothing.

        ``context.now`` is converted to the configured timezone first, so hour
        windows and "today" share one clock.

        Args:
            context: Read-only snapshot to evaluate against

        Returns:
            CycleReport describing what the cycle did.
        """
        context = context.model_copy(update={"now": localize_now(self._config.timezone, context.now)})

        if not self._guard.acquire(blocking=False):
            logger.debug("Cycle already running, skipped")
            return CycleReport(skipped=True)

        report = CycleReport(started_at=context.now)
        try:
            self._update_status(is_running=True)
            try:
                self._execute(context, report)
            except Exception as e:
                # Reached only when plan errors are not isolated, or outside any plan
                logger.error(f"Automation cycle aborted: {e}")
                report.aborted = True
                report.errors.append(f"{SYSTEM_PLAN_ID}: {e}")
                self.activity_log.record(
                    plan_id=SYSTEM_PLAN_ID,
                    plan_name=SYSTEM_PLAN_NAME,
                    message=f"Runtime Error: {e}",
                    type=LogEntryType.WARNING,
                    timestamp=context.now,
                )
        finally:
            report.finished_at = context.now
            if report.aborted:
                self._update_status(is_running=False)
            else:
                self._update_status(is_running=False, last_run_at=context.now)
            self._guard.release()

        logger.debug(
            f"Cycle finished: {len(report.created)} new, {len(report.expired)} expired, "
            f"{len(report.errors)} errors"
        )
        return report

    def _execute(self, context: ContextSnapshot, report: CycleReport) -> None:
        expired = self.suggestions.sweep_expired(context.now)
        report.expired.extend(s.id for s in expired)

        timeout = self._config.cycle_timeout_seconds
        deadline = self._monotonic() + timeout if timeout else None

        for plan in self.registry.list_enabled():
            if deadline is not None and self._monotonic() > deadline:
                report.timed_out = True
                logger.warning(f"Cycle deadline of {timeout}s exceeded at plan '{plan.id}'")
                self.activity_log.record(
                    plan_id=SYSTEM_PLAN_ID,
                    plan_name=SYSTEM_PLAN_NAME,
                    message=f"Cycle deadline exceeded ({timeout}s), skipped remaining plans from '{plan.id}'",
                    type=LogEntryType.WARNING,
                    timestamp=context.now,
                )
                break

            self._guarded(
                plan.id,
                plan.display_name,
                lambda: self._process_plan(plan, context, report),
                context,
                report,
            )

        for name, check in self._system_checks:
            self._guarded(
                SYSTEM_PLAN_ID,
                name,
                lambda: self._process_system_check(name, check, context, report),
                context,
                report,
            )

    def _guarded(
        self,
        plan_id: str,
        plan_name: str,
        func: Callable[[], None],
        context: ContextSnapshot,
        report: CycleReport,
    ) -> None:
        """Run one plan or check inside its own fault boundary when isolation is on."""
        if not self._config.isolate_plan_errors:
            func()
            return

        try:
            func()
        except Exception as e:
            logger.warning(f"Evaluation of '{plan_id}' failed: {e}")
            report.errors.append(f"{plan_id}: {e}")
            self.activity_log.record(
                plan_id=plan_id,
                plan_name=plan_name,
                message=f"Evaluation Error: {e}",
                type=LogEntryType.WARNING,
                timestamp=context.now,
            )

    def _process_plan(
        self,
        plan: AutomationPlan,
        context: ContextSnapshot,
        report: CycleReport,
    ) -> None:
        result = self.evaluator.evaluate(plan, context)
        if not result.should_trigger:
            return

        payload = result.payload_override or plan.action_payload
        expires_in = payload.expires_in_minutes
        if expires_in is None:
            expires_in = self._config.default_suggestion_ttl_minutes

        candidate = SuggestionCandidate(
            plan_id=plan.id,
            title=payload.title or plan.display_name,
            message=payload.message or plan.description,
            icon=payload.icon or "zap",
            priority=payload.priority or SuggestionPriority.MEDIUM,
            expires_in_minutes=expires_in,
        )

        suggestion = self.suggestions.add(candidate, now=context.now)
        if suggestion is None:
            return

        self.registry.record_trigger(plan.id, context.now)
        self.activity_log.record(
            plan_id=plan.id,
            plan_name=plan.display_name,
            message=f"Triggered: {suggestion.title}",
            type=LogEntryType.INFO,
            timestamp=context.now,
        )
        report.created.append(suggestion.id)

    def _process_system_check(
        self,
        name: str,
        check: SystemCheck,
        context: ContextSnapshot,
        report: CycleReport,
    ) -> None:
        candidate = check(context)
        if candidate is None:
            return

        suggestion = self.suggestions.add(candidate, now=context.now)
        if suggestion is None:
            return

        self.activity_log.record(
            plan_id=SYSTEM_PLAN_ID,
            plan_name=name,
            message=f"Triggered: {suggestion.title}",
            type=LogEntryType.INFO,
            timestamp=context.now,
        )
        report.created.append(suggestion.id)

    # =========================================================================
    # Consumer API
    # =========================================================================

    def list_plans(self) -> list[AutomationPlan]:
        """Get all plans in registry order."""
        return self.registry.list()

    def toggle_plan(self, plan_id: str) -> bool | None:
        """Flip a plan's enabled flag. Returns the new value, None if unknown."""
        return self.registry.toggle(plan_id)

    def list_pending_suggestions(self) -> list[PendingSuggestion]:
        """Get pending suggestions, newest first."""
        return self.suggestions.list()

    def dismiss_suggestion(self, suggestion_id: str) -> bool:
        """Dismiss one pending suggestion. Unknown ids are a no-op."""
        return self.suggestions.dismiss(suggestion_id)

    def list_log_entries(self, limit: int | None = None) -> list[AutomationLogEntry]:
        """Get activity log entries, newest first."""
        return self.activity_log.list(limit)

    def get_stats(self, now: datetime | None = None) -> EngineStats:
        """Get summary numbers.

        Args:
            now: Reference time for "today" (default: now in the engine timezone)
        """
        now = localize_now(self._config.timezone, now)
        start_of_day = localize_now(
            self._config.timezone,
            now.replace(tzinfo=None, hour=0, minute=0, second=0, microsecond=0),
        )

        plans = self.registry.list()
        return EngineStats(
            enabled_plans=sum(1 for p in plans if p.enabled),
            total_plans=len(plans),
            triggers_today=self.activity_log.count_since(start_of_day),
            pending_suggestions=len(self.suggestions),
            last_run_at=self.status.last_run_at,
        )
