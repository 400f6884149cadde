"""Plan registry for gymflow.

Owns every automation plan. After construction only ``enabled`` (via
:meth:`PlanRegistry.toggle`) and the trigger counters (via
:meth:`PlanRegistry.record_trigger`, called by the engine) change.
"""

from __future__ import annotations

from datetime import datetime
from threading import Lock
from typing import Iterable

from loguru import logger

from gymflow.core.default_plans import DEFAULT_PLANS
from gymflow.models import AutomationPlan, PlanCategory


class RegistryError(Exception):
    """Invalid plan registry contents."""

    pass


class PlanRegistry:
    """Ordered, thread-safe table of automation plans."""

    def __init__(self, plans: Iterable[AutomationPlan] | None = None):
        """Initialize the registry.

        Args:
            plans: Plans to own, in evaluation order. Defaults to the
                built-in plans. Plans are copied, so callers keep no handle
                on the registry's records.

        Raises:
            RegistryError: If two plans share an id.
        """
        source = DEFAULT_PLANS if plans is None else plans
        self._plans: dict[str, AutomationPlan] = {}
        self._lock = Lock()

        for plan in source:
            if plan.id in self._plans:
                raise RegistryError(f"Duplicate plan id '{plan.id}'")
            self._plans[plan.id] = plan.model_copy(deep=True)

    def list(self) -> list[AutomationPlan]:
        """Get all plans in stable registry order."""
        with self._lock:
            return [p.model_copy(deep=True) for p in self._plans.values()]

    def list_enabled(self) -> list[AutomationPlan]:
        """Get enabled plans in registry order."""
        with self._lock:
            return [p.model_copy(deep=True) for p in self._plans.values() if p.enabled]

    def list_by_category(self, category: PlanCategory) -> list[AutomationPlan]:
        """Get plans of one category."""
        with self._lock:
            return [
                p.model_copy(deep=True)
                for p in self._plans.values()
                if p.category == category
            ]

    def get(self, plan_id: str) -> AutomationPlan | None:
        """Get a plan by id."""
        with self._lock:
            plan = self._plans.get(plan_id)
            return plan.model_copy(deep=True) if plan else None

    def __contains__(self, plan_id: object) -> bool:
        with self._lock:
            return plan_id in self._plans

    def __len__(self) -> int:
        with self._lock:
            return len(self._plans)

    def toggle(self, plan_id: str) -> bool | None:
        """Flip a plan's enabled flag.

        Args:
            plan_id: The plan to toggle

        Returns:
            The new enabled value, or None if the plan does not exist
            (nothing changes in that case).
        """
        with self._lock:
            plan = self._plans.get(plan_id)
            if plan is None:
                logger.debug(f"Toggle ignored, unknown plan '{plan_id}'")
                return None

            plan.enabled = not plan.enabled
            logger.info(f"Plan '{plan_id}' {'enabled' if plan.enabled else 'disabled'}")
            return plan.enabled

    def set_enabled(self, plan_id: str, enabled: bool) -> bool:
        """Set a plan's enabled flag. Returns False for unknown plans."""
        with self._lock:
            plan = self._plans.get(plan_id)
            if plan is None:
                return False
            plan.enabled = enabled
            return True

    def apply_overrides(self, overrides: dict[str, bool]) -> None:
        """Apply configured enable/disable overrides."""
        for plan_id, enabled in overrides.items():
            if not self.set_enabled(plan_id, enabled):
                logger.warning(f"Config override for unknown plan '{plan_id}' ignored")

    def record_trigger(self, plan_id: str, when: datetime) -> int:
        """Record one successful activation of a plan.

        Returns:
            The new trigger count (0 if the plan is unknown).
        """
        with self._lock:
            plan = self._plans.get(plan_id)
            if plan is None:
                return 0
            plan.trigger_count += 1
            plan.last_triggered = when
            return plan.trigger_count

    def restore(self, plans: Iterable[AutomationPlan]) -> None:
        """Restore plan flags and counters from a snapshot.

        Known plans keep their definition and take ``enabled``,
        ``trigger_count`` and ``last_triggered`` from the snapshot. Plans
        only present in the snapshot are appended as-is.
        """
        with self._lock:
            for saved in plans:
                current = self._plans.get(saved.id)
                if current is None:
                    self._plans[saved.id] = saved.model_copy(deep=True)
                    continue
                current.enabled = saved.enabled
                current.trigger_count = saved.trigger_count
                current.last_triggered = saved.last_triggered
