"""gymflow core components."""

from gymflow.core.activity_log import ActivityLog
from gymflow.core.context import StaticContextProvider, build_context, select_active_subject
from gymflow.core.engine import AutomationEngine
from gymflow.core.evaluator import ConditionEvaluator, EvaluationResult
from gymflow.core.registry import PlanRegistry, RegistryError
from gymflow.core.scheduler import CycleScheduler
from gymflow.core.suggestions import SuggestionStore

__all__ = [
    "ActivityLog",
    "AutomationEngine",
    "ConditionEvaluator",
    "CycleScheduler",
    "EvaluationResult",
    "PlanRegistry",
    "RegistryError",
    "StaticContextProvider",
    "SuggestionStore",
    "build_context",
    "select_active_subject",
]
