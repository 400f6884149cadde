"""Pydantic models for gymflow plans, suggestions and engine state."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from enum import Enum

import pytz
from pydantic import BaseModel, ConfigDict, Field, field_validator


class TriggerType(str, Enum):
    """Kind of signal a plan reacts to."""

    TIME_BASED = "time_based"
    HEALTH_METRIC = "health_metric"
    WORKOUT_EVENT = "workout_event"
    WEATHER = "weather"
    STREAK = "streak"
    MANUAL = "manual"


class ActionType(str, Enum):
    """What a firing plan does."""

    NOTIFICATION = "notification"
    SUGGESTION = "suggestion"
    AUTO_SCHEDULE = "auto_schedule"
    REWARD = "reward"
    WARNING = "warning"
    MODE_SWITCH = "mode_switch"  # e.g. dark mode at night


class PlanCategory(str, Enum):
    """UI grouping of plans."""

    ENERGY = "energy"
    TRAINING = "training"
    NUTRITION = "nutrition"
    MINDSET = "mindset"
    SYSTEM = "system"


class SuggestionPriority(str, Enum):
    """Priority of a pending suggestion."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class LogEntryType(str, Enum):
    """Type of an activity log entry."""

    SUCCESS = "success"
    WARNING = "warning"
    INFO = "info"


class DedupMode(str, Enum):
    """How a candidate suggestion is compared against pending ones."""

    PLAN_ID = "plan_id"  # Ordinary plans: one pending suggestion per plan
    TITLE = "title"  # System checks: exact title match


# Plan id used by the system-level checks and the cycle fault boundary
SYSTEM_PLAN_ID = "system"
SYSTEM_PLAN_NAME = "System Core"


# ============================================================================
# Plans
# ============================================================================

class ActionPayload(BaseModel):
    """Action template of a plan.

    Only ``title``, ``message``, ``icon`` and ``priority`` are read when a
    suggestion is built. Plan-specific template data (``techniques``,
    ``foods``, ``messages`` ...) is kept as extra fields.
    """

    model_config = ConfigDict(extra="allow")

    title: str | None = None
    message: str | None = None
    icon: str | None = None
    priority: SuggestionPriority | None = None
    expires_in_minutes: int | None = None  # Sets expires_at on the suggestion


class AutomationPlan(BaseModel):
    """A declarative automation rule."""

    id: str
    name: str
    name_vi: str | None = None
    description: str = ""
    trigger_type: TriggerType
    trigger_condition: str = ""  # Documentation only, never parsed
    action_type: ActionType
    action_payload: ActionPayload = Field(default_factory=ActionPayload)
    enabled: bool = True
    category: PlanCategory
    trigger_count: int = Field(default=0, ge=0)
    last_triggered: datetime | None = None

    @property
    def display_name(self) -> str:
        """Name shown in the activity log."""
        return self.name_vi or self.name


# ============================================================================
# Suggestions and activity log
# ============================================================================

class SuggestionCandidate(BaseModel):
    """A suggestion that has not been inserted yet."""

    plan_id: str
    title: str
    message: str
    icon: str = "zap"
    priority: SuggestionPriority = SuggestionPriority.MEDIUM
    action_label: str | None = None
    dismissable: bool = True
    expires_in_minutes: int | None = None
    dedup_mode: DedupMode = DedupMode.PLAN_ID

    @property
    def dedup_key(self) -> str:
        """Identity used to detect an already pending duplicate."""
        if self.dedup_mode == DedupMode.TITLE:
            return self.title
        return self.plan_id


class PendingSuggestion(BaseModel):
    """An actionable, user-facing suggestion."""

    id: str
    plan_id: str
    title: str
    message: str
    icon: str = "zap"
    priority: SuggestionPriority = SuggestionPriority.MEDIUM
    action_label: str | None = None
    dismissable: bool = True
    dedup_mode: DedupMode = DedupMode.PLAN_ID
    created_at: datetime | None = None
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        """Check if the suggestion has expired at ``now``."""
        if self.expires_at is None:
            return False
        expires_at = self.expires_at
        # Compare naive and aware timestamps on the same footing
        if expires_at.tzinfo is None and now.tzinfo is not None:
            expires_at = expires_at.replace(tzinfo=now.tzinfo)
        elif expires_at.tzinfo is not None and now.tzinfo is None:
            now = now.replace(tzinfo=expires_at.tzinfo)
        return expires_at <= now

    @classmethod
    def from_candidate(
        cls,
        candidate: SuggestionCandidate,
        suggestion_id: str,
        now: datetime,
    ) -> "PendingSuggestion":
        """Build a suggestion from a candidate."""
        expires_at = None
        if candidate.expires_in_minutes is not None:
            expires_at = now + timedelta(minutes=candidate.expires_in_minutes)

        return cls(
            id=suggestion_id,
            plan_id=candidate.plan_id,
            title=candidate.title,
            message=candidate.message,
            icon=candidate.icon,
            priority=candidate.priority,
            action_label=candidate.action_label,
            dismissable=candidate.dismissable,
            dedup_mode=candidate.dedup_mode,
            created_at=now,
            expires_at=expires_at,
        )


class AutomationLogEntry(BaseModel):
    """Immutable audit record of a trigger event."""

    model_config = ConfigDict(frozen=True)

    id: str
    plan_id: str
    plan_name: str
    timestamp: datetime
    message: str
    type: LogEntryType = LogEntryType.INFO


class EngineStatus(BaseModel):
    """Process-wide engine status."""

    is_running: bool = False
    last_run_at: datetime | None = None


# ============================================================================
# Context snapshot
# ============================================================================

DateLike = str | datetime | date


class SubjectRecord(BaseModel):
    """The representative subject a cycle is evaluated for.

    Date fields are kept as received: they may be ISO strings, real dates or
    garbage. Predicates parse them and treat anything malformed as no match.
    """

    id: str
    name: str
    status: str = "Active"
    date_of_birth: DateLike | None = None
    last_check_in: DateLike | None = None
    join_date: DateLike | None = None
    expiry_date: DateLike | None = None


class ActivityRecord(BaseModel):
    """One recorded workout / activity event."""

    name: str  # Exercise or event name
    timestamp: datetime


class ContextSnapshot(BaseModel):
    """Read-only input of one evaluation cycle."""

    now: datetime
    subject: SubjectRecord | None = None
    recent_activity: list[ActivityRecord] = Field(default_factory=list)  # Oldest first

    @property
    def hour(self) -> int:
        """Local hour of ``now``."""
        return self.now.hour


# ============================================================================
# Engine configuration and reports
# ============================================================================

class EngineConfig(BaseModel):
    """Engine configuration."""

    interval_seconds: float = Field(default=60.0, gt=0)
    startup_delay_seconds: float = Field(default=1.5, ge=0)
    log_capacity: int = Field(default=100, gt=0)
    fallback_probability: float = Field(default=0.05, ge=0, le=1)
    fallback_seed: int | None = None
    isolate_plan_errors: bool = True  # False: first error aborts the cycle
    cycle_timeout_seconds: float | None = 5.0
    timezone: str = "Asia/Ho_Chi_Minh"
    workout_hour: int = Field(default=17, ge=0, le=23)
    default_suggestion_ttl_minutes: int | None = None

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject unknown timezone names early."""
        try:
            pytz.timezone(v)
        except pytz.UnknownTimeZoneError as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v


class CycleReport(BaseModel):
    """Outcome of one engine cycle."""

    skipped: bool = False  # Another cycle held the guard
    started_at: datetime | None = None
    finished_at: datetime | None = None
    created: list[str] = Field(default_factory=list)  # New suggestion ids
    expired: list[str] = Field(default_factory=list)  # Swept suggestion ids
    errors: list[str] = Field(default_factory=list)
    timed_out: bool = False
    aborted: bool = False

    @property
    def ok(self) -> bool:
        """Cycle ran to completion without errors."""
        return not self.skipped and not self.aborted and not self.errors


class EngineStats(BaseModel):
    """Summary numbers for dashboards."""

    enabled_plans: int
    total_plans: int
    triggers_today: int
    pending_suggestions: int
    last_run_at: datetime | None = None


# ============================================================================
# Configuration file
# ============================================================================

class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str | None = None  # e.g. ~/.gymflow/logs/gymflow.log
    file_level: str = "DEBUG"
    max_size: str = "10MB"
    rotate: int = 5


class StorageConfig(BaseModel):
    """Snapshot persistence configuration."""

    enabled: bool = True
    path: str | None = None  # Default: ~/.gymflow/gymflow.db


class PlanOverride(BaseModel):
    """Per-plan overrides from the config file."""

    enabled: bool | None = None


class GymflowConfig(BaseModel):
    """Main gymflow configuration."""

    engine: EngineConfig = Field(default_factory=EngineConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    plans: dict[str, PlanOverride] = Field(default_factory=dict)

    def enabled_overrides(self) -> dict[str, bool]:
        """Get configured enable/disable overrides by plan id."""
        return {
            plan_id: override.enabled
            for plan_id, override in self.plans.items()
            if override.enabled is not None
        }
