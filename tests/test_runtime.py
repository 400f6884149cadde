"""Tests for scheduling, persistence and runtime wiring.

1. Cycle scheduler
2. SQLite snapshot store
3. Engine runtime
"""

import asyncio
import sqlite3
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
import pytz

from gymflow.core.engine import AutomationEngine
from gymflow.core.evaluator import EvaluationResult
from gymflow.core.scheduler import CycleScheduler
from gymflow.db import Database
from gymflow.models import (
    ActionPayload,
    AutomationLogEntry,
    ContextSnapshot,
    EngineConfig,
    EngineStatus,
    GymflowConfig,
    LogEntryType,
    PendingSuggestion,
    PlanOverride,
    StorageConfig,
)
from gymflow.runtime import EngineRuntime

TZ = pytz.timezone("Asia/Ho_Chi_Minh")
NOW = TZ.localize(datetime(2026, 3, 10, 7, 0))


def fixed_context() -> ContextSnapshot:
    return ContextSnapshot(now=NOW)


# ============================================================================
# Cycle scheduler
# ============================================================================

class TestCycleScheduler:
    """Tests for the interval scheduler."""

    def test_run_now_runs_cycle_and_callback(self):
        """A manual run executes a cycle and calls back."""
        engine = AutomationEngine(config=EngineConfig(fallback_probability=0))
        on_cycle = MagicMock()
        scheduler = CycleScheduler(engine, fixed_context, on_cycle=on_cycle)

        report = scheduler.run_now()

        assert report.skipped is False
        assert len(report.created) == 1
        on_cycle.assert_called_once_with(report)

    def test_run_now_context_failure(self):
        """A failing context provider skips the cycle."""
        engine = MagicMock()
        provider = MagicMock(side_effect=RuntimeError("db down"))
        scheduler = CycleScheduler(engine, provider)

        assert scheduler.run_now() is None
        engine.run_cycle.assert_not_called()

    def test_skipped_cycle_does_not_call_back(self):
        """A skipped cycle does not call back."""
        engine = AutomationEngine(config=EngineConfig(fallback_probability=0))
        on_cycle = MagicMock()
        scheduler = CycleScheduler(engine, fixed_context, on_cycle=on_cycle)

        engine._guard.acquire()
        try:
            report = scheduler.run_now()
        finally:
            engine._guard.release()

        assert report.skipped is True
        on_cycle.assert_not_called()

    def test_callback_error_is_contained(self):
        """A raising callback does not break the run."""
        engine = AutomationEngine(config=EngineConfig(fallback_probability=0))
        scheduler = CycleScheduler(engine, fixed_context, on_cycle=MagicMock(side_effect=OSError("disk")))

        report = scheduler.run_now()

        assert report is not None
        assert report.skipped is False

    def test_loop_runs_after_startup_delay(self):
        """The loop waits the startup delay, then runs on the interval."""
        engine = MagicMock()
        engine.run_cycle.return_value = MagicMock(skipped=False)
        scheduler = CycleScheduler(engine, fixed_context, interval=0.02, startup_delay=0.01)

        async def run():
            scheduler.start()
            await asyncio.sleep(0.005)
            assert engine.run_cycle.call_count == 0
            await asyncio.sleep(0.1)
            assert scheduler.is_running
            await scheduler.shutdown()

        asyncio.run(run())

        assert engine.run_cycle.call_count >= 2
        assert not scheduler.is_running

    def test_stop_during_startup_delay(self):
        """Stopping during the startup delay runs no cycle."""
        engine = MagicMock()
        scheduler = CycleScheduler(engine, fixed_context, interval=60, startup_delay=10)

        async def run():
            scheduler.start()
            await asyncio.sleep(0.01)
            await scheduler.shutdown()

        asyncio.run(run())

        engine.run_cycle.assert_not_called()
        assert not scheduler.is_running

    def test_start_twice_returns_same_task(self):
        """Starting twice reuses the running task."""
        scheduler = CycleScheduler(MagicMock(), fixed_context, startup_delay=10)

        async def run():
            first = scheduler.start()
            second = scheduler.start()
            await scheduler.shutdown()
            return first is second

        assert asyncio.run(run()) is True


# ============================================================================
# Snapshot store
# ============================================================================

class TestDatabase:
    """Tests for the SQLite snapshot store."""

    @pytest.fixture
    def db(self, tmp_path):
        return Database(tmp_path / "gymflow.db")

    def test_empty_store_loads_nothing(self, db):
        """An empty store restores nothing."""
        engine = AutomationEngine(config=EngineConfig(fallback_probability=0))
        assert db.load_engine(engine) is False

    def test_round_trip_engine_state(self, db):
        """Counters, flags, suggestions, log and status survive a reload."""
        engine = AutomationEngine(config=EngineConfig(fallback_probability=0))
        engine.toggle_plan("nutrition_004")
        engine.run_cycle(ContextSnapshot(now=NOW))
        db.save_engine(engine)

        restored = AutomationEngine(config=EngineConfig(fallback_probability=0))
        assert db.load_engine(restored) is True

        assert restored.registry.get("energy_001").trigger_count == 1
        assert restored.registry.get("energy_001").last_triggered == NOW
        assert restored.registry.get("nutrition_004").enabled is False
        assert [s.id for s in restored.list_pending_suggestions()] == [
            s.id for s in engine.list_pending_suggestions()
        ]
        assert [e.id for e in restored.list_log_entries()] == [e.id for e in engine.list_log_entries()]
        assert restored.status.last_run_at == NOW
        assert restored.status.is_running is False

    def test_restored_engine_keeps_dedup(self, db):
        """A restored suggestion still blocks its plan."""
        engine = AutomationEngine(config=EngineConfig(fallback_probability=0))
        engine.run_cycle(ContextSnapshot(now=NOW))
        db.save_engine(engine)

        restored = AutomationEngine(config=EngineConfig(fallback_probability=0))
        db.load_engine(restored)
        report = restored.run_cycle(ContextSnapshot(now=NOW + timedelta(minutes=1)))

        assert report.created == []
        assert restored.registry.get("energy_001").trigger_count == 1

    def test_restore_repairs_invariants(self, db):
        """Duplicates and log overflow are repaired on load."""
        suggestions = [
            PendingSuggestion(id=f"s{i}", plan_id="energy_001", title="t", message="m", created_at=NOW)
            for i in range(2)
        ]
        log_entries = [
            AutomationLogEntry(
                id=f"e{i}", plan_id="energy_001", plan_name="Cà Phê Sáng",
                timestamp=NOW - timedelta(minutes=i), message="m", type=LogEntryType.INFO,
            )
            for i in range(150)
        ]
        db.save_snapshot(
            plans=[],
            suggestions=suggestions,
            log_entries=log_entries,
            status=EngineStatus(is_running=True, last_run_at=NOW),
        )

        engine = AutomationEngine(config=EngineConfig(fallback_probability=0))
        db.load_engine(engine)

        assert [s.id for s in engine.list_pending_suggestions()] == ["s0"]
        logs = engine.list_log_entries()
        assert len(logs) == 100
        assert logs[0].id == "e0"
        assert engine.status.is_running is False

    def test_corrupted_database_is_replaced(self, tmp_path):
        """A corrupted file is moved aside and recreated."""
        path = tmp_path / "gymflow.db"
        path.write_bytes(b"this is not a sqlite database" * 100)

        db = Database(path)

        assert (tmp_path / "gymflow.db.corrupt").exists()
        engine = AutomationEngine(config=EngineConfig(fallback_probability=0))
        assert db.load_engine(engine) is False


# ============================================================================
# Engine runtime
# ============================================================================

class TestEngineRuntime:
    """Tests for runtime wiring and persistence triggers."""

    def _config(self, tmp_path, **plans) -> GymflowConfig:
        return GymflowConfig(
            engine=EngineConfig(fallback_probability=0, startup_delay_seconds=0, interval_seconds=60),
            storage=StorageConfig(path=str(tmp_path / "gymflow.db")),
            plans={plan_id: PlanOverride(enabled=enabled) for plan_id, enabled in plans.items()},
        )

    def test_cycle_is_persisted(self, tmp_path):
        """Each cycle is saved."""
        runtime = EngineRuntime(fixed_context, config=self._config(tmp_path))
        report = runtime.run_cycle_now()
        assert len(report.created) == 1

        reloaded = EngineRuntime(fixed_context, config=self._config(tmp_path))
        assert len(reloaded.engine.list_pending_suggestions()) == 1
        assert reloaded.engine.registry.get("energy_001").trigger_count == 1

    def test_toggle_and_dismiss_are_persisted(self, tmp_path):
        """Toggles and dismissals are saved immediately."""
        runtime = EngineRuntime(fixed_context, config=self._config(tmp_path))
        runtime.run_cycle_now()
        suggestion = runtime.engine.list_pending_suggestions()[0]

        assert runtime.toggle_plan("energy_002") is False
        assert runtime.dismiss_suggestion(suggestion.id) is True
        assert runtime.toggle_plan("nope") is None
        assert runtime.dismiss_suggestion("nope") is False

        reloaded = EngineRuntime(fixed_context, config=self._config(tmp_path))
        assert reloaded.engine.registry.get("energy_002").enabled is False
        assert reloaded.engine.list_pending_suggestions() == []

    def test_config_override_beats_snapshot(self, tmp_path):
        """Config overrides win over saved flags."""
        runtime = EngineRuntime(fixed_context, config=self._config(tmp_path))
        runtime.toggle_plan("energy_001")

        reloaded = EngineRuntime(fixed_context, config=self._config(tmp_path, energy_001=True))
        assert reloaded.engine.registry.get("energy_001").enabled is True

    def test_storage_disabled(self, tmp_path):
        """With storage disabled nothing is written."""
        config = self._config(tmp_path)
        config.storage.enabled = False
        runtime = EngineRuntime(fixed_context, config=config)

        runtime.run_cycle_now()
        runtime.persist()

        assert runtime.db is None
        assert not (tmp_path / "gymflow.db").exists()

    def test_start_and_stop(self, tmp_path):
        """Start runs the first cycle and stop saves the final state."""
        runtime = EngineRuntime(fixed_context, config=self._config(tmp_path))

        async def run():
            await runtime.start()
            await asyncio.sleep(0.05)
            await runtime.stop()

        asyncio.run(run())

        assert runtime.engine.status.last_run_at == NOW
        assert not runtime.scheduler.is_running
        reloaded = EngineRuntime(fixed_context, config=self._config(tmp_path))
        assert reloaded.engine.status.last_run_at == NOW

    def test_predicate_payload_survives_restore(self, tmp_path):
        """Overridden payloads are saved with the suggestion."""
        runtime = EngineRuntime(fixed_context, config=self._config(tmp_path))
        runtime.engine.evaluator.register(
            "energy_002",
            lambda p, c: EvaluationResult(True, ActionPayload(title="Custom", message="Hi")),
        )
        runtime.run_cycle_now()

        reloaded = EngineRuntime(fixed_context, config=self._config(tmp_path))
        titles = {s.title for s in reloaded.engine.list_pending_suggestions()}
        assert "Custom" in titles

    def test_unusable_store_disables_persistence(self, tmp_path):
        """A store with a newer schema is logged and the engine runs without persistence."""
        path = tmp_path / "gymflow.db"
        Database(path)
        conn = sqlite3.connect(path)
        conn.execute("UPDATE schema_version SET version = 99")
        conn.commit()
        conn.close()

        runtime = EngineRuntime(fixed_context, config=self._config(tmp_path))
        report = runtime.run_cycle_now()

        assert runtime.db is None
        assert len(report.created) == 1

    def test_unopenable_store_disables_persistence(self, tmp_path):
        """A database path that cannot be opened does not stop the runtime."""
        config = self._config(tmp_path)
        config.storage.path = str(tmp_path)  # a directory, not a database file

        runtime = EngineRuntime(fixed_context, config=config)

        assert runtime.db is None
        assert runtime.toggle_plan("energy_001") is False
