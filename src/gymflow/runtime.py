"""Runtime wiring for gymflow.

Builds one engine from configuration, restores its last snapshot, drives it
with the cycle scheduler and persists it after every change.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from loguru import logger

from gymflow import __version__
from gymflow.config import get_db_path
from gymflow.core.context import ContextProvider
from gymflow.core.engine import AutomationEngine
from gymflow.core.registry import PlanRegistry
from gymflow.core.scheduler import CycleScheduler
from gymflow.db import Database, SnapshotError
from gymflow.models import CycleReport, GymflowConfig


class EngineRuntime:
    """Owns the engine, its scheduler and its snapshot store.

    Lifecycle: construct, ``await start()``, use the consumer methods,
    ``await stop()``.
    """

    def __init__(
        self,
        context_provider: ContextProvider,
        config: GymflowConfig | None = None,
        db_path: Path | None = None,
    ):
        """Initialize the runtime.

        Args:
            context_provider: Builds the context snapshot before each cycle
            config: gymflow configuration (default: built-in defaults)
            db_path: Override for the snapshot database path
        """
        self.config = config or GymflowConfig()
        engine_config = self.config.engine

        registry = PlanRegistry()
        self.engine = AutomationEngine(registry=registry, config=engine_config)

        self.db: Database | None = None
        if self.config.storage.enabled:
            path = db_path or get_db_path(self.config)
            try:
                self.db = Database(path)
            except (SnapshotError, sqlite3.Error, OSError) as e:
                logger.error(f"Snapshot store at {path} unavailable, persistence disabled: {e}")

        if self.db is not None:
            try:
                self.db.load_engine(self.engine)
            except SnapshotError as e:
                logger.error(f"Ignoring unreadable snapshot: {e}")

        # Config overrides win over the restored flags
        registry.apply_overrides(self.config.enabled_overrides())

        self.scheduler = CycleScheduler(
            engine=self.engine,
            context_provider=context_provider,
            interval=engine_config.interval_seconds,
            startup_delay=engine_config.startup_delay_seconds,
            on_cycle=self._on_cycle,
        )

    def _on_cycle(self, report: CycleReport) -> None:
        self.persist()

    def persist(self) -> None:
        """Save the engine snapshot; failures are logged, never raised."""
        if self.db is None:
            return
        try:
            self.db.save_engine(self.engine)
        except SnapshotError as e:
            logger.error(f"Failed to persist engine state: {e}")

    async def start(self) -> None:
        """Start the scheduler."""
        self.scheduler.start()
        logger.info(f"gymflow {__version__} engine started with {len(self.engine.registry)} plans")

    async def stop(self) -> None:
        """Stop the scheduler and save a final snapshot."""
        await self.scheduler.shutdown()
        self.persist()
        logger.info("gymflow engine stopped")

    # Consumer actions that change state are persisted immediately

    def toggle_plan(self, plan_id: str) -> bool | None:
        """Toggle a plan and persist the change."""
        enabled = self.engine.toggle_plan(plan_id)
        if enabled is not None:
            self.persist()
        return enabled

    def dismiss_suggestion(self, suggestion_id: str) -> bool:
        """Dismiss a suggestion and persist the change."""
        removed = self.engine.dismiss_suggestion(suggestion_id)
        if removed:
            self.persist()
        return removed

    def run_cycle_now(self) -> CycleReport | None:
        """Run a cycle immediately, subject to the engine's re-entrancy guard."""
        return self.scheduler.run_now()
