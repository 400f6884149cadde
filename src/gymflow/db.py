"""SQLite snapshot store for gymflow engine state."""

from __future__ import annotations

import shutil
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Generator

from loguru import logger
from pydantic import ValidationError

from gymflow.config import DEFAULT_DB_FILE
from gymflow.models import AutomationLogEntry, AutomationPlan, EngineStatus, PendingSuggestion

if TYPE_CHECKING:
    from gymflow.core.engine import AutomationEngine

# Schema version for migrations
SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

-- Plan flags and counters (definition kept for plans unknown to the code)
CREATE TABLE IF NOT EXISTS plan_state (
    plan_id TEXT PRIMARY KEY,
    position INTEGER NOT NULL,
    enabled INTEGER NOT NULL DEFAULT 1,
    trigger_count INTEGER NOT NULL DEFAULT 0,
    last_triggered TEXT,
    definition TEXT NOT NULL
);

-- Pending suggestions, position 0 is the newest
CREATE TABLE IF NOT EXISTS pending_suggestions (
    id TEXT PRIMARY KEY,
    position INTEGER NOT NULL,
    plan_id TEXT NOT NULL,
    data TEXT NOT NULL
);

-- Activity log, position 0 is the newest
CREATE TABLE IF NOT EXISTS activity_log (
    id TEXT PRIMARY KEY,
    position INTEGER NOT NULL,
    plan_id TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    data TEXT NOT NULL
);

-- Engine status
CREATE TABLE IF NOT EXISTS engine_state (
    key TEXT PRIMARY KEY,
    value TEXT
);

CREATE INDEX IF NOT EXISTS idx_pending_suggestions_plan_id ON pending_suggestions(plan_id);
CREATE INDEX IF NOT EXISTS idx_activity_log_timestamp ON activity_log(timestamp);
"""


class SnapshotError(Exception):
    """A snapshot could not be read or written."""

    pass


class Database:
    """SQLite database holding the engine snapshot."""

    def __init__(self, db_path: Path | None = None):
        """Initialize the database."""
        self.db_path = db_path or DEFAULT_DB_FILE
        self._ensure_db()

    def _ensure_db(self) -> None:
        """Ensure the database exists and is up to date."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            self._init_schema()
        except sqlite3.DatabaseError as e:
            message = str(e).lower()
            if "malformed" not in message and "not a database" not in message and "corrupt" not in message:
                raise

            logger.error(f"Database corruption detected at {self.db_path}: {e}")
            backup_path = self.db_path.with_suffix(".db.corrupt")
            try:
                shutil.move(str(self.db_path), str(backup_path))
                logger.warning(f"Moved corrupted database to {backup_path}")
            except OSError as move_error:
                logger.error(f"Failed to backup corrupted database: {move_error}")
                self.db_path.unlink(missing_ok=True)

            self._init_schema()
            logger.info(f"Created fresh database at {self.db_path}")

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(SCHEMA_SQL)

            cursor = conn.execute("SELECT version FROM schema_version LIMIT 1")
            row = cursor.fetchone()

            if row is None:
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
                logger.debug(f"Initialized database at {self.db_path}")
            elif row[0] > SCHEMA_VERSION:
                raise SnapshotError(
                    f"Database {self.db_path} has schema {row[0]}, newer than supported {SCHEMA_VERSION}"
                )

    @contextmanager
    def _connect(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # =========================================================================
    # Snapshot
    # =========================================================================

    def save_snapshot(
        self,
        plans: list[AutomationPlan],
        suggestions: list[PendingSuggestion],
        log_entries: list[AutomationLogEntry],
        status: EngineStatus,
    ) -> None:
        """Replace the stored snapshot in one transaction."""
        try:
            with self._connect() as conn:
                conn.execute("DELETE FROM plan_state")
                conn.execute("DELETE FROM pending_suggestions")
                conn.execute("DELETE FROM activity_log")

                conn.executemany(
                    """
                    INSERT INTO plan_state (
                        plan_id, position, enabled, trigger_count, last_triggered, definition
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            plan.id,
                            i,
                            1 if plan.enabled else 0,
                            plan.trigger_count,
                            plan.last_triggered.isoformat() if plan.last_triggered else None,
                            plan.model_dump_json(),
                        )
                        for i, plan in enumerate(plans)
                    ],
                )
                conn.executemany(
                    "INSERT INTO pending_suggestions (id, position, plan_id, data) VALUES (?, ?, ?, ?)",
                    [(s.id, i, s.plan_id, s.model_dump_json()) for i, s in enumerate(suggestions)],
                )
                conn.executemany(
                    """
                    INSERT INTO activity_log (id, position, plan_id, timestamp, data)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    [
                        (e.id, i, e.plan_id, e.timestamp.isoformat(), e.model_dump_json())
                        for i, e in enumerate(log_entries)
                    ],
                )
                conn.execute(
                    "INSERT OR REPLACE INTO engine_state (key, value) VALUES ('last_run_at', ?)",
                    (status.last_run_at.isoformat() if status.last_run_at else None,),
                )
        except sqlite3.Error as e:
            raise SnapshotError(f"Failed to save snapshot to {self.db_path}: {e}") from e

    def get_plans(self) -> list[AutomationPlan]:
        """Get stored plans in registry order."""
        plans = []
        with self._connect() as conn:
            cursor = conn.execute("SELECT * FROM plan_state ORDER BY position")
            for row in cursor.fetchall():
                try:
                    plan = AutomationPlan.model_validate_json(row["definition"])
                except ValidationError as e:
                    logger.warning(f"Skipping unreadable plan '{row['plan_id']}': {e}")
                    continue
                plan.enabled = bool(row["enabled"])
                plan.trigger_count = max(0, row["trigger_count"])
                plan.last_triggered = (
                    datetime.fromisoformat(row["last_triggered"]) if row["last_triggered"] else None
                )
                plans.append(plan)
        return plans

    def get_suggestions(self) -> list[PendingSuggestion]:
        """Get stored pending suggestions, newest first."""
        return self._load_rows(
            "SELECT id, data FROM pending_suggestions ORDER BY position",
            PendingSuggestion,
        )

    def get_log_entries(self) -> list[AutomationLogEntry]:
        """Get stored activity log entries, newest first."""
        return self._load_rows(
            "SELECT id, data FROM activity_log ORDER BY position",
            AutomationLogEntry,
        )

    def get_status(self) -> EngineStatus:
        """Get the stored engine status. Stored status is never running."""
        with self._connect() as conn:
            cursor = conn.execute("SELECT value FROM engine_state WHERE key = 'last_run_at'")
            row = cursor.fetchone()

        last_run_at = None
        if row is not None and row["value"]:
            last_run_at = datetime.fromisoformat(row["value"])
        return EngineStatus(is_running=False, last_run_at=last_run_at)

    def _load_rows(self, sql: str, model: type) -> list:
        items = []
        with self._connect() as conn:
            for row in conn.execute(sql).fetchall():
                try:
                    items.append(model.model_validate_json(row["data"]))
                except ValidationError as e:
                    logger.warning(f"Skipping unreadable {model.__name__} '{row['id']}': {e}")
        return items

    # =========================================================================
    # Engine helpers
    # =========================================================================

    def save_engine(self, engine: "AutomationEngine") -> None:
        """Persist the full state of an engine."""
        self.save_snapshot(
            plans=engine.list_plans(),
            suggestions=engine.list_pending_suggestions(),
            log_entries=engine.list_log_entries(),
            status=engine.status,
        )
        logger.debug(f"Saved engine snapshot to {self.db_path}")

    def load_engine(self, engine: "AutomationEngine") -> bool:
        """Restore an engine from the stored snapshot.

        Restoring re-establishes the engine invariants: at most one pending
        suggestion per dedup key, a bounded newest-first log, and a status
        that is not running.

        Returns:
            True if a snapshot was found and applied.
        """
        try:
            plans = self.get_plans()
            suggestions = self.get_suggestions()
            log_entries = self.get_log_entries()
            status = self.get_status()
        except (sqlite3.Error, ValueError) as e:
            raise SnapshotError(f"Failed to load snapshot from {self.db_path}: {e}") from e

        if not plans and not suggestions and not log_entries and status.last_run_at is None:
            return False

        engine.registry.restore(plans)
        engine.suggestions.restore(suggestions)
        engine.activity_log.restore(log_entries)
        engine.restore_status(status)

        logger.info(
            f"Restored snapshot: {len(plans)} plans, {len(suggestions)} suggestions, "
            f"{len(log_entries)} log entries"
        )
        return True
