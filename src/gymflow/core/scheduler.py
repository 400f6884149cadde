"""Cycle scheduler for gymflow.

Runs one engine cycle shortly after start, then on a fixed interval until
stopped. Manual runs go through the same engine guard, so a manual run that
coincides with a timer tick is rejected rather than queued.
"""

from __future__ import annotations

import asyncio
from typing import Callable

from loguru import logger

from gymflow.core.context import ContextProvider
from gymflow.core.engine import AutomationEngine
from gymflow.models import CycleReport


class CycleScheduler:
    """Interval scheduler driving an :class:`AutomationEngine`."""

    def __init__(
        self,
        engine: AutomationEngine,
        context_provider: ContextProvider,
        interval: float = 60.0,
        startup_delay: float = 1.5,
        on_cycle: Callable[[CycleReport], None] | None = None,
    ):
        """Initialize the scheduler.

        Args:
            engine: The engine to drive
            context_provider: Builds the context snapshot before each cycle
            interval: Seconds between cycles
            startup_delay: Seconds before the first cycle
            on_cycle: Callback after every cycle that was not skipped
        """
        self._engine = engine
        self._context_provider = context_provider
        self._interval = interval
        self._startup_delay = startup_delay
        self._on_cycle = on_cycle
        self._running = False
        self._task: asyncio.Task | None = None

    def run_now(self) -> CycleReport | None:
        """Run a cycle immediately.

        Returns:
            The cycle report, or None if the context could not be built.
        """
        try:
            context = self._context_provider()
        except Exception as e:
            logger.error(f"Failed to build automation context: {e}")
            return None

        report = self._engine.run_cycle(context)

        if not report.skipped and self._on_cycle:
            try:
                self._on_cycle(report)
            except Exception as e:
                logger.error(f"Error in cycle callback: {e}")

        return report

    async def run(self) -> None:
        """Run the scheduler loop."""
        self._running = True
        logger.info(
            f"Automation scheduler started (interval: {self._interval}s, "
            f"first run in {self._startup_delay}s)"
        )

        try:
            await asyncio.sleep(self._startup_delay)
            while self._running:
                self.run_now()
                await asyncio.sleep(self._interval)
        finally:
            self._running = False
            logger.info("Automation scheduler stopped")

    def start(self) -> asyncio.Task:
        """Start the loop as a task on the running event loop."""
        if self._task is not None and not self._task.done():
            return self._task
        self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    def stop(self) -> None:
        """Stop the loop, cancelling a pending startup delay or interval wait."""
        self._running = False
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def shutdown(self) -> None:
        """Stop the loop and wait for the task to finish."""
        task = self._task
        self.stop()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None

    @property
    def is_running(self) -> bool:
        """Check if the scheduler loop is running."""
        return self._running
