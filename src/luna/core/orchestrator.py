"""Background orchestrator - runs periodic memory maintenance tasks."""

import asyncio
import contextlib
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from luna.core.clock import Clock, SystemClock
from luna.core.logging import get_logger

logger = get_logger("core.orchestrator")


class TaskPriority(Enum):
    LOW = 1
    NORMAL = 2
    HIGH = 3


@dataclass
class ScheduledTask:
    """A task scheduled for background execution."""

    id: str
    name: str
    callback: Callable
    next_run: datetime
    interval: timedelta | None = None  # None = one-shot
    priority: TaskPriority = TaskPriority.NORMAL
    last_run: datetime | None = None
    enabled: bool = True
    running: bool = False


class Orchestrator:
    """Schedules background tasks (cleanup, thread sweep, promotion)."""

    def __init__(self, clock: Clock | None = None, tick: float = 1.0):
        self._clock = clock or SystemClock()
        self._tick = tick
        self._tasks: dict[str, ScheduledTask] = {}
        self._running = False
        self._scheduler_task: asyncio.Task | None = None

    def schedule_task(
        self,
        task_id: str,
        name: str,
        callback: Callable,
        interval: timedelta | None = None,
        priority: TaskPriority = TaskPriority.NORMAL,
        delay: timedelta | None = None,
    ) -> None:
        """Schedule a background task."""
        next_run = self._clock.now()
        if delay:
            next_run += delay

        self._tasks[task_id] = ScheduledTask(
            id=task_id,
            name=name,
            callback=callback,
            interval=interval,
            priority=priority,
            next_run=next_run,
        )
        logger.info(f"Scheduled task: {name} (interval: {interval})")

    def cancel_task(self, task_id: str) -> bool:
        """Cancel a scheduled task."""
        if task_id in self._tasks:
            del self._tasks[task_id]
            return True
        return False

    def pause_task(self, task_id: str) -> bool:
        """Keep a task registered but skip it until resumed."""
        task = self._tasks.get(task_id)
        if task is None:
            return False
        task.enabled = False
        logger.info(f"Paused task: {task.name}")
        return True

    def resume_task(self, task_id: str) -> bool:
        task = self._tasks.get(task_id)
        if task is None:
            return False
        task.enabled = True
        logger.info(f"Resumed task: {task.name}")
        return True

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the orchestrator scheduler."""
        if self._running:
            return
        self._running = True
        self._scheduler_task = asyncio.create_task(self._scheduler_loop())
        logger.info("Orchestrator started")

    async def stop(self) -> None:
        """Stop the orchestrator."""
        self._running = False
        if self._scheduler_task:
            self._scheduler_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._scheduler_task
            self._scheduler_task = None
        logger.info("Orchestrator stopped")

    async def run_pending(self) -> int:
        """Run every due task once, highest priority first. Returns tasks run."""
        now = self._clock.now()
        pending = [
            t for t in self._tasks.values()
            if t.enabled and not t.running and t.next_run <= now
        ]
        pending.sort(key=lambda t: t.priority.value, reverse=True)

        for task in pending:
            task.running = True
            try:
                result = task.callback()
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Task {task.name} failed: {e}")
            finally:
                task.running = False
                task.last_run = self._clock.now()

                if task.interval:
                    task.next_run = task.last_run + task.interval
                else:
                    # One-shot task, remove it
                    self._tasks.pop(task.id, None)

        return len(pending)

    async def _scheduler_loop(self) -> None:
        """Main scheduler loop - runs pending tasks."""
        while self._running:
            await self.run_pending()
            await asyncio.sleep(self._tick)
