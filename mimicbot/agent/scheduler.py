"""Time-ordered, single-flight task scheduler.

Every turn the agent takes goes through here:
    1. add(): admission (per-kind queue limit, handler check), sorted insert
    2. One timer armed for the soonest task, re-armed after every insert/removal
    3. Execution: one task at a time; the task leaves the queue before it runs

Handler errors are caught at the task boundary and logged. A failed task is
not retried.
"""

from __future__ import annotations

import asyncio
import bisect
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from loguru import logger

from mimicbot.errors import UnknownTaskKind


@dataclass
class ScheduledTask:
    id: str
    run_at: float  # unix timestamp
    kind: str
    context: Any


class TaskHandler(ABC):
    """Runs tasks of one kind."""

    kind: str = ""
    max_queue: int = 1  # default limit when the config has no entry for this kind

    def check(self, context: Any) -> bool:
        """Admission predicate. Returning False drops the task silently."""
        return True

    @abstractmethod
    async def run(self, context: Any) -> None: ...


class TaskScheduler:
    """Serialized queue of pending tasks ordered by ``run_at``."""

    def __init__(
        self,
        handlers: Iterable[TaskHandler] = (),
        max_queue: dict[str, int] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._handlers: dict[str, TaskHandler] = {}
        self._max_queue = dict(max_queue or {})
        self._clock = clock
        self._queue: list[ScheduledTask] = []
        self._current: ScheduledTask | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._runner: asyncio.Task | None = None
        self._idle = asyncio.Event()
        self._idle.set()
        for handler in handlers:
            self.register(handler)

    # ── Registry ──────────────────────────────────────────────────────

    def register(self, handler: TaskHandler) -> None:
        if handler.kind in self._handlers:
            logger.warning(f"Scheduler: replacing handler for '{handler.kind}'")
        self._handlers[handler.kind] = handler

    @property
    def kinds(self) -> list[str]:
        return list(self._handlers)

    def limit(self, kind: str) -> int:
        return self._max_queue.get(kind, self._handlers[kind].max_queue)

    # ── Inspection ────────────────────────────────────────────────────

    @property
    def pending(self) -> list[ScheduledTask]:
        return list(self._queue)

    @property
    def current(self) -> ScheduledTask | None:
        return self._current

    def queued(self, kind: str) -> int:
        return sum(1 for task in self._queue if task.kind == kind)

    # ── Admission ─────────────────────────────────────────────────────

    def add(self, kind: str, context: Any, run_at: float | None = None) -> ScheduledTask | None:
        """Queue a task. Returns the task, or None when admission rejected it.

        Raises:
            UnknownTaskKind: No handler is registered for ``kind``.
        """
        handler = self._handlers.get(kind)
        if handler is None:
            raise UnknownTaskKind(kind)

        if self.queued(kind) >= self.limit(kind):
            logger.debug(f"Scheduler: '{kind}' queue full ({self.limit(kind)}), dropping")
            return None
        if not handler.check(context):
            logger.debug(f"Scheduler: '{kind}' check rejected the task")
            return None

        task = ScheduledTask(
            id=uuid.uuid4().hex[:8],
            run_at=self._clock() if run_at is None else run_at,
            kind=kind,
            context=context,
        )
        # insort_right keeps equal run_at values in arrival order
        bisect.insort_right(self._queue, task, key=lambda t: t.run_at)
        self._idle.clear()
        logger.debug(f"Scheduler: queued {kind} task {task.id} (depth {len(self._queue)})")
        self._rearm()
        return task

    # ── Timer ─────────────────────────────────────────────────────────

    def _rearm(self) -> None:
        """Point the single timer at the soonest task, or disarm it."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._current is not None:
            return  # re-armed when the running task finishes
        if not self._queue:
            self._idle.set()
            return
        delay = max(0.0, self._queue[0].run_at - self._clock())
        self._timer = asyncio.get_running_loop().call_later(delay, self._wake)

    def _wake(self) -> None:
        self._timer = None
        if self._current is not None or not self._queue:
            return
        # Removed and marked current synchronously so no other wake can pick it
        task = self._queue.pop(0)
        self._current = task
        self._runner = asyncio.create_task(self._execute(task))

    async def _execute(self, task: ScheduledTask) -> None:
        handler = self._handlers[task.kind]
        started = self._clock()
        try:
            logger.debug(f"Scheduler: running {task.kind} task {task.id}")
            await handler.run(task.context)
            logger.info(f"Scheduler: {task.kind} task {task.id} done in {self._clock() - started:.1f}s")
        except Exception:
            logger.exception(f"Scheduler: {task.kind} task {task.id} failed")
        finally:
            self._current = None
            self._runner = None
            self._rearm()

    # ── Lifecycle ─────────────────────────────────────────────────────

    async def join(self) -> None:
        """Wait until the queue is empty and nothing is running."""
        await self._idle.wait()

    def stop(self) -> None:
        """Disarm the timer and drop everything still queued."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        dropped = len(self._queue)
        self._queue.clear()
        if self._current is None:
            self._idle.set()
        if dropped:
            logger.info(f"Scheduler: stopped, dropped {dropped} queued tasks")
