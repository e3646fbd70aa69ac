from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

from .errors import FatalError

logger = logging.getLogger(__name__)

LAYOUT_REFRESH = "layout-refresh"
DATA_SYNC = "data-sync"


class Trigger(Enum):
    TIMER = "timer"
    MANUAL = "manual"


TaskBody = Callable[[Trigger], Awaitable[None]]


@dataclass(frozen=True)
class ScheduledTask:
    name: str
    period: float
    body: TaskBody
    singleton: bool = True


class Scheduler:
    """Runs named periodic task bodies, one execution at a time.

    Every execution, timer-driven or requested with ``run_now``, waits for the
    global gate, so at most ``max_concurrent`` bodies are ever in flight and
    waiters are served in arrival order. A singleton task additionally never
    overlaps itself; a timer firing while it is still queued or running is
    dropped.

    Task bodies handle their own recoverable errors. Anything else they raise
    is logged and swallowed, except ``FatalError`` which goes to ``on_fatal``.
    """

    def __init__(
        self,
        *,
        max_concurrent: int = 1,
        on_fatal: Callable[[FatalError], None] | None = None,
    ) -> None:
        self._gate = asyncio.Semaphore(max_concurrent)
        self._on_fatal = on_fatal
        self._tasks: dict[str, ScheduledTask] = {}
        self._task_locks: dict[str, asyncio.Lock] = {}
        self._outstanding: dict[str, int] = {}
        self._runners: list[asyncio.Task[None]] = []
        self._executions: set[asyncio.Task[None]] = set()
        self._active = 0
        self.peak_concurrency = 0

    def add(self, task: ScheduledTask) -> None:
        if task.name in self._tasks:
            raise ValueError(f"Task already registered: {task.name}")
        if task.period <= 0:
            raise ValueError(f"Task period must be positive: {task.name}")
        self._tasks[task.name] = task
        self._task_locks[task.name] = asyncio.Lock()
        self._outstanding[task.name] = 0

    def every(self, period: float, name: str, body: TaskBody, *, singleton: bool = True) -> ScheduledTask:
        task = ScheduledTask(name=name, period=period, body=body, singleton=singleton)
        self.add(task)
        return task

    def is_busy(self, name: str) -> bool:
        return self._outstanding.get(name, 0) > 0

    def start(self) -> None:
        if self._runners:
            return
        for task in self._tasks.values():
            self._runners.append(asyncio.create_task(self._timer(task), name=f"timer:{task.name}"))

    def run_now(self, name: str) -> asyncio.Task[None]:
        """Queue an immediate execution of ``name`` behind any in-flight run."""
        if name not in self._tasks:
            raise KeyError(name)
        return self._spawn(self._tasks[name], Trigger.MANUAL)

    async def stop(self) -> None:
        pending = [*self._runners, *self._executions]
        for t in pending:
            t.cancel()
        for t in pending:
            with contextlib.suppress(asyncio.CancelledError):
                await t
        self._runners.clear()
        self._executions.clear()

    async def _timer(self, task: ScheduledTask) -> None:
        while True:
            await asyncio.sleep(task.period)
            if task.singleton and self.is_busy(task.name):
                logger.debug("Skipping %s tick: previous run still pending", task.name)
                continue
            self._spawn(task, Trigger.TIMER)

    def _spawn(self, task: ScheduledTask, trigger: Trigger) -> asyncio.Task[None]:
        self._outstanding[task.name] += 1
        execution = asyncio.create_task(self._execute(task, trigger), name=f"run:{task.name}")
        self._executions.add(execution)
        execution.add_done_callback(self._executions.discard)
        return execution

    async def _execute(self, task: ScheduledTask, trigger: Trigger) -> None:
        try:
            lock = self._task_locks[task.name] if task.singleton else contextlib.nullcontext()
            async with lock:
                async with self._gate:
                    self._active += 1
                    self.peak_concurrency = max(self.peak_concurrency, self._active)
                    try:
                        await task.body(trigger)
                    except FatalError as e:
                        logger.error("Task %s hit a fatal error: %s", task.name, e)
                        if self._on_fatal is None:
                            raise
                        self._on_fatal(e)
                    except Exception:
                        logger.exception("Task %s failed", task.name)
                    finally:
                        self._active -= 1
        finally:
            self._outstanding[task.name] -= 1
