"""
Hemi-Sync - Control Loop
Cooperative fixed-cadence scheduler for the control context. Everything it
runs (smoother pump, automation tick, visual frames) runs on the caller's
thread, one task at a time.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from logging_utils import log_event


@dataclass(eq=False)
class ScheduledTask:
    name: str
    interval_s: float
    callback: Callable[[], object]
    next_due: float
    cancelled: bool = False
    runs: int = field(default=0)


class ControlScheduler:
    def __init__(self, time_fn: Callable[[], float] = time.monotonic):
        self._time_fn = time_fn
        self._tasks: list[ScheduledTask] = []

    @property
    def tasks(self) -> list[ScheduledTask]:
        return [t for t in self._tasks if not t.cancelled]

    def now(self) -> float:
        return self._time_fn()

    def every(self, interval_s: float, callback: Callable[[], object], name: str = "task") -> ScheduledTask:
        interval_s = max(1e-4, float(interval_s))
        task = ScheduledTask(name=name, interval_s=interval_s, callback=callback,
                             next_due=self._time_fn() + interval_s)
        self._tasks.append(task)
        log_event("DEBUG", "Scheduler", "Task scheduled", name=name, interval_ms=f"{interval_s * 1000:.1f}")
        return task

    def cancel(self, task: Optional[ScheduledTask]) -> None:
        if task is None or task.cancelled:
            return
        task.cancelled = True
        self._tasks = [t for t in self._tasks if t is not task]
        log_event("DEBUG", "Scheduler", "Task cancelled", name=task.name)

    def cancel_all(self) -> None:
        for task in list(self._tasks):
            self.cancel(task)

    def run_pending(self, now: Optional[float] = None) -> int:
        """Run each due task once. Returns how many callbacks ran."""
        now = self._time_fn() if now is None else now
        ran = 0
        for task in list(self._tasks):
            if task.cancelled or task.next_due > now:
                continue
            task.next_due += task.interval_s
            if task.next_due <= now:
                # Fell behind: skip missed beats instead of bursting
                task.next_due = now + task.interval_s
            task.runs += 1
            task.callback()
            ran += 1
        return ran

    def run_for(self, duration_s: float, sleep_fn: Callable[[float], None] = time.sleep,
                resolution_s: float = 0.005) -> None:
        """Drive the loop from the host thread until ``duration_s`` elapses."""
        deadline = self._time_fn() + max(0.0, duration_s)
        while True:
            now = self._time_fn()
            if now >= deadline:
                return
            self.run_pending(now)
            pending = [t.next_due for t in self._tasks if not t.cancelled]
            wake = min(pending + [deadline])
            sleep_fn(max(0.0, min(resolution_s, wake - self._time_fn())))
