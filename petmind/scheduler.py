"""
Single-threaded run queue for the mind's periodic ticks and delayed actions.

Tasks live in a heap ordered by (due time, insertion order), so callbacks run
strictly one after another and in a deterministic order:

- ``schedule``: one-shot callback after a delay (e.g. the thinking delay)
- ``every``: periodic callback (memory decay, cognition, language state)
- ``cancel``: drop a task before it runs
- ``guard``: optional predicate checked just before each run; a false guard
  turns the run into a no-op (used to skip work while the agent is inactive)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from heapq import heappop, heappush
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass(order=True)
class ScheduledTask:
    due: float
    seq: int
    callback: Callable[[], object] = field(compare=False)
    interval: Optional[float] = field(default=None, compare=False)
    name: str = field(default="", compare=False)
    guard: Optional[Callable[[], bool]] = field(default=None, compare=False)
    cancelled: bool = field(default=False, compare=False)
    runs: int = field(default=0, compare=False)

    @property
    def periodic(self) -> bool:
        return self.interval is not None


class Scheduler:
    """Heap-backed run queue driven by an injected clock."""

    def __init__(self, clock):
        self.clock = clock
        self._queue: List[ScheduledTask] = []
        self._seq = 0

    def __len__(self) -> int:
        return sum(1 for task in self._queue if not task.cancelled)

    def _push(self, due: float, callback, interval=None, name: str = "", guard=None) -> ScheduledTask:
        self._seq += 1
        task = ScheduledTask(due=due, seq=self._seq, callback=callback,
                             interval=interval, name=name, guard=guard)
        heappush(self._queue, task)
        return task

    def schedule(self, delay_ms: float, callback: Callable[[], object],
                 name: str = "", guard: Optional[Callable[[], bool]] = None) -> ScheduledTask:
        """Run ``callback`` once, ``delay_ms`` from now."""
        return self._push(self.clock.now() + max(0.0, delay_ms), callback, name=name, guard=guard)

    def every(self, interval_ms: float, callback: Callable[[], object], name: str = "",
              guard: Optional[Callable[[], bool]] = None,
              first_delay_ms: Optional[float] = None) -> ScheduledTask:
        """Run ``callback`` every ``interval_ms``; first run after one interval by default."""
        if interval_ms <= 0:
            raise ValueError("interval must be positive")
        delay = interval_ms if first_delay_ms is None else first_delay_ms
        return self._push(self.clock.now() + delay, callback, interval=interval_ms, name=name, guard=guard)

    def cancel(self, task: Optional[ScheduledTask]) -> None:
        if task is not None:
            task.cancelled = True

    def cancel_all(self) -> None:
        for task in self._queue:
            task.cancelled = True
        self._queue.clear()

    def next_due(self) -> Optional[float]:
        while self._queue and self._queue[0].cancelled:
            heappop(self._queue)
        return self._queue[0].due if self._queue else None

    def _run(self, task: ScheduledTask) -> None:
        if task.guard is not None and not task.guard():
            logger.debug("Skipping task %s: guard is false", task.name or task.seq)
            return
        task.runs += 1
        try:
            task.callback()
        except Exception:
            logger.exception("Scheduled task %s failed", task.name or task.seq)

    def _pop_due(self, deadline: float) -> Optional[ScheduledTask]:
        due = self.next_due()
        if due is None or due > deadline:
            return None
        return heappop(self._queue)

    def run_pending(self) -> int:
        """Run every task that is due at the clock's current time."""
        now = self.clock.now()
        ran = 0
        task = self._pop_due(now)
        while task is not None:
            self._run(task)
            ran += 1
            if task.periodic and not task.cancelled:
                next_due = task.due + task.interval
                if next_due <= now:
                    # Missed runs are not replayed against a wall clock.
                    next_due = now + task.interval
                task.due = next_due
                self._seq += 1
                task.seq = self._seq
                heappush(self._queue, task)
            task = self._pop_due(now)
        return ran

    def advance(self, ms: float) -> int:
        """Advance a logical clock by ``ms``, running each task at its due time."""
        target = self.clock.now() + ms
        ran = 0
        task = self._pop_due(target)
        while task is not None:
            if task.due > self.clock.now():
                self.clock.set(task.due)
            self._run(task)
            ran += 1
            if task.periodic and not task.cancelled:
                task.due += task.interval
                self._seq += 1
                task.seq = self._seq
                heappush(self._queue, task)
            task = self._pop_due(target)
        self.clock.set(target)
        return ran
