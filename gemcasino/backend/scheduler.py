"""Cooperative tick scheduler.

Timed game steps (dealer draws, rain countdown, rain display) are queued here
instead of sleeping, so each intermediate state is observable. Tests drive a
``ManualClock`` through ``advance``; the server calls ``run_due`` from an
APScheduler interval job against the real clock.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass, field
from typing import Protocol

logger = logging.getLogger(__name__)


class Clock(Protocol):
    def now(self) -> float:
        """Seconds on a monotonic timeline."""


class MonotonicClock:
    def now(self) -> float:
        return time.monotonic()


class ManualClock:
    def __init__(self, start: float = 0.0) -> None:
        self._now = start

    def now(self) -> float:
        return self._now

    def set(self, value: float) -> None:
        if value < self._now:
            raise ValueError("ManualClock cannot move backwards")
        self._now = value


@dataclass(eq=False)
class ScheduledTask:
    due: float
    callback: Callable[[], None]
    interval: float | None = None
    owner: Hashable | None = None
    cancelled: bool = field(default=False)

    def cancel(self) -> None:
        self.cancelled = True


class TickScheduler:
    def __init__(self, clock: Clock | None = None) -> None:
        self.clock = clock if clock is not None else MonotonicClock()
        self._queue: list[tuple[float, int, ScheduledTask]] = []
        self._sequence = itertools.count()

    def now(self) -> float:
        return self.clock.now()

    def call_later(self, delay: float, callback: Callable[[], None], owner: Hashable | None = None) -> ScheduledTask:
        if delay < 0:
            raise ValueError("delay must not be negative")
        task = ScheduledTask(due=self.now() + delay, callback=callback, owner=owner)
        self._push(task)
        return task

    def call_every(
        self,
        interval: float,
        callback: Callable[[], None],
        owner: Hashable | None = None,
    ) -> ScheduledTask:
        if interval <= 0:
            raise ValueError("interval must be positive")
        task = ScheduledTask(due=self.now() + interval, callback=callback, interval=interval, owner=owner)
        self._push(task)
        return task

    def cancel_owner(self, owner: Hashable) -> int:
        cancelled = 0
        for _, _, task in self._queue:
            if task.owner == owner and not task.cancelled:
                task.cancel()
                cancelled += 1
        if cancelled:
            logger.debug("cancelled %s pending tasks for %s", cancelled, owner)
        return cancelled

    def pending(self, owner: Hashable | None = None) -> int:
        return sum(1 for _, _, task in self._queue if not task.cancelled and (owner is None or task.owner == owner))

    def run_due(self) -> int:
        """Run every task due at the current time, in due order. Returns how many ran."""
        ran = 0
        now = self.now()
        while self._queue and self._queue[0][0] <= now:
            _, _, task = heapq.heappop(self._queue)
            if task.cancelled:
                continue
            if task.interval is not None:
                task.due += task.interval
                self._push(task)
            task.callback()
            ran += 1
        return ran

    def advance(self, seconds: float) -> int:
        """Move a ManualClock forward, firing each task at its own due time."""
        if not isinstance(self.clock, ManualClock):
            raise TypeError("advance() needs a ManualClock")
        target = self.clock.now() + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            self.clock.set(max(self.clock.now(), self._queue[0][0]))
            ran += self.run_due()
        self.clock.set(target)
        return ran

    def _push(self, task: ScheduledTask) -> None:
        heapq.heappush(self._queue, (task.due, next(self._sequence), task))
