# -*- coding: utf-8 -*-
"""Timer scheduling primitives.

Every timer the controller uses (baseline confirm/cancel, overall deadline,
enumeration poll, session window, queue backoff) goes through a `Scheduler`.
In production this is the running asyncio loop (`LoopScheduler`); tests can
substitute a manual clock with the same `call_later` signature.

A `ScheduledTask` wraps the raw loop handle together with the generation it
was armed under and an optional captured value. Callbacks compare the task's
generation against their owner's current generation before acting, so a
callback that was already queued when its owner moved on does nothing.
"""

from __future__ import annotations

import asyncio
import itertools
from typing import Any, Callable, Optional, Protocol


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(
        self, delay: float, callback: Callable[..., Any], *args: Any
    ) -> Cancellable: ...


class LoopScheduler:
    """Schedules callbacks on the running asyncio event loop."""

    def call_later(self, delay: float, callback, *args) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(max(delay, 0.0), callback, *args)


_task_ids = itertools.count(1)


class ScheduledTask:
    """A cancellable, generation-tagged timer.

    Parameters
    ----------
    scheduler : Scheduler
        Where to arm the timer.
    delay : float
        Seconds until `callback` fires.
    callback : Callable[[ScheduledTask], None]
        Called with this task as its only argument.
    generation : int
        Owner's generation at arming time.
    value : Any, optional
        Value captured at arming time (e.g. a baseline candidate).
    name : str, optional
        Label used in logs.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        delay: float,
        callback: Callable[[ScheduledTask], None],
        generation: int = 0,
        value: Any = None,
        name: str = "",
    ):
        self.id = next(_task_ids)
        self.name = name or f"task-{self.id}"
        self.generation = generation
        self.value = value
        self.delay = delay
        self._callback = callback
        self._fired = False
        self._cancelled = False
        self._handle: Optional[Cancellable] = scheduler.call_later(delay, self._fire)

    def _fire(self):
        if self._cancelled or self._fired:
            return
        self._fired = True
        self._handle = None
        self._callback(self)

    def cancel(self):
        if self._cancelled or self._fired:
            return
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    @property
    def pending(self) -> bool:
        return not (self._cancelled or self._fired)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def __repr__(self):
        state = "pending" if self.pending else ("cancelled" if self._cancelled else "fired")
        return f"ScheduledTask({self.name}, gen={self.generation}, {state})"


def cancel_task(task: Optional[ScheduledTask]) -> None:
    """Cancel `task` if there is one. Returns nothing, tolerates None."""
    if task is not None:
        task.cancel()
