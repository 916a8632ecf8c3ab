"""At-rest baseline detection.

While the hand is not gripping, the grip reports a magnitude above the
`baseline` threshold. A reading is only accepted as the baseline once it has
been seen above the threshold and `settle` seconds have passed without the
signal dropping below the threshold for a full `drop` seconds.

Two timers implement the debounce:

- confirm timer: armed by an above-threshold sample when none is pending.
  Captures that sample as the candidate baseline; firing confirms it.
- cancel timer: armed by a below-threshold sample when none is pending.
  Firing cancels the confirm timer and reports `baseline_stop`.

Any above-threshold sample cancels a pending cancel timer, so only an
uninterrupted drop aborts confirmation. Neither timer is re-armed while one of
its kind is pending. After a cancel timer fires, the stop is not reported
again until an above-threshold sample has been seen.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Optional

from loguru import logger

from kgrip.util.scheduling import ScheduledTask, Scheduler, cancel_task


class BaselineState(Enum):
    IDLE = "IDLE"
    AWAITING_CONFIRMATION = "AWAITING_CONFIRMATION"
    CANCELLING = "CANCELLING"
    CONFIRMED = "CONFIRMED"


class BaselineDetector:
    """Debounce sub-state-machine fed one decoded magnitude at a time.

    Parameters
    ----------
    threshold : int
        Raw magnitude the at-rest reading must exceed.
    settle : float
        Seconds an above-threshold candidate must survive to be confirmed.
    drop : float
        Seconds a below-threshold run must last to abort confirmation.
    scheduler : Scheduler
        Timer source.
    on_confirmed : Callable[[int], None]
        Called once with the confirmed baseline.
    on_stopped : Callable[[], None]
        Called each time a pending confirmation is aborted by a sustained drop.
    """

    def __init__(
        self,
        threshold: int,
        settle: float,
        drop: float,
        scheduler: Scheduler,
        on_confirmed: Callable[[int], None],
        on_stopped: Callable[[], None],
    ):
        self.threshold = threshold
        self.settle = settle
        self.drop = drop
        self._scheduler = scheduler
        self._on_confirmed = on_confirmed
        self._on_stopped = on_stopped

        self._generation = 0
        self._confirm: Optional[ScheduledTask] = None
        self._cancel: Optional[ScheduledTask] = None
        self._stop_reported = False
        self._closed = False
        self.baseline: Optional[int] = None

    @property
    def state(self) -> BaselineState:
        if self.baseline is not None:
            return BaselineState.CONFIRMED
        if self._cancel is not None:
            return BaselineState.CANCELLING
        if self._confirm is not None:
            return BaselineState.AWAITING_CONFIRMATION
        return BaselineState.IDLE

    @property
    def candidate(self) -> Optional[int]:
        return self._confirm.value if self._confirm is not None else None

    def feed(self, value: int) -> None:
        if self._closed or self.baseline is not None:
            return

        if value > self.threshold:
            self._stop_reported = False
            if self._cancel is not None:
                logger.trace("Drop interrupted by {}", value)
                self._cancel.cancel()
                self._cancel = None
            if self._confirm is None:
                logger.info("Potential baseline: {} (threshold {})", value, self.threshold)
                self._confirm = ScheduledTask(
                    self._scheduler,
                    self.settle,
                    self._confirm_fired,
                    generation=self._generation,
                    value=value,
                    name="baseline-confirm",
                )
        elif value < self.threshold:
            if self._cancel is None and not self._stop_reported:
                self._cancel = ScheduledTask(
                    self._scheduler,
                    self.drop,
                    self._cancel_fired,
                    generation=self._generation,
                    name="baseline-cancel",
                )

    def close(self) -> None:
        """Drop both timers; later samples and stale callbacks are ignored."""
        self._closed = True
        self._generation += 1
        cancel_task(self._confirm)
        cancel_task(self._cancel)
        self._confirm = None
        self._cancel = None

    def _stale(self, task: ScheduledTask) -> bool:
        if self._closed or task.generation != self._generation:
            logger.warning("Ignoring stale {}", task)
            return True
        return False

    def _confirm_fired(self, task: ScheduledTask) -> None:
        if self._stale(task) or task is not self._confirm:
            return
        self._confirm = None
        cancel_task(self._cancel)
        self._cancel = None
        self._generation += 1
        self.baseline = task.value
        logger.info("Baseline ok: {}", self.baseline)
        self._on_confirmed(self.baseline)

    def _cancel_fired(self, task: ScheduledTask) -> None:
        if self._stale(task) or task is not self._cancel:
            return
        self._cancel = None
        cancel_task(self._confirm)
        self._confirm = None
        self._generation += 1
        self._stop_reported = True
        logger.info("Baseline stop")
        self._on_stopped()
