"""One bounded grip capture.

Weights are computed with `decimal.Decimal` and rounded once per sample
(half-up, like the rest of the weight formatting) so repeated arithmetic on
the stored values never drifts.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Optional

import simplejson as json
from loguru import logger

from kgrip.types import NoDataError
from kgrip.util.scheduling import ScheduledTask, Scheduler, cancel_task


def _quantum(digits: int) -> Decimal:
    return Decimal(1).scaleb(-digits)


def weight_from_sample(
    baseline: int, value: int, coefficient: Decimal, precision: int
) -> Decimal:
    """weight = round(|baseline - value| * coefficient, precision)"""
    raw = abs(Decimal(baseline) - Decimal(value)) * coefficient
    return raw.quantize(_quantum(precision), rounding=ROUND_HALF_UP)


def format_weight(weight: Decimal, digits: int) -> str:
    """Fixed-point string for display and the result record."""
    return str(weight.quantize(_quantum(digits), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class SessionSummary:
    weights: tuple[Decimal, ...]
    max_weight: Decimal
    average: Decimal

    def raw_measures(self) -> str:
        return json.dumps(list(self.weights), use_decimal=True, separators=(",", ":"))


class MeasurementSession:
    """Accumulates weights for one capture window.

    The window opens on the first weight above `trigger` and stays open for
    `duration` seconds. Only weights above the trigger and below `ceiling`
    are kept; anything at or above the ceiling is an out-of-range artifact
    and is dropped without closing the window.

    Parameters
    ----------
    baseline : int
        Confirmed at-rest magnitude.
    coefficient : Decimal
        Device scale factor.
    precision : int
        Decimal places each weight is rounded to.
    trigger, ceiling : Decimal
        Acceptance bounds (exclusive) on the weight.
    duration : float
        Window length in seconds.
    scheduler : Scheduler
        Timer source.
    on_started : Callable[[], None]
        Window opened.
    on_sample : Callable[[Decimal], None]
        A weight was accepted.
    on_elapsed : Callable[[MeasurementSession], None]
        Window closed; call `summary()` for the results.
    """

    def __init__(
        self,
        baseline: int,
        coefficient: Decimal,
        *,
        precision: int,
        trigger: Decimal,
        ceiling: Decimal,
        duration: float,
        scheduler: Scheduler,
        on_started: Callable[[], None],
        on_sample: Callable[[Decimal], None],
        on_elapsed: Callable[[MeasurementSession], None],
    ):
        self.baseline = baseline
        self.coefficient = coefficient
        self.precision = precision
        self.trigger = trigger
        self.ceiling = ceiling
        self.duration = duration
        self._scheduler = scheduler
        self._on_started = on_started
        self._on_sample = on_sample
        self._on_elapsed = on_elapsed

        self.weights: list[Decimal] = []
        self.max_weight = Decimal(0)
        self._window: Optional[ScheduledTask] = None
        self._started = False
        self._frozen = False

    @property
    def started(self) -> bool:
        return self._started

    @property
    def finished(self) -> bool:
        return self._frozen

    def weight_for(self, value: int) -> Decimal:
        return weight_from_sample(self.baseline, value, self.coefficient, self.precision)

    def feed(self, value: int) -> Optional[Decimal]:
        """Process one magnitude. Returns the weight if it was accepted."""
        if self._frozen:
            return None
        weight = self.weight_for(value)
        logger.trace("Sample {} -> weight {}", value, weight)
        if weight <= self.trigger:
            return None

        if not self._started:
            self._start()
        if weight >= self.ceiling:
            logger.debug("Discarding out of range weight {}", weight)
            return None

        self.weights.append(weight)
        if weight > self.max_weight:
            self.max_weight = weight
        self._on_sample(weight)
        return weight

    def _start(self):
        logger.info("Start measurement, window {} s", self.duration)
        self._started = True
        self._window = ScheduledTask(
            self._scheduler, self.duration, self._window_elapsed, name="measurement-window"
        )
        self._on_started()

    def _window_elapsed(self, task: ScheduledTask):
        if self._frozen or task is not self._window:
            return
        self._frozen = True
        self._window = None
        logger.info("Stop measurement, {} samples", len(self.weights))
        self._on_elapsed(self)

    def summary(self) -> SessionSummary:
        """Results of the window. Raises NoDataError if nothing was accepted."""
        if not self.weights:
            raise NoDataError()
        average = sum(self.weights, Decimal(0)) / len(self.weights)
        return SessionSummary(
            weights=tuple(self.weights), max_weight=self.max_weight, average=average
        )

    def close(self):
        """Freeze the session and drop its window timer."""
        self._frozen = True
        cancel_task(self._window)
        self._window = None
