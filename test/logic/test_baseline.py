import pytest

from kgrip.meas import BaselineDetector, BaselineState
from kgrip.util import ScheduledTask, cancel_task

THRESHOLD = 3000
SETTLE = 3.0
DROP = 0.5


@pytest.fixture
def events():
    return []


@pytest.fixture
def detector(scheduler, events):
    return BaselineDetector(
        threshold=THRESHOLD,
        settle=SETTLE,
        drop=DROP,
        scheduler=scheduler,
        on_confirmed=lambda baseline: events.append(("confirmed", baseline)),
        on_stopped=lambda: events.append(("stopped",)),
    )


class TestScheduledTask:
    def test_fires_once(self, scheduler):
        fired = []
        task = ScheduledTask(scheduler, 1.0, fired.append, generation=3, value="x")
        assert task.pending
        scheduler.advance(1.0)
        assert fired == [task]
        assert task.value == "x" and task.generation == 3
        assert not task.pending

    def test_cancel(self, scheduler):
        fired = []
        task = ScheduledTask(scheduler, 1.0, fired.append)
        task.cancel()
        scheduler.advance(2.0)
        assert fired == []
        assert task.cancelled

    def test_cancel_task_tolerates_none(self):
        cancel_task(None)


class TestBaselineDetector:
    def test_confirms_after_settle(self, detector, scheduler, events):
        detector.feed(3500)
        assert detector.state is BaselineState.AWAITING_CONFIRMATION
        scheduler.advance(SETTLE - 0.01)
        assert events == []
        scheduler.advance(0.01)
        assert events == [("confirmed", 3500)]
        assert detector.state is BaselineState.CONFIRMED
        assert detector.baseline == 3500

    def test_captures_triggering_sample(self, detector, scheduler, events):
        detector.feed(3500)
        for value in (3600, 3700, 3550):
            scheduler.advance(0.5)
            detector.feed(value)
        scheduler.advance(SETTLE)
        assert events == [("confirmed", 3500)]

    def test_short_dip_does_not_cancel(self, detector, scheduler, events):
        detector.feed(3500)
        scheduler.advance(1.0)
        detector.feed(2000)
        assert detector.state is BaselineState.CANCELLING
        scheduler.advance(DROP / 2)
        detector.feed(3500)  # dip interrupted
        scheduler.advance(SETTLE)
        assert events == [("confirmed", 3500)]

    def test_sustained_drop_stops(self, detector, scheduler, events):
        detector.feed(3500)
        scheduler.advance(1.0)
        detector.feed(2000)
        scheduler.advance(DROP / 2)
        detector.feed(1900)  # does not re-arm the pending cancel timer
        scheduler.advance(DROP / 2)
        assert events == [("stopped",)]
        assert detector.state is BaselineState.IDLE
        scheduler.advance(SETTLE)
        assert events == [("stopped",)]

    def test_stop_reported_once_per_run(self, detector, scheduler, events):
        detector.feed(2000)
        scheduler.advance(DROP)
        detector.feed(2000)
        scheduler.advance(DROP * 4)
        assert events == [("stopped",)]
        # an above-threshold sample re-enables the report
        detector.feed(3500)
        detector.feed(2000)
        scheduler.advance(DROP)
        assert events == [("stopped",), ("stopped",)]

    def test_threshold_value_is_neutral(self, detector, scheduler, events):
        detector.feed(THRESHOLD)
        scheduler.advance(SETTLE * 2)
        assert events == []
        assert detector.state is BaselineState.IDLE

    def test_recovers_after_stop(self, detector, scheduler, events):
        detector.feed(2000)
        scheduler.advance(DROP)
        detector.feed(3400)
        scheduler.advance(SETTLE)
        assert events == [("stopped",), ("confirmed", 3400)]

    def test_close_drops_timers(self, detector, scheduler, events):
        detector.feed(3500)
        detector.feed(2000)
        detector.close()
        scheduler.advance(SETTLE * 2)
        assert events == []
        detector.feed(3500)
        assert scheduler.pending == 0

    def test_ignores_samples_after_confirm(self, detector, scheduler, events):
        detector.feed(3500)
        scheduler.advance(SETTLE)
        detector.feed(1000)
        scheduler.advance(SETTLE)
        assert events == [("confirmed", 3500)]
