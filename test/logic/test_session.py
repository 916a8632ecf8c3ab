from decimal import Decimal

import pytest
import simplejson as json

from kgrip.meas import MeasurementSession, format_weight, weight_from_sample
from kgrip.types import NoDataError

COEF = Decimal("0.01")
BASELINE = 3500


class Recorder:
    def __init__(self):
        self.started = 0
        self.samples = []
        self.elapsed = []

    def kwargs(self):
        return dict(
            on_started=self.on_started,
            on_sample=self.samples.append,
            on_elapsed=self.elapsed.append,
        )

    def on_started(self):
        self.started += 1


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def session(scheduler, recorder):
    return MeasurementSession(
        BASELINE,
        COEF,
        precision=2,
        trigger=Decimal("0.8"),
        ceiling=Decimal("90"),
        duration=5.0,
        scheduler=scheduler,
        **recorder.kwargs(),
    )


class TestWeight:
    def test_reference_value(self):
        assert weight_from_sample(3500, 3000, Decimal("0.000123"), 2) == Decimal("0.06")

    def test_absolute_difference(self):
        assert weight_from_sample(3000, 3500, COEF, 2) == Decimal("5.00")

    def test_round_half_up(self):
        # 0.125 -> 0.13, binary floats would give 0.12
        assert weight_from_sample(0, 125, Decimal("0.001"), 2) == Decimal("0.13")

    def test_never_negative(self):
        for value in (0, 1000, 3500, 6000, 65535):
            assert weight_from_sample(BASELINE, value, COEF, 2) >= 0

    def test_format(self):
        assert format_weight(Decimal("12.25"), 1) == "12.3"
        assert format_weight(Decimal("12.24"), 1) == "12.2"
        assert format_weight(Decimal("3"), 1) == "3.0"


class TestMeasurementSession:
    def test_below_trigger_ignored(self, session, recorder, scheduler):
        session.feed(3450)  # 0.5
        session.feed(3420)  # 0.8, not above the trigger
        assert not session.started
        assert recorder.samples == []
        assert scheduler.pending == 0

    def test_window_opens_on_trigger(self, session, recorder, scheduler):
        assert session.feed(3000) == Decimal("5.00")
        assert session.started
        assert recorder.started == 1
        assert recorder.samples == [Decimal("5.00")]
        scheduler.advance(4.9)
        assert recorder.elapsed == []
        scheduler.advance(0.1)
        assert recorder.elapsed == [session]
        assert session.finished

    def test_max_non_decreasing(self, session):
        maxima = []
        for value in (3000, 2500, 2800, 1500, 2000, 3300):
            session.feed(value)
            maxima.append(session.max_weight)
        assert maxima == sorted(maxima)
        assert session.max_weight == Decimal("20.00")

    def test_ceiling_discarded(self, scheduler):
        recorder = Recorder()
        big = MeasurementSession(
            BASELINE,
            Decimal("1"),
            precision=2,
            trigger=Decimal("0.8"),
            ceiling=Decimal("90"),
            duration=5.0,
            scheduler=scheduler,
            **recorder.kwargs(),
        )
        assert big.feed(3400) is None  # 100 >= ceiling
        assert big.started  # the window still opens
        assert big.feed(3450) == Decimal("50.00")
        assert big.weights == [Decimal("50.00")]
        assert recorder.samples == [Decimal("50.00")]

    def test_summary(self, session):
        for value in (3000, 2500, 3250):
            session.feed(value)
        summary = session.summary()
        assert summary.weights == (Decimal("5.00"), Decimal("10.00"), Decimal("2.50"))
        assert summary.max_weight == Decimal("10.00")
        assert summary.average == Decimal("17.50") / 3
        assert json.loads(summary.raw_measures()) == [5.0, 10.0, 2.5]

    def test_no_data(self, session):
        with pytest.raises(NoDataError):
            session.summary()

    def test_frozen_after_elapsed(self, session, scheduler, recorder):
        session.feed(3000)
        scheduler.advance(5.0)
        assert session.feed(2000) is None
        assert recorder.samples == [Decimal("5.00")]

    def test_close_cancels_window(self, session, scheduler, recorder):
        session.feed(3000)
        session.close()
        scheduler.advance(10)
        assert recorder.elapsed == []
