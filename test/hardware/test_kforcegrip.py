import asyncio
import dataclasses

import pytest
import pytest_asyncio

import kgrip.util
from kgrip.device import KForceGrip
from kgrip.device.codec import decode_coefficient, decode_sample
from kgrip.meas import DeviceController
from kgrip.types import COEFFICIENT_LENGTH, Command
from kgrip.util import TEST_LOGLEVEL


@pytest.fixture(autouse=True)
def server_log():
    kgrip.util.start_server_log(log_to_file=True, log_level=TEST_LOGLEVEL)
    yield
    kgrip.util.shutdown_log()


@pytest_asyncio.fixture
async def grip(grip_path, grip_config):
    grip = KForceGrip(grip_path, baud_rate=grip_config.baud_rate)
    ok, msg = grip.open()
    assert ok, msg
    try:
        yield grip
    finally:
        await grip.write_command(Command.SAMPLING_OFF)
        grip.close()


@pytest.mark.hardware
class TestKForceGrip:
    @pytest.mark.asyncio
    async def test_read_coefficient(self, grip, grip_config):
        await grip.write_command(Command.SAMPLING_OFF)
        await asyncio.sleep(0.2)
        grip.reset_input_buffer()
        await grip.write_command(Command.GET_COEFFICIENT)
        raw = await grip.read_exact(COEFFICIENT_LENGTH, timeout=1.0)
        assert len(raw) == COEFFICIENT_LENGTH
        assert decode_coefficient(raw) > 0

    @pytest.mark.asyncio
    async def test_stream_samples(self, grip):
        await grip.write_command(Command.SAMPLING_ON)
        values = []
        for _ in range(10):
            frame = await asyncio.wait_for(grip.read_frame(), 2.0)
            values.append(decode_sample(frame))
        assert all(v >= 0 for v in values)


@pytest.mark.hardware
@pytest.mark.slow
@pytest.mark.asyncio
async def test_measure_cycle_times_out_without_squeeze(grip_path, grip_config):
    """Nobody squeezes the grip, so the cycle ends with the overall timeout."""
    config = dataclasses.replace(grip_config, timeout=5000)
    statuses = []
    done = asyncio.Event()

    def emit(status):
        statuses.append(status.message)
        if status.is_terminal:
            done.set()

    controller = DeviceController(config, emit, persist=lambda record: True)
    try:
        await controller.measure_start({})
        await asyncio.wait_for(done.wait(), 15)
    finally:
        await controller.close()
    assert statuses[0] == "device_found"
    assert statuses[-1] in ("timeout", "measure_finish")
