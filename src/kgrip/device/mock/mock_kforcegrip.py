from __future__ import annotations

import asyncio
import math
import time
from typing import Iterable, Optional

import serial
from loguru import logger

from kgrip.device.codec import encode_sample
from kgrip.device.device import Device
from kgrip.types import Command

MOCK_PORT = "mock://kforcegrip"


class MockKForceGrip(Device):
    """In-memory stand-in for the grip.

    Records every command written, answers `GET_COEFFICIENT` with
    `coefficient_response` and hands out frames pushed with `feed_frame` /
    `feed_samples`. With `auto_stream=True` it plays a synthetic grip (rest,
    squeeze, release) each time sampling is switched on.
    """

    def __init__(
        self,
        port: str = MOCK_PORT,
        coefficient_response: bytes = b"010000",
        auto_stream: bool = False,
        stream_interval: float = 0.02,
        fail_open: bool = False,
        fail_writes: bool = False,
        open_delay: float = 0.0,
        write_delay: float = 0.0,
    ):
        super().__init__(port=port)
        self.port = port
        self.coefficient_response = coefficient_response
        self.auto_stream = auto_stream
        self.stream_interval = stream_interval
        self.fail_open = fail_open
        self.fail_writes = fail_writes
        # s, open() blocks (it runs in a worker thread), writes await
        self.open_delay = open_delay
        self.write_delay = write_delay

        self.written: list[Command] = []
        self.open_count = 0
        self.sampling = False
        self._connected = False
        self._pending = bytearray()
        self._frames: asyncio.Queue[bytes] = asyncio.Queue()
        self._stream_task: Optional[asyncio.Task] = None

    # NOTE no comms/setup required for mock.

    def open(self) -> tuple[bool, str]:
        if self.open_delay:
            time.sleep(self.open_delay)
        if self.fail_open:
            return False, f"Mock open failure on {self.port}"
        self._connected = True
        self.open_count += 1
        logger.info("Connected to K-Force Grip: MockKForceGrip")
        return True, "Connected to K-Force Grip: MockKForceGrip"

    def close(self):
        self._connected = False
        self.sampling = False
        if self._stream_task is not None:
            self._stream_task.cancel()
            self._stream_task = None
        logger.info("Disconnected from K-Force Grip: {}", "MockKForceGrip")

    def is_connected(self) -> bool:
        return self._connected

    async def write_command(self, command: Command) -> None:
        if not self._connected:
            raise serial.SerialException(f"Port {self.port} not open")
        if self.fail_writes:
            raise serial.SerialException(f"Mock write failure: {command.description}")
        await asyncio.sleep(self.write_delay)
        self.written.append(command)
        match command:
            case Command.GET_COEFFICIENT:
                self._pending.extend(self.coefficient_response)
            case Command.SAMPLING_ON:
                self.sampling = True
                if self.auto_stream and self._stream_task is None:
                    self._stream_task = asyncio.create_task(self._play_grip())
            case Command.SAMPLING_OFF | Command.DEVICE_OFF:
                self.sampling = False

    def reset_input_buffer(self) -> None:
        self._pending.clear()

    async def read_exact(self, n: int, timeout: float) -> bytes:
        await asyncio.sleep(0)
        out = bytes(self._pending[:n])
        del self._pending[:n]
        return out

    async def read_frame(self) -> bytes:
        return await self._frames.get()

    # ------------------------------------------------------------------
    # test / dry-run helpers

    def feed_frame(self, frame: bytes) -> None:
        self._frames.put_nowait(frame)

    def feed_samples(self, values: Iterable[int]) -> None:
        for value in values:
            self.feed_frame(encode_sample(value))

    def commands_sent(self) -> list[Command]:
        return list(self.written)

    async def _play_grip(self, rest: int = 3500, squeeze: int = 1500):
        while self._connected:
            if not self.sampling:
                await asyncio.sleep(self.stream_interval)
                continue
            # half at rest, then a squeeze and release
            for i in range(400):
                t = i / 400
                if 0.5 <= t < 0.875:
                    depth = math.sin((t - 0.5) / 0.375 * math.pi)
                    value = int(rest - (rest - squeeze) * depth)
                else:
                    value = rest
                if self.sampling:
                    self.feed_frame(encode_sample(value))
                await asyncio.sleep(self.stream_interval)
