# Class for controlling the K-Force Grip dynamometer over USB serial
import asyncio
import time

import serial  # pyserial package
from loguru import logger

from kgrip.device.device import Device
from kgrip.device.codec import encode
from kgrip.types import BAUD_RATE, FRAME_LENGTH, Command
from kgrip.util import format_error_response


class KForceGrip(Device):
    """Serial link to one K-Force Grip, 8-N-1.

    Blocking pyserial calls are pushed to a worker thread so the event loop
    keeps running; writes are serialised by a lock so exactly one command is
    ever in flight.
    """

    port: str  # "/dev/ttyUSB0", "COM3" etc.
    required_config = {"port": str}

    def __init__(self, port: str, baud_rate: int = BAUD_RATE, read_timeout: float = 0.1):
        super().__init__(port=port)
        self.port = port
        self.baud_rate = baud_rate
        # read() returns at least this often so reader tasks can be cancelled
        self.read_timeout = read_timeout
        self.ser = None
        self._write_lock = asyncio.Lock()

    def open(self) -> tuple[bool, str]:
        """
        Opens the serial port connection to the grip.

        Returns:
            (success, message)
        """
        try:
            self.ser = serial.Serial(
                self.port,
                baudrate=self.baud_rate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=self.read_timeout,
            )
        except (serial.SerialException, OSError):
            logger.exception("Error opening K-Force Grip serial port.")
            self.ser = None
            return (
                False,
                f"Error opening K-Force Grip serial port: {format_error_response()}",
            )
        logger.info("Connected to K-Force Grip on port {}", self.port)
        return True, "Connected to K-Force Grip on port " + self.port

    def close(self):
        """
        Closes the connection to the grip.
        """
        if self.is_connected():
            self.ser.close()
            logger.info("Closed K-Force Grip port {}", self.port)
        self.ser = None

    def is_connected(self) -> bool:
        return self.ser is not None and self.ser.is_open

    def _write(self, data: bytes):
        self.ser.write(data)
        self.ser.flush()

    async def write_command(self, command: Command) -> None:
        if not self.is_connected():
            raise serial.SerialException(
                f"Port {self.port} not open, cannot send {command.description}"
            )
        async with self._write_lock:
            await asyncio.to_thread(self._write, encode(command))
        logger.debug("Command sent: {}", command.description)

    def reset_input_buffer(self) -> None:
        if self.is_connected():
            self.ser.reset_input_buffer()

    async def read_exact(self, n: int, timeout: float) -> bytes:
        """Read `n` bytes, or whatever arrived before `timeout` seconds."""
        buf = bytearray()
        deadline = time.monotonic() + timeout
        while len(buf) < n and time.monotonic() < deadline:
            chunk = await asyncio.to_thread(self.ser.read, n - len(buf))
            buf.extend(chunk)
        return bytes(buf)

    async def read_frame(self) -> bytes:
        """Wait for the next complete sample packet."""
        buf = bytearray()
        while len(buf) < FRAME_LENGTH:
            if not self.is_connected():
                raise serial.SerialException(f"Port {self.port} closed while reading")
            chunk = await asyncio.to_thread(self.ser.read, FRAME_LENGTH - len(buf))
            buf.extend(chunk)
        return bytes(buf)
