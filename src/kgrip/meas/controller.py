"""The measurement controller.

State machine
-------------
```
IDLE --measure_start--> SEARCHING --device found--> CONNECTING --open ok-->
INITIALIZING --SAMPLING_ON sent--> AWAITING_BASELINE --baseline ok-->
MEASURING --window elapsed--> FINALIZING --> IDLE (port parked)

any state --deadline / I/O error / measure_stop--> ERROR_TEARDOWN --> IDLE
```

Each cycle (a `measure_start` or `start_measure`) gets a fresh
`ControllerSession` holding its timers, detector, capture and result record.
Timers are tagged with the session's cycle number; a callback whose cycle or
expected state no longer matches is ignored.

The serial connection outlives a cycle only after a successful capture: the
port is then left open with sampling off ("parked") together with its
coefficient and baseline, so `start_measure` can resume sampling without
running discovery and baseline detection again. Every other teardown closes
the port.
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Coroutine, Optional

import serial
from loguru import logger

from kgrip.device import Device, KForceGrip, decode_coefficient, decode_sample
from kgrip.meas.baseline import BaselineDetector
from kgrip.meas.session import MeasurementSession, format_weight
from kgrip.types import (
    COEFFICIENT_LENGTH,
    BaselineOk,
    BaselineStop,
    Command,
    DeviceFound,
    DeviceNotFound,
    ErrorStatus,
    GenericDeviceError,
    GenericPluginError,
    GripConfig,
    GripError,
    MeasureFinish,
    MeasureReceived,
    OverallTimeout,
    PortAlreadyOpen,
    ResultRecord,
    SamplingOn,
    Status,
    Timeout,
    seconds,
)
from kgrip.util import LoopScheduler, ScheduledTask, Scheduler, cancel_task
from kgrip.util.check_hw import find_serial_device
from kgrip.util.save import save_result

COEFFICIENT_READ_TIMEOUT = 0.5  # s, on top of samplingDelay


class ControllerState(Enum):
    IDLE = "IDLE"
    SEARCHING = "SEARCHING"
    CONNECTING = "CONNECTING"
    INITIALIZING = "INITIALIZING"
    AWAITING_BASELINE = "AWAITING_BASELINE"
    MEASURING = "MEASURING"
    FINALIZING = "FINALIZING"
    ERROR_TEARDOWN = "ERROR_TEARDOWN"


ACTIVE_STATES = (
    ControllerState.SEARCHING,
    ControllerState.CONNECTING,
    ControllerState.INITIALIZING,
    ControllerState.AWAITING_BASELINE,
    ControllerState.MEASURING,
    ControllerState.FINALIZING,
)


@dataclass
class Connection:
    """The open serial handle and the calibration read through it."""

    device: Device
    path: str
    coefficient: Optional[Decimal] = None
    baseline: Optional[int] = None
    reader: Optional[asyncio.Task] = None


_cycles = itertools.count(1)


@dataclass
class ControllerSession:
    """Everything scoped to one measurement cycle."""

    record: ResultRecord
    cycle: int = field(default_factory=lambda: next(_cycles))
    deadline: Optional[ScheduledTask] = None
    poll: Optional[ScheduledTask] = None
    detector: Optional[BaselineDetector] = None
    capture: Optional[MeasurementSession] = None
    device_path: Optional[str] = None
    poll_error: Optional[Exception] = None

    def cancel_timers(self):
        cancel_task(self.deadline)
        cancel_task(self.poll)
        self.deadline = None
        self.poll = None
        if self.detector is not None:
            self.detector.close()
        if self.capture is not None:
            self.capture.close()


def open_kforcegrip(path: str, config: GripConfig) -> Device:
    return KForceGrip(path, baud_rate=config.baud_rate)


class DeviceController:
    """Drives one K-Force Grip through discovery, calibration, baseline and
    capture, reporting each step as a `Status`.

    Parameters
    ----------
    config : GripConfig
        Instrument and timing configuration.
    emit : Callable[[Status], None]
        Receives every status the controller produces.
    device_factory : Callable[[str, GripConfig], Device], optional
        Builds the device for a discovered port path.
    finder : Callable[[str, str], str | None], optional
        Enumerates serial ports, returning the path matching vendor/product id.
    persist : Callable[[ResultRecord], Any], optional
        Stores the result record at the end of each cycle.
    scheduler : Scheduler, optional
        Timer source, the running loop by default.
    state : dict, optional
        Persisted record loaded at startup; its `inputData` seeds the first
        cycle's record.
    """

    def __init__(
        self,
        config: GripConfig,
        emit: Callable[[Status], None],
        *,
        device_factory: Callable[[str, GripConfig], Device] = open_kforcegrip,
        finder: Callable[[str, str], Optional[str]] = find_serial_device,
        persist: Optional[Callable[[ResultRecord], Any]] = None,
        scheduler: Optional[Scheduler] = None,
        state: Optional[dict] = None,
    ):
        self.config = config
        self._emit_cb = emit
        self._device_factory = device_factory
        self._finder = finder
        self._persist = persist or (lambda record: save_result(config.result_path, record))
        self._scheduler = scheduler or LoopScheduler()

        self._state = ControllerState.IDLE
        self._session: Optional[ControllerSession] = None
        self._connection: Optional[Connection] = None
        self._tasks: set[asyncio.Task] = set()
        self._tearing_down = False
        self._teardown_idle = asyncio.Event()
        self._teardown_idle.set()
        self._carried_input: dict = dict((state or {}).get("inputData") or {})

    # ----------------------------------------------------------------------------------
    # properties

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def session(self) -> Optional[ControllerSession]:
        return self._session

    @property
    def connection(self) -> Optional[Connection]:
        return self._connection

    @property
    def busy(self) -> bool:
        return self._state in ACTIVE_STATES or self._tearing_down

    # ----------------------------------------------------------------------------------
    # API (~ each has an inbound command associated)

    async def measure_start(self, input_data: Optional[dict] = None) -> None:
        """Begin a full cycle: discovery, connect, calibrate, baseline, capture."""
        if self.busy:
            logger.warning("measureStart ignored, cycle running in state {}", self._state)
            return
        self._session = self._new_session(input_data)

        if self._connection is not None:
            logger.error("Error: port already opened, wrong flow")
            await self._fail(
                PortAlreadyOpen(f"Port {self._connection.path} already opened, closing it")
            )
            return

        logger.info("Searching K-Grip...")
        self._set_state(ControllerState.SEARCHING)
        self._arm_deadline()
        self._arm_poll(0.0)

    async def start_measure(self) -> None:
        """Resume sampling on an already open port, skipping discovery and
        (when a baseline is known) baseline detection."""
        if self.busy:
            logger.warning("measureSamplingOn ignored, cycle running in state {}", self._state)
            return
        self._session = session = self._new_session(None)
        self._emit(SamplingOn())
        self._arm_deadline()

        connection = self._connection
        if connection is None or not connection.device.is_connected():
            await self._fail(GenericDeviceError("Port not opened, cannot start sampling"))
            return

        session.device_path = connection.path
        if connection.baseline is not None and connection.coefficient is not None:
            self._begin_capture(session, connection)
        else:
            self._begin_baseline(session)
        self._ensure_reader(connection)
        await self._guarded(self._send(Command.SAMPLING_ON))

    async def measure_stop(self, status: Optional[Status] = None) -> None:
        """Abort whatever is running and release the port.

        `status` is the one terminal status reported for the stop (e.g.
        `app_hide`); it is emitted even if nothing was running.
        """
        logger.info("Stop Measure")
        if self._session is None and self._connection is None:
            if status is not None:
                self._emit(status)
            return
        await self.teardown(status=status)

    async def close(self) -> None:
        """Full teardown for process shutdown."""
        await self.teardown()
        for task in list(self._tasks):
            task.cancel()

    async def teardown(
        self,
        error: Optional[GripError] = None,
        status: Optional[Status] = None,
        release: bool = True,
    ) -> None:
        """End the current cycle.

        Clears every timer, reports exactly one status (the given one, or one
        derived from `error`), switches sampling off, and unless
        `release=False` sends DEVICE_OFF and closes the port. The cycle's
        record is persisted and the controller returns to IDLE.

        A call made while another teardown runs waits for it, then applies
        to whatever is still live (e.g. releases a port the first one
        parked). With nothing live only `status` is emitted.
        """
        while self._tearing_down:
            logger.debug("Teardown already in progress, waiting")
            await self._teardown_idle.wait()
        session, connection = self._session, self._connection
        if session is None and connection is None and self._state is ControllerState.IDLE:
            if status is not None:
                self._emit(status)
            return

        self._tearing_down = True
        self._teardown_idle.clear()
        try:
            if release or error is not None:
                self._set_state(ControllerState.ERROR_TEARDOWN)
            self._cancel_tasks()
            if session is not None:
                session.cancel_timers()

            if error is not None:
                logger.error("{} (code {})", error.message, int(error.code))
                if session is not None:
                    session.record.add_error(error.code, error.message)
                if status is None:
                    status = self._status_for(error)
            if status is not None:
                self._emit(status)

            if connection is not None:
                await self._send_quietly(connection, Command.SAMPLING_OFF)
                if release or error is not None:
                    await self._release(connection)

            if session is not None:
                self._persist_record(session.record)
        finally:
            self._session = None
            self._tearing_down = False
            self._teardown_idle.set()
            self._set_state(ControllerState.IDLE)

    # ----------------------------------------------------------------------------------
    # discovery

    def _new_session(self, input_data: Optional[dict]) -> ControllerSession:
        carried, self._carried_input = self._carried_input, {}
        record = ResultRecord(
            hardware=self.config.hardware, input_data={**carried, **(input_data or {})}
        )
        session = ControllerSession(record=record)
        logger.debug("New controller session, cycle {}", session.cycle)
        return session

    def _arm_deadline(self):
        session = self._session
        cancel_task(session.deadline)
        session.deadline = ScheduledTask(
            self._scheduler,
            seconds(self.config.timeout),
            self._deadline_fired,
            generation=session.cycle,
            name="overall-deadline",
        )

    def _arm_poll(self, delay: float):
        session = self._session
        session.poll = ScheduledTask(
            self._scheduler,
            delay,
            self._poll_fired,
            generation=session.cycle,
            name="device-poll",
        )

    def _deadline_fired(self, task: ScheduledTask):
        if not self._is_current(task):
            return
        session = self._session
        if session.device_path is None:
            if session.poll_error is not None:
                error = GenericPluginError(f"Device enumeration failed: {session.poll_error}")
            else:
                error = DeviceNotFound()
        else:
            logger.error("Timeout, nobody showed up")
            error = OverallTimeout()
        self._spawn(self.teardown(error=error))

    def _poll_fired(self, task: ScheduledTask):
        if not self._is_current(task, ControllerState.SEARCHING):
            return
        logger.trace("Polling serial ports")
        self._spawn(self._poll_once(self._session))

    async def _poll_once(self, session: ControllerSession):
        try:
            path = await asyncio.to_thread(
                self._finder, self.config.vendor_id, self.config.product_id
            )
        except Exception as e:
            # recoverable, next tick retries until the deadline
            logger.warning("Device enumeration failed: {}", e)
            if self._is_session(session, ControllerState.SEARCHING):
                session.poll_error = e
                self._arm_poll(seconds(self.config.poll_interval))
            return

        if not self._is_session(session, ControllerState.SEARCHING):
            return
        session.poll_error = None
        if path is None:
            self._arm_poll(seconds(self.config.poll_interval))
            return

        logger.info("Found it on path: {}", path)
        session.poll = None
        session.device_path = path
        self._emit(DeviceFound())
        await self._connect(session, path)

    # ----------------------------------------------------------------------------------
    # connect & initialise

    async def _connect(self, session: ControllerSession, path: str):
        self._set_state(ControllerState.CONNECTING)
        if self._connection is not None:
            raise PortAlreadyOpen(f"Port {self._connection.path} already opened")

        device = self._device_factory(path, self.config)
        opening = asyncio.ensure_future(asyncio.to_thread(device.open))
        try:
            ok, msg = await asyncio.shield(opening)
        except asyncio.CancelledError:
            # the worker thread still finishes the open; nobody owns the handle
            opening.add_done_callback(lambda fut: self._close_orphan(device, path, fut))
            raise
        if not ok:
            raise GenericDeviceError(msg)
        if not self._is_session(session, ControllerState.CONNECTING):
            # torn down while opening
            device.close()
            return
        self._connection = Connection(device=device, path=path)
        logger.info("Connected")
        await self._initialize(session, self._connection)

    @staticmethod
    def _close_orphan(device: Device, path: str, opening: asyncio.Future):
        if opening.cancelled() or opening.exception() is not None:
            return
        ok, _ = opening.result()
        if ok:
            logger.info("Closing port {} opened after teardown", path)
            device.close()

    async def _initialize(self, session: ControllerSession, connection: Connection):
        self._set_state(ControllerState.INITIALIZING)
        await self._send(Command.SAMPLING_OFF)
        connection.device.reset_input_buffer()
        await self._send(Command.GET_COEFFICIENT)

        await asyncio.sleep(seconds(self.config.sampling_delay))
        if not self._is_session(session, ControllerState.INITIALIZING):
            return
        try:
            data = await connection.device.read_exact(
                COEFFICIENT_LENGTH, COEFFICIENT_READ_TIMEOUT
            )
        except (serial.SerialException, OSError) as e:
            raise GenericDeviceError(f"Error reading coefficient: {e}") from e
        connection.coefficient = decode_coefficient(data)
        logger.info("Coef: {}", connection.coefficient)

        await self._send(Command.SAMPLING_ON)
        if not self._is_session(session, ControllerState.INITIALIZING):
            return
        self._begin_baseline(session)
        self._ensure_reader(connection)

    def _ensure_reader(self, connection: Connection):
        if connection.reader is None or connection.reader.done():
            connection.reader = asyncio.create_task(self._read_frames(connection))

    async def _read_frames(self, connection: Connection):
        while connection is self._connection:
            try:
                frame = await connection.device.read_frame()
            except (serial.SerialException, OSError) as e:
                if connection is self._connection and not self._tearing_down:
                    self._spawn(self.teardown(error=GenericDeviceError(str(e))))
                return
            self._on_frame(frame)

    # ----------------------------------------------------------------------------------
    # frames

    def _on_frame(self, frame: bytes):
        try:
            value = decode_sample(frame)
        except GripError as e:
            if self._session is None:
                logger.warning("Dropping bad frame while idle: {}", e)
                return
            self._spawn(self.teardown(error=e))
            return

        session = self._session
        match self._state:
            case ControllerState.AWAITING_BASELINE:
                session.detector.feed(value)
            case ControllerState.MEASURING:
                session.capture.feed(value)
            case _:
                logger.trace("Frame {} ignored in state {}", value, self._state)

    # ----------------------------------------------------------------------------------
    # baseline

    def _begin_baseline(self, session: ControllerSession):
        logger.info("Wait to set baseline")
        session.detector = BaselineDetector(
            threshold=self.config.baseline,
            settle=seconds(self.config.baseline_time_setting),
            drop=seconds(self.config.baseline_time_not_set),
            scheduler=self._scheduler,
            on_confirmed=lambda baseline: self._baseline_confirmed(session, baseline),
            on_stopped=lambda: self._baseline_stopped(session),
        )
        self._set_state(ControllerState.AWAITING_BASELINE)

    def _baseline_confirmed(self, session: ControllerSession, baseline: int):
        if not self._is_session(session, ControllerState.AWAITING_BASELINE):
            return
        logger.info("Baseline ok, start measure: {}", baseline)
        self._connection.baseline = baseline
        self._emit(BaselineOk())
        # the cycle deadline keeps running until the trigger weight is reached
        self._begin_capture(session, self._connection)

    def _baseline_stopped(self, session: ControllerSession):
        if not self._is_session(session, ControllerState.AWAITING_BASELINE):
            return
        self._emit(BaselineStop())

    # ----------------------------------------------------------------------------------
    # capture

    def _begin_capture(self, session: ControllerSession, connection: Connection):
        session.capture = MeasurementSession(
            connection.baseline,
            connection.coefficient,
            precision=self.config.big_round,
            trigger=self.config.trigger_weight,
            ceiling=self.config.ceiling_weight,
            duration=seconds(self.config.duration),
            scheduler=self._scheduler,
            on_started=lambda: self._capture_started(session),
            on_sample=lambda weight: self._capture_sample(session, weight),
            on_elapsed=lambda capture: self._capture_elapsed(session),
        )
        self._set_state(ControllerState.MEASURING)

    def _capture_started(self, session: ControllerSession):
        if self._is_session(session, ControllerState.MEASURING):
            cancel_task(session.deadline)
            session.deadline = None

    def _capture_sample(self, session: ControllerSession, weight: Decimal):
        if not self._is_session(session, ControllerState.MEASURING):
            return
        display = format_weight(weight, self.config.display_digits)
        logger.info(
            "Weight: {} - WeightMax: {}",
            display,
            format_weight(session.capture.max_weight, self.config.display_digits),
        )
        self._emit(MeasureReceived(value=display))

    def _capture_elapsed(self, session: ControllerSession):
        if self._is_session(session, ControllerState.MEASURING):
            self._spawn(self._finalize(session))

    async def _finalize(self, session: ControllerSession):
        self._set_state(ControllerState.FINALIZING)
        summary = session.capture.summary()  # NoDataError -> teardown
        digits = self.config.display_digits
        output = session.record.output_data
        output.weight_max = format_weight(summary.max_weight, digits)
        output.weight_array = summary.raw_measures()
        output.weight_media = format_weight(summary.average, digits)

        logger.info("Baseline: {}", session.capture.baseline)
        logger.info("Coef: {}", session.capture.coefficient)
        logger.info("Num measures: {}", len(summary.weights))
        logger.info("WeightMax: {} Kg", output.weight_max)
        logger.info("WeightAVG: {} Kg", output.weight_media)

        finish = MeasureFinish(
            raw_measures=output.weight_array,
            avg=output.weight_media,
            max_weight=output.weight_max,
        )
        await self.teardown(status=finish, release=False)

    # ----------------------------------------------------------------------------------
    # helpers

    def _set_state(self, state: ControllerState):
        if state is not self._state:
            logger.info("Controller state: {} -> {}", self._state.value, state.value)
        self._state = state

    def _is_session(self, session: ControllerSession, *states: ControllerState) -> bool:
        if session is not self._session or self._tearing_down:
            return False
        return not states or self._state in states

    def _is_current(self, task: ScheduledTask, *states: ControllerState) -> bool:
        session = self._session
        if session is None or task.generation != session.cycle:
            logger.debug("Ignoring stale {}", task)
            return False
        return self._is_session(session, *states)

    def _emit(self, status: Status):
        try:
            self._emit_cb(status)
        except Exception:
            logger.exception("Error emitting status {}", status)

    @staticmethod
    def _status_for(error: GripError) -> Status:
        if isinstance(error, OverallTimeout):
            return Timeout()
        return ErrorStatus(code=int(error.code), description=error.message)

    async def _send(self, command: Command):
        connection = self._connection
        if connection is None:
            raise GenericDeviceError(f"Port Not Opened, cannot send {command.description}")
        try:
            await connection.device.write_command(command)
        except (serial.SerialException, OSError) as e:
            raise GenericDeviceError(
                f"Error on send command {command.description}: {e}"
            ) from e

    async def _send_quietly(self, connection: Connection, command: Command):
        try:
            await connection.device.write_command(command)
        except (serial.SerialException, OSError) as e:
            logger.warning("Could not send {} during teardown: {}", command.description, e)

    async def _release(self, connection: Connection):
        await self._send_quietly(connection, Command.DEVICE_OFF)
        await asyncio.sleep(seconds(self.config.port_close_delay))
        logger.info("Closing Port {}", connection.path)
        try:
            connection.device.close()
        except (serial.SerialException, OSError):
            logger.exception("Closing port {}", connection.path)
        if connection.reader is not None and connection.reader is not asyncio.current_task():
            connection.reader.cancel()
        if self._connection is connection:
            self._connection = None

    def _persist_record(self, record: ResultRecord):
        try:
            self._persist(record)
        except Exception:
            logger.exception("Error persisting result record")

    async def _fail(self, error: GripError):
        await self.teardown(error=error)

    async def _guarded(self, coro: Coroutine):
        """Run a step; a GripError tears the cycle down, anything else is
        reported as a plugin error."""
        try:
            await coro
        except GripError as e:
            await self._fail(e)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Unexpected error in controller step")
            await self._fail(GenericPluginError(str(e)))

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.create_task(self._guarded(coro))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _cancel_tasks(self):
        current = asyncio.current_task()
        for task in list(self._tasks):
            if task is not current:
                task.cancel()
