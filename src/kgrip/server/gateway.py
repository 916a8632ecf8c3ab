# -*- coding: utf-8 -*-
"""
Routing between the peer channel, the controller and the display.

Inbound: JSON frames `{"inputData": {"cmd": <command>, ...}}` are decoded
into an `InboundMessage` and dispatched through `get_router_map()`.

Outbound: every `Status` the controller produces goes through
`MessagingGateway.publish`, which hands the status dict to the display and
queues a `zeromqSendMessage` job that writes `{"outputData": <status>}` to the
socket. The queue runs with concurrency 1 so sends never interleave.
"""

# ============================================================================

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

import simplejson as json
import zmq
import zmq.asyncio
from loguru import logger

from kgrip.server.queue import JobQueue
from kgrip.types import (
    CONSTS,
    AppHide,
    AppShow,
    HideGauge,
    InboundMessage,
    ShowGauge,
    Status,
)

if TYPE_CHECKING:
    from kgrip.meas import DeviceController

# ============================================================================

Display = Callable[[dict], Any]


def log_display(payload: dict):
    """Display used when no GUI is attached: log each status."""
    logger.info("*DISPLAY* {}", payload)


def encode_outbound(payload: dict) -> bytes:
    return json.dumps({"outputData": payload}, use_decimal=True).encode("utf-8")


def decode_inbound(raw: bytes | str) -> InboundMessage:
    """Raises ValueError on anything that is not an `inputData` object."""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    data = json.loads(raw)
    if not isinstance(data, dict) or not isinstance(data.get("inputData"), dict):
        raise ValueError(f"Not an inbound command message: {raw!r}")
    return InboundMessage.from_dict(data)


# ============================================================================


class MessagingGateway:
    """The only path statuses take to the outside world.

    Parameters
    ----------
    socket : zmq.asyncio.Socket, optional
        Bound DEALER socket. Without one, statuses only reach the display.
    display : Callable[[dict], Any], optional
        Receives each status as a dict.
    queue : JobQueue, optional
        Outbound send queue; a concurrency-1, zero-retry-delay queue by default.
    """

    def __init__(
        self,
        socket: Optional[zmq.asyncio.Socket] = None,
        display: Optional[Display] = None,
        queue: Optional[JobQueue] = None,
    ):
        self.socket = socket
        self.display = display or log_display
        self.queue = queue or JobQueue(concurrency=1, retry_delay=0)
        self.queue.process(CONSTS.JOB.SEND_STATUS, self._send_status)
        self.controller: Optional[DeviceController] = None
        self.shutdown_requested = False

    def attach(self, controller: DeviceController):
        self.controller = controller

    # ----------------------------------------------------------------------------------
    # outbound

    def publish(self, status: Status):
        payload = status.to_dict()
        logger.debug("*STATUS* (server->): {}", payload)
        try:
            self.display(payload)
        except Exception:
            logger.exception("Error updating display with {}", payload)
        if self.socket is not None:
            self.queue.add(CONSTS.JOB.SEND_STATUS, payload)

    async def _send_status(self, payload: dict):
        logger.trace("*SEND* (server->): {}", payload)
        await self.socket.send(encode_outbound(payload))

    # ----------------------------------------------------------------------------------
    # inbound

    def get_router_map(self) -> dict[str, Callable[[InboundMessage], Awaitable[None]]]:
        return {
            CONSTS.CMD.MEASURE_START: self.handle_measure_start,
            CONSTS.CMD.MEASURE_SAMPLING_ON: self.handle_measure_sampling_on,
            CONSTS.CMD.MEASURE_STOP: self.handle_measure_stop,
            CONSTS.CMD.APP_HIDE: self.handle_measure_stop,
            CONSTS.CMD.APP_SHOW: self.handle_app_show,
            CONSTS.CMD.SHOW_GAUGE: self.handle_show_gauge,
            CONSTS.CMD.HIDE_GAUGE: self.handle_hide_gauge,
        }

    async def handle_message(self, raw: bytes | str):
        try:
            message = decode_inbound(raw)
        except ValueError:
            logger.exception("Inbound message unpacking error:")
            return
        logger.info("*REQUEST* (server<-): {}", message.input_data)

        cmd = message.cmd
        if cmd is None:
            logger.error("Inbound message without cmd: {}", message.input_data)
            return
        handler_func = self.get_router_map().get(cmd)
        if handler_func is None:
            logger.warning("Unknown command: {}", cmd)
            return
        try:
            await handler_func(message)
        except Exception:
            logger.exception("Uncaught error handling {}.", cmd)

    async def listen(self):
        """Receive and route inbound frames until shutdown."""
        logger.info("Gateway listening")
        while not self.shutdown_requested:
            frames = await self.socket.recv_multipart()
            # a ROUTER peer prefixes identity frames, the payload is always last
            await self.handle_message(frames[-1])
        logger.info("Gateway listen loop exiting due to shutdown request")

    async def close(self):
        self.shutdown_requested = True
        await self.queue.close()

    # ----------------------------------------------------------------------------------
    # handlers

    async def handle_measure_start(self, message: InboundMessage):
        await self.controller.measure_start(message.input_data)

    async def handle_measure_sampling_on(self, message: InboundMessage):
        await self.controller.start_measure()

    async def handle_measure_stop(self, message: InboundMessage):
        await self.controller.measure_stop(AppHide())

    async def handle_app_show(self, message: InboundMessage):
        await self.controller.measure_stop(AppShow())

    async def handle_show_gauge(self, message: InboundMessage):
        self.publish(ShowGauge())

    async def handle_hide_gauge(self, message: InboundMessage):
        self.publish(HideGauge())


async def flush(gateway: MessagingGateway, timeout: float = 1.0):
    """Wait for queued outbound sends to finish."""
    await asyncio.wait_for(gateway.queue.join(), timeout)
