# -*- coding: utf-8 -*-
"""
The kgrip server process.

`start_server` sets up logging, loads config.json and the persisted state,
binds the ZeroMQ DEALER socket the peer talks to, wires a `DeviceController`
to a `MessagingGateway` and runs the gateway's listen loop until cancelled.
"""
# ============================================================================

import asyncio
from datetime import datetime
from typing import Callable, Optional

import zmq
import zmq.asyncio
from loguru import logger
from setproctitle import setproctitle

# ============================================================================
import kgrip
import kgrip.util
from kgrip.device import MOCK_PORT, Device, MockKForceGrip
from kgrip.meas import DeviceController
from kgrip.server.gateway import Display, MessagingGateway
from kgrip.types import GripConfig
from kgrip.util.settings import load_config, load_state

# ============================================================================


def mock_finder(vendor_id: str, product_id: str) -> str:
    return MOCK_PORT


def mock_device_factory(path: str, config: GripConfig) -> Device:
    return MockKForceGrip(path, auto_stream=True)


def build_server(
    config: GripConfig,
    socket: Optional[zmq.asyncio.Socket] = None,
    display: Optional[Display] = None,
    state: Optional[dict] = None,
    mock: bool = False,
    **controller_kwargs,
) -> tuple[MessagingGateway, DeviceController]:
    """Wire a gateway and a controller together (no sockets are opened)."""
    gateway = MessagingGateway(socket=socket, display=display)
    if mock:
        controller_kwargs.setdefault("finder", mock_finder)
        controller_kwargs.setdefault("device_factory", mock_device_factory)
    controller = DeviceController(config, gateway.publish, state=state, **controller_kwargs)
    gateway.attach(controller)
    return gateway, controller


# ============================================================================


async def start_server(
    config_path: Optional[str] = None,
    state_path: Optional[str] = None,
    log_to_file: bool = True,
    log_to_stdout: bool = False,
    log_path: str = "",
    clear_prev_log: bool = True,
    log_level: Optional[str] = None,
    mock: bool = False,
    display: Optional[Callable[[dict], None]] = None,
):
    timestamp = datetime.now().strftime("%Y-%m-%d_%H:%M:%S")
    setproctitle(f"kgrip-server_{timestamp}")

    config = load_config(config_path)
    kgrip.util.start_server_log(
        log_to_file=log_to_file,
        log_to_stdout=log_to_stdout or config.debug,
        log_path=log_path or config.log_file_path,
        clear_prev=clear_prev_log,
        log_level=log_level or kgrip.util.level_from_debug_level(config.debug_level),
    )
    logger.info("kgrip server v{} starting", kgrip.__version__)
    state = load_state(state_path)

    try:
        context = zmq.asyncio.Context()
        socket = context.socket(zmq.DEALER)
        socket.bind(config.socket.endpoint)  # bind on server side
    except Exception as e:
        logger.exception("Error opening server-side connection.")
        raise e
    logger.info("ZeroMQ listening on {}", config.socket.endpoint)

    gateway, controller = build_server(
        config, socket=socket, display=display, state=state, mock=mock
    )
    try:
        await gateway.listen()
    except asyncio.CancelledError:
        logger.info("Server cancelled, shutting down")
    finally:
        await controller.close()
        await gateway.close()
        socket.setsockopt(zmq.LINGER, 0)
        socket.close()
        context.term()
        kgrip.util.shutdown_log()
