# -*- coding: utf-8 -*-
"""
Peer-side helpers: talk to a running kgrip server the way the host
application does.

A DEALER socket is connected to the server's bound DEALER; commands are
sent as `{"inputData": {"cmd": ...}}` and statuses come back as
`{"outputData": {"message": ...}}`.

Examples
--------
```python
from kgrip.server.client import open_connection, send_command, wait_for_status
conn = open_connection("127.0.0.1", 5555)
send_command(conn, "measureStart")
finish = wait_for_status(conn, "measure_finish", timeout=40)
close_connection(conn)
```
"""

# ============================================================================

from __future__ import annotations

from dataclasses import dataclass
from timeit import default_timer as timer
from typing import Any, Optional

import simplejson as json
import zmq
from loguru import logger

from kgrip.types import CommsError
from kgrip.util import DEFAULT_HOST_ADDR, DEFAULT_PORT, DEFAULT_TIMEOUT, format_error_response

# ============================================================================


@dataclass
class ClientConnection:
    context: zmq.Context
    socket: zmq.Socket
    host: str
    port: int


def open_connection(host: str = DEFAULT_HOST_ADDR, port: int = DEFAULT_PORT) -> ClientConnection:
    """Connect a DEALER socket to the server.

    Raises
    ------
    CommsError
        If the socket could not be created or connected.
    """
    logger.info("Attempting connection to server on {}:{}.", host, port)
    try:
        context = zmq.Context()
        socket = context.socket(zmq.DEALER)
        socket.connect(f"tcp://{host}:{port}")
    except Exception:
        logger.exception("Error during connection.")
        raise CommsError(f"Error during connection: {format_error_response()}")
    return ClientConnection(context, socket, host, port)


def close_connection(client_connection: ClientConnection):
    logger.info("Closing connection.")
    try:
        client_connection.socket.setsockopt(zmq.LINGER, 0)
        client_connection.socket.close()
    except zmq.ZMQError as e:
        logger.debug("Error closing socket: {}", e)
    try:
        client_connection.context.term()
    except Exception as e:
        logger.debug("Error terminating ZMQ context: {}", e)


# ============================================================================


def send_command(client_connection: ClientConnection, cmd: str, **input_data: Any):
    """Send one inbound command; extra keyword arguments go into `inputData`."""
    message = {"inputData": {"cmd": cmd, **input_data}}
    logger.debug("*REQUEST* (client->): {}", message)
    client_connection.socket.send(json.dumps(message).encode("utf-8"))


def receive_status(
    client_connection: ClientConnection, timeout: float = DEFAULT_TIMEOUT
) -> Optional[dict]:
    """Next status from the server, or None if nothing arrived in `timeout` s."""
    if not client_connection.socket.poll(int(1000 * timeout), zmq.POLLIN):
        return None
    raw = client_connection.socket.recv_multipart()[-1]
    try:
        data = json.loads(raw.decode("utf-8"))
    except ValueError:
        logger.exception("Status unpacking error:")
        return None
    status = data.get("outputData") if isinstance(data, dict) else None
    logger.debug("*STATUS* (client<-): {}", status)
    return status


def collect_statuses(client_connection: ClientConnection, duration: float) -> list[dict]:
    """Every status received within `duration` seconds."""
    statuses = []
    t0 = timer()
    while (remaining := duration - (timer() - t0)) > 0:
        status = receive_status(client_connection, remaining)
        if status is not None:
            statuses.append(status)
    return statuses


def wait_for_status(
    client_connection: ClientConnection, message: str, timeout: float = DEFAULT_TIMEOUT
) -> dict:
    """Block until a status named `message` arrives, skipping others.

    Raises
    ------
    TimeoutError
        If it does not arrive within `timeout` seconds.
    """
    t0 = timer()
    while (remaining := timeout - (timer() - t0)) > 0:
        status = receive_status(client_connection, remaining)
        if status is not None and status.get("message") == message:
            return status
    raise TimeoutError(f"Status {message} not received within {timeout} s")
