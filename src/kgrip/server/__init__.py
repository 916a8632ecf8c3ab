"""
The messaging side of kgrip: the outbound job queue, the gateway routing
commands and statuses, the server process and peer-side client helpers.

See Also
--------
kgrip.server.gateway : Command routing and status fan-out
kgrip.server.queue : Priority job queue with retries
kgrip.server.server : `start_server`
kgrip.server.client : Peer-side helpers
"""

from .client import (
    ClientConnection,
    close_connection,
    collect_statuses,
    open_connection,
    receive_status,
    send_command,
    wait_for_status,
)
from .gateway import MessagingGateway, decode_inbound, encode_outbound, log_display
from .queue import Job, JobQueue, JobStatus
from .server import build_server, start_server

__all__ = [
    "ClientConnection",
    "close_connection",
    "collect_statuses",
    "open_connection",
    "receive_status",
    "send_command",
    "wait_for_status",
    "MessagingGateway",
    "decode_inbound",
    "encode_outbound",
    "log_display",
    "Job",
    "JobQueue",
    "JobStatus",
    "build_server",
    "start_server",
]
