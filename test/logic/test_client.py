import pytest
import simplejson as json
import zmq

from kgrip.server.client import (
    close_connection,
    collect_statuses,
    open_connection,
    receive_status,
    send_command,
    wait_for_status,
)


@pytest.fixture
def server():
    """A bare DEALER socket standing in for the kgrip server."""
    context = zmq.Context()
    socket = context.socket(zmq.DEALER)
    port = socket.bind_to_random_port("tcp://127.0.0.1")
    yield socket, port
    socket.setsockopt(zmq.LINGER, 0)
    socket.close()
    context.term()


@pytest.fixture
def conn(server):
    _, port = server
    conn = open_connection("127.0.0.1", port)
    yield conn
    close_connection(conn)


def push(socket, status):
    socket.send(json.dumps({"outputData": status}).encode("utf-8"))


def test_send_command(server, conn):
    socket, _ = server
    send_command(conn, "measureStart", patientId="p1")
    assert socket.poll(2000)
    assert json.loads(socket.recv()) == {
        "inputData": {"cmd": "measureStart", "patientId": "p1"}
    }


def test_receive_status(server, conn):
    socket, _ = server
    send_command(conn, "showGauge")  # completes the DEALER handshake
    socket.recv()
    push(socket, {"message": "show_gauge"})
    assert receive_status(conn, timeout=2) == {"message": "show_gauge"}
    assert receive_status(conn, timeout=0.05) is None


def test_receive_ignores_garbage(server, conn):
    socket, _ = server
    send_command(conn, "showGauge")
    socket.recv()
    socket.send(b"not json")
    assert receive_status(conn, timeout=2) is None


def test_wait_for_status_skips_others(server, conn):
    socket, _ = server
    send_command(conn, "measureStart")
    socket.recv()
    push(socket, {"message": "device_found"})
    push(socket, {"message": "baseline_ok"})
    assert wait_for_status(conn, "baseline_ok", timeout=2) == {"message": "baseline_ok"}


def test_wait_for_status_timeout(conn):
    with pytest.raises(TimeoutError):
        wait_for_status(conn, "measure_finish", timeout=0.05)


def test_collect_statuses(server, conn):
    socket, _ = server
    send_command(conn, "measureStart")
    socket.recv()
    push(socket, {"message": "device_found"})
    push(socket, {"message": "timeout"})
    statuses = collect_statuses(conn, 0.3)
    assert [s["message"] for s in statuses] == ["device_found", "timeout"]
