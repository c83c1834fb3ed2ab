"""
Shared pytest fixtures for robot_command_client tests.

Provides a scripted peer on the other end of a socket pair, a small threaded
TCP stub server and sample poses. No simulation server is needed.
"""

import socket
import threading

import numpy as np
import pytest

from robot_command_client.client.connection import Connection
from robot_command_client.client.robolink import Robolink
from robot_command_client.config import ClientConfig
from robot_command_client.model import pose as poses
from robot_command_client.errors import RobotClientError
from robot_command_client.protocol.codec import pack_int


class ScriptedPeer:
    """Server side of a socket pair: queue replies, then inspect what the client sent."""

    def __init__(self, sock: socket.socket):
        self.sock = sock

    def reply(self, *chunks: bytes) -> None:
        self.sock.sendall(b"".join(chunks))

    def reply_ok(self, count: int = 1) -> None:
        self.reply(*[pack_int(0)] * count)

    def received(self, wait: float = 0.2) -> bytes:
        self.sock.settimeout(wait)
        chunks = []
        try:
            while True:
                data = self.sock.recv(65536)
                if not data:
                    break
                chunks.append(data)
        except socket.timeout:
            pass
        return b"".join(chunks)

    def close(self) -> None:
        self.sock.close()


@pytest.fixture
def unused_port():
    """
    A local TCP port with nothing listening on it.

    Returns:
        int: Port number
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def client_config(unused_port):
    """
    Client configuration pointing at a closed port so that reconnects fail fast.

    Returns:
        ClientConfig: Configuration with short timeouts
    """
    return ClientConfig(
        host="127.0.0.1",
        port_start=unused_port,
        port_end=unused_port,
        timeout=2.0,
        bootstrap_timeout=0.5,
        move_timeout=30.0,
    )


@pytest.fixture
def socket_pair():
    """
    Connected (client, server) socket pair.

    Yields:
        tuple: (client_socket, server_socket)
    """
    client_sock, server_sock = socket.socketpair()
    yield client_sock, server_sock
    client_sock.close()
    server_sock.close()


@pytest.fixture
def peer(socket_pair):
    """
    Scripted server end of the socket pair.

    Returns:
        ScriptedPeer: Peer wrapping the server socket
    """
    return ScriptedPeer(socket_pair[1])


@pytest.fixture
def connection(client_config, socket_pair):
    """
    Connection attached to the client end of the socket pair.

    Yields:
        Connection: Connected transport
    """
    conn = Connection(client_config)
    conn.attach(socket_pair[0])
    yield conn
    conn.disconnect()


@pytest.fixture
def link(client_config, socket_pair):
    """
    Robolink attached to the client end of the socket pair.

    Yields:
        Robolink: Station API talking to the scripted peer
    """
    rdk = Robolink(client_config, connect=False)
    rdk.connection.attach(socket_pair[0])
    yield rdk
    rdk.disconnect()


@pytest.fixture
def timeout_log(link, monkeypatch):
    """
    Record every timeout applied to the link's connection.

    Returns:
        list: Applied timeouts in order
    """
    applied = []
    original = link.connection._apply_timeout

    def record(seconds):
        applied.append(seconds)
        original(seconds)

    monkeypatch.setattr(link.connection, "_apply_timeout", record)
    return applied


@pytest.fixture
def sent_frames(link, monkeypatch):
    """
    Record the command name and the active timeout of every frame the link sends.

    Returns:
        list: (command name, timeout) pairs in send order
    """
    sent = []
    original = link.connection.send

    def record(data):
        sent.append((data.split(b"\n", 1)[0].decode("utf-8"), link.connection.timeout))
        original(data)

    monkeypatch.setattr(link.connection, "send", record)
    return sent


@pytest.fixture
def stub_server():
    """
    Start a one-connection TCP stub server on 127.0.0.1.

    Usage::

        port, received = stub_server(handler)

    ``handler(conn, received)`` runs in a daemon thread for the single accepted
    connection; the listening socket is closed right after accepting.

    Yields:
        callable: Starts a server and returns (port, received) where received
        is a list the handler may append to
    """
    stop = threading.Event()
    threads = []

    def start(handler):
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        listener.bind(("127.0.0.1", 0))
        listener.listen()
        port = listener.getsockname()[1]
        received = []

        def serve():
            with listener:
                while not stop.is_set():
                    try:
                        listener.settimeout(0.2)
                        conn, _ = listener.accept()
                    except socket.timeout:
                        continue
                    except OSError:
                        return
                    break
                else:
                    return
            with conn:
                conn.settimeout(5.0)
                try:
                    handler(conn, received)
                except (OSError, RobotClientError):
                    pass

        thread = threading.Thread(target=serve, daemon=True)
        thread.start()
        threads.append(thread)
        return port, received

    yield start

    stop.set()
    for t in threads:
        t.join(timeout=5.0)


@pytest.fixture
def sample_pose():
    """
    A valid homogeneous pose: 90 degrees about Z plus a translation.

    Returns:
        np.ndarray: 4x4 pose
    """
    pose = poses.translation(100.0, -20.0, 350.5)
    pose[:3, :3] = [[0.0, -1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]]
    return pose


@pytest.fixture
def non_homogeneous_pose():
    """
    A 4x4 matrix that is not a rigid transformation.

    Returns:
        np.ndarray: Matrix with a scaled rotation block
    """
    pose = np.eye(4)
    pose[0, 0] = 2.0
    return pose
