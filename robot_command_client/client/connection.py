"""
TCP transport to the simulation server.

A Connection owns one socket and walks through the states
DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED. It is a strictly
sequential request/response channel: one command must be fully answered
before the next is sent. Sharing a Connection between threads corrupts the
framing; use one Connection (one Robolink) per thread instead. There is no
internal locking.
"""

from __future__ import annotations

import contextlib
import enum
import logging
import select
import socket
from typing import Iterator, Optional

from robot_command_client.config import ClientConfig
from robot_command_client.errors import ProtocolError, RobotConnectionError
from robot_command_client.client.launcher import ServerLauncher, build_arguments
from robot_command_client.protocol.codec import WireReader, pack_line
from robot_command_client.protocol.commands import HANDSHAKE_READY, HANDSHAKE_REQUEST

logger = logging.getLogger(__name__)

CONNECT_ATTEMPTS = 2


class ConnectionState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class Connection:
    """
    Socket, handshake and timeout policy for one client session.

    Usage::

        conn = Connection(ClientConfig(host="localhost"))
        if conn.connect():
            conn.send(data)
            value = conn.reader.read_int()
        conn.disconnect()
    """

    def __init__(self, config: Optional[ClientConfig] = None, launcher: Optional[ServerLauncher] = None):
        self.config = config or ClientConfig()
        if launcher is None and self.config.executable:
            launcher = ServerLauncher(
                self.config.executable,
                build_arguments(self.config.forced_port, self.config.start_hidden, self.config.arguments),
                wait_timeout=self.config.launch_wait,
            )
        self.launcher = launcher
        self.port: Optional[int] = None
        self.reader = WireReader(self._recv)
        self._sock: Optional[socket.socket] = None
        self._state = ConnectionState.DISCONNECTED
        self._timeout = self.config.timeout

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.disconnect()

    def __repr__(self) -> str:
        return f"Connection({self.config.host}:{self.port}, {self._state.value})"

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def timeout(self) -> float:
        """Receive/send timeout currently applied to the socket (seconds)."""
        return self._timeout

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> bool:
        """
        Establish the connection, starting a local server if needed.

        Each of the two attempts scans the configured port range. If nothing
        answers, the host is local and a launcher is available, the server is
        started between attempts. Non-local hosts are never launched.

        Returns:
            True if connected and the handshake succeeded, False otherwise
        """
        self._close_socket()
        self._state = ConnectionState.CONNECTING
        host = self.config.host

        for attempt in range(CONNECT_ATTEMPTS):
            for port in self.config.ports:
                sock = self._open(host, port)
                if sock is not None:
                    self.attach(sock)
                    self.port = port
                    logger.info(f"Connected to server at {host}:{port}")
                    return True

            if attempt == CONNECT_ATTEMPTS - 1:
                break
            if not self.config.is_local:
                logger.warning(f"No server found on {host}, ports {self.config.port_start}-{self.config.port_end}")
                break
            if self.launcher is None:
                logger.debug("No server executable configured, not launching")
                break
            self.launcher.launch(host, self.config.port_start)

        self._state = ConnectionState.DISCONNECTED
        logger.error(f"Could not connect to server at {host}")
        return False

    def attach(self, sock: socket.socket) -> None:
        """Adopt an already handshaken socket and switch it to the steady-state timeout."""
        self._close_socket()
        sock.settimeout(self._timeout)
        self._sock = sock
        self._state = ConnectionState.CONNECTED

    def ensure_connected(self) -> None:
        """Reconnect once if the connection looks dead; raise if that fails."""
        if self.is_alive():
            return
        if self._state == ConnectionState.CONNECTED:
            logger.warning("Connection to server was lost, reconnecting")
        if not self.connect():
            raise RobotConnectionError(f"Cannot connect to server at {self.config.host}")

    def is_alive(self) -> bool:
        """
        Advisory liveness check.

        The socket counts as dead when a non-blocking poll reports it readable
        while zero bytes are buffered (the peer closed). This can still report
        a live connection moments before the peer goes away; a failing
        command is the authoritative signal.
        """
        if self._sock is None or self._state != ConnectionState.CONNECTED:
            return False
        try:
            readable, _, _ = select.select([self._sock], [], [], 0)
            if not readable:
                return True
            pending = self._sock.recv(1, socket.MSG_PEEK)
        except (OSError, ValueError):
            return False
        return len(pending) > 0

    def disconnect(self) -> None:
        """Close the socket. The connection can be reopened with connect()."""
        if self._sock is not None:
            logger.info(f"Disconnecting from {self.config.host}:{self.port}")
        self._close_socket()

    def drop(self) -> None:
        """Discard a connection whose framing can no longer be trusted."""
        if self._sock is not None:
            logger.warning("Dropping connection after a transport or framing failure")
        self._close_socket()

    # ------------------------------------------------------------------
    # Timeouts
    # ------------------------------------------------------------------

    @contextlib.contextmanager
    def timeout_override(self, seconds: float) -> Iterator[None]:
        """
        Temporarily apply a different timeout.

        The previous timeout is restored on every exit path, including
        failures raised inside the block.
        """
        previous = self._timeout
        self._apply_timeout(seconds)
        try:
            yield
        finally:
            self._apply_timeout(previous)

    def _apply_timeout(self, seconds: float) -> None:
        self._timeout = seconds
        if self._sock is not None:
            try:
                self._sock.settimeout(seconds)
            except OSError as e:
                logger.debug(f"Could not apply timeout {seconds}s: {e}")

    # ------------------------------------------------------------------
    # I/O
    # ------------------------------------------------------------------

    def send(self, data: bytes) -> None:
        if self._sock is None:
            raise RobotConnectionError("Not connected to server")
        try:
            self._sock.sendall(data)
        except OSError as e:
            self.drop()
            raise RobotConnectionError(f"Send failed: {e}") from e

    def _recv(self, size: int) -> bytes:
        if self._sock is None:
            raise RobotConnectionError("Not connected to server")
        try:
            return self._sock.recv(size)
        except socket.timeout as e:
            self.drop()
            raise RobotConnectionError(f"Timed out after {self._timeout}s waiting for the server") from e
        except OSError as e:
            self.drop()
            raise RobotConnectionError(f"Receive failed: {e}") from e

    def _open(self, host: str, port: int) -> Optional[socket.socket]:
        try:
            sock = socket.create_connection((host, port), timeout=self.config.bootstrap_timeout)
        except OSError as e:
            logger.debug(f"No server on {host}:{port}: {e}")
            return None

        try:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            if self._handshake(sock):
                return sock
        except (OSError, ProtocolError) as e:
            logger.debug(f"Handshake with {host}:{port} failed: {e}")
        sock.close()
        return None

    def _handshake(self, sock: socket.socket) -> bool:
        request = pack_line(HANDSHAKE_REQUEST) + pack_line(
            f"{self.config.safe_mode} {self.config.auto_update}"
        )
        sock.sendall(request)
        response = WireReader(sock.recv).read_line()
        if response != HANDSHAKE_READY:
            logger.warning(f"Unexpected handshake reply: {response!r}")
            return False
        return True

    def _close_socket(self) -> None:
        if self._sock is not None:
            try:
                self._sock.close()
            except OSError as e:
                logger.debug(f"Error closing socket: {e}")
        self._sock = None
        self._state = ConnectionState.DISCONNECTED
