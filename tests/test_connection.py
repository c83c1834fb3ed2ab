"""
Tests for the TCP transport: handshake, port scanning, server launch policy,
liveness check and timeout handling.
"""

import socket

import pytest

from robot_command_client.client.connection import Connection, ConnectionState
from robot_command_client.client.launcher import ServerLauncher, build_arguments
from robot_command_client.client.robolink import Robolink
from robot_command_client.config import ClientConfig
from robot_command_client.errors import ProtocolError, RobotConnectionError
from robot_command_client.protocol.codec import WireReader, pack_int, pack_line


def read_handshake(conn: socket.socket):
    reader = WireReader(conn.recv)
    return reader.read_line(), reader.read_line()


def ready_handler(conn, received):
    received.extend(read_handshake(conn))
    conn.sendall(pack_line("READY"))
    while conn.recv(1024):
        pass


def refusing_handler(conn, received):
    received.extend(read_handshake(conn))
    conn.sendall(pack_line("BUSY"))


def one_command_handler(conn, received):
    """Handshake, answer a single license request, then hang up."""
    read_handshake(conn)
    conn.sendall(pack_line("READY"))
    reader = WireReader(conn.recv)
    received.append(reader.read_line())
    conn.sendall(pack_line("Trial license") + pack_int(0))


class RecordingLauncher:
    """Launcher stand-in that records launch requests."""

    def __init__(self):
        self.launches = []

    def launch(self, host, port):
        self.launches.append((host, port))
        return False


def config_for(port, **overrides):
    values = dict(host="127.0.0.1", port_start=port, port_end=port, timeout=2.0, bootstrap_timeout=0.5)
    values.update(overrides)
    return ClientConfig(**values)


class TestHandshake:
    """Test connecting to a stub server."""

    def test_connect_and_handshake(self, stub_server):
        """Test the handshake lines and the switch to the steady-state timeout."""
        port, received = stub_server(ready_handler)
        conn = Connection(config_for(port, safe_mode=1, auto_update=0))
        try:
            assert conn.connect() is True
            assert conn.state == ConnectionState.CONNECTED
            assert conn.port == port
            assert conn.timeout == 2.0
            assert received == ["CMD_START", "1 0"]
        finally:
            conn.disconnect()
        assert conn.state == ConnectionState.DISCONNECTED

    def test_wrong_reply_fails(self, stub_server):
        """Test anything but READY is a failed connection."""
        port, received = stub_server(refusing_handler)
        conn = Connection(config_for(port))
        assert conn.connect() is False
        assert conn.state == ConnectionState.DISCONNECTED

    def test_scans_port_range(self, stub_server, unused_port):
        """Test the first answering port of the range is used."""
        port, _ = stub_server(ready_handler)
        low, high = sorted((unused_port, port))
        conn = Connection(config_for(low, port_start=low, port_end=high))
        if high - low > 20:
            pytest.skip("ports too far apart for a quick scan")
        try:
            assert conn.connect()
            assert conn.port == port
        finally:
            conn.disconnect()


class TestLaunchPolicy:
    """Test when a server process is started."""

    def test_no_server_no_launcher(self, unused_port):
        """Test connect returns False and ensure_connected raises."""
        conn = Connection(config_for(unused_port))
        assert conn.connect() is False
        with pytest.raises(RobotConnectionError):
            conn.ensure_connected()

    def test_launch_between_attempts_for_local_host(self, unused_port):
        """Test a local host triggers exactly one launch between the two attempts."""
        launcher = RecordingLauncher()
        conn = Connection(config_for(unused_port, host="localhost"), launcher=launcher)
        assert conn.connect() is False
        assert launcher.launches == [("localhost", unused_port)]

    def test_never_launch_for_remote_host(self, unused_port):
        """Test a non-local host is never launched."""
        launcher = RecordingLauncher()
        conn = Connection(config_for(unused_port, host="127.0.0.2"), launcher=launcher)
        assert conn.connect() is False
        assert launcher.launches == []

    def test_launcher_created_from_config(self):
        """Test an executable in the config produces a launcher with computed arguments."""
        config = ClientConfig(executable="/opt/sim/bin/sim", start_hidden=True, forced_port=20501)
        conn = Connection(config)
        assert isinstance(conn.launcher, ServerLauncher)
        assert conn.launcher.arguments == "/NOSPLASH /NOSHOW /HIDDEN /PORT=20501"

    def test_build_arguments(self):
        """Test argument composition."""
        assert build_arguments() == ""
        assert build_arguments(forced_port=20502) == "/PORT=20502"
        assert build_arguments(None, True, "/DEBUG") == "/NOSPLASH /NOSHOW /HIDDEN /DEBUG"
        assert build_arguments(-1, False, "") == ""

    def test_launch_missing_executable(self, unused_port):
        """Test a missing executable is reported as a failed launch."""
        launcher = ServerLauncher("/nonexistent/simulator-binary", wait_timeout=0.5)
        assert launcher.launch("127.0.0.1", unused_port) is False
        assert not launcher.is_running()


class TestLiveness:
    """Test the advisory liveness check."""

    def test_idle_connection_is_alive(self, connection):
        """Test a quiet socket counts as alive."""
        assert connection.is_alive()

    def test_pending_data_is_alive(self, connection, peer):
        """Test buffered bytes mean the peer is still there."""
        peer.reply(b"x")
        assert connection.is_alive()

    def test_closed_peer_is_dead(self, connection, peer):
        """Test readable with zero bytes means the peer closed."""
        peer.close()
        assert not connection.is_alive()

    def test_disconnected_is_dead(self, client_config):
        """Test a connection that was never opened is not alive."""
        assert not Connection(client_config).is_alive()


class TestTimeouts:
    """Test timeout override and timeout failures."""

    def test_override_restores(self, connection):
        """Test the previous timeout comes back after the block."""
        with connection.timeout_override(60.0):
            assert connection.timeout == 60.0
        assert connection.timeout == 2.0

    def test_override_restores_on_error(self, connection):
        """Test the previous timeout comes back when the block raises."""
        with pytest.raises(RuntimeError):
            with connection.timeout_override(60.0):
                raise RuntimeError("boom")
        assert connection.timeout == 2.0

    def test_receive_timeout_drops_connection(self, client_config, socket_pair):
        """Test a timeout is a connection error and the connection is dropped."""
        client_config.timeout = 0.2
        conn = Connection(client_config)
        conn.attach(socket_pair[0])
        with pytest.raises(RobotConnectionError):
            conn.reader.read_int()
        assert conn.state == ConnectionState.DISCONNECTED

    def test_send_without_connection(self, client_config):
        """Test sending on a closed connection fails fast."""
        with pytest.raises(RobotConnectionError):
            Connection(client_config).send(b"G_License\n")


class TestServerGoesAway:
    """End-to-end behavior when the server closes after one command."""

    def test_second_command_fails(self, stub_server):
        """Test the next command fails within the timeout instead of hanging."""
        port, received = stub_server(one_command_handler)
        rdk = Robolink(config_for(port))
        try:
            assert rdk.license() == "Trial license"
            assert received == ["G_License"]
            with pytest.raises((RobotConnectionError, ProtocolError)):
                rdk.license()
        finally:
            rdk.disconnect()
