"""
Launching the simulation server process.

Only used when no server answers on the configured ports of the local host.
"""

from __future__ import annotations

import logging
import shlex
import socket
import subprocess
import time
from typing import List, Optional

logger = logging.getLogger(__name__)


def build_arguments(
    forced_port: Optional[int] = None, start_hidden: bool = False, extra: str = ""
) -> str:
    """
    Compute the server command line arguments.

    Args:
        forced_port: Port the server must listen on (ignored if None or <= 0)
        start_hidden: Start without splash screen and main window
        extra: Extra arguments appended verbatim

    Returns:
        Argument string, e.g. "/NOSPLASH /NOSHOW /HIDDEN /PORT=20501 /DEBUG"
    """
    parts: List[str] = []
    if start_hidden:
        parts += ["/NOSPLASH", "/NOSHOW", "/HIDDEN"]
    if forced_port is not None and forced_port > 0:
        parts.append(f"/PORT={forced_port}")
    if extra:
        parts.append(extra.strip())
    return " ".join(parts)


class ServerLauncher:
    """
    Starts the simulation server executable and waits until it accepts TCP connections.
    """

    def __init__(self, executable: str, arguments: str = "", wait_timeout: float = 10.0):
        self.executable = executable
        self.arguments = arguments
        self.wait_timeout = wait_timeout
        self._proc: Optional[subprocess.Popen] = None

    @property
    def pid(self) -> Optional[int]:
        return self._proc.pid if self._proc and self._proc.poll() is None else None

    def is_running(self) -> bool:
        return self._proc is not None and self._proc.poll() is None

    def launch(self, host: str, port: int) -> bool:
        """
        Start the server (if not already started) and wait for it to respond.

        Args:
            host: Host the server will listen on
            port: First port to check for responsiveness

        Returns:
            True if the port accepted a connection within wait_timeout
        """
        if not self.is_running():
            args = [self.executable] + shlex.split(self.arguments)
            logger.info(f"Starting server: {' '.join(args)}")
            try:
                self._proc = subprocess.Popen(args, stdout=None, stderr=None)
            except OSError as e:
                logger.error(f"Failed to start server {self.executable}: {e}")
                return False

        return self.wait_until_responsive(host, port)

    def wait_until_responsive(self, host: str, port: int) -> bool:
        deadline = time.monotonic() + self.wait_timeout
        while time.monotonic() < deadline:
            if self._proc is not None and self._proc.poll() is not None:
                logger.error(f"Server process exited with code {self._proc.returncode}")
                return False
            try:
                with socket.create_connection((host, port), timeout=1.0):
                    logger.info(f"Server is accepting connections on {host}:{port}")
                    return True
            except OSError:
                time.sleep(0.2)
        logger.warning(f"Server did not respond on {host}:{port} within {self.wait_timeout}s")
        return False
