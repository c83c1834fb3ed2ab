"""
Client configuration.

Settings can come from a YAML file, from environment variables or from
keyword arguments. A missing configuration file is not an error: the
defaults below are used instead.
"""

from __future__ import annotations

import dataclasses
import logging
import os
import pathlib
from dataclasses import dataclass
from typing import Optional

import yaml

from robot_command_client.errors import ArgumentError
from robot_command_client.protocol.commands import TCP_PORT

logger = logging.getLogger(__name__)

LOCAL_HOSTS = ("localhost", "127.0.0.1", "::1")


@dataclass
class ClientConfig:
    """Connection and behavior settings for one client session."""

    host: str = "localhost"
    port_start: int = TCP_PORT
    port_end: int = TCP_PORT
    forced_port: Optional[int] = None
    timeout: float = 10.0  # steady-state receive/send timeout (s)
    bootstrap_timeout: float = 1.0  # per-port timeout while scanning (s)
    move_timeout: float = 3600.0  # ceiling while waiting for a motion to finish (s)
    safe_mode: int = 1
    auto_update: int = 0
    start_hidden: bool = False
    executable: Optional[str] = None
    arguments: str = ""
    launch_wait: float = 10.0

    def __post_init__(self):
        if self.forced_port is not None and self.forced_port > 0:
            self.port_start = self.forced_port
            self.port_end = self.forced_port
        if self.port_end < self.port_start:
            raise ArgumentError(f"port_end ({self.port_end}) is lower than port_start ({self.port_start})")
        if self.timeout <= 0 or self.bootstrap_timeout <= 0 or self.move_timeout <= 0:
            raise ArgumentError("Timeouts must be positive")

    @property
    def is_local(self) -> bool:
        return self.host.lower() in LOCAL_HOSTS

    @property
    def ports(self) -> range:
        return range(self.port_start, self.port_end + 1)

    @classmethod
    def from_env(cls, **overrides) -> "ClientConfig":
        """Build a configuration from ROBOT_CLIENT_* environment variables."""
        values = dict(overrides)
        host = os.getenv("ROBOT_CLIENT_HOST")
        if host:
            values.setdefault("host", host)
        port = os.getenv("ROBOT_CLIENT_PORT")
        if port:
            values.setdefault("forced_port", int(port))
        timeout = os.getenv("ROBOT_CLIENT_TIMEOUT")
        if timeout:
            values.setdefault("timeout", float(timeout))
        return cls(**values)


def load_config(path) -> ClientConfig:
    """
    Load a ClientConfig from a YAML file.

    Args:
        path: Path to a YAML file with a mapping of ClientConfig fields,
            optionally nested under a top-level ``client`` key

    Returns:
        ClientConfig with the file values applied over the defaults
    """
    config_path = pathlib.Path(path)
    if not config_path.exists():
        logger.warning(f"Config file not found: {config_path}, using defaults")
        return ClientConfig()

    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ArgumentError(f"Config file {config_path} must contain a mapping")
    data = data.get("client", data)

    known = {field.name for field in dataclasses.fields(ClientConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning(f"Ignoring unknown config keys in {config_path}: {', '.join(unknown)}")

    logger.info(f"Loaded client config from {config_path}")
    return ClientConfig(**{key: value for key, value in data.items() if key in known})
