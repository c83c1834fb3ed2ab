"""
Robot Command Client - Remote control of a robot simulation server
==================================================================

A client library for driving a long-running robot simulation server over a
persistent TCP connection. Provides:

- Connection management with port scanning and optional server launch
- Binary wire codec for the command protocol
- Item handles for robots, frames, tools, targets and programs
- Blocking and non-blocking robot moves
- A small command line client

Example Usage:
-------------
from robot_command_client import Robolink, ItemType

rdk = Robolink()
robot = rdk.item("UR10", ItemType.ROBOT)
robot.move_j([0, -90, 90, 0, 90, 0])
rdk.disconnect()
"""

__version__ = "1.0.0"

from robot_command_client.client.robolink import Robolink
from robot_command_client.config import ClientConfig, load_config
from robot_command_client.errors import (
    ArgumentError,
    InvalidItemError,
    LicenseError,
    ProtocolError,
    RemoteError,
    RobotClientError,
    RobotConnectionError,
)
from robot_command_client.model.item import Item
from robot_command_client.protocol.commands import ItemType, MoveType

__all__ = [
    "Robolink",
    "ClientConfig",
    "load_config",
    "Item",
    "ItemType",
    "MoveType",
    "ArgumentError",
    "InvalidItemError",
    "LicenseError",
    "ProtocolError",
    "RemoteError",
    "RobotClientError",
    "RobotConnectionError",
]
