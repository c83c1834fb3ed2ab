"""
Protocol package - Wire format of the command protocol.

Modules:
    commands: Command names and wire constants
    codec: Binary layouts of every wire type
    status: Trailing status read after each command
"""

from robot_command_client.protocol.commands import Command, ItemType, MoveType, TCP_PORT
from robot_command_client.protocol.codec import WireReader, WireType, encode_value
from robot_command_client.protocol.status import StatusCode, StatusResult, check_status

__all__ = [
    "Command",
    "ItemType",
    "MoveType",
    "TCP_PORT",
    "WireReader",
    "WireType",
    "encode_value",
    "StatusCode",
    "StatusResult",
    "check_status",
]
