"""
Client package - Connection to the simulation server.

Modules:
    connection: Socket, handshake and timeouts
    launcher: Starting a local server process
    dispatcher: Generic command send/receive cycle
    robolink: Station-level API
"""

from robot_command_client.client.connection import Connection, ConnectionState
from robot_command_client.client.dispatcher import CommandDispatcher, CommandResult
from robot_command_client.client.robolink import Robolink

__all__ = ["Connection", "ConnectionState", "CommandDispatcher", "CommandResult", "Robolink"]
