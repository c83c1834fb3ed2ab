"""
Exception hierarchy for the robot command client.

Every failure surfaced by the client derives from RobotClientError so callers
can catch the whole family in one place. Connection and argument errors also
derive from the matching builtin exceptions.
"""


class RobotClientError(Exception):
    """Base class for all client errors."""


class RobotConnectionError(RobotClientError, ConnectionError):
    """The socket could not be established or was lost (includes handshake mismatch)."""


class ProtocolError(RobotClientError):
    """Short read, frame desync or unrecognized status code.

    The protocol has no resynchronization token: discard the connection and
    create a new one.
    """


class InvalidItemError(RobotClientError):
    """The item handle is invalid or no longer exists on the server (status 1)."""

    def __init__(self, message: str = "Invalid item: the item does not exist or was deleted"):
        super().__init__(message)


class RemoteError(RobotClientError):
    """The server reported an error while running the command (status 3)."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class LicenseError(RobotClientError):
    """The server refused the command because of an invalid license (status 9)."""

    def __init__(self, message: str = "Invalid license"):
        super().__init__(message)


class ArgumentError(RobotClientError, ValueError):
    """A local precondition failed before anything was sent."""
