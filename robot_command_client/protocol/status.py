"""
Trailing status read at the end of every command exchange.

After all arguments and results of a command have been exchanged the server
sends one Int32 status. Warnings (2) and errors (3) are followed by a Line
with a human readable message.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from robot_command_client.errors import (
    InvalidItemError,
    LicenseError,
    ProtocolError,
    RemoteError,
)
from robot_command_client.protocol.codec import WireReader

logger = logging.getLogger(__name__)


class StatusCode(enum.IntEnum):
    OK = 0
    INVALID_ITEM = 1
    WARNING = 2
    ERROR = 3
    LICENSE_ERROR = 9


@dataclass
class StatusResult:
    """Outcome of a successful status read (OK or WARNING)."""

    code: StatusCode
    message: Optional[str] = None

    @property
    def is_warning(self) -> bool:
        return self.code == StatusCode.WARNING


def check_status(reader: WireReader) -> StatusResult:
    """
    Read and interpret the trailing status of a command.

    Args:
        reader: WireReader positioned right after the command results

    Returns:
        StatusResult for OK and WARNING statuses

    Raises:
        InvalidItemError: status 1
        RemoteError: status 3, with the server message
        LicenseError: status 9
        ProtocolError: any other status value
    """
    status = reader.read_int()

    if status == StatusCode.OK:
        return StatusResult(StatusCode.OK)

    if status == StatusCode.WARNING:
        message = reader.read_line()
        logger.warning(f"Server warning: {message}")
        return StatusResult(StatusCode.WARNING, message)

    if status == StatusCode.ERROR:
        message = reader.read_line()
        raise RemoteError(message)

    if status == StatusCode.INVALID_ITEM:
        raise InvalidItemError(
            "Invalid item provided: the item identifier is not valid or does not exist"
        )

    if status == StatusCode.LICENSE_ERROR:
        raise LicenseError()

    raise ProtocolError(f"Unrecognized status code {status}")
