"""
Generic command cycle: send arguments, receive results, check status.

Every command frame is::

    <CommandName>\\n + typed arguments + typed results + Int32 status [+ Line]

The command name and all arguments are encoded into one buffer before the
socket is touched, so a local argument error never leaves a partial frame on
the wire. All writes of a call happen before any of its reads.
"""

from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple, Union

from robot_command_client.client.connection import Connection
from robot_command_client.errors import ProtocolError, RobotConnectionError
from robot_command_client.protocol.codec import WireType, encode_value, pack_line
from robot_command_client.protocol.commands import Command
from robot_command_client.protocol.status import StatusResult, check_status

logger = logging.getLogger(__name__)

TypedValue = Tuple[WireType, Any]
ItemFactory = Callable[[int, int], Any]


@dataclass
class CommandResult:
    values: List[Any] = field(default_factory=list)
    status: Optional[StatusResult] = None


class CommandCall:
    """
    One in-flight command.

    Writes are buffered and sent in one piece when the first result is read
    or when the call completes.
    """

    def __init__(self, dispatcher: "CommandDispatcher", name: str):
        self.name = name
        self.status: Optional[StatusResult] = None
        self._dispatcher = dispatcher
        self._buffer = bytearray(pack_line(name))
        self._sent = False
        self._finished = False

    @property
    def sent(self) -> bool:
        return self._sent

    @property
    def finished(self) -> bool:
        """True once the trailing status has been consumed."""
        return self._finished

    def write(self, wire_type: WireType, value) -> "CommandCall":
        if self._sent:
            raise ProtocolError(f"{self.name}: cannot write arguments after reading results")
        self._buffer += encode_value(wire_type, value)
        return self

    def write_int(self, value: int) -> "CommandCall":
        return self.write(WireType.INT, value)

    def write_line(self, value: str) -> "CommandCall":
        return self.write(WireType.LINE, value)

    def write_array(self, values) -> "CommandCall":
        return self.write(WireType.ARRAY, values)

    def write_matrix(self, matrix) -> "CommandCall":
        return self.write(WireType.MATRIX, matrix)

    def write_pose(self, pose) -> "CommandCall":
        return self.write(WireType.POSE, pose)

    def write_item(self, item) -> "CommandCall":
        return self.write(WireType.ITEM, item)

    def write_ptr(self, ptr: int) -> "CommandCall":
        return self.write(WireType.PTR, ptr)

    def write_xyz(self, xyz) -> "CommandCall":
        return self.write(WireType.XYZ, xyz)

    def flush(self) -> None:
        if not self._sent:
            self._sent = True
            self._dispatcher.connection.send(bytes(self._buffer))

    def read(self, wire_type: WireType):
        self.flush()
        value = self._dispatcher.connection.reader.read_value(wire_type)
        if wire_type == WireType.ITEM:
            return self._dispatcher.make_item(*value)
        return value

    def read_int(self) -> int:
        return self.read(WireType.INT)

    def read_line(self) -> str:
        return self.read(WireType.LINE)

    def read_array(self) -> List[float]:
        return self.read(WireType.ARRAY)

    def read_matrix(self):
        return self.read(WireType.MATRIX)

    def read_pose(self):
        return self.read(WireType.POSE)

    def read_item(self):
        return self.read(WireType.ITEM)

    def read_ptr(self) -> int:
        return self.read(WireType.PTR)

    def read_xyz(self) -> List[float]:
        return self.read(WireType.XYZ)

    def read_status(self) -> StatusResult:
        """Read a status in the middle of a call (commands that acknowledge before finishing)."""
        self.flush()
        return check_status(self._dispatcher.connection.reader)

    def finish(self) -> StatusResult:
        """
        Read the trailing status inside the block.

        Used when the final status needs its own timeout. The dispatcher does
        not read it again on exit.
        """
        self.flush()
        try:
            self.status = check_status(self._dispatcher.connection.reader)
        finally:
            self._finished = True
        return self.status


class CommandDispatcher:
    """
    Runs commands over one Connection.

    Before a command is sent the connection is checked and, if it looks dead,
    reconnected once. No other automatic recovery happens: a failed call is
    never retried, and a call that fails after bytes were exchanged drops the
    connection because the stream position is unknown.
    """

    def __init__(self, connection: Connection, item_factory: Optional[ItemFactory] = None):
        self.connection = connection
        self._item_factory = item_factory

    def make_item(self, item_id: int, item_type: int):
        if self._item_factory is None:
            return item_id, item_type
        return self._item_factory(item_id, item_type)

    @contextlib.contextmanager
    def command(self, name: Union[Command, str], timeout: Optional[float] = None) -> Iterator[CommandCall]:
        """
        Run one command as a context manager.

        Arguments are written and results read inside the block; the trailing
        status is read when the block exits normally, unless the block already
        read it with call.finish(). If the block is left by any exception
        (KeyboardInterrupt included) after the frame went out and before the
        status was consumed, the rest of the reply is still in flight and the
        connection is dropped.

        Args:
            name: Command name
            timeout: Receive timeout for this call only (long operations)
        """
        name = name.value if isinstance(name, Command) else name
        self.connection.ensure_connected()
        call = CommandCall(self, name)
        logger.debug(f"-> {name}")

        timeout_scope = (
            self.connection.timeout_override(timeout) if timeout is not None else contextlib.nullcontext()
        )
        try:
            with timeout_scope:
                yield call
                if not call.finished:
                    call.finish()
        except (ProtocolError, RobotConnectionError):
            if call.sent:
                self.connection.drop()
            raise
        except BaseException:
            if call.sent and not call.finished:
                self.connection.drop()
            raise

    def execute(
        self,
        name: Union[Command, str],
        write_args: Sequence[TypedValue] = (),
        read_results: Sequence[WireType] = (),
        timeout: Optional[float] = None,
    ) -> CommandResult:
        """
        Send typed arguments, read typed results, then check the status.

        Args:
            name: Command name
            write_args: (WireType, value) pairs written in order
            read_results: WireTypes read in order after all writes
            timeout: Receive timeout for this call only

        Returns:
            CommandResult with the decoded results and the status
        """
        with self.command(name, timeout=timeout) as call:
            for wire_type, value in write_args:
                call.write(wire_type, value)
            values = [call.read(wire_type) for wire_type in read_results]
        return CommandResult(values, call.status)
