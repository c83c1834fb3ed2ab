"""
Motion targets and blocking-move synchronization.

A mechanism executes at most one motion path at a time: every move first
waits for the previous one to complete, and a blocking move also waits for
its own completion before returning. Only the wait for the completion status
runs under the move ceiling; the move command and the acknowledgement use
the normal timeout, which is restored after the wait whatever the outcome.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar, Dict, Optional, Tuple, Union

import numpy as np

from robot_command_client.errors import ArgumentError, InvalidItemError
from robot_command_client.model.item import Item
from robot_command_client.model.pose import require_homogeneous
from robot_command_client.protocol.codec import handle_id
from robot_command_client.protocol.commands import Command, MoveType

if TYPE_CHECKING:
    from robot_command_client.client.dispatcher import CommandCall, CommandDispatcher

logger = logging.getLogger(__name__)

DEFAULT_MOVE_TIMEOUT = 3600.0


class MotionState(enum.Enum):
    IDLE = "idle"
    MOVE_REQUESTED = "move_requested"
    WAITING_COMPLETION = "waiting_completion"


@dataclass
class JointTarget:
    """Target given as joint values (degrees or mm per axis)."""

    KIND: ClassVar[int] = 1
    joints: Tuple[float, ...]

    def __post_init__(self):
        values = np.asarray(self.joints, dtype=float).ravel()
        if values.size == 0:
            raise ArgumentError("A joint target needs at least one joint value")
        self.joints = tuple(values.tolist())

    def write_to(self, call: "CommandCall") -> None:
        call.write_int(self.KIND)
        call.write_array(self.joints)
        call.write_item(None)


@dataclass(eq=False)
class PoseTarget:
    """Cartesian target given as a 4x4 homogeneous pose."""

    KIND: ClassVar[int] = 2
    pose: np.ndarray = field(repr=False)

    def __post_init__(self):
        self.pose = require_homogeneous(self.pose)

    def write_to(self, call: "CommandCall") -> None:
        call.write_int(self.KIND)
        call.write_array(self.pose.ravel(order="F"))
        call.write_item(None)


@dataclass
class ItemTarget:
    """Target given as a server-side item (a target or a frame)."""

    KIND: ClassVar[int] = 3
    item: Item

    def __post_init__(self):
        if handle_id(self.item) == 0:
            raise InvalidItemError("Cannot move to an invalid item")

    def write_to(self, call: "CommandCall") -> None:
        call.write_int(self.KIND)
        call.write_array(None)
        call.write_item(self.item)


Target = Union[JointTarget, PoseTarget, ItemTarget]


def as_target(value) -> Target:
    """
    Convert a user supplied target to one of the tagged target types.

    Args:
        value: Item, 4x4 pose, joint sequence or an existing target

    Returns:
        JointTarget, PoseTarget or ItemTarget
    """
    if isinstance(value, (JointTarget, PoseTarget, ItemTarget)):
        return value
    if isinstance(value, Item):
        return ItemTarget(value)
    if value is None:
        raise ArgumentError("Invalid target type: None")

    array = np.asarray(value, dtype=float)
    if array.shape == (4, 4):
        return PoseTarget(array)
    if array.ndim == 1:
        return JointTarget(tuple(array))
    raise ArgumentError(f"Invalid target type: array of shape {array.shape}")


class MotionSynchronizer:
    """
    Sends motion commands and waits for their completion.

    Keeps one MotionState per mechanism (robot item id).
    """

    def __init__(self, dispatcher: "CommandDispatcher", move_timeout: float = DEFAULT_MOVE_TIMEOUT):
        self.dispatcher = dispatcher
        self.move_timeout = move_timeout
        self._states: Dict[int, MotionState] = {}

    def state(self, robot) -> MotionState:
        return self._states.get(handle_id(robot), MotionState.IDLE)

    def move(self, robot, move_type: MoveType, target, blocking: bool = True) -> None:
        """
        Move a robot to a target with a joint or linear motion.

        Args:
            robot: Robot item
            move_type: MoveType.JOINT or MoveType.LINEAR
            target: Item, 4x4 pose or joint values
            blocking: Wait until the motion is complete
        """
        if move_type not in (MoveType.JOINT, MoveType.LINEAR):
            raise ArgumentError(f"MoveX only supports joint and linear moves, got {move_type!r}")
        key = self._require_robot(robot)
        target = as_target(target)

        self.wait_move(robot)
        logger.debug(f"MoveX type={int(move_type)} target={type(target).__name__} robot={key}")
        try:
            self._states[key] = MotionState.MOVE_REQUESTED
            with self.dispatcher.command(Command.MOVE_X) as call:
                call.write_int(int(move_type))
                target.write_to(call)
                call.write_item(robot)
            if blocking:
                self.wait_move(robot)
        finally:
            self._states[key] = MotionState.IDLE

    def move_circular(self, robot, target1, target2, blocking: bool = True) -> None:
        """Move a robot along an arc through target1 to target2."""
        key = self._require_robot(robot)
        target1 = as_target(target1)
        target2 = as_target(target2)

        self.wait_move(robot)
        try:
            self._states[key] = MotionState.MOVE_REQUESTED
            with self.dispatcher.command(Command.MOVE_C) as call:
                call.write_int(int(MoveType.CIRCULAR))
                target1.write_to(call)
                target2.write_to(call)
                call.write_item(robot)
            if blocking:
                self.wait_move(robot)
        finally:
            self._states[key] = MotionState.IDLE

    def wait_move(self, robot, timeout: Optional[float] = None) -> None:
        """
        Block until the robot has finished its current motion.

        The server acknowledges the request with a first status, read under
        the normal timeout, and sends a second one once the motion is
        complete. Only the second status waits up to the move timeout.

        Args:
            robot: Robot item
            timeout: Maximum time to wait for completion (defaults to move_timeout)
        """
        key = self._require_robot(robot)
        timeout = self.move_timeout if timeout is None else timeout
        previous = self.state(robot)
        try:
            with self.dispatcher.command(Command.WAIT_MOVE) as call:
                call.write_item(robot)
                call.read_status()
                self._states[key] = MotionState.WAITING_COMPLETION
                with self.dispatcher.connection.timeout_override(timeout):
                    call.finish()
        finally:
            self._states[key] = previous

    @staticmethod
    def _require_robot(robot) -> int:
        key = handle_id(robot)
        if key == 0:
            raise InvalidItemError("Cannot move an invalid robot item")
        return key
