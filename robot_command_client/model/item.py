"""
Item handles.

An Item is a lightweight reference to an object that lives in the simulation
server (robot, frame, tool, target, program...). It holds the server id, the
type tag returned with it and the Robolink it was obtained from. The item
itself owns nothing: deleting the Python object does not touch the server.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Tuple

import numpy as np

from robot_command_client.errors import ArgumentError, InvalidItemError, ProtocolError
from robot_command_client.protocol.commands import (
    COLLISION_OFF,
    FLAG_ITEM_ALL,
    INSTRUCTION_CALL_PROGRAM,
    INS_TYPE_MOVE,
    Command,
    ItemType,
    MoveType,
)

if TYPE_CHECKING:
    from robot_command_client.client.robolink import Robolink

logger = logging.getLogger(__name__)

INVALID_ITEM_ID = 0


@dataclass
class ProgramUpdate:
    """Result of re-evaluating a program path."""

    instructions: int
    time: float
    distance: float
    ratio_ok: float
    message: str


@dataclass
class ProgramInstruction:
    """
    One program instruction.

    Only move instructions (ins_type == INS_TYPE_MOVE) carry a move type,
    a target pose and joints.
    """

    name: str
    ins_type: int
    move_type: int = 0
    is_joint_target: bool = False
    target: Optional[np.ndarray] = field(default=None, repr=False)
    joints: Optional[List[float]] = None


@dataclass
class ProgramJointList:
    """Joint sequence simulated for a whole program."""

    error_code: int
    message: str
    # None when the list was written to a file on the server side
    joints: Optional[np.ndarray] = field(default=None, repr=False)


class Item:
    """
    Reference to a server-side item.

    Two items are equal when they refer to the same server id. Once deleted
    the id is reset to 0 and the handle stays invalid.
    """

    def __init__(self, link: "Robolink", item_id: int = INVALID_ITEM_ID, item_type: int = ItemType.ANY):
        self.link = link
        self.item_id = int(item_id)
        self.item_type = int(item_type)

    def __repr__(self) -> str:
        if not self.valid():
            return "Item(invalid)"
        return f"Item(id={self.item_id}, type={self.item_type})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Item):
            return NotImplemented
        return self.item_id == other.item_id

    def __hash__(self) -> int:
        return hash(self.item_id)

    def valid(self) -> bool:
        return self.item_id != INVALID_ITEM_ID

    def _command(self, name: Command, timeout: Optional[float] = None):
        # No bytes go out for a handle that is known to be invalid
        if not self.valid():
            raise InvalidItemError(f"{name.value}: item is not valid")
        return self.link.dispatcher.command(name, timeout=timeout)

    def _long_timeout(self) -> float:
        return self.link.config.move_timeout

    # ------------------------------------------------------------------
    # Generic item operations
    # ------------------------------------------------------------------

    def type(self) -> int:
        """Return the item type tag (see ItemType) as reported by the server."""
        with self._command(Command.ITEM_TYPE) as call:
            call.write_item(self)
            self.item_type = call.read_int()
        return self.item_type

    def name(self) -> str:
        with self._command(Command.GET_NAME) as call:
            call.write_item(self)
            return call.read_line()

    def set_name(self, name: str) -> "Item":
        with self._command(Command.SET_NAME) as call:
            call.write_item(self)
            call.write_line(name)
        return self

    def parent(self) -> "Item":
        with self._command(Command.GET_PARENT) as call:
            call.write_item(self)
            return call.read_item()

    def set_parent(self, parent: "Item") -> "Item":
        """Attach this item to a new parent, keeping its local pose."""
        with self._command(Command.SET_PARENT) as call:
            call.write_item(self)
            call.write_item(parent)
        return self

    def children(self) -> List["Item"]:
        with self._command(Command.GET_CHILDREN) as call:
            call.write_item(self)
            count = call.read_int()
            return [call.read_item() for _ in range(count)]

    def visible(self) -> bool:
        with self._command(Command.GET_VISIBLE) as call:
            call.write_item(self)
            return call.read_int() > 0

    def set_visible(self, visible: bool, visible_frame: int = -1) -> "Item":
        """
        Show or hide the item.

        Args:
            visible: Item visibility
            visible_frame: Frame visibility (-1 leaves it unchanged)
        """
        with self._command(Command.SET_VISIBLE) as call:
            call.write_item(self)
            call.write_int(1 if visible else 0)
            call.write_int(visible_frame)
        return self

    def flags(self) -> int:
        with self._command(Command.GET_ITEM_FLAGS) as call:
            call.write_item(self)
            return call.read_int()

    def set_flags(self, flags: int = FLAG_ITEM_ALL) -> "Item":
        with self._command(Command.SET_ITEM_FLAGS) as call:
            call.write_item(self)
            call.write_int(flags)
        return self

    def delete(self) -> None:
        """Remove the item and its children from the station. The handle becomes invalid."""
        with self._command(Command.REMOVE) as call:
            call.write_item(self)
        logger.debug(f"Deleted item {self.item_id}")
        self.item_id = INVALID_ITEM_ID

    def save(self, filename: str) -> None:
        self.link.save(filename, self)

    def new_link(self) -> "Item":
        """Rebind this handle to a new, independent connection (for use from another thread)."""
        self.link = self.link.new_link()
        return self

    # ------------------------------------------------------------------
    # Poses
    # ------------------------------------------------------------------

    def _get_pose(self, name: Command) -> np.ndarray:
        with self._command(name) as call:
            call.write_item(self)
            return call.read_pose()

    def _set_pose(self, name: Command, pose) -> "Item":
        with self._command(name) as call:
            call.write_item(self)
            call.write_pose(pose)
        return self

    def pose(self) -> np.ndarray:
        """Pose of the item relative to its parent."""
        return self._get_pose(Command.GET_POSE)

    def set_pose(self, pose) -> "Item":
        return self._set_pose(Command.SET_POSE, pose)

    def pose_abs(self) -> np.ndarray:
        """Pose of the item relative to the station root."""
        return self._get_pose(Command.GET_POSE_ABS)

    def set_pose_abs(self, pose) -> "Item":
        return self._set_pose(Command.SET_POSE_ABS, pose)

    def geometry_pose(self) -> np.ndarray:
        return self._get_pose(Command.GET_GEOMETRY_POSE)

    def set_geometry_pose(self, pose) -> "Item":
        return self._set_pose(Command.SET_GEOMETRY_POSE, pose)

    def htool(self) -> np.ndarray:
        return self._get_pose(Command.GET_HTOOL)

    def set_htool(self, pose) -> "Item":
        return self._set_pose(Command.SET_HTOOL, pose)

    def pose_tool(self) -> np.ndarray:
        """Active tool pose of a robot."""
        return self._get_pose(Command.GET_POSE_TOOL)

    def set_pose_tool(self, tool) -> "Item":
        """Set the active tool of a robot from a tool item or a 4x4 pose."""
        if isinstance(tool, Item):
            with self._command(Command.SET_POSE_TOOL_ITEM) as call:
                call.write_item(tool)
                call.write_item(self)
        else:
            with self._command(Command.SET_POSE_TOOL) as call:
                call.write_pose(tool)
                call.write_item(self)
        return self

    def pose_frame(self) -> np.ndarray:
        """Active reference frame pose of a robot."""
        return self._get_pose(Command.GET_POSE_FRAME)

    def set_pose_frame(self, frame) -> "Item":
        """Set the active reference frame of a robot from a frame item or a 4x4 pose."""
        if isinstance(frame, Item):
            with self._command(Command.SET_POSE_FRAME_ITEM) as call:
                call.write_item(frame)
                call.write_item(self)
        else:
            with self._command(Command.SET_POSE_FRAME) as call:
                call.write_pose(frame)
                call.write_item(self)
        return self

    # ------------------------------------------------------------------
    # Appearance
    # ------------------------------------------------------------------

    def recolor(self, to_color, from_color=None, tolerance: float = 0.1) -> None:
        """
        Change the color of an object, tool or robot.

        Colors are [R, G, B, A] with components between 0 and 1. When
        from_color is given only the matching color (within tolerance) is
        replaced, otherwise the whole item is recolored.

        Args:
            to_color: New color, at least 4 components
            from_color: Color to replace, or None for all
            tolerance: Matching tolerance for from_color
        """
        to_values = np.asarray(to_color, dtype=float).ravel()
        if to_values.size < 4:
            raise ArgumentError("Invalid color: a color must have 4 components [r, g, b, a]")

        from_values = None if from_color is None else np.asarray(from_color, dtype=float).ravel()
        if from_values is None or from_values.size < 4:
            from_values = np.zeros(4)
            tolerance = 2

        combined = [float(tolerance)] + from_values[:4].tolist() + to_values[:4].tolist()
        with self._command(Command.RECOLOR) as call:
            call.write_item(self)
            call.write_array(combined)

    def scale(self, scale) -> None:
        """Scale an object uniformly (single value) or per axis ([sx, sy, sz])."""
        values = np.atleast_1d(np.asarray(scale, dtype=float)).ravel()
        if values.size == 1:
            values = np.repeat(values, 3)
        if values.size != 3:
            raise ArgumentError("Scale must be a single value or a 3-vector")
        with self._command(Command.SCALE) as call:
            call.write_item(self)
            call.write_array(values)

    # ------------------------------------------------------------------
    # Robots and targets
    # ------------------------------------------------------------------

    def joints(self) -> List[float]:
        with self._command(Command.GET_JOINTS) as call:
            call.write_item(self)
            return call.read_array()

    def set_joints(self, joints) -> "Item":
        with self._command(Command.SET_JOINTS) as call:
            call.write_array(joints)
            call.write_item(self)
        return self

    def joints_home(self) -> List[float]:
        with self._command(Command.GET_JOINTS_HOME) as call:
            call.write_item(self)
            return call.read_array()

    def joint_limits(self) -> Tuple[List[float], List[float]]:
        """Return (lower_limits, upper_limits) of a robot."""
        with self._command(Command.GET_JOINT_LIMITS) as call:
            call.write_item(self)
            lower = call.read_array()
            upper = call.read_array()
            call.read_int()  # joint type, scaled by 1000
        return lower, upper

    def solve_fk(self, joints) -> np.ndarray:
        """Flange pose for the given joints (tool and frame are not applied)."""
        with self._command(Command.SOLVE_FK) as call:
            call.write_array(joints)
            call.write_item(self)
            return call.read_pose()

    def solve_ik(self, pose) -> List[float]:
        """Joint solution closest to the current robot configuration."""
        with self._command(Command.SOLVE_IK) as call:
            call.write_pose(pose)
            call.write_item(self)
            return call.read_array()

    def solve_ik_all(self, pose) -> np.ndarray:
        """All joint solutions, one per column."""
        with self._command(Command.SOLVE_IK_ALL) as call:
            call.write_pose(pose)
            call.write_item(self)
            return call.read_matrix()

    def set_speed(
        self, speed_linear: float, accel_linear: float = -1, speed_joints: float = -1, accel_joints: float = -1
    ) -> "Item":
        """Set robot speeds and accelerations (-1 leaves a value unchanged)."""
        with self._command(Command.SET_SPEED) as call:
            call.write_item(self)
            call.write_array([speed_linear, accel_linear, speed_joints, accel_joints])
        return self

    def set_rounding(self, rounding_mm: float) -> "Item":
        """Set the blending radius (-1 for fine movements)."""
        with self._command(Command.SET_ROUNDING) as call:
            call.write_int(int(rounding_mm * 1000.0))
            call.write_item(self)
        return self

    def busy(self) -> bool:
        with self._command(Command.IS_BUSY) as call:
            call.write_item(self)
            return call.read_int() > 0

    def stop(self) -> None:
        with self._command(Command.STOP) as call:
            call.write_item(self)

    def set_as_joint_target(self) -> "Item":
        with self._command(Command.TARGET_AS_JOINT) as call:
            call.write_item(self)
        return self

    def set_as_cartesian_target(self) -> "Item":
        with self._command(Command.TARGET_AS_CARTESIAN) as call:
            call.write_item(self)
        return self

    def is_joint_target(self) -> bool:
        with self._command(Command.TARGET_IS_JOINT) as call:
            call.write_item(self)
            return call.read_int() > 0

    def set_robot(self, robot: Optional["Item"] = None) -> "Item":
        """Link a program or target to a robot (None selects the first available robot)."""
        with self._command(Command.SET_ROBOT) as call:
            call.write_item(self)
            call.write_item(robot)
        return self

    def add_tool(self, tool_pose, tool_name: str = "New TCP") -> "Item":
        with self._command(Command.ADD_TOOL) as call:
            call.write_item(self)
            call.write_pose(tool_pose)
            call.write_line(tool_name)
            return call.read_item()

    def move_j_test(self, joints1, joints2, minstep_deg: float = -1) -> int:
        """
        Check a joint move for collisions.

        Returns:
            0 if the path is free, otherwise the number of colliding pairs
        """
        with self._command(Command.COLLISION_MOVE_J, timeout=self._long_timeout()) as call:
            call.write_item(self)
            call.write_array(joints1)
            call.write_array(joints2)
            call.write_int(int(minstep_deg * 1000.0))
            return call.read_int()

    def move_l_test(self, joints1, pose2, minstep_mm: float = -1) -> int:
        """Check a linear move for collisions. Same return value as move_j_test."""
        with self._command(Command.COLLISION_MOVE_L, timeout=self._long_timeout()) as call:
            call.write_item(self)
            call.write_array(joints1)
            call.write_pose(pose2)
            call.write_int(int(minstep_mm * 1000.0))
            return call.read_int()

    def joints_config(self, joints) -> List[float]:
        """Configuration flags [REAR, LOWERARM, FLIP] of the robot at the given joints."""
        with self._command(Command.GET_JOINTS_CONFIG) as call:
            call.write_array(joints)
            call.write_item(self)
            return call.read_array()

    def set_accuracy_active(self, accurate: int = 1) -> None:
        """Use the calibrated (1) or the nominal (0) kinematic model."""
        with self._command(Command.SET_ACCURACY_ACTIVE) as call:
            call.write_item(self)
            call.write_int(accurate)

    def show_sequence(self, sequence) -> None:
        """Display a joint sequence (6xN) or an instruction sequence (7xN)."""
        with self._command(Command.SHOW_SEQUENCE) as call:
            call.write_matrix(sequence)
            call.write_item(self)

    # ------------------------------------------------------------------
    # Motion
    # ------------------------------------------------------------------

    def move_j(self, target, blocking: bool = True) -> None:
        """Joint move to an item, a 4x4 pose or joint values."""
        self.link.motion.move(self, MoveType.JOINT, target, blocking)

    def move_l(self, target, blocking: bool = True) -> None:
        """Linear move to an item, a 4x4 pose or joint values."""
        self.link.motion.move(self, MoveType.LINEAR, target, blocking)

    def move_c(self, target1, target2, blocking: bool = True) -> None:
        """Circular move through target1 to target2."""
        self.link.motion.move_circular(self, target1, target2, blocking)

    def wait_move(self, timeout: Optional[float] = None) -> None:
        self.link.motion.wait_move(self, timeout)

    # ------------------------------------------------------------------
    # Programs
    # ------------------------------------------------------------------

    def make_program(self, filename: str) -> Tuple[bool, str]:
        """
        Generate the robot program file.

        Returns:
            (success, log) as reported by the post processor
        """
        with self._command(Command.MAKE_PROGRAM) as call:
            call.write_item(self)
            call.write_line(filename)
            status = call.read_int()
            log = call.read_line()
        return status > 1, log

    def run_program(self) -> int:
        """Start the program (non blocking). Returns the number of runnable instructions."""
        with self._command(Command.RUN_PROGRAM) as call:
            call.write_item(self)
            return call.read_int()

    def instruction_count(self) -> int:
        with self._command(Command.PROGRAM_INSTRUCTION_COUNT) as call:
            call.write_item(self)
            return call.read_int()

    def _add_move(self, target: "Item", move_type: MoveType) -> None:
        if not isinstance(target, Item):
            raise ArgumentError("Program move instructions require a target item")
        with self._command(Command.ADD_MOVE_INSTRUCTION) as call:
            call.write_item(target)
            call.write_item(self)
            call.write_int(int(move_type))

    def add_move_j(self, target: "Item") -> None:
        self._add_move(target, MoveType.JOINT)

    def add_move_l(self, target: "Item") -> None:
        self._add_move(target, MoveType.LINEAR)

    def update(
        self,
        collision_check: int = COLLISION_OFF,
        timeout: Optional[float] = None,
        mm_step: float = -1,
        deg_step: float = -1,
    ) -> ProgramUpdate:
        """
        Re-evaluate a program path (and optionally check it for collisions).

        Args:
            collision_check: COLLISION_ON or COLLISION_OFF
            timeout: Maximum time to wait for the update (defaults to the move ceiling)
            mm_step: Maximum linear step in mm (-1 for the server default)
            deg_step: Maximum joint step in degrees (-1 for the server default)
        """
        timeout = self._long_timeout() if timeout is None else timeout
        with self._command(Command.UPDATE_PROGRAM, timeout=timeout) as call:
            call.write_item(self)
            call.write_array([collision_check, mm_step, deg_step])
            values = call.read_array()
            message = call.read_line()

        if len(values) < 4:
            raise ProtocolError(f"Program update returned {len(values)} values, expected 4")
        return ProgramUpdate(int(values[0]), values[1], values[2], values[3], message)

    def instruction(self, ins_id: int) -> ProgramInstruction:
        with self._command(Command.GET_INSTRUCTION) as call:
            call.write_item(self)
            call.write_int(ins_id)
            instruction = ProgramInstruction(call.read_line(), call.read_int())
            if instruction.ins_type == INS_TYPE_MOVE:
                instruction.move_type = call.read_int()
                instruction.is_joint_target = call.read_int() > 0
                instruction.target = call.read_pose()
                instruction.joints = call.read_array()
        return instruction

    def set_instruction(
        self,
        ins_id: int,
        name: str,
        ins_type: int,
        move_type: int = 0,
        is_joint_target: bool = False,
        target=None,
        joints=None,
    ) -> None:
        """
        Replace the instruction at position ins_id.

        Move instructions (INS_TYPE_MOVE) also send the move type, the target
        kind, the target pose and the joints; target is required for them.
        """
        if ins_type == INS_TYPE_MOVE and target is None:
            raise ArgumentError("A move instruction needs a target pose")
        with self._command(Command.SET_INSTRUCTION) as call:
            call.write_item(self)
            call.write_int(ins_id)
            call.write_line(name)
            call.write_int(ins_type)
            if ins_type == INS_TYPE_MOVE:
                call.write_int(move_type)
                call.write_int(1 if is_joint_target else 0)
                call.write_pose(target)
                call.write_array(joints)

    def instruction_list(self) -> Tuple[np.ndarray, int]:
        """
        Return the program instructions as a matrix (one column per instruction)
        and the number of errors found while building it.
        """
        with self._command(Command.INSTRUCTION_LIST) as call:
            call.write_item(self)
            instructions = call.read_matrix()
            errors = call.read_int()
        return instructions, errors

    def instruction_list_joints(
        self,
        mm_step: float = 10.0,
        deg_step: float = 5.0,
        save_to_file: str = "",
        collision_check: int = COLLISION_OFF,
        flags: int = 0,
        timeout: Optional[float] = None,
    ) -> ProgramJointList:
        """
        Simulate the program and return the joints along its path.

        Each column is [J1..Jn, ERROR, MM_STEP, DEG_STEP, MOVE_ID]. Generating
        the list can take as long as the program itself, so the result waits
        up to the move timeout; the request is sent under the normal timeout.

        Args:
            mm_step: Maximum linear step in mm
            deg_step: Maximum joint step in degrees
            save_to_file: Save the list on the server instead of returning it
            collision_check: COLLISION_ON or COLLISION_OFF
            flags: Reserved
            timeout: Maximum time to wait for the list (defaults to the move ceiling)
        """
        timeout = self._long_timeout() if timeout is None else timeout
        with self._command(Command.INSTRUCTION_LIST_JOINTS) as call:
            call.write_item(self)
            call.write_array([mm_step, deg_step, collision_check, flags])
            call.write_line(save_to_file)
            call.flush()
            with self.link.connection.timeout_override(timeout):
                joints = None if save_to_file else call.read_matrix()
                error_code = call.read_int()
            message = call.read_line()
        return ProgramJointList(error_code, message, joints)

    def run_code_custom(self, code: str, run_type: int = INSTRUCTION_CALL_PROGRAM) -> int:
        """Insert a program call, raw code, a comment or a message in the program."""
        with self._command(Command.RUN_CODE_CUSTOM) as call:
            call.write_item(self)
            call.write_line(code.replace("\n\n", "<br>").replace("\n", "<br>"))
            call.write_int(run_type)
            return call.read_int()

    def pause(self, time_ms: float = -1) -> None:
        """Pause the robot or the program. -1 waits until the user resumes."""
        with self._command(Command.PAUSE) as call:
            call.write_item(self)
            call.write_int(int(time_ms * 1000.0))

    def set_do(self, io_var, io_value) -> None:
        with self._command(Command.SET_DO) as call:
            call.write_item(self)
            call.write_line(str(io_var))
            call.write_line(str(io_value))

    def wait_di(self, io_var, io_value, timeout_ms: float = -1) -> None:
        with self._command(Command.WAIT_DI) as call:
            call.write_item(self)
            call.write_line(str(io_var))
            call.write_line(str(io_value))
            call.write_int(int(timeout_ms * 1000.0))

    def custom_instruction(
        self,
        name: str,
        path_run: str,
        path_icon: str = "",
        blocking: bool = True,
        cmd_run_on_robot: str = "",
    ) -> None:
        """Add an instruction that runs a script or an executable when the program reaches it."""
        with self._command(Command.CUSTOM_INSTRUCTION) as call:
            call.write_item(self)
            call.write_line(name)
            call.write_line(path_run)
            call.write_line(path_icon)
            call.write_line(cmd_run_on_robot)
            call.write_int(1 if blocking else 0)
