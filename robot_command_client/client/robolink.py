"""
Station-level API.

Robolink is the entry point of the client: it owns one Connection, the
CommandDispatcher running on it and the MotionSynchronizer for blocking
moves. Items obtained from a Robolink talk back through it.

Usage::

    with Robolink(ClientConfig(host="localhost")) as rdk:
        robot = rdk.item("UR10", ItemType.ROBOT)
        robot.move_j([0, -90, 90, 0, 90, 0])
"""

from __future__ import annotations

import logging
import os
from typing import List, Optional, Sequence, Tuple

import numpy as np

from robot_command_client.client.connection import Connection
from robot_command_client.client.dispatcher import CommandDispatcher
from robot_command_client.client.launcher import ServerLauncher
from robot_command_client.config import ClientConfig
from robot_command_client.errors import ArgumentError, InvalidItemError
from robot_command_client.model.item import Item
from robot_command_client.model.motion import MotionSynchronizer
from robot_command_client.model.pose import identity
from robot_command_client.protocol.commands import (
    CALIBRATE_FRAME_3P_P1_ON_X,
    CALIBRATE_TCP_BY_POINT,
    COLLISION_ON,
    EULER_RX_RY_RZ,
    FLAG_ROBODK_ALL,
    PROJECTION_ALONG_NORMAL_RECALC,
    Command,
    ItemType,
    RunMode,
    WindowState,
)

logger = logging.getLogger(__name__)

UNKNOWN_PARAM_PREFIX = "UNKNOWN "


class Robolink:
    """
    Connection to the simulation server and the station-wide commands.

    One Robolink must only be used from one thread at a time. Use new_link()
    to get an independent connection for another thread.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        connect: bool = True,
        launcher: Optional[ServerLauncher] = None,
    ):
        self.config = config or ClientConfig()
        self.connection = Connection(self.config, launcher=launcher)
        self.dispatcher = CommandDispatcher(self.connection, item_factory=self._make_item)
        self.motion = MotionSynchronizer(self.dispatcher, self.config.move_timeout)
        if connect:
            self.connection.ensure_connected()

    def __enter__(self) -> "Robolink":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.disconnect()

    def __repr__(self) -> str:
        return f"Robolink({self.connection!r})"

    def _make_item(self, item_id: int, item_type: int) -> Item:
        return Item(self, item_id, item_type)

    def _long_timeout(self) -> float:
        return self.config.move_timeout

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def connect(self) -> bool:
        return self.connection.connect()

    def disconnect(self) -> None:
        self.connection.disconnect()

    def is_connected(self) -> bool:
        return self.connection.is_alive()

    def new_link(self) -> "Robolink":
        """Open a new, independent connection with the same configuration."""
        return Robolink(self.config)

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def item(self, name: str, item_type: int = ItemType.ANY) -> Item:
        """
        Look up an item by name.

        Returns:
            The item; check valid() since an unknown name yields an invalid item
        """
        if item_type == ItemType.ANY:
            with self.dispatcher.command(Command.GET_ITEM) as call:
                call.write_line(name)
                return call.read_item()
        with self.dispatcher.command(Command.GET_ITEM_BY_TYPE) as call:
            call.write_line(name)
            call.write_int(item_type)
            return call.read_item()

    def item_list(self, filter_type: int = ItemType.ANY) -> List[Item]:
        if filter_type < 0:
            with self.dispatcher.command(Command.LIST_ITEMS_PTR) as call:
                count = call.read_int()
                return [call.read_item() for _ in range(count)]
        with self.dispatcher.command(Command.LIST_ITEMS_BY_TYPE_PTR) as call:
            call.write_int(filter_type)
            count = call.read_int()
            return [call.read_item() for _ in range(count)]

    def item_list_names(self, filter_type: int = ItemType.ANY) -> List[str]:
        if filter_type < 0:
            with self.dispatcher.command(Command.LIST_ITEMS) as call:
                count = call.read_int()
                return [call.read_line() for _ in range(count)]
        with self.dispatcher.command(Command.LIST_ITEMS_BY_TYPE) as call:
            call.write_int(filter_type)
            count = call.read_int()
            return [call.read_line() for _ in range(count)]

    def item_user_pick(self, message: str = "Pick one item", item_type: int = ItemType.ANY) -> Item:
        """Ask the user to select an item in the server window. Waits as long as the user needs."""
        with self.dispatcher.command(Command.PICK_ITEM, timeout=self._long_timeout()) as call:
            call.write_line(message)
            call.write_int(item_type)
            return call.read_item()

    def selection(self) -> List[Item]:
        with self.dispatcher.command(Command.SELECTION) as call:
            count = call.read_int()
            return [call.read_item() for _ in range(count)]

    # ------------------------------------------------------------------
    # Window and application
    # ------------------------------------------------------------------

    def _simple(self, name: Command, *ints: int) -> None:
        with self.dispatcher.command(name) as call:
            for value in ints:
                call.write_int(value)

    def show(self) -> None:
        self._simple(Command.RAISE)

    def hide(self) -> None:
        self._simple(Command.HIDE)

    def quit(self) -> None:
        """Close the server application and this connection."""
        self._simple(Command.QUIT)
        self.disconnect()

    def set_window_state(self, state: int = WindowState.NORMAL) -> None:
        self._simple(Command.SET_WINDOW_STATE, int(state))

    def set_flags(self, flags: int = FLAG_ROBODK_ALL) -> None:
        self._simple(Command.SET_FLAGS, flags)

    def show_message(self, message: str, popup: bool = True) -> None:
        """
        Show a message to the user.

        A popup blocks until the user closes it; otherwise the message goes
        to the status bar.
        """
        if popup:
            with self.dispatcher.command(Command.SHOW_MESSAGE, timeout=self._long_timeout()) as call:
                call.write_line(message)
        else:
            with self.dispatcher.command(Command.SHOW_MESSAGE_STATUS) as call:
                call.write_line(message)

    def render(self, always_render: bool = False) -> None:
        self._simple(Command.RENDER, 0 if always_render else 1)

    def license(self) -> str:
        with self.dispatcher.command(Command.LICENSE) as call:
            return call.read_line()

    # ------------------------------------------------------------------
    # Station contents
    # ------------------------------------------------------------------

    def add_file(self, filename: str, parent: Optional[Item] = None) -> Item:
        """Load a file (station, robot, object, tool...) into the station."""
        if not os.path.exists(filename):
            raise FileNotFoundError(filename)
        with self.dispatcher.command(Command.ADD_FILE) as call:
            call.write_line(os.path.abspath(filename))
            call.write_item(parent)
            return call.read_item()

    def save(self, filename: str, item: Optional[Item] = None) -> None:
        """Save the station (item=None) or an item to a file."""
        with self.dispatcher.command(Command.SAVE) as call:
            call.write_line(filename)
            call.write_item(item)

    def close_station(self) -> None:
        with self.dispatcher.command(Command.REMOVE) as call:
            call.write_item(None)

    def add_shape(self, triangle_points, add_to: Optional[Item] = None, shape_override: bool = False) -> Item:
        """Add a triangle mesh (3xN or 6xN with normals) as a new object or to an existing one."""
        with self.dispatcher.command(Command.ADD_SHAPE) as call:
            call.write_matrix(triangle_points)
            call.write_item(add_to)
            call.write_int(1 if shape_override else 0)
            return call.read_item()

    def add_curve(
        self,
        curve_points,
        reference_object: Optional[Item] = None,
        add_to_ref: bool = False,
        projection_type: int = PROJECTION_ALONG_NORMAL_RECALC,
    ) -> Item:
        with self.dispatcher.command(Command.ADD_CURVE) as call:
            call.write_matrix(curve_points)
            call.write_item(reference_object)
            call.write_int(1 if add_to_ref else 0)
            call.write_int(projection_type)
            return call.read_item()

    def project_points(
        self, points, object_project: Item, projection_type: int = PROJECTION_ALONG_NORMAL_RECALC
    ) -> np.ndarray:
        with self.dispatcher.command(Command.PROJECT_POINTS) as call:
            call.write_matrix(points)
            call.write_item(object_project)
            call.write_int(projection_type)
            return call.read_matrix()

    def add_target(self, name: str, parent: Optional[Item] = None, robot: Optional[Item] = None) -> Item:
        with self.dispatcher.command(Command.ADD_TARGET) as call:
            call.write_line(name)
            call.write_item(parent)
            call.write_item(robot)
            return call.read_item()

    def add_target_j(
        self,
        program: Item,
        name: str,
        joints: Sequence[float],
        robot_base: Optional[Item] = None,
        robot: Optional[Item] = None,
    ) -> Item:
        """
        Create a hidden joint target and append a joint move to it in a program.

        Returns:
            The new target
        """
        target = self.add_target(name, robot_base)
        if not target.valid():
            raise InvalidItemError(f"Create target '{name}' failed")
        target.set_visible(False)
        target.set_as_joint_target()
        target.set_joints(joints)
        if robot is not None:
            target.set_robot(robot)
        program.add_move_j(target)
        return target

    def add_frame(self, name: str, parent: Optional[Item] = None) -> Item:
        with self.dispatcher.command(Command.ADD_FRAME) as call:
            call.write_line(name)
            call.write_item(parent)
            return call.read_item()

    def add_program(self, name: str, robot: Optional[Item] = None) -> Item:
        with self.dispatcher.command(Command.ADD_PROGRAM) as call:
            call.write_line(name)
            call.write_item(robot)
            return call.read_item()

    # ------------------------------------------------------------------
    # Programs and simulation
    # ------------------------------------------------------------------

    def run_program(self, function_with_params: str) -> int:
        """Run a program (or a program call with parameters) by name."""
        return self.run_code(function_with_params, True)

    def run_code(self, code: str, code_is_function_call: bool = False) -> int:
        with self.dispatcher.command(Command.RUN_CODE) as call:
            call.write_int(1 if code_is_function_call else 0)
            call.write_line(code)
            return call.read_int()

    def run_message(self, message: str, message_is_comment: bool = False) -> None:
        with self.dispatcher.command(Command.RUN_MESSAGE) as call:
            call.write_int(1 if message_is_comment else 0)
            call.write_line(message)

    def program_start(
        self, name: str, default_folder: str = "", postprocessor: str = "", robot: Optional[Item] = None
    ) -> int:
        """Start offline programming. Returns the number of errors reported by the server."""
        with self.dispatcher.command(Command.PROGRAM_START) as call:
            call.write_line(name)
            call.write_line(default_folder)
            call.write_line(postprocessor)
            call.write_item(robot)
            return call.read_int()

    def set_simulation_speed(self, speed: float) -> None:
        self._simple(Command.SET_SIMULATION_SPEED, int(speed * 1000.0))

    def simulation_speed(self) -> float:
        with self.dispatcher.command(Command.GET_SIMULATION_SPEED) as call:
            return call.read_int() / 1000.0

    def set_run_mode(self, run_mode: int = RunMode.SIMULATE) -> None:
        self._simple(Command.SET_RUN_MODE, int(run_mode))

    def run_mode(self) -> int:
        with self.dispatcher.command(Command.GET_RUN_MODE) as call:
            return call.read_int()

    # ------------------------------------------------------------------
    # Collisions
    # ------------------------------------------------------------------

    def is_inside(self, object_inside: Item, object_parent: Item) -> bool:
        with self.dispatcher.command(Command.IS_INSIDE) as call:
            call.write_item(object_inside)
            call.write_item(object_parent)
            return call.read_int() > 0

    def set_collision_active(self, check_state: int = COLLISION_ON) -> int:
        """Turn collision checking on or off. Returns the number of pairs checked."""
        with self.dispatcher.command(Command.COLLISION_SET_STATE) as call:
            call.write_int(check_state)
            return call.read_int()

    def set_collision_active_pair(
        self, check_state: int, item1: Item, item2: Item, id1: int = 0, id2: int = 0
    ) -> bool:
        """
        Turn collision checking on or off for one pair of objects.

        id1 and id2 select a link of a robot or mechanism (0 is the base).

        Returns:
            False if the server refused the pair (wrong link id)
        """
        with self.dispatcher.command(Command.COLLISION_SET_PAIR) as call:
            call.write_item(item1)
            call.write_item(item2)
            call.write_int(id1)
            call.write_int(id2)
            call.write_int(check_state)
            return call.read_int() > 0

    def collisions(self) -> int:
        with self.dispatcher.command(Command.COLLISIONS) as call:
            return call.read_int()

    def collision(self, item1: Item, item2: Item) -> int:
        with self.dispatcher.command(Command.COLLIDED) as call:
            call.write_item(item1)
            call.write_item(item2)
            return call.read_int()

    def collision_line(self, p1: Sequence[float], p2: Sequence[float]) -> Tuple[Item, List[float]]:
        """
        Check whether the segment p1-p2 (absolute coordinates) hits any object.

        Returns:
            (item, xyz): the first item hit (invalid if none) and the collision point
        """
        with self.dispatcher.command(Command.COLLISION_LINE) as call:
            call.write_xyz(p1)
            call.write_xyz(p2)
            item = call.read_item()
            xyz = call.read_xyz()
        return item, xyz

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    def params(self) -> List[Tuple[str, str]]:
        with self.dispatcher.command(Command.GET_PARAMS) as call:
            count = call.read_int()
            return [(call.read_line(), call.read_line()) for _ in range(count)]

    def param(self, name: str) -> Optional[str]:
        """Return a station parameter, or None if it is not defined."""
        with self.dispatcher.command(Command.GET_PARAM) as call:
            call.write_line(name)
            value = call.read_line()
        if value.startswith(UNKNOWN_PARAM_PREFIX):
            return None
        return value

    def set_param(self, name: str, value) -> None:
        with self.dispatcher.command(Command.SET_PARAM) as call:
            call.write_line(name)
            call.write_line(str(value))

    # ------------------------------------------------------------------
    # Multiple robots
    # ------------------------------------------------------------------

    def joints(self, robots: Sequence[Item]) -> List[List[float]]:
        """Return the joints of several robots in one call."""
        with self.dispatcher.command(Command.GET_JOINTS_LIST) as call:
            call.write_int(len(robots))
            for robot in robots:
                call.write_item(robot)
            return [call.read_array() for _ in robots]

    def set_joints(self, robots: Sequence[Item], joints_list: Sequence[Sequence[float]]) -> None:
        if len(robots) != len(joints_list):
            raise ArgumentError(f"Got {len(robots)} robots but {len(joints_list)} joint arrays")
        with self.dispatcher.command(Command.SET_JOINTS_LIST) as call:
            call.write_int(len(robots))
            for robot, joints in zip(robots, joints_list):
                call.write_item(robot)
                call.write_array(joints)

    # ------------------------------------------------------------------
    # Calibration
    # ------------------------------------------------------------------

    def calibrate_tool(
        self,
        poses_joints,
        pose_format: int = EULER_RX_RY_RZ,
        algorithm: int = CALIBRATE_TCP_BY_POINT,
        robot: Optional[Item] = None,
    ) -> Tuple[List[float], List[float]]:
        """
        Compute a TCP from a set of poses or robot joints.

        Args:
            poses_joints: One pose (in pose_format) or one joint set per column
            pose_format: Euler format of the poses, or JOINT_FORMAT with a robot
            algorithm: CALIBRATE_TCP_BY_POINT or CALIBRATE_TCP_BY_PLANE
            robot: Robot the joints belong to

        Returns:
            (tcp, error_stats): TCP as [x, y, z] and [mean, std, max] errors
        """
        with self.dispatcher.command(Command.CALIBRATE_TOOL) as call:
            call.write_matrix(poses_joints)
            call.write_int(pose_format)
            call.write_int(algorithm)
            call.write_item(robot)
            tcp = call.read_array()
            error_stats = call.read_array()
            # per-point errors, not exposed
            call.read_matrix()
        return tcp, error_stats

    def calibrate_reference(
        self,
        joints,
        method: int = CALIBRATE_FRAME_3P_P1_ON_X,
        use_joints: bool = False,
        robot: Optional[Item] = None,
    ) -> np.ndarray:
        """Compute a reference frame from 3xN points or from robot joints (use_joints with a robot)."""
        with self.dispatcher.command(Command.CALIBRATE_REFERENCE) as call:
            call.write_matrix(joints)
            call.write_int(-1 if use_joints else 0)
            call.write_int(method)
            call.write_item(robot)
            pose = call.read_pose()
            error_stats = call.read_array()
        logger.debug(f"Reference calibration error stats: {error_stats}")
        return pose

    def set_robot_params(self, robot: Item, dhm: Sequence[Sequence[float]], pose_base, pose_tool) -> None:
        """
        Set the nominal kinematics of a robot.

        Args:
            robot: Robot item
            dhm: One modified Denavit-Hartenberg row per joint
            pose_base: Base frame pose
            pose_tool: Flange pose
        """
        rows = [list(row) for row in dhm]
        with self.dispatcher.command(Command.SET_ROBOT_PARAMS) as call:
            call.write_item(robot)
            call.write_pose(identity())
            # the kinematics are sent twice, the second copy for internal use
            for _ in range(2):
                call.write_pose(pose_base)
                call.write_pose(pose_tool)
                call.write_int(len(rows))
                for row in rows:
                    call.write_array(row)
            call.write_array(None)
            call.write_array(None)

    # ------------------------------------------------------------------
    # View and cameras
    # ------------------------------------------------------------------

    def view_pose(self) -> np.ndarray:
        with self.dispatcher.command(Command.GET_VIEW_POSE) as call:
            return call.read_pose()

    def set_view_pose(self, pose) -> None:
        with self.dispatcher.command(Command.SET_VIEW_POSE) as call:
            call.write_pose(pose)

    def cam2d_add(self, item: Item, cam_params: str = "") -> int:
        """Open a simulated 2D camera attached to item. Returns the camera handle."""
        with self.dispatcher.command(Command.CAM2D_ADD) as call:
            call.write_item(item)
            call.write_line(cam_params)
            return call.read_ptr()

    def cam2d_snapshot(self, file_save_img: str, cam_handle: int = 0) -> bool:
        with self.dispatcher.command(Command.CAM2D_SNAPSHOT) as call:
            call.write_ptr(cam_handle)
            call.write_line(file_save_img)
            return call.read_int() > 0

    def cam2d_close(self, cam_handle: int = 0) -> bool:
        """Close one camera, or all of them when cam_handle is 0."""
        if cam_handle == 0:
            with self.dispatcher.command(Command.CAM2D_CLOSE_ALL) as call:
                return call.read_int() > 0
        with self.dispatcher.command(Command.CAM2D_CLOSE) as call:
            call.write_ptr(cam_handle)
            return call.read_int() > 0

    def cam2d_set_params(self, cam_params: str, cam_handle: int = 0) -> bool:
        with self.dispatcher.command(Command.CAM2D_SET_PARAMS) as call:
            call.write_ptr(cam_handle)
            call.write_line(cam_params)
            return call.read_int() > 0
