"""
Command line client.

Examples::

    robot-command-client ping
    robot-command-client --host 192.168.0.10 items
    robot-command-client pose "Frame 2"
    robot-command-client move UR10 0 -90 90 0 90 0
"""

import argparse
import logging
import sys

import numpy as np

from robot_command_client.client.robolink import Robolink
from robot_command_client.config import ClientConfig, load_config
from robot_command_client.errors import RobotClientError
from robot_command_client.logging_config import configure_logging
from robot_command_client.protocol.commands import ItemType

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Send commands to a robot simulation server")
    parser.add_argument("--config", help="YAML file with client settings")
    parser.add_argument("--host", help="Server host (overrides the config file)")
    parser.add_argument("--port", type=int, help="Server port (overrides the config file)")
    parser.add_argument("--log-level", default="WARNING", help="Log level (DEBUG, INFO, WARNING...)")
    parser.add_argument("--log-dir", help="Also write a timestamped log file to this directory")

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("ping", help="Connect and print the server license")
    commands.add_parser("items", help="List the names of all items in the station")

    pose = commands.add_parser("pose", help="Print the local pose of an item")
    pose.add_argument("name", help="Item name")

    move = commands.add_parser("move", help="Blocking joint move of a robot")
    move.add_argument("robot", help="Robot name")
    move.add_argument("joints", type=float, nargs="+", help="Joint values")
    return parser


def _make_config(args) -> ClientConfig:
    config = load_config(args.config) if args.config else ClientConfig.from_env()
    if args.host:
        config.host = args.host
    if args.port:
        config.forced_port = args.port
        config.port_start = args.port
        config.port_end = args.port
    return config


def run(args) -> int:
    config = _make_config(args)
    with Robolink(config) as rdk:
        if args.command == "ping":
            print(f"Connected to {config.host}:{rdk.connection.port}")
            print(f"License: {rdk.license()}")

        elif args.command == "items":
            for name in rdk.item_list_names():
                print(name)

        elif args.command == "pose":
            item = rdk.item(args.name)
            if not item.valid():
                print(f"Item not found: {args.name}", file=sys.stderr)
                return 1
            with np.printoptions(precision=3, suppress=True):
                print(item.pose())

        elif args.command == "move":
            robot = rdk.item(args.robot, ItemType.ROBOT)
            if not robot.valid():
                print(f"Robot not found: {args.robot}", file=sys.stderr)
                return 1
            robot.move_j(args.joints)
            print(f"{args.robot} reached {robot.joints()}")
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, args.log_dir)
    try:
        return run(args)
    except RobotClientError as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
