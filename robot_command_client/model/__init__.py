"""
Model package - Client-side view of server objects.

Modules:
    pose: Homogeneous pose helpers
    item: Item handles and item operations
    motion: Motion targets and blocking-move synchronization
"""

from robot_command_client.model.item import Item, ProgramInstruction, ProgramJointList, ProgramUpdate
from robot_command_client.model.motion import (
    ItemTarget,
    JointTarget,
    MotionState,
    MotionSynchronizer,
    PoseTarget,
    as_target,
)

__all__ = [
    "Item",
    "ProgramInstruction",
    "ProgramJointList",
    "ProgramUpdate",
    "ItemTarget",
    "JointTarget",
    "MotionState",
    "MotionSynchronizer",
    "PoseTarget",
    "as_target",
]
