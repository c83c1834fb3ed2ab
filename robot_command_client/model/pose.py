"""
Pose helpers.

Poses are 4x4 homogeneous transformation matrices held as numpy arrays.
Only what is needed to validate and serialize a Pose payload lives here.
"""

from __future__ import annotations

import numpy as np

from robot_command_client.errors import ArgumentError

HOMOGENEOUS_TOLERANCE = 1e-6


def identity() -> np.ndarray:
    """Return the 4x4 identity pose."""
    return np.eye(4)


def translation(x: float, y: float, z: float) -> np.ndarray:
    """Return a pure translation pose."""
    pose = np.eye(4)
    pose[:3, 3] = (x, y, z)
    return pose


def is_homogeneous(matrix, tolerance: float = HOMOGENEOUS_TOLERANCE) -> bool:
    """
    Check whether a matrix is a valid homogeneous transformation.

    The bottom row must be [0, 0, 0, 1] and the 3x3 rotation block must be
    orthonormal, both within ``tolerance``.
    """
    try:
        mat = np.asarray(matrix, dtype=float)
    except (TypeError, ValueError):
        return False
    if mat.shape != (4, 4) or not np.all(np.isfinite(mat)):
        return False
    if not np.allclose(mat[3], (0.0, 0.0, 0.0, 1.0), atol=tolerance):
        return False
    rotation = mat[:3, :3]
    return bool(np.allclose(rotation.T @ rotation, np.eye(3), atol=tolerance))


def require_homogeneous(matrix) -> np.ndarray:
    """Return ``matrix`` as a float array, refusing anything that is not a valid pose."""
    if not is_homogeneous(matrix):
        raise ArgumentError("Pose must be a 4x4 homogeneous matrix")
    return np.asarray(matrix, dtype=float)
