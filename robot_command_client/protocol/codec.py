"""
Wire codec for the command protocol.

Every value is written in a fixed, order-dependent layout. All multi-byte
numbers are big-endian (network order) regardless of the host, and every
conversion goes through the struct formats defined at the top of this module.

Layouts::

    Line        UTF-8 bytes + LF                    (no length prefix)
    Int32       4 bytes, signed
    DoubleArray Int32 count + count x float64       (count 0 = null/empty)
    Matrix2D    Int32 rows + Int32 cols + rows*cols x float64, column-major
    Pose        16 x float64, column-major          (fixed 128 bytes)
    ItemHandle  uint64 id + Int32 type tag
    Ptr         uint64
    XYZ         3 x float64
"""

from __future__ import annotations

import enum
import logging
import struct
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from robot_command_client.errors import ArgumentError, ProtocolError

logger = logging.getLogger(__name__)

# Network byte order for everything on the wire
_INT32 = struct.Struct("!i")
_UINT64 = struct.Struct("!Q")
_ITEM = struct.Struct("!Qi")
_DOUBLE_SIZE = 8

RECV_CHUNK_SIZE = 256  # Bulk receives are split into chunks of at most this size
POSE_BYTES = 16 * _DOUBLE_SIZE
INVALID_ITEM = (0, -1)


class WireType(enum.Enum):
    INT = "int"
    LINE = "line"
    ARRAY = "array"
    MATRIX = "matrix"
    POSE = "pose"
    ITEM = "item"
    PTR = "ptr"
    XYZ = "xyz"


def pack_doubles(values) -> bytes:
    """Convert a flat sequence of floats to big-endian float64 bytes."""
    values = [float(v) for v in values]
    return struct.pack(f"!{len(values)}d", *values)


def unpack_doubles(data: bytes) -> List[float]:
    """Convert big-endian float64 bytes back to a list of floats."""
    if len(data) % _DOUBLE_SIZE:
        raise ProtocolError(f"Double payload of {len(data)} bytes is not a multiple of 8")
    return list(struct.unpack(f"!{len(data) // _DOUBLE_SIZE}d", data))


def pack_int(value: int) -> bytes:
    try:
        return _INT32.pack(int(value))
    except struct.error as e:
        raise ArgumentError(f"Value {value} does not fit in a 32-bit integer") from e


def pack_line(line: str) -> bytes:
    # A single LF terminates the line, so embedded ones become spaces
    return (str(line).replace("\n", " ") + "\n").encode("utf-8")


def pack_array(values: Optional[Sequence[float]]) -> bytes:
    if values is None:
        return pack_int(0)
    flat = np.asarray(values, dtype=float).ravel()
    return pack_int(flat.size) + pack_doubles(flat)


def pack_matrix(matrix) -> bytes:
    mat = np.asarray(matrix, dtype=float)
    if mat.ndim == 1 and mat.size == 0:
        mat = mat.reshape(0, 0)
    if mat.ndim != 2:
        raise ArgumentError(f"Matrix2D must be two-dimensional, got shape {mat.shape}")
    rows, cols = mat.shape
    return pack_int(rows) + pack_int(cols) + pack_doubles(mat.ravel(order="F"))


def pack_pose(pose) -> bytes:
    # Deferred: the model package imports this module
    from robot_command_client.model.pose import require_homogeneous

    mat = require_homogeneous(pose)
    return pack_doubles(mat.ravel(order="F"))


def handle_id(item) -> int:
    """Return the numeric id of an item-like value (None and 0 mean 'no item')."""
    if item is None:
        return 0
    if isinstance(item, (int, np.integer)):
        return int(item)
    return int(item.item_id)


def pack_item(item) -> bytes:
    # Only the id travels client -> server; the type tag is server-assigned
    try:
        return _UINT64.pack(handle_id(item))
    except struct.error as e:
        raise ArgumentError(f"Item id {item!r} does not fit in 64 bits") from e


def pack_ptr(ptr: int) -> bytes:
    try:
        return _UINT64.pack(int(ptr or 0))
    except struct.error as e:
        raise ArgumentError(f"Pointer {ptr!r} does not fit in 64 bits") from e


def pack_xyz(xyz: Sequence[float]) -> bytes:
    values = np.asarray(xyz, dtype=float).ravel()
    if values.size != 3:
        raise ArgumentError(f"XYZ requires exactly 3 values, got {values.size}")
    return pack_doubles(values)


_ENCODERS = {
    WireType.INT: pack_int,
    WireType.LINE: pack_line,
    WireType.ARRAY: pack_array,
    WireType.MATRIX: pack_matrix,
    WireType.POSE: pack_pose,
    WireType.ITEM: pack_item,
    WireType.PTR: pack_ptr,
    WireType.XYZ: pack_xyz,
}


def encode_value(wire_type: WireType, value) -> bytes:
    """Encode one typed argument."""
    return _ENCODERS[wire_type](value)


class WireReader:
    """Decode typed values from a byte source.

    ``recv`` follows the ``socket.recv`` contract: it returns at most ``n``
    bytes and an empty bytes object once the stream has ended.
    """

    def __init__(self, recv: Callable[[int], bytes]):
        self._recv = recv

    def read_upto(self, size: int) -> bytes:
        """Read ``size`` bytes or fewer if the stream ends first."""
        chunks = []
        received = 0
        while received < size:
            chunk = self._recv(min(size - received, RECV_CHUNK_SIZE))
            if not chunk:
                break
            chunks.append(chunk)
            received += len(chunk)
        return b"".join(chunks)

    def read_exact(self, size: int) -> bytes:
        data = self.read_upto(size)
        if len(data) != size:
            raise ProtocolError(f"Connection closed after {len(data)} of {size} expected bytes")
        return data

    def read_line(self) -> str:
        buffer = bytearray()
        while True:
            byte = self._recv(1)
            if not byte:
                raise ProtocolError("Connection closed before end of line")
            if byte == b"\n":
                break
            buffer += byte
        return buffer.decode("utf-8", errors="replace")

    def read_int(self) -> int:
        return _INT32.unpack(self.read_exact(4))[0]

    def _read_count(self, what: str) -> int:
        count = self.read_int()
        if count < 0:
            raise ProtocolError(f"Negative {what} received: {count}")
        return count

    def read_array(self) -> List[float]:
        count = self._read_count("array size")
        if count == 0:
            return []
        return unpack_doubles(self.read_exact(count * _DOUBLE_SIZE))

    def read_matrix(self) -> np.ndarray:
        rows = self._read_count("matrix rows")
        cols = self._read_count("matrix cols")
        values = unpack_doubles(self.read_exact(rows * cols * _DOUBLE_SIZE))
        return np.array(values, dtype=float).reshape((rows, cols), order="F")

    def read_pose(self) -> np.ndarray:
        values = unpack_doubles(self.read_exact(POSE_BYTES))
        return np.array(values, dtype=float).reshape((4, 4), order="F")

    def read_item(self) -> Tuple[int, int]:
        data = self.read_upto(_ITEM.size)
        if len(data) != _ITEM.size:
            logger.warning(f"Short item handle read ({len(data)} bytes), using invalid item")
            return INVALID_ITEM
        return _ITEM.unpack(data)

    def read_ptr(self) -> int:
        return _UINT64.unpack(self.read_exact(8))[0]

    def read_xyz(self) -> List[float]:
        return unpack_doubles(self.read_exact(3 * _DOUBLE_SIZE))

    def read_value(self, wire_type: WireType):
        """Decode one typed result."""
        readers = {
            WireType.INT: self.read_int,
            WireType.LINE: self.read_line,
            WireType.ARRAY: self.read_array,
            WireType.MATRIX: self.read_matrix,
            WireType.POSE: self.read_pose,
            WireType.ITEM: self.read_item,
            WireType.PTR: self.read_ptr,
            WireType.XYZ: self.read_xyz,
        }
        return readers[wire_type]()
