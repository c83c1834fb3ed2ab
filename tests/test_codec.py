"""
Unit tests for the wire codec.

Checks byte layouts against hand-built big-endian payloads and the decoder
behavior on short or chunked streams.
"""

import io
import struct

import numpy as np
import pytest

from robot_command_client.errors import ArgumentError, ProtocolError
from robot_command_client.protocol.codec import (
    INVALID_ITEM,
    RECV_CHUNK_SIZE,
    WireReader,
    WireType,
    encode_value,
    pack_array,
    pack_int,
    pack_item,
    pack_line,
    pack_matrix,
    pack_pose,
    pack_ptr,
    pack_xyz,
)


def reader_for(data: bytes) -> WireReader:
    return WireReader(io.BytesIO(data).read)


def double_from_bits(bits: int) -> float:
    return struct.unpack("!d", bits.to_bytes(8, "big"))[0]


def bits_of(value: float) -> int:
    return int.from_bytes(struct.pack("!d", value), "big")


# Quiet NaNs only: signalling payloads may be quieted by the FPU
EDGE_DOUBLE_BITS = [
    0x0000000000000000,  # +0.0
    0x8000000000000000,  # -0.0
    0x7FF0000000000000,  # +inf
    0xFFF0000000000000,  # -inf
    0x7FF8000000000000,  # nan
    0xFFF8000000000000,  # -nan
    0x7FF80000DEADBEEF,  # nan with payload
    0x0000000000000001,  # smallest subnormal
    0x800FFFFFFFFFFFFF,  # largest negative subnormal
    0x0010000000000000,  # smallest normal
    0x7FEFFFFFFFFFFFFF,  # max float
    0x3FF0000000000001,  # 1.0 + ulp
]


class TrickleSource:
    """recv() that hands out at most one byte per call and records the requested sizes."""

    def __init__(self, data: bytes):
        self._data = io.BytesIO(data)
        self.requests = []

    def recv(self, size: int) -> bytes:
        self.requests.append(size)
        return self._data.read(min(size, 1))


class TestLine:
    """Test Line encoding and decoding."""

    def test_line_is_utf8_with_single_lf(self):
        """Test a line is UTF-8 encoded and LF terminated."""
        assert pack_line("Frame 1") == b"Frame 1\n"
        assert pack_line("Grün") == "Grün\n".encode("utf-8")

    def test_embedded_newlines_become_spaces(self):
        """Test embedded LF characters cannot split a line."""
        assert pack_line("first\nsecond") == b"first second\n"

    def test_read_line(self):
        """Test reading consumes exactly one line."""
        reader = reader_for(b"UR10\nrest")
        assert reader.read_line() == "UR10"
        assert reader.read_upto(4) == b"rest"

    def test_read_line_eof(self):
        """Test a missing terminator is a protocol error."""
        with pytest.raises(ProtocolError):
            reader_for(b"no newline").read_line()


class TestInt:
    """Test Int32 encoding."""

    def test_big_endian(self):
        """Test integers are network order regardless of the host."""
        assert pack_int(256) == b"\x00\x00\x01\x00"
        assert pack_int(-1) == b"\xff\xff\xff\xff"

    def test_out_of_range(self):
        """Test values outside 32 bits are rejected locally."""
        with pytest.raises(ArgumentError):
            pack_int(2**31)

    def test_read_int(self):
        """Test decoding a signed integer."""
        assert reader_for(struct.pack("!i", -42)).read_int() == -42

    @pytest.mark.parametrize("value", [0, 1, -1, 2**31 - 1, -(2**31), 2**16, -(2**16) - 1])
    def test_round_trip_extremes(self, value):
        """Test signed 32-bit values survive encoding unchanged."""
        assert reader_for(pack_int(value)).read_int() == value


class TestDoubleArray:
    """Test DoubleArray encoding and decoding."""

    def test_values(self):
        """Test count prefix followed by big-endian doubles."""
        assert pack_array([1.5, -2.0]) == struct.pack("!i2d", 2, 1.5, -2.0)

    def test_none_and_empty_are_count_zero(self):
        """Test a null array is a zero count with no payload."""
        assert pack_array(None) == b"\x00\x00\x00\x00"
        assert pack_array([]) == b"\x00\x00\x00\x00"

    def test_read_empty(self):
        """Test a zero count decodes to an empty list."""
        assert reader_for(pack_int(0)).read_array() == []

    def test_read_values(self):
        """Test decoding array values."""
        data = struct.pack("!i3d", 3, 0.0, 90.0, -45.25)
        assert reader_for(data).read_array() == [0.0, 90.0, -45.25]

    @pytest.mark.parametrize("bits", EDGE_DOUBLE_BITS, ids=[f"{b:016x}" for b in EDGE_DOUBLE_BITS])
    def test_round_trip_bit_exact(self, bits):
        """Test edge doubles (signed zero, infinities, NaN payloads, subnormals) keep their bit pattern."""
        value = double_from_bits(bits)
        decoded = reader_for(pack_array([1.0, value])).read_array()
        assert bits_of(decoded[1]) == bits

    def test_round_trip_matrix_bit_exact(self):
        """Test edge doubles keep their bit pattern and position inside a matrix."""
        values = [double_from_bits(b) for b in EDGE_DOUBLE_BITS]
        matrix = np.array(values, dtype=float).reshape(2, -1)
        decoded = reader_for(pack_matrix(matrix)).read_matrix()
        assert [bits_of(v) for v in decoded.ravel()] == [bits_of(v) for v in matrix.ravel()]

    def test_negative_count(self):
        """Test a negative count is a protocol error."""
        with pytest.raises(ProtocolError):
            reader_for(pack_int(-3)).read_array()

    def test_truncated_payload(self):
        """Test a short payload raises instead of padding with zeros."""
        data = struct.pack("!i2d", 3, 1.0, 2.0)
        with pytest.raises(ProtocolError):
            reader_for(data).read_array()


class TestMatrix2D:
    """Test Matrix2D encoding and decoding."""

    def test_column_major(self):
        """Test the values are written column by column."""
        mat = np.array([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
        expected = struct.pack("!ii6d", 2, 3, 1.0, 4.0, 2.0, 5.0, 3.0, 6.0)
        assert pack_matrix(mat) == expected

    def test_read_column_major(self):
        """Test decoding restores the original shape and order."""
        mat = np.array([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
        decoded = reader_for(pack_matrix(mat)).read_matrix()
        np.testing.assert_array_equal(decoded, mat)

    def test_empty_matrix(self):
        """Test a 0x0 matrix has only the two dimensions."""
        assert pack_matrix(np.zeros((0, 0))) == b"\x00" * 8
        assert pack_matrix([]) == b"\x00" * 8
        assert reader_for(b"\x00" * 8).read_matrix().shape == (0, 0)

    def test_not_two_dimensional(self):
        """Test three-dimensional input is rejected."""
        with pytest.raises(ArgumentError):
            pack_matrix(np.zeros((2, 2, 2)))


class TestPose:
    """Test Pose encoding and decoding."""

    def test_fixed_size_column_major(self, sample_pose):
        """Test a pose is 16 doubles, column-major, with no header."""
        data = pack_pose(sample_pose)
        assert len(data) == 128
        values = struct.unpack("!16d", data)
        assert values[12:15] == (100.0, -20.0, 350.5)
        assert values[15] == 1.0

    def test_read_pose(self, sample_pose):
        """Test decoding restores the matrix."""
        np.testing.assert_array_equal(reader_for(pack_pose(sample_pose)).read_pose(), sample_pose)

    def test_non_homogeneous_rejected(self, non_homogeneous_pose):
        """Test a matrix that is not a rigid transformation cannot be sent."""
        with pytest.raises(ArgumentError):
            pack_pose(non_homogeneous_pose)

    def test_wrong_shape_rejected(self):
        """Test a 3x3 matrix is not a pose."""
        with pytest.raises(ArgumentError):
            pack_pose(np.eye(3))


class TestItemHandle:
    """Test ItemHandle, Ptr and XYZ layouts."""

    def test_item_sends_id_only(self):
        """Test an item argument is its 64-bit id."""
        assert pack_item(7) == struct.pack("!Q", 7)
        assert pack_item(None) == b"\x00" * 8

    def test_read_item(self):
        """Test an item result carries id and type tag."""
        assert reader_for(struct.pack("!Qi", 2**40, 2)).read_item() == (2**40, 2)

    def test_short_item_is_invalid(self):
        """Test a truncated handle decodes to the invalid item."""
        assert reader_for(struct.pack("!Q", 5)).read_item() == INVALID_ITEM

    def test_ptr(self):
        """Test pointers are untagged 64-bit values."""
        assert pack_ptr(0xDEADBEEF) == struct.pack("!Q", 0xDEADBEEF)
        assert reader_for(pack_ptr(12345)).read_ptr() == 12345

    def test_xyz(self):
        """Test XYZ is exactly three doubles."""
        assert pack_xyz([1, 2, 3]) == struct.pack("!3d", 1.0, 2.0, 3.0)
        assert reader_for(pack_xyz([1, 2, 3])).read_xyz() == [1.0, 2.0, 3.0]

    def test_xyz_wrong_length(self):
        """Test XYZ with two values is rejected before encoding."""
        with pytest.raises(ArgumentError):
            pack_xyz([1.0, 2.0])


class TestReader:
    """Test chunked reads and typed dispatch."""

    def test_reads_accumulate_partial_chunks(self):
        """Test values split over many receives are reassembled."""
        source = TrickleSource(struct.pack("!i2d", 2, 3.5, 4.5))
        assert WireReader(source.recv).read_array() == [3.5, 4.5]

    def test_chunk_size_limit(self):
        """Test no single receive asks for more than the chunk size."""
        values = list(range(100))
        source = TrickleSource(pack_array(values))
        WireReader(source.recv).read_array()
        assert max(source.requests) <= RECV_CHUNK_SIZE

    def test_read_exact_short(self):
        """Test end of stream before the expected count."""
        with pytest.raises(ProtocolError):
            reader_for(b"\x00\x01").read_exact(4)

    def test_read_value_dispatch(self):
        """Test typed reads match the typed encoders."""
        data = encode_value(WireType.INT, 3) + encode_value(WireType.LINE, "ok") + encode_value(
            WireType.XYZ, [0, 0, 1]
        )
        reader = reader_for(data)
        assert reader.read_value(WireType.INT) == 3
        assert reader.read_value(WireType.LINE) == "ok"
        assert reader.read_value(WireType.XYZ) == [0.0, 0.0, 1.0]
