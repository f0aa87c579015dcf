"""Binary encoding of arrays, ranges, geometric, network and ltree values.

Every ``*_to_sql`` function returns the encoded value as ``bytes``. Every
``*_from_sql`` function decodes a whole buffer and raises ``ProtocolError``
if the buffer is malformed.
"""

from __future__ import annotations

import enum
import ipaddress
import struct
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, NamedTuple

from .core import I32_MAX, ProtocolError, nullable, to_i32

_RANGE_UPPER_UNBOUNDED = 0b0001_0000
_RANGE_LOWER_UNBOUNDED = 0b0000_1000
_RANGE_UPPER_INCLUSIVE = 0b0000_0100
_RANGE_LOWER_INCLUSIVE = 0b0000_0010
_RANGE_EMPTY = 0b0000_0001

_PGSQL_AF_INET = 2
_PGSQL_AF_INET6 = 3

_SHORT_BUFFER = "failed to fill whole buffer"
_BAD_SIZE = "invalid buffer size"


def _pack(fmt: str, *values: Any) -> bytes:
    try:
        return struct.pack(fmt, *values)
    except struct.error as exc:
        raise ProtocolError(str(exc)) from exc


def _decode_utf8(data: bytes) -> str:
    try:
        return bytes(data).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ProtocolError(str(exc)) from exc


class _Reader:
    """Sequential big-endian reads from a byte buffer."""

    def __init__(self, buf: bytes) -> None:
        self._view = memoryview(bytes(buf))

    @property
    def remaining(self) -> int:
        return len(self._view)

    def _read(self, fmt: str) -> Any:
        size = struct.calcsize(fmt)
        if len(self._view) < size:
            raise ProtocolError(_SHORT_BUFFER)
        (value,) = struct.unpack(fmt, self._view[:size])
        self._view = self._view[size:]
        return value

    def u8(self) -> int:
        return self._read("!B")

    def i32(self) -> int:
        return self._read("!i")

    def u32(self) -> int:
        return self._read("!I")

    def f64(self) -> float:
        return self._read("!d")

    def take(self, count: int, error: str = _SHORT_BUFFER) -> bytes:
        if len(self._view) < count:
            raise ProtocolError(error)
        data = bytes(self._view[:count])
        self._view = self._view[count:]
        return data


class ArrayDimension(NamedTuple):
    """One dimension of an array: its length and the index of its first element."""

    length: int
    lower_bound: int


@dataclass(frozen=True)
class Array:
    """A decoded array; ``values`` are the raw elements in row-major order."""

    has_nulls: bool
    element_type: int
    dimensions: tuple[ArrayDimension, ...]
    values: tuple[bytes | None, ...]


def array_to_sql(
    dimensions: Iterable[ArrayDimension | tuple[int, int]],
    element_type: int,
    elements: Iterable[Any],
    serializer: Callable[[Any], bytes | None],
) -> bytes:
    """Encode an array.

    ``serializer`` turns each element into bytes, or ``None`` for SQL ``NULL``.
    """
    dims = [ArrayDimension(*dimension) for dimension in dimensions]
    header_dims = b"".join(_pack("!ii", d.length, d.lower_bound) for d in dims)

    has_nulls = False
    body = bytearray()
    for element in elements:
        data = serializer(element)
        if data is None:
            has_nulls = True
        body += nullable(data)

    return (
        _pack("!iiI", to_i32(len(dims)), int(has_nulls), element_type)
        + header_dims
        + bytes(body)
    )


def array_from_sql(buf: bytes) -> Array:
    """Decode an array."""
    reader = _Reader(buf)
    num_dimensions = reader.i32()
    if num_dimensions < 0:
        raise ProtocolError("invalid dimension count")
    has_nulls = reader.i32() != 0
    element_type = reader.u32()

    dimensions = []
    count = 1
    for _ in range(num_dimensions):
        length = reader.i32()
        if length < 0:
            raise ProtocolError("invalid dimension size")
        lower_bound = reader.i32()
        count *= length
        if count > I32_MAX:
            raise ProtocolError("too many array elements")
        dimensions.append(ArrayDimension(length, lower_bound))
    if num_dimensions == 0:
        count = 0

    values: list[bytes | None] = []
    for _ in range(count):
        length = reader.i32()
        values.append(None if length < 0 else reader.take(length, "invalid value length"))

    if reader.remaining:
        raise ProtocolError("invalid message length: arrayvalue not drained")

    return Array(has_nulls, element_type, tuple(dimensions), tuple(values))


class BoundKind(enum.Enum):
    """How one side of a range is bounded."""

    INCLUSIVE = "inclusive"
    EXCLUSIVE = "exclusive"
    UNBOUNDED = "unbounded"


@dataclass(frozen=True)
class RangeBound:
    """One side of a range; ``value`` is the raw bound, ``None`` for ``NULL``."""

    kind: BoundKind
    value: bytes | None = None


@dataclass(frozen=True)
class Range:
    """A decoded range: either ``empty`` or bounded by ``lower`` and ``upper``."""

    lower: RangeBound | None = None
    upper: RangeBound | None = None
    empty: bool = False


def empty_range_to_sql() -> bytes:
    """Encode an empty range."""
    return bytes([_RANGE_EMPTY])


def _bound_to_sql(bound: RangeBound, unbounded: int, inclusive: int) -> tuple[int, bytes]:
    if bound.kind is BoundKind.UNBOUNDED:
        return unbounded, b""
    flag = inclusive if bound.kind is BoundKind.INCLUSIVE else 0
    return flag, nullable(bound.value)


def range_to_sql(lower: RangeBound, upper: RangeBound) -> bytes:
    """Encode a non-empty range from its two bounds."""
    lower_flag, lower_data = _bound_to_sql(
        lower, _RANGE_LOWER_UNBOUNDED, _RANGE_LOWER_INCLUSIVE
    )
    upper_flag, upper_data = _bound_to_sql(
        upper, _RANGE_UPPER_UNBOUNDED, _RANGE_UPPER_INCLUSIVE
    )
    return bytes([lower_flag | upper_flag]) + lower_data + upper_data


def _read_bound(reader: _Reader, tag: int, unbounded: int, inclusive: int) -> RangeBound:
    if tag & unbounded:
        return RangeBound(BoundKind.UNBOUNDED)
    length = reader.i32()
    value = None if length < 0 else reader.take(length, "invalid message size")
    kind = BoundKind.INCLUSIVE if tag & inclusive else BoundKind.EXCLUSIVE
    return RangeBound(kind, value)


def range_from_sql(buf: bytes) -> Range:
    """Decode a range."""
    reader = _Reader(buf)
    tag = reader.u8()

    if tag == _RANGE_EMPTY:
        if reader.remaining:
            raise ProtocolError("invalid message size")
        return Range(empty=True)

    lower = _read_bound(reader, tag, _RANGE_LOWER_UNBOUNDED, _RANGE_LOWER_INCLUSIVE)
    upper = _read_bound(reader, tag, _RANGE_UPPER_UNBOUNDED, _RANGE_UPPER_INCLUSIVE)
    if reader.remaining:
        raise ProtocolError("invalid message size")
    return Range(lower, upper)


class Point(NamedTuple):
    """A geometric point."""

    x: float
    y: float


@dataclass(frozen=True)
class Box:
    """A geometric box given by two opposite corners."""

    upper_right: Point
    lower_left: Point


@dataclass(frozen=True)
class Path:
    """A geometric path, open or closed."""

    closed: bool
    points: tuple[Point, ...]


def point_to_sql(x: float, y: float) -> bytes:
    """Encode a point."""
    return _pack("!dd", x, y)


def point_from_sql(buf: bytes) -> Point:
    """Decode a point."""
    reader = _Reader(buf)
    point = Point(reader.f64(), reader.f64())
    if reader.remaining:
        raise ProtocolError(_BAD_SIZE)
    return point


def box_to_sql(x1: float, y1: float, x2: float, y2: float) -> bytes:
    """Encode a box from its upper right and lower left corners."""
    return _pack("!dddd", x1, y1, x2, y2)


def box_from_sql(buf: bytes) -> Box:
    """Decode a box."""
    reader = _Reader(buf)
    upper_right = Point(reader.f64(), reader.f64())
    lower_left = Point(reader.f64(), reader.f64())
    if reader.remaining:
        raise ProtocolError(_BAD_SIZE)
    return Box(upper_right, lower_left)


def path_to_sql(closed: bool, points: Iterable[Point | tuple[float, float]]) -> bytes:
    """Encode a path."""
    encoded = [_pack("!dd", x, y) for x, y in points]
    return (
        bytes([1 if closed else 0])
        + _pack("!i", to_i32(len(encoded)))
        + b"".join(encoded)
    )


def path_from_sql(buf: bytes) -> Path:
    """Decode a path."""
    reader = _Reader(buf)
    closed = reader.u8() != 0
    count = reader.i32()
    if count < 0:
        raise ProtocolError(_SHORT_BUFFER)
    points = tuple(Point(reader.f64(), reader.f64()) for _ in range(count))
    if reader.remaining:
        raise ProtocolError("invalid message length: path points not drained")
    return Path(closed, points)


@dataclass(frozen=True)
class Inet:
    """A network address with its netmask length."""

    addr: ipaddress.IPv4Address | ipaddress.IPv6Address
    netmask: int


def inet_to_sql(
    addr: ipaddress.IPv4Address | ipaddress.IPv6Address | str, netmask: int
) -> bytes:
    """Encode an ``INET`` value."""
    address = ipaddress.ip_address(addr)
    family = _PGSQL_AF_INET if address.version == 4 else _PGSQL_AF_INET6
    packed = address.packed
    return _pack("!BBBB", family, netmask, 0, len(packed)) + packed


def inet_from_sql(buf: bytes) -> Inet:
    """Decode an ``INET`` value."""
    reader = _Reader(buf)
    family = reader.u8()
    netmask = reader.u8()
    reader.u8()  # is_cidr
    length = reader.u8()

    addr: ipaddress.IPv4Address | ipaddress.IPv6Address
    if family == _PGSQL_AF_INET:
        if netmask > 32:
            raise ProtocolError("invalid IPv4 netmask")
        if length != 4:
            raise ProtocolError("invalid IPv4 address length")
        addr = ipaddress.IPv4Address(reader.take(4))
    elif family == _PGSQL_AF_INET6:
        if netmask > 128:
            raise ProtocolError("invalid IPv6 netmask")
        if length != 16:
            raise ProtocolError("invalid IPv6 address length")
        addr = ipaddress.IPv6Address(reader.take(16))
    else:
        raise ProtocolError("invalid IP family")

    if reader.remaining:
        raise ProtocolError(_BAD_SIZE)
    return Inet(addr, netmask)


def _versioned_to_sql(value: str) -> bytes:
    return b"\x01" + value.encode("utf-8")


def _versioned_from_sql(buf: bytes, type_name: str) -> str:
    data = bytes(buf)
    if not data or data[0] != 1:
        raise ProtocolError(f"{type_name} version 1 only supported")
    return _decode_utf8(data[1:])


def ltree_to_sql(value: str) -> bytes:
    """Encode an ``LTREE`` value."""
    return _versioned_to_sql(value)


def ltree_from_sql(buf: bytes) -> str:
    """Decode an ``LTREE`` value."""
    return _versioned_from_sql(buf, "ltree")


def lquery_to_sql(value: str) -> bytes:
    """Encode an ``LQUERY`` value."""
    return _versioned_to_sql(value)


def lquery_from_sql(buf: bytes) -> str:
    """Decode an ``LQUERY`` value."""
    return _versioned_from_sql(buf, "lquery")


def ltxtquery_to_sql(value: str) -> bytes:
    """Encode an ``LTXTQUERY`` value."""
    return _versioned_to_sql(value)


def ltxtquery_from_sql(buf: bytes) -> str:
    """Decode an ``LTXTQUERY`` value."""
    return _versioned_from_sql(buf, "ltxtquery")