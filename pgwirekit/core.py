"""Shared primitives for encoding values on the wire."""

from __future__ import annotations

import enum
import struct

I16_MAX = 2**15 - 1
I32_MAX = 2**31 - 1


class ProtocolError(ValueError):
    """Raised when a value cannot be encoded for transmission."""


class IsNull(enum.Enum):
    """Whether a serialized value is SQL ``NULL``."""

    YES = True
    NO = False


def _check_size(value: int, maximum: int) -> int:
    if value < 0:
        raise ProtocolError("negative length")
    if value > maximum:
        raise ProtocolError("value too large to transmit")
    return value


def to_i16(value: int) -> int:
    """Return ``value`` if it fits in a signed 16-bit length field."""
    return _check_size(value, I16_MAX)


def to_i32(value: int) -> int:
    """Return ``value`` if it fits in a signed 32-bit length field."""
    return _check_size(value, I32_MAX)


def nullable(data: bytes | None) -> bytes:
    """Prefix ``data`` with its 32-bit length, or encode ``None`` as length -1."""
    if data is None:
        return struct.pack("!i", -1)
    data = bytes(data)
    return struct.pack("!i", to_i32(len(data))) + data