"""Binary encoding of scalar values.

Every ``*_to_sql`` function returns the encoded value as ``bytes``. Every
``*_from_sql`` function decodes a whole buffer and raises ``ProtocolError``
if the buffer is malformed.
"""

from __future__ import annotations

import struct
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from .core import ProtocolError, to_i32

_SHORT_BUFFER = "failed to fill whole buffer"
_BAD_SIZE = "invalid buffer size"


def _pack(fmt: str, value: Any) -> bytes:
    try:
        return struct.pack(fmt, value)
    except struct.error as exc:
        raise ProtocolError(str(exc)) from exc


def _unpack_exact(fmt: str, buf: bytes, trailing: str = _BAD_SIZE) -> Any:
    """Decode exactly one value of ``fmt`` that fills ``buf`` completely."""
    buf = bytes(buf)
    size = struct.calcsize(fmt)
    if len(buf) < size:
        raise ProtocolError(_SHORT_BUFFER)
    if len(buf) > size:
        raise ProtocolError(trailing)
    return struct.unpack(fmt, buf)[0]


def _decode_utf8(data: bytes) -> str:
    try:
        return bytes(data).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ProtocolError(str(exc)) from exc


class _Reader:
    """Sequential reads from a byte buffer."""

    def __init__(self, buf: bytes) -> None:
        self._view = memoryview(bytes(buf))

    @property
    def remaining(self) -> int:
        return len(self._view)

    def i32(self) -> int:
        if len(self._view) < 4:
            raise ProtocolError(_SHORT_BUFFER)
        (value,) = struct.unpack("!i", self._view[:4])
        self._view = self._view[4:]
        return value

    def take(self, count: int, error: str) -> bytes:
        if len(self._view) < count:
            raise ProtocolError(error)
        data = bytes(self._view[:count])
        self._view = self._view[count:]
        return data

    def rest(self) -> bytes:
        data = bytes(self._view)
        self._view = self._view[len(self._view):]
        return data


def bool_to_sql(value: bool) -> bytes:
    """Encode a ``BOOL`` value."""
    return b"\x01" if value else b"\x00"


def bool_from_sql(buf: bytes) -> bool:
    """Decode a ``BOOL`` value."""
    buf = bytes(buf)
    if len(buf) != 1:
        raise ProtocolError(_BAD_SIZE)
    return buf[0] != 0


def bytea_to_sql(value: bytes) -> bytes:
    """Encode a ``BYTEA`` value."""
    return bytes(value)


def bytea_from_sql(buf: bytes) -> bytes:
    """Decode a ``BYTEA`` value."""
    return bytes(buf)


def text_to_sql(value: str) -> bytes:
    """Encode a ``TEXT``, ``VARCHAR``, ``CHAR(n)``, ``NAME`` or ``CITEXT`` value."""
    return value.encode("utf-8")


def text_from_sql(buf: bytes) -> str:
    """Decode a ``TEXT``, ``VARCHAR``, ``CHAR(n)``, ``NAME`` or ``CITEXT`` value."""
    return _decode_utf8(buf)


def char_to_sql(value: int) -> bytes:
    """Encode a ``"char"`` value (a signed byte)."""
    return _pack("!b", value)


def char_from_sql(buf: bytes) -> int:
    """Decode a ``"char"`` value (a signed byte)."""
    return _unpack_exact("!b", buf)


def int2_to_sql(value: int) -> bytes:
    """Encode an ``INT2`` value."""
    return _pack("!h", value)


def int2_from_sql(buf: bytes) -> int:
    """Decode an ``INT2`` value."""
    return _unpack_exact("!h", buf)


def int4_to_sql(value: int) -> bytes:
    """Encode an ``INT4`` value."""
    return _pack("!i", value)


def int4_from_sql(buf: bytes) -> int:
    """Decode an ``INT4`` value."""
    return _unpack_exact("!i", buf)


def oid_to_sql(value: int) -> bytes:
    """Encode an ``OID`` value."""
    return _pack("!I", value)


def oid_from_sql(buf: bytes) -> int:
    """Decode an ``OID`` value."""
    return _unpack_exact("!I", buf)


def int8_to_sql(value: int) -> bytes:
    """Encode an ``INT8`` value."""
    return _pack("!q", value)


def int8_from_sql(buf: bytes) -> int:
    """Decode an ``INT8`` value."""
    return _unpack_exact("!q", buf)


def lsn_to_sql(value: int) -> bytes:
    """Encode a ``PG_LSN`` value."""
    return _pack("!Q", value)


def lsn_from_sql(buf: bytes) -> int:
    """Decode a ``PG_LSN`` value."""
    return _unpack_exact("!Q", buf)


def float4_to_sql(value: float) -> bytes:
    """Encode a ``FLOAT4`` value."""
    return _pack("!f", value)


def float4_from_sql(buf: bytes) -> float:
    """Decode a ``FLOAT4`` value."""
    return _unpack_exact("!f", buf)


def float8_to_sql(value: float) -> bytes:
    """Encode a ``FLOAT8`` value."""
    return _pack("!d", value)


def float8_from_sql(buf: bytes) -> float:
    """Decode a ``FLOAT8`` value."""
    return _unpack_exact("!d", buf)


def _pascal_string(value: str) -> bytes:
    data = value.encode("utf-8")
    return _pack("!i", to_i32(len(data))) + data


def hstore_to_sql(
    entries: Mapping[str, str | None] | Iterable[tuple[str, str | None]],
) -> bytes:
    """Encode an ``HSTORE`` value; a value of ``None`` is SQL ``NULL``."""
    pairs = entries.items() if isinstance(entries, Mapping) else entries
    body = bytearray()
    count = 0
    for key, value in pairs:
        count += 1
        body += _pascal_string(key)
        body += _pack("!i", -1) if value is None else _pascal_string(value)
    return _pack("!i", to_i32(count)) + bytes(body)


def hstore_from_sql(buf: bytes) -> list[tuple[str, str | None]]:
    """Decode an ``HSTORE`` value into its ``(key, value)`` entries in order."""
    reader = _Reader(buf)
    count = reader.i32()
    if count < 0:
        raise ProtocolError("invalid entry count")

    entries: list[tuple[str, str | None]] = []
    for _ in range(count):
        key_len = reader.i32()
        if key_len < 0:
            raise ProtocolError("invalid key length")
        key = _decode_utf8(reader.take(key_len, "invalid key length"))

        value_len = reader.i32()
        value = (
            None
            if value_len < 0
            else _decode_utf8(reader.take(value_len, "invalid value length"))
        )
        entries.append((key, value))

    if reader.remaining:
        raise ProtocolError(_BAD_SIZE)
    return entries


@dataclass(frozen=True)
class Varbit:
    """A ``VARBIT`` or ``BIT`` value: ``length`` bits packed into ``data``."""

    length: int
    data: bytes

    def __len__(self) -> int:
        return self.length

    def is_empty(self) -> bool:
        """Whether the value has no bits."""
        return self.length == 0


def varbit_to_sql(length: int, data: Iterable[int] | bytes) -> bytes:
    """Encode a ``VARBIT`` or ``BIT`` value of ``length`` bits."""
    return _pack("!i", to_i32(length)) + bytes(data)


def varbit_from_sql(buf: bytes) -> Varbit:
    """Decode a ``VARBIT`` or ``BIT`` value."""
    reader = _Reader(buf)
    length = reader.i32()
    if length < 0:
        raise ProtocolError("invalid varbit length: varbit < 0")
    data = reader.rest()
    if len(data) != (length + 7) // 8:
        raise ProtocolError("invalid message length: varbit mismatch")
    return Varbit(length, data)


def timestamp_to_sql(value: int) -> bytes:
    """Encode a ``TIMESTAMP`` or ``TIMESTAMPTZ``: microseconds since 2000-01-01."""
    return _pack("!q", value)


def timestamp_from_sql(buf: bytes) -> int:
    """Decode a ``TIMESTAMP`` or ``TIMESTAMPTZ``: microseconds since 2000-01-01."""
    return _unpack_exact("!q", buf, "invalid message length: timestamp not drained")


def date_to_sql(value: int) -> bytes:
    """Encode a ``DATE``: days since 2000-01-01."""
    return _pack("!i", value)


def date_from_sql(buf: bytes) -> int:
    """Decode a ``DATE``: days since 2000-01-01."""
    return _unpack_exact("!i", buf, "invalid message length: date not drained")


def time_to_sql(value: int) -> bytes:
    """Encode a ``TIME`` or ``TIMETZ``: microseconds since midnight."""
    return _pack("!q", value)


def time_from_sql(buf: bytes) -> int:
    """Decode a ``TIME`` or ``TIMETZ``: microseconds since midnight."""
    return _unpack_exact("!q", buf, "invalid message length: time not drained")


def macaddr_to_sql(value: bytes) -> bytes:
    """Encode a ``MACADDR`` given as its six bytes."""
    data = bytes(value)
    if len(data) != 6:
        raise ProtocolError("macaddr must be 6 bytes long")
    return data


def macaddr_from_sql(buf: bytes) -> bytes:
    """Decode a ``MACADDR`` into its six bytes."""
    data = bytes(buf)
    if len(data) != 6:
        raise ProtocolError("invalid message length: macaddr length mismatch")
    return data


def uuid_to_sql(value: uuid.UUID | bytes) -> bytes:
    """Encode a ``UUID`` given as a ``uuid.UUID`` or its sixteen bytes."""
    data = value.bytes if isinstance(value, uuid.UUID) else bytes(value)
    if len(data) != 16:
        raise ProtocolError("uuid must be 16 bytes long")
    return data


def uuid_from_sql(buf: bytes) -> uuid.UUID:
    """Decode a ``UUID``."""
    data = bytes(buf)
    if len(data) != 16:
        raise ProtocolError("invalid message length: uuid size mismatch")
    return uuid.UUID(bytes=data)