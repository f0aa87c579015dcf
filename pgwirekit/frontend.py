"""Serialization of messages sent from client to server.

Every function returns the complete encoded message as ``bytes``.
"""

from __future__ import annotations

import struct
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from .core import I32_MAX, ProtocolError, nullable, to_i16, to_i32

_PROTOCOL_VERSION = 0x00_03_00_00
_CANCEL_REQUEST_CODE = 80_877_102
_SSL_REQUEST_CODE = 80_877_103


class BindError(Exception):
    """A ``Bind`` message could not be built.

    ``conversion`` is true when a parameter serializer failed and false when
    the message itself could not be encoded. The original error is ``cause``.
    """

    def __init__(self, cause: BaseException, *, conversion: bool) -> None:
        super().__init__(str(cause))
        self.cause = cause
        self.conversion = conversion


def _pack(fmt: str, *values: Any) -> bytes:
    try:
        return struct.pack(fmt, *values)
    except struct.error as exc:
        raise ProtocolError(str(exc)) from exc


def _to_bytes(value: str | bytes) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else bytes(value)


def _cstr(value: str | bytes) -> bytes:
    data = _to_bytes(value)
    if b"\0" in data:
        raise ProtocolError("string contains embedded null")
    return data + b"\0"


def _message(tag: bytes, body: bytes) -> bytes:
    return tag + _pack("!i", to_i32(len(body) + 4)) + body


def _counted(chunks: Iterable[bytes]) -> bytes:
    parts = list(chunks)
    return _pack("!h", to_i16(len(parts))) + b"".join(parts)


def _variant_byte(variant: int | str | bytes) -> bytes:
    if isinstance(variant, int):
        return _pack("!B", variant)
    data = _to_bytes(variant)
    if len(data) != 1:
        raise ProtocolError("variant must be a single byte")
    return data


def bind(
    portal: str,
    statement: str,
    formats: Iterable[int],
    values: Iterable[Any],
    serializer: Callable[[Any], bytes | None],
    result_formats: Iterable[int],
) -> bytes:
    """Build a ``Bind`` message.

    ``serializer`` turns each value into bytes, or ``None`` for SQL ``NULL``.
    """
    try:
        body = bytearray(_cstr(portal))
        body += _cstr(statement)
        body += _counted(_pack("!h", f) for f in formats)

        encoded = []
        for value in values:
            try:
                data = serializer(value)
            except Exception as exc:
                raise BindError(exc, conversion=True) from exc
            encoded.append(nullable(data))
        body += _counted(encoded)

        body += _counted(_pack("!h", f) for f in result_formats)
        return _message(b"B", bytes(body))
    except ProtocolError as exc:
        raise BindError(exc, conversion=False) from exc


def cancel_request(process_id: int, secret_key: int) -> bytes:
    """Build a ``CancelRequest`` message."""
    return _message(b"", _pack("!iii", _CANCEL_REQUEST_CODE, process_id, secret_key))


def close(variant: int | str | bytes, name: str) -> bytes:
    """Build a ``Close`` message for a statement (``S``) or portal (``P``)."""
    return _message(b"C", _variant_byte(variant) + _cstr(name))


def copy_data(data: bytes) -> bytes:
    """Build a ``CopyData`` message."""
    data = bytes(data)
    length = len(data) + 4
    if length > I32_MAX:
        raise ProtocolError("message length overflow")
    return b"d" + _pack("!i", length) + data


def copy_done() -> bytes:
    """Build a ``CopyDone`` message."""
    return _message(b"c", b"")


def copy_fail(message: str) -> bytes:
    """Build a ``CopyFail`` message."""
    return _message(b"f", _cstr(message))


def describe(variant: int | str | bytes, name: str) -> bytes:
    """Build a ``Describe`` message for a statement (``S``) or portal (``P``)."""
    return _message(b"D", _variant_byte(variant) + _cstr(name))


def execute(portal: str, max_rows: int) -> bytes:
    """Build an ``Execute`` message."""
    return _message(b"E", _cstr(portal) + _pack("!i", max_rows))


def parse(name: str, query: str, param_types: Iterable[int]) -> bytes:
    """Build a ``Parse`` message."""
    body = _cstr(name) + _cstr(query) + _counted(_pack("!I", t) for t in param_types)
    return _message(b"P", body)


def password_message(password: str | bytes) -> bytes:
    """Build a ``PasswordMessage``."""
    return _message(b"p", _cstr(password))


def query(query: str) -> bytes:
    """Build a simple ``Query`` message."""
    return _message(b"Q", _cstr(query))


def sasl_initial_response(mechanism: str, data: bytes) -> bytes:
    """Build a ``SASLInitialResponse`` message."""
    data = bytes(data)
    body = _cstr(mechanism) + _pack("!i", to_i32(len(data))) + data
    return _message(b"p", body)


def sasl_response(data: bytes) -> bytes:
    """Build a ``SASLResponse`` message."""
    return _message(b"p", bytes(data))


def ssl_request() -> bytes:
    """Build an ``SSLRequest`` message."""
    return _message(b"", _pack("!i", _SSL_REQUEST_CODE))


def startup_message(
    parameters: Mapping[str, str] | Iterable[tuple[str, str]],
) -> bytes:
    """Build a protocol 3.0 ``StartupMessage`` from key/value parameters."""
    pairs = parameters.items() if isinstance(parameters, Mapping) else parameters
    body = bytearray(_pack("!i", _PROTOCOL_VERSION))
    for key, value in pairs:
        body += _cstr(key)
        body += _cstr(value)
    body += b"\0"
    return _message(b"", bytes(body))


def flush() -> bytes:
    """Build a ``Flush`` message."""
    return _message(b"H", b"")


def sync() -> bytes:
    """Build a ``Sync`` message."""
    return _message(b"S", b"")


def terminate() -> bytes:
    """Build a ``Terminate`` message."""
    return _message(b"X", b"")