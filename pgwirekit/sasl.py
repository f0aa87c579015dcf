"""Client side of MD5 and SCRAM-SHA-256 authentication."""

from __future__ import annotations

import base64
import binascii
import enum
import hashlib
import hmac
import secrets
import stringprep
import unicodedata
from collections.abc import Callable
from dataclasses import dataclass

NONCE_LENGTH = 24

SCRAM_SHA_256 = "SCRAM-SHA-256"
"""The identifier of the SCRAM-SHA-256 SASL mechanism."""

SCRAM_SHA_256_PLUS = "SCRAM-SHA-256-PLUS"
"""The identifier of the SCRAM-SHA-256-PLUS SASL mechanism."""

_U32_MAX = 2**32 - 1


class ScramError(ValueError):
    """Raised when a SCRAM exchange fails or is driven out of order."""


def _as_bytes(value: str | bytes) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else bytes(value)


def md5_hash(username: str | bytes, password: str | bytes, salt: bytes) -> str:
    """Answer an ``AuthenticationMD5Password`` request.

    The result is sent back to the server in a ``PasswordMessage``.
    """
    inner = hashlib.md5(_as_bytes(password) + _as_bytes(username)).hexdigest()
    outer = hashlib.md5(inner.encode("ascii") + bytes(salt)).hexdigest()
    return f"md5{outer}"


_PROHIBITED: tuple[Callable[[str], bool], ...] = (
    stringprep.in_table_c12,
    stringprep.in_table_c21_c22,
    stringprep.in_table_c3,
    stringprep.in_table_c4,
    stringprep.in_table_c5,
    stringprep.in_table_c6,
    stringprep.in_table_c7,
    stringprep.in_table_c8,
    stringprep.in_table_c9,
    stringprep.in_table_a1,
)


def saslprep(value: str) -> str:
    """Prepare ``value`` with the SASLprep profile of stringprep.

    Raises ``ValueError`` if the string holds prohibited or unassigned
    characters or breaks the bidirectional rules.
    """
    mapped = "".join(
        " " if stringprep.in_table_c12(ch) else ch
        for ch in value
        if not stringprep.in_table_b1(ch)
    )
    normalized = unicodedata.ucd_3_2_0.normalize("NFKC", mapped)

    for ch in normalized:
        if any(check(ch) for check in _PROHIBITED):
            raise ValueError(f"prohibited character {ch!r}")

    if any(stringprep.in_table_d1(ch) for ch in normalized):
        if any(stringprep.in_table_d2(ch) for ch in normalized):
            raise ValueError("mixed bidirectional character classes")
        if not (
            stringprep.in_table_d1(normalized[0])
            and stringprep.in_table_d1(normalized[-1])
        ):
            raise ValueError("invalid bidirectional string")

    return normalized


def _normalize(password: str | bytes) -> bytes:
    """Run SASLprep where possible, falling back to the raw bytes."""
    if isinstance(password, str):
        text = password
    else:
        try:
            text = bytes(password).decode("utf-8")
        except UnicodeDecodeError:
            return bytes(password)
    try:
        return saslprep(text).encode("utf-8")
    except ValueError:
        return text.encode("utf-8")


def _hmac(key: bytes, message: bytes) -> bytes:
    return hmac.new(key, message, hashlib.sha256).digest()


def hi(key: bytes, salt: bytes, iterations: int) -> bytes:
    """The SCRAM ``Hi`` function: PBKDF2 with HMAC-SHA-256 and 32 bytes output.

    An iteration count below one is treated as one.
    """
    return hashlib.pbkdf2_hmac("sha256", bytes(key), bytes(salt), max(iterations, 1), 32)


class _BindingKind(enum.Enum):
    UNREQUESTED = "y,,"
    UNSUPPORTED = "n,,"
    TLS_SERVER_END_POINT = "p=tls-server-end-point,,"


@dataclass(frozen=True)
class ChannelBinding:
    """The channel binding configuration of a SCRAM exchange."""

    kind: _BindingKind
    signature: bytes = b""

    @classmethod
    def unrequested(cls) -> ChannelBinding:
        """The server did not request channel binding."""
        return cls(_BindingKind.UNREQUESTED)

    @classmethod
    def unsupported(cls) -> ChannelBinding:
        """The server requested channel binding but the client cannot provide it."""
        return cls(_BindingKind.UNSUPPORTED)

    @classmethod
    def tls_server_end_point(cls, signature: bytes) -> ChannelBinding:
        """Bind with the ``tls-server-end-point`` method."""
        return cls(_BindingKind.TLS_SERVER_END_POINT, bytes(signature))

    def gs2_header(self) -> str:
        """The GS2 header announcing this binding."""
        return self.kind.value

    def cbind_data(self) -> bytes:
        """The channel binding data sent to the server."""
        if self.kind is _BindingKind.TLS_SERVER_END_POINT:
            return self.signature
        return b""


@dataclass(frozen=True)
class ServerFirstMessage:
    """The parsed ``server-first-message``."""

    nonce: str
    salt: str
    iteration_count: int


@dataclass(frozen=True)
class ServerFinalMessage:
    """The parsed ``server-final-message``: either an error or a verifier."""

    error: str | None = None
    verifier: str | None = None


def _is_printable(ch: str) -> bool:
    return "\x21" <= ch <= "\x2b" or "\x2d" <= ch <= "\x7e"


def _is_base64(ch: str) -> bool:
    return ch.isascii() and (ch.isalnum() or ch in "/+=")


class _Parser:
    def __init__(self, text: str) -> None:
        self._text = text
        self._pos = 0

    def _byte_offset(self, index: int) -> int:
        return len(self._text[:index].encode("utf-8"))

    def _peek(self) -> str | None:
        return self._text[self._pos] if self._pos < len(self._text) else None

    def eat(self, target: str) -> None:
        ch = self._peek()
        if ch is None:
            raise ScramError("unexpected EOF")
        if ch != target:
            raise ScramError(
                f"unexpected character at byte {self._byte_offset(self._pos)}: "
                f"expected `{target}` but got `{ch}"
            )
        self._pos += 1

    def take_while(self, predicate: Callable[[str], bool]) -> str:
        start = self._pos
        while self._pos < len(self._text) and predicate(self._text[self._pos]):
            self._pos += 1
        return self._text[start:self._pos]

    def attribute(self, name: str, predicate: Callable[[str], bool]) -> str:
        self.eat(name)
        self.eat("=")
        return self.take_while(predicate)

    def posit_number(self) -> int:
        digits = self.take_while(lambda ch: "0" <= ch <= "9")
        if not digits:
            raise ScramError("cannot parse integer from empty string")
        number = int(digits)
        if number > _U32_MAX:
            raise ScramError("number too large to fit in target type")
        return number

    def eof(self) -> None:
        if self._pos < len(self._text):
            raise ScramError(
                f"unexpected trailing data at byte {self._byte_offset(self._pos)}"
            )

    def server_first_message(self) -> ServerFirstMessage:
        nonce = self.attribute("r", _is_printable)
        self.eat(",")
        salt = self.attribute("s", _is_base64)
        self.eat(",")
        self.eat("i")
        self.eat("=")
        iteration_count = self.posit_number()
        self.eof()
        return ServerFirstMessage(nonce, salt, iteration_count)

    def server_final_message(self) -> ServerFinalMessage:
        if self._peek() == "e":
            error = self.attribute("e", lambda ch: ch in "\0=,")
            message = ServerFinalMessage(error=error)
        else:
            message = ServerFinalMessage(verifier=self.attribute("v", _is_base64))
        self.eof()
        return message


def parse_server_first_message(message: str) -> ServerFirstMessage:
    """Parse a ``server-first-message``."""
    return _Parser(message).server_first_message()


def parse_server_final_message(message: str) -> ServerFinalMessage:
    """Parse a ``server-final-message``."""
    return _Parser(message).server_final_message()


def _decode_text(message: bytes) -> str:
    try:
        return bytes(message).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ScramError(str(exc)) from exc


def _decode_base64(value: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except binascii.Error as exc:
        raise ScramError(str(exc)) from exc


def _random_nonce() -> str:
    chars = []
    for _ in range(NONCE_LENGTH):
        code = 0x21 + secrets.randbelow(0x7E - 0x21)
        if code == 0x2C:
            code = 0x7E
        chars.append(chr(code))
    return "".join(chars)


@dataclass
class _AwaitingUpdate:
    nonce: str
    password: bytes


@dataclass
class _AwaitingFinish:
    salted_password: bytes
    auth_message: str


class ScramSha256:
    """Client side of a SCRAM-SHA-256 or SCRAM-SHA-256-PLUS exchange.

    Send ``message()`` in a ``SASLInitialResponse``; pass the contents of
    ``AuthenticationSASLContinue`` to ``update()`` and send ``message()`` in a
    ``SASLResponse``; pass the contents of ``AuthenticationSASLFinal`` to
    ``finish()``. Authentication succeeded only if ``finish()`` returns.
    """

    def __init__(
        self,
        password: str | bytes,
        channel_binding: ChannelBinding,
        nonce: str | None = None,
    ) -> None:
        if nonce is None:
            nonce = _random_nonce()
        self._channel_binding = channel_binding
        self._message = f"{channel_binding.gs2_header()}n=,r={nonce}"
        self._state: _AwaitingUpdate | _AwaitingFinish | None = _AwaitingUpdate(
            nonce, _normalize(password)
        )

    def message(self) -> bytes:
        """The message to send to the server at this point of the exchange."""
        if self._state is None:
            raise ScramError("invalid SCRAM state")
        return self._message.encode("utf-8")

    def update(self, message: bytes) -> None:
        """Process the server's ``AuthenticationSASLContinue`` contents."""
        state, self._state = self._state, None
        if not isinstance(state, _AwaitingUpdate):
            raise ScramError("invalid SCRAM state")

        text = _decode_text(message)
        parsed = parse_server_first_message(text)
        if not parsed.nonce.startswith(state.nonce):
            raise ScramError("invalid nonce")

        salt = _decode_base64(parsed.salt)
        salted_password = hi(state.password, salt, parsed.iteration_count)
        client_key = _hmac(salted_password, b"Client Key")
        stored_key = hashlib.sha256(client_key).digest()

        binding = self._channel_binding
        cbind_input = base64.b64encode(
            binding.gs2_header().encode("ascii") + binding.cbind_data()
        ).decode("ascii")

        without_proof = f"c={cbind_input},r={parsed.nonce}"
        auth_message = f"n=,r={state.nonce},{text},{without_proof}"
        client_signature = _hmac(stored_key, auth_message.encode("utf-8"))
        proof = bytes(k ^ s for k, s in zip(client_key, client_signature))

        self._message = f"{without_proof},p={base64.b64encode(proof).decode('ascii')}"
        self._state = _AwaitingFinish(salted_password, auth_message)

    def finish(self, message: bytes) -> None:
        """Verify the server's ``AuthenticationSASLFinal`` contents."""
        state, self._state = self._state, None
        if not isinstance(state, _AwaitingFinish):
            raise ScramError("invalid SCRAM state")

        parsed = parse_server_final_message(_decode_text(message))
        if parsed.error is not None:
            raise ScramError(f"SCRAM error: {parsed.error}")

        verifier = _decode_base64(parsed.verifier or "")
        server_key = _hmac(state.salted_password, b"Server Key")
        expected = _hmac(server_key, state.auth_message.encode("utf-8"))
        if not hmac.compare_digest(expected, verifier):
            raise ScramError("SCRAM verification error")