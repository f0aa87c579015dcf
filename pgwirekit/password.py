"""Client-side password hashing for commands such as ``ALTER USER ... PASSWORD``.

Hashing on the client keeps the cleartext password out of server logs.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import os

from .sasl import hi, saslprep

SCRAM_DEFAULT_ITERATIONS = 4096
SCRAM_DEFAULT_SALT_LEN = 16


def _prepare(password: str | bytes) -> bytes:
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


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def scram_sha_256(password: str | bytes, salt: bytes | None = None) -> str:
    """Hash ``password`` for SCRAM-SHA-256 storage.

    A random 16-byte salt is used unless one is given. The result holds no
    characters that need escaping in SQL.
    """
    if salt is None:
        salt = os.urandom(SCRAM_DEFAULT_SALT_LEN)
    salt = bytes(salt)
    if len(salt) != SCRAM_DEFAULT_SALT_LEN:
        raise ValueError(f"salt must be {SCRAM_DEFAULT_SALT_LEN} bytes long")

    salted_password = hi(_prepare(password), salt, SCRAM_DEFAULT_ITERATIONS)
    client_key = hmac.new(salted_password, b"Client Key", hashlib.sha256).digest()
    stored_key = hashlib.sha256(client_key).digest()
    server_key = hmac.new(salted_password, b"Server Key", hashlib.sha256).digest()

    return (
        f"SCRAM-SHA-256${SCRAM_DEFAULT_ITERATIONS}:{_b64(salt)}"
        f"${_b64(stored_key)}:{_b64(server_key)}"
    )


def md5(password: str | bytes, username: str) -> str:
    """Hash ``password`` with MD5, salted with ``username``.

    MD5 is not considered secure; prefer ``scram_sha_256``.
    """
    data = (password.encode("utf-8") if isinstance(password, str) else bytes(password))
    digest = hashlib.md5(data + username.encode("utf-8")).hexdigest()
    return f"md5{digest}"