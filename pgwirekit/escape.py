"""Escaping of literals and identifiers for use in SQL text.

Prefer parameterized queries; never escape parameters of one.
"""

from __future__ import annotations


def _escape(value: str, as_ident: bool) -> str:
    quote = '"' if as_ident else "'"
    has_backslash = "\\" in value

    prefix = " E" if not as_ident and has_backslash else ""
    escaped = value.replace(quote, quote * 2)
    if not as_ident:
        escaped = escaped.replace("\\", "\\\\")
    return f"{prefix}{quote}{escaped}{quote}"


def escape_literal(value: str) -> str:
    """Quote ``value`` as a string literal.

    A literal containing backslashes uses the ``E'...'`` form, preceded by a
    space, so it is safe under either ``standard_conforming_strings`` setting.
    """
    return _escape(value, as_ident=False)


def escape_identifier(value: str) -> str:
    """Quote ``value`` as an identifier."""
    return _escape(value, as_ident=True)