"""Readers for the server's catalog sources: SQLSTATE codes and built-in types.

``parse_errcodes`` reads the ``errcodes.txt`` listing of error codes;
``parse_dat`` reads the Perl-like ``.dat`` catalog format; ``parse_types``
combines ``pg_type.dat`` and ``pg_range.dat`` into a table of types by OID.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass

_U32_MAX = 2**32 - 1

_RANGE_VECTOR_RE = re.compile(r"(range|vector)\Z")
_ARRAY_RE = re.compile(r"^_(.*)")


class DatParseError(ValueError):
    """Raised when catalog data is malformed or inconsistent."""


def snake_to_camel(value: str) -> str:
    """Turn ``snake_case`` into ``CamelCase``, dropping the underscores."""
    out = []
    upper = True
    for ch in value:
        if ch == "_":
            upper = True
        elif upper:
            out.append(ch.upper() if ch.isascii() else ch)
            upper = False
        else:
            out.append(ch)
    return "".join(out)


def _ascii_upper(value: str) -> str:
    return "".join(ch.upper() if ch.isascii() else ch for ch in value)


def parse_errcodes(text: str) -> dict[str, list[str]]:
    """Map each SQLSTATE code to its condition names, in file order.

    Comment lines, ``Section`` headers and blank lines are skipped. The
    ``ERRCODE_`` prefix is removed from the names.
    """
    codes: dict[str, list[str]] = {}
    for line in text.splitlines():
        if line.startswith("#") or line.startswith("Section") or not line.strip():
            continue
        fields = line.split()
        if len(fields) < 3:
            raise ValueError(f"malformed errcodes line: {line!r}")
        code, _, name = fields[:3]
        codes.setdefault(code, []).append(name.replace("ERRCODE_", ""))
    return codes


class _DatParser:
    def __init__(self, text: str) -> None:
        self._text = text
        self._pos = 0

    def _peek(self) -> str | None:
        return self._text[self._pos] if self._pos < len(self._text) else None

    def _next(self) -> str | None:
        ch = self._peek()
        if ch is not None:
            self._pos += 1
        return ch

    def skip_ws(self) -> None:
        while True:
            ch = self._peek()
            if ch == "#":
                end = self._text.find("\n", self._pos)
                self._pos = len(self._text) if end == -1 else end + 1
            elif ch in ("\n", " ", "\t"):
                self._pos += 1
            else:
                return

    def eat(self, target: str) -> None:
        self.skip_ws()
        ch = self._next()
        if ch is None:
            raise DatParseError(f"expected {target} but got eof")
        if ch != target:
            raise DatParseError(f"expected {target} but got {ch}")

    def try_eat(self, target: str) -> bool:
        self.skip_ws()
        if self._peek() == target:
            self._pos += 1
            return True
        return False

    def eof(self) -> None:
        self.skip_ws()
        ch = self._peek()
        if ch is not None:
            raise DatParseError(f"expected eof but got {ch}")

    def parse_ident(self) -> str:
        self.skip_ws()
        start = self._pos
        while (ch := self._peek()) is not None and ("a" <= ch <= "z" or ch == "_"):
            self._pos += 1
        return self._text[start:self._pos]

    def parse_string(self) -> str:
        self.eat("'")
        out = []
        while True:
            ch = self._next()
            if ch is None:
                raise DatParseError("unexpected eof")
            if ch == "'":
                return "".join(out)
            if ch == "\\":
                escaped = self._next()
                if escaped is None:
                    raise DatParseError("unexpected eof")
                out.append(escaped)
            else:
                out.append(ch)

    def parse_object(self) -> dict[str, str]:
        obj: dict[str, str] = {}
        self.eat("{")
        while True:
            key = self.parse_ident()
            self.eat("=")
            self.eat(">")
            obj[key] = self.parse_string()
            if not self.try_eat(","):
                break
        self.eat("}")
        self.eat(",")
        return obj

    def parse_array(self) -> list[dict[str, str]]:
        self.eat("[")
        objects = []
        while not self.try_eat("]"):
            objects.append(self.parse_object())
        self.eof()
        return objects


def parse_dat(text: str) -> list[dict[str, str]]:
    """Parse a catalog ``.dat`` file into its list of key/value records."""
    return _DatParser(text).parse_array()


@dataclass(frozen=True)
class CatalogType:
    """A built-in type.

    ``kind`` is the type category letter; ``element`` is the OID of the
    element type of an array or range, and 0 for other types.
    """

    oid: int
    name: str
    variant: str
    ident: str
    kind: str
    typtype: str | None
    element: int
    doc: str


def _field(record: dict[str, str], key: str) -> str:
    try:
        return record[key]
    except KeyError:
        raise DatParseError(f"missing field {key!r}") from None


def _parse_oid(value: str) -> int:
    digits = value[1:] if value.startswith("+") else value
    if not digits or not (digits.isascii() and digits.isdigit()):
        raise DatParseError(f"invalid oid {value!r}")
    oid = int(digits)
    if oid > _U32_MAX:
        raise DatParseError(f"invalid oid {value!r}")
    return oid


def _lookup(table: dict, key, what: str):
    try:
        return table[key]
    except KeyError:
        raise DatParseError(f"unknown {what} {key!r}") from None


def parse_types(type_dat: str, range_dat: str) -> dict[int, CatalogType]:
    """Build the table of built-in types, keyed and ordered by OID.

    Composite and enum types are left out, since their fields and variants
    are only known at run time. Each type with an ``array_type_oid`` also
    yields its array type.
    """
    raw_types = parse_dat(type_dat)
    raw_ranges = parse_dat(range_dat)

    oids_by_name = {
        _field(raw, "typname"): _parse_oid(_field(raw, "oid")) for raw in raw_types
    }

    def type_oid(raw: dict[str, str], key: str) -> int:
        return _lookup(oids_by_name, _field(raw, key), "type name")

    range_elements = {
        type_oid(raw, "rngtypid"): type_oid(raw, "rngsubtype") for raw in raw_ranges
    }
    multirange_elements = {
        type_oid(raw, "rngmultitypid"): type_oid(raw, "rngsubtype")
        for raw in raw_ranges
    }

    types: dict[int, CatalogType] = {}
    for raw in raw_types:
        oid = _parse_oid(_field(raw, "oid"))
        name = _field(raw, "typname")

        ident = _RANGE_VECTOR_RE.sub(r"_\1", name, count=1)
        ident = _ARRAY_RE.sub(r"\1_array", ident, count=1)
        variant = snake_to_camel(ident)
        ident = _ascii_upper(ident)

        kind = _field(raw, "typcategory")
        if kind in ("C", "E"):
            continue

        typtype = raw.get("typtype")

        if kind == "R":
            if typtype is None:
                raise DatParseError("range type must have typtype")
            if typtype == "r":
                element = _lookup(range_elements, oid, "range type")
            elif typtype == "m":
                element = _lookup(multirange_elements, oid, "multirange type")
            else:
                raise DatParseError(f"invalid range typtype {typtype}")
        elif kind == "A":
            element = type_oid(raw, "typelem")
        else:
            element = 0

        doc_name = _ascii_upper(_ARRAY_RE.sub(r"\1[]", name, count=1))
        doc = doc_name
        if "descr" in raw:
            doc += f" - {raw['descr']}"
        doc = html.escape(doc)

        if "array_type_oid" in raw:
            array_oid = _parse_oid(raw["array_type_oid"])
            types[array_oid] = CatalogType(
                oid=array_oid,
                name=f"_{name}",
                variant=f"{variant}Array",
                ident=f"{ident}_ARRAY",
                kind="A",
                typtype=None,
                element=oid,
                doc=f"{doc_name}&#91;&#93;",
            )

        types[oid] = CatalogType(
            oid=oid,
            name=name,
            variant=variant,
            ident=ident,
            kind=kind,
            typtype=typtype,
            element=element,
            doc=doc,
        )

    return dict(sorted(types.items()))