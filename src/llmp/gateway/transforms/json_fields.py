"""Top-level field access on raw JSON bytes.

Chat payloads can be large, and the proxy only needs two top-level fields
(`model` and `stream`). These helpers walk the top-level object, skipping
nested values without decoding them, and patch a single value in place so
the rest of the body keeps its exact bytes (field order, whitespace,
escapes).
"""

from __future__ import annotations

import json
from collections.abc import Collection
from dataclasses import dataclass
from typing import Any

_WHITESPACE = b" \t\n\r"
_SCALAR_END = b",}] \t\n\r"
_QUOTE = 0x22
_BACKSLASH = 0x5C
_OPEN = b"{["
_CLOSE = b"}]"


class MalformedJSONError(ValueError):
    """Raised when the bytes are not a JSON object."""


@dataclass(frozen=True)
class FieldSpan:
    """Byte range [start, end) of a top-level value."""

    start: int
    end: int

    def raw(self, buf: bytes) -> bytes:
        return buf[self.start : self.end]

    def decode(self, buf: bytes) -> Any:
        try:
            return json.loads(self.raw(buf))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedJSONError(f"invalid value at offset {self.start}") from e


def _skip_ws(buf: bytes, pos: int) -> int:
    while pos < len(buf) and buf[pos] in _WHITESPACE:
        pos += 1
    return pos


def _skip_string(buf: bytes, pos: int) -> int:
    """Return the offset just past the string starting at buf[pos] == '"'."""
    i = pos + 1
    while True:
        quote = buf.find(b'"', i)
        if quote < 0:
            raise MalformedJSONError(f"unterminated string at offset {pos}")
        # An odd run of backslashes means the quote is escaped
        backslashes = 0
        j = quote - 1
        while buf[j] == _BACKSLASH:
            backslashes += 1
            j -= 1
        if backslashes % 2 == 0:
            return quote + 1
        i = quote + 1


def _skip_container(buf: bytes, pos: int) -> int:
    depth = 0
    i = pos
    while i < len(buf):
        c = buf[i]
        if c == _QUOTE:
            i = _skip_string(buf, i)
            continue
        if c in _OPEN:
            depth += 1
        elif c in _CLOSE:
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    raise MalformedJSONError(f"unterminated container at offset {pos}")


def _skip_value(buf: bytes, pos: int) -> int:
    if pos >= len(buf):
        raise MalformedJSONError("unexpected end of input")
    c = buf[pos]
    if c == _QUOTE:
        return _skip_string(buf, pos)
    if c in _OPEN:
        return _skip_container(buf, pos)
    end = pos
    while end < len(buf) and buf[end] not in _SCALAR_END:
        end += 1
    if end == pos:
        raise MalformedJSONError(f"expected a value at offset {pos}")
    return end


def _expect(buf: bytes, pos: int, char: bytes) -> int:
    if buf[pos : pos + 1] != char:
        raise MalformedJSONError(f"expected {char.decode()!r} at offset {pos}")
    return pos + 1


def locate_fields(buf: bytes, keys: Collection[str]) -> dict[str, FieldSpan]:
    """Find the value spans of the given top-level keys.

    Only the first occurrence of a key counts. Scanning stops as soon as
    every requested key has been found.

    Raises:
        MalformedJSONError: If buf is not a JSON object (up to the point
            where scanning stopped).
    """
    found: dict[str, FieldSpan] = {}
    pos = _expect(buf, _skip_ws(buf, 0), b"{")
    pos = _skip_ws(buf, pos)
    if buf[pos : pos + 1] == b"}":
        return found

    while True:
        if buf[pos : pos + 1] != b'"':
            raise MalformedJSONError(f"expected a key at offset {pos}")
        key_end = _skip_string(buf, pos)
        key = FieldSpan(pos, key_end).decode(buf)

        pos = _expect(buf, _skip_ws(buf, key_end), b":")
        value_start = _skip_ws(buf, pos)
        value_end = _skip_value(buf, value_start)

        if key in keys and key not in found:
            found[key] = FieldSpan(value_start, value_end)
            if len(found) == len(keys):
                return found

        pos = _skip_ws(buf, value_end)
        if buf[pos : pos + 1] == b",":
            pos = _skip_ws(buf, pos + 1)
            continue
        _expect(buf, pos, b"}")
        return found


def replace_value(buf: bytes, span: FieldSpan, value: Any) -> bytes:
    """Return buf with the value at span replaced by the JSON encoding of value."""
    encoded = json.dumps(value, ensure_ascii=False).encode("utf-8")
    return buf[: span.start] + encoded + buf[span.end :]
