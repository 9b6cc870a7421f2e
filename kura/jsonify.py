"""
kura.jsonify - Relaxed JSON input and terminal-friendly JSON output

Users type documents on one line in a relaxed dialect:

    {name: "bob", age: {$gt: 30}}

which is standard JSON plus unquoted object keys. The converter turns that
into strict JSON for the driver, expands filesystem-style id shorthands
(`find bob`, `find 5f1a2b3c4d5e6f7081920a1b`), and reflows long returned
documents over several lines so they fit the terminal.

Every conversion writes into a DocBuffer with a fixed capacity. Documents that
do not fit are rejected with BufferTooSmall, never truncated.
"""

import json
import re
import string
from dataclasses import dataclass, field
from typing import List, Tuple, Union

from .errors import BufferTooSmall, Illegal, JSONDialectError

MAX_DOC = 16 * 10 * 1024  # maximum size of a json document
BLANKS = " \t"
WHITESPACE = " \t\r\n"
HEX_DIGITS = set(string.hexdigits)
OBJECT_ID_LENGTH = 24

_NUMBER = re.compile(r"-?(?:0|[1-9]\d*)(?:\.\d+)?(?:[eE][+-]?\d+)?")
_BARE_KEY = re.compile(r"[A-Za-z0-9_$.]+")
_LITERALS = ("true", "false", "null")
_ESCAPES = set('"\\/bfnrt')


class DocBuffer:
    """A character buffer that refuses to grow past its capacity."""

    def __init__(self, capacity: int = MAX_DOC):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._parts: List[str] = []
        self._size = 0

    def write(self, text: str) -> None:
        needed = self._size + len(text)
        if needed > self.capacity:
            raise BufferTooSmall(self.capacity, needed)
        self._parts.append(text)
        self._size = needed

    def clear(self) -> None:
        self._parts = []
        self._size = 0

    def getvalue(self) -> str:
        return "".join(self._parts)

    @property
    def remaining(self) -> int:
        return self.capacity - self._size

    def __len__(self) -> int:
        return self._size

    def __str__(self) -> str:
        return self.getvalue()


# =============================================================================
# PARSE TREE
# =============================================================================

@dataclass
class Scalar:
    text: str  # strict JSON text, copied verbatim from the input


@dataclass
class Array:
    items: List["Node"] = field(default_factory=list)


@dataclass
class Object:
    members: List[Tuple[str, "Node"]] = field(default_factory=list)


Node = Union[Scalar, Array, Object]


class _Parser:
    """Recursive descent over one relaxed JSON value."""

    def __init__(self, text: str, pos: int = 0):
        self.text = text
        self.pos = pos

    def error(self, message: str) -> JSONDialectError:
        return JSONDialectError(f"{message} at position {self.pos}", self.pos)

    def skip_whitespace(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos] in WHITESPACE:
            self.pos += 1

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def expect(self, ch: str) -> None:
        if self.peek() != ch:
            found = repr(self.peek()) if self.peek() else "end of input"
            raise self.error(f"expected {ch!r}, found {found}")
        self.pos += 1

    def value(self) -> Node:
        self.skip_whitespace()
        ch = self.peek()
        if ch == "{":
            return self.object()
        if ch == "[":
            return self.array()
        if ch == '"':
            return Scalar(self.string())
        if ch == "-" or ch.isdigit():
            return Scalar(self.number())
        for literal in _LITERALS:
            if self.text.startswith(literal, self.pos):
                end = self.pos + len(literal)
                if end < len(self.text) and _BARE_KEY.match(self.text[end]):
                    break
                self.pos = end
                return Scalar(literal)
        if not ch:
            raise self.error("unexpected end of input")
        raise self.error(f"unexpected character {ch!r}")

    def object(self) -> Object:
        self.expect("{")
        node = Object()
        self.skip_whitespace()
        if self.peek() == "}":
            self.pos += 1
            return node
        while True:
            self.skip_whitespace()
            key = self.key()
            self.skip_whitespace()
            self.expect(":")
            node.members.append((key, self.value()))
            self.skip_whitespace()
            if self.peek() == ",":
                self.pos += 1
                continue
            self.expect("}")
            return node

    def array(self) -> Array:
        self.expect("[")
        node = Array()
        self.skip_whitespace()
        if self.peek() == "]":
            self.pos += 1
            return node
        while True:
            node.items.append(self.value())
            self.skip_whitespace()
            if self.peek() == ",":
                self.pos += 1
                continue
            self.expect("]")
            return node

    def key(self) -> str:
        if self.peek() == '"':
            return self.string()
        m = _BARE_KEY.match(self.text, self.pos)
        if not m:
            raise self.error("expected a key")
        self.pos = m.end()
        return json.dumps(m.group(0))

    def string(self) -> str:
        start = self.pos
        self.expect('"')
        text = self.text
        while self.pos < len(text):
            ch = text[self.pos]
            if ch == '"':
                self.pos += 1
                return text[start:self.pos]
            if ch == "\\":
                nxt = text[self.pos + 1:self.pos + 2]
                if nxt == "u":
                    digits = text[self.pos + 2:self.pos + 6]
                    if len(digits) != 4 or not set(digits) <= HEX_DIGITS:
                        raise self.error("bad unicode escape")
                    self.pos += 6
                    continue
                if nxt not in _ESCAPES or not nxt:
                    raise self.error("bad escape")
                self.pos += 2
                continue
            if ord(ch) < 0x20:
                raise self.error("control character in string")
            self.pos += 1
        self.pos = start
        raise self.error("unterminated string")

    def number(self) -> str:
        m = _NUMBER.match(self.text, self.pos)
        if not m:
            raise self.error("bad number")
        self.pos = m.end()
        return m.group(0)


def parse(text: str, pos: int = 0) -> Tuple[Node, int]:
    """Parse one value starting at pos, return it and the position after it."""
    parser = _Parser(text, pos)
    node = parser.value()
    return node, parser.pos


def compact(node: Node) -> str:
    """Strict JSON without any optional whitespace."""
    if isinstance(node, Scalar):
        return node.text
    if isinstance(node, Array):
        return "[" + ",".join(compact(item) for item in node.items) + "]"
    return "{" + ",".join(f"{k}:{compact(v)}" for k, v in node.members) + "}"


def _inline(node: Node) -> str:
    if isinstance(node, Scalar):
        return node.text
    if isinstance(node, Array):
        return "[" + ", ".join(_inline(item) for item in node.items) + "]"
    return "{" + ", ".join(f"{k}: {_inline(v)}" for k, v in node.members) + "}"


# =============================================================================
# USER INPUT -> STRICT JSON
# =============================================================================

def relaxed_to_strict(buf: DocBuffer, text: str) -> int:
    """
    Convert the first document in text to strict JSON in buf.

    Returns the number of characters consumed, leading blanks included. The
    rest of the text is left alone so a second document can follow (update
    takes a selector and an update document on one line).
    """
    parser = _Parser(text)
    parser.skip_whitespace()
    if parser.peek() not in ("{", "["):
        if not parser.peek():
            raise parser.error("expected a document, found end of input")
        raise parser.error(f"expected a document, found {parser.peek()!r}")
    node = parser.value()

    buf.clear()
    buf.write(compact(node))
    return parser.pos


def id_to_selector(buf: DocBuffer, token: str) -> None:
    """Expand an id shorthand: 24 hex digits is an object id, anything else a literal."""
    if not token:
        raise Illegal("empty id")
    buf.clear()
    if len(token) == OBJECT_ID_LENGTH and set(token) <= HEX_DIGITS:
        buf.write('{"_id":{"$oid":"' + token + '"}}')
    else:
        buf.write('{"_id":' + json.dumps(token, ensure_ascii=False) + "}")


def parse_selector(buf: DocBuffer, line: str) -> int:
    """
    Convert a selector, either a document or an id shorthand, into buf.

    Returns the characters consumed. A blank line consumes nothing and leaves
    buf untouched so callers can keep a default such as {}.
    """
    start = len(line) - len(line.lstrip(BLANKS))
    if start == len(line) or line[start] in "\r\n":
        return 0

    if line[start] != "{":
        end = start
        while end < len(line) and line[end] not in BLANKS and line[end] not in "\r\n":
            end += 1
        id_to_selector(buf, line[start:end])
        return end

    return relaxed_to_strict(buf, line)


def to_strict_json(text: str, capacity: int = MAX_DOC) -> Tuple[str, int]:
    """Convenience wrapper around relaxed_to_strict with a fresh buffer."""
    buf = DocBuffer(capacity)
    consumed = relaxed_to_strict(buf, text)
    return buf.getvalue(), consumed


# =============================================================================
# STRICT JSON -> TERMINAL
# =============================================================================

def _layout(node: Node, indent: int, column: int, width: int) -> str:
    inline = _inline(node)
    if isinstance(node, Scalar) or column + len(inline) <= width:
        return inline
    if isinstance(node, Array) and not node.items:
        return inline
    if isinstance(node, Object) and not node.members:
        return inline

    inner = indent + 2
    pad = " " * inner
    lines = []
    if isinstance(node, Array):
        for item in node.items:
            lines.append(pad + _layout(item, inner, inner, width))
        opening, closing = "[", "]"
    else:
        for key, value in node.members:
            prefix = f"{pad}{key}: "
            lines.append(prefix + _layout(value, inner, len(prefix), width))
        opening, closing = "{", "}"
    return opening + "\n" + ",\n".join(lines) + "\n" + " " * indent + closing


def reflow(buf: DocBuffer, text: str, max_width: int) -> None:
    """
    Render one JSON document over several lines so it fits max_width.

    Containers that fit on the rest of their line stay inline, the others get
    one member per line. Only whitespace changes.
    """
    if len(text) > buf.capacity:
        raise BufferTooSmall(buf.capacity, len(text))
    node, end = parse(text)
    if text[end:].strip(WHITESPACE):
        raise JSONDialectError(f"trailing characters at position {end}", end)
    buf.clear()
    buf.write(_layout(node, 0, 0, max_width))


def render(text: str, width: int, pretty: bool, capacity: int = MAX_DOC) -> str:
    """The text to print for a returned document."""
    if not pretty or len(text) <= width:
        return text
    buf = DocBuffer(capacity)
    reflow(buf, text, width)
    return buf.getvalue()
