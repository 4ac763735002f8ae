"""Compact line-oriented Notation for JSON values: encoder and strict decoder.

WHY: LLM requests are billed and timed by size. JSON spends a large share
of its bytes on braces, quotes and commas that carry no translatable text.
The Notation drops them: one member per line, nesting by indentation, and
strings left bare unless they would be ambiguous. It is also easier for a
model to echo back faithfully than deeply nested JSON.

HOW: encode() walks the value and emits lines:
  key,value     scalar member
  key,          nested object or array, children two spaces deeper
  - value       array element (scalar)
  -             array element that is itself a container, block follows
  {} / []       empty object / empty array markers
decode() is an indentation-driven stack machine. Each frame starts with
an undetermined kind and is fixed to object or array by its first child
line; a line of the other kind afterwards is a ParseError.

RULES:
- Separator is "," and indentation is two spaces per level
- Strings are quoted when they contain ",", a newline, a carriage return
  or '"', have leading/trailing whitespace, are empty, start with "-", or
  would read back as another literal (null, true, 12, [], ...)
- Quoted strings escape backslash, quote and newline with a backslash
- decode() is strict: it raises ParseError at the first unparsable line
  and never guesses; leniency lives in core.recovery
- Keys are quoted the same way when they contain ",", a newline or '"',
  are empty or padded, start with "-" or JSON punctuation (quote, brace,
  bracket), or look like a "name: value" member ("Label:", "Error: x")
- An unquoted key that starts with JSON punctuation or looks like a
  "name: value" member is a ParseError, so JSON text never decodes as
  Notation by accident
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Optional

SEPARATOR = ","
INDENT = "  "

_NUMBER_RE = re.compile(r"^-?\d+(\.\d+)?([eE][+-]?\d+)?$")
_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)
_UNESCAPES = {"n": "\n", '"': '"', "\\": "\\"}
_LITERALS = frozenset({"null", "true", "false", "[]", "{}"})
_JSON_KEY_STARTS = ('"', "'", "{", "}", "[", "]")
_MEMBER_COLON_RE = re.compile(r":(\s|[\"'\[{]|$)")


class ParseError(ValueError):
    """Raised when strict Notation decoding hits a line it cannot place.

    WHY: The recovery cascade needs to know which stage failed and where,
    both to move on to the next strategy and to report a full diagnostic
    trail when every strategy fails.

    HOW: Carries the stage tag, the 1-based line number and the raw line.

    RULES:
    - stage defaults to "notation"
    - line_number/line are None for whole-document errors (empty input)
    """

    def __init__(
        self,
        message: str,
        line_number: Optional[int] = None,
        line: Optional[str] = None,
        stage: str = "notation",
    ) -> None:
        self.stage = stage
        self.line_number = line_number
        self.line = line
        self.reason = message
        where = ""
        if line_number is not None:
            where = " (line {}: {!r})".format(line_number, line)
        super().__init__("[{}] {}{}".format(stage, message, where))


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def encode(value: Any) -> str:
    """Encode a JSON value as Notation text.

    Args:
        value: Any JSON value (dict, list, str, int, float, bool, None).

    Returns:
        The Notation text, without a trailing newline.

    Raises:
        TypeError: If the value contains a non-JSON type.
    """
    if isinstance(value, dict) and value:
        return "\n".join(_encode_object(value, ""))
    if isinstance(value, list) and value:
        return "\n".join(_encode_items(value, ""))
    return render_scalar(value)


def _encode_object(obj: dict, indent: str) -> list[str]:
    lines: list[str] = []
    for key, value in obj.items():
        if _is_nonempty_container(value):
            lines.append("{}{}{}".format(indent, _render_key(key), SEPARATOR))
            lines.extend(_encode_block(value, indent + INDENT))
        else:
            lines.append("{}{}{}{}".format(
                indent, _render_key(key), SEPARATOR, render_scalar(value)
            ))
    return lines


def _render_key(key: str) -> str:
    if _key_needs_quotes(key):
        return _quote(key)
    return key


def _key_needs_quotes(key: str) -> bool:
    if not key or key != key.strip():
        return True
    if any(ch in key for ch in (SEPARATOR, "\n", "\r", '"')):
        return True
    if key.startswith(_JSON_KEY_STARTS + ("-",)):
        return True
    return bool(_MEMBER_COLON_RE.search(key))


def _encode_items(items: list, indent: str) -> list[str]:
    lines: list[str] = []
    for item in items:
        if _is_nonempty_container(item):
            lines.append(indent + "-")
            lines.extend(_encode_block(item, indent + INDENT))
        else:
            lines.append("{}- {}".format(indent, render_scalar(item)))
    return lines


def _encode_block(value: Any, indent: str) -> list[str]:
    if isinstance(value, dict):
        return _encode_object(value, indent)
    return _encode_items(value, indent)


def _is_nonempty_container(value: Any) -> bool:
    return isinstance(value, (dict, list)) and len(value) > 0


def render_scalar(value: Any) -> str:
    """Render a scalar (or an empty container marker) as inline Notation.

    RULES:
    - None → null, True/False → true/false
    - Numbers use their JSON spelling
    - {} and [] render as their literal markers
    - Strings are quoted only when bare text would be ambiguous
    """
    if value is None:
        return "null"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, (int, float)):
        return json.dumps(value)
    if isinstance(value, dict) and not value:
        return "{}"
    if isinstance(value, list) and not value:
        return "[]"
    if isinstance(value, str):
        return _render_string(value)
    raise TypeError("Cannot encode value of type {}".format(type(value).__name__))


def _render_string(text: str) -> str:
    if _needs_quotes(text):
        return _quote(text)
    return text


def _quote(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return '"{}"'.format(escaped)


def _needs_quotes(text: str) -> bool:
    if not text or text != text.strip():
        return True
    if any(ch in text for ch in (SEPARATOR, "\n", "\r", '"')):
        return True
    if text.startswith("-"):
        return True
    return text in _LITERALS or bool(_NUMBER_RE.match(text))


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


@dataclass
class _Frame:
    """One open container on the decode stack.

    kind is None until the first child line fixes it to "object" or
    "array". A nested frame is placed in its parent as {} and swapped for
    a list if it resolves to an array; a frame that never gets a child
    therefore decodes as {}.
    """

    indent: int
    kind: Optional[str]
    container: Any
    parent: Optional[_Frame] = None
    slot: Any = None

    def resolve(self, kind: str, line_number: int, line: str) -> None:
        if self.kind is None:
            self.kind = kind
            if kind == "array":
                self.container = []
                if self.parent is not None:
                    self.parent.container[self.slot] = self.container
        elif self.kind != kind:
            raise ParseError(
                "{} line inside an {}".format(
                    "item" if kind == "array" else "key", self.kind
                ),
                line_number,
                line,
            )


def decode(text: str) -> Any:
    """Strictly decode Notation text into a JSON value.

    Args:
        text: Notation text as produced by encode() (indentation may use
              any whitespace, blank lines are ignored).

    Returns:
        The decoded value. A single bare line that is neither an item nor
        a key line decodes as a scalar.

    Raises:
        ParseError: At the first line that cannot be placed.
    """
    lines = [
        (number, raw)
        for number, raw in enumerate(text.split("\n"), start=1)
        if raw.strip()
    ]
    if not lines:
        raise ParseError("empty document")

    if len(lines) == 1:
        only = lines[0][1].strip()
        if _is_quoted_token(only) or (not _is_item(only) and SEPARATOR not in only):
            return parse_scalar(only)

    root = _Frame(indent=-1, kind=None, container={})
    stack: list[_Frame] = [root]

    for number, raw in lines:
        indent = len(raw) - len(raw.lstrip())
        stripped = raw.strip()

        # Dedent at or below a frame's own line closes it
        while len(stack) > 1 and indent <= stack[-1].indent:
            stack.pop()
        frame = stack[-1]

        if _is_item(stripped):
            frame.resolve("array", number, raw)
            item_text = stripped[1:].strip()
            if item_text:
                frame.container.append(parse_scalar(item_text))
            else:
                frame.container.append({})
                slot = len(frame.container) - 1
                stack.append(_Frame(indent, None, frame.container[slot], frame, slot))
            continue

        key, rest = _split_key_line(stripped, number, raw)
        frame.resolve("object", number, raw)
        if rest.strip():
            frame.container[key] = parse_scalar(rest)
        else:
            frame.container[key] = {}
            stack.append(_Frame(indent, None, frame.container[key], frame, key))

    return root.container


def _split_key_line(stripped: str, number: int, raw: str) -> tuple:
    """Split a member line into its key and the text after the separator.

    RULES:
    - A key starting with '"' is quoted and runs to its closing quote,
      which must be followed directly by the separator
    - Unquoted keys run to the first separator and may not start with
      JSON punctuation or look like a "name: value" member
    """
    if stripped.startswith('"'):
        end = _closing_quote(stripped)
        if end < 0:
            raise ParseError("unterminated quoted key", number, raw)
        after = stripped[end + 1:]
        if not after.startswith(SEPARATOR):
            raise ParseError("expected ',' after quoted key", number, raw)
        return _unescape(stripped[1:end]), after[len(SEPARATOR):]

    key, sep, rest = stripped.partition(SEPARATOR)
    if not sep:
        raise ParseError("expected 'key,value', 'key,' or '- item'", number, raw)
    key = key.strip()
    if not key:
        raise ParseError("missing key before separator", number, raw)
    if key.startswith(_JSON_KEY_STARTS):
        raise ParseError("key starts with JSON punctuation", number, raw)
    if _MEMBER_COLON_RE.search(key):
        raise ParseError("key looks like a 'name: value' member", number, raw)
    return key, rest


def _closing_quote(text: str) -> int:
    """Index of the quote closing the one at text[0], or -1."""
    index = 1
    while index < len(text):
        if text[index] == "\\":
            index += 2
            continue
        if text[index] == '"':
            return index
        index += 1
    return -1


def _is_quoted_token(text: str) -> bool:
    return text.startswith('"') and _closing_quote(text) == len(text) - 1


def _unescape(body: str) -> str:
    return _ESCAPE_RE.sub(lambda m: _UNESCAPES.get(m.group(1), m.group(0)), body)


def _is_item(stripped: str) -> bool:
    return stripped == "-" or stripped.startswith("- ")


def _is_quoted(text: str) -> bool:
    return len(text) >= 2 and text.startswith('"') and text.endswith('"')


def parse_scalar(raw: str) -> Any:
    """Parse the inline value after a separator or item marker."""
    text = raw.strip()
    if text == "null":
        return None
    if text == "true":
        return True
    if text == "false":
        return False
    if text == "{}":
        return {}
    if text == "[]":
        return []
    match = _NUMBER_RE.match(text)
    if match:
        if match.group(1) or match.group(2):
            return float(text)
        return int(text)
    if _is_quoted(text):
        return _unescape(text[1:-1])
    return text
