"""Recovery parser: coerce arbitrary model output back into a JSON value.

WHY: The model is asked for Notation, but what comes back is free text:
sometimes clean Notation, sometimes Notation wrapped in braces, JSON in a
fenced code block, JSON with trailing commas or unquoted keys, or output
cut off mid-string. A single parser would reject most of these; a fixed
cascade of increasingly lenient strategies recovers nearly all of them
without ever guessing at structure silently.

HOW: recover() strips a code fence, then tries each stage in order and
returns the first success. Every attempt is recorded as a StageAttempt so
that a total failure (RepairExhausted) carries the whole diagnostic
trail:
  notation            strict Notation decode
  notation_unwrapped  strict decode inside one pair of enclosing braces
  json_direct         json.loads of the outermost bracketed substring
  json_repaired       json.loads after the JSON repair pass
  json_truncated      repair pass on the text cut at its last closer
  notation_decomma    strict Notation decode with every "," removed
  literal             ast.literal_eval of the repaired text

RULES:
- Stages run in the order above; the first success wins
- With expect=dict/list, a result of another type is a failed attempt
  ("shape mismatch"), so a structurally wrong value is never accepted
- The literal stage uses ast.literal_eval only; returned text is never
  executed. Its failure is terminal
- The succeeding stage is logged at DEBUG and returned in the result
"""

from __future__ import annotations

import ast
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

from localekit.core.notation import SEPARATOR, decode

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```[\w-]*[ \t]*\n?([\s\S]*?)\s*```")
_OPEN_FENCE_RE = re.compile(r"^```[\w-]*[ \t]*\n?")
_UNESCAPED_QUOTE_RE = re.compile(r'(?<!\\)"')
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_BARE_KEY_RE = re.compile(r"(^|[{,])(\s*)([A-Za-z_][\w-]*)(\s*):", re.MULTILINE)

# Missing-comma heuristics between two adjacent lines
_CLOSER_THEN_KEY_RE = re.compile(r'([}\]"])[ \t]*\n(\s*["A-Za-z0-9_]+\s*:)')
_CLOSER_THEN_OPENER_RE = re.compile(r"([}\]])[ \t]*\n(\s*[{\[])")
_LITERAL_THEN_ITEM_RE = re.compile(r'(["\d]|\btrue|\bfalse|\bnull)[ \t]*\n(\s*["\d{\[])')

_STRING_TOKEN_RE = re.compile(r""""(?:\\.|[^"\\])*"|'(?:\\.|[^'\\])*'""")
_JSON_KEYWORDS = {"true": "True", "false": "False", "null": "None"}
_KEYWORD_RE = re.compile(r"\b(true|false|null)\b")

_STAGE_ERRORS = (ValueError, SyntaxError, TypeError, RecursionError)


class RepairExhausted(ValueError):
    """Raised when every recovery stage failed on a piece of model output.

    WHY: A chunk whose reply cannot be recovered must be retried, and if
    retries run out, the user needs to see why each strategy failed.

    HOW: Carries the ordered list of StageAttempts; the message lists each
    stage with its error.

    RULES:
    - stage is always "recovery"
    - attempts includes the fence-stripping step
    """

    stage = "recovery"

    def __init__(self, attempts: List[StageAttempt]) -> None:
        self.attempts = attempts
        trail = "; ".join(
            "{}: {}".format(a.stage, a.error) for a in attempts if a.error
        )
        super().__init__("All recovery stages failed ({})".format(trail))


@dataclass
class StageAttempt:
    """One recovery strategy tried on one reply; error is None on success."""

    stage: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RecoveryResult:
    """The recovered value and how it was obtained."""

    value: Any
    stage: str
    attempts: List[StageAttempt] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Text preparation
# ---------------------------------------------------------------------------


def strip_fence(text: str) -> str:
    """Return the body of the first fenced code block, or the trimmed text.

    RULES:
    - ```json, ```toon and bare ``` fences are all recognised
    - An opening fence with no closing fence (truncated reply) is dropped
    """
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return _OPEN_FENCE_RE.sub("", text.strip()).strip()


def strip_outer_braces(text: str) -> str:
    """Remove exactly one pair of enclosing braces.

    Raises:
        ValueError: If the text is not wrapped in braces.
    """
    trimmed = text.strip()
    if not (trimmed.startswith("{") and trimmed.endswith("}")):
        raise ValueError("not wrapped in braces")
    return trimmed[1:-1].strip()


def isolate_bracketed(text: str) -> str:
    """Cut away commentary around the outermost JSON object or array.

    HOW: Starts at whichever opener ({ or [) appears first and ends at the
    last matching closer. With no closer (truncated reply) the slice runs
    to the end of the text.
    """
    openers = [i for i in (text.find("{"), text.find("[")) if i >= 0]
    if not openers:
        return text
    start = min(openers)
    closer = "}" if text[start] == "{" else "]"
    end = text.rfind(closer)
    if end > start:
        return text[start:end + 1]
    return text[start:]


def truncate_to_last_closer(text: str) -> str:
    """Cut the text just after its last closing brace or bracket.

    Raises:
        ValueError: If there is no closer past the first character.
    """
    last = max(text.rfind("}"), text.rfind("]"))
    if last <= 0:
        raise ValueError("no closing brace or bracket to truncate at")
    return text[:last + 1]


# ---------------------------------------------------------------------------
# JSON repair pass
# ---------------------------------------------------------------------------


def close_line_quotes(text: str) -> str:
    """Close an odd number of unescaped quotes at the end of each line."""
    lines = []
    for line in text.split("\n"):
        if len(_UNESCAPED_QUOTE_RE.findall(line)) % 2:
            line += '"'
        lines.append(line)
    return "\n".join(lines)


def close_document_quote(text: str) -> str:
    """Close an odd number of unescaped quotes at the end of the document."""
    if len(_UNESCAPED_QUOTE_RE.findall(text)) % 2:
        return text + '"'
    return text


def insert_missing_commas(text: str) -> str:
    """Insert a comma between two adjacent lines that look like siblings.

    RULES:
    - closer or string end, then a key line:     }\\n"b": → },\\n"b":
    - closer, then an opener:                     }\\n{    → },\\n{
    - literal, then a literal or opener:          "a"\\n"b" → "a",\\n"b"
    - Applied until the text stops changing
    """
    previous = None
    while previous != text:
        previous = text
        text = _CLOSER_THEN_KEY_RE.sub(r"\1,\n\2", text)
        text = _CLOSER_THEN_OPENER_RE.sub(r"\1,\n\2", text)
        text = _LITERAL_THEN_ITEM_RE.sub(r"\1,\n\2", text)
    return text


def balance_brackets(text: str) -> str:
    """Append the closers missing for every unclosed brace or bracket.

    HOW: Scans the text outside of strings keeping a stack of openers, then
    appends the matching closers innermost first. Stray closers are
    ignored.
    """
    stack: List[str] = []
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append("}" if ch == "{" else "]")
        elif ch in "}]" and stack and stack[-1] == ch:
            stack.pop()
    return text + "".join(reversed(stack))


def drop_trailing_commas(text: str) -> str:
    """Remove a comma that sits directly before a closer."""
    return _outside_strings(text, lambda part: _TRAILING_COMMA_RE.sub(r"\1", part))


def quote_bare_keys(text: str) -> str:
    """Quote identifier-style keys at line start or after "{" / ","."""
    return _outside_strings(text, lambda part: _BARE_KEY_RE.sub(r'\1\2"\3"\4:', part))


def _outside_strings(text: str, rewrite: Callable[[str], str]) -> str:
    """Apply rewrite to the text between string literals, never inside them."""
    parts: List[str] = []
    position = 0
    for match in _STRING_TOKEN_RE.finditer(text):
        parts.append(rewrite(text[position:match.start()]))
        parts.append(match.group(0))
        position = match.end()
    parts.append(rewrite(text[position:]))
    return "".join(parts)


def repair_json(text: str) -> str:
    """Run the full repair pass over near-JSON text."""
    repaired = close_document_quote(close_line_quotes(text))
    repaired = balance_brackets(insert_missing_commas(repaired))
    return quote_bare_keys(drop_trailing_commas(repaired))


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------


def _stage_notation(text: str) -> Any:
    return decode(text)


def _stage_notation_unwrapped(text: str) -> Any:
    return decode(strip_outer_braces(text))


def _stage_json_direct(text: str) -> Any:
    return json.loads(isolate_bracketed(text))


def _stage_json_repaired(text: str) -> Any:
    return json.loads(repair_json(isolate_bracketed(text)))


def _stage_json_truncated(text: str) -> Any:
    return json.loads(repair_json(truncate_to_last_closer(isolate_bracketed(text))))


def _stage_notation_decomma(text: str) -> Any:
    return decode(text.replace(SEPARATOR, ""))


def _stage_literal(text: str) -> Any:
    repaired = _pythonize(repair_json(isolate_bracketed(text))).strip()
    if not repaired:
        raise ValueError("nothing to evaluate")
    try:
        value = ast.literal_eval(repaired)
    except _STAGE_ERRORS:
        if repaired.startswith(("{", "[")):
            raise
        value = ast.literal_eval("{" + repaired + "}")
    return _as_json_value(value)


def _pythonize(text: str) -> str:
    """Rewrite JSON keywords outside of string literals as Python ones."""
    return _outside_strings(
        text, lambda part: _KEYWORD_RE.sub(lambda m: _JSON_KEYWORDS[m.group(1)], part)
    )


def _as_json_value(value: Any) -> Any:
    """Convert a literal_eval result to JSON types, rejecting anything else."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (list, tuple)):
        return [_as_json_value(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _as_json_value(item) for key, item in value.items()}
    raise ValueError("literal contains non-JSON type {}".format(type(value).__name__))


STAGES: Tuple[Tuple[str, Callable[[str], Any]], ...] = (
    ("notation", _stage_notation),
    ("notation_unwrapped", _stage_notation_unwrapped),
    ("json_direct", _stage_json_direct),
    ("json_repaired", _stage_json_repaired),
    ("json_truncated", _stage_json_truncated),
    ("notation_decomma", _stage_notation_decomma),
    ("literal", _stage_literal),
)


def recover(text: str, expect: Optional[type] = None) -> RecoveryResult:
    """Recover a JSON value from arbitrary model output.

    Args:
        text: The raw reply from the external channel.
        expect: dict or list to require a container of that type, or None
                to accept any value.

    Returns:
        RecoveryResult with the value, the succeeding stage name, and the
        attempts made (failed ones included).

    Raises:
        RepairExhausted: If no stage produced an acceptable value.
    """
    attempts: List[StageAttempt] = [StageAttempt("strip_fence")]
    content = strip_fence(text)

    for name, stage in STAGES:
        try:
            value = stage(content)
        except _STAGE_ERRORS as exc:
            attempts.append(StageAttempt(name, str(exc) or type(exc).__name__))
            logger.debug("Recovery stage %s failed: %s", name, exc)
            continue

        if expect is not None and not isinstance(value, expect):
            error = "shape mismatch: expected {}, got {}".format(
                expect.__name__, type(value).__name__
            )
            attempts.append(StageAttempt(name, error))
            logger.debug("Recovery stage %s rejected: %s", name, error)
            continue

        attempts.append(StageAttempt(name))
        logger.debug("Recovery stage %s succeeded", name)
        return RecoveryResult(value=value, stage=name, attempts=attempts)

    raise RepairExhausted(attempts)
