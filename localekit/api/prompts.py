"""Prompt text for translation requests.

WHY: The model only returns usable output when it is told exactly what
format to echo back. Keeping the wording in one place lets it be tuned
without touching the HTTP client.

HOW: build_system_prompt() states the translation rules, the output
format with a short example, and the paths that must not change.
build_user_prompt() carries the target language and the encoded payload.

RULES:
- Only string values are translated; keys, structure and types stay
- Output is Notation only: no JSON, no code fences, no markdown
- Excluded paths are listed one per line, sorted, as "- path"
"""

from __future__ import annotations

from collections.abc import Iterable

_NOTATION_EXAMPLE = """\
title,Hello
nested,
  subtitle,World
list,
  - a
  - b"""


def build_system_prompt(target_label: str, excluded: Iterable[str] = ()) -> str:
    """Return the system prompt for one translation request.

    Args:
        target_label: Target language as shown to the model (e.g. "German").
        excluded: Paths the model must leave untouched.

    Returns:
        The system prompt text.
    """
    lines = [
        "Translate to {}. Rules:".format(target_label),
        "- Translate string values only; keep keys and structure identical",
        "- Preserve data types; no additions or removals",
        "- Return only the translated document; no extra text",
        "Output format: one member per line as key,value. A key followed by a "
        "bare comma opens a nested block indented two more spaces. List items "
        "start with \"- \". Quote values that contain commas. Do NOT return "
        "JSON, code fences, or markdown. Example:",
        _NOTATION_EXAMPLE,
    ]
    paths = sorted(excluded)
    if paths:
        lines.append("Do not translate these paths:")
        lines.extend("- {}".format(path) for path in paths)
    return "\n".join(lines)


def build_user_prompt(target_label: str, payload: str) -> str:
    """Return the user prompt wrapping an encoded payload."""
    return (
        "Translate the following to {}. Output the same format only. Preserve "
        "structure and keys; translate string values only. Use two-space "
        "indentation. Keep the response concise and complete.\n\n{}"
    ).format(target_label, payload)
