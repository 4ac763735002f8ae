"""Shape alignment of a translated document onto its source.

WHY: Models rename keys, drop members, add commentary fields, or turn a
list into a string. The output file must still be a drop-in replacement
for the source, so its key set has to equal the source's at every level.

HOW: align_to_base() walks the base (source) document and, for each
position, takes the candidate's value when it is usable there and the
base's value otherwise.

RULES:
- Objects: exactly the base's keys, in the base's order; keys only the
  candidate has are dropped, keys it lacks fall back to the base
- Arrays: the candidate array verbatim if it is an array, else the base
  array (no per-element merge)
- Scalars: the candidate value unless it is MISSING
- Never raises; align_to_base(base, base) == base
"""

from __future__ import annotations

from typing import Any

MISSING = object()
"""Sentinel for "the candidate has nothing at this position"."""


def align_to_base(base: Any, candidate: Any = MISSING) -> Any:
    """Project candidate onto base's shape.

    Args:
        base: The source document (or a sub-tree of it).
        candidate: The translated document at the same position, or
                   MISSING when it has nothing there.

    Returns:
        A value with base's key set at every nesting level.
    """
    if isinstance(base, list):
        return candidate if isinstance(candidate, list) else base

    if isinstance(base, dict):
        source = candidate if isinstance(candidate, dict) else {}
        return {
            key: align_to_base(value, source[key]) if key in source else value
            for key, value in base.items()
        }

    return base if candidate is MISSING else candidate
