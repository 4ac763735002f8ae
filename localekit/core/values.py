"""Document value helpers and the chunk dataclasses.

WHY: Every stage of the pipeline passes the same things around: plain
JSON values, chunks of a document addressed for reassembly, and the
outcome of translating each chunk. Defining them once keeps the chunker,
merger and orchestrator in agreement about shapes and sizes.

HOW: Values are plain Python JSON data (None, bool, int, float, str,
list, dict). Two dataclasses describe the work units:
  Chunk        a size-bounded slice of a document's top-level members
  ChunkOutcome the translated value, or the error, for one chunk

RULES:
- Size is always the UTF-8 byte length of the minimal JSON serialization
- Exclusion paths are matched by exact equality, never as prefixes
- Array members are addressed as "[i]" in exclusion sets
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Optional, Union

JSONValue = Union[None, bool, int, float, str, list, dict]


def minimal_json(value: Any) -> str:
    """Serialize a value with no extraneous whitespace."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def byte_size(value: Any) -> int:
    """UTF-8 byte length of the minimal JSON serialization of a value."""
    return len(minimal_json(value).encode("utf-8"))


def estimate_tokens(text: str) -> int:
    """Rough token estimate (four characters per token), for logging only."""
    return -(-len(text) // 4)


def normalize_exclusions(excluded: Optional[Iterable[str]]) -> frozenset[str]:
    """Turn any iterable of paths into a frozen exclusion set.

    RULES:
    - Surrounding whitespace is stripped; empty entries are dropped
    - None yields the empty set
    """
    if not excluded:
        return frozenset()
    return frozenset(p.strip() for p in excluded if p and p.strip())


def container_type(value: Any) -> Optional[type]:
    """Return dict or list for containers, None for scalars."""
    if isinstance(value, dict):
        return dict
    if isinstance(value, list):
        return list
    return None


@dataclass
class Chunk:
    """One size-bounded, addressable slice of a document.

    WHY: Large documents time out or get truncated when sent whole. The
    chunker cuts them at the top level; the address lets the merger put
    each translated slice back where it came from.

    RULES:
    - address_key: comma-joined keys (object root), "[start-end]"
      inclusive range (array root) or "value" (scalar root)
    - payload: dict for object roots, list for array roots
    - approx_size_bytes: sum of the members' minimal JSON sizes
    """

    address_key: str
    payload: JSONValue
    approx_size_bytes: int


@dataclass
class ChunkOutcome:
    """Result of translating one chunk: a value on success, an error otherwise.

    RULES:
    - Exactly one of value/error is meaningful; ok tells which
    - stage names the recovery stage that produced value (for logging)
    - attempts counts calls to the external channel, including retries
    """

    address_key: str
    value: JSONValue = None
    error: Optional[BaseException] = None
    stage: Optional[str] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None
