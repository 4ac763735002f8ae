"""Top-level document chunking and merging of translated chunks.

WHY: A large document sent in one request is slow, risks the channel's
timeout, and invites truncated replies. Splitting it at the top level into
size-bounded chunks keeps each request small, and addressing each chunk
lets the translated pieces be put back exactly where they came from.

HOW: split_document() walks the root's top-level members in order and
accumulates them into the current chunk, closing it before a member that
would push it past max_bytes. merge_chunks() starts from a deep copy of
the original and overwrites only the members each chunk's address names.

RULES:
- Chunk addresses partition the top-level members minus the exclusion set
- Exclusions match exactly ("a.b" never excludes "a"); array members are
  excluded with "[i]"
- An excluded member closes the current chunk, so addresses never span it
- A chunk is never empty; a single oversized member gets its own chunk
- Only the top level is split; nested values are never subdivided
- merge_chunks() never raises and never writes an excluded member
- Object addresses are resolved against the original's keys on merge, so
  keys that contain "," still merge into the right member
"""

from __future__ import annotations

import copy
import logging
import re
from collections.abc import Iterable
from typing import Any, List, Optional, Tuple

from localekit.core.values import (
    Chunk,
    JSONValue,
    byte_size,
    normalize_exclusions,
)

logger = logging.getLogger(__name__)

SCALAR_ADDRESS = "value"

_RANGE_RE = re.compile(r"^\[(\d+)(?:-(\d+))?\]$")


def index_path(index: int) -> str:
    """Exclusion/address form of an array index, e.g. 3 → "[3]"."""
    return "[{}]".format(index)


def range_address(start: int, end: int) -> str:
    """Inclusive index-range address, e.g. (0, 4) → "[0-4]"."""
    return "[{}-{}]".format(start, end)


def parse_range_address(address: str) -> Optional[Tuple[int, int]]:
    """Parse "[start-end]" (or "[i]") into an inclusive (start, end) pair.

    Returns:
        The (start, end) tuple, or None if the address is not a range.
    """
    match = _RANGE_RE.match(address.strip())
    if not match:
        return None
    start = int(match.group(1))
    end = int(match.group(2)) if match.group(2) is not None else start
    return start, end


def address_members(address: str) -> List[Any]:
    """Expand a chunk address back into the members it covers.

    RULES:
    - "[2-4]" → [2, 3, 4]
    - "a,b" → ["a", "b"]
    - "value" (scalar root) → []
    """
    if address == SCALAR_ADDRESS:
        return []
    bounds = parse_range_address(address)
    if bounds is not None:
        return list(range(bounds[0], bounds[1] + 1))
    return [key.strip() for key in address.split(",") if key.strip()]


def _object_members(address: str, original: dict, value: dict) -> List[Any]:
    """Resolve an object chunk address against the original's keys.

    HOW: An address is the comma-join of a run of consecutive keys, so it
    is matched against such runs directly. This keeps keys that contain a
    comma intact. Among several matching runs the one the reply fully
    covers is preferred; with no match the address is split on commas.
    """
    keys = list(original.keys())
    runs = []
    for start in range(len(keys)):
        joined = keys[start]
        end = start
        while True:
            if joined == address:
                runs.append(keys[start:end + 1])
                break
            if len(joined) >= len(address) or end + 1 == len(keys):
                break
            end += 1
            joined += "," + keys[end]
    for run in runs:
        if all(key in value for key in run):
            return run
    if runs:
        return runs[0]
    return address_members(address)


# ---------------------------------------------------------------------------
# Splitting
# ---------------------------------------------------------------------------


def split_document(
    root: JSONValue,
    max_bytes: int,
    excluded: Optional[Iterable[str]] = None,
) -> List[Chunk]:
    """Split a document's top-level members into size-bounded chunks.

    WHY: Each chunk becomes one request to the external channel. Bounding
    chunk size bounds request time and the damage of a truncated reply.

    HOW: Greedy accumulation in document order. Before adding a member,
    if the current chunk is non-empty and the member would push it past
    max_bytes, the current chunk is emitted and a new one started.

    RULES:
    - Object root: address is the comma-joined keys of the chunk
    - Array root: address is the inclusive "[start-end]" range
    - Scalar root: one chunk addressed "value"
    - Empty object/array roots produce no chunks

    Args:
        root: The parsed document.
        max_bytes: Size bound per chunk (minimal-JSON bytes).
        excluded: Paths never sent to the channel (exact match).

    Returns:
        Chunks in document order.
    """
    exclusions = normalize_exclusions(excluded)

    if isinstance(root, dict):
        return _split_object(root, max_bytes, exclusions)
    if isinstance(root, list):
        return _split_array(root, max_bytes, exclusions)
    return [Chunk(address_key=SCALAR_ADDRESS, payload=root, approx_size_bytes=byte_size(root))]


def _split_object(root: dict, max_bytes: int, exclusions: frozenset) -> List[Chunk]:
    chunks: List[Chunk] = []
    current: dict = {}
    current_size = 0

    def _close() -> None:
        nonlocal current, current_size
        if current:
            chunks.append(Chunk(
                address_key=",".join(current.keys()),
                payload=current,
                approx_size_bytes=current_size,
            ))
        current = {}
        current_size = 0

    for key, value in root.items():
        if key in exclusions:
            _close()
            continue

        size = byte_size(value)
        if current and current_size + size > max_bytes:
            _close()

        current[key] = value
        current_size += size

    _close()
    return chunks


def _split_array(root: list, max_bytes: int, exclusions: frozenset) -> List[Chunk]:
    chunks: List[Chunk] = []
    current: list = []
    current_size = 0
    start = 0

    def _close(end: int) -> None:
        nonlocal current, current_size
        if current:
            chunks.append(Chunk(
                address_key=range_address(start, end),
                payload=current,
                approx_size_bytes=current_size,
            ))
        current = []
        current_size = 0

    for index, item in enumerate(root):
        if index_path(index) in exclusions:
            _close(index - 1)
            start = index + 1
            continue

        size = byte_size(item)
        if current and current_size + size > max_bytes:
            _close(index - 1)
            start = index

        current.append(item)
        current_size += size

    _close(len(root) - 1)
    return chunks


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------


def merge_chunks(
    results: Iterable[Tuple[str, JSONValue]],
    original: JSONValue,
) -> JSONValue:
    """Recompose translated chunk values into a full document.

    WHY: Every chunk comes back independently. Members that were never
    sent (excluded) or that the model dropped must survive untouched, so
    the merge writes only what each address names onto a copy of the
    original.

    HOW: Deep-copies the original, then for each (address, value) pair
    overwrites the addressed members.

    RULES:
    - Object root: a key is overwritten only if the chunk value is a dict
      defining it and the original defines it. A single-key chunk whose
      member is an object may come back without its key; the reply is
      then taken as that member's value
    - Array root: a list value is copied positionally from start, never
      past the range end or the original's length; any other value
      replaces index start only
    - Scalar root: the first result's value
    - Addresses are disjoint by construction; on overlap the last write
      wins (unreachable through split_document)
    - Never raises; unusable results are logged and skipped

    Args:
        results: (address_key, translated value) pairs in any order.
        original: The source document the chunks were split from.

    Returns:
        A new document; the original is not modified.
    """
    results = list(results)
    merged = copy.deepcopy(original)

    if isinstance(original, dict):
        for address, value in results:
            if not isinstance(value, dict):
                logger.warning("Chunk %s returned %s, keeping original values",
                               address, type(value).__name__)
                continue
            members = _object_members(address, original, value)
            if (len(members) == 1 and members[0] not in value
                    and isinstance(original.get(members[0]), dict)):
                logger.warning("Chunk %s came back without its key, using the reply as its value",
                               address)
                value = {members[0]: value}
            for key in members:
                if key in value and key in original:
                    merged[key] = value[key]
        return merged

    if isinstance(original, list):
        for address, value in results:
            bounds = parse_range_address(address)
            if bounds is None:
                logger.warning("Skipping chunk with unparseable address %r", address)
                continue
            start, end = bounds
            if start >= len(merged):
                logger.warning("Chunk %s starts past the end of the document", address)
                continue
            if isinstance(value, list):
                last = min(end, len(merged) - 1)
                for offset, item in enumerate(value[: last - start + 1]):
                    merged[start + offset] = item
            else:
                logger.warning("Chunk %s returned %s, placing it at index %d",
                               address, type(value).__name__, start)
                merged[start] = value
        return merged

    return results[0][1] if results else merged
