"""localekit: translate JSON documents through an LLM, keeping their shape.

WHY: Locale files and other JSON documents need translating into many
languages, but a text-generation model returns free text with no format
guarantee. Sending a whole document at once is slow and fragile, and the
reply is often near-JSON, fenced, truncated, or re-keyed.

HOW: Four-stage pipeline: encode (compact Notation), chunk (size-bounded
top-level slices), translate (external LLM channel + recovery parser with
retries), reassemble (merge chunk results, then align to the source shape).
Each stage is independently testable.

RULES:
- The source document's key/array shape is the contract for every output
- Excluded top-level members are never sent and never overwritten
- The LLM channel is opaque: anything it returns goes through recovery
"""

__version__ = "0.1.0"
