"""Core translation pipeline: codec, chunking, recovery, alignment, driver.

Everything here is pure Python with no I/O except the orchestrator's
calls to an injected transform.
"""

from localekit.core.aligner import align_to_base
from localekit.core.chunking import merge_chunks, split_document
from localekit.core.notation import ParseError, decode, encode
from localekit.core.orchestrator import (
    DocumentTranslationError,
    DocumentTranslator,
    translate_variants,
)
from localekit.core.recovery import RepairExhausted, recover

__all__ = [
    "DocumentTranslationError",
    "DocumentTranslator",
    "ParseError",
    "RepairExhausted",
    "align_to_base",
    "decode",
    "encode",
    "merge_chunks",
    "recover",
    "split_document",
    "translate_variants",
]
