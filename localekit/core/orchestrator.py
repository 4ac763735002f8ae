"""Document translation driver: chunk, call, recover, retry, merge, align.

WHY: Each stage on its own is simple; the reliability comes from running
them in the right order with bounded retries. One driver owns that flow
so the CLI, the HTTP API and tests all translate documents the same way.

HOW: DocumentTranslator.translate() encodes the document to decide
between a single request and chunking, then folds over the chunks in
order: encode the payload, call the external transform under a timeout,
run the recovery parser, and retry with linear backoff on failure. When
every chunk succeeds the results are merged onto the original and
aligned to its shape. translate_variants() runs several target languages
one after another and classifies each failure for the user.

RULES:
- Exactly one outbound call at a time; chunks go in chunker order
- Timeouts, unrecoverable replies and channel errors are retried up to
  settings.max_retries times, sleeping retry_backoff_s * retry_number
- A chunk that exhausts its retries aborts the whole document with
  DocumentTranslationError; no partial document is ever returned
- Excluded top-level members are never sent; excluded paths are passed
  to the transform as do-not-alter instructions
- No state is kept between translate() calls
"""

from __future__ import annotations

import asyncio
import enum
import logging
import re
import sys
from collections.abc import Awaitable, Iterable
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence

from localekit.config import TranslationSettings, language_name
from localekit.core.aligner import align_to_base
from localekit.core.chunking import merge_chunks, split_document
from localekit.core.notation import ParseError, encode
from localekit.core.recovery import RepairExhausted, recover
from localekit.core.values import (
    Chunk,
    ChunkOutcome,
    JSONValue,
    container_type,
    estimate_tokens,
    minimal_json,
    normalize_exclusions,
)

logger = logging.getLogger(__name__)

Transform = Callable[[str, str, frozenset], Awaitable[str]]
"""External channel: (notation text, target label, excluded paths) → reply text."""

StatusCallback = Callable[[str], None]

_QUOTA_RE = re.compile(r"quota|billing|usage limit|budget|insufficient", re.IGNORECASE)
_TIMEOUT_RE = re.compile(r"timeout|timed out|load failed|aborted", re.IGNORECASE)
_QUOTA_STATUS_CODES = (402, 429)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TransformError(Exception):
    """Raised by a Transform when the external channel itself fails.

    WHY: The orchestrator retries channel failures (HTTP errors, empty
    replies) but must not retry programming errors. Transforms wrap their
    failures in this type so the retry loop can tell them apart.

    RULES:
    - status_code is the HTTP status when there was one, else None
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class ChunkTimeout(TimeoutError):
    """Raised when one call for a chunk exceeds its time bound."""

    def __init__(self, address_key: str, timeout_s: float) -> None:
        self.address_key = address_key
        self.timeout_s = timeout_s
        super().__init__(
            "Chunk {} timed out after {:.0f}s".format(address_key, timeout_s)
        )


class ChunkRetriesExhausted(Exception):
    """Raised when a chunk failed on every attempt.

    WHY: The user needs the last failure and, for format failures, the
    recovery stage trail explaining why each strategy failed.

    RULES:
    - attempts counts all calls (original + retries)
    - stage_trail is the last RepairExhausted's attempts, or []
    """

    def __init__(self, address_key: str, attempts: int, last_error: BaseException) -> None:
        self.address_key = address_key
        self.attempts = attempts
        self.last_error = last_error
        self.stage_trail = list(getattr(last_error, "attempts", []) or [])
        super().__init__(
            "Failed to translate chunk {} after {} attempts: {}".format(
                address_key, attempts, last_error
            )
        )


class DocumentTranslationError(Exception):
    """Raised when any chunk of a document could not be translated.

    HOW: Carries every ChunkOutcome produced before the abort; the failed
    one is last. No merged document is produced.
    """

    def __init__(self, target_label: str, outcomes: List[ChunkOutcome], total_chunks: int) -> None:
        self.target_label = target_label
        self.outcomes = outcomes
        self.failures = [o for o in outcomes if not o.ok]
        self.total_chunks = total_chunks
        detail = "; ".join(str(o.error) for o in self.failures)
        super().__init__(
            "Translation to {} failed ({}/{} chunks done): {}".format(
                target_label, len(outcomes) - len(self.failures), total_chunks, detail
            )
        )

    @property
    def root_cause(self) -> Optional[BaseException]:
        """The last underlying error of the first failed chunk."""
        if not self.failures:
            return None
        error = self.failures[0].error
        return getattr(error, "last_error", error)


# ---------------------------------------------------------------------------
# Failure classification
# ---------------------------------------------------------------------------


class FailureKind(str, enum.Enum):
    """User-facing failure categories.

    RULES:
    - timeout: a call exceeded its time bound
    - format: the reply could not be recovered into a document
    - quota: the channel looks out of quota/budget (heuristic, may be wrong)
    - other: anything else
    """

    TIMEOUT = "timeout"
    FORMAT = "format"
    QUOTA = "quota"
    OTHER = "other"


def classify_failure(exc: BaseException) -> FailureKind:
    """Classify a translation failure for reporting.

    HOW: Unwraps DocumentTranslationError/ChunkRetriesExhausted to the
    underlying error, then checks its type, HTTP status and message. The
    quota check is a message heuristic and is not guaranteed accurate.
    """
    if isinstance(exc, DocumentTranslationError) and exc.root_cause is not None:
        exc = exc.root_cause
    if isinstance(exc, ChunkRetriesExhausted):
        exc = exc.last_error

    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        return FailureKind.TIMEOUT
    if isinstance(exc, (RepairExhausted, ParseError)):
        return FailureKind.FORMAT

    message = str(exc)
    if getattr(exc, "status_code", None) in _QUOTA_STATUS_CODES or _QUOTA_RE.search(message):
        return FailureKind.QUOTA
    if _TIMEOUT_RE.search(message):
        return FailureKind.TIMEOUT
    return FailureKind.OTHER


def describe_failure(exc: BaseException) -> str:
    """Return a user-facing message for a translation failure."""
    kind = classify_failure(exc)
    if kind is FailureKind.TIMEOUT:
        return ("Translation timed out. The file may be too large. "
                "Try excluding more paths or using a faster model.")
    if kind is FailureKind.FORMAT:
        return ("The model's reply could not be read back as a document. "
                "Try again or use a different model.")
    if kind is FailureKind.QUOTA:
        return "The provider may have hit a quota/budget limit. Check billing/usage."
    return str(exc) or "Translation failed"


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


class DocumentTranslator:
    """Translates one document into one target language at a time.

    WHY: Wraps the whole chunk → call → recover → retry → merge → align
    flow behind a single awaitable so callers only deal with documents.

    HOW: Holds the transform and settings; translate() is re-entrant and
    keeps all per-document state in locals.

    RULES:
    - transform(text, target_label, excluded) must return the reply text
    - on_status, when given, receives human-readable progress lines
    - sleep is injectable so tests can skip real backoff delays
    """

    def __init__(
        self,
        transform: Transform,
        settings: Optional[TranslationSettings] = None,
        on_status: Optional[StatusCallback] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._transform = transform
        self.settings = settings or TranslationSettings.from_env()
        self._on_status = on_status
        self._sleep = sleep

    def _status(self, message: str) -> None:
        logger.info(message)
        if self._on_status:
            self._on_status(message)

    def plan(self, document: JSONValue, excluded: Optional[Iterable[str]] = None) -> tuple:
        """Split a document the way translate() will.

        Returns:
            (chunks, timeout_s): one unit with the document timeout when
            the encoded document fits under the threshold, otherwise
            size-bounded chunks with the per-chunk timeout.
        """
        exclusions = normalize_exclusions(excluded)
        notation_bytes = len(encode(document).encode("utf-8"))
        if notation_bytes <= self.settings.chunk_threshold_bytes:
            return split_document(document, sys.maxsize, exclusions), self.settings.document_timeout_s
        return (
            split_document(document, self.settings.chunk_size_bytes, exclusions),
            self.settings.chunk_timeout_s,
        )

    async def translate(
        self,
        document: JSONValue,
        target_label: str,
        excluded: Optional[Iterable[str]] = None,
    ) -> JSONValue:
        """Translate a document, returning a value shaped exactly like it.

        Args:
            document: The parsed source document.
            target_label: Target language as shown to the model.
            excluded: Paths that must not be sent or altered.

        Returns:
            The translated document, aligned to the source's shape.

        Raises:
            DocumentTranslationError: If any chunk failed on every attempt.
        """
        exclusions = normalize_exclusions(excluded)
        _log_sizes(document)

        chunks, timeout_s = self.plan(document, exclusions)
        if len(chunks) > 1:
            self._status("Split into {} chunks for {}".format(len(chunks), target_label))

        outcomes: List[ChunkOutcome] = []
        for index, chunk in enumerate(chunks, start=1):
            self._status("Translating chunk {}/{} (key: {}, size: {:.2f} KB)".format(
                index, len(chunks), _short(chunk.address_key), chunk.approx_size_bytes / 1024
            ))
            outcome = await self._translate_chunk(chunk, target_label, exclusions, timeout_s)
            outcomes.append(outcome)
            if not outcome.ok:
                logger.error("Chunk %d/%d failed: %s", index, len(chunks), outcome.error)
                raise DocumentTranslationError(target_label, outcomes, len(chunks)) from outcome.error

        merged = merge_chunks(((o.address_key, o.value) for o in outcomes), document)
        logger.info("Merged %d translated chunks", len(outcomes))
        return align_to_base(document, merged)

    async def _translate_chunk(
        self,
        chunk: Chunk,
        target_label: str,
        exclusions: frozenset,
        timeout_s: float,
    ) -> ChunkOutcome:
        expect = container_type(chunk.payload)
        text = encode(chunk.payload)
        total_attempts = self.settings.max_retries + 1
        last_error: Optional[BaseException] = None

        for attempt in range(total_attempts):
            if attempt:
                delay = self.settings.retry_backoff_s * attempt
                logger.warning(
                    "Retrying chunk %s (attempt %d/%d) in %.1fs after: %s",
                    _short(chunk.address_key), attempt + 1, total_attempts, delay, last_error,
                )
                await self._sleep(delay)
            try:
                reply = await self._call(text, target_label, exclusions, timeout_s, chunk.address_key)
                result = recover(reply, expect=expect)
            except (ChunkTimeout, RepairExhausted, TransformError) as exc:
                last_error = exc
                continue

            logger.debug("Chunk %s recovered via %s", _short(chunk.address_key), result.stage)
            return ChunkOutcome(
                address_key=chunk.address_key,
                value=result.value,
                stage=result.stage,
                attempts=attempt + 1,
            )

        return ChunkOutcome(
            address_key=chunk.address_key,
            error=ChunkRetriesExhausted(chunk.address_key, total_attempts, last_error),
            attempts=total_attempts,
        )

    async def _call(
        self,
        text: str,
        target_label: str,
        exclusions: frozenset,
        timeout_s: float,
        address_key: str,
    ) -> str:
        try:
            return await asyncio.wait_for(
                self._transform(text, target_label, exclusions), timeout=timeout_s
            )
        except asyncio.TimeoutError as exc:
            raise ChunkTimeout(address_key, timeout_s) from exc


@dataclass
class VariantResult:
    """Outcome of translating a document into one target language."""

    code: str
    label: str
    value: JSONValue = None
    error: Optional[BaseException] = None
    kind: Optional[FailureKind] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def translate_variants(
    translator: DocumentTranslator,
    document: JSONValue,
    codes: Sequence[str],
    excluded: Optional[Iterable[str]] = None,
    on_result: Optional[Callable[[VariantResult], None]] = None,
) -> List[VariantResult]:
    """Translate a document into several languages, one after another.

    WHY: A failure in one language must not stop the others, and each
    failure should be reported in terms the user can act on.

    RULES:
    - Languages are processed sequentially in the given order
    - DocumentTranslationError and TransformError become failed results
      with a FailureKind and message; other exceptions propagate
    - on_result is called after each language, success or failure
    """
    exclusions = normalize_exclusions(excluded)
    results: List[VariantResult] = []

    for code in codes:
        label = language_name(code)
        try:
            value = await translator.translate(document, label, exclusions)
            result = VariantResult(code=code, label=label, value=value)
        except (DocumentTranslationError, TransformError) as exc:
            kind = classify_failure(exc)
            logger.error("Translation to %s failed (%s): %s", code, kind.value, exc)
            result = VariantResult(
                code=code, label=label, error=exc, kind=kind, message=describe_failure(exc)
            )
        results.append(result)
        if on_result:
            on_result(result)

    return results


def _log_sizes(document: JSONValue) -> None:
    """Log Notation vs minimal JSON size and token estimates."""
    json_text = minimal_json(document)
    notation_text = encode(document)
    json_bytes = len(json_text.encode("utf-8"))
    notation_bytes = len(notation_text.encode("utf-8"))
    saved = (1 - notation_bytes / json_bytes) * 100 if json_bytes else 0.0
    logger.info(
        "Notation size: %.2f KB (JSON: %.2f KB) | size saved: %.1f%% | "
        "tokens est: ~%d (JSON est: ~%d)",
        notation_bytes / 1024, json_bytes / 1024, saved,
        estimate_tokens(notation_text), estimate_tokens(json_text),
    )


def _short(address_key: str, limit: int = 60) -> str:
    if len(address_key) <= limit:
        return address_key
    return address_key[: limit - 3] + "..."
