"""Shared test fixtures for the localekit test suite.

WHY: Several test modules need the same sample documents and the same
kind of fake transform. Centralizing them here keeps the scenarios
consistent between the orchestrator, CLI and server tests.

HOW: Plain module-level sample data plus fixtures that return fresh
copies. make_transform() builds an async transform that serves scripted
replies and records every call.

RULES:
- Fake transforms never touch the network
- Settings fixtures use zero backoff so retry tests run instantly
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List

import pytest

from localekit.config import TranslationSettings
from localekit.core.notation import decode, encode

# ---------------------------------------------------------------------------
# Sample documents
# ---------------------------------------------------------------------------

SAMPLE_DOCUMENT: Dict[str, Any] = {
    "title": "Welcome",
    "menu": {
        "open": "Open file",
        "save": "Save, then close",
        "recent": ["One", "Two"],
    },
    "count": 3,
    "enabled": True,
    "note": None,
    "meta": {"id": "app-1", "version": "1.0"},
}

SAMPLE_LIST: List[Any] = [
    {"id": 1, "label": "First"},
    {"id": 2, "label": "Second"},
    "plain",
    7,
]


@pytest.fixture
def sample_document():
    """A nested object document with every scalar type."""
    return copy.deepcopy(SAMPLE_DOCUMENT)


@pytest.fixture
def sample_list():
    """An array-root document with mixed items."""
    return copy.deepcopy(SAMPLE_LIST)


@pytest.fixture
def fast_settings():
    """Default sizes with zero backoff and short timeouts."""
    return TranslationSettings(
        chunk_threshold_bytes=4096,
        chunk_size_bytes=3072,
        chunk_timeout_s=5.0,
        document_timeout_s=5.0,
        max_retries=2,
        retry_backoff_s=0.0,
    )


@pytest.fixture
def tiny_chunk_settings():
    """Settings that force chunking for any non-trivial document."""
    return TranslationSettings(
        chunk_threshold_bytes=0,
        chunk_size_bytes=10,
        chunk_timeout_s=5.0,
        document_timeout_s=5.0,
        max_retries=2,
        retry_backoff_s=0.0,
    )


# ---------------------------------------------------------------------------
# Fake transforms
# ---------------------------------------------------------------------------


class ScriptedTransform:
    """Async transform that replays scripted replies and records calls.

    Each entry in replies is either a string (returned as the reply), an
    exception instance (raised), or a callable taking the request text
    and returning the reply. When the script runs out, the last entry is
    reused.
    """

    def __init__(self, replies: List[Any]) -> None:
        self.replies = list(replies)
        self.calls: List[Dict[str, Any]] = []

    async def __call__(self, text: str, target_label: str, excluded: frozenset) -> str:
        self.calls.append({"text": text, "target": target_label, "excluded": excluded})
        index = min(len(self.calls) - 1, len(self.replies) - 1)
        reply = self.replies[index]
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return reply(text)
        return reply


def shout(text: str) -> str:
    """Reply that upper-cases every string value of the request payload."""
    return encode(_upper(decode(text)))


def _upper(value: Any) -> Any:
    if isinstance(value, str):
        return value.upper()
    if isinstance(value, list):
        return [_upper(v) for v in value]
    if isinstance(value, dict):
        return {k: _upper(v) for k, v in value.items()}
    return value


@pytest.fixture
def make_transform():
    """Factory for ScriptedTransform instances."""
    return ScriptedTransform


@pytest.fixture
def shout_reply():
    """Reply callable that upper-cases every string value."""
    return shout
