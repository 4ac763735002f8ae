"""Configuration constants, language mappings, and .env loading.

WHY: Centralizes all configurable values so they are easy to find,
update, and override. Language names, chunking thresholds, timeouts and
provider endpoints are plain data structures kept out of the logic, so
both humans and coding agents can modify them confidently.

HOW: python-dotenv loads the .env file on import. Constants are defined
as module-level dicts and values read from environment variables with
defaults. TranslationSettings bundles the knobs the orchestrator needs,
and load_api_key() gives a clear error when a provider key is missing.

RULES:
- LANGUAGE_MAP maps locale codes (e.g. "de_de") to display names; the
  display name is the target label sent to the model
- Unmapped language codes fall back to the code itself
- API keys are loaded from .env via python-dotenv, never hardcoded
- All defaults can be overridden via environment variables
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Load .env from the project root (where the script is run from)
load_dotenv()

# ---------------------------------------------------------------------------
# Language mapping: locale code → display name
# ---------------------------------------------------------------------------

LANGUAGE_MAP: dict[str, str] = {
    "en_gb": "English United Kingdom",
    "en_us": "English United States",
    "ru_ru": "Russian",
    "sv_se": "Swedish",
    "fi_fi": "Finnish",
    "et_ee": "Estonian",
    "ro_ro": "Romanian",
    "da_dk": "Danish",
    "de_de": "German",
    "nl_nl": "Dutch Netherlands",
    "nl_be": "Dutch Belgium",
    "zh_cn": "Simplified Chinese China",
    "zh_tw": "Traditional Chinese Taiwan",
    "th_th": "Thai",
    "tr_tr": "Turkish",
    "ja_jp": "Japanese",
    "pl_pl": "Polish",
    "pt_pt": "Portuguese Portugal",
    "pt_br": "Portuguese Brazil",
    "es_es": "Spanish Spain",
    "es_mx": "Spanish Mexico",
    "ko_kr": "Korean",
    "vi_vn": "Vietnamese",
    "cs_cz": "Czech",
    "id_id": "Indonesian",
    "it_it": "Italian",
    "fr_fr": "French France",
    "fr_be": "French Belgium",
    "el_gr": "Greek",
    "lt_lt": "Lithuanian",
    "nb_no": "Norwegian",
}


def language_name(code: str) -> str:
    """Map a locale code to the display name used as the target label.

    WHY: Models translate more reliably into "Portuguese Brazil" than into
    "pt_br". The output file is still named after the code.

    HOW: Case-insensitive lookup in LANGUAGE_MAP with the code as fallback.

    RULES:
    - Known codes map to their display name
    - Unknown codes are returned unchanged (custom languages still work)
    """
    return LANGUAGE_MAP.get(code.lower(), code)


# ---------------------------------------------------------------------------
# Model and provider defaults
# ---------------------------------------------------------------------------

DEFAULT_MODEL = os.getenv("LOCALEKIT_MODEL", "gpt-4o-mini")
DEFAULT_TEMPERATURE = float(os.getenv("LOCALEKIT_TEMPERATURE", "0.3"))

PROVIDER_BASE_URLS: dict[str, str] = {
    "openai": os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1"),
    "anthropic": os.getenv("ANTHROPIC_BASE_URL", "https://api.anthropic.com/v1"),
    "mistral": os.getenv("MISTRAL_BASE_URL", "https://api.mistral.ai/v1"),
    "openrouter": os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1"),
}

PROVIDER_KEY_VARS: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
}

# ---------------------------------------------------------------------------
# Chunking, timeout and retry defaults
# ---------------------------------------------------------------------------

# Documents whose Notation form is at or under this size go out in one request.
CHUNK_THRESHOLD_BYTES = int(os.getenv("LOCALEKIT_CHUNK_THRESHOLD_BYTES", "4096"))
CHUNK_SIZE_BYTES = int(os.getenv("LOCALEKIT_CHUNK_SIZE_BYTES", "3072"))
CHUNK_TIMEOUT_S = float(os.getenv("LOCALEKIT_CHUNK_TIMEOUT_S", "60"))
DOCUMENT_TIMEOUT_S = float(os.getenv("LOCALEKIT_DOCUMENT_TIMEOUT_S", "600"))
MAX_RETRIES = int(os.getenv("LOCALEKIT_MAX_RETRIES", "2"))
RETRY_BACKOFF_S = float(os.getenv("LOCALEKIT_RETRY_BACKOFF_S", "1.0"))


@dataclass(frozen=True)
class TranslationSettings:
    """Knobs that control how one document is split, sent, and retried.

    WHY: The orchestrator should not read globals; tests and the HTTP API
    need to run it with tiny chunk sizes or zero backoff.

    HOW: Frozen dataclass with defaults taken from the module constants.
    from_env() re-reads the constants (useful after tests patch them).

    RULES:
    - max_retries counts retries, not attempts (2 → 3 attempts in total)
    - Backoff is linear: retry_backoff_s * retry_number
    - document_timeout_s applies when the whole document fits under
      chunk_threshold_bytes and is sent as a single unit
    """

    chunk_threshold_bytes: int = CHUNK_THRESHOLD_BYTES
    chunk_size_bytes: int = CHUNK_SIZE_BYTES
    chunk_timeout_s: float = CHUNK_TIMEOUT_S
    document_timeout_s: float = DOCUMENT_TIMEOUT_S
    max_retries: int = MAX_RETRIES
    retry_backoff_s: float = RETRY_BACKOFF_S

    @classmethod
    def from_env(cls) -> TranslationSettings:
        return cls(
            chunk_threshold_bytes=CHUNK_THRESHOLD_BYTES,
            chunk_size_bytes=CHUNK_SIZE_BYTES,
            chunk_timeout_s=CHUNK_TIMEOUT_S,
            document_timeout_s=DOCUMENT_TIMEOUT_S,
            max_retries=MAX_RETRIES,
            retry_backoff_s=RETRY_BACKOFF_S,
        )


def load_api_key(provider: str) -> str:
    """Load the API key for a provider from the environment.

    WHY: Every LLM call needs a key. Loading it from the environment (via
    .env) keeps it out of source code.

    HOW: Looks up the provider's variable name in PROVIDER_KEY_VARS and
    reads it from os.environ (populated by python-dotenv).

    RULES:
    - Raises ValueError for an unknown provider
    - Raises ValueError if the key is missing or empty
    - Never returns a default/placeholder value
    """
    var = PROVIDER_KEY_VARS.get(provider)
    if var is None:
        raise ValueError("Unsupported provider: {}".format(provider))
    key = os.getenv(var, "").strip()
    if not key:
        raise ValueError(
            "API key for provider '{}' not configured. "
            "Add {} to the .env file in the app folder.".format(provider, var)
        )
    return key
