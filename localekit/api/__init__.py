"""LLM API package: async HTTP interface to chat model providers.

WHY: Translation requests go to one of several chat APIs. This package
keeps every provider detail behind a single client class.

HOW: LLMClient wraps httpx.AsyncClient and exposes transform(), which
matches the orchestrator's Transform signature. Replies are parsed into
the dataclasses in models.py; prompt wording lives in prompts.py.

RULES:
- All HTTP calls go through LLMClient (no direct httpx usage elsewhere)
- Authentication uses the provider key from config
"""

from localekit.api.client import LLMAPIError, LLMClient
from localekit.api.models import ChatCompletion, provider_for_model

__all__ = ["ChatCompletion", "LLMAPIError", "LLMClient", "provider_for_model"]
