"""Async HTTP client for LLM chat APIs, used as the translation transform.

WHY: The orchestrator only needs one thing from the outside world: "here
is an encoded chunk and a target language, give me the reply text". This
module hides the provider differences (endpoints, auth headers, request
and response shapes) behind a single client class so the CLI, the HTTP
API and tests never deal with HTTP details.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. LLMClient is an async
context manager: enter it to get an authenticated client, exit to close
the connection pool. transform() has the orchestrator's Transform
signature, so a bound method can be handed to DocumentTranslator as is.
OpenAI, Mistral and OpenRouter share the OpenAI-compatible
/chat/completions endpoint; Anthropic uses /messages.

RULES:
- Always use the async context manager (async with LLMClient(...) as client:)
- The provider is derived from the model id (see provider_for_model)
- Non-2xx responses raise LLMAPIError with the status code and body
- Network errors, non-chat bodies and empty replies raise TransformError
  so they are retried
- Time bounds are the orchestrator's job; the httpx timeout is only a backstop
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

import httpx

from localekit.api.models import ANTHROPIC, ChatCompletion, provider_for_model
from localekit.api.prompts import build_system_prompt, build_user_prompt
from localekit.config import (
    DEFAULT_MODEL,
    DEFAULT_TEMPERATURE,
    PROVIDER_BASE_URLS,
    load_api_key,
)
from localekit.core.orchestrator import TransformError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_ANTHROPIC_VERSION = "2023-06-01"
_DEFAULT_MAX_TOKENS = 8192
_HTTP_TIMEOUT = httpx.Timeout(900.0, connect=30.0)


class LLMAPIError(TransformError):
    """Raised when an LLM provider returns an error response.

    WHY: Callers need the HTTP status to tell quota problems (402/429)
    from bad requests or outages when reporting a failure.

    HOW: Wraps the HTTP status code and response body.

    RULES:
    - Always include status_code and message
    - message is the response body text or a summary
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.message = message
        super().__init__(f"LLM API error {status_code}: {message}", status_code=status_code)


class LLMClient:
    """Async client that translates encoded chunks through a chat model.

    WHY: Provides the production Transform for DocumentTranslator with
    auth, provider routing and error wrapping in one place.

    HOW: Wraps httpx.AsyncClient with the provider's auth headers. Use as
    an async context manager to ensure the connection pool is closed.

    RULES:
    - Use as: async with LLMClient(model="gpt-4o-mini") as client: ...
    - api_key defaults to load_api_key(provider) from .env
    - base_url defaults to PROVIDER_BASE_URLS[provider]
    - transport is for tests (httpx.MockTransport)
    """

    def __init__(
        self,
        model: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        temperature: float | None = None,
        max_tokens: int = _DEFAULT_MAX_TOKENS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.model = model or DEFAULT_MODEL
        self.provider = provider_for_model(self.model)
        self._api_key = api_key or load_api_key(self.provider)
        self._base_url = (base_url or PROVIDER_BASE_URLS[self.provider]).rstrip("/")
        self._temperature = DEFAULT_TEMPERATURE if temperature is None else temperature
        self._max_tokens = max_tokens
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> LLMClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._auth_headers(),
            timeout=_HTTP_TIMEOUT,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "LLMClient must be used as an async context manager: "
                "async with LLMClient() as client: ..."
            )
        return self._client

    def _auth_headers(self) -> dict:
        if self.provider == ANTHROPIC:
            return {
                "x-api-key": self._api_key,
                "anthropic-version": _ANTHROPIC_VERSION,
            }
        return {"Authorization": f"Bearer {self._api_key}"}

    # ------------------------------------------------------------------
    # Transform
    # ------------------------------------------------------------------

    async def transform(self, text: str, target_label: str, excluded: Iterable[str] = ()) -> str:
        """Translate one encoded payload and return the raw reply text.

        WHY: This is the orchestrator's Transform. It returns the reply
        verbatim; recovering a document from it is core.recovery's job.

        HOW: Builds the system and user prompts, sends one chat request
        in the provider's dialect, and extracts the reply text.

        RULES:
        - Raises LLMAPIError on non-2xx responses
        - Raises TransformError on network errors, a body that is not a
          chat reply, or an empty reply
        - Logs prompt sizes at INFO and token usage at DEBUG

        Args:
            text: The encoded chunk payload.
            target_label: Target language as shown to the model.
            excluded: Paths the model must leave untouched.

        Returns:
            The model's reply text.
        """
        client = self._ensure_client()
        system_prompt = build_system_prompt(target_label, excluded)
        user_prompt = build_user_prompt(target_label, text)
        logger.info(
            "Sending %.2f KB to %s (%s) for %s",
            len((system_prompt + user_prompt).encode("utf-8")) / 1024,
            self.model, self.provider, target_label,
        )

        if self.provider == ANTHROPIC:
            path, body = "/messages", self._anthropic_body(system_prompt, user_prompt)
        else:
            path, body = "/chat/completions", self._openai_body(system_prompt, user_prompt)

        try:
            resp = await client.post(path, json=body)
        except httpx.TimeoutException as exc:
            raise TransformError(f"Request to {self.provider} timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise TransformError(f"Request to {self.provider} failed: {exc}") from exc

        if resp.status_code not in (200, 201):
            raise LLMAPIError(resp.status_code, resp.text)

        try:
            data = resp.json()
        except ValueError as exc:
            raise TransformError(f"Invalid reply from {self.provider}: body is not JSON") from exc
        if not isinstance(data, dict):
            raise TransformError(
                f"Invalid reply from {self.provider}: expected a JSON object, "
                f"got {type(data).__name__}"
            )
        try:
            if self.provider == ANTHROPIC:
                completion = ChatCompletion.from_anthropic(data)
            else:
                completion = ChatCompletion.from_openai(data)
        except (AttributeError, IndexError, KeyError, TypeError) as exc:
            raise TransformError(f"Invalid reply from {self.provider}: {exc!r}") from exc

        logger.debug(
            "Reply from %s: %s input / %s output tokens, finish=%s",
            completion.model or self.model,
            completion.input_tokens, completion.output_tokens, completion.finish_reason,
        )
        if completion.truncated:
            logger.warning("Reply from %s was cut off at the token limit", self.model)
        if not isinstance(completion.text, str) or not completion.text.strip():
            raise TransformError(f"Empty reply from {self.model}")
        return completion.text

    def _openai_body(self, system_prompt: str, user_prompt: str) -> dict:
        return {
            "model": self.model,
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }

    def _anthropic_body(self, system_prompt: str, user_prompt: str) -> dict:
        return {
            "model": self.model,
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_prompt}],
        }
