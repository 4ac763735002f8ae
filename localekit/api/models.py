"""LLM provider routing and chat response dataclasses.

WHY: The translator talks to several providers that speak two different
chat dialects (OpenAI-compatible /chat/completions and Anthropic
/messages). Typed dataclasses make the one field we care about (the
reply text) explicit, along with the usage numbers worth logging.

HOW: provider_for_model() routes a model id to a provider name.
ChatCompletion has one factory per dialect; both produce the same shape.

RULES:
- "claude-*" models go to anthropic, "mistral-*" to mistral
- Ids with both "/" and ":" (e.g. "meta-llama/llama-3:free") go to openrouter
- Everything else goes to openai
- from_* factories never raise on missing optional fields
"""

from __future__ import annotations

from dataclasses import dataclass

ANTHROPIC = "anthropic"
MISTRAL = "mistral"
OPENAI = "openai"
OPENROUTER = "openrouter"

PROVIDERS = (OPENAI, ANTHROPIC, MISTRAL, OPENROUTER)


def provider_for_model(model: str) -> str:
    """Return the provider name that serves a model id."""
    name = model.strip().lower()
    if name.startswith("claude-"):
        return ANTHROPIC
    if name.startswith("mistral-"):
        return MISTRAL
    if "/" in name and ":" in name:
        return OPENROUTER
    return OPENAI


@dataclass
class ChatCompletion:
    """A single chat reply, normalized across provider dialects.

    RULES:
    - text is the concatenated reply text ("" when the provider sent none)
    - finish_reason uses the provider's own vocabulary ("stop",
      "length", "end_turn", "max_tokens", ...)
    - Token counts are None when the provider did not report usage
    """

    text: str
    model: str | None = None
    finish_reason: str | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None

    @property
    def truncated(self) -> bool:
        return self.finish_reason in ("length", "max_tokens")

    @classmethod
    def from_openai(cls, data: dict) -> ChatCompletion:
        """Parse an OpenAI-compatible /chat/completions response."""
        choices = data.get("choices") or [{}]
        choice = choices[0] or {}
        message = choice.get("message") or {}
        content = message.get("content") or ""
        if isinstance(content, list):
            # Some compatible providers return content parts
            content = "".join(
                part.get("text", "") for part in content if isinstance(part, dict)
            )
        usage = data.get("usage") or {}
        return cls(
            text=content,
            model=data.get("model"),
            finish_reason=choice.get("finish_reason"),
            input_tokens=usage.get("prompt_tokens"),
            output_tokens=usage.get("completion_tokens"),
        )

    @classmethod
    def from_anthropic(cls, data: dict) -> ChatCompletion:
        """Parse an Anthropic /messages response."""
        blocks = data.get("content") or []
        text = "".join(
            block.get("text", "")
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text"
        )
        usage = data.get("usage") or {}
        return cls(
            text=text,
            model=data.get("model"),
            finish_reason=data.get("stop_reason"),
            input_tokens=usage.get("input_tokens"),
            output_tokens=usage.get("output_tokens"),
        )
