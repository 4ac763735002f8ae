"""Pydantic request/response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for request validation,
response serialization, and automatic OpenAPI documentation.

HOW: Each endpoint pair (request + response) has its own model. All
models include Field descriptions for the /docs UI.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Documents are arbitrary JSON values (typed as Any)
- Response models never expose internal implementation details
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class TranslationRequest(BaseModel):
    """Body of POST /translations.

    RULES:
    - languages must contain at least one locale code
    - model defaults to the server's configured model
    """

    document: Any = Field(description="The JSON document to translate.")
    languages: List[str] = Field(
        min_length=1,
        description="Target locale codes, translated in this order (e.g. ['de_de', 'fr_fr']).",
    )
    excluded_paths: List[str] = Field(
        default_factory=list,
        description="Paths that must not be translated (e.g. 'meta', '[0]').",
    )
    model: Optional[str] = Field(
        default=None,
        description="Model id; the provider is derived from it.",
    )

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "document": {"title": "Hello", "meta": {"id": "x1"}},
                "languages": ["de_de", "fr_fr"],
                "excluded_paths": ["meta"],
            }
        ]
    }}


class EncodeRequest(BaseModel):
    """Body of POST /notation/encode."""

    document: Any = Field(description="The JSON value to encode.")


class DecodeRequest(BaseModel):
    """Body of POST /notation/decode.

    RULES:
    - lenient=False runs the strict decoder only
    - lenient=True runs the full recovery cascade (fences, JSON, repairs)
    """

    text: str = Field(description="Notation text (or model output when lenient).")
    lenient: bool = Field(
        default=False,
        description="Use the recovery cascade instead of the strict decoder.",
    )


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class JobResponse(BaseModel):
    """Translation job status response.

    RULES:
    - progress["current"] is the language in flight, or None
    - progress["failed"] maps codes to user-facing failure messages
    - error is only set when the runner itself failed
    """

    id: str = Field(description="Unique job identifier.")
    status: str = Field(description="Current job status.")
    languages: List[str] = Field(description="Requested target locale codes.")
    created_at: float = Field(description="Job creation timestamp (Unix epoch seconds).")
    progress: Dict[str, Any] = Field(description="Per-language progress.")
    error: Optional[str] = Field(
        default=None,
        description="Error message, only present when the job itself failed.",
    )

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "id": "550e8400e29b41d4a716446655440000",
                "status": "translating",
                "languages": ["de_de", "fr_fr"],
                "created_at": 1739959200.0,
                "progress": {"current": "fr_fr", "completed": ["de_de"], "failed": {}},
                "error": None,
            }
        ]
    }}


class JobCreatedResponse(BaseModel):
    """Response returned when a new translation job is submitted."""

    id: str = Field(description="Unique job identifier for polling status.")
    status: str = Field(description="Initial job status (always 'pending').")
    languages: List[str] = Field(description="Requested target locale codes.")


class EncodeResponse(BaseModel):
    """Encoded Notation text and the size comparison with minimal JSON."""

    text: str = Field(description="The Notation text.")
    notation_bytes: int = Field(description="UTF-8 size of the Notation text.")
    json_bytes: int = Field(description="UTF-8 size of the minimal JSON serialization.")


class DecodeResponse(BaseModel):
    """Decoded document and the stage that produced it."""

    document: Any = Field(description="The decoded JSON value.")
    stage: str = Field(description="Decoder stage that succeeded ('notation' when strict).")


class LanguageInfo(BaseModel):
    """A known target language."""

    code: str = Field(description="Locale code used in requests and output file names.")
    name: str = Field(description="Display name sent to the model.")


class ErrorResponse(BaseModel):
    """Standard error response body."""

    detail: Any = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
