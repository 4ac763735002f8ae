"""FastAPI application with translation API routes and OpenAPI docs.

WHY: External clients (CI pipelines, CMS hooks, curl) need an HTTP API to
submit documents for translation, poll for progress, and fetch each
translated variant. The Notation codec is also exposed so tools can
inspect what is sent to the model.

HOW: A single FastAPI app exposes endpoints grouped by tags. POST
/translations validates the request, creates a job, and runs the
translation in the background, one language after another. Other
endpoints provide polling, result retrieval, the codec, language listing
and health.

RULES:
- Every error body has the ErrorResponse shape ({"detail": ...})
- Background translation uses FastAPI BackgroundTasks
- The job store is a module-level singleton
- Results are only served for languages that completed (409 otherwise)
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List

from fastapi import BackgroundTasks, FastAPI, HTTPException
from fastapi.responses import Response

from localekit import __version__
from localekit.api.client import LLMClient
from localekit.config import LANGUAGE_MAP, TranslationSettings
from localekit.core.notation import ParseError, decode, encode
from localekit.core.orchestrator import DocumentTranslator, translate_variants
from localekit.core.recovery import RepairExhausted, recover
from localekit.core.values import minimal_json
from localekit.server.jobs import Job, JobStatus, JobStore
from localekit.server.models import (
    DecodeRequest,
    DecodeResponse,
    EncodeRequest,
    EncodeResponse,
    ErrorResponse,
    HealthResponse,
    JobCreatedResponse,
    JobResponse,
    LanguageInfo,
    TranslationRequest,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App and store setup
# ---------------------------------------------------------------------------

job_store = JobStore()


async def _periodic_cleanup() -> None:
    """Drop expired jobs every five minutes."""
    while True:
        await asyncio.sleep(300)
        job_store.cleanup_expired()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the cleanup loop for as long as the app is up."""
    task = asyncio.create_task(_periodic_cleanup())
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


app = FastAPI(
    lifespan=lifespan,
    title="localekit API",
    description=(
        "REST API for translating the string values of JSON documents with "
        "an LLM while keeping keys, structure and types intact. Submit a "
        "document, poll for progress, and fetch each translated variant."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _job_to_response(job: Job) -> JobResponse:
    """Build the API representation of a job snapshot."""
    return JobResponse(
        id=job.id,
        status=job.status.value,
        languages=job.languages,
        created_at=job.created_at,
        progress=job.progress,
        error=job.error,
    )


def _get_job_or_404(job_id: str) -> Job:
    job = job_store.snapshot(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found: {}".format(job_id))
    return job


async def _run_translation_job(job_id: str, store: JobStore) -> None:
    """Translate a job's document into each requested language.

    WHY: This is the background task behind POST /translations.

    HOW: Opens one LLMClient for the whole job, then runs each language
    through translate_variants() in order, recording every success or
    failure in the store as soon as it is known.

    RULES:
    - Languages are processed sequentially in request order
    - One failed language does not stop the others
    - Catches all exceptions and marks the job as failed
    """
    job = store.get_job(job_id)
    if job is None:
        return

    try:
        store.update_job(job_id, status=JobStatus.TRANSLATING)
        async with LLMClient(model=job.model) as client:
            translator = DocumentTranslator(client.transform, settings=TranslationSettings.from_env())
            for code in job.languages:
                store.update_job(job_id, current=code)
                results = await translate_variants(
                    translator, job.document, [code], excluded=job.excluded_paths
                )
                result = results[0]
                if result.ok:
                    store.record_success(job_id, code, result.value)
                else:
                    store.record_failure(job_id, code, result.message or str(result.error))

        if job.results:
            store.update_job(job_id, status=JobStatus.COMPLETED)
        else:
            store.update_job(job_id, status=JobStatus.FAILED, error="All languages failed")

    except Exception as exc:
        logger.exception("Translation job %s failed", job_id)
        store.update_job(job_id, status=JobStatus.FAILED, error=str(exc))


def _run_translation_sync(job_id: str, store: JobStore) -> None:
    """Synchronous wrapper for the async translation runner.

    WHY: FastAPI BackgroundTasks run synchronous callables in a thread
    pool. This wraps the async runner with asyncio.run().
    """
    asyncio.run(_run_translation_job(job_id, store))


# ---------------------------------------------------------------------------
# Endpoints: Translations
# ---------------------------------------------------------------------------


@app.post(
    "/translations",
    response_model=JobCreatedResponse,
    status_code=201,
    tags=["translations"],
    summary="Submit a translation job",
    description=(
        "Submit a JSON document and a list of target languages. Returns a job "
        "ID immediately; translation runs in the background. Poll GET "
        "/translations/{id} for progress."
    ),
    responses={
        429: {"model": ErrorResponse, "description": "Too many concurrent jobs"},
    },
)
async def create_translation(
    request: TranslationRequest,
    background_tasks: BackgroundTasks,
) -> JobCreatedResponse:
    languages: List[str] = []
    for code in request.languages:
        code = code.strip()
        if code and code not in languages:
            languages.append(code)
    if not languages:
        raise HTTPException(status_code=422, detail="No target languages given")

    try:
        job = job_store.create_job(
            document=request.document,
            languages=languages,
            excluded_paths=request.excluded_paths,
            model=request.model,
        )
    except ValueError as exc:
        raise HTTPException(status_code=429, detail=str(exc))

    background_tasks.add_task(_run_translation_sync, job.id, job_store)

    return JobCreatedResponse(id=job.id, status=job.status.value, languages=job.languages)


@app.get(
    "/translations/{job_id}",
    response_model=JobResponse,
    tags=["translations"],
    summary="Get translation job status",
    responses={
        404: {"model": ErrorResponse, "description": "Job not found"},
    },
)
async def get_translation(job_id: str) -> JobResponse:
    return _job_to_response(_get_job_or_404(job_id))


@app.get(
    "/translations/{job_id}/results/{code}",
    tags=["translations"],
    summary="Fetch one translated variant",
    description="Returns the translated document for one language as JSON.",
    responses={
        404: {"model": ErrorResponse, "description": "Job or language not found"},
        409: {"model": ErrorResponse, "description": "Language not yet completed"},
    },
)
async def get_translation_result(job_id: str, code: str) -> Response:
    job = _get_job_or_404(job_id)
    if code not in job.languages:
        raise HTTPException(
            status_code=404,
            detail="Language {} was not requested for job {}".format(code, job_id),
        )

    if code not in job.results:
        failure = job.progress["failed"].get(code)
        detail = "Language {} has not completed (job status: {})".format(code, job.status.value)
        if failure:
            detail = "Language {} failed: {}".format(code, failure)
        raise HTTPException(status_code=409, detail=detail)

    return Response(
        content=minimal_json(job.results[code]).encode("utf-8"),
        media_type="application/json",
    )


@app.delete(
    "/translations/{job_id}",
    status_code=204,
    tags=["translations"],
    summary="Delete a translation job",
    responses={
        404: {"model": ErrorResponse, "description": "Job not found"},
    },
)
async def delete_translation(job_id: str) -> Response:
    if not job_store.delete_job(job_id):
        raise HTTPException(status_code=404, detail="Job not found: {}".format(job_id))
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Endpoints: Notation
# ---------------------------------------------------------------------------


@app.post(
    "/notation/encode",
    response_model=EncodeResponse,
    tags=["notation"],
    summary="Encode a JSON value as Notation",
)
async def encode_notation(request: EncodeRequest) -> EncodeResponse:
    text = encode(request.document)
    return EncodeResponse(
        text=text,
        notation_bytes=len(text.encode("utf-8")),
        json_bytes=len(minimal_json(request.document).encode("utf-8")),
    )


@app.post(
    "/notation/decode",
    response_model=DecodeResponse,
    tags=["notation"],
    summary="Decode Notation (or recover model output) into JSON",
    responses={
        422: {"model": ErrorResponse, "description": "Text could not be decoded"},
    },
)
async def decode_notation(request: DecodeRequest) -> DecodeResponse:
    if not request.lenient:
        try:
            return DecodeResponse(document=decode(request.text), stage="notation")
        except ParseError as exc:
            raise HTTPException(status_code=422, detail=str(exc))

    try:
        result = recover(request.text)
    except RepairExhausted as exc:
        raise HTTPException(
            status_code=422,
            detail={
                "message": "All recovery stages failed",
                "attempts": [{"stage": a.stage, "error": a.error} for a in exc.attempts],
            },
        )
    return DecodeResponse(document=result.value, stage=result.stage)


# ---------------------------------------------------------------------------
# Endpoints: Utility
# ---------------------------------------------------------------------------


@app.get(
    "/languages",
    response_model=List[LanguageInfo],
    tags=["utility"],
    summary="List known target languages",
)
async def list_languages() -> List[LanguageInfo]:
    return [LanguageInfo(code=code, name=name) for code, name in LANGUAGE_MAP.items()]


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["utility"],
    summary="Health check",
)
async def health() -> HealthResponse:
    return HealthResponse(status="ok", version=__version__)
