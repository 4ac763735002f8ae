"""In-memory job store for translation jobs with TTL cleanup.

WHY: Translating a document into several languages takes minutes, far
longer than an HTTP request should stay open. The API returns a job ID
immediately, translates in the background, and keeps each finished
variant in memory until the client fetches it. An in-memory store is
sufficient for a single-team tool with no persistence requirements.

HOW: The module has three parts:
  JobStatus  enum of valid job states
  Job        dataclass holding the request, progress and finished variants
  JobStore   thread-safe dict-based store with create/get/snapshot/list/update/delete,
             per-language result recording and TTL cleanup

RULES:
- All store mutations are protected by threading.Lock
- progress is {"current": code or None, "completed": [...], "failed": {code: message}}
- A job is COMPLETED when every language was attempted and at least one
  succeeded, FAILED when none did or the runner crashed
- TTL-based expiry only removes jobs in a terminal state
- Job IDs are UUID4 hex strings generated at creation time
- Finished jobs are kept for an hour unless ttl_seconds says otherwise
"""

from __future__ import annotations

import dataclasses
import enum
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# Seconds a finished job is kept before cleanup may drop it
DEFAULT_TTL_SECONDS = 3600


class JobStatus(str, enum.Enum):
    """Valid states for a translation job.

    HOW: A str enum, so the API can return status.value as is.

    RULES:
    - pending: accepted, waiting for the background runner
    - translating: languages are being processed one after another
    - completed: all languages attempted, at least one result available
    - failed: no language succeeded, or the runner hit an unhandled error
    """

    PENDING = "pending"
    TRANSLATING = "translating"
    COMPLETED = "completed"
    FAILED = "failed"


def _empty_progress() -> Dict[str, Any]:
    return {"current": None, "completed": [], "failed": {}}


@dataclass
class Job:
    """Request, state and results of a single translation job.

    RULES:
    - document is the source document exactly as submitted
    - languages keeps the requested order
    - results maps language code to the translated document
    - completed_at is set when the job reaches a terminal state
    """

    id: str
    status: JobStatus
    document: Any
    languages: List[str]
    created_at: float
    updated_at: float
    excluded_paths: List[str] = field(default_factory=list)
    model: Optional[str] = None
    completed_at: Optional[float] = None
    error: Optional[str] = None
    progress: Dict[str, Any] = field(default_factory=_empty_progress)
    results: Dict[str, Any] = field(default_factory=dict)


class JobStore:
    """Thread-safe in-memory store for translation jobs.

    WHY: Request handlers and the background runner touch job state from
    different threads. A centralized store with locking prevents races
    and gives both sides one small interface.

    HOW: Jobs live in a plain dict keyed by job ID. All access acquires a
    threading.Lock. The runner reports each language through
    record_success()/record_failure(), which keep progress consistent.

    RULES:
    - create_job() raises ValueError when max_jobs is reached
    - Lookups of unknown IDs return None instead of raising
    - Recording a language clears progress["current"] if it was that language
    - Request handlers read snapshot(); get_job() hands out the live Job
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_jobs: int = 100,
    ) -> None:
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds
        self.max_jobs = max_jobs

    def create_job(
        self,
        document: Any,
        languages: List[str],
        excluded_paths: Optional[List[str]] = None,
        model: Optional[str] = None,
    ) -> Job:
        """Create a new job in PENDING state."""
        with self._lock:
            if len(self._jobs) >= self.max_jobs:
                raise ValueError(
                    "Maximum number of concurrent jobs ({}) reached, try again later".format(
                        self.max_jobs
                    )
                )

            job_id = uuid.uuid4().hex
            now = time.time()
            job = Job(
                id=job_id,
                status=JobStatus.PENDING,
                document=document,
                languages=list(languages),
                created_at=now,
                updated_at=now,
                excluded_paths=list(excluded_paths or []),
                model=model,
            )
            self._jobs[job_id] = job

        logger.info("Created job %s for %d language(s)", job_id, len(languages))
        return job

    def get_job(self, job_id: str) -> Optional[Job]:
        """Look up a job; unknown IDs give None.

        RULES:
        - Callers get the stored Job itself, so later updates show through
        """
        with self._lock:
            return self._jobs.get(job_id)

    def snapshot(self, job_id: str) -> Optional[Job]:
        """Return a detached copy of a job, taken under the lock.

        RULES:
        - progress, languages and results are copied, so the runner's later
          updates never show through and readers never see a half-recorded
          language
        - document is shared; nothing mutates it after creation
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            return dataclasses.replace(
                job,
                languages=list(job.languages),
                excluded_paths=list(job.excluded_paths),
                progress={
                    "current": job.progress["current"],
                    "completed": list(job.progress["completed"]),
                    "failed": dict(job.progress["failed"]),
                },
                results=dict(job.results),
            )

    def list_jobs(self) -> List[Job]:
        """Return all jobs, oldest first."""
        with self._lock:
            return sorted(self._jobs.values(), key=lambda j: j.created_at)

    def update_job(
        self,
        job_id: str,
        status: Optional[JobStatus] = None,
        error: Optional[str] = None,
        current: Optional[str] = None,
    ) -> Optional[Job]:
        """Update a job's status, error and/or current language.

        RULES:
        - Unknown job_id: nothing happens and None is returned
        - Arguments left as None keep their current value
        - Entering COMPLETED or FAILED stamps completed_at and clears current
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None

            now = time.time()
            if status is not None:
                job.status = status
            if error is not None:
                job.error = error
            if current is not None:
                job.progress["current"] = current

            job.updated_at = now
            if job.status in (JobStatus.COMPLETED, JobStatus.FAILED):
                job.completed_at = now
                job.progress["current"] = None
            return job

    def record_success(self, job_id: str, code: str, value: Any) -> None:
        """Store a finished variant and mark its language completed."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return
            job.results[code] = value
            if code not in job.progress["completed"]:
                job.progress["completed"].append(code)
            self._finish_current(job, code)

    def record_failure(self, job_id: str, code: str, message: str) -> None:
        """Mark a language as failed with a user-facing message."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return
            job.progress["failed"][code] = message
            self._finish_current(job, code)

    @staticmethod
    def _finish_current(job: Job, code: str) -> None:
        if job.progress["current"] == code:
            job.progress["current"] = None
        job.updated_at = time.time()

    def delete_job(self, job_id: str) -> bool:
        """Delete a job; returns True if it existed."""
        with self._lock:
            job = self._jobs.pop(job_id, None)

        if job is None:
            return False
        logger.info("Removed job %s", job_id)
        return True

    def cleanup_expired(self) -> int:
        """Remove terminal jobs older than the TTL.

        RULES:
        - Pending and translating jobs are never removed
        - Age counts from completed_at
        - Returns how many jobs were dropped
        """
        now = time.time()
        expired: List[Job] = []

        with self._lock:
            for job_id, job in list(self._jobs.items()):
                if job.status not in (JobStatus.COMPLETED, JobStatus.FAILED):
                    continue
                if job.completed_at is None:
                    continue
                if now - job.completed_at > self._ttl_seconds:
                    expired.append(self._jobs.pop(job_id))

        for job in expired:
            logger.info("Dropped job %s, finished %.0fs ago", job.id, now - job.completed_at)
        return len(expired)
