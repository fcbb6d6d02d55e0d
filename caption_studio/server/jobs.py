"""In-memory job store with background task execution and TTL cleanup.

WHY: Transcription (upload, provider polling, segmentation) and rendering
both take from seconds to many minutes, so the HTTP API returns a job ID
immediately and processes the work in the background. An in-memory store
is enough for a single-instance service with no persistence requirements.

HOW: Four components work together:
  JobKind:   what the job does (transcription or render)
  JobStatus: enum of valid job states
  Job:       dataclass holding job metadata, progress, result, work directory
  JobStore:  thread-safe dict-based store with create/update/get/list/delete,
             keyed de-duplication of in-flight jobs, a background runner,
             and TTL cleanup

RULES:
- All store mutations are protected by threading.Lock
- Transcription jobs get a dedicated temp directory for the uploaded media
- At most one non-terminal job exists per dedup key (create_unique_job)
- TTL expiry removes terminal jobs and their temp directories
- The background runner marks the job 'failed' on unhandled exceptions
- Job IDs are UUID4 hex strings generated at creation time
"""

from __future__ import annotations

import enum
import logging
import shutil
import tempfile
import threading
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Default time-to-live for completed/failed jobs (seconds)
DEFAULT_TTL_SECONDS = 3600


class JobKind(str, enum.Enum):
    TRANSCRIPTION = "transcription"
    RENDER = "render"


class JobStatus(str, enum.Enum):
    """Valid states for a background job.

    RULES:
    - pending: job created, not yet started
    - uploading: media being uploaded to the provider
    - transcribing: provider processing the audio
    - segmenting: words received, cues being built
    - rendering: external renderer running
    - completed / failed: terminal
    """

    PENDING = "pending"
    UPLOADING = "uploading"
    TRANSCRIBING = "transcribing"
    SEGMENTING = "segmenting"
    RENDERING = "rendering"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_JOB_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


@dataclass
class Job:
    """Metadata and state for a single background job.

    RULES:
    - id: UUID4 hex string, immutable after creation
    - filename: uploaded media name (transcriptions) or project id (renders)
    - work_dir: temp directory for uploaded media, None for renders
    - key: dedup key of an in-flight job, e.g. "{project id}-{render mode}"
    - progress: free-form dict, e.g. {"stage": "rendering", "percent": 42, "eta": 12}
    - result: job output once completed (subtitles, download URL, ...)
    """

    id: str
    kind: JobKind
    status: JobStatus
    filename: str
    created_at: float
    updated_at: float
    work_dir: Optional[Path] = None
    key: Optional[str] = None
    completed_at: Optional[float] = None
    error: Optional[str] = None
    progress: Optional[Dict[str, Any]] = None
    config: Dict[str, Any] = field(default_factory=dict)
    result: Optional[Dict[str, Any]] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES


class JobStore:
    """Thread-safe in-memory store for background jobs.

    WHY: Concurrent API requests and background tasks read and write job
    state at the same time. A central store with locking prevents races
    and gives one clean CRUD interface.

    HOW: Jobs live in a plain dict keyed by job ID. All mutations acquire
    a threading.Lock. Background tasks are callables receiving
    (job_id, store) and updating the store as they progress.

    RULES:
    - create_job() refuses new jobs beyond max_jobs (ValueError)
    - get_job() returns None for missing job IDs (no exceptions)
    - update_job() only applies non-None arguments
    - delete_job() removes the job and cleans up its temp directory
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

    def _new_job_locked(
        self,
        kind: JobKind,
        filename: str,
        config: Optional[Dict[str, Any]],
        key: Optional[str],
        with_work_dir: bool,
    ) -> Job:
        if len(self._jobs) >= self.max_jobs:
            raise ValueError(
                "Maximum number of concurrent jobs ({}) reached".format(self.max_jobs)
            )

        now = time.time()
        job = Job(
            id=uuid.uuid4().hex,
            kind=kind,
            status=JobStatus.PENDING,
            filename=filename,
            created_at=now,
            updated_at=now,
            work_dir=Path(tempfile.mkdtemp(prefix="caption_job_")) if with_work_dir else None,
            key=key,
            config=config or {},
        )
        self._jobs[job.id] = job
        return job

    def create_job(
        self,
        filename: str,
        config: Optional[Dict[str, Any]] = None,
        kind: JobKind = JobKind.TRANSCRIPTION,
    ) -> Job:
        """Create a new PENDING job.

        Transcription jobs get a temp directory immediately; it persists
        until the job is deleted or expires.
        """
        with self._lock:
            job = self._new_job_locked(
                kind, filename, config, key=None,
                with_work_dir=kind == JobKind.TRANSCRIPTION,
            )

        logger.info("Created %s job %s for %s", kind.value, job.id, filename)
        return job

    def create_unique_job(
        self,
        key: str,
        filename: str,
        config: Optional[Dict[str, Any]] = None,
        kind: JobKind = JobKind.RENDER,
    ) -> Tuple[Job, bool]:
        """Create a job unless a non-terminal job with ``key`` already exists.

        Returns (job, created). When created is False, job is the existing
        in-flight job and nothing new was stored.
        """
        with self._lock:
            for existing in self._jobs.values():
                if existing.key == key and not existing.is_terminal:
                    return existing, False
            job = self._new_job_locked(
                kind, filename, config, key=key,
                with_work_dir=kind == JobKind.TRANSCRIPTION,
            )

        logger.info("Created %s job %s (key %s)", kind.value, job.id, key)
        return job, True

    def get_job(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.get(job_id)

    def list_jobs(self, kind: Optional[JobKind] = None) -> List[Job]:
        """All jobs (optionally of one kind), oldest first."""
        with self._lock:
            jobs = [j for j in self._jobs.values() if kind is None or j.kind == kind]
        return sorted(jobs, key=lambda j: j.created_at)

    def update_job(
        self,
        job_id: str,
        status: Optional[JobStatus] = None,
        error: Optional[str] = None,
        progress: Optional[Dict[str, Any]] = None,
        result: Optional[Dict[str, Any]] = None,
    ) -> Optional[Job]:
        """Update a job's mutable fields.

        RULES:
        - Returns the updated Job, or None if job_id not found
        - updated_at is always bumped
        - completed_at is set when status becomes COMPLETED or FAILED
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
            if progress is not None:
                job.progress = progress
            if result is not None:
                job.result = result

            job.updated_at = now

            if job.is_terminal:
                job.completed_at = now

            return job

    def delete_job(self, job_id: str) -> bool:
        """Delete a job and its temp directory. False if unknown."""
        with self._lock:
            job = self._jobs.pop(job_id, None)

        if job is None:
            return False

        self._cleanup_work_dir(job.work_dir)
        logger.info("Deleted job %s", job_id)
        return True

    def run_in_background(
        self,
        job_id: str,
        task: Callable[[str, JobStore], None],
    ) -> None:
        """Run ``task(job_id, store)``, marking the job failed if it raises.

        Runs synchronously in the calling thread; the HTTP layer schedules
        it through BackgroundTasks. Status updates made by the task before
        the failure are kept.
        """
        try:
            task(job_id, self)
        except Exception as exc:
            logger.exception("Background task failed for job %s", job_id)
            self.update_job(job_id, status=JobStatus.FAILED, error=str(exc))

    def cleanup_expired(self) -> int:
        """Remove terminal jobs older than the TTL (from completed_at)."""
        now = time.time()
        expired_jobs: List[Job] = []

        with self._lock:
            for job_id, job in list(self._jobs.items()):
                if not job.is_terminal or job.completed_at is None:
                    continue
                if now - job.completed_at > self._ttl_seconds:
                    expired_jobs.append(self._jobs.pop(job_id))

        for job in expired_jobs:
            self._cleanup_work_dir(job.work_dir)
            logger.info("Expired job %s (completed %.0fs ago)", job.id, now - job.completed_at)

        return len(expired_jobs)

    @staticmethod
    def _cleanup_work_dir(work_dir: Optional[Path]) -> None:
        if work_dir is not None and work_dir.exists():
            try:
                shutil.rmtree(work_dir)
            except OSError:
                logger.warning("Failed to clean up temp dir: %s", work_dir)
