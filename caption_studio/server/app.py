"""FastAPI application: transcription, segmentation, editing history, rendering.

WHY: The caption editor front-end (and curl, scripts, automations) needs
an HTTP API to submit a video for transcription, poll for the resulting
cues, re-segment them live, keep per-session undo/redo history, and start
renders. FastAPI provides OpenAPI docs, request validation, and
background task support.

HOW: One FastAPI app, endpoints grouped by tags:
  transcriptions: upload + background pipeline (upload → create → poll →
                  normalize → group → split), polling, re-segmentation
  segmentations:  stateless words-per-cue split
  sessions:       one HistoryManager per editing session
  renders:        background render jobs with progress and ETA
Long-running work goes through JobStore; editing sessions through
SessionStore.

RULES:
- All endpoints have OpenAPI descriptions on every parameter and response
- Error responses use the ErrorResponse schema
- 400/422 bad input, 404 unknown id, 409 nothing to undo/redo or job not
  finished, 429 too many jobs/sessions, 503 rendering not configured
- At most one in-flight render per (project id, render mode)
- Python 3.9+ compatible (no match/case, no PEP 604 unions)
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated, Any, Dict, List, Optional

from fastapi import BackgroundTasks, FastAPI, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import Response

from caption_studio import __version__
from caption_studio.config import (
    DEFAULT_LANGUAGE_CODE,
    DEFAULT_MAX_WORDS_PER_CUE,
    RENDER_COMMAND,
    SUPPORTED_MEDIA_FORMATS,
)
from caption_studio.core.errors import HistoryStateNotFoundError, SegmentationError
from caption_studio.core.history import HistoryMetadata, HistoryState
from caption_studio.core.models import Subtitle, VideoProject, segment_to_subtitle
from caption_studio.core.segmenter import split_subtitles
from caption_studio.render.backend import CommandRenderBackend, RenderBackend
from caption_studio.render.modes import (
    DEFAULT_RENDER_MODE,
    RENDER_MODES,
    estimate_eta,
    estimate_render_seconds,
    get_render_mode,
    stage_from_progress,
)
from caption_studio.server.jobs import Job, JobKind, JobStatus, JobStore
from caption_studio.server.models import (
    ErrorResponse,
    HealthResponse,
    HistoryEntrySummary,
    HistoryResponse,
    HistoryStatsModel,
    HistoryStateModel,
    JobCreatedResponse,
    RenderJobResponse,
    RenderModeInfo,
    RenderModesResponse,
    RenderRequest,
    SaveStateRequest,
    SegmentationRequest,
    SegmentationResponse,
    SessionCreateRequest,
    SessionStateResponse,
    SubtitleModel,
    TranscriptionJobResponse,
)
from caption_studio.server.sessions import Session, SessionStore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App and store setup
# ---------------------------------------------------------------------------

job_store = JobStore()
session_store = SessionStore()

render_backend: Optional[RenderBackend] = None
"""Render backend override (tests). When None, RENDER_COMMAND is used."""


async def _periodic_cleanup() -> None:
    """Expire old jobs and idle sessions every 5 minutes."""
    while True:
        await asyncio.sleep(300)
        job_store.cleanup_expired()
        session_store.cleanup_idle()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start periodic cleanup on startup, cancel on shutdown."""
    task = asyncio.create_task(_periodic_cleanup())
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


app = FastAPI(
    lifespan=lifespan,
    title="Caption Studio API",
    description=(
        "REST API for word-timed video captions: transcribe a video with "
        "AssemblyAI, segment the words into short cues, edit them with "
        "per-session undo/redo, and render the captioned video."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _subtitles_from_models(models: List[SubtitleModel]) -> List[Subtitle]:
    return [Subtitle.from_dict(m.model_dump(by_alias=True)) for m in models]


def _job_to_response(job: Job) -> TranscriptionJobResponse:
    return TranscriptionJobResponse.model_validate({
        "id": job.id,
        "status": job.status.value,
        "filename": job.filename,
        "createdAt": job.created_at,
        "config": job.config,
        "progress": job.progress,
        "error": job.error,
        "result": job.result if job.status == JobStatus.COMPLETED else None,
    })


def _render_job_to_response(job: Job) -> RenderJobResponse:
    result = job.result or {}
    return RenderJobResponse.model_validate({
        "id": job.id,
        "status": job.status.value,
        "projectId": job.filename,
        "renderMode": job.config["renderMode"],
        "estimatedTime": job.config["estimatedTime"],
        "progress": job.progress,
        "downloadUrl": result.get("downloadUrl"),
        "renderTime": result.get("renderTime"),
        "error": job.error,
    })


def _session_response(session: Session, state: HistoryState) -> SessionStateResponse:
    return SessionStateResponse(
        session_id=session.id,
        state=HistoryStateModel.model_validate(state.to_dict()),
        stats=HistoryStatsModel.model_validate(session.history.get_stats().to_dict()),
    )


def _validate_file_extension(filename: str) -> None:
    """Raise HTTPException if the file extension is not supported."""
    ext = Path(filename).suffix.lower()
    if ext not in SUPPORTED_MEDIA_FORMATS:
        raise HTTPException(
            status_code=400,
            detail="Unsupported file type '{}'. Supported formats: {}".format(
                ext, ", ".join(sorted(SUPPORTED_MEDIA_FORMATS))
            ),
        )


def _get_transcription_job(job_id: str) -> Job:
    job = job_store.get_job(job_id)
    if job is None or job.kind != JobKind.TRANSCRIPTION:
        raise HTTPException(status_code=404, detail="Job not found: {}".format(job_id))
    return job


def _get_session(session_id: str) -> Session:
    session = session_store.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found: {}".format(session_id))
    return session


def _get_render_backend() -> Optional[RenderBackend]:
    if render_backend is not None:
        return render_backend
    if RENDER_COMMAND:
        return CommandRenderBackend(RENDER_COMMAND)
    return None


# ---------------------------------------------------------------------------
# Background pipelines
# ---------------------------------------------------------------------------


async def _run_transcription_pipeline(job_id: str, store: JobStore) -> None:
    """Run the full transcription pipeline for a job.

    WHY: This is the background task that turns an uploaded video into
    cues: upload → create transcript → poll → normalize → group → split.

    HOW: Reads the uploaded file from the job's work_dir and updates the
    job status at each stage. The provider transcript is deleted in a
    finally block once it has been fetched or has failed.

    RULES:
    - Exceptions propagate; JobStore.run_in_background marks the job failed
    - The result keeps the raw subtitles so later re-segmentation never
      compounds
    """
    from caption_studio.api.client import AssemblyAIClient
    from caption_studio.core.normalizer import average_confidence, normalize_words
    from caption_studio.core.segmenter import group_words

    job = store.get_job(job_id)
    if job is None:
        return

    input_path = job.work_dir / job.filename
    config = job.config

    async with AssemblyAIClient() as client:
        store.update_job(job_id, status=JobStatus.UPLOADING)
        upload_url = await client.upload_file(input_path)

        store.update_job(job_id, status=JobStatus.TRANSCRIBING)
        transcript_id = await client.create_transcript(upload_url, config["language_code"])
        try:
            transcript = await client.wait_for_transcript(
                transcript_id,
                on_status=lambda message: store.update_job(job_id, progress={"message": message}),
            )
        finally:
            await client.delete_transcript(transcript_id)

    store.update_job(job_id, status=JobStatus.SEGMENTING)
    words = normalize_words(transcript)
    raw_subtitles = group_words(words)
    subtitles = split_subtitles(raw_subtitles, config["max_words_per_cue"])

    logger.info(
        "Job %s: %d words, %d raw subtitles, %d cues",
        job_id, len(words), len(raw_subtitles), len(subtitles),
    )
    store.update_job(
        job_id,
        status=JobStatus.COMPLETED,
        result={
            "rawSubtitles": [s.to_dict() for s in raw_subtitles],
            "subtitles": [s.to_dict() for s in subtitles],
            "confidence": average_confidence(words),
            "wordCount": len(words),
            "audioDuration": transcript.audio_duration,
        },
    )


def _transcription_task(job_id: str, store: JobStore) -> None:
    asyncio.run(_run_transcription_pipeline(job_id, store))


def _run_transcription_sync(job_id: str, store: JobStore) -> None:
    """Synchronous entry point scheduled through BackgroundTasks."""
    store.run_in_background(job_id, _transcription_task)


def _render_task(job_id: str, store: JobStore) -> None:
    """Drive the render backend for a job, reporting stage, percent and ETA."""
    job = store.get_job(job_id)
    if job is None:
        return

    backend = _get_render_backend()
    if backend is None:
        raise RuntimeError("Rendering is not configured (RENDER_COMMAND is empty)")

    project = VideoProject.from_dict(job.config["project"])
    mode = get_render_mode(job.config["renderMode"])
    estimated = job.config["estimatedTime"]
    started = time.monotonic()

    store.update_job(
        job_id,
        status=JobStatus.RENDERING,
        progress={"stage": stage_from_progress(0.0), "percent": 0, "eta": estimated},
    )

    def on_progress(fraction: float) -> None:
        elapsed = time.monotonic() - started
        store.update_job(job_id, progress={
            "stage": stage_from_progress(fraction),
            "percent": round(fraction * 100),
            "eta": estimate_eta(elapsed, fraction, estimated),
        })

    download_url = backend.render(project, mode, on_progress)
    render_time = round(time.monotonic() - started)
    logger.info(
        "Render %s finished in %ds (estimated %ds)", job_id, render_time, estimated
    )
    store.update_job(
        job_id,
        status=JobStatus.COMPLETED,
        progress={"stage": stage_from_progress(1.0), "percent": 100, "eta": 0},
        result={"downloadUrl": download_url, "renderTime": render_time},
    )


def _run_render_sync(job_id: str, store: JobStore) -> None:
    """Synchronous entry point scheduled through BackgroundTasks."""
    store.run_in_background(job_id, _render_task)


# ---------------------------------------------------------------------------
# Endpoints: Transcriptions
# ---------------------------------------------------------------------------


@app.post(
    "/transcriptions",
    response_model=JobCreatedResponse,
    status_code=201,
    tags=["transcriptions"],
    summary="Submit a video for transcription",
    description=(
        "Upload a video or audio file. Returns a job ID immediately; the "
        "transcription and segmentation run in the background. Poll "
        "GET /transcriptions/{id} for status and the resulting cues."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Invalid file type or settings"},
        429: {"model": ErrorResponse, "description": "Too many concurrent jobs"},
    },
)
async def create_transcription(
    background_tasks: BackgroundTasks,
    file: Annotated[
        UploadFile,
        File(description="Video or audio file to transcribe"),
    ],
    language_code: Annotated[
        str,
        Form(description="Spoken language code (e.g. 'fr', 'en')."),
    ] = DEFAULT_LANGUAGE_CODE,
    max_words_per_cue: Annotated[
        int,
        Form(description="Maximum words per display cue (>= 1)."),
    ] = DEFAULT_MAX_WORDS_PER_CUE,
) -> JobCreatedResponse:
    # Sanitize filename to prevent path traversal
    filename = Path(file.filename or "upload").name
    _validate_file_extension(filename)

    if max_words_per_cue < 1:
        raise HTTPException(
            status_code=400,
            detail="max_words_per_cue must be >= 1, got {}".format(max_words_per_cue),
        )

    config = {
        "language_code": language_code,
        "max_words_per_cue": max_words_per_cue,
    }

    try:
        job = job_store.create_job(filename=filename, config=config)
    except ValueError as exc:
        raise HTTPException(status_code=429, detail=str(exc))

    content = await file.read()
    (job.work_dir / filename).write_bytes(content)

    background_tasks.add_task(_run_transcription_sync, job.id, job_store)

    return JobCreatedResponse(id=job.id, status=job.status.value, filename=job.filename)


@app.get(
    "/transcriptions/{job_id}",
    response_model=TranscriptionJobResponse,
    response_model_exclude_none=True,
    tags=["transcriptions"],
    summary="Get transcription job status",
    description=(
        "Poll this endpoint to track a transcription job. When the job is "
        "completed the response carries the raw subtitles, the display cues "
        "and the average confidence."
    ),
    responses={
        404: {"model": ErrorResponse, "description": "Job not found"},
    },
)
async def get_transcription(job_id: str) -> TranscriptionJobResponse:
    return _job_to_response(_get_transcription_job(job_id))


@app.get(
    "/transcriptions/{job_id}/subtitles",
    response_model=SegmentationResponse,
    response_model_exclude_none=True,
    tags=["transcriptions"],
    summary="Re-segment a completed transcription",
    description=(
        "Split the job's raw subtitles again with a different words-per-cue "
        "limit. The raw subtitles are never modified, so repeated calls do "
        "not compound."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Invalid words-per-cue value"},
        404: {"model": ErrorResponse, "description": "Job not found"},
        409: {"model": ErrorResponse, "description": "Job not yet completed"},
    },
)
async def resegment_transcription(
    job_id: str,
    max_words_per_cue: Annotated[
        int,
        Query(alias="maxWordsPerCue", description="Maximum words per display cue (>= 1)."),
    ] = DEFAULT_MAX_WORDS_PER_CUE,
) -> SegmentationResponse:
    job = _get_transcription_job(job_id)
    if job.status != JobStatus.COMPLETED:
        raise HTTPException(
            status_code=409,
            detail="Job is not completed (current status: {}).".format(job.status.value),
        )

    raw = [Subtitle.from_dict(s) for s in job.result["rawSubtitles"]]
    try:
        cues = split_subtitles(raw, max_words_per_cue)
    except SegmentationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return SegmentationResponse.model_validate({"subtitles": [c.to_dict() for c in cues]})


@app.delete(
    "/transcriptions/{job_id}",
    status_code=204,
    tags=["transcriptions"],
    summary="Delete a transcription job",
    description="Delete a transcription job and its uploaded media.",
    responses={
        404: {"model": ErrorResponse, "description": "Job not found"},
    },
)
async def delete_transcription(job_id: str) -> Response:
    _get_transcription_job(job_id)
    job_store.delete_job(job_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Endpoints: Segmentation
# ---------------------------------------------------------------------------


@app.post(
    "/segmentations",
    response_model=SegmentationResponse,
    response_model_exclude_none=True,
    tags=["segmentations"],
    summary="Split subtitles into cues",
    description=(
        "Re-segment pre-grouped subtitles into cues of at most maxWordsPerCue "
        "words. A word ending with '.', '!' or '?' always closes its cue."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Invalid words-per-cue value"},
    },
)
async def create_segmentation(body: SegmentationRequest) -> SegmentationResponse:
    try:
        cues = split_subtitles(_subtitles_from_models(body.subtitles), body.max_words_per_cue)
    except SegmentationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return SegmentationResponse.model_validate({"subtitles": [c.to_dict() for c in cues]})


# ---------------------------------------------------------------------------
# Endpoints: Editing sessions
# ---------------------------------------------------------------------------


def _segments_from_request(segments: List[Any]) -> List[Subtitle]:
    return [segment_to_subtitle(s.model_dump(by_alias=True)) for s in segments]


def _metadata_from_request(body: SaveStateRequest) -> Optional[HistoryMetadata]:
    if body.metadata is None:
        return None
    return HistoryMetadata.from_dict(body.metadata.model_dump(by_alias=True))


@app.post(
    "/sessions",
    response_model=SessionStateResponse,
    response_model_exclude_none=True,
    status_code=201,
    tags=["sessions"],
    summary="Open an editing session",
    description=(
        "Create an editing session with its own undo/redo history. The "
        "given cues and style become the first history entry."
    ),
    responses={
        429: {"model": ErrorResponse, "description": "Too many editing sessions"},
    },
)
async def create_session(body: SessionCreateRequest) -> SessionStateResponse:
    try:
        session = session_store.create()
    except ValueError as exc:
        raise HTTPException(status_code=429, detail=str(exc))

    with session.lock:
        state = session.history.save_state(
            _segments_from_request(body.segments), body.style, body.description
        )
        return _session_response(session, state)


@app.post(
    "/sessions/{session_id}/states",
    response_model=SessionStateResponse,
    response_model_exclude_none=True,
    tags=["sessions"],
    summary="Record an edit",
    description=(
        "Save a snapshot after an edit. Saving after an undo discards the "
        "redo entries. Rapid edits with the same groupable metadata.action "
        "replace the current entry instead of adding one."
    ),
    responses={
        404: {"model": ErrorResponse, "description": "Session not found"},
    },
)
async def save_session_state(session_id: str, body: SaveStateRequest) -> SessionStateResponse:
    session = _get_session(session_id)
    with session.lock:
        state = session.history.save_state(
            _segments_from_request(body.segments),
            body.style,
            body.description,
            _metadata_from_request(body),
        )
        return _session_response(session, state)


@app.post(
    "/sessions/{session_id}/undo",
    response_model=SessionStateResponse,
    response_model_exclude_none=True,
    tags=["sessions"],
    summary="Undo the last edit",
    description="Step back to the previous entry. Returns 409 at the oldest entry.",
    responses={
        404: {"model": ErrorResponse, "description": "Session not found"},
        409: {"model": ErrorResponse, "description": "Nothing to undo"},
    },
)
async def undo_session(session_id: str) -> SessionStateResponse:
    session = _get_session(session_id)
    with session.lock:
        state = session.history.undo()
        if state is None:
            raise HTTPException(status_code=409, detail="Nothing to undo")
        return _session_response(session, state)


@app.post(
    "/sessions/{session_id}/redo",
    response_model=SessionStateResponse,
    response_model_exclude_none=True,
    tags=["sessions"],
    summary="Redo the last undone edit",
    description="Step forward to the next entry. Returns 409 at the newest entry.",
    responses={
        404: {"model": ErrorResponse, "description": "Session not found"},
        409: {"model": ErrorResponse, "description": "Nothing to redo"},
    },
)
async def redo_session(session_id: str) -> SessionStateResponse:
    session = _get_session(session_id)
    with session.lock:
        state = session.history.redo()
        if state is None:
            raise HTTPException(status_code=409, detail="Nothing to redo")
        return _session_response(session, state)


@app.post(
    "/sessions/{session_id}/states/{state_id}/restore",
    response_model=SessionStateResponse,
    response_model_exclude_none=True,
    tags=["sessions"],
    summary="Jump to a history entry",
    description="Make the given entry current without discarding any entries.",
    responses={
        404: {"model": ErrorResponse, "description": "Session or state not found"},
    },
)
async def restore_session_state(session_id: str, state_id: str) -> SessionStateResponse:
    session = _get_session(session_id)
    with session.lock:
        try:
            state = session.history.go_to_state(state_id)
        except HistoryStateNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc))
        return _session_response(session, state)


@app.get(
    "/sessions/{session_id}/history",
    response_model=HistoryResponse,
    tags=["sessions"],
    summary="List history entries",
    description="Summaries of all entries, oldest first, plus undo/redo statistics.",
    responses={
        404: {"model": ErrorResponse, "description": "Session not found"},
    },
)
async def get_session_history(session_id: str) -> HistoryResponse:
    session = _get_session(session_id)
    with session.lock:
        entries = [
            HistoryEntrySummary(
                id=state.id,
                timestamp=state.timestamp,
                description=state.description,
                action=state.action,
            )
            for state in session.history.get_history()
        ]
        stats = HistoryStatsModel.model_validate(session.history.get_stats().to_dict())
    return HistoryResponse(session_id=session.id, entries=entries, stats=stats)


@app.delete(
    "/sessions/{session_id}",
    status_code=204,
    tags=["sessions"],
    summary="Close an editing session",
    description="Discard a session and its whole history.",
    responses={
        404: {"model": ErrorResponse, "description": "Session not found"},
    },
)
async def delete_session(session_id: str) -> Response:
    if not session_store.delete(session_id):
        raise HTTPException(status_code=404, detail="Session not found: {}".format(session_id))
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Endpoints: Rendering
# ---------------------------------------------------------------------------


@app.get(
    "/render-modes",
    response_model=RenderModesResponse,
    tags=["renders"],
    summary="List render modes",
    description="Available render modes with their speed multipliers and the default mode.",
)
async def list_render_modes() -> RenderModesResponse:
    return RenderModesResponse(
        available_modes=[
            RenderModeInfo.model_validate(mode.to_dict(recommended=key == DEFAULT_RENDER_MODE))
            for key, mode in RENDER_MODES.items()
        ],
        default_mode=DEFAULT_RENDER_MODE,
    )


@app.post(
    "/renders",
    response_model=RenderJobResponse,
    status_code=201,
    tags=["renders"],
    summary="Start a render",
    description=(
        "Render the captioned video in the background. If the same project "
        "is already rendering in the same mode, the existing job is returned "
        "with status 200 instead of starting a second render."
    ),
    responses={
        200: {"model": RenderJobResponse, "description": "Render already in progress"},
        400: {"model": ErrorResponse, "description": "Unknown render mode"},
        429: {"model": ErrorResponse, "description": "Too many concurrent jobs"},
        503: {"model": ErrorResponse, "description": "Rendering not configured"},
    },
)
async def create_render(
    body: RenderRequest,
    background_tasks: BackgroundTasks,
    response: Response,
) -> RenderJobResponse:
    try:
        mode = get_render_mode(body.render_mode)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    if _get_render_backend() is None:
        raise HTTPException(
            status_code=503,
            detail="Rendering is not configured. Set RENDER_COMMAND on the server.",
        )

    project: Dict[str, Any] = body.model_dump(by_alias=True, exclude={"render_mode"})
    estimated = estimate_render_seconds(body.video_duration, mode)
    config = {"project": project, "renderMode": mode.key, "estimatedTime": estimated}

    try:
        job, created = job_store.create_unique_job(
            key="{}-{}".format(body.id, mode.key),
            filename=body.id,
            config=config,
            kind=JobKind.RENDER,
        )
    except ValueError as exc:
        raise HTTPException(status_code=429, detail=str(exc))

    if created:
        logger.info("Render %s queued: %s (%s, ~%ds)", job.id, body.id, mode.name, estimated)
        background_tasks.add_task(_run_render_sync, job.id, job_store)
    else:
        logger.info("Render of %s (%s) already in progress: job %s", body.id, mode.key, job.id)
        response.status_code = 200

    return _render_job_to_response(job)


@app.get(
    "/renders/{job_id}",
    response_model=RenderJobResponse,
    tags=["renders"],
    summary="Get render status",
    description="Poll stage, percent and ETA of a render; downloadUrl once completed.",
    responses={
        404: {"model": ErrorResponse, "description": "Render job not found"},
    },
)
async def get_render(job_id: str) -> RenderJobResponse:
    job = job_store.get_job(job_id)
    if job is None or job.kind != JobKind.RENDER:
        raise HTTPException(status_code=404, detail="Render job not found: {}".format(job_id))
    return _render_job_to_response(job)


# ---------------------------------------------------------------------------
# Endpoints: Health
# ---------------------------------------------------------------------------


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
    description="Liveness and readiness check for load balancers and orchestrators.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        render_enabled=_get_render_backend() is not None,
    )


def run_api(host: str = "0.0.0.0", port: int = 8000) -> None:
    """Serve the API with uvicorn."""
    import uvicorn
    uvicorn.run(app, host=host, port=port)
