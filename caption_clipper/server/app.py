"""FastAPI application exposing the caption clipper pipeline over HTTP.

WHY: The practice frontend needs to submit videos, poll progress while
clips are cut, and fetch the finished segments. FastAPI provides
request validation and OpenAPI documentation out of the box.

HOW: POST /videos/process resolves the video ID, validates options, and
hands a JobRequest to the JobRunner, returning 202 immediately. Progress
comes from the shared ProgressStore, finished results from the
ResultStore. A few direct endpoints (metadata, captions, translate) call
the collaborators synchronously for the UI. Extracted clips are served
as static files under /processed.

RULES:
- Error responses use a consistent ErrorResponse schema
- The progress store, result store and job runner are created at import
  and shared by every request
- Progress records are reaped every 5 minutes by the lifespan task
- Collaborator failures map to 502; a missing translator maps to 503
- Python 3.9+ compatible (no match/case, no PEP 604 unions)
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated

from fastapi import FastAPI, HTTPException, Query
from fastapi.staticfiles import StaticFiles

from caption_clipper import __version__
from caption_clipper.config import DEFAULT_SOURCE_LANGUAGE, PROCESSED_DIR
from caption_clipper.core.models import Segment, SegmentationOptions
from caption_clipper.core.parser import detect_format, parse_captions
from caption_clipper.errors import (
    CaptionFetchError,
    ConfigurationError,
    MetadataFetchError,
    SourceResolutionError,
    TranslationError,
)
from caption_clipper.pipeline.extractor import YtDlpExtractor
from caption_clipper.pipeline.facade import DEFAULT_OVERLAP, ClipPipeline
from caption_clipper.pipeline.orchestrator import ExtractionOrchestrator
from caption_clipper.pipeline.progress import ProgressStore
from caption_clipper.pipeline.results import ResultStore
from caption_clipper.providers.translation import create_translator
from caption_clipper.providers.youtube import YouTubeProvider, resolve_video_id
from caption_clipper.server.jobs import JobRequest, JobRunner
from caption_clipper.server.models import (
    CancelResponse,
    CaptionEntryResponse,
    CaptionsResponse,
    ErrorResponse,
    HealthResponse,
    MAX_SEGMENT_DURATION_S,
    MIN_SEGMENT_DURATION_S,
    PipelineResultResponse,
    ProcessVideoRequest,
    ProcessVideoResponse,
    ProgressResponse,
    SegmentResponse,
    TranslateRequest,
    TranslateResponse,
    VideoMetadataResponse,
)

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL_S = 300

# ---------------------------------------------------------------------------
# App and store setup
# ---------------------------------------------------------------------------

progress_store = ProgressStore()
result_store = ResultStore()


def build_pipeline() -> ClipPipeline:
    """Create a ClipPipeline wired to the shared progress store."""
    return ClipPipeline(
        provider=YouTubeProvider(),
        orchestrator=ExtractionOrchestrator(YtDlpExtractor(), progress_store),
        translator=create_translator(),
    )


job_runner = JobRunner(build_pipeline, result_store)


async def _periodic_cleanup() -> None:
    """Reap expired progress records every 5 minutes."""
    while True:
        await asyncio.sleep(CLEANUP_INTERVAL_S)
        progress_store.cleanup_expired()


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
    title="Caption Clipper API",
    description=(
        "Turn YouTube videos into short, translated practice clips for "
        "language learners. Submit a video, poll for progress, and fetch "
        "the segments with their audio and video clip URLs."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.mount(
    "/processed",
    StaticFiles(directory=PROCESSED_DIR, check_dir=False),
    name="processed",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve_or_400(video_url: str) -> str:
    try:
        return resolve_video_id(video_url)
    except SourceResolutionError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


def _validate_options(segment_duration: float) -> None:
    """Raise 400 if the requested segmentation options are unusable."""
    if not MIN_SEGMENT_DURATION_S <= segment_duration <= MAX_SEGMENT_DURATION_S:
        raise HTTPException(
            status_code=400,
            detail="segment_duration must be between {:g} and {:g} seconds".format(
                MIN_SEGMENT_DURATION_S, MAX_SEGMENT_DURATION_S
            ),
        )
    try:
        SegmentationOptions(segment_duration=segment_duration, overlap=DEFAULT_OVERLAP).validate()
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


# ---------------------------------------------------------------------------
# Endpoints: Videos
# ---------------------------------------------------------------------------


@app.post(
    "/videos/process",
    response_model=ProcessVideoResponse,
    status_code=202,
    tags=["videos"],
    summary="Start processing a video",
    description=(
        "Resolve the video, then fetch captions, build segments, translate "
        "them and cut audio/video clips in the background. Returns "
        "immediately; poll progress_url and fetch result_url when done."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Unrecognizable URL or bad options"},
        409: {"model": ErrorResponse, "description": "A job for this video is running"},
    },
)
async def process_video(body: ProcessVideoRequest) -> ProcessVideoResponse:
    video_id = _resolve_or_400(body.video_url)
    _validate_options(body.segment_duration)

    request = JobRequest(
        video_id=video_id,
        source_url=body.video_url,
        segment_duration=body.segment_duration,
        include_translation=body.include_translation,
        optimize=body.optimize,
        merge=body.merge,
    )
    try:
        job_runner.submit(request)
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc))

    return ProcessVideoResponse(
        video_id=video_id,
        status="pending",
        progress_url="/videos/{}/progress".format(video_id),
        result_url="/videos/{}/result".format(video_id),
    )


@app.get(
    "/videos/{video_id}/progress",
    response_model=ProgressResponse,
    tags=["videos"],
    summary="Get extraction progress",
    description="Latest progress snapshot of the most recent job for this video.",
    responses={404: {"model": ErrorResponse, "description": "No job for this video"}},
)
async def get_progress(video_id: str) -> ProgressResponse:
    record = progress_store.get_latest(video_id)
    if record is None:
        raise HTTPException(
            status_code=404, detail="No progress found for video {}".format(video_id)
        )
    return ProgressResponse(**record.to_dict())


@app.get(
    "/videos/{video_id}/result",
    response_model=PipelineResultResponse,
    tags=["videos"],
    summary="Get the processing result",
    description="The persisted pipeline result, success or error.",
    responses={404: {"model": ErrorResponse, "description": "No result for this video"}},
)
async def get_result(video_id: str) -> PipelineResultResponse:
    try:
        result = result_store.load(video_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if result is None:
        raise HTTPException(
            status_code=404, detail="No result found for video {}".format(video_id)
        )
    return PipelineResultResponse(
        success=result.success,
        video_id=result.video_id,
        title=result.title,
        duration=result.duration,
        segments=[_segment_response(segment) for segment in result.segments],
        captions_concat=result.captions_concat,
        thumbnail=result.thumbnail,
        error=result.error,
    )


@app.delete(
    "/videos/{video_id}/job",
    response_model=CancelResponse,
    status_code=202,
    tags=["videos"],
    summary="Cancel a running job",
    description=(
        "Request cancellation. The job stops before its next segment and "
        "ends as failed with the error 'Job cancelled'."
    ),
    responses={404: {"model": ErrorResponse, "description": "No active job"}},
)
async def cancel_job(video_id: str) -> CancelResponse:
    if not job_runner.cancel(video_id):
        raise HTTPException(
            status_code=404, detail="No active job for video {}".format(video_id)
        )
    return CancelResponse(video_id=video_id, status="cancelling")


@app.get(
    "/videos/{video_id}/metadata",
    response_model=VideoMetadataResponse,
    tags=["videos"],
    summary="Get video metadata",
    responses={502: {"model": ErrorResponse, "description": "Provider failure"}},
)
async def get_metadata(video_id: str) -> VideoMetadataResponse:
    try:
        async with YouTubeProvider() as provider:
            metadata = await provider.get_metadata(video_id)
    except MetadataFetchError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return VideoMetadataResponse(**metadata.to_dict())


@app.get(
    "/videos/{video_id}/captions",
    response_model=CaptionsResponse,
    tags=["videos"],
    summary="Get parsed captions",
    description="Download the caption track and return the parsed entries.",
    responses={502: {"model": ErrorResponse, "description": "No captions or provider failure"}},
)
async def get_captions(
    video_id: str,
    language: Annotated[
        str,
        Query(description="Caption language ISO 639-1 code."),
    ] = DEFAULT_SOURCE_LANGUAGE,
) -> CaptionsResponse:
    try:
        async with YouTubeProvider() as provider:
            raw = await provider.get_raw_captions(video_id, language)
    except CaptionFetchError as exc:
        raise HTTPException(status_code=502, detail=str(exc))

    entries = parse_captions(raw)
    return CaptionsResponse(
        video_id=video_id,
        language=language,
        format=detect_format(raw),
        entries=[
            CaptionEntryResponse(start=entry.start, end=entry.end, text=entry.text)
            for entry in entries
        ],
    )


@app.get(
    "/videos/{video_id}/segments/{segment_id}",
    response_model=SegmentResponse,
    tags=["videos"],
    summary="Get one processed segment",
    responses={404: {"model": ErrorResponse, "description": "Result or segment not found"}},
)
async def get_segment(video_id: str, segment_id: str) -> SegmentResponse:
    try:
        result = result_store.load(video_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if result is None or not result.success:
        raise HTTPException(
            status_code=404, detail="No processed result for video {}".format(video_id)
        )
    for segment in result.segments:
        if segment.id == segment_id:
            return _segment_response(segment)
    raise HTTPException(
        status_code=404,
        detail="Segment '{}' not found for video {}".format(segment_id, video_id),
    )


# ---------------------------------------------------------------------------
# Endpoints: Translation
# ---------------------------------------------------------------------------


@app.post(
    "/translate",
    response_model=TranslateResponse,
    tags=["translation"],
    summary="Translate a short text",
    responses={
        502: {"model": ErrorResponse, "description": "Translation service failure"},
        503: {"model": ErrorResponse, "description": "No translator configured"},
    },
)
async def translate(body: TranslateRequest) -> TranslateResponse:
    translator = create_translator()
    if translator is None:
        raise HTTPException(status_code=503, detail="Translation service not configured")
    try:
        async with translator:
            translation = await translator.translate(
                body.text, body.source_lang, body.target_lang
            )
    except TranslationError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return TranslateResponse(
        translation=translation,
        source_lang=body.source_lang,
        target_lang=body.target_lang,
    )


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
    return HealthResponse(status="ok", version=__version__)


# ---------------------------------------------------------------------------
# Helpers (private)
# ---------------------------------------------------------------------------


def run_api(host: str = "0.0.0.0", port: int = 8000) -> None:
    """Entry point for the caption-clipper-api console script."""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    Path(PROCESSED_DIR).mkdir(parents=True, exist_ok=True)
    uvicorn.run(app, host=host, port=port)


def _segment_response(segment: Segment) -> SegmentResponse:
    return SegmentResponse(
        id=segment.id,
        start_time=segment.start_time,
        end_time=segment.end_time,
        text=segment.text,
        translation=segment.translation,
        audio_url=segment.audio_url,
        video_url=segment.video_url,
    )
