"""Bounded background execution of pipeline jobs with cooperative cancel.

WHY: Processing a video takes minutes (network calls plus one yt-dlp
run per clip), so the HTTP layer acknowledges immediately and the work
runs elsewhere. Fire-and-forget tasks lose their exceptions; a bounded
worker pool with explicit futures keeps job lifetime and error capture
visible and caps how many yt-dlp processes run at once.

HOW: JobRunner owns a ThreadPoolExecutor. submit() builds a fresh
ClipPipeline from the factory inside the worker (httpx clients are bound
to the event loop that created them) and drives it with asyncio.run().
Whatever happens, a PipelineResult is produced and persisted through
the ResultStore. Each active job carries a threading.Event that the
orchestrator checks between segments.

RULES:
- At most one active job per video ID; a second submit raises ValueError
- Unexpected exceptions become error results, logged with traceback
- Results are persisted for success and failure alike
- cancel() only signals; the job finishes as failed with "Job cancelled"
- Default pool size is MAX_CONCURRENT_JOBS
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

import jsonschema

from caption_clipper.config import MAX_CONCURRENT_JOBS
from caption_clipper.pipeline.facade import ClipPipeline, PipelineResult
from caption_clipper.pipeline.results import ResultStore

logger = logging.getLogger(__name__)


@dataclass
class JobRequest:
    """Parameters of one process-video submission."""

    video_id: str
    source_url: str
    segment_duration: float = 8.0
    include_translation: bool = True
    optimize: bool = False
    merge: bool = False


@dataclass
class ActiveJob:
    request: JobRequest
    future: Future
    cancel_event: threading.Event = field(default_factory=threading.Event)


class JobRunner:
    """Run pipeline jobs on a bounded thread pool.

    Args:
        pipeline_factory: Zero-argument callable returning a new
            ClipPipeline for each job.
        result_store: Where finished results are persisted.
        max_workers: Pool size, i.e. how many videos process at once.
    """

    def __init__(
        self,
        pipeline_factory: Callable[[], ClipPipeline],
        result_store: ResultStore,
        max_workers: int = MAX_CONCURRENT_JOBS,
    ) -> None:
        self._pipeline_factory = pipeline_factory
        self.result_store = result_store
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="clip-job"
        )
        self._jobs: Dict[str, ActiveJob] = {}
        self._lock = threading.Lock()

    def submit(self, request: JobRequest) -> Future:
        """Queue a job and return its future immediately.

        Raises:
            ValueError: If a job for the same video is still running.
        """
        with self._lock:
            current = self._jobs.get(request.video_id)
            if current is not None and not current.future.done():
                raise ValueError(
                    "A job for video {} is already running".format(request.video_id)
                )

            cancel_event = threading.Event()
            future = self._executor.submit(self._run, request, cancel_event)
            self._jobs[request.video_id] = ActiveJob(
                request=request, future=future, cancel_event=cancel_event
            )

        logger.info("Submitted job for video %s", request.video_id)
        return future

    def is_active(self, video_id: str) -> bool:
        with self._lock:
            job = self._jobs.get(video_id)
            return job is not None and not job.future.done()

    def cancel(self, video_id: str) -> bool:
        """Request cancellation of the active job for ``video_id``.

        Returns:
            True if an active job was signalled, False otherwise.
        """
        with self._lock:
            job = self._jobs.get(video_id)
            if job is None or job.future.done():
                return False
            job.cancel_event.set()

        logger.info("Cancellation requested for video %s", video_id)
        return True

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            for job in self._jobs.values():
                job.cancel_event.set()
        self._executor.shutdown(wait=wait)

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _run(self, request: JobRequest, cancel_event: threading.Event) -> PipelineResult:
        try:
            pipeline = self._pipeline_factory()
            result = asyncio.run(pipeline.process_video(
                request.source_url,
                segment_duration=request.segment_duration,
                include_translation=request.include_translation,
                optimize=request.optimize,
                merge=request.merge,
                cancel_event=cancel_event,
            ))
        except Exception as exc:
            logger.exception("Pipeline crashed for video %s", request.video_id)
            result = PipelineResult.failure(str(exc) or type(exc).__name__)

        if result.video_id is None:
            result.video_id = request.video_id

        try:
            self.result_store.save(result)
        except (OSError, ValueError, jsonschema.ValidationError):
            logger.exception("Could not persist result for video %s", request.video_id)

        return result
