"""Per-video extraction orchestrator with bounded retries and progress.

WHY: Every segment needs its own audio and video clip, and the external
tool that cuts them fails transiently (throttling, flaky CDNs, partial
downloads). A missing clip cannot be papered over with placeholder media
without misleading the learner, so the orchestrator retries a bounded
number of times and otherwise fails the whole job loudly, while keeping a
pollable progress record up to date.

HOW: process_segments() registers a job in the ProgressStore, creates the
output directories, then walks the segments in ascending start time. Each
segment is attempted up to max_attempts times with linear backoff
(attempt * retry_base_delay seconds) between attempts. After a segment
succeeds its local artifact paths are recorded and progress is
republished. The first segment that exhausts its retries fails the job.

RULES:
- Status flow: pending -> processing -> completed | failed, terminal once
- current_segment is set to the 1-based index before each segment
- progress = round-half-up(100 * completed / total), non-decreasing
- Segments run strictly one after another; one tool call in flight per job
- Failing to create output directories fails the job without retrying
- A set cancel_event is honoured between segments, never mid-segment
- Any exception from the extractor counts as a failed attempt; the
  final one surfaces as ExtractionError
- Terminal failures are re-raised to the caller after being recorded
"""

from __future__ import annotations

import asyncio
import logging
import threading
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from caption_clipper.config import (
    AUDIO_EXTENSION,
    EXTRACTION_MAX_ATTEMPTS,
    EXTRACTION_RETRY_BASE_DELAY_S,
    PROCESSED_DIR,
    VIDEO_EXTENSION,
)
from caption_clipper.core.models import ProcessingProgress, ProgressStatus, Segment
from caption_clipper.errors import ExtractionError, JobCancelledError
from caption_clipper.pipeline.extractor import artifact_stem
from caption_clipper.pipeline.progress import ProgressStore

logger = logging.getLogger(__name__)


class MediaExtractor(Protocol):
    """Anything that can cut one segment's clips (see YtDlpExtractor)."""

    async def extract(
        self,
        video_id: str,
        segment: Segment,
        audio_path: Path,
        video_path: Path,
    ) -> None:
        ...


def percent_complete(completed: int, total: int) -> int:
    """Integer percent, rounding halves up."""
    if total <= 0:
        return 100
    return int(100 * completed / total + 0.5)


class ExtractionOrchestrator:
    """Drive a MediaExtractor over a segment list and publish progress.

    Args:
        extractor: The tool wrapper that cuts one segment.
        store: Where progress snapshots are published.
        output_dir: Root for the ``audio/`` and ``video/`` artifact dirs.
        max_attempts: Attempts per segment before the job fails.
        retry_base_delay: Seconds multiplied by the attempt number to get
            the pause after a failed attempt.
    """

    def __init__(
        self,
        extractor: MediaExtractor,
        store: ProgressStore,
        output_dir: Optional[Path] = None,
        max_attempts: int = EXTRACTION_MAX_ATTEMPTS,
        retry_base_delay: float = EXTRACTION_RETRY_BASE_DELAY_S,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.extractor = extractor
        self.store = store
        self.output_dir = Path(output_dir or PROCESSED_DIR)
        self.max_attempts = max_attempts
        self.retry_base_delay = retry_base_delay

    @property
    def audio_dir(self) -> Path:
        return self.output_dir / "audio"

    @property
    def video_dir(self) -> Path:
        return self.output_dir / "video"

    def audio_path_for(self, video_id: str, segment: Segment) -> Path:
        stem = artifact_stem(video_id, segment.start_time, segment.end_time)
        return self.audio_dir / (stem + AUDIO_EXTENSION)

    def video_path_for(self, video_id: str, segment: Segment) -> Path:
        stem = artifact_stem(video_id, segment.start_time, segment.end_time)
        return self.video_dir / (stem + VIDEO_EXTENSION)

    async def process_segments(
        self,
        video_id: str,
        segments: Sequence[Segment],
        cancel_event: Optional[threading.Event] = None,
    ) -> ProcessingProgress:
        """Extract every segment in order and return the final snapshot.

        Segments are mutated in place: audio_path and video_path are set
        once their clips exist.

        Raises:
            ExtractionError: The job failed (already recorded as failed).
            OSError: The output directories could not be created (also
                recorded as failed).
        """
        ordered: List[Segment] = sorted(segments, key=lambda s: s.start_time)
        total = len(ordered)
        record = self.store.register(video_id, total_segments=total)
        job_id = record.job_id

        try:
            self._ensure_directories()
        except OSError as exc:
            logger.error("Cannot create output directories for job %s: %s", job_id, exc)
            self.store.update(job_id, status=ProgressStatus.FAILED, error=str(exc))
            raise

        self.store.update(job_id, status=ProgressStatus.PROCESSING)
        logger.info("Job %s: extracting %d segments for %s", job_id, total, video_id)

        completed = 0
        try:
            for index, segment in enumerate(ordered, start=1):
                if cancel_event is not None and cancel_event.is_set():
                    raise JobCancelledError("Job cancelled")

                self.store.update(job_id, current_segment=index)
                await self._extract_with_retry(job_id, video_id, segment)

                completed += 1
                self.store.update(job_id, progress=percent_complete(completed, total))
        except ExtractionError as exc:
            logger.error("Job %s failed at segment %s: %s", job_id, exc.segment_id, exc)
            self.store.update(job_id, status=ProgressStatus.FAILED, error=str(exc))
            raise
        except BaseException as exc:
            # Also covers asyncio task cancellation
            logger.exception("Job %s aborted unexpectedly", job_id)
            self.store.update(job_id, status=ProgressStatus.FAILED, error=str(exc) or type(exc).__name__)
            raise

        final = self.store.update(job_id, status=ProgressStatus.COMPLETED, progress=100)
        logger.info("Job %s completed (%d segments)", job_id, total)
        return final

    async def _extract_with_retry(self, job_id: str, video_id: str, segment: Segment) -> None:
        audio_path = self.audio_path_for(video_id, segment)
        video_path = self.video_path_for(video_id, segment)

        for attempt in range(1, self.max_attempts + 1):
            try:
                await self.extractor.extract(video_id, segment, audio_path, video_path)
            except Exception as exc:
                if attempt >= self.max_attempts:
                    raise ExtractionError(
                        "Segment {} failed after {} attempts: {}".format(
                            segment.id, attempt, exc
                        ),
                        segment_id=segment.id,
                    ) from exc
                delay = attempt * self.retry_base_delay
                logger.warning(
                    "Job %s: segment %s attempt %d/%d failed (%s), retrying in %.1fs",
                    job_id, segment.id, attempt, self.max_attempts, exc, delay,
                )
                await asyncio.sleep(delay)
            else:
                segment.audio_path = str(audio_path)
                segment.video_path = str(video_path)
                return

    def _ensure_directories(self) -> None:
        self.audio_dir.mkdir(parents=True, exist_ok=True)
        self.video_dir.mkdir(parents=True, exist_ok=True)
