"""In-memory progress store for extraction jobs with TTL cleanup.

WHY: Extraction runs in the background for minutes while clients poll for
progress. Every job needs a record that one worker writes and any number
of readers query, keyed so a client that only knows the video ID can find
the latest run for that video.

HOW: ProcessingProgress snapshots are frozen dataclasses. The store keeps
a dict of job ID to the latest snapshot; update() builds a new snapshot
with dataclasses.replace() and swaps it in under a lock. Readers only
ever see complete snapshots. cleanup_expired() drops records whose
start_time is older than the TTL.

RULES:
- All store access is protected by threading.Lock
- Records are replaced wholesale, never mutated in place
- register() creates the record in PENDING with progress 0
- get_latest() returns the most recently started job for a video ID
- Unknown IDs return None (no exceptions)
- Default TTL is 1 hour, measured from start_time
- The store is injected into its users; there is no module-level instance
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import replace
from typing import Any, Dict, List, Optional

from caption_clipper.config import PROGRESS_TTL_SECONDS
from caption_clipper.core.models import ProcessingProgress, ProgressStatus

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = PROGRESS_TTL_SECONDS


class ProgressStore:
    """Thread-safe store of the latest ProcessingProgress per job.

    WHY: The orchestrator runs in a worker thread while the HTTP layer
    reads from the event loop thread. A centralized store with locking
    gives both sides a consistent view.

    RULES:
    - Job IDs are "{video_id}_{epoch_ms}"; a collision within the same
      millisecond gets a numeric suffix
    - update() only applies fields that are passed explicitly
    - end_time is stamped automatically on the first terminal status
    """

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        self._records: Dict[str, ProcessingProgress] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds

    def register(self, video_id: str, total_segments: Optional[int] = None) -> ProcessingProgress:
        """Create a PENDING record for a new job and return it."""
        now = time.time()
        with self._lock:
            job_id = "{}_{}".format(video_id, int(now * 1000))
            suffix = 1
            while job_id in self._records:
                suffix += 1
                job_id = "{}_{}_{}".format(video_id, int(now * 1000), suffix)

            record = ProcessingProgress(
                job_id=job_id,
                video_id=video_id,
                status=ProgressStatus.PENDING,
                progress=0,
                total_segments=total_segments,
                start_time=now,
            )
            self._records[job_id] = record

        logger.info("Registered job %s (%s segments)", job_id, total_segments)
        return record

    def update(self, job_id: str, **changes: Any) -> Optional[ProcessingProgress]:
        """Replace a job's record with a copy carrying ``changes``.

        Returns:
            The new snapshot, or None if job_id is unknown.

        Raises:
            TypeError: If a change names a field ProcessingProgress lacks.
        """
        with self._lock:
            current = self._records.get(job_id)
            if current is None:
                return None

            status = changes.get("status")
            if (
                status is not None
                and ProgressStatus(status).is_terminal
                and not current.status.is_terminal
                and "end_time" not in changes
            ):
                changes["end_time"] = time.time()

            record = replace(current, **changes)
            self._records[job_id] = record
            return record

    def get(self, job_id: str) -> Optional[ProcessingProgress]:
        with self._lock:
            return self._records.get(job_id)

    def get_latest(self, video_id: str) -> Optional[ProcessingProgress]:
        """Return the most recently started job's snapshot for a video."""
        with self._lock:
            candidates = [r for r in self._records.values() if r.video_id == video_id]
        if not candidates:
            return None
        return max(candidates, key=lambda r: (r.start_time or 0.0, r.job_id))

    def list_jobs(self) -> List[ProcessingProgress]:
        """Return all snapshots, oldest first."""
        with self._lock:
            return sorted(self._records.values(), key=lambda r: r.start_time or 0.0)

    def delete(self, job_id: str) -> bool:
        with self._lock:
            return self._records.pop(job_id, None) is not None

    def cleanup_expired(self) -> int:
        """Remove records started more than ttl_seconds ago.

        RULES:
        - Age is measured from start_time, whatever the status
        - Returns the count of removed records
        """
        now = time.time()
        with self._lock:
            expired = [
                job_id for job_id, record in self._records.items()
                if record.start_time is not None and now - record.start_time > self._ttl_seconds
            ]
            for job_id in expired:
                del self._records[job_id]

        for job_id in expired:
            logger.info("Expired progress record %s", job_id)
        return len(expired)
