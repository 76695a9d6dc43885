"""Dataclasses shared by every pipeline stage.

WHY: Captions arrive in several formats and leave as practice clips with
media artifacts and progress records. A small set of typed dataclasses
gives every stage the same vocabulary and keeps the parser, segmenter,
quality pass, and orchestrator decoupled from each other.

HOW: Five structures:
  CaptionEntry       : one timed line of transcript text (immutable)
  Segment            : one practice clip window with text and artifacts
  SegmentationOptions: the windowing policy, read-only during a build
  ProgressStatus     : the four job states
  ProcessingProgress : an immutable snapshot of one job's progress

RULES:
- All times are float seconds from the start of the media
- CaptionEntry and ProcessingProgress are frozen; updates create new objects
- Segment is mutable: the quality pass and the orchestrator fill it in
- Segment ids are 1-based ordinals rendered as strings
"""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from caption_clipper.errors import ConfigurationError


@dataclass(frozen=True)
class CaptionEntry:
    """A single timed caption line.

    RULES:
    - start >= 0 and end > start (the parser rejects anything else)
    - text is cleaned: no markup, no [annotations], single spaces
    """

    start: float
    end: float
    text: str


@dataclass
class Segment:
    """A practice clip: a time window plus the transcript spoken in it.

    WHY: Segments are what the learner sees. They start life in the
    segmenter with text only, pick up a translation in the pipeline, local
    artifact paths in the orchestrator, and public URLs in the facade.

    RULES:
    - id: 1-based ordinal in emission order ("1", "2", ...)
    - end_time - start_time >= the minimum duration used to build it
    - translation is "" until the pipeline fills it
    - audio_path/video_path are set only after a successful extraction
    - audio_url/video_url are generated by the facade and are not
      guaranteed to resolve until the job reaches "completed"
    """

    id: str
    start_time: float
    end_time: float
    text: str
    translation: str = ""
    audio_path: Optional[str] = None
    video_path: Optional[str] = None
    audio_url: Optional[str] = None
    video_url: Optional[str] = None

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Segment:
        return cls(
            id=str(data["id"]),
            start_time=float(data["start_time"]),
            end_time=float(data["end_time"]),
            text=data["text"],
            translation=data.get("translation", ""),
            audio_path=data.get("audio_path"),
            video_path=data.get("video_path"),
            audio_url=data.get("audio_url"),
            video_url=data.get("video_url"),
        )


@dataclass(frozen=True)
class SegmentationOptions:
    """Windowing policy for the segment builder.

    RULES:
    - segment_duration: nominal window width in seconds (default 8)
    - overlap: how much of the previous window the next one re-examines;
      must be smaller than segment_duration or windowing never advances
    - min_segment_duration: windows shorter than this are dropped
    - max_segment_duration: advisory only, never used to truncate
    - prefer_sentence_boundaries: trim over-long text to whole sentences
    - max_words_per_segment: word budget that triggers trimming
    """

    segment_duration: float = 8.0
    overlap: float = 1.0
    min_segment_duration: float = 3.0
    max_segment_duration: float = 15.0
    prefer_sentence_boundaries: bool = True
    max_words_per_segment: int = 20

    def validate(self) -> None:
        """Raise ConfigurationError if the options cannot drive a build.

        The segment builder does not call this itself; entry points do,
        before handing options over.
        """
        if self.segment_duration <= 0:
            raise ConfigurationError(
                "segment_duration must be positive, got {}".format(self.segment_duration)
            )
        if self.overlap < 0:
            raise ConfigurationError(
                "overlap must not be negative, got {}".format(self.overlap)
            )
        if self.overlap >= self.segment_duration:
            raise ConfigurationError(
                "overlap ({}) must be smaller than segment_duration ({})".format(
                    self.overlap, self.segment_duration
                )
            )
        if self.min_segment_duration <= 0:
            raise ConfigurationError(
                "min_segment_duration must be positive, got {}".format(
                    self.min_segment_duration
                )
            )
        if self.max_words_per_segment < 1:
            raise ConfigurationError(
                "max_words_per_segment must be at least 1, got {}".format(
                    self.max_words_per_segment
                )
            )


class ProgressStatus(str, enum.Enum):
    """Valid states for an extraction job.

    HOW: Inherits from str so values serialize cleanly to JSON.

    RULES:
    - pending: registered, nothing attempted yet
    - processing: at least one segment attempt has started
    - completed / failed: terminal, reached exactly once
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProgressStatus.COMPLETED, ProgressStatus.FAILED)


@dataclass(frozen=True)
class ProcessingProgress:
    """Immutable snapshot of one extraction job.

    WHY: Progress is written by one worker and polled by any number of
    readers. Frozen snapshots that are replaced wholesale mean a reader
    holds either the previous record or the new one, never a mix.

    RULES:
    - job_id: "{video_id}_{epoch_ms}", unique per store
    - progress: integer percent 0..100, non-decreasing within a job
    - current_segment: 1-based index of the segment being attempted
    - start_time / end_time: epoch seconds; end_time set on terminal states
    - error: message of the triggering failure when status is failed
    """

    job_id: str
    video_id: str
    status: ProgressStatus = ProgressStatus.PENDING
    progress: int = 0
    current_segment: Optional[int] = None
    total_segments: Optional[int] = None
    error: Optional[str] = None
    start_time: Optional[float] = None
    end_time: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data
