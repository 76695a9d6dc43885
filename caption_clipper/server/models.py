"""Pydantic request/response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for request validation,
response serialization, and automatic OpenAPI documentation.

HOW: Each endpoint has its own request and/or response model. Field
descriptions appear in the /docs UI. Internal dataclasses are converted
into these models at the endpoint boundary.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Response models never expose local filesystem paths
- Python 3.9+ compatible (no PEP 604 unions, use Optional from typing)
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from caption_clipper.config import DEFAULT_SOURCE_LANGUAGE, DEFAULT_TARGET_LANGUAGE

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

MIN_SEGMENT_DURATION_S = 3.0
MAX_SEGMENT_DURATION_S = 30.0
MAX_TRANSLATE_CHARS = 5000


class ProcessVideoRequest(BaseModel):
    """Body of POST /videos/process.

    RULES:
    - segment_duration must lie in [3, 30]; checked by the endpoint so a
      violation is reported as 400 like other bad options
    """

    video_url: str = Field(
        min_length=1,
        description="YouTube URL (watch, youtu.be, embed, shorts) or bare video ID.",
    )
    segment_duration: float = Field(
        default=8.0,
        description="Nominal segment length in seconds, between 3 and 30.",
    )
    include_translation: bool = Field(
        default=True,
        description="Translate each segment into the target language.",
    )
    optimize: bool = Field(
        default=False,
        description="Run the quality optimizer (text cleanup, translation placeholder).",
    )
    merge: bool = Field(
        default=False,
        description="Merge segments separated by gaps of 2 seconds or less.",
    )

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "video_url": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
                "segment_duration": 8,
                "include_translation": True,
                "optimize": False,
            }
        ]
    }}


class TranslateRequest(BaseModel):
    """Body of POST /translate."""

    text: str = Field(
        min_length=1,
        max_length=MAX_TRANSLATE_CHARS,
        description="Text to translate (1 to 5000 characters).",
    )
    source_lang: str = Field(
        default=DEFAULT_SOURCE_LANGUAGE,
        description="ISO 639-1 code of the source text.",
    )
    target_lang: str = Field(
        default=DEFAULT_TARGET_LANGUAGE,
        description="ISO 639-1 code to translate into.",
    )


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class ProcessVideoResponse(BaseModel):
    """Acknowledgement returned when a processing job is accepted."""

    video_id: str = Field(description="Resolved YouTube video ID.")
    status: str = Field(description="Initial job status (always 'pending').")
    progress_url: str = Field(description="Path to poll for progress.")
    result_url: str = Field(description="Path to fetch the result once finished.")


class ProgressResponse(BaseModel):
    """Latest progress snapshot of a video's extraction job.

    RULES:
    - progress is an integer percent, non-decreasing within a job
    - error is only set when status is 'failed'
    """

    job_id: str = Field(description="Job identifier ('{video_id}_{epoch_ms}').")
    video_id: str = Field(description="YouTube video ID.")
    status: str = Field(description="pending, processing, completed or failed.")
    progress: int = Field(description="Percent of segments extracted (0-100).")
    current_segment: Optional[int] = Field(
        default=None, description="1-based index of the segment being extracted."
    )
    total_segments: Optional[int] = Field(
        default=None, description="Number of segments in the job."
    )
    error: Optional[str] = Field(default=None, description="Failure message, if any.")
    start_time: Optional[float] = Field(
        default=None, description="Job start (Unix epoch seconds)."
    )
    end_time: Optional[float] = Field(
        default=None, description="Job end (Unix epoch seconds), once terminal."
    )


class SegmentResponse(BaseModel):
    """One practice segment with its artifact URLs."""

    id: str = Field(description="1-based segment ordinal.")
    start_time: float = Field(description="Segment start in seconds.")
    end_time: float = Field(description="Segment end in seconds.")
    text: str = Field(description="Transcript text spoken in the segment.")
    translation: str = Field(description="Translation, or a marker/placeholder.")
    audio_url: Optional[str] = Field(default=None, description="URL of the mp3 clip.")
    video_url: Optional[str] = Field(default=None, description="URL of the mp4 clip.")


class PipelineResultResponse(BaseModel):
    """Persisted outcome of a processing job."""

    success: bool = Field(description="Whether the whole pipeline succeeded.")
    video_id: Optional[str] = Field(default=None, description="YouTube video ID.")
    title: str = Field(default="", description="Video title.")
    duration: float = Field(default=0.0, description="Video duration in seconds.")
    segments: List[SegmentResponse] = Field(
        default_factory=list, description="Extracted practice segments."
    )
    captions_concat: str = Field(default="", description="All caption text, space-joined.")
    thumbnail: str = Field(default="", description="Thumbnail URL.")
    error: Optional[str] = Field(default=None, description="Failure message, if any.")


class VideoMetadataResponse(BaseModel):
    """Descriptive fields for a video."""

    video_id: str = Field(description="YouTube video ID.")
    title: str = Field(description="Video title.")
    duration: float = Field(description="Duration in seconds (0 when unknown).")
    thumbnail: str = Field(description="Thumbnail URL.")
    description: str = Field(default="", description="Video description.")
    channel_title: str = Field(default="", description="Channel name.")
    published_at: str = Field(default="", description="Publication timestamp (ISO 8601).")


class CaptionEntryResponse(BaseModel):
    start: float = Field(description="Entry start in seconds.")
    end: float = Field(description="Entry end in seconds.")
    text: str = Field(description="Cleaned caption text.")


class CaptionsResponse(BaseModel):
    """Parsed caption track of a video."""

    video_id: str = Field(description="YouTube video ID.")
    language: str = Field(description="Caption language requested.")
    format: str = Field(description="Detected payload format.")
    entries: List[CaptionEntryResponse] = Field(description="Parsed caption entries.")


class CancelResponse(BaseModel):
    video_id: str = Field(description="YouTube video ID.")
    status: str = Field(description="Always 'cancelling'; the job stops between segments.")


class TranslateResponse(BaseModel):
    translation: str = Field(description="Translated text.")
    source_lang: str = Field(description="Source language code.")
    target_lang: str = Field(description="Target language code.")


class ErrorResponse(BaseModel):
    """Standard error response body.

    RULES:
    - detail is always a human-readable error message
    """

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
