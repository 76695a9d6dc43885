"""Exception taxonomy shared by the pipeline stages.

WHY: The pipeline treats failures very differently depending on where
they happen: a bad caption block is dropped, a failed translation gets a
marker, a failed extraction kills the job. Typed exceptions let each
layer catch exactly what it is allowed to absorb and let everything else
propagate.

RULES:
- Malformed caption blocks never raise; they are skipped by the parser
- SourceResolutionError, MetadataFetchError and CaptionFetchError are
  fatal to a pipeline request
- TranslationError is always caught per segment by the pipeline
- ExtractionError is raised only after retries are exhausted
"""

from __future__ import annotations

from typing import Optional


class ClipperError(Exception):
    """Base class for all caption_clipper errors."""


class ConfigurationError(ClipperError, ValueError):
    """Raised when segmentation or pipeline options are inconsistent."""


class SourceResolutionError(ClipperError):
    """Raised when a source URL does not contain a recognizable video ID."""


class MetadataFetchError(ClipperError):
    """Raised when the metadata provider cannot describe a video."""


class CaptionFetchError(MetadataFetchError):
    """Raised when no caption track can be downloaded for a video."""


class TranslationError(ClipperError):
    """Raised by the translation client on any failed call."""


class ExtractionError(ClipperError):
    """Raised when the media-extraction tool fails for a segment.

    WHY: The orchestrator needs to distinguish tool failures (retryable)
    from programming errors (not retryable).

    RULES:
    - segment_id is the Segment.id being extracted, or None for job-level
      failures such as a missing output directory
    """

    def __init__(self, message: str, segment_id: Optional[str] = None) -> None:
        self.segment_id = segment_id
        super().__init__(message)


class JobCancelledError(ExtractionError):
    """Raised between segments when a caller requested cancellation."""
