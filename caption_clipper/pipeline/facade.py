"""End-to-end pipeline: YouTube URL in, practice segments with clips out.

WHY: Callers (HTTP API, CLI, background jobs) want one call that turns a
video URL into translated, extracted practice segments, and one
success/error result they can persist or print. The individual stages
have very different failure policies, and this module is where those
policies meet.

HOW: ClipPipeline.process_video() runs the stages in order:
  1. resolve the video ID from the URL
  2. fetch metadata and raw captions from the provider
  3. parse captions and build segments (overlap 1s by default)
  4. translate each segment, substituting a marker on failure
  5. optionally optimize/merge, then drop segments that fail validation
  6. extract clips through the ExtractionOrchestrator
  7. attach artifact URLs and return a PipelineResult

RULES:
- Source resolution, metadata, caption and extraction failures return
  an error result; nothing in that list escapes as an exception
- A failed translation never aborts the run
- ConfigurationError from invalid options propagates to the caller
- Artifact URLs follow {base_url}/processed/{audio|video}/{stem}{ext}
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from caption_clipper.config import (
    API_BASE_URL,
    AUDIO_EXTENSION,
    DEFAULT_SOURCE_LANGUAGE,
    DEFAULT_TARGET_LANGUAGE,
    TRANSLATION_FAILED_MARKER,
    VIDEO_EXTENSION,
)
from caption_clipper.core.models import Segment, SegmentationOptions
from caption_clipper.core.parser import parse_captions
from caption_clipper.core.quality import merge_adjacent, optimize_segments, validate_segment
from caption_clipper.core.segmenter import build_segments
from caption_clipper.errors import (
    ExtractionError,
    MetadataFetchError,
    SourceResolutionError,
    TranslationError,
)
from caption_clipper.pipeline.extractor import artifact_stem
from caption_clipper.pipeline.orchestrator import ExtractionOrchestrator
from caption_clipper.providers.translation import TranslationClient
from caption_clipper.providers.youtube import YouTubeProvider, resolve_video_id

logger = logging.getLogger(__name__)

DEFAULT_SEGMENT_DURATION = 8.0
DEFAULT_OVERLAP = 1.0


@dataclass
class PipelineResult:
    """Outcome of one process_video() call.

    RULES:
    - success=True carries video fields and segments, error is None
    - success=False carries error and whatever video_id was resolved
    """

    success: bool
    video_id: Optional[str] = None
    title: str = ""
    duration: float = 0.0
    segments: List[Segment] = field(default_factory=list)
    captions_concat: str = ""
    thumbnail: str = ""
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "video_id": self.video_id,
            "title": self.title,
            "duration": self.duration,
            "segments": [segment.to_dict() for segment in self.segments],
            "captions_concat": self.captions_concat,
            "thumbnail": self.thumbnail,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PipelineResult:
        return cls(
            success=bool(data["success"]),
            video_id=data.get("video_id"),
            title=data.get("title", ""),
            duration=float(data.get("duration", 0.0)),
            segments=[Segment.from_dict(item) for item in data.get("segments", [])],
            captions_concat=data.get("captions_concat", ""),
            thumbnail=data.get("thumbnail", ""),
            error=data.get("error"),
        )

    @classmethod
    def failure(cls, error: str, video_id: Optional[str] = None) -> PipelineResult:
        return cls(success=False, video_id=video_id, error=error)


def artifact_urls(base_url: str, video_id: str, segment: Segment) -> Dict[str, str]:
    stem = artifact_stem(video_id, segment.start_time, segment.end_time)
    root = base_url.rstrip("/") + "/processed"
    return {
        "audio_url": "{}/audio/{}{}".format(root, stem, AUDIO_EXTENSION),
        "video_url": "{}/video/{}{}".format(root, stem, VIDEO_EXTENSION),
    }


def refine_segments(
    segments: Sequence[Segment],
    optimize: bool = False,
    merge: bool = False,
) -> List[Segment]:
    """Apply the optional quality passes, then the acceptance gate."""
    refined = list(segments)
    if optimize:
        refined = optimize_segments(refined)
    if merge:
        refined = merge_adjacent(refined)
    return [segment for segment in refined if validate_segment(segment)]


class ClipPipeline:
    """Turn a YouTube URL into extracted practice segments.

    Args:
        provider: Metadata/caption client (entered per call).
        orchestrator: Extraction driver that owns progress reporting.
        translator: Optional translation client; None leaves translations
            empty.
        base_url: Public root used to build artifact URLs.
        source_lang: Caption language requested from the provider.
        target_lang: Translation target language.
    """

    def __init__(
        self,
        provider: YouTubeProvider,
        orchestrator: ExtractionOrchestrator,
        translator: Optional[TranslationClient] = None,
        base_url: str = API_BASE_URL,
        source_lang: str = DEFAULT_SOURCE_LANGUAGE,
        target_lang: str = DEFAULT_TARGET_LANGUAGE,
    ) -> None:
        self.provider = provider
        self.orchestrator = orchestrator
        self.translator = translator
        self.base_url = base_url
        self.source_lang = source_lang
        self.target_lang = target_lang

    async def process_video(
        self,
        source_url: str,
        segment_duration: float = DEFAULT_SEGMENT_DURATION,
        include_translation: bool = True,
        optimize: bool = False,
        merge: bool = False,
        options: Optional[SegmentationOptions] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> PipelineResult:
        """Run the whole pipeline for one video.

        Args:
            source_url: YouTube URL or bare video ID.
            segment_duration: Window length when ``options`` is not given.
            include_translation: Translate each segment's text.
            optimize: Run the quality optimizer over the segments.
            merge: Merge segments separated by small gaps.
            options: Full segmentation policy; overrides segment_duration.
            cancel_event: Checked by the orchestrator between segments.

        Raises:
            ConfigurationError: If the segmentation options are invalid.
        """
        if options is None:
            options = SegmentationOptions(
                segment_duration=segment_duration, overlap=DEFAULT_OVERLAP
            )
        options.validate()

        try:
            video_id = resolve_video_id(source_url)
        except SourceResolutionError as exc:
            logger.warning("Rejected source %r: %s", source_url, exc)
            return PipelineResult.failure(str(exc))

        try:
            async with self.provider as provider:
                metadata = await provider.get_metadata(video_id)
                raw_captions = await provider.get_raw_captions(video_id, self.source_lang)
        except MetadataFetchError as exc:
            logger.error("Provider failure for %s: %s", video_id, exc)
            return PipelineResult.failure(str(exc), video_id=video_id)

        entries = parse_captions(raw_captions)
        segments = build_segments(entries, options)
        logger.info(
            "%s: %d caption entries -> %d segments", video_id, len(entries), len(segments)
        )

        if include_translation:
            await self._translate_segments(segments)

        segments = refine_segments(segments, optimize=optimize, merge=merge)

        try:
            await self.orchestrator.process_segments(video_id, segments, cancel_event=cancel_event)
        except (ExtractionError, OSError) as exc:
            return PipelineResult.failure(str(exc), video_id=video_id)

        for segment in segments:
            urls = artifact_urls(self.base_url, video_id, segment)
            segment.audio_url = urls["audio_url"]
            segment.video_url = urls["video_url"]

        duration = metadata.duration
        if not duration and entries:
            duration = max(entry.end for entry in entries)

        return PipelineResult(
            success=True,
            video_id=video_id,
            title=metadata.title,
            duration=duration,
            segments=sorted(segments, key=lambda s: s.start_time),
            captions_concat=" ".join(entry.text for entry in entries),
            thumbnail=metadata.thumbnail,
        )

    async def _translate_segments(self, segments: List[Segment]) -> None:
        if self.translator is None:
            logger.info("No translator configured; leaving translations empty")
            return

        async with self.translator as translator:
            for segment in segments:
                try:
                    segment.translation = await translator.translate(
                        segment.text, self.source_lang, self.target_lang
                    )
                except TranslationError as exc:
                    logger.warning("Translation failed for segment %s: %s", segment.id, exc)
                    segment.translation = TRANSLATION_FAILED_MARKER
