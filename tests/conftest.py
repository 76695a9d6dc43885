"""Shared fixtures and fakes for the caption_clipper test suite.

WHY: The pipeline talks to YouTube, a translation API and yt-dlp. Tests
must never touch any of them, so the collaborators are replaced by small
in-memory fakes that record what they were asked to do.

HOW: Fakes are plain classes with the same async surface as the real
collaborators. Fixtures hand out fresh instances (or the classes, when a
test needs to configure them) so no state leaks between tests.

RULES:
- No network, no subprocesses; everything async runs under asyncio.run
- The sample SRT has three 4-second cues covering 0-12s
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

from caption_clipper.core.models import CaptionEntry, Segment
from caption_clipper.errors import ExtractionError, MetadataFetchError, TranslationError
from caption_clipper.providers.youtube import VideoMetadata


SAMPLE_SRT = """1
00:00:00,000 --> 00:00:04,000
Ciao, come stai oggi?

2
00:00:04,000 --> 00:00:08,000
Sono molto felice di vederti.

3
00:00:08,000 --> 00:00:12,000
Parliamo di cibo italiano adesso.
"""

VIDEO_ID = "dQw4w9WgXcQ"
VIDEO_URL = "https://www.youtube.com/watch?v=" + VIDEO_ID


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeExtractor:
    """Records extract() calls; fails a segment a configured number of times.

    ``failures`` maps segment id to how many attempts fail before one
    succeeds; -1 means every attempt fails.
    """

    def __init__(self, failures: Optional[Dict[str, int]] = None, on_call=None) -> None:
        self.failures = dict(failures or {})
        self.on_call = on_call
        self.calls: List[Tuple[str, str, Path, Path]] = []

    async def extract(self, video_id: str, segment: Segment, audio_path: Path, video_path: Path) -> None:
        self.calls.append((video_id, segment.id, audio_path, video_path))
        if self.on_call is not None:
            self.on_call(segment)

        remaining = self.failures.get(segment.id, 0)
        if remaining == -1:
            raise ExtractionError("tool exited with code 1", segment_id=segment.id)
        if remaining > 0:
            self.failures[segment.id] = remaining - 1
            raise ExtractionError("transient failure", segment_id=segment.id)

    def attempts_for(self, segment_id: str) -> int:
        return sum(1 for call in self.calls if call[1] == segment_id)


class FakeProvider:
    """Async-context-manager stand-in for YouTubeProvider."""

    def __init__(
        self,
        captions: str = SAMPLE_SRT,
        metadata: Optional[VideoMetadata] = None,
        metadata_error: Optional[Exception] = None,
        captions_error: Optional[Exception] = None,
    ) -> None:
        self.captions = captions
        self.metadata = metadata
        self.metadata_error = metadata_error
        self.captions_error = captions_error
        self.entered = 0
        self.caption_requests: List[Tuple[str, str]] = []

    async def __aenter__(self) -> FakeProvider:
        self.entered += 1
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None

    async def get_metadata(self, video_id: str) -> VideoMetadata:
        if self.metadata_error is not None:
            raise self.metadata_error
        if self.metadata is not None:
            return self.metadata
        return VideoMetadata(
            video_id=video_id,
            title="Conversazione italiana",
            duration=120.0,
            thumbnail="https://img.example/thumb.jpg",
        )

    async def get_raw_captions(self, video_id: str, language: str) -> str:
        self.caption_requests.append((video_id, language))
        if self.captions_error is not None:
            raise self.captions_error
        return self.captions


class FakeTranslator:
    """Prefixes texts with "EN: "; fails for texts containing ``fail_on``."""

    def __init__(self, fail_on: Optional[str] = None) -> None:
        self.fail_on = fail_on
        self.entered = 0
        self.requests: List[Tuple[str, str, str]] = []

    async def __aenter__(self) -> FakeTranslator:
        self.entered += 1
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None

    async def translate(self, text: str, source_lang: str = "it", target_lang: str = "en") -> str:
        self.requests.append((text, source_lang, target_lang))
        if self.fail_on and self.fail_on in text:
            raise TranslationError("upstream 500")
        return "EN: " + text


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_srt() -> str:
    return SAMPLE_SRT


@pytest.fixture
def sample_entries() -> List[CaptionEntry]:
    """The two-entry Italian greeting used throughout the segmenter tests."""
    return [
        CaptionEntry(start=0.0, end=5.0, text="Ciao, come stai?"),
        CaptionEntry(start=5.0, end=10.0, text="Sono molto felice di vederti oggi."),
    ]


@pytest.fixture
def fake_extractor_cls():
    return FakeExtractor


@pytest.fixture
def fake_provider_cls():
    return FakeProvider


@pytest.fixture
def fake_translator_cls():
    return FakeTranslator


@pytest.fixture
def metadata_error() -> MetadataFetchError:
    return MetadataFetchError("oEmbed lookup failed for dQw4w9WgXcQ (404)")


def make_segment(
    seg_id: str,
    start: float,
    end: float,
    text: str = "uno due tre quattro cinque",
    translation: str = "one two three four five",
) -> Segment:
    return Segment(id=seg_id, start_time=start, end_time=end, text=text, translation=translation)


@pytest.fixture
def segment_factory():
    return make_segment
