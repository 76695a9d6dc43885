"""yt-dlp subprocess wrapper that cuts one segment's audio and video clips.

WHY: Downloading a whole video to cut a few seconds out of it is wasteful
and slow. yt-dlp can fetch just a time range of a stream and hand it to
ffmpeg for conversion, which is exactly the per-segment operation the
orchestrator needs.

HOW: extract() spawns the yt-dlp executable twice with
asyncio.create_subprocess_exec, once for an mp3 audio clip, once for an
mp4 video clip, each restricted to the segment's time range with
--download-sections. The output template uses %(ext)s so yt-dlp picks
intermediate extensions; the final file must exist at the expected path.

RULES:
- Any non-success is an ExtractionError: non-zero exit, missing
  executable, or missing output file
- The extractor does not retry; the orchestrator owns retry policy
- Artifact file names follow "{video_id}_{start}_{end}" with integral
  seconds printed without a decimal part ("12", not "12.0")
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from caption_clipper.config import (
    AUDIO_EXTENSION,
    VIDEO_EXTENSION,
    YOUTUBE_WEB_BASE_URL,
    YTDLP_PATH,
)
from caption_clipper.core.models import Segment
from caption_clipper.errors import ExtractionError

logger = logging.getLogger(__name__)

_STDERR_TAIL_CHARS = 500


def format_seconds(value: float) -> str:
    """Render seconds the way artifact names and URLs expect them."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def artifact_stem(video_id: str, start_time: float, end_time: float) -> str:
    """Return the shared file stem for a segment's artifacts."""
    return "{}_{}_{}".format(video_id, format_seconds(start_time), format_seconds(end_time))


class YtDlpExtractor:
    """Cut audio and video clips for one segment with the yt-dlp CLI.

    Args:
        binary: yt-dlp executable name or path (defaults to YTDLP_PATH).
        source_url_template: Format string with a ``{video_id}`` field that
            yields the page URL yt-dlp should open.
        extra_args: Additional arguments passed to every invocation
            (cookies, proxies, extractor args).
    """

    def __init__(
        self,
        binary: Optional[str] = None,
        source_url_template: Optional[str] = None,
        extra_args: Optional[Sequence[str]] = None,
    ) -> None:
        self._binary = binary or YTDLP_PATH
        self._source_url_template = source_url_template or (
            YOUTUBE_WEB_BASE_URL + "/watch?v={video_id}"
        )
        self._extra_args = list(extra_args or [])

    def build_audio_command(self, video_id: str, segment: Segment, audio_path: Path) -> List[str]:
        return [
            self._binary,
            *self._common_args(segment),
            "-f", "bestaudio/best",
            "--extract-audio",
            "--audio-format", AUDIO_EXTENSION.lstrip("."),
            "--audio-quality", "0",
            "-o", str(audio_path.with_suffix("")) + ".%(ext)s",
            self._source_url(video_id),
        ]

    def build_video_command(self, video_id: str, segment: Segment, video_path: Path) -> List[str]:
        return [
            self._binary,
            *self._common_args(segment),
            "-f", "bestvideo[height<=720]+bestaudio/best[height<=720]/best",
            "--remux-video", VIDEO_EXTENSION.lstrip("."),
            "-o", str(video_path.with_suffix("")) + ".%(ext)s",
            self._source_url(video_id),
        ]

    async def extract(
        self,
        video_id: str,
        segment: Segment,
        audio_path: Path,
        video_path: Path,
    ) -> None:
        """Produce ``audio_path`` and ``video_path`` for one segment.

        Raises:
            ExtractionError: If either clip could not be produced.
        """
        await self._run(self.build_audio_command(video_id, segment, audio_path), segment)
        self._require_output(audio_path, segment)
        logger.debug("Audio clip ready for segment %s: %s", segment.id, audio_path)

        await self._run(self.build_video_command(video_id, segment, video_path), segment)
        self._require_output(video_path, segment)
        logger.debug("Video clip ready for segment %s: %s", segment.id, video_path)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _common_args(self, segment: Segment) -> List[str]:
        return [
            "--quiet",
            "--no-warnings",
            "--no-playlist",
            "--force-overwrites",
            "--download-sections",
            "*{}-{}".format(format_seconds(segment.start_time), format_seconds(segment.end_time)),
            "--force-keyframes-at-cuts",
            *self._extra_args,
        ]

    def _source_url(self, video_id: str) -> str:
        return self._source_url_template.format(video_id=video_id)

    async def _run(self, command: List[str], segment: Segment) -> None:
        logger.debug("Running %s", " ".join(command))
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ExtractionError(
                "Could not start {}: {}".format(command[0], exc), segment_id=segment.id
            ) from exc

        _, stderr = await process.communicate()
        if process.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()[-_STDERR_TAIL_CHARS:]
            raise ExtractionError(
                "{} exited with code {}: {}".format(command[0], process.returncode, detail),
                segment_id=segment.id,
            )

    @staticmethod
    def _require_output(path: Path, segment: Segment) -> None:
        if not path.is_file():
            raise ExtractionError(
                "Expected output file was not produced: {}".format(path),
                segment_id=segment.id,
            )
