"""Async YouTube client for video metadata and raw caption tracks.

WHY: The pipeline needs a title, duration and thumbnail for the result
page, and the raw caption payload to segment. Both come from YouTube, but
from different surfaces depending on whether a Data API key is available.

HOW: YouTubeProvider wraps httpx.AsyncClient and is used as an async
context manager, like every other HTTP client in this package.
get_metadata() calls the Data API v3 ``videos`` resource when a key is
configured, and the public oEmbed endpoint otherwise (oEmbed has no
duration, so it is reported as 0). get_raw_captions() downloads the
timedtext track for the requested language, preferring a manually
created track and falling back to the auto-generated (ASR) one.

RULES:
- Always use the async context manager (async with YouTubeProvider() as p:)
- Any HTTP or transport failure becomes MetadataFetchError/CaptionFetchError
- An empty caption payload for both track kinds is a CaptionFetchError
- resolve_video_id() is pure and raises SourceResolutionError
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import httpx

from caption_clipper.config import (
    YOUTUBE_API_BASE_URL,
    YOUTUBE_WEB_BASE_URL,
    load_youtube_api_key,
)
from caption_clipper.errors import CaptionFetchError, MetadataFetchError, SourceResolutionError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Video ID resolution
# ---------------------------------------------------------------------------

_VIDEO_ID_PATTERNS = (
    re.compile(r"[?&]v=([A-Za-z0-9_-]{11})"),
    re.compile(r"youtu\.be/([A-Za-z0-9_-]{11})"),
    re.compile(r"/(?:embed|v|shorts|live)/([A-Za-z0-9_-]{11})"),
)
_BARE_ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")

_ISO_DURATION_RE = re.compile(
    r"^P(?:(\d+)D)?T?(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$"
)


def resolve_video_id(url: str) -> str:
    """Extract the 11-character video ID from a YouTube URL.

    Accepts watch URLs, youtu.be short links, /embed/, /v/, /shorts/ and
    /live/ paths, and a bare ID.

    Raises:
        SourceResolutionError: If no video ID can be found.
    """
    candidate = (url or "").strip()
    if _BARE_ID_RE.match(candidate):
        return candidate
    for pattern in _VIDEO_ID_PATTERNS:
        match = pattern.search(candidate)
        if match:
            return match.group(1)
    raise SourceResolutionError("Not a recognizable YouTube URL: {!r}".format(url))


def parse_iso_duration(value: str) -> int:
    """Convert an ISO 8601 duration such as ``PT1H2M3S`` to seconds.

    Unparseable values give 0, which callers treat as "unknown".
    """
    match = _ISO_DURATION_RE.match(value or "")
    if not match:
        return 0
    days, hours, minutes, seconds = (int(part or 0) for part in match.groups())
    return days * 86400 + hours * 3600 + minutes * 60 + seconds


# ---------------------------------------------------------------------------
# Metadata model
# ---------------------------------------------------------------------------


@dataclass
class VideoMetadata:
    """Descriptive fields for one video."""

    video_id: str
    title: str
    duration: float = 0.0
    thumbnail: str = ""
    description: str = ""
    channel_title: str = ""
    published_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def default_thumbnail(video_id: str) -> str:
    return "https://img.youtube.com/vi/{}/maxresdefault.jpg".format(video_id)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class YouTubeProvider:
    """Async client for YouTube metadata and caption tracks.

    Args:
        api_key: Data API v3 key; defaults to load_youtube_api_key().
            Without a key metadata comes from oEmbed.
        api_base_url: Data API root (defaults to YOUTUBE_API_BASE_URL).
        web_base_url: youtube.com root used for oEmbed and timedtext.
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_base_url: Optional[str] = None,
        web_base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key if api_key is not None else load_youtube_api_key()
        self._api_base_url = (api_base_url or YOUTUBE_API_BASE_URL).rstrip("/")
        self._web_base_url = (web_base_url or YOUTUBE_WEB_BASE_URL).rstrip("/")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> YouTubeProvider:
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(30.0, connect=10.0),
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(
                "YouTubeProvider must be used as an async context manager: "
                "async with YouTubeProvider() as provider: ..."
            )
        return self._client

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    async def get_metadata(self, video_id: str) -> VideoMetadata:
        """Return title, duration and thumbnail for a video.

        Raises:
            MetadataFetchError: On HTTP errors, transport errors, or an
                unknown video.
        """
        try:
            if self._api_key:
                return await self._metadata_from_data_api(video_id)
            return await self._metadata_from_oembed(video_id)
        except (httpx.HTTPError, ValueError) as exc:
            raise MetadataFetchError(
                "Metadata request failed for {}: {}".format(video_id, exc)
            ) from exc

    async def _metadata_from_data_api(self, video_id: str) -> VideoMetadata:
        client = self._ensure_client()
        resp = await client.get(
            self._api_base_url + "/videos",
            params={"part": "snippet,contentDetails", "id": video_id, "key": self._api_key},
        )
        if resp.status_code != 200:
            raise MetadataFetchError(
                "YouTube Data API error {}: {}".format(resp.status_code, resp.text[:200])
            )

        data = resp.json()
        if not isinstance(data, dict):
            raise MetadataFetchError(
                "Unexpected YouTube Data API response for {}: {}".format(video_id, type(data).__name__)
            )

        items = data.get("items") or []
        if not items:
            raise MetadataFetchError("Video not found: {}".format(video_id))

        item = items[0]
        snippet = item.get("snippet", {})
        thumbnails = snippet.get("thumbnails", {})
        thumbnail = ""
        for size in ("maxres", "high", "medium", "default"):
            if thumbnails.get(size, {}).get("url"):
                thumbnail = thumbnails[size]["url"]
                break

        return VideoMetadata(
            video_id=video_id,
            title=snippet.get("title") or "Unknown Title",
            duration=float(parse_iso_duration(item.get("contentDetails", {}).get("duration", ""))),
            thumbnail=thumbnail or default_thumbnail(video_id),
            description=snippet.get("description", ""),
            channel_title=snippet.get("channelTitle", ""),
            published_at=snippet.get("publishedAt", ""),
        )

    async def _metadata_from_oembed(self, video_id: str) -> VideoMetadata:
        client = self._ensure_client()
        resp = await client.get(
            self._web_base_url + "/oembed",
            params={
                "url": "{}/watch?v={}".format(self._web_base_url, video_id),
                "format": "json",
            },
        )
        if resp.status_code != 200:
            raise MetadataFetchError(
                "oEmbed lookup failed for {} ({})".format(video_id, resp.status_code)
            )

        data = resp.json()
        if not isinstance(data, dict):
            raise MetadataFetchError(
                "Unexpected oEmbed response for {}: {}".format(video_id, type(data).__name__)
            )
        return VideoMetadata(
            video_id=video_id,
            title=data.get("title") or "Unknown Title",
            thumbnail=data.get("thumbnail_url") or default_thumbnail(video_id),
            channel_title=data.get("author_name", ""),
        )

    # ------------------------------------------------------------------
    # Captions
    # ------------------------------------------------------------------

    async def get_raw_captions(self, video_id: str, language: str) -> str:
        """Download the raw caption payload for a video in ``language``.

        HOW: Tries the manually created track first, then the ASR track.

        Raises:
            CaptionFetchError: If neither track returns a non-empty body.
        """
        client = self._ensure_client()
        url = self._web_base_url + "/api/timedtext"

        for kind in (None, "asr"):
            params = {"v": video_id, "lang": language}
            if kind:
                params["kind"] = kind
            try:
                resp = await client.get(url, params=params)
            except httpx.HTTPError as exc:
                raise CaptionFetchError(
                    "Caption request failed for {}: {}".format(video_id, exc)
                ) from exc

            if resp.status_code == 200 and resp.text.strip():
                logger.info(
                    "Fetched %s captions for %s (%s track, %d chars)",
                    language, video_id, kind or "manual", len(resp.text),
                )
                return resp.text
            logger.debug(
                "No %s caption track for %s in %s (HTTP %d)",
                kind or "manual", video_id, language, resp.status_code,
            )

        raise CaptionFetchError(
            "No captions available for {} in language '{}'".format(video_id, language)
        )
