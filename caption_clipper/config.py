"""Configuration constants, language defaults, and .env loading.

WHY: Centralizes all configurable values so they are easy to find,
update, and override. Output directories, external tool paths, retry
policy, and API endpoints are plain data, not buried in logic.

HOW: python-dotenv loads the .env file on import. Constants are defined
as module-level values read from the environment with sensible defaults.
The load_*_api_key() helpers return None when a key is missing so callers
decide whether that is fatal.

RULES:
- Every default can be overridden via an environment variable
- API keys are loaded from the environment, never hardcoded
- Artifact extensions are part of the public URL scheme; change with care
"""

from __future__ import annotations

import os
from typing import Optional

from dotenv import load_dotenv

# Load .env from the project root (where the process is started)
load_dotenv()

# ---------------------------------------------------------------------------
# Languages
# ---------------------------------------------------------------------------

DEFAULT_SOURCE_LANGUAGE = os.getenv("DEFAULT_SOURCE_LANGUAGE", "it")
DEFAULT_TARGET_LANGUAGE = os.getenv("DEFAULT_TARGET_LANGUAGE", "en")

TRANSLATION_FAILED_MARKER = "[Translation failed]"
"""Substituted for a segment translation when the translator call fails."""

TRANSLATION_PLACEHOLDER = "[Translation needed]"
"""Substituted by the quality pass when a segment has no translation."""

# ---------------------------------------------------------------------------
# Output locations and artifact naming
# ---------------------------------------------------------------------------

PROCESSED_DIR = os.getenv("PROCESSED_DIR", "./processed")
RESULTS_DIR = os.getenv("RESULTS_DIR", "./results")
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000").rstrip("/")

AUDIO_EXTENSION = ".mp3"
VIDEO_EXTENSION = ".mp4"

# ---------------------------------------------------------------------------
# Extraction policy
# ---------------------------------------------------------------------------

YTDLP_PATH = os.getenv("YTDLP_PATH", "yt-dlp")
EXTRACTION_MAX_ATTEMPTS = int(os.getenv("EXTRACTION_MAX_ATTEMPTS", "3"))
EXTRACTION_RETRY_BASE_DELAY_S = float(os.getenv("EXTRACTION_RETRY_BASE_DELAY_S", "2.0"))

# ---------------------------------------------------------------------------
# Jobs and progress
# ---------------------------------------------------------------------------

PROGRESS_TTL_SECONDS = int(os.getenv("PROGRESS_TTL_SECONDS", "3600"))
MAX_CONCURRENT_JOBS = int(os.getenv("MAX_CONCURRENT_JOBS", "2"))

# ---------------------------------------------------------------------------
# External services
# ---------------------------------------------------------------------------

YOUTUBE_API_BASE_URL = os.getenv(
    "YOUTUBE_API_BASE_URL", "https://www.googleapis.com/youtube/v3"
)
YOUTUBE_WEB_BASE_URL = os.getenv("YOUTUBE_WEB_BASE_URL", "https://www.youtube.com")

OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")


def load_youtube_api_key() -> Optional[str]:
    """Return the YouTube Data API key, or None when not configured.

    RULES:
    - Whitespace-only values count as missing
    - Without a key the provider falls back to the public oEmbed endpoint
    """
    key = os.getenv("YOUTUBE_API_KEY", "").strip()
    return key or None


def load_openai_api_key() -> Optional[str]:
    """Return the translation API key, or None when not configured."""
    key = os.getenv("OPENAI_API_KEY", "").strip()
    return key or None
