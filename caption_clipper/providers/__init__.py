"""External collaborators: video metadata/caption provider and translator."""

from caption_clipper.providers.translation import TranslationClient, create_translator
from caption_clipper.providers.youtube import VideoMetadata, YouTubeProvider, resolve_video_id

__all__ = [
    "TranslationClient",
    "VideoMetadata",
    "YouTubeProvider",
    "create_translator",
    "resolve_video_id",
]
