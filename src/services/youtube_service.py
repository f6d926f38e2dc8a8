"""YouTube metadata lookup using yt-dlp."""

import logging
import yt_dlp
from typing import Dict, Optional

from models.video import PLACEHOLDER_TITLE, VideoMetadata, VideoReference

logger = logging.getLogger(__name__)

# Configure yt-dlp logging to be silent
logging.getLogger("yt_dlp").setLevel(logging.CRITICAL)
logging.getLogger("yt_dlp.extractor").setLevel(logging.CRITICAL)


def format_duration(seconds: Optional[float]) -> Optional[str]:
    """Format a duration in seconds as MM:SS, or H:MM:SS past one hour."""
    if seconds is None:
        return None
    total = int(seconds)
    if total < 0:
        return None
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


class YouTubeService:
    """Service for resolving video metadata with yt-dlp.

    Metadata is enrichment only: every failure degrades to a placeholder
    record instead of propagating.
    """

    def __init__(self, ydl_factory=yt_dlp.YoutubeDL):
        """Initialize metadata service.

        Args:
            ydl_factory: Callable building a YoutubeDL-compatible context manager
        """
        self.ydl_factory = ydl_factory
        self.ydl_opts = {
            "quiet": True,
            "no_warnings": True,
            "skip_download": True,
        }

    def get_video_metadata(self, video: VideoReference) -> VideoMetadata:
        """Look up title, duration and channel for a video.

        Args:
            video: Resolved video reference

        Returns:
            VideoMetadata, with the placeholder title if lookup failed
        """
        try:
            with self.ydl_factory(self.ydl_opts) as ydl:
                info = ydl.extract_info(video.watch_url, download=False)

            if not info:
                logger.warning(f"No metadata returned for video: {video.video_id}")
                return VideoMetadata.placeholder(video)

            return self._parse_info(video, info)

        except Exception as e:
            logger.warning(f"Metadata extraction failed for {video.video_id}: {e}")
            return VideoMetadata.placeholder(video)

    def _parse_info(self, video: VideoReference, info: Dict) -> VideoMetadata:
        """Parse a yt-dlp info dictionary into a VideoMetadata object."""
        duration = info.get("duration")
        if not isinstance(duration, (int, float)):
            duration = None

        return VideoMetadata(
            video_id=video.video_id,
            title=info.get("title") or PLACEHOLDER_TITLE,
            duration=format_duration(duration),
            channel_name=info.get("channel") or info.get("uploader"),
            url=video.raw_url,
        )
