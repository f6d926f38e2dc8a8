"""YouTube URL validation and video id extraction."""

import logging
import re
from typing import Any, List, Optional, Pattern

from models.video import VideoReference
from utils.errors import InvalidVideoReference

logger = logging.getLogger(__name__)

_HOST = r"^(?:https?://)?(?:(?:www|m)\.)?"
_ID = r"([A-Za-z0-9_-]{11})(?![A-Za-z0-9_-])"

# Tried in order, first match wins
VIDEO_ID_PATTERNS: List[Pattern[str]] = [
    re.compile(_HOST + r"youtube\.com/watch\?v=" + _ID),
    re.compile(_HOST + r"youtube\.com/watch\?(?:[^#\s]*&)?v=" + _ID),
    re.compile(_HOST + r"youtu\.be/" + _ID),
    re.compile(_HOST + r"youtube\.com/embed/" + _ID),
    re.compile(_HOST + r"youtube\.com/v/" + _ID),
    re.compile(_HOST + r"youtube\.com/shorts/" + _ID),
]


def extract_video_id(url: Any) -> Optional[str]:
    """Return the 11-character video id, or None if no pattern matches."""
    if not isinstance(url, str) or not url.strip():
        return None

    candidate = url.strip()
    for pattern in VIDEO_ID_PATTERNS:
        match = pattern.match(candidate)
        if match:
            return match.group(1)
    return None


def is_valid_youtube_url(url: Any) -> bool:
    return extract_video_id(url) is not None


def resolve_video_reference(url: Any) -> VideoReference:
    """Validate a YouTube URL and build a VideoReference.

    Args:
        url: Watch, short (youtu.be), embed, /v/ or shorts link

    Returns:
        VideoReference carrying the original URL and extracted id

    Raises:
        InvalidVideoReference: if the URL matches none of the accepted shapes
    """
    video_id = extract_video_id(url)
    if video_id is None:
        logger.warning(f"Rejected video URL: {url!r}")
        raise InvalidVideoReference("Invalid YouTube URL format")
    return VideoReference(raw_url=url.strip(), video_id=video_id)
