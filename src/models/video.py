"""Video and transcript data models."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

PLACEHOLDER_TITLE = "Video Title Not Available"


@dataclass(frozen=True)
class VideoReference:
    """A validated YouTube URL and the 11-character id extracted from it."""

    raw_url: str
    video_id: str

    @property
    def watch_url(self) -> str:
        return f"https://www.youtube.com/watch?v={self.video_id}"


@dataclass
class VideoMetadata:
    """Best-effort descriptive metadata for a video."""

    video_id: str
    title: str = PLACEHOLDER_TITLE
    duration: Optional[str] = None  # "MM:SS" or "H:MM:SS"
    channel_name: Optional[str] = None
    url: Optional[str] = None

    @classmethod
    def placeholder(cls, video: VideoReference) -> "VideoMetadata":
        return cls(video_id=video.video_id, url=video.raw_url)

    def to_dict(self) -> dict:
        return {
            "id": self.video_id,
            "title": self.title,
            "duration": self.duration,
            "channelName": self.channel_name,
            "url": self.url,
        }


class TranscriptSource(Enum):
    """Strategy that produced a transcript."""
    CAPTION_FETCH = "caption_fetch"
    LOCAL_SPEECH_TO_TEXT = "local_speech_to_text"


@dataclass
class TranscriptSegment:
    """A timed piece of speech-to-text output."""

    start: float  # in seconds
    end: float
    text: str


@dataclass
class TranscriptResult:
    """Non-empty transcript text plus where it came from."""

    text: str
    source: TranscriptSource
    language: Optional[str] = None
    segment_count: int = 0

    def __post_init__(self) -> None:
        if not self.text or not self.text.strip():
            raise ValueError("TranscriptResult requires non-empty text")

    @property
    def char_length(self) -> int:
        return len(self.text)

    def to_dict(self) -> dict:
        return {
            "source": self.source.value,
            "length": self.char_length,
            "language": self.language,
        }
