"""Caption retrieval using youtube-transcript-api."""

import logging
import re
from typing import Iterable, Optional, Tuple

from youtube_transcript_api import YouTubeTranscriptApi

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def join_snippets(snippets: Iterable) -> str:
    """Flatten caption snippets into a single line of text."""
    text = " ".join(getattr(snippet, "text", "") or "" for snippet in snippets)
    return _WHITESPACE.sub(" ", text).strip()


class CaptionService:
    """Thin wrapper around YouTubeTranscriptApi.

    Exceptions from youtube-transcript-api propagate unchanged so callers can
    tell "no captions in this language" from "video unavailable".
    """

    def __init__(self, api: Optional[YouTubeTranscriptApi] = None):
        self.api = api or YouTubeTranscriptApi()

    def fetch_captions(self, video_id: str, language: str) -> Tuple[str, str]:
        """Fetch captions in one specific language.

        Args:
            video_id: YouTube video id
            language: Language code such as "en" or "en-US"

        Returns:
            Tuple of (flattened text, language code actually returned)
        """
        fetched = self.api.fetch(video_id, languages=[language])
        text = join_snippets(fetched)
        logger.debug(f"Fetched {len(text)} caption characters in {language} for {video_id}")
        return text, getattr(fetched, "language_code", language)

    def fetch_any_captions(self, video_id: str) -> Tuple[str, str]:
        """Fetch the first available captions, preferring manual over generated.

        Returns:
            Tuple of (flattened text, language code)
        """
        transcript_list = self.api.list(video_id)
        transcripts = sorted(transcript_list, key=lambda t: bool(t.is_generated))
        if not transcripts:
            raise LookupError(f"No caption tracks listed for video {video_id}")

        transcript = transcripts[0]
        logger.debug(
            f"Auto-detected caption track {transcript.language_code} "
            f"(generated={transcript.is_generated}) for {video_id}"
        )
        return join_snippets(transcript.fetch()), transcript.language_code
