"""Transcript acquisition with ordered fallback strategies.

Strategies are tried in priority order. A strategy either returns a
non-empty TranscriptResult, raises StrategyFailed to hand over to the next
one, or raises a terminal TranscriptUnavailable (e.g. VideoUnavailable)
which stops the whole acquisition.
"""

import logging
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence

from youtube_transcript_api import VideoUnavailable as CaptionVideoUnavailable
from youtube_transcript_api import VideoUnplayable

from models.video import TranscriptResult, TranscriptSource, VideoReference
from services.caption_service import CaptionService
from services.transcription import TranscriptionService, format_segments
from services.video_downloader import VideoDownloader
from utils.errors import NoCaptionsAndNoAudioPath, TranscriptEmpty, VideoUnavailable

logger = logging.getLogger(__name__)

AUTO_DETECT = "auto"


class StrategyFailed(Exception):
    """A strategy could not produce a transcript; the next one may."""

    def __init__(self, reason: str, empty: bool = False):
        super().__init__(reason)
        self.reason = reason
        self.empty = empty


class TranscriptStrategy:
    """Common interface for transcript strategies."""

    name = "strategy"

    def attempt(self, video: VideoReference) -> TranscriptResult:
        raise NotImplementedError


class CaptionStrategy(TranscriptStrategy):
    """Fetch existing captions, trying each language preference in turn."""

    name = "captions"

    def __init__(self, caption_service: CaptionService, languages: Sequence[str] = ("en", "en-US")):
        self.caption_service = caption_service
        self.languages = [lang for lang in languages if lang] + [AUTO_DETECT]

    def attempt(self, video: VideoReference) -> TranscriptResult:
        saw_empty = False

        for language in self.languages:
            try:
                if language == AUTO_DETECT:
                    text, used_language = self.caption_service.fetch_any_captions(video.video_id)
                else:
                    text, used_language = self.caption_service.fetch_captions(video.video_id, language)
            except (CaptionVideoUnavailable, VideoUnplayable) as e:
                raise VideoUnavailable(f"Video is unavailable or private: {video.video_id}") from e
            except Exception as e:
                logger.debug(f"No {language} captions for {video.video_id}: {e}")
                continue

            if text.strip():
                logger.info(f"Using {used_language} captions for {video.video_id} ({len(text)} characters)")
                return TranscriptResult(
                    text=text,
                    source=TranscriptSource.CAPTION_FETCH,
                    language=used_language,
                )

            logger.warning(f"Captions in {used_language} for {video.video_id} are empty")
            saw_empty = True

        raise StrategyFailed("No captions available for this video", empty=saw_empty)


class SpeechToTextStrategy(TranscriptStrategy):
    """Download audio, transcode it and run local speech-to-text.

    All intermediate files live in a temporary directory that is removed on
    every exit path.
    """

    name = "speech_to_text"

    def __init__(
        self,
        downloader: VideoDownloader,
        transcription_service: TranscriptionService,
        temp_dir: Optional[str] = None,
    ):
        self.downloader = downloader
        self.transcription_service = transcription_service
        self.temp_dir = temp_dir

    def attempt(self, video: VideoReference) -> TranscriptResult:
        if self.temp_dir:
            Path(self.temp_dir).mkdir(parents=True, exist_ok=True)

        with tempfile.TemporaryDirectory(prefix=f"learnscope_{video.video_id}_", dir=self.temp_dir) as work_dir:
            try:
                audio_path = self.downloader.download_audio(video, Path(work_dir))
                wav_path = self.transcription_service.transcode_to_wav(
                    audio_path, str(Path(work_dir) / f"{video.video_id}.wav")
                )
                segments = self.transcription_service.transcribe_segments(wav_path)
            except VideoUnavailable:
                raise
            except Exception as e:
                raise StrategyFailed(f"Audio transcription failed: {e}") from e

        text = format_segments(segments)
        if not text.strip():
            raise StrategyFailed("Speech-to-text produced no text", empty=True)

        logger.info(f"Transcribed {len(segments)} segments for {video.video_id} ({len(text)} characters)")
        return TranscriptResult(
            text=text,
            source=TranscriptSource.LOCAL_SPEECH_TO_TEXT,
            segment_count=len(segments),
        )


class TranscriptAcquisition:
    """Runs transcript strategies in order until one succeeds."""

    def __init__(self, strategies: List[TranscriptStrategy]):
        self.strategies = strategies

    def acquire(self, video: VideoReference) -> TranscriptResult:
        """Produce a non-empty transcript for a video.

        Raises:
            VideoUnavailable: the video is private or removed
            TranscriptEmpty: a strategy reached content but it was blank
            NoCaptionsAndNoAudioPath: every strategy failed
        """
        failures: List[StrategyFailed] = []

        for strategy in self.strategies:
            try:
                result = strategy.attempt(video)
            except StrategyFailed as e:
                logger.warning(f"Transcript strategy '{strategy.name}' failed for {video.video_id}: {e.reason}")
                failures.append(e)
                continue

            logger.info(
                f"Transcript acquired for {video.video_id} via {strategy.name}: "
                f"{result.char_length} characters"
            )
            return result

        if any(failure.empty for failure in failures):
            raise TranscriptEmpty("Transcript content is empty for this video")

        reasons = "; ".join(failure.reason for failure in failures) or "no strategies configured"
        raise NoCaptionsAndNoAudioPath(
            f"No transcript available for this video: {reasons}"
        )


def build_default_acquisition(config: dict) -> TranscriptAcquisition:
    """Captions first, then local speech-to-text."""
    languages = config.get("caption_languages") or ["en", "en-US"]
    return TranscriptAcquisition([
        CaptionStrategy(CaptionService(), languages),
        SpeechToTextStrategy(
            VideoDownloader(),
            TranscriptionService(config.get("whisper_model", "base")),
            temp_dir=config.get("temp_dir"),
        ),
    ])
