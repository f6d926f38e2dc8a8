"""Audio transcription service using OpenAI Whisper."""

import logging
import subprocess
import threading
from pathlib import Path
from typing import List

from models.video import TranscriptSegment

logger = logging.getLogger(__name__)

SAMPLE_RATE = 16000
CHANNELS = 1


def format_timestamp(seconds: float) -> str:
    """Format seconds as M:SS."""
    minutes = int(seconds // 60)
    remaining = int(seconds % 60)
    return f"{minutes}:{remaining:02d}"


def format_segments(segments: List[TranscriptSegment]) -> str:
    """Reassemble timed segments into flat text, one "[start - end] text" line each."""
    lines = []
    for segment in segments:
        text = segment.text.strip()
        if not text:
            continue
        lines.append(f"[{format_timestamp(segment.start)} - {format_timestamp(segment.end)}] {text}")
    return "\n".join(lines)


class TranscriptionService:
    """Service for transcoding audio and transcribing it with Whisper.

    The Whisper model is loaded on first use and shared across calls.
    """

    def __init__(self, model_name: str = "base", ffmpeg_binary: str = "ffmpeg"):
        self.model_name = model_name
        self.ffmpeg_binary = ffmpeg_binary
        self.model = None
        self._transcription_lock = threading.Lock()

    def _load_model(self) -> None:
        import whisper

        try:
            logger.info(f"Loading Whisper model: {self.model_name}")
            self.model = whisper.load_model(self.model_name)

            is_multilingual = (
                "multilingual" if self.model.is_multilingual else "English-only"
            )
            param_count = sum(p.numel() for p in self.model.parameters())
            logger.info(
                f"Loaded {is_multilingual} Whisper model with {param_count:,} parameters"
            )

        except Exception as e:
            logger.error(f"Failed to load Whisper model '{self.model_name}': {e}")
            raise

    def transcode_to_wav(self, input_path: str, output_path: str) -> str:
        """Convert any audio file to 16 kHz mono PCM WAV using ffmpeg.

        Args:
            input_path: Downloaded audio file
            output_path: Destination .wav path

        Returns:
            output_path
        """
        logger.info(f"Transcoding audio: {Path(input_path).name}")

        cmd = [
            self.ffmpeg_binary,
            "-i",
            str(input_path),
            "-vn",
            "-acodec",
            "pcm_s16le",
            "-ar",
            str(SAMPLE_RATE),
            "-ac",
            str(CHANNELS),
            "-y",
            str(output_path),
        ]

        try:
            subprocess.run(cmd, capture_output=True, text=True, check=True)
        except subprocess.CalledProcessError as e:
            logger.error(f"FFmpeg failed: {e.stderr}")
            raise RuntimeError(f"Audio transcoding failed: {e.stderr}") from e

        logger.debug(f"Audio transcoding completed: {output_path}")
        return str(output_path)

    def transcribe_segments(self, audio_path: str) -> List[TranscriptSegment]:
        """Run Whisper on a WAV file.

        Args:
            audio_path: Path to a 16 kHz mono WAV file

        Returns:
            Timed segments in playback order
        """
        with self._transcription_lock:
            if self.model is None:
                self._load_model()

            logger.info(f"Starting transcription of: {Path(audio_path).name}")
            try:
                result = self.model.transcribe(
                    str(audio_path),
                    language=None,
                    task="transcribe",
                    fp16=False,
                    verbose=False,
                )
            except Exception as e:
                logger.error(f"Whisper transcription failed: {e}")
                raise

        return [
            TranscriptSegment(
                start=float(segment.get("start", 0.0)),
                end=float(segment.get("end", 0.0)),
                text=str(segment.get("text", "")).strip(),
            )
            for segment in result.get("segments", [])
        ]
