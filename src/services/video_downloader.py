"""Audio-only download service using yt-dlp."""

import logging
from pathlib import Path
import yt_dlp

from models.video import VideoReference
from utils.errors import VideoUnavailable
from utils.retry import retry_download, NetworkError, TemporaryServiceError

logger = logging.getLogger(__name__)

logging.getLogger("yt_dlp").setLevel(logging.CRITICAL)
logging.getLogger("yt_dlp.extractor").setLevel(logging.CRITICAL)
logging.getLogger("yt_dlp.downloader").setLevel(logging.CRITICAL)

_UNAVAILABLE_MARKERS = ("video unavailable", "private video", "has been removed", "video is not available")


class VideoDownloader:
    """Service for downloading the best audio-only stream of a video."""

    def __init__(self, ydl_factory=yt_dlp.YoutubeDL):
        """Initialize audio downloader.

        Args:
            ydl_factory: Callable building a YoutubeDL-compatible context manager
        """
        self.ydl_factory = ydl_factory

    @retry_download(max_retries=3, base_delay=2.0)
    def download_audio(self, video: VideoReference, output_dir: Path) -> str:
        """Download the audio track of a video into output_dir.

        The caller owns output_dir and is responsible for removing it.

        Args:
            video: Resolved video reference
            output_dir: Existing directory to write into

        Returns:
            Path to the downloaded audio file

        Raises:
            VideoUnavailable: the video is private or removed
        """
        ydl_opts = {
            "format": "bestaudio/best",
            "outtmpl": str(Path(output_dir) / f"{video.video_id}.%(ext)s"),
            "writesubtitles": False,
            "writeautomaticsub": False,
            "writethumbnail": False,
            "noplaylist": True,
            "retries": 3,
            "no_warnings": True,
            "quiet": True,
            "no_progress": True,
        }

        logger.info(f"Downloading audio for video: {video.video_id}")

        try:
            with self.ydl_factory(ydl_opts) as ydl:
                info = ydl.extract_info(video.watch_url, download=True)
                if not info:
                    raise TemporaryServiceError(f"No download info returned for {video.video_id}")
                audio_path = Path(ydl.prepare_filename(info))

            if not audio_path.exists():
                # Postprocessing may change the extension
                candidates = sorted(Path(output_dir).glob(f"{video.video_id}.*"))
                if not candidates:
                    raise FileNotFoundError(f"Downloaded audio not found for {video.video_id}")
                audio_path = candidates[0]

            logger.info(f"Downloaded audio: {audio_path.name}")
            return str(audio_path)

        except yt_dlp.DownloadError as e:
            logger.error(f"yt-dlp download error for {video.video_id}: {e}")
            error_msg = str(e).lower()
            if any(marker in error_msg for marker in _UNAVAILABLE_MARKERS):
                raise VideoUnavailable(f"Video is unavailable or private: {video.video_id}") from e
            if "network" in error_msg or "connection" in error_msg or "timed out" in error_msg:
                raise NetworkError(f"Network error downloading {video.video_id}: {e}") from e
            raise
