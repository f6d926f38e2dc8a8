"""Main LearnScope class orchestrating the relevance-analysis pipeline."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional

from models.analysis import AnalysisRequest, AnalysisResult, ParseMode
from models.video import TranscriptResult, VideoMetadata, VideoReference
from utils.config import load_config, validate_config
from utils.errors import AnalysisError, AnalysisTimeout, ModelUnavailable
from services.ai_service import AIService
from services.prompt_builder import PromptBuilder
from services.request_gate import InMemoryInFlightStore, RequestDeduplicator
from services.response_normalizer import ResponseNormalizer
from services.transcript_acquisition import TranscriptAcquisition, build_default_acquisition
from services.video_reference import resolve_video_reference
from services.youtube_service import YouTubeService

logger = logging.getLogger(__name__)

SIMPLIFIED_MAX_OUTPUT_TOKENS = 512


@dataclass
class AnalysisOutcome:
    """Everything a successful analysis hands back to the caller."""

    result: AnalysisResult
    video: VideoReference
    metadata: VideoMetadata
    transcript: TranscriptResult
    learning_intention: str
    processing_time_ms: int

    def to_dict(self) -> dict:
        payload = self.result.to_dict()
        payload.update({
            "videoMetadata": self.metadata.to_dict(),
            "learningIntention": self.learning_intention,
            "transcript": self.transcript.to_dict(),
            "processingTimeMs": self.processing_time_ms,
        })
        return payload


class RelevanceProcessor:
    """Central orchestrator for LearnScope.

    Collaborators are built from configuration unless injected.
    """

    def __init__(
        self,
        config: Optional[Dict] = None,
        *,
        youtube_service: Optional[YouTubeService] = None,
        acquisition: Optional[TranscriptAcquisition] = None,
        ai_service: Optional[AIService] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        normalizer: Optional[ResponseNormalizer] = None,
        deduplicator: Optional[RequestDeduplicator] = None,
    ):
        """Initialize the processor with configuration."""
        self.config = config or load_config()

        config_errors = validate_config(self.config)
        if config_errors:
            error_msg = "Configuration errors: " + "; ".join(config_errors)
            logger.error(error_msg)
            raise ValueError(error_msg)

        self.youtube_service = youtube_service or YouTubeService()
        self.acquisition = acquisition or build_default_acquisition(self.config)

        self.ai_service = ai_service or AIService(
            self.config.get("gemini_api_key"),
            self.config.get("gemini_model", "gemini-2.0-flash-001"),
            timeout_seconds=self.config.get("analysis_timeout_seconds", 480.0),
            temperature=self.config.get("model_temperature", 0.3),
            top_p=self.config.get("model_top_p", 0.9),
            max_output_tokens=self.config.get("model_max_output_tokens", 2048),
        )

        self.prompt_builder = prompt_builder or PromptBuilder(
            max_transcript_chars=self.config.get("prompt_transcript_chars", 4000),
            simplified_transcript_chars=self.config.get("simplified_transcript_chars", 1500),
        )
        self.normalizer = normalizer or ResponseNormalizer()
        self.deduplicator = deduplicator or RequestDeduplicator(InMemoryInFlightStore())

        logger.info("LearnScope initialized successfully")

    async def analyze(self, video_url: str, learning_intention: str) -> dict:
        """Analyze a video against a learning intention.

        Returns:
            The success payload, or ``{errorKind, message, processingTimeMs}``
        """
        start_time = time.monotonic()
        try:
            outcome = await self.run(video_url, learning_intention, start_time)
        except AnalysisError as e:
            logger.error(f"Analysis failed ({e.error_kind}): {e.message}")
            payload = e.to_dict()
            payload["processingTimeMs"] = self._elapsed_ms(start_time)
            return payload

        return outcome.to_dict()

    async def run(
        self,
        video_url: str,
        learning_intention: str,
        start_time: Optional[float] = None,
    ) -> AnalysisOutcome:
        """Validate, admit and execute one analysis.

        Raises:
            AnalysisError: any validation, admission, acquisition or engine failure
        """
        start_time = start_time or time.monotonic()

        video = resolve_video_reference(video_url)
        request = AnalysisRequest.create(video, learning_intention)

        with self.deduplicator.admit(video.raw_url, request.intention):
            return await self._execute_pipeline(request, start_time)

    async def _execute_pipeline(self, request: AnalysisRequest, start_time: float) -> AnalysisOutcome:
        """Execute the complete pipeline for an admitted request."""
        video = request.video
        logger.info(f"Starting analysis for video: {video.video_id}")
        logger.info(f"Learning intention: \"{request.intention}\"")

        loop = asyncio.get_running_loop()
        transcript, metadata = await asyncio.gather(
            loop.run_in_executor(None, self.acquisition.acquire, video),
            loop.run_in_executor(None, self.youtube_service.get_video_metadata, video),
        )
        logger.info(f"Transcript ready: {transcript.char_length} characters from {transcript.source.value}")
        logger.info(f"Metadata: {metadata.title}")

        result = await self.analyze_transcript(transcript.text, request.intention)

        processing_time_ms = self._elapsed_ms(start_time)
        logger.info(
            f"Analysis completed: {result.match_score}% match, {result.recommendation.value} "
            f"({result.parse_mode.value}) in {self._format_processing_time(processing_time_ms / 1000)}"
        )

        return AnalysisOutcome(
            result=result,
            video=video,
            metadata=metadata,
            transcript=transcript,
            learning_intention=request.intention,
            processing_time_ms=processing_time_ms,
        )

    async def analyze_transcript(self, transcript: str, intention: str) -> AnalysisResult:
        """Ask the model for an analysis and normalize whatever comes back.

        Falls back once to a simplified prompt when the first response cannot
        be decoded, then to heuristic extraction. Engine errors on the first
        call propagate.
        """
        prompt = self.prompt_builder.build_analysis_prompt(transcript, intention)
        raw = await self.ai_service.generate(prompt)

        extraction = self.normalizer.extract(raw)
        if extraction is not None:
            mode = ParseMode.REPAIRED if extraction.repaired else ParseMode.STRUCTURED
            return self.normalizer.normalize(extraction.data, mode)

        logger.warning("Model response could not be parsed, retrying with simplified prompt")
        simplified_prompt = self.prompt_builder.build_simplified_prompt(transcript, intention)
        try:
            simplified_raw = await self.ai_service.generate(
                simplified_prompt, max_output_tokens=SIMPLIFIED_MAX_OUTPUT_TOKENS
            )
        except (ModelUnavailable, AnalysisTimeout) as e:
            logger.warning(f"Simplified analysis failed: {e}")
            simplified_raw = ""

        extraction = self.normalizer.extract(simplified_raw)
        if extraction is not None:
            return self.normalizer.normalize(extraction.data, ParseMode.SIMPLIFIED)

        logger.warning("Falling back to heuristic extraction")
        source = raw if raw and raw.strip() else simplified_raw
        return self.normalizer.normalize(self.normalizer.heuristic(source), ParseMode.HEURISTIC)

    async def check_model(self) -> str:
        """Check that the language model endpoint answers."""
        return await self.ai_service.check_connection()

    @staticmethod
    def _elapsed_ms(start_time: float) -> int:
        return int((time.monotonic() - start_time) * 1000)

    @staticmethod
    def _format_processing_time(seconds: float) -> str:
        """Format processing time in human-readable format."""
        if seconds < 60:
            return f"{seconds:.1f} seconds"
        elif seconds < 3600:
            return f"{seconds/60:.1f} minutes"
        else:
            return f"{seconds/3600:.1f} hours"
