"""Relevance analysis data models."""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List

from models.video import VideoReference
from utils.errors import LearningIntentionTooLong, LearningIntentionTooShort

MIN_INTENTION_LENGTH = 10
MAX_INTENTION_LENGTH = 1000

MAX_KEY_POINTS = 6
MAX_INSIGHTS = 6
MAX_TIMESTAMPS = 10
MAX_EFFICIENCY_TIPS = 5

_SEPARATORS = re.compile(r"[\s\-]+")


class CoercibleEnum(Enum):
    """Enum whose ``coerce`` maps any raw value onto a member.

    Subclasses override ``default``; unknown, missing or mistyped values
    resolve to it, so coercion never fails.
    """

    @classmethod
    def default(cls) -> "CoercibleEnum":
        raise NotImplementedError

    @classmethod
    def coerce(cls, raw: Any) -> "CoercibleEnum":
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, str):
            key = _SEPARATORS.sub("_", raw.strip()).upper()
            if key in cls.__members__:
                return cls[key]
        return cls.default()


class Recommendation(CoercibleEnum):
    HIGHLY_RECOMMENDED = "HIGHLY_RECOMMENDED"
    RECOMMENDED = "RECOMMENDED"
    PARTIALLY_RELEVANT = "PARTIALLY_RELEVANT"
    NOT_RECOMMENDED = "NOT_RECOMMENDED"

    @classmethod
    def default(cls) -> "Recommendation":
        return cls.PARTIALLY_RELEVANT

    @classmethod
    def from_score(cls, score: int) -> "Recommendation":
        """Coarse tier used when only a score could be recovered."""
        if score >= 70:
            return cls.RECOMMENDED
        if score >= 40:
            return cls.PARTIALLY_RELEVANT
        return cls.NOT_RECOMMENDED


class DifficultyLevel(CoercibleEnum):
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"

    @classmethod
    def default(cls) -> "DifficultyLevel":
        return cls.INTERMEDIATE


class Relevance(CoercibleEnum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @classmethod
    def default(cls) -> "Relevance":
        return cls.MEDIUM


class SkipRecommendation(CoercibleEnum):
    MUST_WATCH = "MUST_WATCH"
    RECOMMENDED = "RECOMMENDED"
    OPTIONAL = "OPTIONAL"
    SKIP = "SKIP"

    @classmethod
    def default(cls) -> "SkipRecommendation":
        return cls.OPTIONAL


class ParseMode(Enum):
    """Which rung of the repair ladder produced a result."""
    STRUCTURED = "structured"
    REPAIRED = "repaired"
    SIMPLIFIED = "simplified"
    HEURISTIC = "heuristic"


DEFAULT_PRACTICAL_APPLICATION = "Practical application of concepts covered"


@dataclass
class Timestamp:
    """A section of the video and whether it is worth watching."""

    time: str  # "MM:SS"
    topic: str
    description: str
    relevance: Relevance
    skip_recommendation: SkipRecommendation
    key_takeaways: str = ""
    practical_application: str = DEFAULT_PRACTICAL_APPLICATION

    def to_dict(self) -> dict:
        return {
            "time": self.time,
            "topic": self.topic,
            "description": self.description,
            "relevance": self.relevance.value,
            "skipRecommendation": self.skip_recommendation.value,
            "keyTakeaways": self.key_takeaways,
            "practicalApplication": self.practical_application,
        }


@dataclass
class LearningPath:
    before_watching: str = "No specific preparation needed"
    during_watching: str = "Take notes and pause for reflection"
    after_watching: str = "Practice the concepts learned"

    def to_dict(self) -> dict:
        return {
            "beforeWatching": self.before_watching,
            "duringWatching": self.during_watching,
            "afterWatching": self.after_watching,
        }


@dataclass
class ContentQuality:
    """Free-text assessment of how well the video teaches."""

    teaching_clarity: str = "Teaching clarity assessment not available"
    practical_examples: str = "Practical examples assessment not available"
    comprehensiveness: str = "Comprehensiveness assessment not available"

    def to_dict(self) -> dict:
        return {
            "teachingClarity": self.teaching_clarity,
            "practicalExamples": self.practical_examples,
            "comprehensiveness": self.comprehensiveness,
        }


DEFAULT_REASONING = "Analysis completed"
DEFAULT_PREREQUISITES = "No specific prerequisites identified"
DEFAULT_LEARNING_TIME = "Time estimate not available"


@dataclass
class AnalysisResult:
    """Normalized outcome of a relevance analysis.

    Every field always holds a valid value; see
    ``services.response_normalizer.ResponseNormalizer.normalize``.
    """

    match_score: int
    recommendation: Recommendation
    key_points: List[str]
    insights: List[str]
    reasoning: str
    timestamps: List[Timestamp]
    difficulty_level: DifficultyLevel
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    time_efficiency_tips: List[str] = field(default_factory=list)
    prerequisite_check: str = DEFAULT_PREREQUISITES
    estimated_learning_time: str = DEFAULT_LEARNING_TIME
    learning_path: LearningPath = field(default_factory=LearningPath)
    content_quality: ContentQuality = field(default_factory=ContentQuality)
    parse_mode: ParseMode = ParseMode.STRUCTURED

    def to_dict(self) -> dict:
        return {
            "matchScore": self.match_score,
            "recommendation": self.recommendation.value,
            "keyPoints": list(self.key_points),
            "insights": list(self.insights),
            "reasoning": self.reasoning,
            "timestamps": [ts.to_dict() for ts in self.timestamps],
            "difficultyLevel": self.difficulty_level.value,
            "generatedAt": self.generated_at.isoformat(),
            "timeEfficiencyTips": list(self.time_efficiency_tips),
            "prerequisiteCheck": self.prerequisite_check,
            "estimatedLearningTime": self.estimated_learning_time,
            "learningPath": self.learning_path.to_dict(),
            "contentQuality": self.content_quality.to_dict(),
            "parseMode": self.parse_mode.value,
        }


@dataclass(frozen=True)
class AnalysisRequest:
    """A resolved video plus a length-checked learning intention."""

    video: VideoReference
    intention: str

    @classmethod
    def create(cls, video: VideoReference, intention: Any) -> "AnalysisRequest":
        """Validate the intention bounds and build a request.

        Raises:
            LearningIntentionTooShort: fewer than 10 non-blank characters
            LearningIntentionTooLong: more than 1000 characters
        """
        text = intention.strip() if isinstance(intention, str) else ""
        if len(text) < MIN_INTENTION_LENGTH:
            raise LearningIntentionTooShort(
                f"Learning intention must be at least {MIN_INTENTION_LENGTH} characters long"
            )
        if len(text) > MAX_INTENTION_LENGTH:
            raise LearningIntentionTooLong(
                f"Learning intention must be at most {MAX_INTENTION_LENGTH} characters long"
            )
        return cls(video=video, intention=text)
