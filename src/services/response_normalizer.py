"""Turning untrusted model output into a schema-valid AnalysisResult.

The model is asked for a single JSON object but may wrap it in reasoning
traces, prose or code fences, or stop mid-structure when it runs out of
tokens. Extraction works down a ladder:

1. strip ``<think>`` blocks
2. collect candidate spans (a wrapping fenced block, and the first ``{``)
3. decode each span, then repair truncation, then complete dangling structure
4. accept only JSON objects carrying a known analysis key

If nothing decodes the caller may retry with a simpler prompt, and finally
``heuristic`` recovers a score from free text. ``normalize`` then coerces
whatever was obtained into an AnalysisResult, field by field.
"""

import json
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from models.analysis import (
    DEFAULT_LEARNING_TIME,
    DEFAULT_PRACTICAL_APPLICATION,
    DEFAULT_PREREQUISITES,
    DEFAULT_REASONING,
    MAX_EFFICIENCY_TIPS,
    MAX_INSIGHTS,
    MAX_KEY_POINTS,
    MAX_TIMESTAMPS,
    AnalysisResult,
    ContentQuality,
    DifficultyLevel,
    LearningPath,
    ParseMode,
    Recommendation,
    Relevance,
    SkipRecommendation,
    Timestamp,
)

logger = logging.getLogger(__name__)

THINK_BLOCK = re.compile(r"<think(?:ing)?>.*?</think(?:ing)?>", re.DOTALL | re.IGNORECASE)
THINK_TAG = re.compile(r"</?think(?:ing)?>", re.IGNORECASE)
CODE_FENCE = re.compile(r"```[A-Za-z]*[ \t]*\n?(.*?)(?:```|\Z)", re.DOTALL)

SCORE_PATTERN = re.compile(r"(?<!\d)(\d{1,3})(?:\s*%|\s*/\s*100|\s*out of 100)", re.IGNORECASE)
NUMBER_PATTERN = re.compile(r"-?\d+(?:\.\d+)?")
TIME_PATTERN = re.compile(r"(\d{1,3}):(\d{1,2})(?::(\d{1,2}))?")

_PARTIAL_LITERAL = re.compile(r"([:\[,])\s*([A-Za-z]+)$")
_DANGLING_KEY = re.compile(r'"(?:[^"\\]|\\.)*"\s*:$')
_DANGLING_BARE_KEY = re.compile(r'(?<=[{,])\s*"(?:[^"\\]|\\.)*"$')

# Top-level keys that mark a decoded object as an analysis
ANALYSIS_KEYS = frozenset({
    "matchScore", "match_score", "score", "recommendation", "keyPoints", "key_points",
    "insights", "reasoning", "timestamps", "relevantTimestamps", "difficultyLevel",
})

_CLOSER_FOR = {"{": "}", "[": "]"}
_OPENER_FOR = {"}": "{", "]": "["}

DEFAULT_HEURISTIC_SCORE = 50
DEFAULT_TIME = "00:00"
DEFAULT_TOPIC = "Untitled section"

HEURISTIC_KEY_POINTS = [
    "AI analysis completed but the response could not be parsed as structured data",
    "Content relevance was estimated from the raw model output",
    "Manual review of the video is recommended for detailed insights",
]
HEURISTIC_INSIGHTS = [
    "The AI model answered in an unexpected format, so structured parsing failed",
    "Only a coarse relevance score could be recovered from the response",
    "Consider re-running the analysis or checking the AI model configuration",
]
HEURISTIC_CONTENT_QUALITY = {
    "teachingClarity": "Content quality assessment not available in fallback mode",
    "practicalExamples": "Practical examples assessment not available in fallback mode",
    "comprehensiveness": "Comprehensiveness assessment not available in fallback mode",
}
HEURISTIC_REASONING = (
    "Structured parsing of the AI response failed, so this result was produced by the "
    "fallback method. The match score was {score_origin} and the recommendation was "
    "derived from that score; key points and insights are placeholders."
)


# ---------------------------------------------------------------------------
# Structural scanning

@dataclass
class _Frame:
    opener: str
    # For "[" frames: index just past the last complete direct element
    last_entry_end: int


@dataclass
class _ScanState:
    stack: List[_Frame] = field(default_factory=list)
    in_string: bool = False
    string_start: int = -1
    string_role: str = ""  # "key", "value" or "element"


def _string_role(text: str, index: int, stack: List[_Frame]) -> str:
    previous = text[:index].rstrip()[-1:]
    if previous == ":":
        return "value"
    if stack and stack[-1].opener == "{":
        return "key"
    if stack and stack[-1].opener == "[":
        return "element"
    return "value"


def _scan(text: str) -> _ScanState:
    """Walk the text tracking open containers, ignoring delimiters inside strings."""
    state = _ScanState()
    stack = state.stack
    escaped = False

    for i, ch in enumerate(text):
        if state.in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                state.in_string = False
                if stack and stack[-1].opener == "[":
                    stack[-1].last_entry_end = i + 1
            continue

        if ch == '"':
            state.in_string = True
            state.string_start = i
            state.string_role = _string_role(text, i, stack)
        elif ch in "{[":
            stack.append(_Frame(opener=ch, last_entry_end=i + 1))
        elif ch in "}]":
            if stack and stack[-1].opener == _OPENER_FOR[ch]:
                stack.pop()
                if stack and stack[-1].opener == "[":
                    stack[-1].last_entry_end = i + 1
        elif ch == "," and stack and stack[-1].opener == "[":
            stack[-1].last_entry_end = i

    return state


def _closers(stack: List[_Frame]) -> str:
    return "".join(_CLOSER_FOR[frame.opener] for frame in reversed(stack))


def _matching_close(text: str, start: int) -> Optional[int]:
    """Index of the delimiter closing the container opened at ``start``."""
    depth = 0
    in_string = False
    escaped = False

    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
            if depth == 0:
                return i
    return None


def strip_trailing_commas(text: str) -> str:
    """Drop commas that directly precede a closing bracket or brace."""
    out = []
    in_string = False
    escaped = False
    length = len(text)

    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            out.append(ch)
            continue

        if ch == '"':
            in_string = True
        elif ch == ",":
            j = i + 1
            while j < length and text[j].isspace():
                j += 1
            if j < length and text[j] in "}]":
                continue
        out.append(ch)

    return "".join(out)


def _decode_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(strip_trailing_commas(text))
    except (ValueError, RecursionError):
        return None
    return value if isinstance(value, dict) else None


def _trim_dangling(text: str) -> str:
    """Remove a trailing partial literal, dangling key or comma."""
    while True:
        text = text.rstrip()

        literal = _PARTIAL_LITERAL.search(text)
        if literal and literal.group(2) not in ("true", "false", "null"):
            text = text[:literal.end(1)]
            continue

        if text.endswith(","):
            text = text[:-1]
            continue

        if text.endswith(":"):
            key = _DANGLING_KEY.search(text)
            text = text[:key.start()] if key else text[:-1]
            continue

        state = _scan(text)
        if state.stack and state.stack[-1].opener == "{":
            bare_key = _DANGLING_BARE_KEY.search(text)
            if bare_key:
                text = text[:bare_key.start()]
                continue

        return text


# ---------------------------------------------------------------------------
# Repair ladder

class RepairStrategy:
    """One rung of the repair ladder: return a decoded object or None."""

    name = "repair"
    repairs = True

    def attempt(self, span: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError


class DirectDecode(RepairStrategy):
    name = "direct"
    repairs = False

    def attempt(self, span: str) -> Optional[Dict[str, Any]]:
        return _decode_object(span)


class TruncationRepair(RepairStrategy):
    """Close a response that was cut off mid-structure.

    When the cut falls inside a record that is an element of a list, the
    list is rolled back to its last complete record before closing, so no
    half-built entry survives. Otherwise the missing closers are appended.
    """

    name = "truncation"

    def attempt(self, span: str) -> Optional[Dict[str, Any]]:
        state = _scan(span)
        if not state.stack:
            return None

        record_list = next(
            (
                k for k in range(len(state.stack) - 1)
                if state.stack[k].opener == "[" and state.stack[k + 1].opener == "{"
            ),
            None,
        )

        if record_list is not None:
            head = span[:state.stack[record_list].last_entry_end].rstrip().rstrip(",")
            candidate = head + "]" + _closers(state.stack[:record_list])
        else:
            candidate = span.rstrip() + _closers(state.stack)

        return _decode_object(candidate)


class ClosingCompletion(RepairStrategy):
    """Finish a dangling string, key or literal, then close all containers."""

    name = "completion"

    def attempt(self, span: str) -> Optional[Dict[str, Any]]:
        state = _scan(span)
        text = span
        if state.in_string:
            if state.string_role == "value":
                text = text + '"'
            else:
                text = text[:state.string_start]

        text = _trim_dangling(text)
        state = _scan(text)
        if state.in_string:
            return None
        return _decode_object(text + _closers(state.stack))


DEFAULT_REPAIR_LADDER = (DirectDecode, TruncationRepair, ClosingCompletion)


@dataclass
class Extraction:
    """A decoded JSON object and the ladder rung that produced it."""

    data: Dict[str, Any]
    strategy: str
    repaired: bool


# ---------------------------------------------------------------------------
# Field coercion

def coerce_score(value: Any) -> int:
    """Clamp a score to 0-100; anything non-numeric becomes 0."""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, str):
        match = NUMBER_PATTERN.search(value)
        if not match:
            return 0
        value = float(match.group(0))
    if not isinstance(value, (int, float)) or math.isnan(value):
        return 0
    if math.isinf(value):
        return 100 if value > 0 else 0
    return max(0, min(100, int(round(value))))


def coerce_text(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def coerce_string_list(value: Any, cap: int) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    items = [item.strip() for item in value if isinstance(item, str) and item.strip()]
    return items[:cap]


def coerce_time(value: Any) -> str:
    """Normalize a time reference to MM:SS (minutes may exceed 59)."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if math.isnan(value) or math.isinf(value) or value < 0:
            return DEFAULT_TIME
        minutes, seconds = divmod(int(value), 60)
        return f"{minutes:02d}:{seconds:02d}"

    if isinstance(value, str):
        match = TIME_PATTERN.search(value)
        if match:
            first, second, third = match.groups()
            if third is not None:
                minutes = int(first) * 60 + int(second)
                seconds = int(third)
            else:
                minutes, seconds = int(first), int(second)
            return f"{minutes:02d}:{min(seconds, 59):02d}"

    return DEFAULT_TIME


def _first_present(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def coerce_timestamp(entry: Dict[str, Any]) -> Timestamp:
    return Timestamp(
        time=coerce_time(_first_present(entry, "time", "timeRange", "timestamp", "start")),
        topic=coerce_text(_first_present(entry, "topic", "title"), DEFAULT_TOPIC),
        description=coerce_text(entry.get("description"), ""),
        relevance=Relevance.coerce(_first_present(entry, "relevance", "learningValue")),
        skip_recommendation=SkipRecommendation.coerce(
            _first_present(entry, "skipRecommendation", "skip_recommendation")
        ),
        key_takeaways=coerce_text(_first_present(entry, "keyTakeaways", "key_takeaways"), ""),
        practical_application=coerce_text(
            _first_present(entry, "practicalApplication", "practical_application"), DEFAULT_PRACTICAL_APPLICATION
        ),
    )


def coerce_learning_path(value: Any) -> LearningPath:
    defaults = LearningPath()
    if not isinstance(value, dict):
        return defaults
    return LearningPath(
        before_watching=coerce_text(value.get("beforeWatching"), defaults.before_watching),
        during_watching=coerce_text(value.get("duringWatching"), defaults.during_watching),
        after_watching=coerce_text(value.get("afterWatching"), defaults.after_watching),
    )


def coerce_content_quality(value: Any) -> ContentQuality:
    defaults = ContentQuality()
    if not isinstance(value, dict):
        return defaults
    return ContentQuality(
        teaching_clarity=coerce_text(value.get("teachingClarity"), defaults.teaching_clarity),
        practical_examples=coerce_text(value.get("practicalExamples"), defaults.practical_examples),
        comprehensiveness=coerce_text(value.get("comprehensiveness"), defaults.comprehensiveness),
    )


# ---------------------------------------------------------------------------

class ResponseNormalizer:
    """Extracts, repairs and normalizes model responses."""

    def __init__(self, repair_strategies: Optional[List[RepairStrategy]] = None):
        if repair_strategies is None:
            repair_strategies = [strategy() for strategy in DEFAULT_REPAIR_LADDER]
        self.repair_strategies = repair_strategies

    @staticmethod
    def strip_noise(raw: str) -> str:
        """Remove reasoning blocks and stray reasoning tags."""
        text = THINK_BLOCK.sub("", raw)
        return THINK_TAG.sub("", text).strip()

    @staticmethod
    def _span_from(text: str, start: int) -> str:
        end = _matching_close(text, start)
        if end is None:
            return text[start:].rstrip().rstrip("`").rstrip()
        return text[start:end + 1]

    @classmethod
    def candidate_spans(cls, text: str) -> List[str]:
        """Texts that may hold the JSON object, most likely first.

        Each span runs from a ``{`` to its matching ``}``, or to the end of
        the text if it never closes. A fenced block is preferred only when
        it opens before the first ``{``; a fence after that point usually
        sits inside a string value, so the bare span is tried first.
        """
        start = text.find("{")
        if start < 0:
            return []

        bare = cls._span_from(text, start)
        fenced = None
        fence = CODE_FENCE.search(text)
        if fence and "{" in fence.group(1):
            body = fence.group(1)
            fenced = cls._span_from(body, body.find("{"))

        if fenced is None or fenced == bare:
            return [bare]
        if fence.start() < start:
            return [fenced, bare]
        return [bare, fenced]

    def extract(self, raw: Any) -> Optional[Extraction]:
        """Run the repair ladder over a raw response.

        Returns:
            Extraction, or None if no rung produced a JSON object
        """
        if not isinstance(raw, str) or not raw.strip():
            return None

        spans = self.candidate_spans(self.strip_noise(raw))
        if not spans:
            logger.warning("No JSON object found in model response")
            return None

        # A clean decode of any span beats a repair of an earlier one
        for strategy in self.repair_strategies:
            for span in spans:
                data = strategy.attempt(span)
                if data is not None and ANALYSIS_KEYS.intersection(data):
                    if strategy.repairs:
                        logger.info(f"Model response recovered by '{strategy.name}' repair")
                    return Extraction(data=data, strategy=strategy.name, repaired=strategy.repairs)

        logger.warning(
            f"Could not decode model response ({', '.join(str(len(s)) for s in spans)} character spans)"
        )
        return None

    def heuristic(self, raw: Any) -> Dict[str, Any]:
        """Build a raw result from free text when structured parsing failed."""
        text = self.strip_noise(raw) if isinstance(raw, str) else ""
        match = SCORE_PATTERN.search(text)
        if match:
            score = max(0, min(100, int(match.group(1))))
            score_origin = "extracted from the response text"
        else:
            score = DEFAULT_HEURISTIC_SCORE
            score_origin = "not found in the response text, so a neutral default was used"

        insights = list(HEURISTIC_INSIGHTS)
        excerpt = " ".join(text.split())
        if excerpt:
            insights.append(excerpt[:200] + ("..." if len(excerpt) > 200 else ""))

        return {
            "matchScore": score,
            "recommendation": Recommendation.from_score(score).value,
            "keyPoints": list(HEURISTIC_KEY_POINTS),
            "insights": insights,
            "reasoning": HEURISTIC_REASONING.format(score_origin=score_origin),
            "timestamps": [],
            "difficultyLevel": DifficultyLevel.default().value,
            "contentQuality": dict(HEURISTIC_CONTENT_QUALITY),
        }

    def normalize(
        self,
        data: Any,
        parse_mode: ParseMode = ParseMode.STRUCTURED,
        now: Optional[datetime] = None,
    ) -> AnalysisResult:
        """Coerce a decoded object into an AnalysisResult.

        Total over its input: missing or invalid fields get their defaults,
        enums are coerced, lists are capped.
        """
        if not isinstance(data, dict):
            data = {}

        raw_timestamps = _first_present(data, "timestamps", "relevantTimestamps")
        if not isinstance(raw_timestamps, list):
            raw_timestamps = []
        timestamps = [coerce_timestamp(entry) for entry in raw_timestamps if isinstance(entry, dict)]

        return AnalysisResult(
            match_score=coerce_score(_first_present(data, "matchScore", "match_score", "score")),
            recommendation=Recommendation.coerce(data.get("recommendation")),
            key_points=coerce_string_list(_first_present(data, "keyPoints", "key_points"), MAX_KEY_POINTS),
            insights=coerce_string_list(data.get("insights"), MAX_INSIGHTS),
            reasoning=coerce_text(data.get("reasoning"), DEFAULT_REASONING),
            timestamps=timestamps[:MAX_TIMESTAMPS],
            difficulty_level=DifficultyLevel.coerce(_first_present(data, "difficultyLevel", "difficulty_level")),
            generated_at=now or datetime.now(timezone.utc),
            time_efficiency_tips=coerce_string_list(data.get("timeEfficiencyTips"), MAX_EFFICIENCY_TIPS),
            prerequisite_check=coerce_text(data.get("prerequisiteCheck"), DEFAULT_PREREQUISITES),
            estimated_learning_time=coerce_text(data.get("estimatedLearningTime"), DEFAULT_LEARNING_TIME),
            learning_path=coerce_learning_path(data.get("learningPath")),
            content_quality=coerce_content_quality(data.get("contentQuality")),
            parse_mode=parse_mode,
        )

    def normalize_response(self, raw: Any, now: Optional[datetime] = None) -> AnalysisResult:
        """Single-response path: repair ladder, else heuristic, then normalize."""
        extraction = self.extract(raw)
        if extraction is None:
            return self.normalize(self.heuristic(raw), ParseMode.HEURISTIC, now)
        mode = ParseMode.REPAIRED if extraction.repaired else ParseMode.STRUCTURED
        return self.normalize(extraction.data, mode, now)
