from __future__ import annotations

import json
import random
from datetime import datetime, timezone

import pytest

from models.analysis import (
    DEFAULT_PRACTICAL_APPLICATION,
    DEFAULT_REASONING,
    ContentQuality,
    DifficultyLevel,
    ParseMode,
    Recommendation,
    Relevance,
    SkipRecommendation,
)
from services.response_normalizer import (
    ResponseNormalizer,
    coerce_score,
    coerce_time,
    strip_trailing_commas,
)

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)

FULL_RESPONSE = {
    "matchScore": 85,
    "recommendation": "RECOMMENDED",
    "keyPoints": ["Variables", "Loops"],
    "insights": ["Good pacing for beginners"],
    "reasoning": "Covers the fundamentals directly.",
    "timestamps": [
        {
            "time": "01:30",
            "topic": "Variables",
            "description": "Assigning values",
            "relevance": "HIGH",
            "skipRecommendation": "MUST_WATCH",
            "keyTakeaways": "Names point at objects",
            "practicalApplication": "Rename variables in your own scripts",
        }
    ],
    "difficultyLevel": "BEGINNER",
    "timeEfficiencyTips": ["Skip the intro"],
    "prerequisiteCheck": "None",
    "estimatedLearningTime": "30 minutes",
    "learningPath": {
        "beforeWatching": "Install Python",
        "duringWatching": "Type along",
        "afterWatching": "Write a small script",
    },
    "contentQuality": {
        "teachingClarity": "Clear and slow",
        "practicalExamples": "Many short examples",
        "comprehensiveness": "Covers the basics only",
    },
}

TRUNCATED_AFTER_SECOND_TIMESTAMP = (
    '{"matchScore": 72, "recommendation": "RECOMMENDED", "keyPoints": ["Loops"], '
    '"reasoning": "Solid overview", "timestamps": ['
    '{"time": "00:10", "topic": "Intro", "description": "Setup", "relevance": "LOW", "skipRecommendation": "SKIP"}, '
    '{"time": "02:00", "topic": "Loops", "description": "for and while", "relevance": "HIGH", "skipRecommendation": "MUST_WATCH"}, '
    '{"time": "05:00", "topic": "Functi'
)


@pytest.fixture
def normalizer() -> ResponseNormalizer:
    return ResponseNormalizer()


def test_well_formed_response_round_trips(normalizer: ResponseNormalizer) -> None:
    result = normalizer.normalize_response(json.dumps(FULL_RESPONSE), now=NOW)

    assert result.parse_mode is ParseMode.STRUCTURED
    assert result.match_score == 85
    assert result.recommendation is Recommendation.RECOMMENDED
    assert result.key_points == ["Variables", "Loops"]
    assert result.difficulty_level is DifficultyLevel.BEGINNER
    assert result.timestamps[0].relevance is Relevance.HIGH
    assert result.timestamps[0].skip_recommendation is SkipRecommendation.MUST_WATCH

    payload = result.to_dict()
    assert payload["timestamps"] == FULL_RESPONSE["timestamps"]
    assert payload["learningPath"] == FULL_RESPONSE["learningPath"]
    assert payload["contentQuality"] == FULL_RESPONSE["contentQuality"]
    assert payload["generatedAt"] == NOW.isoformat()
    assert payload["parseMode"] == "structured"


def test_lowercase_recommendation_is_coerced(normalizer: ResponseNormalizer) -> None:
    result = normalizer.normalize_response('{"matchScore": 85, "recommendation": "recommended"}')
    assert result.recommendation is Recommendation.RECOMMENDED
    assert result.match_score == 85


def test_out_of_range_score_is_clamped(normalizer: ResponseNormalizer) -> None:
    assert normalizer.normalize_response('{"matchScore": 150}').match_score == 100
    assert normalizer.normalize_response('{"matchScore": -20}').match_score == 0


def test_truncated_timestamps_keep_only_complete_entries(normalizer: ResponseNormalizer) -> None:
    result = normalizer.normalize_response(TRUNCATED_AFTER_SECOND_TIMESTAMP)

    assert result.parse_mode is ParseMode.REPAIRED
    assert [ts.topic for ts in result.timestamps] == ["Intro", "Loops"]
    assert result.match_score == 72
    assert result.reasoning == "Solid overview"


def test_truncation_inside_string_list_drops_partial_item(normalizer: ResponseNormalizer) -> None:
    extraction = normalizer.extract('{"matchScore": 60, "keyPoints": ["Loops", "Recur')
    assert extraction is not None
    assert extraction.repaired
    assert extraction.data["keyPoints"] == ["Loops"]


def test_truncation_inside_value_string_keeps_prefix(normalizer: ResponseNormalizer) -> None:
    extraction = normalizer.extract('{"matchScore": 60, "reasoning": "Covers the basi')
    assert extraction is not None
    assert extraction.data == {"matchScore": 60, "reasoning": "Covers the basi"}


@pytest.mark.parametrize(
    "tail",
    ['{"matchScore": 60, "reasoning":', '{"matchScore": 60, "reas', '{"matchScore": 60, "done": tr', '{"matchScore": 60,'],
)
def test_dangling_keys_and_literals_are_trimmed(normalizer: ResponseNormalizer, tail: str) -> None:
    extraction = normalizer.extract(tail)
    assert extraction is not None
    assert extraction.data == {"matchScore": 60}


def test_think_blocks_and_code_fences_are_stripped(normalizer: ResponseNormalizer) -> None:
    raw = (
        "<think>The user wants {braces} in reasoning</think>\n"
        "Here is the analysis:\n```json\n{\"matchScore\": 40, \"recommendation\": \"PARTIALLY_RELEVANT\"}\n```"
    )
    result = normalizer.normalize_response(raw)
    assert result.parse_mode is ParseMode.STRUCTURED
    assert result.match_score == 40


def test_code_fence_inside_string_value_does_not_hide_object(normalizer: ResponseNormalizer) -> None:
    raw = '{"matchScore": 80, "recommendation": "RECOMMENDED", "reasoning": "Shows ``` {x} ``` examples"}'
    result = normalizer.normalize_response(raw)

    assert result.parse_mode is ParseMode.STRUCTURED
    assert result.match_score == 80
    assert result.reasoning == "Shows ``` {x} ``` examples"


def test_fenced_snippet_in_key_points_of_fenced_response(normalizer: ResponseNormalizer) -> None:
    body = json.dumps({"matchScore": 70, "keyPoints": ["Uses ```python\ndef f(): return {1: 2}\n``` blocks"]})
    result = normalizer.normalize_response("Result:\n```json\n" + body + "\n```")

    assert result.parse_mode is ParseMode.STRUCTURED
    assert result.match_score == 70


def test_stray_braces_before_fenced_object(normalizer: ResponseNormalizer) -> None:
    raw = 'Considering {the basics} first.\n```json\n{"matchScore": 65}\n```'
    result = normalizer.normalize_response(raw)

    assert result.parse_mode is ParseMode.STRUCTURED
    assert result.match_score == 65


def test_prose_around_object_is_ignored(normalizer: ResponseNormalizer) -> None:
    raw = 'Sure! {"matchScore": 90, "reasoning": "uses } inside a string"} Hope this helps.'
    result = normalizer.normalize_response(raw)
    assert result.match_score == 90
    assert result.reasoning == "uses } inside a string"


def test_trailing_commas_are_tolerated(normalizer: ResponseNormalizer) -> None:
    result = normalizer.normalize_response('{"matchScore": 55, "keyPoints": ["a", "b",],}')
    assert result.match_score == 55
    assert result.key_points == ["a", "b"]
    assert strip_trailing_commas('{"a": "x,]"}') == '{"a": "x,]"}'


def test_unknown_and_mistyped_fields_get_defaults(normalizer: ResponseNormalizer) -> None:
    data = {
        "matchScore": "eighty",
        "recommendation": "MAYBE",
        "keyPoints": "single point",
        "insights": [1, None, "  kept  "],
        "reasoning": "",
        "timestamps": [{"time": 95, "title": "Aliased", "learningValue": "high", "skipRecommendation": "must watch"}, "junk"],
        "difficultyLevel": 3,
        "learningPath": "not a dict",
    }
    result = normalizer.normalize(data, now=NOW)

    assert result.match_score == 0
    assert result.recommendation is Recommendation.PARTIALLY_RELEVANT
    assert result.key_points == ["single point"]
    assert result.insights == ["kept"]
    assert result.reasoning == DEFAULT_REASONING
    assert len(result.timestamps) == 1
    timestamp = result.timestamps[0]
    assert (timestamp.time, timestamp.topic) == ("01:35", "Aliased")
    assert timestamp.relevance is Relevance.HIGH
    assert timestamp.skip_recommendation is SkipRecommendation.MUST_WATCH
    assert result.difficulty_level is DifficultyLevel.INTERMEDIATE
    assert result.learning_path.before_watching == "No specific preparation needed"
    assert timestamp.practical_application == DEFAULT_PRACTICAL_APPLICATION
    assert result.content_quality == ContentQuality()


def test_lists_are_capped(normalizer: ResponseNormalizer) -> None:
    data = {
        "keyPoints": [f"point {i}" for i in range(20)],
        "insights": [f"insight {i}" for i in range(20)],
        "timestamps": [{"time": f"{i}:00", "topic": f"t{i}"} for i in range(20)],
        "timeEfficiencyTips": [f"tip {i}" for i in range(20)],
    }
    result = normalizer.normalize(data)
    assert len(result.key_points) == 6
    assert len(result.insights) == 6
    assert len(result.timestamps) == 10
    assert len(result.time_efficiency_tips) == 5


@pytest.mark.parametrize(
    "raw",
    ["", "   ", "no json here at all", "{{{{", "}}}}", "[1, 2, 3]", "{}", '{"unrelated": true}', None, 17, "```\n```"],
)
def test_unparseable_input_falls_back_to_heuristic(normalizer: ResponseNormalizer, raw) -> None:
    assert normalizer.extract(raw) is None

    result = normalizer.normalize_response(raw)
    assert result.parse_mode is ParseMode.HEURISTIC
    assert 0 <= result.match_score <= 100
    assert isinstance(result.recommendation, Recommendation)
    assert result.key_points
    assert result.insights
    assert "fallback" in result.reasoning
    assert result.timestamps == []


def test_heuristic_recovers_score_from_prose(normalizer: ResponseNormalizer) -> None:
    result = normalizer.normalize_response("I would rate this video 78/100 for the learner's goal.")
    assert result.parse_mode is ParseMode.HEURISTIC
    assert result.match_score == 78
    assert result.recommendation is Recommendation.RECOMMENDED
    assert "extracted from the response text" in result.reasoning
    assert any("78/100" in insight for insight in result.insights)


def test_heuristic_marks_content_quality_as_fallback(normalizer: ResponseNormalizer) -> None:
    quality = normalizer.normalize_response("Not JSON at all.").content_quality
    assert "fallback mode" in quality.teaching_clarity
    assert "fallback mode" in quality.practical_examples
    assert "fallback mode" in quality.comprehensiveness


def test_heuristic_defaults_to_neutral_score(normalizer: ResponseNormalizer) -> None:
    result = normalizer.normalize_response("This video is about cooking.")
    assert result.match_score == 50
    assert result.recommendation is Recommendation.PARTIALLY_RELEVANT
    assert "neutral default" in result.reasoning


@pytest.mark.parametrize(
    ("value", "expected"),
    [(42, 42), (42.6, 43), ("85%", 85), (True, 0), (None, 0), ([], 0), (float("nan"), 0), (float("inf"), 100), (1e9, 100)],
)
def test_coerce_score(value, expected: int) -> None:
    assert coerce_score(value) == expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [("1:05", "01:05"), ("12:30 - 15:00", "12:30"), ("1:02:03", "62:03"), (65, "01:05"), ("soon", "00:00"), (None, "00:00"), (-3, "00:00")],
)
def test_coerce_time(value, expected: str) -> None:
    assert coerce_time(value) == expected


@pytest.mark.parametrize(
    ("enum_cls", "raw", "expected"),
    [
        (Recommendation, "highly recommended", Recommendation.HIGHLY_RECOMMENDED),
        (Recommendation, "not-recommended", Recommendation.NOT_RECOMMENDED),
        (Recommendation, "", Recommendation.PARTIALLY_RELEVANT),
        (Recommendation, 5, Recommendation.PARTIALLY_RELEVANT),
        (DifficultyLevel, " advanced ", DifficultyLevel.ADVANCED),
        (DifficultyLevel, "expert", DifficultyLevel.INTERMEDIATE),
        (Relevance, "low", Relevance.LOW),
        (Relevance, None, Relevance.MEDIUM),
        (SkipRecommendation, "skip", SkipRecommendation.SKIP),
        (SkipRecommendation, "never", SkipRecommendation.OPTIONAL),
    ],
)
def test_enum_coercion_is_total(enum_cls, raw, expected) -> None:
    assert enum_cls.coerce(raw) is expected


_FUZZ_ALPHABET = ['{', '}', '[', ']', '"', ',', ':', '\\', '`', ' ', '\n', 'a', '7', '%',
                  '"matchScore"', '"timestamps"', '"recommendation"', 'true', 'null', '<think>', '```json']


def test_random_inputs_always_yield_a_valid_result(normalizer: ResponseNormalizer) -> None:
    rng = random.Random(20240611)
    for _ in range(500):
        raw = "".join(rng.choice(_FUZZ_ALPHABET) for _ in range(rng.randint(0, 60)))
        result = normalizer.normalize_response(raw, now=NOW)

        assert 0 <= result.match_score <= 100, raw
        assert isinstance(result.recommendation, Recommendation), raw
        assert isinstance(result.difficulty_level, DifficultyLevel), raw
        assert len(result.key_points) <= 6 and len(result.insights) <= 6, raw
        assert len(result.timestamps) <= 10, raw
        assert all(isinstance(ts.relevance, Relevance) for ts in result.timestamps), raw
        assert result.reasoning, raw
        payload = result.to_dict()
        assert json.loads(json.dumps(payload)) == payload
