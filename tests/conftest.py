from __future__ import annotations

from typing import Any

import pytest

from fakes import VIDEO_URL
from models.video import VideoReference
from services.video_reference import resolve_video_reference


@pytest.fixture
def video() -> VideoReference:
    return resolve_video_reference(VIDEO_URL)


@pytest.fixture
def test_config(tmp_path) -> dict[str, Any]:
    return {
        "gemini_api_key": "test-key",
        "gemini_model": "gemini-test",
        "whisper_model": "tiny",
        "model_temperature": 0.3,
        "model_top_p": 0.9,
        "model_max_output_tokens": 2048,
        "analysis_timeout_seconds": 5.0,
        "caption_languages": ["en"],
        "prompt_transcript_chars": 4000,
        "simplified_transcript_chars": 1500,
        "temp_dir": str(tmp_path / "scratch"),
        "log_level": "INFO",
    }
