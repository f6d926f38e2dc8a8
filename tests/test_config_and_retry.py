from __future__ import annotations

import logging
from pathlib import Path

import pytest

from utils.config import load_config, setup_logging, validate_config
from utils.retry import NetworkError, exponential_backoff, retry_with_backoff


def test_load_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "secret")
    monkeypatch.setenv("CAPTION_LANGUAGES", "en, de ,,fr")
    monkeypatch.setenv("ANALYSIS_TIMEOUT_SECONDS", "30")
    monkeypatch.setenv("PROMPT_TRANSCRIPT_CHARS", "6000")
    monkeypatch.delenv("TEMP_DIR", raising=False)

    config = load_config()

    assert config["gemini_api_key"] == "secret"
    assert config["caption_languages"] == ["en", "de", "fr"]
    assert config["analysis_timeout_seconds"] == 30.0
    assert config["prompt_transcript_chars"] == 6000
    assert config["temp_dir"] is None
    assert validate_config(config) == []


def test_validate_config_reports_problems(test_config: dict) -> None:
    config = dict(test_config)
    config.update({
        "gemini_api_key": None,
        "analysis_timeout_seconds": 0,
        "model_temperature": 3.0,
        "simplified_transcript_chars": 5000,
    })

    errors = validate_config(config)

    assert "GEMINI_API_KEY is required" in errors
    assert "ANALYSIS_TIMEOUT_SECONDS must be positive" in errors
    assert "MODEL_TEMPERATURE must be between 0 and 2" in errors
    assert any("SIMPLIFIED_TRANSCRIPT_CHARS" in error for error in errors)


def test_validate_config_creates_temp_dir(test_config: dict) -> None:
    assert validate_config(test_config) == []
    assert Path(test_config["temp_dir"]).is_dir()


def test_setup_logging_writes_log_file(tmp_path: Path) -> None:
    log_file = tmp_path / "learnscope.log"
    setup_logging("DEBUG", log_file=log_file)
    try:
        logging.getLogger("learnscope.test").info("hello log")
        for handler in logging.root.handlers:
            handler.flush()
        assert "hello log" in log_file.read_text()
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        for handler in list(logging.root.handlers):
            handler.close()
        logging.root.handlers.clear()


def test_exponential_backoff_is_capped() -> None:
    assert 1.0 <= exponential_backoff(0) <= 1.1
    assert 60.0 <= exponential_backoff(10) <= 66.0


def test_retry_with_backoff_retries_listed_exceptions() -> None:
    delays: list[float] = []
    attempts = {"count": 0}

    @retry_with_backoff(max_retries=2, base_delay=0.5, exceptions=(NetworkError,), sleep=delays.append)
    def flaky() -> str:
        attempts["count"] += 1
        if attempts["count"] < 3:
            raise NetworkError("reset")
        return "done"

    assert flaky() == "done"
    assert attempts["count"] == 3
    assert len(delays) == 2


def test_retry_with_backoff_passes_other_exceptions_through() -> None:
    attempts = {"count": 0}

    @retry_with_backoff(max_retries=5, exceptions=(NetworkError,), sleep=lambda _: None)
    def broken() -> None:
        attempts["count"] += 1
        raise ValueError("bad input")

    with pytest.raises(ValueError):
        broken()
    assert attempts["count"] == 1
