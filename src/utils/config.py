"""Configuration loading and validation for LearnScope."""

import os
import logging
from typing import Dict, List, Optional
from pathlib import Path
from dotenv import load_dotenv
from rich.logging import RichHandler

# Get the project root directory (parent of src)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Load environment variables from .env file in project root
load_dotenv(PROJECT_ROOT / '.env')


def _int_env(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _float_env(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def load_config() -> Dict:
    """Load configuration from environment variables."""
    languages = os.getenv('CAPTION_LANGUAGES', 'en,en-US')

    config = {
        # Required API key
        'gemini_api_key': os.getenv('GEMINI_API_KEY'),

        # Model configurations
        'gemini_model': os.getenv('GEMINI_MODEL', 'gemini-2.0-flash-001'),
        'whisper_model': os.getenv('WHISPER_MODEL', 'base'),

        # Sampling; kept low for consistent scoring
        'model_temperature': _float_env('MODEL_TEMPERATURE', 0.3),
        'model_top_p': _float_env('MODEL_TOP_P', 0.9),
        'model_max_output_tokens': _int_env('MODEL_MAX_OUTPUT_TOKENS', 2048),
        'analysis_timeout_seconds': _float_env('ANALYSIS_TIMEOUT_SECONDS', 480.0),

        # Transcript handling
        'caption_languages': [lang.strip() for lang in languages.split(',') if lang.strip()],
        'prompt_transcript_chars': _int_env('PROMPT_TRANSCRIPT_CHARS', 4000),
        'simplified_transcript_chars': _int_env('SIMPLIFIED_TRANSCRIPT_CHARS', 1500),

        # Scratch space for downloaded audio (system temp dir when unset)
        'temp_dir': os.getenv('TEMP_DIR') or None,

        'log_level': os.getenv('LOG_LEVEL', 'INFO'),
    }

    return config


def validate_config(config: Dict) -> List[str]:
    """Validate configuration and return list of errors."""
    errors = []

    if not config.get('gemini_api_key'):
        errors.append("GEMINI_API_KEY is required")

    if not config.get('gemini_model'):
        errors.append("GEMINI_MODEL must not be empty")

    if config.get('analysis_timeout_seconds', 0) <= 0:
        errors.append("ANALYSIS_TIMEOUT_SECONDS must be positive")

    temperature = config.get('model_temperature', 0.3)
    if not 0.0 <= temperature <= 2.0:
        errors.append("MODEL_TEMPERATURE must be between 0 and 2")

    full_budget = config.get('prompt_transcript_chars', 4000)
    simplified_budget = config.get('simplified_transcript_chars', 1500)
    if full_budget <= 0 or simplified_budget <= 0:
        errors.append("Transcript character budgets must be positive")
    elif simplified_budget >= full_budget:
        errors.append("SIMPLIFIED_TRANSCRIPT_CHARS must be smaller than PROMPT_TRANSCRIPT_CHARS")

    temp_dir = config.get('temp_dir')
    if temp_dir:
        try:
            Path(temp_dir).mkdir(parents=True, exist_ok=True)
        except Exception as e:
            errors.append(f"Cannot create temp directory: {e}")

    return errors


def setup_logging(log_level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """Set up logging configuration with Rich for terminal output."""
    # Clear any existing handlers
    logging.root.handlers.clear()

    rich_handler = RichHandler(
        show_time=True,
        show_level=True,
        show_path=False,
        rich_tracebacks=True,
        markup=False  # Disable markup to avoid conflicts
    )

    handlers: List[logging.Handler] = [rich_handler]

    # Plain text log file next to the sources unless overridden
    log_path = log_file or PROJECT_ROOT / 'src' / 'learnscope.log'
    try:
        file_handler = logging.FileHandler(log_path)
    except OSError:
        file_handler = None
    if file_handler:
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        handlers.append(file_handler)

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        handlers=handlers,
        format="%(message)s"
    )

    # Suppress noisy third-party loggers
    noisy_loggers = [
        'httpx',
        'httpcore',
        'google_genai',
        'google_genai.models',
        'yt_dlp',
        'urllib3.connectionpool',
        'requests.packages.urllib3.connectionpool'
    ]

    for logger_name in noisy_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)
