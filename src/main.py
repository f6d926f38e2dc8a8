"""Main application entry point for LearnScope."""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from rich.console import Console

from relevance_processor import RelevanceProcessor
from utils.config import setup_logging, load_config
from utils.errors import AnalysisError

logger = logging.getLogger(__name__)


class LearnScopeApp:
    """Command-line front end for LearnScope."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self.processor: Optional[RelevanceProcessor] = None

    def _build_processor(self) -> RelevanceProcessor:
        config = load_config()
        setup_logging(config.get('log_level', 'INFO'))
        logger.info("Starting LearnScope...")
        self.processor = RelevanceProcessor(config)
        return self.processor

    async def analyze(self, video_url: str, learning_intention: str) -> int:
        """Run one analysis and print the JSON payload."""
        processor = self._build_processor()
        payload = await processor.analyze(video_url, learning_intention)
        self.console.print_json(data=payload)
        return 1 if "errorKind" in payload else 0

    async def check_model(self) -> int:
        """Confirm the configured model answers a short prompt."""
        processor = self._build_processor()
        try:
            reply = await processor.check_model()
        except AnalysisError as e:
            self.console.print_json(data=e.to_dict())
            return 1

        self.console.print_json(data={
            "model": processor.ai_service.model_name,
            "status": "ok",
            "reply": reply.strip(),
        })
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="learnscope",
        description="Score how well a YouTube video matches what you want to learn.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", help="Analyze a video against a learning intention")
    analyze.add_argument("video_url", help="YouTube video URL")
    analyze.add_argument("learning_intention", help="What you want to learn (10-1000 characters)")

    subparsers.add_parser("check-model", help="Check that the language model is reachable")
    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    args = build_parser().parse_args(argv)
    app = LearnScopeApp()

    try:
        if args.command == "analyze":
            exit_code = asyncio.run(app.analyze(args.video_url, args.learning_intention))
        else:
            exit_code = asyncio.run(app.check_model())
    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
        sys.exit(130)
    except ValueError as e:
        # Raised by RelevanceProcessor for invalid configuration
        logger.error(f"Application error: {e}")
        sys.exit(2)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
