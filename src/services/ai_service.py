"""Relevance analysis engine using Google GenAI."""

import asyncio
import logging
from typing import Optional

from google.genai import Client
from google.genai import errors
from google.genai import types

from utils.errors import AnalysisTimeout, ModelUnavailable

logger = logging.getLogger(__name__)

_CONNECTION_MARKERS = ("connect", "network", "unreachable", "name resolution", "refused")


class AIService:
    """Sends prompts to Gemini under a wall-clock deadline.

    The response text is returned untouched; interpreting it is the
    normalizer's job. Calls are never retried here.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model_name: str = "gemini-2.0-flash-001",
        timeout_seconds: float = 480.0,
        temperature: float = 0.3,
        top_p: float = 0.9,
        max_output_tokens: int = 2048,
        client=None,
    ):
        """Initialize Google GenAI client.

        Args:
            api_key: Google GenAI API key
            model_name: Gemini model to use
            timeout_seconds: Deadline for a single generate call
            temperature: Sampling temperature (kept low for consistent scoring)
            top_p: Nucleus sampling threshold
            max_output_tokens: Default response length cap
            client: Pre-built client, mainly for tests
        """
        self.model_name = model_name
        self.timeout_seconds = timeout_seconds
        self.temperature = temperature
        self.top_p = top_p
        self.max_output_tokens = max_output_tokens
        self.client = client or Client(api_key=api_key)

        logger.info(f"Initialized AI service with model: {model_name}")

    async def generate(
        self,
        prompt: str,
        max_output_tokens: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ) -> str:
        """Send a prompt and return the raw response text.

        Args:
            prompt: Fully built prompt
            max_output_tokens: Override for the response length cap
            timeout_seconds: Override for the deadline

        Returns:
            Raw model output, "" if the model returned no text

        Raises:
            AnalysisTimeout: the deadline expired; the pending call is cancelled
            ModelUnavailable: the model service failed or could not be reached
        """
        deadline = timeout_seconds or self.timeout_seconds
        config = types.GenerateContentConfig(
            temperature=self.temperature,
            top_p=self.top_p,
            max_output_tokens=max_output_tokens or self.max_output_tokens,
        )

        logger.info(f"Sending {len(prompt)} character prompt to {self.model_name}")

        try:
            response = await asyncio.wait_for(
                self.client.aio.models.generate_content(
                    model=self.model_name,
                    contents=prompt,
                    config=config,
                ),
                timeout=deadline,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Model call exceeded {deadline:.0f}s deadline")
            raise AnalysisTimeout(
                f"Analysis timed out after {deadline:.0f} seconds waiting for the language model"
            ) from e
        except errors.APIError as e:
            logger.error(f"Model service returned an error: {e}")
            raise ModelUnavailable(
                f"AI model '{self.model_name}' is unavailable: {e}"
            ) from e
        except Exception as e:
            logger.error(f"Model call failed: {e}")
            if isinstance(e, ConnectionError) or any(m in str(e).lower() for m in _CONNECTION_MARKERS):
                raise ModelUnavailable(
                    f"Cannot connect to the language model service: {e}"
                ) from e
            raise ModelUnavailable(f"AI analysis failed: {e}") from e

        text = response.text if response is not None else None
        if not text:
            logger.warning("Model returned an empty response")
            return ""

        logger.debug(f"Model returned {len(text)} characters")
        return text

    async def check_connection(self) -> str:
        """Send a tiny prompt to confirm the model answers.

        Returns:
            The model's reply

        Raises:
            AnalysisTimeout, ModelUnavailable: as for ``generate``
        """
        return await self.generate(
            'Hello, respond with just "OK"',
            max_output_tokens=16,
            timeout_seconds=min(self.timeout_seconds, 30.0),
        )
