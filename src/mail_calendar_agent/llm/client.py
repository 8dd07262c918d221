"""Anthropic Messages API access for email analysis."""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass

from mail_calendar_agent.exceptions import LLMError

logger = logging.getLogger(__name__)


DEFAULT_MODEL = os.environ.get("DEFAULT_LLM_MODEL", "claude-haiku-4-5-20251001")
ANALYSIS_MAX_TOKENS = 1024
ANALYSIS_TEMPERATURE = 0.2


@dataclass
class Completion:
    """Text of one model reply plus token usage."""

    text: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0


class LLMClient:
    """Single-turn calls to Claude.

    A call is attempted once by default: the analysis engine answers a
    failure with its keyword fallback rather than waiting. Rate limits and
    timeouts are retried with exponential backoff only when ``max_attempts``
    is raised.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        max_attempts: int = 1,
    ):
        key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        if not key:
            raise LLMError(
                "Anthropic API key is required. "
                "Pass it directly or set ANTHROPIC_API_KEY in your environment."
            )
        try:
            from anthropic import Anthropic
        except ImportError:
            raise ImportError(
                "anthropic is required for LLMClient. "
                "Install with: pip install anthropic"
            )
        self._client = Anthropic(api_key=key)
        self.model = model
        self.max_attempts = max(1, max_attempts)

    def complete(
        self,
        system_prompt: str,
        prompt: str,
        max_tokens: int = ANALYSIS_MAX_TOKENS,
        temperature: float = ANALYSIS_TEMPERATURE,
    ) -> Completion:
        """Send ``prompt`` as the only user turn and return the reply text.

        Raises:
            LLMError: The API rejected the call, or every attempt was rate
                limited or timed out.
        """
        from anthropic import APIError, APITimeoutError, RateLimitError

        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return self._create(system_prompt, prompt, max_tokens, temperature)
            except (RateLimitError, APITimeoutError) as e:
                last_error = e
                if attempt == self.max_attempts:
                    break
                delay = 2 ** attempt
                logger.warning(
                    f"{type(e).__name__} on attempt {attempt}/{self.max_attempts}, "
                    f"retrying in {delay}s"
                )
                time.sleep(delay)
            except APIError as e:
                raise LLMError(f"Claude API error: {e}") from e

        raise LLMError(
            f"Claude call failed after {self.max_attempts} attempt(s): {last_error}"
        ) from last_error

    def _create(
        self,
        system_prompt: str,
        prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> Completion:
        response = self._client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system_prompt,
            messages=[{"role": "user", "content": prompt}],
        )
        return Completion(
            text="".join(b.text for b in response.content if b.type == "text"),
            model=self.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )

    def test_connection(self) -> dict:
        """Send a trivial prompt to confirm the key and model work."""
        try:
            reply = self.complete(
                system_prompt="You are a health check.",
                prompt="Say hello and confirm you're working!",
                max_tokens=64,
            )
        except LLMError as e:
            logger.error(f"Claude connection test failed: {e}")
            return {"success": False, "error": str(e)}

        logger.info("Claude connection test successful")
        return {"success": True, "response": reply.text, "model": reply.model}
