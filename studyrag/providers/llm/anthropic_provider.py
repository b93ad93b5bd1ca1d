"""Claude adapter over the Anthropic Messages API.

The system prompt travels as the top-level ``system`` argument.  Replies
arrive as content blocks; the text blocks are joined and anything else
(tool use, thinking) is ignored.
"""

from __future__ import annotations

import anthropic
import structlog

from studyrag.config.settings import Settings
from studyrag.interfaces.llm_provider import ILLMProvider
from studyrag.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)


class AnthropicLLMProvider(ILLMProvider):
    """Answers with the model named by ``ANTHROPIC_MODEL``."""

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.anthropic_api_key
        self._model = settings.anthropic_model
        self._client = anthropic.AsyncAnthropic(
            api_key=self._api_key or "unset",
            timeout=settings.llm_timeout,
        )

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
    ) -> str:
        try:
            response = await self._client.messages.create(
                model=self._model,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except anthropic.APIError as exc:
            raise LLMError(message=f"Anthropic API error: {exc}", provider_name="anthropic") from exc

        parts = [block.text for block in response.content if block.type == "text"]
        if not parts:
            raise LLMError(message="Anthropic reply had no text content", provider_name="anthropic")

        logger.info(
            "anthropic_completion",
            model=self._model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        return "\n".join(parts)

    def is_available(self) -> bool:
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        return "anthropic"
