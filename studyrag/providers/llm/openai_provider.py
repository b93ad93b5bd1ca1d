"""Chat-completions adapter for OpenAI and services that mimic its API.

Setting ``OPENAI_BASE_URL`` points the same client at Together, Groq,
Fireworks and similar hosts; the provider name then reports
``openai-compatible`` so logs show which backend answered.
"""

from __future__ import annotations

import openai
import structlog

from studyrag.config.settings import Settings
from studyrag.interfaces.llm_provider import ILLMProvider
from studyrag.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MODEL = "gpt-4o-mini"


class OpenAILLMProvider(ILLMProvider):
    """Answers through ``chat.completions`` (``OPENAI_TEXT_MODEL``, default gpt-4o-mini)."""

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.openai_api_key
        self._timeout = settings.llm_timeout
        self._model = settings.openai_text_model or _DEFAULT_MODEL
        self._name = "openai-compatible" if settings.openai_base_url else "openai"
        self._client = openai.AsyncOpenAI(
            api_key=self._api_key or "unset",
            base_url=settings.openai_base_url or None,
            timeout=openai.Timeout(self._timeout, connect=5.0),
        )

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
    ) -> str:
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APITimeoutError as exc:
            raise self._error(f"timed out after {self._timeout:g}s") from exc
        except openai.APIError as exc:
            raise self._error(f"API error: {exc}") from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise self._error("returned empty response")

        usage = response.usage
        logger.info(
            "openai_completion",
            model=self._model,
            provider=self._name,
            tokens=usage.total_tokens if usage else None,
        )
        return content

    def _error(self, detail: str) -> LLMError:
        return LLMError(message=f"{self._name} {detail}", provider_name=self._name)

    def is_available(self) -> bool:
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        return self._name
