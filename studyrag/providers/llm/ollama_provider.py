"""Local answering through an Ollama server.

Ollama exposes an OpenAI-style ``/v1`` API, so the ``openai`` client is
reused with a placeholder key.  Keeps the tutor usable offline, at the
cost of weaker answers from small models.
"""

from __future__ import annotations

import openai
import structlog

from studyrag.config.settings import Settings
from studyrag.interfaces.llm_provider import ILLMProvider
from studyrag.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)


class OllamaLLMProvider(ILLMProvider):
    """Answers with ``OLLAMA_TEXT_MODEL`` (``llama3.1`` by default)."""

    def __init__(self, settings: Settings) -> None:
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._model = settings.ollama_text_model
        self._client = openai.AsyncOpenAI(
            base_url=f"{self._base_url}/v1",
            api_key="ollama",
            timeout=openai.Timeout(settings.llm_timeout, connect=5.0),
        )

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
    ) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APIError as exc:
            raise LLMError(message=f"Ollama API error: {exc}", provider_name="ollama") from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMError(message="Ollama returned empty response", provider_name="ollama")
        logger.info("ollama_completion", model=self._model, base_url=self._base_url)
        return content

    def is_available(self) -> bool:
        return bool(self._base_url)

    def get_provider_name(self) -> str:
        return "ollama"
