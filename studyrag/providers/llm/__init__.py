"""LLM provider adapters.

Three concrete implementations of ILLMProvider:
    - AnthropicLLMProvider - Claude via the Messages API
    - OpenAILLMProvider    - gpt-4o-mini or any OpenAI-compatible API
    - OllamaLLMProvider    - local models via an Ollama server

builder.py selects the first one with credentials, in that order.
"""

from studyrag.providers.llm.anthropic_provider import AnthropicLLMProvider
from studyrag.providers.llm.ollama_provider import OllamaLLMProvider
from studyrag.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["AnthropicLLMProvider", "OllamaLLMProvider", "OpenAILLMProvider"]
