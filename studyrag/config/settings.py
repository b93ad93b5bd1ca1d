"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# Values are read from two sources (in priority order):
#
#   1. **Environment variables** - e.g., OPENAI_API_KEY=sk-abc123
#   2. **.env file** - key=value lines in the project root .env file
#
# Field name `chunk_size` maps to env var `CHUNK_SIZE`.  Defaults below
# are used when neither source sets a value.
#
# Every tunable of the ingestion and answering pipeline lives here so
# that components receive plain values through their constructors and
# never read the environment themselves.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """StudyRAG application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === LLM / Embedding Providers ===
    # Empty string = "not configured" → builder.py skips the provider.
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoints (TogetherAI, etc.)
    openai_text_model: str = ""
    openai_embedding_model: str = ""
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    ollama_base_url: str = ""
    ollama_text_model: str = "llama3.1"
    llm_timeout: float = 25.0
    embedding_timeout: float = 30.0

    # === Source validation / download ===
    max_source_bytes: int = 50 * 1024 * 1024
    allowed_content_types: list[str] = Field(
        default_factory=lambda: ["application/pdf", "application/octet-stream"]
    )
    probe_timeout: float = 10.0
    download_timeout: float = 45.0  # per attempt
    download_max_attempts: int = 3
    download_backoff_base: float = 1.0  # 1s, 2s, 4s ...

    # === Chunking (characters) ===
    chunk_size: int = 1000
    chunk_overlap: int = 200
    min_unit_chars: int = 10
    min_chunk_chars: int = 50

    # === Embedding batches ===
    embed_batch_size: int = 10
    embed_batch_delay: float = 0.1

    # === Retrieval & answering ===
    retrieval_max_results: int = 5
    retrieval_threshold: float = 0.7
    context_char_budget: int = 8000
    history_turns: int = 3
    answer_temperature: float = 0.1
    answer_max_tokens: int = 800
    follow_up_temperature: float = 0.7
    follow_up_max_tokens: int = 200
    answer_cache_ttl: int = 600

    # === Storage ===
    database_path: str = "data/studyrag.db"

    # === Processing queue ===
    queue_max_attempts: int = 3
    queue_poll_interval: float = 5.0
    queue_worker_enabled: bool = False

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return LLM provider names with credentials configured, in priority order."""
        providers: list[str] = []
        if self.anthropic_api_key:
            providers.append("anthropic")
        if self.openai_api_key:
            providers.append("openai")
        if self.ollama_base_url:
            providers.append("ollama")
        return providers
