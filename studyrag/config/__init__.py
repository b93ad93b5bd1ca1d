"""Configuration module: exports Settings and a cached accessor."""

from functools import lru_cache

from studyrag.config.settings import Settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide :class:`Settings`, built on first use."""
    return Settings()


__all__ = ["Settings", "get_settings"]
