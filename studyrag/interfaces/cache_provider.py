"""Abstract base class for cache service providers.

Used to memoize generated answers.  Implementations may use an in-memory
TTL cache, Redis, or any other key-value store.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class ICacheProvider(ABC):
    """Contract for key-value cache services.

    All operations are async to allow for network-backed stores (e.g. Redis)
    without blocking the event loop.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the value stored under *key*, or ``None`` if absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value* under *key* with an optional time-to-live in seconds."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove *key*; no-op if it does not exist."""

    @abstractmethod
    async def clear(self) -> None:
        """Drop every entry (used after ingestion changes the corpus)."""
