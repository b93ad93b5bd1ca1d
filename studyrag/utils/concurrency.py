"""Shared concurrency primitives for the ingestion and query paths.

Two patterns are exposed:

1. **KeyedLock** -- one ``asyncio.Lock`` per key (material id).  Two
   ingestion runs for the same material are serialized; runs for different
   materials proceed independently.  Locks are dropped once no task holds
   or waits on them so the registry does not grow with every material ever
   processed.

2. **with_timeout** -- awaits a coroutine under ``asyncio.wait_for`` and
   converts an expiry into a caller-supplied :class:`StudyRagError`
   subclass, so provider calls surface a typed error instead of hanging.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import TypeVar

import structlog

from studyrag.utils.errors import StudyRagError
from studyrag.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


class KeyedLock:
    """Registry of per-key asyncio locks (single-flight per key)."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Acquire the lock for *key* for the duration of the ``async with`` block."""
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        if self.is_locked(key):
            _logger.info("keyed_lock_waiting", key=key)
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                self._locks.pop(key, None)

    def __len__(self) -> int:
        return len(self._locks)


async def with_timeout(
    awaitable: Awaitable[_T],
    seconds: float | None,
    error_factory: Callable[[str], StudyRagError],
    operation: str,
) -> _T:
    """Await *awaitable*, raising ``error_factory(message)`` if it takes too long.

    Parameters
    ----------
    awaitable:
        The provider call to await.
    seconds:
        Timeout in seconds.  ``None`` or a non-positive value disables it.
    error_factory:
        Builds the typed error raised on expiry, e.g. ``EmbeddingError``.
    operation:
        Short label used in the error message and log event.
    """
    if seconds is None or seconds <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as exc:
        _logger.warning("operation_timed_out", operation=operation, timeout=seconds)
        raise error_factory(f"{operation} timed out after {seconds:g}s") from exc
