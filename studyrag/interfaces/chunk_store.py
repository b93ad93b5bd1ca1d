"""Abstract base class for chunk persistence.

The chunk store owns every stored :class:`MaterialChunk` and its embedding.
Writers replace a material's whole chunk set at once; readers load
candidate chunks for similarity ranking.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from studyrag.models.rag import MaterialChunk


# Concrete implementation: SQLiteChunkStore (studyrag/providers/store/)
class IChunkStore(ABC):
    """Contract for storing and loading embedded chunks."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables / indices if they do not exist."""

    @abstractmethod
    async def replace_chunks(self, material_id: str, chunks: list[MaterialChunk]) -> int:
        """Atomically replace every chunk of *material_id* with *chunks*.

        Old chunks are deleted and new ones inserted in one transaction:
        concurrent readers see either the complete old set or the complete
        new set, never a mix.

        Returns
        -------
        int
            Number of chunks written.

        Raises
        ------
        studyrag.utils.errors.PersistenceError
            If the write fails (nothing is changed) or the chunks do not
            share one embedding length.
        """

    @abstractmethod
    async def query_chunks(self, course_id: str | None = None) -> list[MaterialChunk]:
        """Return chunks with embeddings, optionally restricted to one course."""

    @abstractmethod
    async def count_chunks(
        self,
        course_id: str | None = None,
        material_id: str | None = None,
    ) -> int:
        """Count stored chunks, optionally filtered by course or material."""

    @abstractmethod
    async def update_material_title(self, material_id: str, title: str) -> int:
        """Refresh the denormalized title on a material's chunks; returns rows touched."""
