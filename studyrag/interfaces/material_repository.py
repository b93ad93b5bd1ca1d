"""Abstract base class for material records.

Materials are registered by the surrounding course application; the
ingestion orchestrator is the only writer of their processing fields.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from studyrag.models.material import Material, ProcessingStatus


# Concrete implementation: SQLiteMaterialRepository (studyrag/providers/store/)
class IMaterialRepository(ABC):
    """Contract for reading and updating :class:`Material` records."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables / indices if they do not exist."""

    @abstractmethod
    async def add(self, material: Material) -> Material:
        """Insert a new material and return it as stored."""

    @abstractmethod
    async def get(self, material_id: str) -> Material | None:
        """Return the material with *material_id*, or ``None``."""

    @abstractmethod
    async def list_materials(self, course_id: str | None = None) -> list[Material]:
        """Return materials, newest first, optionally for one course."""

    @abstractmethod
    async def update_processing(
        self,
        material_id: str,
        status: ProcessingStatus,
        *,
        error: str | None = None,
        processed: bool | None = None,
        chunk_count: int | None = None,
        started_at: datetime | None = None,
        completed_at: datetime | None = None,
    ) -> Material:
        """Record a processing state transition.

        ``error`` always overwrites the stored error (``None`` clears it).
        The other keyword fields are left unchanged when ``None``.

        Raises
        ------
        studyrag.utils.errors.PersistenceError
            If the material does not exist or the write fails.
        """

    @abstractmethod
    async def rename(self, material_id: str, title: str) -> Material:
        """Change a material's title."""
