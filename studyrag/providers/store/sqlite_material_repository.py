"""SQLite-backed material repository.

Stores :class:`Material` records alongside the chunk table (same database
file by default).  Timestamps are ISO-8601 strings in UTC.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from studyrag.interfaces.material_repository import IMaterialRepository
from studyrag.models.material import Material, ProcessingStatus
from studyrag.utils.errors import PersistenceError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/studyrag.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS materials (
    id                       TEXT    PRIMARY KEY,
    title                    TEXT    NOT NULL,
    course_id                TEXT    NOT NULL,
    source_url               TEXT    NOT NULL,
    processing_status        TEXT    NOT NULL DEFAULT 'pending',
    processed                INTEGER NOT NULL DEFAULT 0,
    processing_error         TEXT,
    chunk_count              INTEGER NOT NULL DEFAULT 0,
    processing_started_at    TEXT,
    processing_completed_at  TEXT,
    created_at               TEXT    NOT NULL,
    updated_at               TEXT    NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_materials_course ON materials(course_id);",
    "CREATE INDEX IF NOT EXISTS idx_materials_status ON materials(processing_status);",
]

_INSERT_SQL = """\
INSERT INTO materials
    (id, title, course_id, source_url, processing_status, processed,
     processing_error, chunk_count, processing_started_at,
     processing_completed_at, created_at, updated_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_SELECT_SQL = "SELECT * FROM materials WHERE id = ?"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SQLiteMaterialRepository(IMaterialRepository):
    """SQLite-backed material persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the materials table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("material_db_initialized", path=str(self._db_path))

    async def add(self, material: Material) -> Material:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(
                    _INSERT_SQL,
                    (
                        material.id,
                        material.title,
                        material.course_id,
                        material.source_url,
                        material.processing_status.value,
                        int(material.processed),
                        material.processing_error,
                        material.chunk_count,
                        _iso(material.processing_started_at),
                        _iso(material.processing_completed_at),
                        _iso(material.created_at),
                        _iso(material.updated_at),
                    ),
                )
                await db.commit()
        except aiosqlite.IntegrityError as exc:
            raise PersistenceError(
                message=f"Material {material.id} already exists",
                provider_name="sqlite",
            ) from exc
        logger.info("material_registered", material_id=material.id, course_id=material.course_id)
        return material

    async def get(self, material_id: str) -> Material | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(_SELECT_SQL, (material_id,))
            row = await cursor.fetchone()
        return self._row_to_material(row) if row else None

    async def list_materials(self, course_id: str | None = None) -> list[Material]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            if course_id is not None:
                cursor = await db.execute(
                    "SELECT * FROM materials WHERE course_id = ? ORDER BY created_at DESC",
                    (course_id,),
                )
            else:
                cursor = await db.execute("SELECT * FROM materials ORDER BY created_at DESC")
            rows = await cursor.fetchall()
        return [self._row_to_material(r) for r in rows]

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
        updates: dict[str, Any] = {
            "processing_status": status.value,
            "processing_error": error,
            "updated_at": _iso(datetime.now(tz=timezone.utc)),  # noqa: UP017
        }
        if processed is not None:
            updates["processed"] = int(processed)
        if chunk_count is not None:
            updates["chunk_count"] = chunk_count
        if started_at is not None:
            updates["processing_started_at"] = _iso(started_at)
        if completed_at is not None:
            updates["processing_completed_at"] = _iso(completed_at)

        material = await self._update(material_id, updates)
        logger.info(
            "material_status_updated",
            material_id=material_id,
            status=status.value,
            error=error,
        )
        return material

    async def rename(self, material_id: str, title: str) -> Material:
        return await self._update(
            material_id,
            {
                "title": title,
                "updated_at": _iso(datetime.now(tz=timezone.utc)),  # noqa: UP017
            },
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _update(self, material_id: str, updates: dict[str, Any]) -> Material:
        # Column names come from this module only, never from callers.
        assignments = ", ".join(f"{column} = ?" for column in updates)
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(
                    f"UPDATE materials SET {assignments} WHERE id = ?",
                    (*updates.values(), material_id),
                )
                if cursor.rowcount == 0:
                    raise PersistenceError(
                        message=f"Material {material_id} not found",
                        provider_name="sqlite",
                    )
                await db.commit()
                cursor = await db.execute(_SELECT_SQL, (material_id,))
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Failed to update material {material_id}: {exc}",
                provider_name="sqlite",
            ) from exc
        return self._row_to_material(row)

    @staticmethod
    def _row_to_material(row: aiosqlite.Row) -> Material:
        return Material(
            id=row["id"],
            title=row["title"],
            course_id=row["course_id"],
            source_url=row["source_url"],
            processing_status=ProcessingStatus(row["processing_status"]),
            processed=bool(row["processed"]),
            processing_error=row["processing_error"],
            chunk_count=row["chunk_count"],
            processing_started_at=_parse(row["processing_started_at"]),
            processing_completed_at=_parse(row["processing_completed_at"]),
            created_at=_parse(row["created_at"]),
            updated_at=_parse(row["updated_at"]),
        )
