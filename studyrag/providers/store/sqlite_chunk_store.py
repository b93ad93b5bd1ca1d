"""SQLite-backed chunk store.

Persists embedded chunks to a local SQLite database using ``aiosqlite``.
Embeddings are stored as JSON arrays; the denormalized material fields
(title, course, source URL) are plain columns so course filtering and
title refreshes are ordinary SQL.

Atomic replacement: :meth:`SQLiteChunkStore.replace_chunks` deletes and
inserts inside one ``BEGIN IMMEDIATE`` transaction.  With WAL journaling,
readers keep seeing the previous committed set until ``COMMIT``.
"""

from __future__ import annotations

import json
from pathlib import Path

import aiosqlite
import structlog

from studyrag.interfaces.chunk_store import IChunkStore
from studyrag.models.rag import ChunkMetadata, MaterialChunk
from studyrag.utils.errors import PersistenceError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/studyrag.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS material_chunks (
    id              TEXT    PRIMARY KEY,
    material_id     TEXT    NOT NULL,
    course_id       TEXT    NOT NULL,
    chunk_index     INTEGER NOT NULL,
    content         TEXT    NOT NULL,
    embedding       TEXT    NOT NULL,
    material_title  TEXT    NOT NULL,
    source_url      TEXT    NOT NULL DEFAULT '',
    char_count      INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    UNIQUE(material_id, chunk_index)
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_chunks_material ON material_chunks(material_id);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_course ON material_chunks(course_id);",
]

_INSERT_SQL = """\
INSERT INTO material_chunks
    (id, material_id, course_id, chunk_index, content, embedding,
     material_title, source_url, char_count)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_SELECT_COLUMNS = (
    "id, material_id, course_id, chunk_index, content, embedding, "
    "material_title, source_url, char_count"
)


class SQLiteChunkStore(IChunkStore):
    """SQLite-backed chunk persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the chunks table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute("PRAGMA journal_mode=WAL;")
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("chunk_store_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def replace_chunks(self, material_id: str, chunks: list[MaterialChunk]) -> int:
        self._check_chunks(material_id, chunks)
        rows = [
            (
                c.id,
                c.material_id,
                c.metadata.course_id,
                c.chunk_index,
                c.content,
                json.dumps(c.embedding),
                c.metadata.material_title,
                c.metadata.source_url,
                c.metadata.char_count,
            )
            for c in chunks
        ]

        # isolation_level=None: the transaction boundaries below are explicit.
        async with aiosqlite.connect(str(self._db_path), isolation_level=None) as db:
            try:
                await db.execute("BEGIN IMMEDIATE;")
                cursor = await db.execute(
                    "DELETE FROM material_chunks WHERE material_id = ?", (material_id,)
                )
                deleted = cursor.rowcount
                await db.executemany(_INSERT_SQL, rows)
                await db.execute("COMMIT;")
            except aiosqlite.Error as exc:
                if db.in_transaction:
                    await db.execute("ROLLBACK;")
                raise PersistenceError(
                    message=f"Failed to replace chunks for material {material_id}: {exc}",
                    provider_name="sqlite",
                ) from exc

        logger.info(
            "chunks_replaced",
            material_id=material_id,
            deleted=deleted,
            inserted=len(rows),
        )
        return len(rows)

    async def update_material_title(self, material_id: str, title: str) -> int:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(
                    "UPDATE material_chunks SET material_title = ? WHERE material_id = ?",
                    (title, material_id),
                )
                await db.commit()
                return cursor.rowcount
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Failed to refresh chunk titles for material {material_id}: {exc}",
                provider_name="sqlite",
            ) from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def query_chunks(self, course_id: str | None = None) -> list[MaterialChunk]:
        sql = f"SELECT {_SELECT_COLUMNS} FROM material_chunks"
        params: tuple = ()
        if course_id is not None:
            sql += " WHERE course_id = ?"
            params = (course_id,)
        sql += " ORDER BY material_id, chunk_index"

        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(sql, params)
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Failed to load chunks: {exc}",
                provider_name="sqlite",
            ) from exc
        return [self._row_to_chunk(r) for r in rows]

    async def count_chunks(
        self,
        course_id: str | None = None,
        material_id: str | None = None,
    ) -> int:
        clauses: list[str] = []
        params: list[str] = []
        if course_id is not None:
            clauses.append("course_id = ?")
            params.append(course_id)
        if material_id is not None:
            clauses.append("material_id = ?")
            params.append(material_id)
        sql = "SELECT COUNT(*) FROM material_chunks"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)

        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(sql, tuple(params))
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Failed to count chunks: {exc}",
                provider_name="sqlite",
            ) from exc
        return int(row[0]) if row else 0

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _check_chunks(material_id: str, chunks: list[MaterialChunk]) -> None:
        """Reject chunk sets that would break the store's invariants."""
        dimensions = {len(c.embedding) for c in chunks}
        if 0 in dimensions:
            raise PersistenceError(
                message=f"Chunk without embedding for material {material_id}",
                provider_name="sqlite",
            )
        if len(dimensions) > 1:
            raise PersistenceError(
                message=(
                    f"Mixed embedding dimensions {sorted(dimensions)} "
                    f"for material {material_id}"
                ),
                provider_name="sqlite",
            )
        for expected_index, chunk in enumerate(chunks):
            if chunk.material_id != material_id:
                raise PersistenceError(
                    message=f"Chunk {chunk.id} belongs to {chunk.material_id}, not {material_id}",
                    provider_name="sqlite",
                )
            if chunk.chunk_index != expected_index:
                raise PersistenceError(
                    message=f"Chunk indices for material {material_id} are not dense from 0",
                    provider_name="sqlite",
                )

    @staticmethod
    def _row_to_chunk(row: aiosqlite.Row) -> MaterialChunk:
        return MaterialChunk(
            id=row["id"],
            material_id=row["material_id"],
            chunk_index=row["chunk_index"],
            content=row["content"],
            embedding=json.loads(row["embedding"]),
            metadata=ChunkMetadata(
                material_title=row["material_title"],
                course_id=row["course_id"],
                source_url=row["source_url"],
                chunk_index=row["chunk_index"],
                char_count=row["char_count"],
            ),
        )
