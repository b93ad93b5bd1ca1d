"""SQLite persistence for materials and their embedded chunks."""

from studyrag.providers.store.sqlite_chunk_store import SQLiteChunkStore
from studyrag.providers.store.sqlite_material_repository import SQLiteMaterialRepository

__all__ = ["SQLiteChunkStore", "SQLiteMaterialRepository"]
