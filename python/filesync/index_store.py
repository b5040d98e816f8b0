"""
Index Store - Per-file metadata keyed by owning folder, plus the batch writer.

Full scans replace a folder's entries in bounded chunks so a single huge
insert can neither exceed backend limits nor block the event loop. A chunk
that fails is retried entry by entry, so one bad record only costs itself.
"""

import asyncio
import logging
import sqlite3
from typing import Callable, List, Optional, Sequence

from .config import get_config, SyncConfig
from .db import Database, from_timestamp, to_timestamp
from .errors import PersistenceChunkError
from .models import ChunkResult, FileIndexEntry


logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

_INSERT_SQL = """
    INSERT INTO file_index
        (id, project_folder_id, file_name, normalized_name, full_path,
         relative_path, extension, size, modified_at, indexed_at)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

_UPSERT_SQL = _INSERT_SQL + """
    ON CONFLICT(project_folder_id, full_path) DO UPDATE SET
        file_name = excluded.file_name,
        normalized_name = excluded.normalized_name,
        relative_path = excluded.relative_path,
        extension = excluded.extension,
        size = excluded.size,
        modified_at = excluded.modified_at,
        indexed_at = excluded.indexed_at
"""


def _entry_row(entry: FileIndexEntry) -> tuple:
    return (
        entry.id,
        entry.project_folder_id,
        entry.file_name,
        entry.normalized_name,
        entry.full_path,
        entry.relative_path,
        entry.extension,
        entry.size,
        to_timestamp(entry.modified_at),
        to_timestamp(entry.indexed_at),
    )


def _row_to_entry(row: sqlite3.Row) -> FileIndexEntry:
    return FileIndexEntry(
        id=row["id"],
        project_folder_id=row["project_folder_id"],
        file_name=row["file_name"],
        normalized_name=row["normalized_name"],
        full_path=row["full_path"],
        relative_path=row["relative_path"],
        extension=row["extension"],
        size=row["size"],
        modified_at=from_timestamp(row["modified_at"]),
        indexed_at=from_timestamp(row["indexed_at"]),
    )


class IndexStore:
    """Repository for file index entries."""

    def __init__(self, database: Database, config: SyncConfig | None = None):
        self._db = database
        self.config = config or get_config()

    @property
    def _conn(self) -> sqlite3.Connection:
        return self._db.connection

    def _select(self, where: str = "", params: tuple = ()) -> List[FileIndexEntry]:
        sql = "SELECT * FROM file_index"
        if where:
            sql += f" WHERE {where}"
        cursor = self._conn.execute(sql, params)
        return [_row_to_entry(row) for row in cursor.fetchall()]

    # --- Reads ---

    def entries_for_folder(self, folder_id: str) -> List[FileIndexEntry]:
        return self._select("project_folder_id = ?", (folder_id,))

    def entries_by_extension(self, extension: str) -> List[FileIndexEntry]:
        return self._select("extension = ?", (extension,))

    def count_for_folder(self, folder_id: str) -> int:
        row = self._conn.execute(
            "SELECT COUNT(*) FROM file_index WHERE project_folder_id = ?", (folder_id,)
        ).fetchone()
        return row[0]

    def get_by_path(self, folder_id: str, full_path: str) -> Optional[FileIndexEntry]:
        entries = self._select(
            "project_folder_id = ? AND full_path = ?", (folder_id, full_path)
        )
        return entries[0] if entries else None

    def search_by_name(self, folder_id: str, normalized_query: str) -> List[FileIndexEntry]:
        """Entries of one folder whose normalized name contains the query."""
        return self._select(
            "project_folder_id = ? AND instr(normalized_name, ?) > 0",
            (folder_id, normalized_query),
        )

    def search_by_name_global(self, normalized_query: str) -> List[FileIndexEntry]:
        """Entries of every folder whose normalized name contains the query."""
        return self._select("instr(normalized_name, ?) > 0", (normalized_query,))

    # --- Single-entry writes ---

    def upsert_one(self, entry: FileIndexEntry) -> bool:
        """
        Insert an entry, or update the existing one with the same path.

        Returns:
            True if the path was not indexed before
        """
        existed = self.get_by_path(entry.project_folder_id, entry.full_path) is not None
        with self._conn:
            self._conn.execute(_UPSERT_SQL, _entry_row(entry))
        return not existed

    def remove_by_path(self, full_path: str, folder_id: Optional[str] = None) -> int:
        """Delete the entry for a path, in one folder or in every folder."""
        sql = "DELETE FROM file_index WHERE full_path = ?"
        params: tuple = (full_path,)
        if folder_id is not None:
            sql += " AND project_folder_id = ?"
            params = (full_path, folder_id)
        with self._conn:
            cursor = self._conn.execute(sql, params)
        return cursor.rowcount

    def remove_all_for_folder(self, folder_id: str) -> int:
        with self._conn:
            cursor = self._conn.execute(
                "DELETE FROM file_index WHERE project_folder_id = ?", (folder_id,)
            )
        return cursor.rowcount

    # --- Batch writer ---

    async def replace_all(
        self,
        folder_id: str,
        entries: Sequence[FileIndexEntry],
        batch_size: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> int:
        """
        Replace every entry of a folder with the given entries.

        Entries are written in chunks of batch_size. on_progress receives the
        cumulative number of processed entries and the total after each chunk,
        and the event loop gets a turn between chunks.

        Returns:
            Number of entries actually persisted
        """
        batch_size = batch_size or self.config.batch_size
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        removed = self.remove_all_for_folder(folder_id)
        if removed:
            logger.debug(f"Cleared {removed} entries for folder {folder_id}")

        total = len(entries)
        processed = 0
        saved = 0
        dropped = 0

        for start in range(0, total, batch_size):
            chunk = entries[start:start + batch_size]
            result = self._write_chunk(chunk)
            saved += result.saved
            dropped += result.dropped
            processed += len(chunk)

            if on_progress:
                on_progress(processed, total)

            # Let UI work and cancellation checks run between chunks
            await asyncio.sleep(0)

        if dropped:
            logger.warning(f"Folder {folder_id}: saved {saved}/{total} entries, dropped {dropped}")
        else:
            logger.info(f"Folder {folder_id}: saved {saved} entries")
        return saved

    def _write_chunk(self, chunk: Sequence[FileIndexEntry]) -> ChunkResult:
        try:
            self._insert_chunk(chunk)
            return ChunkResult(saved=len(chunk))
        except PersistenceChunkError as e:
            logger.warning(f"{e}; retrying entry by entry")
            return self._salvage_chunk(chunk)

    def _insert_chunk(self, chunk: Sequence[FileIndexEntry]) -> None:
        """Write a chunk in one transaction, all or nothing."""
        try:
            with self._conn:
                self._conn.executemany(_INSERT_SQL, [_entry_row(e) for e in chunk])
        except (sqlite3.Error, TypeError, AttributeError) as e:
            raise PersistenceChunkError(len(chunk), e) from e

    def _salvage_chunk(self, chunk: Sequence[FileIndexEntry]) -> ChunkResult:
        result = ChunkResult(salvaged=True)
        for entry in chunk:
            try:
                with self._conn:
                    self._conn.execute(_INSERT_SQL, _entry_row(entry))
                result.saved += 1
            except (sqlite3.Error, TypeError, AttributeError) as e:
                path = getattr(entry, "full_path", "<unknown>")
                logger.debug(f"Dropped index entry {path}: {e}")
                result.dropped += 1
                result.failed_paths.append(str(path))
        return result
