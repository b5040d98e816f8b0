"""
Database - SQLite connection and schema for folders and the file index.

One connection per Database, created lazily. Both repositories share it so
the folder registry and index store see each other's writes immediately.
"""

import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional

from .config import get_config, SyncConfig


logger = logging.getLogger(__name__)


SCHEMA = """
    -- Attached external folders
    CREATE TABLE IF NOT EXISTS project_folders (
        id TEXT PRIMARY KEY,
        project_path TEXT NOT NULL,
        folder_path TEXT NOT NULL,
        added_at REAL NOT NULL,
        last_indexed_at REAL,
        file_count INTEGER NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT 'pending',
        error_message TEXT,
        UNIQUE (project_path, folder_path)
    );

    CREATE INDEX IF NOT EXISTS idx_folders_project ON project_folders(project_path);
    CREATE INDEX IF NOT EXISTS idx_folders_path ON project_folders(folder_path);
    CREATE INDEX IF NOT EXISTS idx_folders_status ON project_folders(status);

    -- Per-file metadata for path completion
    CREATE TABLE IF NOT EXISTS file_index (
        id TEXT PRIMARY KEY,
        project_folder_id TEXT NOT NULL,
        file_name TEXT NOT NULL,
        normalized_name TEXT NOT NULL,
        full_path TEXT NOT NULL,
        relative_path TEXT NOT NULL,
        extension TEXT NOT NULL DEFAULT '',
        size INTEGER NOT NULL DEFAULT 0,
        modified_at REAL NOT NULL,
        indexed_at REAL NOT NULL,
        UNIQUE (project_folder_id, full_path)
    );

    CREATE INDEX IF NOT EXISTS idx_index_folder ON file_index(project_folder_id);
    CREATE INDEX IF NOT EXISTS idx_index_path ON file_index(full_path);
    CREATE INDEX IF NOT EXISTS idx_index_extension ON file_index(extension);
"""


def to_timestamp(value: Optional[datetime]) -> Optional[float]:
    return value.timestamp() if value is not None else None


def from_timestamp(value: Optional[float]) -> Optional[datetime]:
    return datetime.fromtimestamp(value) if value is not None else None


class Database:
    """
    SQLite store backing the folder registry and the file index.

    Pass ":memory:" as the path for a throwaway database.
    """

    def __init__(self, path: Path | str | None = None, config: SyncConfig | None = None):
        self.config = config or get_config()
        self.path = str(path if path is not None else self.config.db_path)
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(self.path)
            self._conn.row_factory = sqlite3.Row
            if self.path != ":memory:":
                self._conn.execute("PRAGMA journal_mode = WAL")
            self._conn.execute("PRAGMA synchronous = NORMAL")
            self._init_tables()
            logger.debug(f"Opened database: {self.path}")
        return self._conn

    def _init_tables(self):
        """Create tables if they don't exist."""
        self._conn.executescript(SCHEMA)
        self._conn.commit()

    def close(self):
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
