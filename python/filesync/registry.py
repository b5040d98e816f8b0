"""
Folder Registry - Persists which external folders belong to which project.

Each folder carries its own indexing status; there is no global error state.
"""

import logging
import sqlite3
from datetime import datetime
from typing import List, Optional

from .db import Database, from_timestamp, to_timestamp
from .errors import DuplicateFolderError
from .models import FolderStatus, ProjectFolder


logger = logging.getLogger(__name__)


def _row_to_folder(row: sqlite3.Row) -> ProjectFolder:
    return ProjectFolder(
        id=row["id"],
        project_path=row["project_path"],
        folder_path=row["folder_path"],
        added_at=from_timestamp(row["added_at"]),
        last_indexed_at=from_timestamp(row["last_indexed_at"]),
        file_count=row["file_count"],
        status=FolderStatus(row["status"]),
        error_message=row["error_message"],
    )


class FolderRegistry:
    """Repository for project folder rows."""

    def __init__(self, database: Database):
        self._db = database

    @property
    def _conn(self) -> sqlite3.Connection:
        return self._db.connection

    def add_folder(self, project_path: str, folder_path: str) -> ProjectFolder:
        """
        Attach a folder to a project.

        Raises:
            DuplicateFolderError: the folder is already attached to this project
        """
        existing = self._conn.execute(
            "SELECT id FROM project_folders WHERE project_path = ? AND folder_path = ?",
            (project_path, folder_path),
        ).fetchone()
        if existing:
            raise DuplicateFolderError(project_path, folder_path)

        folder = ProjectFolder.create(project_path, folder_path)
        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO project_folders
                        (id, project_path, folder_path, added_at, last_indexed_at,
                         file_count, status, error_message)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        folder.id,
                        folder.project_path,
                        folder.folder_path,
                        to_timestamp(folder.added_at),
                        None,
                        0,
                        folder.status.value,
                        None,
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise DuplicateFolderError(project_path, folder_path) from e

        logger.info(f"Added folder {folder_path} to project {project_path}")
        return folder

    def remove_folder(self, folder_id: str) -> bool:
        """Delete the folder row. Its watcher and entries must already be gone."""
        with self._conn:
            cursor = self._conn.execute(
                "DELETE FROM project_folders WHERE id = ?", (folder_id,)
            )
        return cursor.rowcount > 0

    def remove_all_for_project(self, project_path: str) -> List[str]:
        """Delete every folder row of a project and return their ids."""
        ids = [f.id for f in self.list_by_project(project_path)]
        if ids:
            with self._conn:
                self._conn.executemany(
                    "DELETE FROM project_folders WHERE id = ?", [(i,) for i in ids]
                )
        return ids

    def update_status(
        self,
        folder_id: str,
        status: FolderStatus,
        error_message: Optional[str] = None,
    ) -> Optional[ProjectFolder]:
        """
        Set a folder's status.

        indexed stamps last_indexed_at and clears the error message, error
        records the message, pending and indexing clear it.
        """
        if status is FolderStatus.INDEXED:
            sql = ("UPDATE project_folders SET status = ?, last_indexed_at = ?, "
                   "error_message = NULL WHERE id = ?")
            params = (status.value, to_timestamp(datetime.now()), folder_id)
        elif status is FolderStatus.ERROR and error_message:
            sql = "UPDATE project_folders SET status = ?, error_message = ? WHERE id = ?"
            params = (status.value, error_message, folder_id)
        elif status is FolderStatus.ERROR:
            sql = "UPDATE project_folders SET status = ? WHERE id = ?"
            params = (status.value, folder_id)
        else:
            sql = "UPDATE project_folders SET status = ?, error_message = NULL WHERE id = ?"
            params = (status.value, folder_id)

        with self._conn:
            self._conn.execute(sql, params)
        return self.get(folder_id)

    def update_index_stats(self, folder_id: str, file_count: int) -> Optional[ProjectFolder]:
        """Record the result of a successful scan."""
        with self._conn:
            self._conn.execute(
                "UPDATE project_folders SET file_count = ?, last_indexed_at = ? WHERE id = ?",
                (file_count, to_timestamp(datetime.now()), folder_id),
            )
        return self.get(folder_id)

    def get(self, folder_id: str) -> Optional[ProjectFolder]:
        row = self._conn.execute(
            "SELECT * FROM project_folders WHERE id = ?", (folder_id,)
        ).fetchone()
        return _row_to_folder(row) if row else None

    def get_by_folder_path(self, folder_path: str) -> Optional[ProjectFolder]:
        row = self._conn.execute(
            "SELECT * FROM project_folders WHERE folder_path = ? LIMIT 1", (folder_path,)
        ).fetchone()
        return _row_to_folder(row) if row else None

    def is_folder_added(self, folder_path: str) -> bool:
        """True if the folder is attached to any project."""
        return self.get_by_folder_path(folder_path) is not None

    def list_all(self) -> List[ProjectFolder]:
        """All folders, newest first."""
        cursor = self._conn.execute(
            "SELECT * FROM project_folders ORDER BY added_at DESC"
        )
        return [_row_to_folder(row) for row in cursor.fetchall()]

    def list_by_project(self, project_path: str) -> List[ProjectFolder]:
        cursor = self._conn.execute(
            "SELECT * FROM project_folders WHERE project_path = ? ORDER BY added_at DESC",
            (project_path,),
        )
        return [_row_to_folder(row) for row in cursor.fetchall()]

    def list_by_status(self, status: FolderStatus) -> List[ProjectFolder]:
        cursor = self._conn.execute(
            "SELECT * FROM project_folders WHERE status = ? ORDER BY added_at DESC",
            (status.value,),
        )
        return [_row_to_folder(row) for row in cursor.fetchall()]
