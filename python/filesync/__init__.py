"""
File Sync Package - Indexes external project folders for path completion.

Modules:
    - config: Centralized configuration
    - db: SQLite connection and schema
    - registry: Attached folders and their indexing status
    - index_store: Per-file metadata and the batch writer
    - scanner: Cancellable folder traversal
    - orchestrator: Full scans from start to persisted completion
    - watcher: Live updates from file change events
    - scheduler: Startup recovery and background indexing
    - search: Diacritics-insensitive ranked name search
    - sync: Main entry point (FileSync)

Flow:
    Registry → Orchestrator → Scanner → Batch Writer → Index Store ← Watcher
                                                           ↓
                                                         Search

Usage:
    from filesync import FileSync

    sync = FileSync()
    await sync.initialize()
    await sync.start_background_indexing()
    sync.search("config")
"""

from .errors import DuplicateFolderError
from .models import FileIndexEntry, FolderStatus, ProjectFolder
from .sync import FileSync

__all__ = ["FileSync", "DuplicateFolderError", "FileIndexEntry", "FolderStatus", "ProjectFolder"]
