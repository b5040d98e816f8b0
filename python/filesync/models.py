"""
Data Models - Type definitions for folders, index entries and operations.

These dataclasses are the values passed between the registry, the index
store, the orchestrator and the watcher.
"""

import unicodedata
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path, PurePath
from typing import Optional


class FolderStatus(Enum):
    """Indexing lifecycle of a project folder."""
    PENDING = "pending"
    INDEXING = "indexing"
    INDEXED = "indexed"
    ERROR = "error"


class OperationPhase(Enum):
    """Phase of an in-flight indexing operation."""
    SCANNING = "scanning"
    INDEXING = "indexing"   # Scanner is reporting files
    SAVING = "saving"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    ERROR = "error"


class ChangeType(Enum):
    """Type of file system change reported by a watch service."""
    ADD = "add"
    UNLINK = "unlink"
    CHANGE = "change"
    ADD_DIR = "addDir"
    UNLINK_DIR = "unlinkDir"


def normalize_name(name: str) -> str:
    """
    Normalize a name for diacritics-insensitive matching.

    Decomposes to NFD, drops combining marks and case-folds:
    "Café.tsx" -> "cafe.tsx".
    """
    decomposed = unicodedata.normalize("NFD", name)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


def file_extension(name: str) -> str:
    """Lower-cased extension with its dot, or "" when there is none."""
    return PurePath(name).suffix.lower()


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class ProjectFolder:
    """An external directory attached to a project."""
    id: str
    project_path: str
    folder_path: str
    added_at: datetime
    last_indexed_at: Optional[datetime] = None
    file_count: int = 0
    status: FolderStatus = FolderStatus.PENDING
    error_message: Optional[str] = None

    @classmethod
    def create(cls, project_path: str, folder_path: str) -> "ProjectFolder":
        return cls(
            id=new_id(),
            project_path=project_path,
            folder_path=folder_path,
            added_at=datetime.now(),
        )

    def contains(self, path: str | Path) -> bool:
        """True if path is this folder or lies anywhere below it."""
        return Path(path).is_relative_to(Path(self.folder_path))


@dataclass
class FileDescriptor:
    """
    Raw file metadata produced by a scanner.

    Only what stat() gives us; no content is read.
    """
    file_name: str
    full_path: str
    relative_path: str
    extension: str
    size: int
    modified_at: datetime

    @classmethod
    def from_path(cls, path: Path, root: Path, mtime: float, size: int) -> "FileDescriptor":
        """Create a descriptor from a path below root and its stat result."""
        return cls(
            file_name=path.name,
            full_path=str(path),
            relative_path=str(path.relative_to(root)),
            extension=file_extension(path.name),
            size=size,
            modified_at=datetime.fromtimestamp(mtime),
        )


@dataclass
class FileIndexEntry:
    """
    A record in the file index.

    normalized_name is always derived from file_name; use create() or
    from_descriptor() rather than building entries by hand.
    """
    id: str
    project_folder_id: str
    file_name: str
    normalized_name: str
    full_path: str
    relative_path: str
    extension: str
    size: int
    modified_at: datetime
    indexed_at: datetime

    @classmethod
    def create(
        cls,
        project_folder_id: str,
        file_name: str,
        full_path: str,
        relative_path: str,
        extension: str,
        size: int,
        modified_at: datetime,
    ) -> "FileIndexEntry":
        return cls(
            id=new_id(),
            project_folder_id=project_folder_id,
            file_name=file_name,
            normalized_name=normalize_name(file_name),
            full_path=full_path,
            relative_path=relative_path,
            extension=extension,
            size=size,
            modified_at=modified_at,
            indexed_at=datetime.now(),
        )

    @classmethod
    def from_descriptor(cls, folder_id: str, descriptor: FileDescriptor) -> "FileIndexEntry":
        return cls.create(
            project_folder_id=folder_id,
            file_name=descriptor.file_name,
            full_path=descriptor.full_path,
            relative_path=descriptor.relative_path,
            extension=descriptor.extension,
            size=descriptor.size,
            modified_at=descriptor.modified_at,
        )


@dataclass
class ScanProgress:
    """A progress report delivered by a scanner."""
    phase: OperationPhase
    current: int = 0
    total: Optional[int] = None
    current_file: Optional[str] = None
    directories_scanned: Optional[int] = None
    skipped: Optional[int] = None
    error: Optional[str] = None


@dataclass
class IndexingOperation:
    """An in-flight scan. Never persisted."""
    operation_id: str
    folder_id: str
    phase: OperationPhase = OperationPhase.SCANNING
    current: int = 0
    total: Optional[int] = None
    current_file: Optional[str] = None
    directories_scanned: int = 0
    skipped: int = 0
    error: Optional[str] = None

    def apply(self, progress: ScanProgress) -> None:
        """Merge a scanner progress report into this operation."""
        self.phase = progress.phase
        self.current = progress.current
        if progress.total is not None:
            self.total = progress.total
        self.current_file = progress.current_file
        self.error = progress.error
        if progress.directories_scanned is not None:
            self.directories_scanned = progress.directories_scanned
        if progress.skipped is not None:
            self.skipped = progress.skipped


@dataclass
class FileChange:
    """A single change event from a watch service."""
    change_type: ChangeType
    path: str


@dataclass
class WatchOptions:
    """Subscription options passed to a watch service."""
    persistent: bool = True
    ignore_initial: bool = True
    depth: int = 99


@dataclass
class SyncStatus:
    """Overall sync status across all attached folders."""
    total: int = 0
    indexed: int = 0
    pending: int = 0
    indexing: int = 0
    errors: int = 0

    @property
    def is_up_to_date(self) -> bool:
        return self.total > 0 and self.indexed == self.total and self.errors == 0

    def __str__(self) -> str:
        return (
            f"{self.indexed}/{self.total} folders indexed "
            f"({self.pending} pending, "
            f"{self.indexing} indexing, "
            f"{self.errors} errors)"
        )


@dataclass
class ChunkResult:
    """Outcome of writing one batch of entries."""
    saved: int = 0
    dropped: int = 0
    salvaged: bool = False
    failed_paths: list[str] = field(default_factory=list)
