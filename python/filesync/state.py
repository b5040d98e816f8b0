"""
Sync State - The in-memory folder list and active operations.

Owned by the FileSync facade and mutated only from the event loop thread.
Observers (a progress indicator, a folder list) subscribe for explicit
change notifications instead of polling.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from .models import FolderStatus, IndexingOperation, ProjectFolder, SyncStatus


logger = logging.getLogger(__name__)


class SyncEvent(Enum):
    FOLDERS_CHANGED = "folders_changed"        # payload: ProjectFolder or folder id
    OPERATION_UPDATED = "operation_updated"    # payload: IndexingOperation
    OPERATION_REMOVED = "operation_removed"    # payload: operation id


Listener = Callable[[SyncEvent, Any], None]


class EventBus:
    """Synchronous publish/subscribe for state changes."""

    def __init__(self):
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: SyncEvent, payload: Any = None) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, payload)
            except Exception as e:
                logger.error(f"Listener error on {event.value}: {e}")


class SyncState:
    """Folders keyed by id and indexing operations keyed by operation id."""

    def __init__(self, bus: Optional[EventBus] = None):
        self.bus = bus or EventBus()
        self._folders: Dict[str, ProjectFolder] = {}
        self._operations: Dict[str, IndexingOperation] = {}

    # --- Folders ---

    def load_folders(self, folders: Iterable[ProjectFolder]) -> None:
        self._folders = {f.id: f for f in folders}
        self.bus.emit(SyncEvent.FOLDERS_CHANGED, None)

    def folder(self, folder_id: str) -> Optional[ProjectFolder]:
        return self._folders.get(folder_id)

    @property
    def folders(self) -> List[ProjectFolder]:
        return list(self._folders.values())

    def folders_for_project(self, project_path: str) -> List[ProjectFolder]:
        return [f for f in self._folders.values() if f.project_path == project_path]

    def folders_with_status(self, status: FolderStatus) -> List[ProjectFolder]:
        return [f for f in self._folders.values() if f.status is status]

    def folders_containing(self, path: str) -> List[ProjectFolder]:
        """
        Every registered folder that contains path.

        The same directory may be attached to several projects, and attached
        folders may nest, so a single path can belong to more than one.
        """
        return [f for f in self._folders.values() if f.contains(path)]

    def put_folder(self, folder: ProjectFolder) -> None:
        self._folders[folder.id] = folder
        self.bus.emit(SyncEvent.FOLDERS_CHANGED, folder)

    def drop_folder(self, folder_id: str) -> Optional[ProjectFolder]:
        folder = self._folders.pop(folder_id, None)
        if folder is not None:
            self.bus.emit(SyncEvent.FOLDERS_CHANGED, folder_id)
        return folder

    def adjust_file_count(self, folder_id: str, delta: int) -> None:
        """Change a folder's in-memory file count, never going below zero."""
        folder = self._folders.get(folder_id)
        if folder is None:
            return
        folder.file_count = max(0, folder.file_count + delta)
        self.bus.emit(SyncEvent.FOLDERS_CHANGED, folder)

    def sync_status(self) -> SyncStatus:
        folders = self._folders.values()
        return SyncStatus(
            total=len(self._folders),
            indexed=sum(1 for f in folders if f.status is FolderStatus.INDEXED),
            pending=sum(1 for f in folders if f.status is FolderStatus.PENDING),
            indexing=sum(1 for f in folders if f.status is FolderStatus.INDEXING),
            errors=sum(1 for f in folders if f.status is FolderStatus.ERROR),
        )

    # --- Operations ---

    def begin_operation(self, operation: IndexingOperation) -> None:
        self._operations[operation.operation_id] = operation
        self.bus.emit(SyncEvent.OPERATION_UPDATED, operation)

    def operation(self, operation_id: str) -> Optional[IndexingOperation]:
        return self._operations.get(operation_id)

    def operation_changed(self, operation: IndexingOperation) -> None:
        if operation.operation_id in self._operations:
            self.bus.emit(SyncEvent.OPERATION_UPDATED, operation)

    def end_operation(self, operation_id: str) -> Optional[IndexingOperation]:
        operation = self._operations.pop(operation_id, None)
        if operation is not None:
            self.bus.emit(SyncEvent.OPERATION_REMOVED, operation_id)
        return operation

    @property
    def operations(self) -> List[IndexingOperation]:
        return list(self._operations.values())

    @property
    def current_operation(self) -> Optional[IndexingOperation]:
        return next(iter(self._operations.values()), None)

    @property
    def has_active_indexing(self) -> bool:
        return bool(self._operations)
