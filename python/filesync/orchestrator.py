"""
Orchestrator - Drives a full folder scan from start to persisted completion.

Per operation:
    scanning (scanner walks the folder) → saving (batch writer) → done

Cancellation is forwarded to the scanner and only affects the scanning
phase. Once saving starts the write always runs to completion.
"""

import logging
import time
import uuid
from typing import List, Optional

from .config import get_config, SyncConfig
from .errors import WatchStartError, is_abort
from .host import Scanner
from .index_store import IndexStore
from .models import (
    FileIndexEntry, FolderStatus, IndexingOperation, OperationPhase, ProjectFolder, ScanProgress
)
from .registry import FolderRegistry
from .state import SyncState
from .tasks import BackgroundTasks
from .watcher import ChangeWatcher


logger = logging.getLogger(__name__)


class IndexingOrchestrator:
    """
    Runs indexing operations for attached folders.

    Every operation is registered in the shared state when it starts and
    removed in a finally block when it ends, however it ends.
    """

    def __init__(
        self,
        state: SyncState,
        registry: FolderRegistry,
        index_store: IndexStore,
        scanner: Scanner,
        watcher: Optional[ChangeWatcher] = None,
        tasks: Optional[BackgroundTasks] = None,
        config: SyncConfig | None = None,
    ):
        self.config = config or get_config()
        self._state = state
        self._registry = registry
        self._index = index_store
        self._scanner = scanner
        self._watcher = watcher
        self._tasks = tasks or BackgroundTasks()

    def _set_status(
        self,
        folder: ProjectFolder,
        status: FolderStatus,
        error_message: Optional[str] = None,
    ) -> ProjectFolder:
        updated = self._registry.update_status(folder.id, status, error_message)
        if updated is None:
            # Row deleted under us; keep the in-memory copy consistent anyway
            folder.status = status
            if status is FolderStatus.ERROR and error_message:
                folder.error_message = error_message
            return folder
        if self._state.folder(folder.id) is not None:
            self._state.put_folder(updated)
        return updated

    async def start_indexing(self, folder_id: str) -> None:
        """
        Scan a folder and replace its index entries.

        A folder that isn't registered is a no-op. Failures end up in the
        folder's status; they are never raised to the caller.
        """
        folder = self._state.folder(folder_id)
        if folder is None:
            logger.warning(f"start_indexing: folder not found: {folder_id}")
            return

        operation_id = str(uuid.uuid4())
        operation = IndexingOperation(operation_id=operation_id, folder_id=folder_id)
        self._state.begin_operation(operation)
        start_time = time.monotonic()

        logger.info(f"Indexing {folder.folder_path} (operation {operation_id})")

        try:
            folder = self._set_status(folder, FolderStatus.INDEXING)

            def on_scan_progress(progress: ScanProgress):
                op = self._state.operation(operation_id)
                if op is not None:
                    op.apply(progress)
                    self._state.operation_changed(op)

            files = await self._scanner.scan(folder.folder_path, operation_id, on_scan_progress)

            if self._state.folder(folder_id) is None:
                logger.info(f"Folder {folder.folder_path} was removed during its scan, dropping results")
                return

            logger.info(f"Scan of {folder.folder_path} returned {len(files)} files, saving...")

            op = self._state.operation(operation_id)
            if op is not None:
                op.phase = OperationPhase.SAVING
                op.current = 0
                op.total = len(files)
                self._state.operation_changed(op)

            entries: List[FileIndexEntry] = [
                FileIndexEntry.from_descriptor(folder_id, f) for f in files
            ]

            def on_save_progress(current: int, total: int):
                op = self._state.operation(operation_id)
                if op is not None:
                    op.current = current
                    op.total = total
                    self._state.operation_changed(op)

            await self._index.replace_all(
                folder_id, entries, self.config.batch_size, on_save_progress
            )

            # Detached while saving; its row is gone so nothing else would clean these up
            if self._state.folder(folder_id) is None:
                self._index.remove_all_for_folder(folder_id)
                logger.info(f"Folder {folder.folder_path} was removed while saving, entries dropped")
                return

            self._registry.update_index_stats(folder_id, len(entries))
            folder = self._set_status(folder, FolderStatus.INDEXED)

            logger.info(
                f"Indexed {len(entries)} files for {folder.folder_path} "
                f"in {time.monotonic() - start_time:.1f}s"
            )

            if self._watcher is not None:
                self._tasks.spawn(self._start_watcher(folder_id), name=f"watch:{folder_id}")

        except Exception as e:
            if is_abort(e):
                logger.info(f"Indexing cancelled for {folder.folder_path}")
            else:
                message = str(e) or "Indexing failed"
                logger.error(f"Indexing failed for {folder.folder_path}: {message}")
                self._set_status(folder, FolderStatus.ERROR, message)

        finally:
            self._state.end_operation(operation_id)

    async def _start_watcher(self, folder_id: str) -> None:
        try:
            await self._watcher.start_watching(folder_id)
        except WatchStartError as e:
            # Retried on the next background pass
            logger.warning(str(e))

    async def cancel_indexing(self, operation_id: str) -> None:
        """Request cancellation and drop the operation right away."""
        try:
            await self._scanner.cancel_scan(operation_id)
        except Exception as e:
            logger.warning(f"Cancel request for {operation_id} failed: {e}")
        self._state.end_operation(operation_id)

    async def cancel_folder_indexing(self, folder_id: str) -> None:
        """Cancel every active operation of one folder."""
        for operation in self._state.operations:
            if operation.folder_id == folder_id:
                await self.cancel_indexing(operation.operation_id)

    async def cancel_all_indexing(self) -> None:
        for operation in self._state.operations:
            await self.cancel_indexing(operation.operation_id)
