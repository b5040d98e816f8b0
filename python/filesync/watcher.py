"""
Watcher - Live index updates from file change notifications.

WatchdogService turns watchdog observer events into FileChange values on the
asyncio loop. ChangeWatcher subscribes indexed folders through any watch
service and applies single-entry updates to the index store.
"""

import asyncio
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .config import get_config, SyncConfig
from .errors import WatchStartError
from .host import ChangeCallback, WatchService
from .index_store import IndexStore
from .models import (
    ChangeType, FileChange, FileIndexEntry, FolderStatus, ProjectFolder, WatchOptions, file_extension,
)
from .state import SyncState
from .tasks import BackgroundTasks


logger = logging.getLogger(__name__)


class _ChangeHandler(FileSystemEventHandler):
    """Forwards watchdog events from the observer thread to the event loop."""

    def __init__(
        self,
        root: Path,
        depth: int,
        loop: asyncio.AbstractEventLoop,
        callback: ChangeCallback,
    ):
        super().__init__()
        self.root = root
        self.depth = depth
        self.loop = loop
        self.callback = callback

    def on_created(self, event: FileSystemEvent):
        change_type = ChangeType.ADD_DIR if event.is_directory else ChangeType.ADD
        self._emit(change_type, event.src_path)

    def on_deleted(self, event: FileSystemEvent):
        change_type = ChangeType.UNLINK_DIR if event.is_directory else ChangeType.UNLINK
        self._emit(change_type, event.src_path)

    def on_modified(self, event: FileSystemEvent):
        if not event.is_directory:
            self._emit(ChangeType.CHANGE, event.src_path)

    def on_moved(self, event: FileSystemEvent):
        if event.is_directory:
            self._emit(ChangeType.UNLINK_DIR, event.src_path)
            self._emit(ChangeType.ADD_DIR, event.dest_path)
        else:
            self._emit(ChangeType.UNLINK, event.src_path)
            self._emit(ChangeType.ADD, event.dest_path)

    def _emit(self, change_type: ChangeType, raw_path):
        path = Path(raw_path.decode() if isinstance(raw_path, bytes) else raw_path)
        if not self._within_depth(path):
            return
        try:
            self.loop.call_soon_threadsafe(self.callback, FileChange(change_type, str(path)))
        except RuntimeError:
            # Loop already closed during shutdown
            logger.debug(f"Dropped {change_type.value} event for {path}")

    def _within_depth(self, path: Path) -> bool:
        try:
            relative = path.relative_to(self.root)
        except ValueError:
            return False
        # Files directly in root are at depth 0
        return len(relative.parts) - 1 <= self.depth


class WatchdogService:
    """
    Watch service backed by one watchdog Observer per subscription.

    ignore_initial is always honoured since watchdog never reports existing
    files. A non-persistent subscription runs on a daemon thread.
    """

    def __init__(self):
        self._observers: Dict[str, Observer] = {}

    async def watch(self, path: str, options: WatchOptions, callback: ChangeCallback) -> str:
        root = Path(path)
        if not root.is_dir():
            raise FileNotFoundError(f"Watch root not found: {root}")

        handler = _ChangeHandler(root, options.depth, asyncio.get_running_loop(), callback)
        observer = Observer()
        observer.daemon = not options.persistent
        observer.schedule(handler, str(root), recursive=options.depth > 0)
        observer.start()

        handle = uuid.uuid4().hex
        self._observers[handle] = observer
        logger.info(f"Watching: {root}")
        return handle

    async def unwatch(self, handle: str) -> bool:
        observer = self._observers.pop(handle, None)
        if observer is None:
            return False
        observer.stop()
        await asyncio.to_thread(observer.join, 2)
        return True

    async def unwatch_all(self) -> None:
        for handle in list(self._observers):
            await self.unwatch(handle)

    def active_handles(self) -> List[str]:
        return list(self._observers.keys())


class ChangeWatcher:
    """
    Keeps indexed folders fresh between full scans.

    Holds at most one watch handle per folder. Events for folders that aren't
    indexed are ignored, and a failing event never ends the subscription.
    """

    def __init__(
        self,
        state: SyncState,
        index_store: IndexStore,
        service: WatchService,
        tasks: BackgroundTasks,
        config: SyncConfig | None = None,
    ):
        self.config = config or get_config()
        self._state = state
        self._index = index_store
        self._service = service
        self._tasks = tasks
        self._handles: Dict[str, str] = {}

    def is_watching(self, folder_id: str) -> bool:
        return folder_id in self._handles

    def watched_folders(self) -> List[str]:
        return list(self._handles.keys())

    async def start_watching(self, folder_id: str) -> None:
        """
        Subscribe to changes for a folder.

        Raises:
            WatchStartError: the watch service refused the subscription
        """
        folder = self._state.folder(folder_id)
        if folder is None:
            logger.debug(f"start_watching: folder not found: {folder_id}")
            return
        if folder_id in self._handles:
            logger.debug(f"start_watching: already watching {folder.folder_path}")
            return

        options = WatchOptions(persistent=True, ignore_initial=True, depth=self.config.watch_depth)
        try:
            handle = await self._service.watch(folder.folder_path, options, self._dispatch)
        except Exception as e:
            raise WatchStartError(folder.folder_path, e) from e

        # The folder may have been detached while the subscription was pending
        if self._state.folder(folder_id) is None or folder_id in self._handles:
            await self._service.unwatch(handle)
            return

        self._handles[folder_id] = handle
        logger.info(f"Started watcher {handle} for {folder.folder_path}")

    async def stop_watching(self, folder_id: str) -> None:
        handle = self._handles.pop(folder_id, None)
        if handle is None:
            return
        try:
            await self._service.unwatch(handle)
        except Exception as e:
            logger.error(f"Failed to stop watcher {handle}: {e}")

    async def stop_all(self) -> None:
        for folder_id in list(self._handles):
            await self.stop_watching(folder_id)

    def _dispatch(self, event: FileChange) -> None:
        self._tasks.spawn(self.on_change(event), name=f"file-change:{event.change_type.value}")

    async def on_change(self, event: FileChange) -> None:
        """Apply one change event to every indexed folder that contains the path."""
        for folder in self._state.folders_containing(event.path):
            if folder.status is FolderStatus.INDEXED:
                self._apply_change(folder, event)

    def _apply_change(self, folder: ProjectFolder, event: FileChange) -> None:
        path = Path(event.path)
        if self._should_ignore(path, Path(folder.folder_path)):
            return

        try:
            if event.change_type is ChangeType.ADD:
                entry = FileIndexEntry.create(
                    project_folder_id=folder.id,
                    file_name=path.name,
                    full_path=event.path,
                    relative_path=str(path.relative_to(folder.folder_path)),
                    extension=file_extension(path.name),
                    size=0,  # Corrected by the next full scan
                    modified_at=datetime.now(),
                )
                if self._index.upsert_one(entry):
                    self._state.adjust_file_count(folder.id, 1)
                logger.debug(f"Indexed added file {event.path}")

            elif event.change_type is ChangeType.UNLINK:
                removed = self._index.remove_by_path(event.path, folder.id)
                if removed:
                    self._state.adjust_file_count(folder.id, -removed)
                logger.debug(f"Removed deleted file {event.path}")

            # CHANGE: names and paths only, so nothing to update until the next scan

        except Exception as e:
            logger.error(
                f"Failed to handle file change {event.change_type.value} {event.path} "
                f"for folder {folder.folder_path}: {e}"
            )

    def _should_ignore(self, path: Path, root: Path) -> bool:
        """Skip dotfiles and anything inside a noise directory like node_modules."""
        try:
            parts = path.relative_to(root).parts
        except ValueError:
            return True
        for part in parts:
            if part.startswith(".") or part in self.config.skip_dirs:
                return True
        return path.name in self.config.skip_files
