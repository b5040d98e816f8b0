"""
FileSync - Main entry point for the folder indexing subsystem.

Wires the registry, index store, orchestrator, watcher, scheduler and search
engine around one owned SyncState. Editor and UI code should only talk to
this class.

Usage:
    sync = FileSync()
    await sync.initialize()
    folder = sync.add_folder("/prompts/my-project", "/home/me/code/app")
    await sync.start_indexing(folder.id)
    results = sync.search("config")
    await sync.close()
"""

import logging
from typing import Callable, List, Optional

from .config import get_config, SyncConfig
from .db import Database
from .host import Scanner, WatchService
from .index_store import IndexStore
from .models import FileIndexEntry, IndexingOperation, ProjectFolder, SyncStatus
from .orchestrator import IndexingOrchestrator
from .registry import FolderRegistry
from .scanner import FolderScanner
from .scheduler import BackgroundScheduler
from .search import SearchEngine
from .state import Listener, SyncState
from .tasks import BackgroundTasks
from .watcher import ChangeWatcher, WatchdogService


logger = logging.getLogger(__name__)


class FileSync:
    """
    Facade over the whole subsystem.

    Collaborators can be injected (e.g. an in-memory Database, a fake scanner
    or watch service); anything not given gets the default implementation.
    """

    def __init__(
        self,
        config: Optional[SyncConfig] = None,
        *,
        database: Optional[Database] = None,
        scanner: Optional[Scanner] = None,
        watch_service: Optional[WatchService] = None,
    ):
        self.config = config or get_config()
        self._owns_database = database is None
        self.database = database or Database(config=self.config)
        self.state = SyncState()
        self.tasks = BackgroundTasks()

        self.registry = FolderRegistry(self.database)
        self.index = IndexStore(self.database, self.config)
        self.scanner = scanner or FolderScanner(self.config)
        self.watch_service = watch_service or WatchdogService()

        self.watcher = ChangeWatcher(
            self.state, self.index, self.watch_service, self.tasks, self.config
        )
        self.orchestrator = IndexingOrchestrator(
            self.state, self.registry, self.index, self.scanner,
            watcher=self.watcher, tasks=self.tasks, config=self.config,
        )
        self.scheduler = BackgroundScheduler(
            self.state, self.registry, self.orchestrator,
            watcher=self.watcher, config=self.config,
        )
        self.search_engine = SearchEngine(self.state, self.index, self.config)
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Load folders and recover from an interrupted previous run."""
        if self._initialized:
            return
        self.state.load_folders(self.registry.list_all())
        self.scheduler.resume()
        self.scheduler.reset_stuck_folders()
        self._initialized = True
        logger.info(f"File sync initialized: {self.state.sync_status()}")

    async def close(self) -> None:
        """Stop background work, watchers and pending tasks."""
        self._initialized = False
        self.scheduler.shutdown()
        await self.orchestrator.cancel_all_indexing()
        # Pending watcher starts must be gone before the handles are collected
        await self.tasks.cancel_all()
        await self.watcher.stop_all()
        if self._owns_database:
            self.database.close()

    # --- Folders ---

    def add_folder(self, project_path: str, folder_path: str) -> ProjectFolder:
        """
        Attach a folder to a project (status pending).

        Raises:
            DuplicateFolderError: already attached to this project
        """
        folder = self.registry.add_folder(project_path, folder_path)
        self.state.put_folder(folder)
        return folder

    async def remove_folder(self, folder_id: str) -> None:
        """Detach a folder: cancel its scans, stop its watcher, drop its entries, then its row."""
        await self.orchestrator.cancel_folder_indexing(folder_id)
        await self.watcher.stop_watching(folder_id)
        removed = self.index.remove_all_for_folder(folder_id)
        self.registry.remove_folder(folder_id)
        folder = self.state.drop_folder(folder_id)
        if folder is not None:
            logger.info(f"Removed folder {folder.folder_path} ({removed} entries)")

    async def remove_project(self, project_path: str) -> None:
        """Detach every folder of a project."""
        for folder in self.registry.list_by_project(project_path):
            await self.remove_folder(folder.id)

    @property
    def folders(self) -> List[ProjectFolder]:
        return self.state.folders

    def folders_for_project(self, project_path: str) -> List[ProjectFolder]:
        return self.state.folders_for_project(project_path)

    def sync_status(self) -> SyncStatus:
        return self.state.sync_status()

    # --- Indexing ---

    async def start_indexing(self, folder_id: str) -> None:
        await self.orchestrator.start_indexing(folder_id)

    async def cancel_indexing(self, operation_id: str) -> None:
        await self.orchestrator.cancel_indexing(operation_id)

    async def cancel_all_indexing(self) -> None:
        await self.orchestrator.cancel_all_indexing()

    async def start_background_indexing(self) -> List[str]:
        return await self.scheduler.start_background_indexing()

    @property
    def operations(self) -> List[IndexingOperation]:
        return self.state.operations

    @property
    def current_operation(self) -> Optional[IndexingOperation]:
        return self.state.current_operation

    @property
    def has_active_indexing(self) -> bool:
        return self.state.has_active_indexing

    # --- Watching ---

    async def start_watching(self, folder_id: str) -> None:
        await self.watcher.start_watching(folder_id)

    async def stop_watching(self, folder_id: str) -> None:
        await self.watcher.stop_watching(folder_id)

    # --- Search ---

    def search(self, query: str, project_path: Optional[str] = None) -> List[FileIndexEntry]:
        return self.search_engine.search(query, project_path)

    def list_files(
        self,
        project_path: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[FileIndexEntry]:
        return self.search_engine.list_files(project_path, limit)

    # --- Observers ---

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Receive (SyncEvent, payload) notifications. Returns an unsubscribe function."""
        return self.state.bus.subscribe(listener)
