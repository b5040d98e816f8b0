"""
Scheduler - Startup recovery and sequential background indexing.

Folders are indexed one at a time with a short pause in between so a
background pass never saturates the disk or the database.
"""

import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from .config import get_config, SyncConfig
from .errors import WatchStartError
from .models import FolderStatus, ProjectFolder
from .orchestrator import IndexingOrchestrator
from .registry import FolderRegistry
from .state import SyncState
from .watcher import ChangeWatcher


logger = logging.getLogger(__name__)


class BackgroundScheduler:
    """Selects folders that need (re)indexing and runs them sequentially."""

    def __init__(
        self,
        state: SyncState,
        registry: FolderRegistry,
        orchestrator: IndexingOrchestrator,
        watcher: Optional[ChangeWatcher] = None,
        config: SyncConfig | None = None,
    ):
        self.config = config or get_config()
        self._state = state
        self._registry = registry
        self._orchestrator = orchestrator
        self._watcher = watcher
        self._active = True

    @property
    def is_active(self) -> bool:
        return self._active

    def shutdown(self) -> None:
        """Stop a running background pass after its current folder."""
        self._active = False

    def resume(self) -> None:
        """Allow background passes again after shutdown()."""
        self._active = True

    def reset_stuck_folders(self) -> int:
        """
        Move folders left in "indexing" back to "pending".

        Only a process that died mid-scan leaves that status behind, so this
        must run at startup before anything else starts indexing.
        """
        stuck = self._state.folders_with_status(FolderStatus.INDEXING)
        if not stuck:
            return 0

        logger.info(f"Found {len(stuck)} folders stuck in 'indexing', resetting...")
        for folder in stuck:
            updated = self._registry.update_status(folder.id, FolderStatus.PENDING)
            if updated is not None:
                self._state.put_folder(updated)
            logger.info(f"Reset folder {folder.folder_path} from 'indexing' to 'pending'")
        return len(stuck)

    def needs_indexing(self, folder: ProjectFolder, now: Optional[datetime] = None) -> bool:
        if folder.status in (FolderStatus.PENDING, FolderStatus.ERROR):
            return True
        if folder.status is FolderStatus.INDEXED:
            if folder.last_indexed_at is None:
                return True
            now = now or datetime.now()
            return now - folder.last_indexed_at > self.config.stale_after
        return False

    def select_folders(self, now: Optional[datetime] = None) -> List[ProjectFolder]:
        """Pending, errored and stale folders, oldest attachment first."""
        selected = [f for f in self._state.folders if self.needs_indexing(f, now)]
        return sorted(selected, key=lambda f: f.added_at)

    async def start_background_indexing(self) -> List[str]:
        """
        Index every selected folder, strictly one after another.

        Returns:
            Ids of the folders that were processed
        """
        folders = self.select_folders()
        logger.info(f"Background indexing: {len(folders)} folders to index")

        processed: List[str] = []
        for i, folder in enumerate(folders):
            if not self._active:
                logger.info("Background indexing cancelled")
                break

            # The folder may have been detached since selection
            if self._state.folder(folder.id) is None:
                continue

            logger.info(f"Background index {i + 1}/{len(folders)}: {folder.folder_path}")
            try:
                await self._orchestrator.start_indexing(folder.id)
            except Exception as e:
                logger.error(f"Background indexing failed for {folder.folder_path}: {e}")
            processed.append(folder.id)

            if i < len(folders) - 1:
                await asyncio.sleep(self.config.background_delay)

        if self._active:
            await self.ensure_watchers()

        logger.info("Background indexing complete")
        return processed

    async def ensure_watchers(self) -> None:
        """Start watchers for indexed folders that have none, e.g. after a failed start."""
        if self._watcher is None:
            return
        for folder in self._state.folders_with_status(FolderStatus.INDEXED):
            if self._watcher.is_watching(folder.id):
                continue
            try:
                await self._watcher.start_watching(folder.id)
            except WatchStartError as e:
                logger.warning(str(e))
