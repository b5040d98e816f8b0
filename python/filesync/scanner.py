"""
Scanner - Cancellable file system traversal for one attached folder.

Detects the folder's project types from marker files, combines the matching
ignore patterns and walks the tree with os.scandir, reporting progress as it
goes. Only stat() metadata is collected; file contents are never read.
"""

import asyncio
import fnmatch
import logging
import os
import time
from pathlib import Path
from typing import Dict, List, Optional, Set

from .config import get_config, SyncConfig
from .errors import ErrorAction, ScanAbortedError, ScanFailedError, handle_error
from .host import ScanProgressCallback
from .models import FileDescriptor, OperationPhase, ScanProgress


logger = logging.getLogger(__name__)


class IgnoreRules:
    """Directory and file name rules for one scan."""

    def __init__(self, config: SyncConfig, project_types: List[str]):
        self.skip_dirs: Set[str] = set(config.skip_dirs)
        self.skip_files: Set[str] = set(config.skip_files)
        self.dir_globs: List[str] = []
        self.file_globs: List[str] = []

        for group in ["common", *project_types]:
            patterns = config.ignore_patterns.get(group, {})
            self.dir_globs.extend(patterns.get("dirs", []))
            self.file_globs.extend(patterns.get("files", []))

    def skip_dir(self, name: str) -> bool:
        if name.startswith(".") or name in self.skip_dirs:
            return True
        return any(fnmatch.fnmatchcase(name, p) for p in self.dir_globs)

    def skip_file(self, name: str) -> bool:
        if name.startswith(".") or name in self.skip_files:
            return True
        return any(fnmatch.fnmatchcase(name, p) for p in self.file_globs)


class _ScanState:
    def __init__(self):
        self.files: List[FileDescriptor] = []
        self.directories_scanned = 0
        self.skipped = 0


class FolderScanner:
    """
    Default scanner implementation.

    Each scan registers a cancel flag under its operation id; cancel_scan()
    sets it and the walk raises ScanAbortedError at the next entry.
    """

    def __init__(self, config: SyncConfig | None = None):
        self.config = config or get_config()
        self._cancel_flags: Dict[str, asyncio.Event] = {}

    async def scan(
        self,
        folder_path: str,
        operation_id: str,
        on_progress: Optional[ScanProgressCallback] = None,
    ) -> List[FileDescriptor]:
        """
        Scan a folder and return every file that isn't ignored.

        Raises:
            ScanAbortedError: cancel_scan() was called for operation_id
            ScanFailedError: the folder doesn't exist or can't be read
        """
        root = Path(folder_path).expanduser()
        cancel = asyncio.Event()
        self._cancel_flags[operation_id] = cancel
        state = _ScanState()
        start_time = time.monotonic()

        def report(progress: ScanProgress):
            if on_progress:
                on_progress(progress)

        try:
            report(ScanProgress(phase=OperationPhase.SCANNING, current=0, total=0))

            if not root.is_dir():
                raise ScanFailedError(f"Folder not found: {root}")

            project_types = self.detect_project_types(root)
            if project_types:
                logger.debug(f"Detected project types for {root}: {', '.join(project_types)}")
            rules = IgnoreRules(self.config, project_types)

            await self._walk(root, root, rules, state, cancel, report)

            report(ScanProgress(
                phase=OperationPhase.COMPLETE,
                current=len(state.files),
                total=len(state.files),
                directories_scanned=state.directories_scanned,
                skipped=state.skipped,
            ))
            logger.info(
                f"Scanned {len(state.files)} files in {state.directories_scanned} directories "
                f"({state.skipped} skipped) in {time.monotonic() - start_time:.1f}s"
            )
            return state.files

        except ScanAbortedError:
            report(ScanProgress(phase=OperationPhase.CANCELLED))
            logger.info(f"Scan cancelled: {root}")
            raise
        except Exception as e:
            report(ScanProgress(phase=OperationPhase.ERROR, error=str(e)))
            if isinstance(e, ScanFailedError):
                raise
            raise ScanFailedError(str(e)) from e
        finally:
            self._cancel_flags.pop(operation_id, None)

    async def _walk(
        self,
        directory: Path,
        root: Path,
        rules: IgnoreRules,
        state: _ScanState,
        cancel: asyncio.Event,
        report: ScanProgressCallback,
    ) -> None:
        """Depth-first walk; yields to the event loop after each directory."""
        if cancel.is_set():
            raise ScanAbortedError()

        try:
            with os.scandir(directory) as it:
                entries = list(it)
        except OSError as e:
            if directory == root:
                raise ScanFailedError(f"Cannot read folder {root}: {e}") from e
            state.skipped += 1
            if handle_error(e, directory, "scan_directory") is ErrorAction.ABORT:
                raise
            return

        state.directories_scanned += 1
        subdirs: List[Path] = []

        for entry in entries:
            if cancel.is_set():
                raise ScanAbortedError()

            try:
                if entry.is_dir(follow_symlinks=False):
                    if not rules.skip_dir(entry.name):
                        subdirs.append(Path(entry.path))

                elif entry.is_file(follow_symlinks=False):
                    if rules.skip_file(entry.name):
                        continue

                    stat = entry.stat(follow_symlinks=False)
                    descriptor = FileDescriptor.from_path(
                        Path(entry.path), root, stat.st_mtime, stat.st_size
                    )
                    state.files.append(descriptor)
                    report(ScanProgress(
                        phase=OperationPhase.INDEXING,
                        current=len(state.files),
                        current_file=descriptor.relative_path,
                        directories_scanned=state.directories_scanned,
                        skipped=state.skipped,
                    ))

            except OSError as e:
                state.skipped += 1
                if handle_error(e, Path(entry.path), "scan_entry") is ErrorAction.ABORT:
                    raise

        await asyncio.sleep(0)

        for subdir in subdirs:
            await self._walk(subdir, root, rules, state, cancel, report)

    def detect_project_types(self, root: Path) -> List[str]:
        """Project types whose marker files exist directly in root."""
        try:
            names = set(os.listdir(root))
        except OSError as e:
            handle_error(e, root, "detect_project_types")
            return []

        types = []
        for project_type, markers in self.config.project_markers.items():
            for marker in markers:
                if any(ch in marker for ch in "*?["):
                    matched = any(fnmatch.fnmatchcase(n, marker) for n in names)
                else:
                    matched = marker in names
                if matched:
                    types.append(project_type)
                    break
        return types

    async def cancel_scan(self, operation_id: str) -> bool:
        cancel = self._cancel_flags.get(operation_id)
        if cancel is None:
            return False
        cancel.set()
        return True

    def is_scanning(self, operation_id: str) -> bool:
        return operation_id in self._cancel_flags

    def active_operations(self) -> List[str]:
        return list(self._cancel_flags.keys())
