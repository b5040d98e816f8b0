"""
Test Configuration - Shared fixtures for file sync tests.

Uses pytest fixtures to create isolated test environments. The scanner and
watch service are replaced by in-process fakes unless a test needs the real
filesystem.
"""

import asyncio
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Generator

import pytest

from filesync.config import SyncConfig, set_config
from filesync.db import Database
from filesync.errors import ScanAbortedError
from filesync.index_store import IndexStore
from filesync.models import FileDescriptor, OperationPhase, ScanProgress, WatchOptions, file_extension
from filesync.registry import FolderRegistry
from filesync.sync import FileSync


def make_descriptor(folder_path: str, relative_path: str, size: int = 10) -> FileDescriptor:
    full = Path(folder_path) / relative_path
    return FileDescriptor(
        file_name=full.name,
        full_path=str(full),
        relative_path=relative_path,
        extension=file_extension(full.name),
        size=size,
        modified_at=datetime(2024, 1, 1, 12, 0),
    )


class FakeScanner:
    """Returns canned descriptors per folder path, or raises a canned error."""

    def __init__(self):
        self.results = {}
        self.calls = []
        self.cancelled = []
        self.gate: asyncio.Event | None = None
        self.started = asyncio.Event()

    async def scan(self, folder_path, operation_id, on_progress=None):
        self.calls.append((folder_path, operation_id))
        if on_progress:
            on_progress(ScanProgress(phase=OperationPhase.SCANNING))
        self.started.set()

        if self.gate is not None:
            await self.gate.wait()
        if operation_id in self.cancelled:
            raise ScanAbortedError(operation_id)

        result = self.results.get(folder_path, [])
        if isinstance(result, Exception):
            raise result

        for i, descriptor in enumerate(result):
            if on_progress:
                on_progress(ScanProgress(
                    phase=OperationPhase.INDEXING,
                    current=i + 1,
                    current_file=descriptor.relative_path,
                    directories_scanned=1,
                    skipped=0,
                ))
        return list(result)

    async def cancel_scan(self, operation_id):
        self.cancelled.append(operation_id)
        return True


class FakeWatchService:
    """Records subscriptions and hands out sequential handles."""

    def __init__(self):
        self.subscriptions = {}
        self.unwatched = []
        self.fail_with: Exception | None = None
        self._next = 0

    async def watch(self, path: str, options: WatchOptions, callback) -> str:
        if self.fail_with is not None:
            raise self.fail_with
        self._next += 1
        handle = f"watch-{self._next}"
        self.subscriptions[handle] = (path, options, callback)
        return handle

    async def unwatch(self, handle: str) -> bool:
        self.unwatched.append(handle)
        return self.subscriptions.pop(handle, None) is not None


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    tmp = tempfile.mkdtemp(prefix="filesync_test_")
    # Resolve to handle macOS /var -> /private/var symlink
    resolved = Path(tmp).resolve()
    yield resolved
    shutil.rmtree(str(resolved), ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> SyncConfig:
    """Create an isolated test configuration."""
    config = SyncConfig(
        db_path=temp_dir / "test.db",
        batch_size=10,
        background_delay_ms=0,
    )
    set_config(config)
    return config


@pytest.fixture
def database(test_config: SyncConfig) -> Generator[Database, None, None]:
    db = Database(":memory:", test_config)
    yield db
    db.close()


@pytest.fixture
def registry(database: Database) -> FolderRegistry:
    return FolderRegistry(database)


@pytest.fixture
def index_store(database: Database, test_config: SyncConfig) -> IndexStore:
    return IndexStore(database, test_config)


@pytest.fixture
def fake_scanner() -> FakeScanner:
    return FakeScanner()


@pytest.fixture
def fake_watch() -> FakeWatchService:
    return FakeWatchService()


@pytest.fixture
def sync(test_config, database, fake_scanner, fake_watch) -> FileSync:
    return FileSync(test_config, database=database, scanner=fake_scanner, watch_service=fake_watch)


@pytest.fixture
def sample_files(temp_dir: Path) -> dict[str, Path]:
    """Create a small project tree for testing."""
    root = temp_dir / "project"
    root.mkdir()
    files = {"root": root}

    readme = root / "README.md"
    readme.write_text("# Sample project")
    files["readme"] = readme

    cafe = root / "Café.tsx"
    cafe.write_text("export const Cafe = () => null;")
    files["cafe"] = cafe

    nested_dir = root / "src" / "config"
    nested_dir.mkdir(parents=True)
    nested = nested_dir / "settings.ts"
    nested.write_text("export default {};")
    files["nested"] = nested

    # Hidden file (should be skipped)
    hidden = root / ".hidden"
    hidden.write_text("This should be skipped.")
    files["hidden"] = hidden

    # Node modules dir (should be skipped)
    node_modules = root / "node_modules"
    node_modules.mkdir()
    (node_modules / "index.js").write_text("module.exports = {};")
    files["node_modules"] = node_modules / "index.js"

    # Log file (skipped by the common patterns)
    log = root / "debug.log"
    log.write_text("log line")
    files["log"] = log

    return files
