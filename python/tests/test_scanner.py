"""
Scanner Tests - Verify file system traversal behavior.

Tests:
- Basic file discovery with relative paths and stat metadata
- Skip pattern filtering (hidden files, node_modules, etc.)
- Project-type ignore patterns
- Cancellation and missing folders
"""

import asyncio
from pathlib import Path

import pytest

from filesync.errors import ScanAbortedError, ScanFailedError
from filesync.models import OperationPhase
from filesync.scanner import FolderScanner, IgnoreRules


class TestFolderScanner:
    """Tests for the default scanner."""

    @pytest.mark.asyncio
    async def test_finds_basic_files(self, sample_files, test_config):
        """Scanner finds regular files, including nested ones."""
        scanner = FolderScanner(test_config)
        files = await scanner.scan(str(sample_files["root"]), "op-1")

        paths = {f.full_path for f in files}
        assert str(sample_files["readme"]) in paths
        assert str(sample_files["cafe"]) in paths
        assert str(sample_files["nested"]) in paths

    @pytest.mark.asyncio
    async def test_descriptor_metadata(self, sample_files, test_config):
        scanner = FolderScanner(test_config)
        files = await scanner.scan(str(sample_files["root"]), "op-1")

        nested = next(f for f in files if f.file_name == "settings.ts")
        assert nested.relative_path == str(Path("src") / "config" / "settings.ts")
        assert nested.extension == ".ts"
        assert nested.size == len("export default {};")

    @pytest.mark.asyncio
    async def test_skips_hidden_files(self, sample_files, test_config):
        """Scanner skips hidden files (starting with .)."""
        scanner = FolderScanner(test_config)
        files = await scanner.scan(str(sample_files["root"]), "op-1")

        paths = {f.full_path for f in files}
        assert str(sample_files["hidden"]) not in paths

    @pytest.mark.asyncio
    async def test_skips_node_modules(self, sample_files, test_config):
        """Scanner skips node_modules directories."""
        scanner = FolderScanner(test_config)
        files = await scanner.scan(str(sample_files["root"]), "op-1")

        paths = {f.full_path for f in files}
        assert str(sample_files["node_modules"]) not in paths

    @pytest.mark.asyncio
    async def test_skips_common_patterns(self, sample_files, test_config):
        """Log files match the common ignore globs."""
        scanner = FolderScanner(test_config)
        files = await scanner.scan(str(sample_files["root"]), "op-1")

        assert str(sample_files["log"]) not in {f.full_path for f in files}
        assert len(files) == 3

    @pytest.mark.asyncio
    async def test_reports_progress(self, sample_files, test_config):
        """Progress starts with scanning and ends with complete."""
        scanner = FolderScanner(test_config)
        reports = []

        await scanner.scan(str(sample_files["root"]), "op-1", reports.append)

        assert reports[0].phase is OperationPhase.SCANNING
        assert reports[-1].phase is OperationPhase.COMPLETE
        assert reports[-1].current == 3
        indexing = [r for r in reports if r.phase is OperationPhase.INDEXING]
        assert [r.current for r in indexing] == [1, 2, 3]
        assert reports[-1].directories_scanned == 3  # root, src, src/config

    @pytest.mark.asyncio
    async def test_same_result_twice(self, sample_files, test_config):
        scanner = FolderScanner(test_config)

        first = await scanner.scan(str(sample_files["root"]), "op-1")
        second = await scanner.scan(str(sample_files["root"]), "op-2")

        assert sorted(f.full_path for f in first) == sorted(f.full_path for f in second)

    @pytest.mark.asyncio
    async def test_empty_folder(self, temp_dir, test_config):
        empty = temp_dir / "empty"
        empty.mkdir()

        files = await FolderScanner(test_config).scan(str(empty), "op-1")

        assert files == []


class TestProjectTypes:
    """Tests for marker detection and per-type ignore patterns."""

    @pytest.fixture
    def js_project(self, temp_dir):
        root = temp_dir / "web"
        (root / "bower_components" / "lib").mkdir(parents=True)
        (root / "bower_components" / "lib" / "lib.js").write_text("x")
        (root / "dist").mkdir()
        (root / "dist" / "bundle.js").write_text("x")
        (root / "package.json").write_text("{}")
        (root / "index.js").write_text("x")
        (root / "app.min.js").write_text("x")
        return root

    def test_detects_javascript(self, js_project, test_config):
        assert FolderScanner(test_config).detect_project_types(js_project) == ["javascript"]

    def test_detects_glob_marker(self, temp_dir, test_config):
        (temp_dir / "App.csproj").write_text("<Project/>")

        assert "dotnet" in FolderScanner(test_config).detect_project_types(temp_dir)

    @pytest.mark.asyncio
    async def test_applies_type_patterns(self, js_project, test_config):
        files = await FolderScanner(test_config).scan(str(js_project), "op-1")

        assert sorted(f.file_name for f in files) == ["index.js", "package.json"]

    @pytest.mark.asyncio
    async def test_type_patterns_need_marker(self, temp_dir, test_config):
        """bower_components is only ignored in a javascript project."""
        root = temp_dir / "plain"
        (root / "bower_components").mkdir(parents=True)
        (root / "bower_components" / "lib.js").write_text("x")

        files = await FolderScanner(test_config).scan(str(root), "op-1")

        assert [f.file_name for f in files] == ["lib.js"]

    def test_ignore_rules_globs(self, test_config):
        rules = IgnoreRules(test_config, ["python"])

        assert rules.skip_dir("mypkg.egg-info")
        assert rules.skip_dir("venv")
        assert rules.skip_file("module.pyc")
        assert not rules.skip_dir("src")
        assert not rules.skip_file("module.py")


class TestScanFailures:
    """Tests for cancellation and unreadable folders."""

    @pytest.mark.asyncio
    async def test_missing_folder(self, temp_dir, test_config):
        scanner = FolderScanner(test_config)
        reports = []

        with pytest.raises(ScanFailedError, match="Folder not found"):
            await scanner.scan(str(temp_dir / "gone"), "op-1", reports.append)

        assert reports[-1].phase is OperationPhase.ERROR
        assert not scanner.is_scanning("op-1")

    @pytest.mark.asyncio
    async def test_cancel_scan(self, temp_dir, test_config):
        """A cancelled scan raises ScanAbortedError at the next directory."""
        root = temp_dir / "big"
        for i in range(20):
            sub = root / f"dir_{i}"
            sub.mkdir(parents=True)
            (sub / "file.txt").write_text("x")

        scanner = FolderScanner(test_config)
        reports = []
        task = asyncio.create_task(scanner.scan(str(root), "op-1", reports.append))
        while not scanner.is_scanning("op-1"):
            await asyncio.sleep(0)

        assert await scanner.cancel_scan("op-1") is True

        with pytest.raises(ScanAbortedError):
            await task

        assert reports[-1].phase is OperationPhase.CANCELLED
        assert scanner.active_operations() == []

    @pytest.mark.asyncio
    async def test_cancel_unknown_operation(self, test_config):
        assert await FolderScanner(test_config).cancel_scan("nope") is False
