"""
Model Tests - Verify name normalization and value objects.

Tests:
- Diacritics-insensitive normalization
- Entry construction derives normalized names
- Operation progress merging
- Overall sync status
"""

from datetime import datetime
from pathlib import Path

from filesync.models import (
    FileDescriptor, FileIndexEntry, IndexingOperation, OperationPhase,
    ProjectFolder, ScanProgress, SyncStatus, file_extension, normalize_name,
)


class TestNormalizeName:
    """Tests for normalize_name."""

    def test_strips_diacritics(self):
        """Accented characters lose their marks."""
        assert normalize_name("Café.tsx") == "cafe.tsx"
        assert normalize_name("Ångström-Über") == "angstrom-uber"

    def test_case_folds(self):
        """Names are compared case-insensitively."""
        assert normalize_name("Config.TS") == "config.ts"

    def test_precomposed_and_decomposed_agree(self):
        """NFC and NFD spellings normalize to the same value."""
        assert normalize_name("caf\u00e9") == normalize_name("cafe\u0301") == "cafe"

    def test_is_deterministic(self):
        """Normalizing twice gives the same result."""
        once = normalize_name("Résumé Final.PDF")
        assert normalize_name(once) == once


class TestFileExtension:
    def test_lower_cases_with_dot(self):
        assert file_extension("Photo.JPG") == ".jpg"

    def test_no_extension(self):
        assert file_extension("Makefile") == ""

    def test_last_suffix_only(self):
        assert file_extension("archive.tar.gz") == ".gz"


class TestFileIndexEntry:
    """Tests for entry construction."""

    def test_create_derives_normalized_name(self):
        """create() computes normalized_name from file_name."""
        entry = FileIndexEntry.create(
            project_folder_id="f1",
            file_name="Café.tsx",
            full_path="/code/Café.tsx",
            relative_path="Café.tsx",
            extension=".tsx",
            size=12,
            modified_at=datetime(2024, 1, 1),
        )

        assert entry.normalized_name == "cafe.tsx"
        assert entry.project_folder_id == "f1"
        assert entry.id

    def test_from_descriptor(self, temp_dir):
        """Scanner descriptors convert into entries of the given folder."""
        path = temp_dir / "docs" / "Guide.md"
        descriptor = FileDescriptor.from_path(path, temp_dir, mtime=0.0, size=42)
        entry = FileIndexEntry.from_descriptor("folder-1", descriptor)

        assert entry.file_name == "Guide.md"
        assert entry.relative_path == str(Path("docs") / "Guide.md")
        assert entry.extension == ".md"
        assert entry.size == 42
        assert entry.normalized_name == "guide.md"

    def test_ids_are_unique(self):
        a = FileIndexEntry.create("f", "a.txt", "/a.txt", "a.txt", ".txt", 0, datetime.now())
        b = FileIndexEntry.create("f", "a.txt", "/a.txt", "a.txt", ".txt", 0, datetime.now())
        assert a.id != b.id


class TestProjectFolder:
    def test_create_is_pending(self):
        folder = ProjectFolder.create("/projects/p", "/code/app")
        assert folder.status.value == "pending"
        assert folder.file_count == 0
        assert folder.last_indexed_at is None

    def test_contains(self):
        folder = ProjectFolder.create("/projects/p", "/code/app")
        assert folder.contains("/code/app/src/main.py")
        assert not folder.contains("/code/application/main.py")


class TestIndexingOperation:
    def test_apply_merges_progress(self):
        """Optional fields only overwrite when the scanner reports them."""
        op = IndexingOperation(operation_id="op", folder_id="f")
        op.apply(ScanProgress(
            phase=OperationPhase.INDEXING, current=5, current_file="a.txt",
            directories_scanned=2, skipped=1,
        ))
        op.apply(ScanProgress(phase=OperationPhase.INDEXING, current=6, current_file="b.txt"))

        assert op.phase is OperationPhase.INDEXING
        assert op.current == 6
        assert op.current_file == "b.txt"
        assert op.directories_scanned == 2
        assert op.skipped == 1
        assert op.total is None


class TestSyncStatus:
    def test_up_to_date(self):
        assert SyncStatus(total=2, indexed=2).is_up_to_date
        assert not SyncStatus(total=2, indexed=1, pending=1).is_up_to_date
        assert not SyncStatus().is_up_to_date
