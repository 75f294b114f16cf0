"""
Unit tests for the directory entry walker.

Tests entry selection, ignore patterns, hidden entries, ordering,
metadata extraction and error handling of the EntryWalker class.
"""

import os
import tempfile
import shutil
from pathlib import Path
from unittest.mock import patch
import pytest

from profilekit.tools.fs_walker import EntryWalker, WalkerError
from profilekit.models.config import WalkerConfig
from profilekit.models.operations import EntryKind


class TestEntryWalker:
    """Test cases for the EntryWalker class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.test_root = Path(self.temp_dir)
        self._create_test_structure()
        self.walker = EntryWalker(WalkerConfig(ignore=["Thumbs.db", "cache/"]))

    def teardown_method(self):
        """Clean up test fixtures."""
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def _create_test_structure(self):
        """Create a directory with files, folders, hidden and ignored entries."""
        for name in ["b.JPG", "a.png", "C.txt", "Thumbs.db", ".hidden.jpg"]:
            (self.test_root / name).write_text(name, encoding='utf-8')
        (self.test_root / "chapter 1").mkdir()
        (self.test_root / "chapter 1" / "page.png").write_text("x", encoding='utf-8')
        (self.test_root / "cache").mkdir()
        (self.test_root / "cache" / "stale.png").write_text("x", encoding='utf-8')

    def _names(self, entries):
        return [entry.name for entry in entries]

    def test_list_files_sorted_by_name(self):
        """Test that files are listed case-insensitively by name."""
        entries = self.walker.list_entries(self.test_root)

        assert self._names(entries) == ["a.png", "b.JPG", "C.txt"]
        assert all(not entry.is_dir for entry in entries)

    def test_list_directories(self):
        """Test selecting directories only; ignored folders are excluded."""
        entries = self.walker.list_entries(self.test_root, kind=EntryKind.DIRECTORIES)

        assert self._names(entries) == ["chapter 1"]
        assert entries[0].is_dir
        assert entries[0].suffix == ''
        assert entries[0].metadata.size == 0

    def test_list_all(self):
        """Test selecting files and directories together."""
        entries = self.walker.list_entries(self.test_root, kind=EntryKind.ALL)

        assert self._names(entries) == ["a.png", "b.JPG", "C.txt", "chapter 1"]

    def test_extension_filter(self):
        """Test case-insensitive extension filtering."""
        entries = self.walker.list_entries(self.test_root, extensions=["jpg", ".PNG"])

        assert self._names(entries) == ["a.png", "b.JPG"]
        assert entries[1].metadata.extension == ".jpg"

    def test_pattern_filter(self):
        """Test regex filtering on entry names."""
        entries = self.walker.list_entries(self.test_root, patterns=[r"^[ab]\."])

        assert self._names(entries) == ["a.png", "b.JPG"]

    def test_invalid_pattern_is_dropped(self):
        """Test that an invalid regex is logged and ignored."""
        entries = self.walker.list_entries(self.test_root, patterns=["[unclosed", r"\.txt$"])

        assert self._names(entries) == ["C.txt"]
        assert self.walker.get_stats()['errors'] == 1

    def test_hidden_entries(self):
        """Test that hidden entries are listed only when enabled."""
        walker = EntryWalker(WalkerConfig(include_hidden=True, ignore=[]))

        names = self._names(walker.list_entries(self.test_root))

        assert ".hidden.jpg" in names
        assert "Thumbs.db" in names

    def test_recursive_listing(self):
        """Test descending into non-ignored subdirectories."""
        entries = self.walker.list_entries(self.test_root, extensions=[".png"], recursive=True)

        paths = [Path(entry.path).relative_to(self.test_root.resolve()).as_posix() for entry in entries]
        assert paths == ["a.png", "chapter 1/page.png"]

    def test_iter_subdirectories(self):
        """Test the subdirectory iterator."""
        subdirs = list(self.walker.iter_subdirectories(self.test_root))

        assert subdirs == [self.test_root.resolve() / "chapter 1"]

    def test_missing_directory(self):
        """Test listing a directory that does not exist."""
        with pytest.raises(WalkerError, match="does not exist"):
            self.walker.list_entries(self.test_root / "missing")

    def test_not_a_directory(self):
        """Test listing a file."""
        with pytest.raises(WalkerError, match="not a directory"):
            self.walker.list_entries(self.test_root / "a.png")

    def test_max_entries_limit(self):
        """Test that listing stops at the configured limit."""
        walker = EntryWalker(WalkerConfig(max_entries=2))

        entries = walker.list_entries(self.test_root, kind=EntryKind.ALL)

        assert len(entries) == 2

    def test_stats(self):
        """Test statistics counters and reset."""
        self.walker.list_entries(self.test_root)
        stats = self.walker.get_stats()

        assert stats['entries_matched'] == 3
        assert stats['entries_ignored'] == 3
        assert stats['directories_traversed'] == 1

        self.walker.reset_stats()
        assert self.walker.get_stats()['entries_matched'] == 0

    def test_scandir_error(self):
        """Test that an unreadable directory yields nothing."""
        with patch('os.scandir', side_effect=PermissionError("denied")):
            entries = self.walker.list_entries(self.test_root)

        assert entries == []
        assert self.walker.get_stats()['errors'] == 1
