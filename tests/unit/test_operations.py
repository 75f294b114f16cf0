"""
Unit tests for operation data models.

Tests entries, rename operations and plans, operation reports and
installer reports.
"""

import pytest
from datetime import datetime
from pydantic import ValidationError

from profilekit.models.operations import (
    EntryMatch,
    EntryMetadata,
    InstallReport,
    OperationReport,
    OperationStatus,
    RenameOperation,
    RenamePlan,
    StepStatus,
)


class TestEntryMatch:
    """Test cases for EntryMatch and EntryMetadata."""

    def test_extension_normalization(self):
        """Test that extensions are lowercased with a leading dot."""
        assert EntryMetadata(modified_time=datetime.now(), extension="JPG").extension == ".jpg"
        assert EntryMetadata(modified_time=datetime.now(), extension="").extension is None

    def test_name_and_suffix(self):
        """Test derived name and suffix."""
        file_entry = EntryMatch(path="/data/Page 01.PNG")
        dir_entry = EntryMatch(path="/data/vol.2", is_dir=True)

        assert file_entry.name == "Page 01.PNG"
        assert file_entry.suffix == ".PNG"
        assert dir_entry.suffix == ""
        assert str(dir_entry) == "vol.2 (dir)"

    def test_to_dict(self):
        """Test dictionary conversion."""
        entry = EntryMatch(path="/data/a.jpg",
                           metadata=EntryMetadata(size=3, modified_time=datetime(2024, 1, 2), extension=".jpg"))

        data = entry.to_dict()

        assert data["name"] == "a.jpg"
        assert data["metadata"]["modified_time"] == "2024-01-02T00:00:00"


class TestRenamePlan:
    """Test cases for RenameOperation and RenamePlan."""

    def test_operation(self):
        """Test operation helpers."""
        op = RenameOperation(source="/d/a.jpg", target="/d/1.jpg")

        assert not op.is_noop()
        assert str(op) == "a.jpg -> 1.jpg"
        op.mark(OperationStatus.SKIPPED, "already named")
        assert str(op) == "a.jpg -> 1.jpg (already named)"
        assert op.to_dict()["status"] == "skipped"

    def test_duplicate_pending_targets_rejected(self):
        """Test that two pending operations cannot share a target."""
        with pytest.raises(ValidationError, match="Duplicate rename target"):
            RenamePlan(directory="/d", operations=[
                RenameOperation(source="/d/a.jpg", target="/d/1.jpg"),
                RenameOperation(source="/d/b.jpg", target="/d/1.JPG"),
            ])

    def test_skipped_duplicates_allowed(self):
        """Test that skipped operations are not counted as duplicates."""
        plan = RenamePlan(directory="/d", operations=[
            RenameOperation(source="/d/a.jpg", target="/d/1.jpg"),
            RenameOperation(source="/d/b.jpg", target="/d/1.jpg", status=OperationStatus.SKIPPED),
        ])

        assert len(plan.pending()) == 1
        assert len(plan.skipped()) == 1
        assert str(plan).splitlines()[0] == "/d: 1 rename(s), 1 skipped"

    def test_same_name_in_different_directories(self):
        """Test that equal names in different folders are distinct targets."""
        plan = RenamePlan(directory="/d", operations=[
            RenameOperation(source="/d/x/a.mkv", target="/d/x/Show.mkv"),
            RenameOperation(source="/d/y/a.mkv", target="/d/y/Show.mkv"),
        ])

        assert len(plan.pending()) == 2
        assert not plan.is_empty()


class TestReports:
    """Test cases for OperationReport and InstallReport."""

    def test_operation_report(self):
        """Test counts, errors and summary."""
        done = RenameOperation(source="/d/a", target="/d/1", status=OperationStatus.DONE)
        failed = RenameOperation(source="/d/b", target="/d/2", status=OperationStatus.FAILED)
        report = OperationReport(operations=[done, failed], execution_time=0.5)

        assert report.count(OperationStatus.DONE) == 1
        assert report.has_errors()
        assert str(report) == "Renamed 1 | Skipped 0 | Failed 1 | Took 0.50s"
        assert report.to_dict()["failed"] == 1

    def test_dry_run_summary(self):
        """Test the dry-run summary."""
        report = OperationReport(operations=[RenameOperation(source="/d/a", target="/d/1")], dry_run=True)

        assert str(report).startswith("Planned 1 rename(s)")
        assert not report.has_errors()

    def test_install_report(self):
        """Test warnings, fatal detection and exit code."""
        report = InstallReport()
        report.add("admin", StepStatus.OK)
        report.add("font:CascadiaCode", StepStatus.WARNING, "download failed")

        assert report.exit_code == 0
        assert [str(w) for w in report.warnings] == ["[warning] font:CascadiaCode: download failed"]

        report.add("internet", StepStatus.FATAL)
        assert report.has_fatal
        assert report.to_dict()["exit_code"] == 1
