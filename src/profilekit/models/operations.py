"""
Operation data models for profilekit.

This module defines the data structures shared by the batch commands:
directory entries returned by the walker, planned rename operations,
reports of what was actually done, and installer step results.
"""

from typing import Dict, List, Optional, Any
from datetime import datetime
from pathlib import Path
from enum import Enum
from pydantic import BaseModel, Field, field_validator, model_validator


class EntryKind(Enum):
    """Kinds of directory entries the walker can select."""
    FILES = "files"
    DIRECTORIES = "directories"
    ALL = "all"


class OperationStatus(Enum):
    """Outcome of a single planned operation."""
    PENDING = "pending"
    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"


class StepStatus(Enum):
    """Outcome of an installer step."""
    OK = "ok"
    SKIPPED = "skipped"
    WARNING = "warning"
    FATAL = "fatal"


class EntryMetadata(BaseModel):
    """
    Filesystem metadata of a listed entry.

    Attributes:
        size: Entry size in bytes (0 for directories)
        modified_time: Last modification timestamp
        extension: Lowercase extension including the dot (files only)
    """

    size: int = Field(0, ge=0, description="Entry size in bytes")
    modified_time: datetime = Field(..., description="Last modification timestamp")
    extension: Optional[str] = Field(None, description="Lowercase file extension")

    @field_validator('extension')
    @classmethod
    def validate_extension(cls, v: Optional[str]) -> Optional[str]:
        """Normalize extension to include leading dot."""
        if not v:
            return None
        if not v.startswith('.'):
            return '.' + v.lower()
        return v.lower()

    def to_dict(self) -> Dict[str, Any]:
        """Convert metadata to dictionary representation."""
        data = self.model_dump()
        data['modified_time'] = self.modified_time.isoformat()
        return data


class EntryMatch(BaseModel):
    """
    A directory entry selected by the walker.

    Attributes:
        path: Absolute path of the entry
        is_dir: Whether the entry is a directory
        metadata: Entry metadata
    """

    path: str = Field(..., min_length=1, description="Absolute path of the entry")
    is_dir: bool = Field(False, description="Whether the entry is a directory")
    metadata: Optional[EntryMetadata] = Field(None, description="Entry metadata")

    @property
    def name(self) -> str:
        """Entry name without its directory."""
        return Path(self.path).name

    @property
    def suffix(self) -> str:
        """Extension as written on disk ('' for directories)."""
        return '' if self.is_dir else Path(self.path).suffix

    def to_dict(self) -> Dict[str, Any]:
        """Convert entry to dictionary representation."""
        data = self.model_dump()
        data['name'] = self.name
        if self.metadata:
            data['metadata'] = self.metadata.to_dict()
        return data

    def __str__(self) -> str:
        kind = "dir" if self.is_dir else "file"
        return f"{self.name} ({kind})"


class RenameOperation(BaseModel):
    """
    A single planned move of an entry to a new name.

    Attributes:
        source: Current absolute path
        target: Absolute path after the rename
        status: Outcome of the operation
        reason: Why the operation was skipped or failed
    """

    source: str = Field(..., min_length=1, description="Current absolute path")
    target: str = Field(..., min_length=1, description="Absolute path after the rename")
    status: OperationStatus = Field(OperationStatus.PENDING, description="Outcome of the operation")
    reason: Optional[str] = Field(None, description="Why the operation was skipped or failed")

    @property
    def source_name(self) -> str:
        return Path(self.source).name

    @property
    def target_name(self) -> str:
        return Path(self.target).name

    def is_noop(self) -> bool:
        """Check if source and target are the same path."""
        return Path(self.source) == Path(self.target)

    def mark(self, status: OperationStatus, reason: Optional[str] = None) -> None:
        """Record the outcome of this operation."""
        self.status = status
        self.reason = reason

    def to_dict(self) -> Dict[str, Any]:
        """Convert operation to dictionary representation."""
        data = self.model_dump()
        data['status'] = self.status.value
        return data

    def __str__(self) -> str:
        text = f"{self.source_name} -> {self.target_name}"
        if self.reason:
            text += f" ({self.reason})"
        return text


class RenamePlan(BaseModel):
    """
    An ordered set of rename operations inside one directory.

    Attributes:
        directory: Directory containing the entries
        operations: Planned operations, in assignment order
        width: Zero-padding width used for generated indices (if any)
    """

    directory: str = Field(..., min_length=1, description="Directory containing the entries")
    operations: List[RenameOperation] = Field(default_factory=list, description="Planned operations")
    width: Optional[int] = Field(None, gt=0, description="Zero-padding width of generated indices")

    @model_validator(mode='after')
    def validate_unique_targets(self):
        """Reject plans where two pending operations share a target."""
        seen = set()
        for op in self.operations:
            if op.status != OperationStatus.PENDING:
                continue
            key = str(Path(op.target)).casefold()
            if key in seen:
                raise ValueError(f"Duplicate rename target: {op.target}")
            seen.add(key)
        return self

    def is_empty(self) -> bool:
        return not self.operations

    def pending(self) -> List[RenameOperation]:
        """Operations that still have to be performed."""
        return [op for op in self.operations if op.status == OperationStatus.PENDING]

    def skipped(self) -> List[RenameOperation]:
        return [op for op in self.operations if op.status == OperationStatus.SKIPPED]

    def to_dict(self) -> Dict[str, Any]:
        """Convert plan to dictionary representation."""
        return {
            'directory': self.directory,
            'width': self.width,
            'operations': [op.to_dict() for op in self.operations],
        }

    def __str__(self) -> str:
        lines = [f"{self.directory}: {len(self.pending())} rename(s), {len(self.skipped())} skipped"]
        lines.extend(f"  {op}" for op in self.operations)
        return "\n".join(lines)


class OperationReport(BaseModel):
    """
    Result of executing a batch operation.

    Attributes:
        operations: Operations with their final status
        dry_run: Whether nothing was touched on disk
        execution_time: Time taken in seconds
        timestamp: When the operation ran
        errors: Errors that did not stop the batch
    """

    operations: List[RenameOperation] = Field(default_factory=list, description="Operations with their status")
    dry_run: bool = Field(False, description="Whether nothing was touched on disk")
    execution_time: float = Field(0.0, ge=0.0, description="Time taken in seconds")
    timestamp: datetime = Field(default_factory=datetime.now, description="When the operation ran")
    errors: List[str] = Field(default_factory=list, description="Errors that did not stop the batch")

    def count(self, status: OperationStatus) -> int:
        return sum(1 for op in self.operations if op.status == status)

    def has_errors(self) -> bool:
        """Check if any operation failed or an error was recorded."""
        return bool(self.errors) or self.count(OperationStatus.FAILED) > 0

    def add_error(self, error: str) -> None:
        self.errors.append(error)

    def to_dict(self) -> Dict[str, Any]:
        """Convert report to dictionary representation."""
        return {
            'operations': [op.to_dict() for op in self.operations],
            'dry_run': self.dry_run,
            'execution_time': self.execution_time,
            'timestamp': self.timestamp.isoformat(),
            'errors': list(self.errors),
            'done': self.count(OperationStatus.DONE),
            'skipped': self.count(OperationStatus.SKIPPED),
            'failed': self.count(OperationStatus.FAILED),
        }

    def __str__(self) -> str:
        if self.dry_run:
            parts = [f"Planned {self.count(OperationStatus.PENDING)} rename(s)"]
        else:
            parts = [f"Renamed {self.count(OperationStatus.DONE)}"]
        parts.append(f"Skipped {self.count(OperationStatus.SKIPPED)}")
        if self.has_errors():
            parts.append(f"Failed {self.count(OperationStatus.FAILED)}")
        parts.append(f"Took {self.execution_time:.2f}s")
        return " | ".join(parts)


class StepResult(BaseModel):
    """
    Outcome of one installer step.

    Attributes:
        name: Step name
        status: Step outcome
        message: Human-readable detail
    """

    name: str = Field(..., min_length=1, description="Step name")
    status: StepStatus = Field(..., description="Step outcome")
    message: str = Field("", description="Human-readable detail")

    def __str__(self) -> str:
        text = f"[{self.status.value}] {self.name}"
        if self.message:
            text += f": {self.message}"
        return text


class InstallReport(BaseModel):
    """
    Results of an installer run.

    Attributes:
        steps: Step results in execution order
    """

    steps: List[StepResult] = Field(default_factory=list, description="Step results in execution order")

    def add(self, name: str, status: StepStatus, message: str = "") -> StepResult:
        """Record a step result and return it."""
        result = StepResult(name=name, status=status, message=message)
        self.steps.append(result)
        return result

    @property
    def has_fatal(self) -> bool:
        return any(step.status == StepStatus.FATAL for step in self.steps)

    @property
    def warnings(self) -> List[StepResult]:
        return [step for step in self.steps if step.status == StepStatus.WARNING]

    @property
    def exit_code(self) -> int:
        """Process exit code: 1 after a fatal step, otherwise 0."""
        return 1 if self.has_fatal else 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'steps': [{'name': s.name, 'status': s.status.value, 'message': s.message} for s in self.steps],
            'exit_code': self.exit_code,
        }

    def __str__(self) -> str:
        return "\n".join(str(step) for step in self.steps)
