"""
Sequential renumbering of directory entries.

Entries matching a filter are ordered by their numeric prefix (names without
one come last), given consecutive indices, and renamed to zero-padded names
such as ``001.jpg``, ``002.jpg``. Renames go through a staging directory:
every entry is first moved into a fresh temporary folder under its final
name and then moved back, so a final name can never clobber an entry that
has not been renamed yet.
"""

import os
import time
import tempfile
from pathlib import Path
from typing import List, Optional, Tuple, Union
import logging

from ..models.config import RenumberConfig
from ..models.operations import (
    EntryKind,
    EntryMatch,
    OperationReport,
    OperationStatus,
    RenameOperation,
    RenamePlan,
)
from .fs_walker import EntryWalker
from .natural_sort import renumber_sort_key


logger = logging.getLogger(__name__)


class RenumberError(Exception):
    """Raised when a renumbering plan cannot be built or applied."""
    pass


class RenameConflictError(RenumberError):
    """Raised when a target name is held by an entry outside the renumbered set."""
    pass


def compute_width(start: int, count: int, padding: Optional[int] = None) -> int:
    """
    Get the zero-padding width for a run of indices.

    Args:
        start: First index
        count: Number of indices
        padding: Requested width; None selects the width of the last index

    Returns:
        The padding width

    Raises:
        RenumberError: If the requested width cannot hold the last index
    """
    last = start + max(count, 1) - 1
    needed = len(str(last))
    if padding is None:
        return needed
    if padding < needed:
        raise RenumberError(f"Padding {padding} is too small for index {last} (needs {needed} digits)")
    return padding


def format_index_name(index: int, width: int, prefix: str = "", suffix: str = "") -> str:
    """Build a zero-padded entry name, e.g. format_index_name(7, 3, suffix='.jpg') -> '007.jpg'."""
    return f"{prefix}{index:0{width}d}{suffix}"


def order_entries(entries: List[EntryMatch]) -> List[EntryMatch]:
    """
    Order entries for renumbering.

    The sort is stable, so entries with the same numeric prefix keep the
    walker's name order.
    """
    return sorted(entries, key=lambda entry: renumber_sort_key(entry.name))


def plan_renumber(
    directory: Union[str, Path],
    config: Optional[RenumberConfig] = None,
    walker: Optional[EntryWalker] = None,
    kind: EntryKind = EntryKind.FILES,
    extensions: Optional[List[str]] = None,
    pattern: Optional[str] = None,
    start: Optional[int] = None,
    padding: Optional[int] = None,
    prefix: Optional[str] = None,
) -> RenamePlan:
    """
    Build the renumbering plan for a directory.

    Arguments left as None fall back to the configuration.

    Args:
        directory: Directory whose entries are renumbered
        config: Renumbering defaults
        walker: Entry walker used for listing
        kind: Entry kinds to renumber
        extensions: Extensions to select (files only)
        pattern: Regex the entry names must match
        start: First index
        padding: Zero-padding width
        prefix: Text placed before each index

    Returns:
        RenamePlan in index order

    Raises:
        RenumberError: If the padding cannot hold the last index
        WalkerError: If the directory cannot be listed
    """
    config = config or RenumberConfig()
    walker = walker or EntryWalker()
    start = config.start if start is None else start
    padding = config.padding if padding is None else padding
    prefix = config.prefix if prefix is None else prefix
    if extensions is None:
        extensions = config.extensions

    if start < 0:
        raise RenumberError(f"Start index must not be negative: {start}")
    if any(sep in prefix for sep in ('/', '\\')):
        raise RenumberError(f"Prefix must not contain path separators: {prefix}")

    root = Path(directory).expanduser().resolve()
    entries = walker.list_entries(
        root,
        kind=kind,
        extensions=extensions,
        patterns=[pattern] if pattern else None,
    )
    ordered = order_entries(entries)
    width = compute_width(start, len(ordered), padding)

    operations = []
    for index, entry in enumerate(ordered, start):
        source = Path(entry.path)
        target = source.with_name(format_index_name(index, width, prefix, entry.suffix))
        operation = RenameOperation(source=str(source), target=str(target))
        if operation.is_noop():
            operation.mark(OperationStatus.SKIPPED, "already named")
        operations.append(operation)

    logger.debug(f"Planned {len(operations)} renumber operation(s) in {root} with width {width}")
    return RenamePlan(directory=str(root), operations=operations, width=width)


def _stat_key(path: Path) -> Tuple[int, int]:
    st = path.stat()
    return (st.st_dev, st.st_ino)


def find_conflicts(plan: RenamePlan) -> List[RenameOperation]:
    """
    Find pending operations whose target is held by an entry outside the plan.

    Returns:
        Conflicting operations (empty when the plan can be applied)
    """
    selected = set()
    for op in plan.operations:
        try:
            selected.add(_stat_key(Path(op.source)))
        except OSError:
            continue

    conflicts = []
    for op in plan.pending():
        target = Path(op.target)
        if not os.path.lexists(target):
            continue
        try:
            if _stat_key(target) in selected:
                continue
        except OSError:
            pass
        conflicts.append(op)
    return conflicts


def apply_renumber(plan: RenamePlan, staging_prefix: str = ".renumber-") -> OperationReport:
    """
    Apply a renumbering plan through a staging directory.

    An empty plan is a no-op. If any move fails, the moves already made are
    undone in reverse order before the error is raised.

    Args:
        plan: Plan from plan_renumber
        staging_prefix: Name prefix of the temporary staging directory

    Returns:
        OperationReport with the final status of every operation

    Raises:
        RenameConflictError: If a target name belongs to an unselected entry
        RenumberError: If a move fails
    """
    started = time.time()
    report = OperationReport(operations=plan.operations)
    pending = plan.pending()
    if not pending:
        logger.info(f"Nothing to renumber in {plan.directory}")
        report.execution_time = time.time() - started
        return report

    conflicts = find_conflicts(plan)
    if conflicts:
        names = ', '.join(op.target_name for op in conflicts)
        raise RenameConflictError(f"Target names already used by other entries in {plan.directory}: {names}")

    directory = Path(plan.directory)
    staging = Path(tempfile.mkdtemp(prefix=staging_prefix, dir=directory))
    logger.debug(f"Staging renames through {staging}")
    journal: List[Tuple[Path, Path]] = []

    try:
        for op in pending:
            staged = staging / op.target_name
            os.rename(op.source, staged)
            journal.append((Path(op.source), staged))

        for op in pending:
            staged = staging / op.target_name
            target = Path(op.target)
            if os.path.lexists(target):
                raise FileExistsError(f"Target appeared during renumbering: {target}")
            os.rename(staged, target)
            journal.append((staged, target))
    except OSError as e:
        logger.error(f"Renumbering failed in {directory}: {e}")
        _rollback(journal)
        for op in pending:
            op.mark(OperationStatus.FAILED, str(e))
        raise RenumberError(f"Renumbering failed in {directory}: {e}") from e
    finally:
        try:
            staging.rmdir()
        except OSError:
            logger.warning(f"Staging directory left in place: {staging}")

    for op in pending:
        op.mark(OperationStatus.DONE)
        logger.debug(f"Renamed {op.source_name} -> {op.target_name}")

    report.execution_time = time.time() - started
    logger.info(f"Renumbered {len(pending)} entr{'y' if len(pending) == 1 else 'ies'} in {directory}")
    return report


def _rollback(journal: List[Tuple[Path, Path]]) -> None:
    """Undo recorded moves in reverse order."""
    for original, moved in reversed(journal):
        try:
            os.rename(moved, original)
        except OSError as e:
            logger.error(f"Could not restore {moved} to {original}: {e}")


def renumber(
    directory: Union[str, Path],
    config: Optional[RenumberConfig] = None,
    walker: Optional[EntryWalker] = None,
    dry_run: bool = False,
    **options,
) -> OperationReport:
    """
    Plan and apply a renumbering in one call.

    Args:
        directory: Directory whose entries are renumbered
        config: Renumbering defaults
        walker: Entry walker used for listing
        dry_run: Only plan; leave the directory untouched
        **options: Overrides passed to plan_renumber

    Returns:
        OperationReport of the run (pending operations when dry_run)
    """
    config = config or RenumberConfig()
    plan = plan_renumber(directory, config=config, walker=walker, **options)
    if dry_run:
        return OperationReport(operations=plan.operations, dry_run=True)
    return apply_renumber(plan, staging_prefix=config.staging_prefix)
